from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class TransactionStatus(str, Enum):
    """Settlement states of a payment attempt."""
    PENDING_ONCHAIN = "pending_onchain"
    COMPLETED = "completed"
    FAILED_ONCHAIN = "failed_onchain"
    FAILED_INTERNAL = "failed_internal"

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionStatus.PENDING_ONCHAIN


TERMINAL_STATUSES = tuple(s.value for s in TransactionStatus if s.is_terminal)


@dataclass(frozen=True)
class PaymentOrder:
    """A validated payment request. Amounts are ints in the smallest unit."""
    sender_uid: str
    sender_fusion_pay_id: str
    recipient_fusion_pay_id: str
    amount_to_send: int
    currency_from: str
    currency_to: str
    exchange_rate: int
    fee_amount: int
    idempotency_key: Optional[str] = None


class TransactionRecord:
    """One document per payment attempt."""

    def __init__(
        self,
        tx_id: str,
        sender_uid: Optional[str] = None,
        sender_fusion_pay_id: Optional[str] = None,
        recipient_fusion_pay_id: Optional[str] = None,
        amount_to_send: Optional[str] = None,
        currency_from: Optional[str] = None,
        currency_to: Optional[str] = None,
        exchange_rate: Optional[str] = None,
        fee_amount: Optional[str] = None,
        status: str = TransactionStatus.PENDING_ONCHAIN.value,
        idempotency_key: Optional[str] = None,
        transaction_hash: Optional[str] = None,
        on_chain_error: Optional[Dict[str, Any]] = None,
        internal_error: Optional[str] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None
    ):
        self.tx_id = tx_id
        self.sender_uid = sender_uid
        self.sender_fusion_pay_id = sender_fusion_pay_id
        self.recipient_fusion_pay_id = recipient_fusion_pay_id
        self.amount_to_send = amount_to_send
        self.currency_from = currency_from
        self.currency_to = currency_to
        self.exchange_rate = exchange_rate
        self.fee_amount = fee_amount
        self.status = TransactionStatus(status)
        self.idempotency_key = idempotency_key
        self.transaction_hash = transaction_hash
        self.on_chain_error = on_chain_error
        self.internal_error = internal_error
        self.created_at = created_at
        self.updated_at = updated_at

    @classmethod
    def pending(cls, tx_id: str, order: PaymentOrder) -> "TransactionRecord":
        """A new record for ``order``; amounts stored as decimal strings."""
        return cls(
            tx_id=tx_id,
            sender_uid=order.sender_uid,
            sender_fusion_pay_id=order.sender_fusion_pay_id,
            recipient_fusion_pay_id=order.recipient_fusion_pay_id,
            amount_to_send=str(order.amount_to_send),
            currency_from=order.currency_from,
            currency_to=order.currency_to,
            exchange_rate=str(order.exchange_rate),
            fee_amount=str(order.fee_amount),
            status=TransactionStatus.PENDING_ONCHAIN.value,
            idempotency_key=order.idempotency_key
        )

    def to_public_dict(self) -> Dict[str, Any]:
        return {
            "txId": self.tx_id,
            "senderUid": self.sender_uid,
            "senderFusionPayId": self.sender_fusion_pay_id,
            "recipientFusionPayId": self.recipient_fusion_pay_id,
            "amountToSend": self.amount_to_send,
            "currencyFrom": self.currency_from,
            "currencyTo": self.currency_to,
            "exchangeRate": self.exchange_rate,
            "feeAmount": self.fee_amount,
            "status": self.status.value,
            "transactionHash": self.transaction_hash,
            "onChainError": self.on_chain_error,
            "internalError": self.internal_error,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None
        }

    @classmethod
    def from_record(cls, record) -> "TransactionRecord":
        """Create TransactionRecord instance from database record."""
        return cls(
            tx_id=record["tx_id"],
            sender_uid=record.get("sender_uid"),
            sender_fusion_pay_id=record.get("sender_fusion_pay_id"),
            recipient_fusion_pay_id=record.get("recipient_fusion_pay_id"),
            amount_to_send=record.get("amount_to_send"),
            currency_from=record.get("currency_from"),
            currency_to=record.get("currency_to"),
            exchange_rate=record.get("exchange_rate"),
            fee_amount=record.get("fee_amount"),
            status=record["status"],
            idempotency_key=record.get("idempotency_key"),
            transaction_hash=record.get("transaction_hash"),
            on_chain_error=record.get("on_chain_error"),
            internal_error=record.get("internal_error"),
            created_at=record.get("created_at"),
            updated_at=record.get("updated_at")
        )
