"""
Payment service layer - records a payment, executes it on-chain, settles balances.

States: pending_onchain -> completed | failed_onchain | failed_internal
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging
import secrets

from fastapi import status

from app.core.amounts import parse_amount
from app.core.exceptions import InvalidInputError, NotFoundError
from app.packages.chain.client import ChainClient, ChainError, PaymentParams
from app.packages.payments.models import PaymentOrder, TransactionRecord, TransactionStatus
from app.packages.payments.repository import PaymentRepository

logger = logging.getLogger(__name__)

STRING_FIELDS = (
    "senderUid",
    "senderFusionPayId",
    "recipientFusionPayId",
    "currencyFrom",
    "currencyTo",
)
NUMERIC_FIELDS = ("amountToSend", "exchangeRate", "feeAmount")


@dataclass
class PaymentOutcome:
    """Result of one payment attempt, ready to be rendered as a response."""
    tx_id: str
    status: Optional[TransactionStatus]
    http_status: int
    transaction_hash: Optional[str] = None
    error: Optional[str] = None
    details: Any = None
    replayed: bool = False

    @property
    def succeeded(self) -> bool:
        return self.status is TransactionStatus.COMPLETED


def generate_transaction_id() -> str:
    """Generate a unique, URL-safe transaction ID."""
    return secrets.token_urlsafe(16)


def validate_payment_request(payload: Dict[str, Any]) -> PaymentOrder:
    """
    Check presence and shape of every required field.

    Presence means "not None": ``0`` and ``"0"`` are valid amounts and fees.
    Identifier and currency fields must also be non-empty strings.

    Raises:
        InvalidInputError: If a field is missing or malformed
    """
    missing = [name for name in NUMERIC_FIELDS if payload.get(name) is None]
    for name in STRING_FIELDS:
        value = payload.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(name)
    if missing:
        raise InvalidInputError("Missing required payment details", {"missing": sorted(missing)})

    for name in STRING_FIELDS:
        if not isinstance(payload[name], str):
            raise InvalidInputError(f"{name} must be a string", {"field": name})

    idempotency_key = payload.get("idempotencyKey")
    if idempotency_key is not None and (not isinstance(idempotency_key, str) or not idempotency_key.strip()):
        raise InvalidInputError("idempotencyKey must be a non-empty string", {"field": "idempotencyKey"})

    return PaymentOrder(
        sender_uid=payload["senderUid"],
        sender_fusion_pay_id=payload["senderFusionPayId"],
        recipient_fusion_pay_id=payload["recipientFusionPayId"],
        amount_to_send=parse_amount(payload["amountToSend"], "amountToSend"),
        currency_from=payload["currencyFrom"],
        currency_to=payload["currencyTo"],
        exchange_rate=parse_amount(payload["exchangeRate"], "exchangeRate"),
        fee_amount=parse_amount(payload["feeAmount"], "feeAmount"),
        idempotency_key=idempotency_key
    )


def _replay(existing: TransactionRecord) -> PaymentOutcome:
    """Answer a repeated idempotency key from the stored record."""
    logger.info(f"Idempotent replay of {existing.tx_id} (status: {existing.status.value})")
    if existing.status is TransactionStatus.COMPLETED:
        return PaymentOutcome(
            tx_id=existing.tx_id,
            status=existing.status,
            http_status=status.HTTP_200_OK,
            transaction_hash=existing.transaction_hash,
            replayed=True
        )
    return PaymentOutcome(
        tx_id=existing.tx_id,
        status=existing.status,
        http_status=status.HTTP_409_CONFLICT,
        error="Payment with this idempotency key was already attempted",
        details={"status": existing.status.value},
        replayed=True
    )


async def _record_internal_failure(
    payments: PaymentRepository,
    txn: TransactionRecord,
    error: Exception,
    transaction_hash: Optional[str]
) -> None:
    try:
        await payments.mark_failed_internal(txn, str(error), transaction_hash)
    except Exception as write_error:
        logger.error(f"Failed to record failed_internal for {txn.tx_id}: {str(write_error)}")


async def process_payment(
    payments: PaymentRepository,
    chain: ChainClient,
    payload: Dict[str, Any],
    tx_id: Optional[str] = None
) -> PaymentOutcome:
    """
    Run one payment attempt to a terminal status.

    Balances and the ``completed`` status are committed together; a record
    never reads ``completed`` while its balance changes are unapplied.

    Raises:
        InvalidInputError: If the request is incomplete. Nothing is written
            and the chain is not called.
    """
    tx_id = tx_id or generate_transaction_id()
    order = validate_payment_request(payload)

    if order.idempotency_key:
        existing = await payments.get_by_idempotency_key(order.idempotency_key)
        if existing is not None:
            return _replay(existing)

    txn = TransactionRecord.pending(tx_id, order)
    try:
        created = await payments.create_transaction(txn)
    except Exception as e:
        logger.error(f"Could not create transaction record {tx_id}: {str(e)}", exc_info=True)
        return PaymentOutcome(
            tx_id=tx_id,
            status=None,
            http_status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error="Internal server error",
            details=str(e)
        )
    if not created:
        # Lost a race with a concurrent request carrying the same key
        return _replay(await payments.get_by_idempotency_key(order.idempotency_key))

    logger.info(
        f"Transaction {tx_id} pending: {order.amount_to_send} {order.currency_from} "
        f"from {order.sender_fusion_pay_id} to {order.recipient_fusion_pay_id}"
    )

    transaction_hash = None
    try:
        params = PaymentParams(
            from_fusion_pay_id=order.sender_fusion_pay_id,
            to_fusion_pay_id=order.recipient_fusion_pay_id,
            amount=order.amount_to_send,
            from_currency=order.currency_from,
            to_currency=order.currency_to,
            fx_rate=order.exchange_rate,
            fx_route=[order.currency_from, order.currency_to]
        )
        try:
            transaction_hash = await chain.process_payment(tx_id, params)
        except ChainError as e:
            if e.transaction_hash:
                logger.error(
                    f"Blockchain transaction failed for {tx_id} after submission "
                    f"({e.transaction_hash}), needs reconciliation: {str(e)}"
                )
            else:
                logger.error(f"Blockchain transaction failed for {tx_id}: {str(e)}")
            await payments.mark_failed_onchain(tx_id, e.details, e.transaction_hash)
            return PaymentOutcome(
                tx_id=tx_id,
                status=TransactionStatus.FAILED_ONCHAIN,
                http_status=status.HTTP_500_INTERNAL_SERVER_ERROR,
                transaction_hash=e.transaction_hash,
                error="Blockchain transaction failed",
                details=e.details
            )

        await payments.settle(tx_id, order, transaction_hash)
    except Exception as e:
        logger.error(f"Error processing payment {tx_id}: {str(e)}", exc_info=True)
        await _record_internal_failure(payments, txn, e, transaction_hash)
        return PaymentOutcome(
            tx_id=tx_id,
            status=TransactionStatus.FAILED_INTERNAL,
            http_status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            transaction_hash=transaction_hash,
            error="Internal server error",
            details=str(e)
        )

    logger.info(f"Transaction {tx_id} completed. Hash: {transaction_hash}")
    return PaymentOutcome(
        tx_id=tx_id,
        status=TransactionStatus.COMPLETED,
        http_status=status.HTTP_200_OK,
        transaction_hash=transaction_hash
    )


async def get_transaction(payments: PaymentRepository, tx_id: str) -> TransactionRecord:
    """
    Raises:
        NotFoundError: If no transaction has this id
    """
    txn = await payments.get_transaction(tx_id)
    if txn is None:
        raise NotFoundError(f"Transaction {tx_id} not found.", {"txId": tx_id})
    return txn
