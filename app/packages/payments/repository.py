"""
Transaction persistence and the atomic balance settlement.
"""
import asyncpg
from typing import Any, Dict, Optional
import logging

from app.core.config import settings
from app.core.exceptions import InternalError
from app.db.database import run_in_transaction
from app.packages.payments.models import (
    PaymentOrder, TransactionRecord, TransactionStatus, TERMINAL_STATUSES
)
from app.packages.payments.settlement import SettlementPlan, plan_settlement
from app.users.models import User
from app.users.repository import USER_COLUMNS

logger = logging.getLogger(__name__)

TRANSACTION_COLUMNS = """
    tx_id, idempotency_key, sender_uid, sender_fusion_pay_id,
    recipient_fusion_pay_id, amount_to_send, currency_from, currency_to,
    exchange_rate, fee_amount, status, transaction_hash, on_chain_error,
    internal_error, created_at, updated_at
"""


class PaymentRepository:
    """Reads and writes transaction documents."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def get_transaction(self, tx_id: str) -> Optional[TransactionRecord]:
        record = await self.pool.fetchrow(
            f"SELECT {TRANSACTION_COLUMNS} FROM transactions WHERE tx_id = $1",
            tx_id
        )
        if record is None:
            return None
        return TransactionRecord.from_record(record)

    async def get_by_idempotency_key(self, key: str) -> Optional[TransactionRecord]:
        record = await self.pool.fetchrow(
            f"SELECT {TRANSACTION_COLUMNS} FROM transactions WHERE idempotency_key = $1",
            key
        )
        if record is None:
            return None
        return TransactionRecord.from_record(record)

    async def create_transaction(self, txn: TransactionRecord) -> bool:
        """
        Insert a new pending transaction.

        Returns:
            False if another transaction already holds the same idempotency key
        """
        record = await self.pool.fetchrow(
            """
            INSERT INTO transactions (
                tx_id, idempotency_key, sender_uid, sender_fusion_pay_id,
                recipient_fusion_pay_id, amount_to_send, currency_from, currency_to,
                exchange_rate, fee_amount, status
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
            ON CONFLICT (idempotency_key) DO NOTHING
            RETURNING tx_id
            """,
            txn.tx_id,
            txn.idempotency_key,
            txn.sender_uid,
            txn.sender_fusion_pay_id,
            txn.recipient_fusion_pay_id,
            txn.amount_to_send,
            txn.currency_from,
            txn.currency_to,
            txn.exchange_rate,
            txn.fee_amount,
            txn.status.value
        )
        return record is not None

    async def mark_failed_onchain(
        self,
        tx_id: str,
        error: Dict[str, Any],
        transaction_hash: Optional[str] = None
    ) -> None:
        """
        Mark a pending transaction failed_onchain.

        ``transaction_hash`` is set when the transaction reached the network
        but its outcome is unknown or reverted, so it can be reconciled.
        """
        await self.pool.execute(
            """
            UPDATE transactions
            SET status = $2, on_chain_error = $3, transaction_hash = $5,
                updated_at = CURRENT_TIMESTAMP
            WHERE tx_id = $1 AND status = $4
            """,
            tx_id,
            TransactionStatus.FAILED_ONCHAIN.value,
            error,
            TransactionStatus.PENDING_ONCHAIN.value,
            transaction_hash
        )

    async def mark_failed_internal(
        self,
        txn: TransactionRecord,
        message: str,
        transaction_hash: Optional[str] = None
    ) -> None:
        """
        Merge a failed_internal status into the record, creating it if absent.

        A record that is already terminal keeps its status; only the
        diagnostic fields are added.
        """
        await self.pool.execute(
            f"""
            INSERT INTO transactions (
                tx_id, sender_uid, sender_fusion_pay_id, recipient_fusion_pay_id,
                status, internal_error, transaction_hash
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            ON CONFLICT (tx_id) DO UPDATE SET
                status = CASE
                    WHEN transactions.status IN ({", ".join(f"'{s}'" for s in TERMINAL_STATUSES)})
                    THEN transactions.status
                    ELSE EXCLUDED.status
                END,
                internal_error = EXCLUDED.internal_error,
                transaction_hash = COALESCE(transactions.transaction_hash, EXCLUDED.transaction_hash),
                updated_at = CURRENT_TIMESTAMP
            """,
            txn.tx_id,
            txn.sender_uid,
            txn.sender_fusion_pay_id,
            txn.recipient_fusion_pay_id,
            TransactionStatus.FAILED_INTERNAL.value,
            message,
            transaction_hash
        )

    async def settle(
        self,
        tx_id: str,
        order: PaymentOrder,
        transaction_hash: str
    ) -> SettlementPlan:
        """
        Apply both balance changes and mark the transaction completed, atomically.

        The record only reaches ``completed`` if the balance writes commit in
        the same transaction. Conflicting concurrent writes re-run the whole
        read-modify-write.

        Raises:
            SenderNotFoundError: If the sender document does not exist
            RecipientNotFoundError: If no user has the recipient FusionPay ID
            InternalError: If the transaction is no longer pending
        """
        async def work(conn: asyncpg.Connection) -> SettlementPlan:
            sender_record = await conn.fetchrow(
                f"SELECT {USER_COLUMNS} FROM users WHERE uid = $1",
                order.sender_uid
            )
            recipient_record = await conn.fetchrow(
                f"SELECT {USER_COLUMNS} FROM users WHERE fusion_pay_id = $1 LIMIT 1",
                order.recipient_fusion_pay_id
            )
            plan = plan_settlement(
                User.from_record(sender_record) if sender_record else None,
                User.from_record(recipient_record) if recipient_record else None,
                order,
                settings.EXCHANGE_RATE_SCALE
            )

            await conn.execute(
                "UPDATE users SET balances = $2, updated_at = CURRENT_TIMESTAMP WHERE uid = $1",
                plan.sender_uid,
                plan.sender_balances
            )
            if not plan.same_account:
                await conn.execute(
                    "UPDATE users SET balances = $2, updated_at = CURRENT_TIMESTAMP WHERE uid = $1",
                    plan.recipient_uid,
                    plan.recipient_balances
                )

            result = await conn.execute(
                """
                UPDATE transactions
                SET status = $2, transaction_hash = $3, updated_at = CURRENT_TIMESTAMP
                WHERE tx_id = $1 AND status = $4
                """,
                tx_id,
                TransactionStatus.COMPLETED.value,
                transaction_hash,
                TransactionStatus.PENDING_ONCHAIN.value
            )
            if result != "UPDATE 1":
                raise InternalError(f"Transaction {tx_id} is no longer pending", {"txId": tx_id})
            return plan

        plan = await run_in_transaction(self.pool, work)
        logger.info(
            f"Settled {tx_id}: debited {plan.debit} {order.currency_from} from {plan.sender_uid}, "
            f"credited {plan.credit} {order.currency_to} to {plan.recipient_uid}"
        )
        return plan
