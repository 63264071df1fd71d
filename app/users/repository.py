"""
User persistence - raw SQL over the asyncpg pool.
"""
import asyncpg
from typing import Any, Dict, Optional
import logging

from app.db.database import run_in_transaction
from app.users.models import User
from app.core.exceptions import NotFoundError

logger = logging.getLogger(__name__)

USER_COLUMNS = """
    uid, fusion_pay_id, blockchain_address, blockchain_private_key,
    on_chain_registered, balances, recent_transactions,
    registered_at, created_at, updated_at
"""

# Columns merge_user may touch; anything else is a programming error
MERGEABLE_COLUMNS = {
    "fusion_pay_id",
    "blockchain_address",
    "blockchain_private_key",
    "on_chain_registered",
    "balances",
    "recent_transactions",
    "registered_at",
}

# Kept short so the wallet document stays small
RECENT_TRANSACTIONS_LIMIT = 20


class UserRepository:
    """Reads and writes user documents."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def get_user(self, uid: str) -> Optional[User]:
        """
        Retrieve a user by account id.

        Returns:
            User object if found, None otherwise
        """
        record = await self.pool.fetchrow(
            f"SELECT {USER_COLUMNS} FROM users WHERE uid = $1",
            uid
        )
        if record is None:
            return None
        return User.from_record(record)

    async def get_user_by_fusion_pay_id(self, fusion_pay_id: str) -> Optional[User]:
        """Retrieve a user by their unique FusionPay ID."""
        record = await self.pool.fetchrow(
            f"SELECT {USER_COLUMNS} FROM users WHERE fusion_pay_id = $1 LIMIT 1",
            fusion_pay_id
        )
        if record is None:
            return None
        return User.from_record(record)

    async def merge_user(self, uid: str, fields: Dict[str, Any]) -> User:
        """
        Merge ``fields`` into the user document, creating it if absent.

        Only the given columns change; everything else on an existing
        document is left as it was.
        """
        unknown = set(fields) - MERGEABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot merge unknown user fields: {sorted(unknown)}")

        columns = list(fields)
        placeholders = ", ".join(f"${i + 2}" for i in range(len(columns)))
        updates = ", ".join(f"{col} = EXCLUDED.{col}" for col in columns)
        insert_columns = ", ".join(["uid"] + columns)
        conflict_action = f"DO UPDATE SET {updates}, updated_at = CURRENT_TIMESTAMP" if columns else "DO NOTHING"

        await self.pool.execute(
            f"""
            INSERT INTO users ({insert_columns})
            VALUES ($1{", " + placeholders if columns else ""})
            ON CONFLICT (uid) {conflict_action}
            """,
            uid,
            *[fields[col] for col in columns]
        )
        user = await self.get_user(uid)
        logger.info(f"Merged fields {columns} into user {uid}")
        return user

    async def add_funds(
        self,
        uid: str,
        currency: str,
        amount: int,
        entry: Dict[str, Any]
    ) -> User:
        """
        Credit ``amount`` to one currency balance and record the deposit.

        Raises:
            NotFoundError: If the user does not exist
        """
        async def work(conn: asyncpg.Connection) -> User:
            record = await conn.fetchrow(
                f"SELECT {USER_COLUMNS} FROM users WHERE uid = $1",
                uid
            )
            if record is None:
                raise NotFoundError(f"User with UID {uid} not found.", {"uid": uid})
            user = User.from_record(record)
            user.balances[currency] = str(user.balance_of(currency) + amount)
            user.recent_transactions = ([entry] + user.recent_transactions)[:RECENT_TRANSACTIONS_LIMIT]
            await conn.execute(
                """
                UPDATE users
                SET balances = $2, recent_transactions = $3, updated_at = CURRENT_TIMESTAMP
                WHERE uid = $1
                """,
                uid,
                user.balances,
                user.recent_transactions
            )
            return user

        return await run_in_transaction(self.pool, work)
