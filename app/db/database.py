import asyncio
import asyncpg
import json
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from app.core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Global connection pool
pool: Optional[asyncpg.Pool] = None

# Errors after which the whole read-modify-write unit is safe to re-run
RETRYABLE_ERRORS = (
    asyncpg.exceptions.SerializationError,
    asyncpg.exceptions.DeadlockDetectedError,
)

RETRY_BACKOFF_SECONDS = 0.05


async def _init_connection(conn: asyncpg.Connection) -> None:
    """Decode JSON/JSONB columns into Python objects."""
    for type_name in ("json", "jsonb"):
        await conn.set_type_codec(
            type_name,
            encoder=json.dumps,
            decoder=json.loads,
            schema="pg_catalog"
        )


async def get_pool() -> asyncpg.Pool:
    """Get the database connection pool."""
    global pool
    if pool is None:
        pool = await asyncpg.create_pool(
            settings.DATABASE_URL,
            min_size=settings.DB_POOL_MIN_SIZE,
            max_size=settings.DB_POOL_MAX_SIZE,
            command_timeout=settings.DB_COMMAND_TIMEOUT,
            init=_init_connection
        )
    return pool


async def close_pool():
    """Close the database connection pool."""
    global pool
    if pool is not None:
        await pool.close()
        pool = None


async def run_in_transaction(
    db_pool: asyncpg.Pool,
    work: Callable[[asyncpg.Connection], Awaitable[T]],
    max_attempts: Optional[int] = None
) -> T:
    """
    Run ``work(conn)`` as one serializable read-modify-write transaction.

    When PostgreSQL aborts the transaction because of a conflicting concurrent
    write, the whole unit is re-run from its first read, up to ``max_attempts``
    times. Any other error propagates immediately and rolls the transaction back.
    ``work`` must therefore be free of side effects outside the connection.
    """
    attempts = max_attempts or settings.DB_TRANSACTION_MAX_ATTEMPTS
    for attempt in range(1, attempts + 1):
        async with db_pool.acquire() as conn:
            try:
                async with conn.transaction(isolation="serializable"):
                    return await work(conn)
            except RETRYABLE_ERRORS as e:
                if attempt == attempts:
                    logger.error(f"Transaction aborted after {attempt} attempts: {str(e)}")
                    raise
                logger.warning(f"Write conflict on attempt {attempt}/{attempts}, retrying: {str(e)}")
        await asyncio.sleep(RETRY_BACKOFF_SECONDS * attempt)
    raise RuntimeError("unreachable")


async def init_db():
    """Initialize database tables using raw SQL."""
    pool = await get_pool()
    async with pool.acquire() as conn:
        # Users: one document per account, keyed by the identity provider's uid
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS users (
                uid VARCHAR(128) PRIMARY KEY,
                fusion_pay_id VARCHAR(255) UNIQUE,
                blockchain_address VARCHAR(42),
                blockchain_private_key VARCHAR(66),
                on_chain_registered BOOLEAN DEFAULT FALSE NOT NULL,
                balances JSONB DEFAULT '{}'::jsonb NOT NULL,
                recent_transactions JSONB DEFAULT '[]'::jsonb NOT NULL,
                registered_at TIMESTAMPTZ,
                created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # Transactions: one document per payment attempt. Amounts are decimal
        # strings so arbitrary-precision integers survive storage unchanged.
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS transactions (
                tx_id VARCHAR(64) PRIMARY KEY,
                idempotency_key VARCHAR(255) UNIQUE,
                sender_uid VARCHAR(128),
                sender_fusion_pay_id VARCHAR(255),
                recipient_fusion_pay_id VARCHAR(255),
                amount_to_send TEXT,
                currency_from VARCHAR(16),
                currency_to VARCHAR(16),
                exchange_rate TEXT,
                fee_amount TEXT,
                status VARCHAR(32) DEFAULT 'pending_onchain' NOT NULL,
                transaction_hash VARCHAR(66),
                on_chain_error JSONB,
                internal_error TEXT,
                created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # Create indexes
        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_transactions_sender ON transactions(sender_uid)
        """)

        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_transactions_status ON transactions(status)
        """)
