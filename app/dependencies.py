"""
Request dependencies. The flows receive their store and chain clients
explicitly; tests replace these providers through ``app.dependency_overrides``.
"""
from typing import Optional

from app.db.database import get_pool
from app.packages.chain.client import ChainClient
from app.packages.payments.repository import PaymentRepository
from app.users.repository import UserRepository

# Built on first use, reused for the life of the process
chain_client: Optional[ChainClient] = None


async def get_user_repository() -> UserRepository:
    return UserRepository(await get_pool())


async def get_payment_repository() -> PaymentRepository:
    return PaymentRepository(await get_pool())


async def get_chain_client() -> ChainClient:
    """
    Raises:
        ChainConfigurationError: If chain settings are missing
    """
    global chain_client
    if chain_client is None:
        chain_client = ChainClient.from_settings()
    return chain_client
