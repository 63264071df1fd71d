"""
User service layer - custody wallet registration and wallet funding.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
import logging

from app.core.amounts import parse_amount
from app.core.exceptions import InvalidInputError, NotFoundError
from app.packages.chain.client import ChainClient, ChainError
from app.users.models import User
from app.users.repository import UserRepository

logger = logging.getLogger(__name__)


@dataclass
class RegistrationResult:
    blockchain_address: str
    fusion_pay_id: str
    transaction_hash: Optional[str] = None
    already_registered: bool = False


async def register_user(
    users: UserRepository,
    chain: ChainClient,
    uid: Optional[str],
    fusion_pay_id: Optional[str]
) -> RegistrationResult:
    """
    Give a user a custody wallet and register it on-chain.

    The chain call completes before anything is persisted. A failed chain
    call therefore leaves no local trace, and a crash between chain success
    and the merge below loses the address mapping.

    Raises:
        InvalidInputError: If uid or fusion_pay_id is missing
        ChainError: If on-chain registration fails (nothing is written)
    """
    if not uid or not fusion_pay_id:
        logger.info("Registration rejected: missing uid or fusionPayId")
        raise InvalidInputError("Missing uid or fusionPayId")

    logger.info(f"Processing registration for UID: {uid}, fusionPayId: {fusion_pay_id}")

    existing = await users.get_user(uid)
    if existing and existing.on_chain_registered and existing.blockchain_address:
        logger.info(f"User {uid} is already registered on-chain at {existing.blockchain_address}")
        return RegistrationResult(
            blockchain_address=existing.blockchain_address,
            fusion_pay_id=existing.fusion_pay_id or fusion_pay_id,
            already_registered=True
        )

    wallet = chain.create_custody_wallet()
    logger.info(f"New custody wallet generated for {uid}: {wallet.address}")

    try:
        transaction_hash = await chain.register_user(fusion_pay_id, wallet.address)
    except ChainError as e:
        if e.transaction_hash:
            logger.error(
                f"registerUser for {uid} was submitted ({e.transaction_hash}) but not confirmed; "
                f"address {wallet.address} may be registered on-chain for {fusion_pay_id}"
            )
        raise

    await users.merge_user(uid, {
        "blockchain_address": wallet.address,
        "blockchain_private_key": wallet.private_key,
        "fusion_pay_id": fusion_pay_id,
        "on_chain_registered": True,
        "registered_at": datetime.now(timezone.utc)
    })
    logger.info(f"User {uid} stored with address {wallet.address}")

    return RegistrationResult(
        blockchain_address=wallet.address,
        fusion_pay_id=fusion_pay_id,
        transaction_hash=transaction_hash
    )


async def get_wallet(users: UserRepository, uid: str) -> User:
    """
    Raises:
        NotFoundError: If the user does not exist
    """
    user = await users.get_user(uid)
    if user is None:
        raise NotFoundError(f"User with UID {uid} not found.", {"uid": uid})
    return user


async def add_funds(
    users: UserRepository,
    uid: Optional[str],
    currency: Optional[str],
    amount,
    method: Optional[str] = None,
    payment_id: Optional[str] = None
) -> User:
    """
    Credit a deposit to one currency balance and record it in recent transactions.

    Raises:
        InvalidInputError: If a field is missing or the amount is not a positive integer
        NotFoundError: If the user does not exist
    """
    if not uid or not currency or amount is None:
        raise InvalidInputError("Missing uid, currency or amount")

    parsed_amount = parse_amount(amount, "amount")
    if parsed_amount == 0:
        raise InvalidInputError("amount must be greater than zero", {"field": "amount"})

    entry = {
        "type": "deposit",
        "amount": str(parsed_amount),
        "currency": currency,
        "status": "Completed",
        "description": "Added funds to wallet",
        "method": method or "Mock",
        "paymentId": payment_id,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }

    user = await users.add_funds(uid, currency, parsed_amount, entry)
    logger.info(f"Added {parsed_amount} {currency} to wallet of {uid}")
    return user
