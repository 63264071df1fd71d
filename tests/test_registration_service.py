"""Test custody wallet registration and wallet funding."""

import pytest

from app.core.exceptions import InvalidInputError, NotFoundError
from app.packages.chain.client import ChainError
from app.users import service as user_service


@pytest.mark.asyncio
@pytest.mark.parametrize("uid,fusion_pay_id", [
    (None, "alice@fusionpay"),
    ("uid-alice", None),
    ("", "alice@fusionpay"),
    ("uid-alice", ""),
])
async def test_register_requires_both_ids(uid, fusion_pay_id, users_repo, chain):
    with pytest.raises(InvalidInputError):
        await user_service.register_user(users_repo, chain, uid, fusion_pay_id)

    assert chain.registrations == []
    assert users_repo.users == {}


@pytest.mark.asyncio
async def test_register_creates_user_after_chain_success(users_repo, chain):
    """Test the wallet is stored only after the on-chain registration succeeds."""
    result = await user_service.register_user(users_repo, chain, "uid-alice", "alice@fusionpay")

    assert not result.already_registered
    assert result.transaction_hash == "0x" + "1" * 64
    assert chain.registrations == [("alice@fusionpay", result.blockchain_address)]

    user = users_repo.users["uid-alice"]
    assert user.blockchain_address == result.blockchain_address
    assert user.blockchain_private_key == "0x" + "ab" * 32
    assert user.fusion_pay_id == "alice@fusionpay"
    assert user.on_chain_registered
    assert user.registered_at is not None


@pytest.mark.asyncio
async def test_register_merges_into_existing_document(users_repo, chain):
    """Test existing balances survive registration."""
    users_repo.seed("uid-alice", "alice@fusionpay", {"USD": "700"})

    await user_service.register_user(users_repo, chain, "uid-alice", "alice@fusionpay")

    user = users_repo.users["uid-alice"]
    assert user.balances == {"USD": "700"}
    assert user.on_chain_registered


@pytest.mark.asyncio
async def test_register_chain_failure_writes_nothing(users_repo, chain):
    """Test a failed chain registration leaves no local record."""
    chain.error = ChainError("registerUser reverted: User ID already registered", {"reason": "User ID already registered"})

    with pytest.raises(ChainError):
        await user_service.register_user(users_repo, chain, "uid-alice", "alice@fusionpay")

    assert users_repo.users == {}


@pytest.mark.asyncio
async def test_register_already_registered_short_circuits(users_repo, chain):
    users_repo.seed(
        "uid-alice",
        "alice@fusionpay",
        blockchain_address="0x00000000000000000000000000000000000000aa",
        on_chain_registered=True
    )

    result = await user_service.register_user(users_repo, chain, "uid-alice", "alice@fusionpay")

    assert result.already_registered
    assert result.blockchain_address == "0x00000000000000000000000000000000000000aa"
    assert chain.registrations == []
    assert chain.wallets_created == 0


@pytest.mark.asyncio
async def test_add_funds_credits_and_records(users_repo):
    users_repo.seed("uid-alice", "alice@fusionpay", {"INR": "100"})

    user = await user_service.add_funds(users_repo, "uid-alice", "INR", "5000", method="Razorpay", payment_id="pay_1")

    assert user.balances["INR"] == "5100"
    entry = user.recent_transactions[0]
    assert entry["type"] == "deposit"
    assert entry["amount"] == "5000"
    assert entry["method"] == "Razorpay"
    assert entry["paymentId"] == "pay_1"


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, "0", -5, "1.25", None])
async def test_add_funds_rejects_bad_amounts(amount, users_repo):
    users_repo.seed("uid-alice", "alice@fusionpay")
    with pytest.raises(InvalidInputError):
        await user_service.add_funds(users_repo, "uid-alice", "USD", amount)


@pytest.mark.asyncio
async def test_add_funds_unknown_user(users_repo):
    with pytest.raises(NotFoundError):
        await user_service.add_funds(users_repo, "uid-ghost", "USD", 100)


@pytest.mark.asyncio
async def test_get_wallet_hides_private_key(users_repo):
    users_repo.seed("uid-alice", "alice@fusionpay", blockchain_private_key="0x" + "ab" * 32)

    user = await user_service.get_wallet(users_repo, "uid-alice")

    assert "blockchainPrivateKey" not in user.to_public_dict()
    assert "0x" + "ab" * 32 not in str(user.to_public_dict())
