"""
In-memory stand-ins for the document store and the chain client.

The fake payment repository settles through the same ``plan_settlement``
arithmetic as the PostgreSQL repository, and applies a plan all-or-nothing.
"""
import copy
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from app.core.exceptions import InternalError, NotFoundError
from app.dependencies import get_chain_client, get_payment_repository, get_user_repository
from app.main import app
from app.packages.chain.client import ChainError, CustodyWallet, PaymentParams
from app.packages.payments.models import TransactionRecord, TransactionStatus
from app.packages.payments.settlement import plan_settlement
from app.users.models import User


class FakeUserRepository:
    def __init__(self):
        self.users: Dict[str, User] = {}

    def seed(self, uid: str, fusion_pay_id: str, balances: Optional[Dict[str, str]] = None, **fields) -> User:
        self.users[uid] = User(uid=uid, fusion_pay_id=fusion_pay_id, balances=balances or {}, **fields)
        return self.users[uid]

    async def get_user(self, uid: str) -> Optional[User]:
        return copy.deepcopy(self.users.get(uid))

    async def get_user_by_fusion_pay_id(self, fusion_pay_id: str) -> Optional[User]:
        for user in self.users.values():
            if user.fusion_pay_id == fusion_pay_id:
                return copy.deepcopy(user)
        return None

    async def merge_user(self, uid: str, fields: Dict[str, Any]) -> User:
        user = self.users.setdefault(uid, User(uid=uid))
        for key, value in fields.items():
            setattr(user, key, value)
        return copy.deepcopy(user)

    async def add_funds(self, uid: str, currency: str, amount: int, entry: Dict[str, Any]) -> User:
        user = self.users.get(uid)
        if user is None:
            raise NotFoundError(f"User with UID {uid} not found.", {"uid": uid})
        user.balances[currency] = str(user.balance_of(currency) + amount)
        user.recent_transactions.insert(0, entry)
        return copy.deepcopy(user)


class FakePaymentRepository:
    def __init__(self, users: FakeUserRepository):
        self.users = users
        self.transactions: Dict[str, TransactionRecord] = {}
        self.fail_on_create: Optional[Exception] = None
        self.fail_on_settle: Optional[Exception] = None
        self.settle_calls = 0

    async def get_transaction(self, tx_id: str) -> Optional[TransactionRecord]:
        return copy.deepcopy(self.transactions.get(tx_id))

    async def get_by_idempotency_key(self, key: str) -> Optional[TransactionRecord]:
        for txn in self.transactions.values():
            if txn.idempotency_key == key:
                return copy.deepcopy(txn)
        return None

    async def create_transaction(self, txn: TransactionRecord) -> bool:
        if self.fail_on_create is not None:
            raise self.fail_on_create
        if txn.idempotency_key and any(
            t.idempotency_key == txn.idempotency_key for t in self.transactions.values()
        ):
            return False
        stored = copy.deepcopy(txn)
        stored.created_at = stored.updated_at = datetime.now(timezone.utc)
        self.transactions[txn.tx_id] = stored
        return True

    async def mark_failed_onchain(
        self,
        tx_id: str,
        error: Dict[str, Any],
        transaction_hash: Optional[str] = None
    ) -> None:
        txn = self.transactions[tx_id]
        if txn.status is TransactionStatus.PENDING_ONCHAIN:
            txn.status = TransactionStatus.FAILED_ONCHAIN
            txn.on_chain_error = copy.deepcopy(error)
            txn.transaction_hash = transaction_hash

    async def mark_failed_internal(
        self,
        txn: TransactionRecord,
        message: str,
        transaction_hash: Optional[str] = None
    ) -> None:
        stored = self.transactions.setdefault(txn.tx_id, TransactionRecord(
            tx_id=txn.tx_id,
            sender_uid=txn.sender_uid,
            sender_fusion_pay_id=txn.sender_fusion_pay_id,
            recipient_fusion_pay_id=txn.recipient_fusion_pay_id
        ))
        if not stored.status.is_terminal:
            stored.status = TransactionStatus.FAILED_INTERNAL
        stored.internal_error = message
        stored.transaction_hash = stored.transaction_hash or transaction_hash

    async def settle(self, tx_id: str, order, transaction_hash: str):
        self.settle_calls += 1
        if self.fail_on_settle is not None:
            raise self.fail_on_settle
        sender = await self.users.get_user(order.sender_uid)
        recipient = await self.users.get_user_by_fusion_pay_id(order.recipient_fusion_pay_id)
        plan = plan_settlement(sender, recipient, order)

        txn = self.transactions[tx_id]
        if txn.status is not TransactionStatus.PENDING_ONCHAIN:
            raise InternalError(f"Transaction {tx_id} is no longer pending")

        self.users.users[plan.sender_uid].balances = dict(plan.sender_balances)
        self.users.users[plan.recipient_uid].balances = dict(plan.recipient_balances)
        txn.status = TransactionStatus.COMPLETED
        txn.transaction_hash = transaction_hash
        return plan


class FakeChainClient:
    def __init__(self):
        self.payments: List[tuple] = []
        self.registrations: List[tuple] = []
        self.error: Optional[ChainError] = None
        self.wallets_created = 0

    def create_custody_wallet(self) -> CustodyWallet:
        self.wallets_created += 1
        suffix = f"{self.wallets_created:040x}"
        return CustodyWallet(address=f"0x{suffix}", private_key=f"0x{'ab' * 32}")

    async def register_user(self, fusion_pay_id: str, user_address: str) -> str:
        self.registrations.append((fusion_pay_id, user_address))
        if self.error is not None:
            raise self.error
        return f"0x{'1' * 64}"

    async def process_payment(self, tx_id: str, params: PaymentParams) -> str:
        self.payments.append((tx_id, params))
        if self.error is not None:
            raise self.error
        return f"0x{'2' * 64}"


@pytest.fixture
def users_repo():
    return FakeUserRepository()


@pytest.fixture
def payments_repo(users_repo):
    return FakePaymentRepository(users_repo)


@pytest.fixture
def chain():
    return FakeChainClient()


@pytest.fixture
def payment_payload():
    return {
        "senderUid": "uid-alice",
        "senderFusionPayId": "alice@fusionpay",
        "recipientFusionPayId": "bob@fusionpay",
        "amountToSend": 10000,
        "currencyFrom": "USD",
        "currencyTo": "EUR",
        "exchangeRate": 10800,
        "feeAmount": 50,
    }


@pytest.fixture
def funded_users(users_repo):
    users_repo.seed("uid-alice", "alice@fusionpay", {"USD": "100000"})
    users_repo.seed("uid-bob", "bob@fusionpay", {"EUR": "500"})
    return users_repo


@pytest.fixture
def client(users_repo, payments_repo, chain):
    app.dependency_overrides[get_user_repository] = lambda: users_repo
    app.dependency_overrides[get_payment_repository] = lambda: payments_repo
    app.dependency_overrides[get_chain_client] = lambda: chain
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
