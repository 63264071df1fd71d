"""Test settlement arithmetic - credits, debits and missing parties."""

import pytest

from app.core.exceptions import RecipientNotFoundError, SenderNotFoundError
from app.packages.payments.models import PaymentOrder
from app.packages.payments.settlement import plan_settlement, recipient_credit
from app.users.models import User


def make_order(**overrides):
    fields = {
        "sender_uid": "uid-alice",
        "sender_fusion_pay_id": "alice@fusionpay",
        "recipient_fusion_pay_id": "bob@fusionpay",
        "amount_to_send": 10000,
        "currency_from": "USD",
        "currency_to": "EUR",
        "exchange_rate": 10800,
        "fee_amount": 50,
    }
    fields.update(overrides)
    return PaymentOrder(**fields)


@pytest.mark.parametrize("amount,rate,expected", [
    (10000, 10800, 10800),
    (3, 10000, 3),
    (1, 15000, 1),
    (9999, 1, 0),
    (0, 10800, 0),
])
def test_recipient_credit_cross_currency(amount, rate, expected):
    """Test cross-currency credit is floor(amount * rate / 10000)."""
    assert recipient_credit(amount, rate, "USD", "EUR") == expected


def test_recipient_credit_same_currency_ignores_rate():
    """Test same-currency payments credit the amount unchanged."""
    assert recipient_credit(12345, 10800, "USD", "USD") == 12345
    assert recipient_credit(12345, 0, "INR", "INR") == 12345


def test_recipient_credit_beyond_64_bit():
    """Test large values stay exact."""
    amount = 2 ** 70 + 7
    assert recipient_credit(amount, 10800, "USD", "EUR") == (amount * 10800) // 10000


def test_plan_debits_amount_and_fee():
    """Test sender pays amount plus fee in the source currency."""
    alice = User(uid="uid-alice", fusion_pay_id="alice@fusionpay", balances={"USD": "100000", "INR": "7"})
    bob = User(uid="uid-bob", fusion_pay_id="bob@fusionpay", balances={"EUR": "500"})

    plan = plan_settlement(alice, bob, make_order())

    assert plan.debit == 10050
    assert plan.credit == 10800
    assert plan.sender_balances == {"USD": "89950", "INR": "7"}
    assert plan.recipient_balances == {"EUR": "11300"}


def test_plan_defaults_absent_balances_to_zero():
    """Test missing currency entries count as zero."""
    alice = User(uid="uid-alice", fusion_pay_id="alice@fusionpay")
    bob = User(uid="uid-bob", fusion_pay_id="bob@fusionpay")

    plan = plan_settlement(alice, bob, make_order(fee_amount=0))

    assert plan.sender_balances["USD"] == "-10000"
    assert plan.recipient_balances["EUR"] == "10800"


def test_plan_keeps_exact_arithmetic_for_huge_balances():
    """Test balances beyond 64-bit range are exact decimal strings."""
    start = 10 ** 30 + 1
    amount = 2 ** 65
    fee = 3
    alice = User(uid="uid-alice", fusion_pay_id="alice@fusionpay", balances={"USD": str(start)})
    bob = User(uid="uid-bob", fusion_pay_id="bob@fusionpay", balances={"USD": "0"})

    plan = plan_settlement(alice, bob, make_order(amount_to_send=amount, fee_amount=fee, currency_to="USD"))

    assert plan.sender_balances["USD"] == str(start - amount - fee)
    assert plan.recipient_balances["USD"] == str(amount)


def test_plan_self_payment_applies_both_legs_to_one_document():
    """Test paying yourself across currencies updates one balance map."""
    alice = User(uid="uid-alice", fusion_pay_id="alice@fusionpay", balances={"USD": "20000"})

    plan = plan_settlement(alice, alice, make_order(recipient_fusion_pay_id="alice@fusionpay"))

    assert plan.same_account
    assert plan.sender_balances == {"USD": "9950", "EUR": "10800"}
    assert plan.recipient_balances is plan.sender_balances


def test_plan_does_not_mutate_inputs():
    """Test the users passed in keep their balances."""
    alice = User(uid="uid-alice", fusion_pay_id="alice@fusionpay", balances={"USD": "100000"})
    bob = User(uid="uid-bob", fusion_pay_id="bob@fusionpay", balances={"EUR": "500"})

    plan_settlement(alice, bob, make_order())

    assert alice.balances == {"USD": "100000"}
    assert bob.balances == {"EUR": "500"}


def test_plan_missing_sender():
    """Test a missing sender raises SenderNotFoundError."""
    bob = User(uid="uid-bob", fusion_pay_id="bob@fusionpay")
    with pytest.raises(SenderNotFoundError):
        plan_settlement(None, bob, make_order())


def test_plan_missing_recipient():
    """Test a missing recipient raises RecipientNotFoundError."""
    alice = User(uid="uid-alice", fusion_pay_id="alice@fusionpay")
    with pytest.raises(RecipientNotFoundError) as exc_info:
        plan_settlement(alice, None, make_order())
    assert "bob@fusionpay" in exc_info.value.message
