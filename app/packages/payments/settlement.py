"""
Balance arithmetic for settling a payment between two user documents.

All values are Python ints (arbitrary precision); balances are read from and
written back as decimal strings. No float ever touches an amount.
"""
from dataclasses import dataclass
from typing import Dict, Optional
import logging

from app.core.exceptions import SenderNotFoundError, RecipientNotFoundError
from app.packages.payments.models import PaymentOrder
from app.users.models import User

logger = logging.getLogger(__name__)

DEFAULT_RATE_SCALE = 10000


def recipient_credit(
    amount: int,
    exchange_rate_scaled: int,
    currency_from: str,
    currency_to: str,
    scale: int = DEFAULT_RATE_SCALE
) -> int:
    """
    Amount credited to the recipient, in the destination currency's smallest unit.

    Same currency: the amount unchanged, the rate is ignored. Otherwise
    ``amount * rate // scale``; the sub-unit remainder is dropped, not kept.
    """
    if currency_from == currency_to:
        return amount
    return (amount * exchange_rate_scaled) // scale


@dataclass
class SettlementPlan:
    sender_uid: str
    recipient_uid: str
    debit: int
    credit: int
    sender_balances: Dict[str, str]
    recipient_balances: Dict[str, str]

    @property
    def same_account(self) -> bool:
        return self.sender_uid == self.recipient_uid


def plan_settlement(
    sender: Optional[User],
    recipient: Optional[User],
    order: PaymentOrder,
    scale: int = DEFAULT_RATE_SCALE
) -> SettlementPlan:
    """
    Compute both users' new balance maps for ``order``.

    Sender loses amount + fee in ``currency_from``; recipient gains the
    converted amount in ``currency_to``. There is no floor check: a sender
    balance may go negative, which is logged.

    Raises:
        SenderNotFoundError: If ``sender`` is None
        RecipientNotFoundError: If ``recipient`` is None
    """
    if sender is None:
        raise SenderNotFoundError(order.sender_uid)
    if recipient is None:
        raise RecipientNotFoundError(order.recipient_fusion_pay_id)

    debit = order.amount_to_send + order.fee_amount
    credit = recipient_credit(
        order.amount_to_send,
        order.exchange_rate,
        order.currency_from,
        order.currency_to,
        scale
    )

    sender_balances = dict(sender.balances)
    new_sender_balance = sender.balance_of(order.currency_from) - debit
    sender_balances[order.currency_from] = str(new_sender_balance)
    if new_sender_balance < 0:
        logger.warning(
            f"Sender {sender.uid} balance in {order.currency_from} goes negative: {new_sender_balance}"
        )

    if recipient.uid == sender.uid:
        # Self-payment: both legs land on the same document
        recipient_balances = sender_balances
    else:
        recipient_balances = dict(recipient.balances)
    current = int(recipient_balances.get(order.currency_to) or 0)
    recipient_balances[order.currency_to] = str(current + credit)

    return SettlementPlan(
        sender_uid=sender.uid,
        recipient_uid=recipient.uid,
        debit=debit,
        credit=credit,
        sender_balances=sender_balances,
        recipient_balances=recipient_balances
    )
