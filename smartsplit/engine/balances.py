"""
Balance ledger.

Balances are DERIVED, never stored: a member's balance is a pure function
of the group's expenses and completed settlements.

    unsettled expense:     payer += amount, each participant -= owed share
    completed settlement:  from_member += amount, to_member -= amount

A payer who also takes part in the split nets out naturally.

INVARIANT: balances of a group sum to zero, within one cent per member
(the most that stored split residues can account for). Anything beyond
that is a defect and raises InvariantViolation.

For callers that cache balances, apply_expense() and apply_settlement()
are the incremental form of the same fold. They return new dicts and
re-check the invariant; nothing here mutates its input.
"""

from decimal import Decimal
from typing import Iterable, Mapping, Union

import structlog

from smartsplit.engine.errors import ValidationError, invariant_violated
from smartsplit.engine.money import from_minor, to_minor
from smartsplit.models.ledger import (
    Expense,
    Member,
    MemberBalance,
    Settlement,
    SettlementStatus,
)

log = structlog.get_logger(__name__)

MemberLike = Union[Member, str]

_PAID = "paid"
_OWED = "owed"
_SETTLED_OUT = "settled_out"
_SETTLED_IN = "settled_in"


def _index_members(members: Iterable[MemberLike]) -> dict[str, Member]:
    index: dict[str, Member] = {}
    for m in members:
        member = Member(id=m) if isinstance(m, str) else m
        if member.id in index:
            raise ValidationError(f"Member {member.id} is listed twice", field="members")
        index[member.id] = member
    return index


def _require_member(positions: Mapping[str, object], member_id: str, what: str) -> None:
    if member_id not in positions:
        raise ValidationError(f"{what} references unknown member '{member_id}'", field="members")


def _check_single_currency(expenses: list[Expense]) -> None:
    currencies = {e.currency for e in expenses if not e.is_settled}
    if len(currencies) > 1:
        raise ValidationError(
            f"Expenses use more than one currency ({', '.join(sorted(currencies))})",
            field="currency",
        )


def _check_zero_sum(net: Mapping[str, int]) -> None:
    imbalance = sum(net.values())
    if abs(imbalance) > max(len(net), 1):
        raise invariant_violated(
            log,
            "zero_sum",
            f"Balances sum to {from_minor(imbalance)} instead of zero",
            imbalance_minor=imbalance,
            member_count=len(net),
        )


def _fold(
    members: dict[str, Member],
    expenses: Iterable[Expense],
    settlements: Iterable[Settlement],
) -> dict[str, dict[str, int]]:
    positions = {
        member_id: {_PAID: 0, _OWED: 0, _SETTLED_OUT: 0, _SETTLED_IN: 0}
        for member_id in members
    }

    expenses = list(expenses)
    _check_single_currency(expenses)

    for expense in expenses:
        if expense.is_settled:
            continue
        what = f"Expense '{expense.title}'"
        _require_member(positions, expense.paid_by, what)
        for share in expense.splits:
            _require_member(positions, share.member_id, what)

        positions[expense.paid_by][_PAID] += to_minor(expense.amount)
        for share in expense.splits:
            positions[share.member_id][_OWED] += to_minor(share.amount)

    for settlement in settlements:
        if settlement.status != SettlementStatus.COMPLETED:
            continue
        what = f"Settlement {settlement.id}"
        _require_member(positions, settlement.from_member, what)
        _require_member(positions, settlement.to_member, what)

        amount = to_minor(settlement.amount)
        positions[settlement.from_member][_SETTLED_OUT] += amount
        positions[settlement.to_member][_SETTLED_IN] += amount

    return positions


def _net(position: Mapping[str, int]) -> int:
    return position[_PAID] - position[_OWED] + position[_SETTLED_OUT] - position[_SETTLED_IN]


def compute_balances(
    members: Iterable[MemberLike],
    expenses: Iterable[Expense] = (),
    settlements: Iterable[Settlement] = (),
) -> dict[str, Decimal]:
    """
    Net balance per member, in member order.

    Positive: the member is owed money. Negative: the member owes money.
    Settled expenses and non-completed settlements are ignored.

    Raises:
        ValidationError: duplicate members, an expense or settlement that
            names someone outside the member list, or mixed currencies.
        InvariantViolation: the balances do not sum to zero.
    """
    index = _index_members(members)
    positions = _fold(index, expenses, settlements)
    net = {member_id: _net(p) for member_id, p in positions.items()}
    _check_zero_sum(net)

    log.debug("balances_computed", members=len(net))
    return {member_id: from_minor(amount) for member_id, amount in net.items()}


def compute_balance_sheet(
    members: Iterable[MemberLike],
    expenses: Iterable[Expense] = (),
    settlements: Iterable[Settlement] = (),
) -> list[MemberBalance]:
    """Balances with the paid / owed / settled totals behind them."""
    index = _index_members(members)
    positions = _fold(index, expenses, settlements)
    net = {member_id: _net(p) for member_id, p in positions.items()}
    _check_zero_sum(net)

    return [
        MemberBalance(
            member_id=member_id,
            name=index[member_id].display_name,
            total_paid=from_minor(p[_PAID]),
            total_owed=from_minor(p[_OWED]),
            settled_out=from_minor(p[_SETTLED_OUT]),
            settled_in=from_minor(p[_SETTLED_IN]),
            balance=from_minor(net[member_id]),
        )
        for member_id, p in positions.items()
    ]


def apply_expense(balances: Mapping[str, Decimal], expense: Expense) -> dict[str, Decimal]:
    """Balances after one more expense, as a new dict."""
    net = {member_id: to_minor(amount) for member_id, amount in balances.items()}
    if not expense.is_settled:
        what = f"Expense '{expense.title}'"
        _require_member(net, expense.paid_by, what)
        for share in expense.splits:
            _require_member(net, share.member_id, what)

        net[expense.paid_by] += to_minor(expense.amount)
        for share in expense.splits:
            net[share.member_id] -= to_minor(share.amount)

    _check_zero_sum(net)
    return {member_id: from_minor(amount) for member_id, amount in net.items()}


def apply_settlement(
    balances: Mapping[str, Decimal],
    settlement: Settlement,
) -> dict[str, Decimal]:
    """Balances after one more settlement, as a new dict. Only completed ones count."""
    net = {member_id: to_minor(amount) for member_id, amount in balances.items()}
    if settlement.status == SettlementStatus.COMPLETED:
        what = f"Settlement {settlement.id}"
        _require_member(net, settlement.from_member, what)
        _require_member(net, settlement.to_member, what)

        amount = to_minor(settlement.amount)
        net[settlement.from_member] += amount
        net[settlement.to_member] -= amount

    _check_zero_sum(net)
    return {member_id: from_minor(amount) for member_id, amount in net.items()}
