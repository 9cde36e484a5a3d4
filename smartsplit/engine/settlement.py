"""
Settlement optimizer (debt simplification).

Reduces a balance map to a short list of payments that discharges every
debt. Greedy: the largest debtor pays the largest creditor until one of
them is square, then the next in line steps up. This is not the global
minimum number of payments (that problem is NP-hard), but it never needs
more than (members with a nonzero balance - 1) payments and is fully
deterministic: amount descending, then member id, decides the order.
"""

from decimal import Decimal
from typing import Iterable, Mapping, Optional

import structlog

from smartsplit.config import get_settings
from smartsplit.engine.balances import MemberLike, compute_balances
from smartsplit.engine.money import Amount, from_minor, to_minor
from smartsplit.engine.netting import match_largest_first, partition
from smartsplit.models.ledger import Expense, Settlement, SettlementStatus

log = structlog.get_logger(__name__)


def optimize(
    balances: Mapping[str, Amount],
    dead_zone: Optional[Amount] = None,
) -> list[Settlement]:
    """
    Suggest settlements for a balance map.

    Members within dead_zone of zero (0.01 by default) are left alone.
    Every returned settlement is PENDING and carries no reason.
    """
    if dead_zone is None:
        dead_zone = get_settings().ledger.settlement_dead_zone

    positions = {member_id: to_minor(amount) for member_id, amount in balances.items()}
    creditors, debtors = partition(positions, threshold=to_minor(dead_zone))
    matches = match_largest_first(creditors, debtors, floor=1)

    settlements = [
        Settlement(
            from_member=m.payer,
            to_member=m.receiver,
            amount=from_minor(m.amount),
            status=SettlementStatus.PENDING,
        )
        for m in matches
    ]

    log.debug(
        "settlements_suggested",
        creditors=len(creditors),
        debtors=len(debtors),
        settlements=len(settlements),
    )
    return settlements


def suggest_settlements(
    members: Iterable[MemberLike],
    expenses: Iterable[Expense] = (),
    settlements: Iterable[Settlement] = (),
) -> list[Settlement]:
    """Balances of a group, then the payments that square them."""
    return optimize(compute_balances(members, expenses, settlements))


def settlement_residuals(
    balances: Mapping[str, Amount],
    settlements: Iterable[Settlement],
) -> dict[str, Decimal]:
    """
    Balances left over if every given settlement were paid.

    Unlike the ledger this applies settlements regardless of status, so it
    can be used to check a suggestion before anyone confirms it.
    """
    remaining = {member_id: to_minor(amount) for member_id, amount in balances.items()}
    for s in settlements:
        amount = to_minor(s.amount)
        remaining[s.from_member] = remaining.get(s.from_member, 0) + amount
        remaining[s.to_member] = remaining.get(s.to_member, 0) - amount
    return {member_id: from_minor(amount) for member_id, amount in remaining.items()}
