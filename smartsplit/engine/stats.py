"""Spending and settlement statistics for a group."""

from decimal import Decimal
from typing import Iterable

from pydantic import BaseModel, Field

from smartsplit.engine.balances import MemberLike, compute_balance_sheet
from smartsplit.engine.errors import ValidationError
from smartsplit.engine.money import from_minor, round_half_up, to_minor
from smartsplit.models.ledger import Expense, Settlement, SettlementStatus


class SpenderTotal(BaseModel):
    member_id: str
    amount: Decimal


class GroupStats(BaseModel):
    total_expenses: Decimal = Decimal("0.00")
    expense_count: int = 0
    average_expense: Decimal = Decimal("0.00")
    category_breakdown: dict[str, Decimal] = Field(default_factory=dict)
    monthly_spending: dict[str, Decimal] = Field(default_factory=dict)
    top_spenders: list[SpenderTotal] = Field(default_factory=list)


class MemberStats(BaseModel):
    member_id: str
    total_paid: Decimal
    total_owed: Decimal
    balance: Decimal
    expense_count: int
    average_expense: Decimal


class SettlementStats(BaseModel):
    total_settled: Decimal = Decimal("0.00")
    pending_amount: Decimal = Decimal("0.00")
    completed_count: int = 0
    pending_count: int = 0


def _average(total_minor: int, count: int) -> Decimal:
    if count == 0:
        return from_minor(0)
    return from_minor(round_half_up(Decimal(total_minor) / count))


def group_stats(expenses: Iterable[Expense]) -> GroupStats:
    """
    Totals, per-category and per-month spending, and who paid the most.

    Expenses without a category count as "other"; expenses without a date
    are left out of the monthly view.
    """
    expenses = list(expenses)
    total = 0
    categories: dict[str, int] = {}
    months: dict[str, int] = {}
    spenders: dict[str, int] = {}

    for expense in expenses:
        amount = to_minor(expense.amount)
        total += amount

        category = expense.category or "other"
        categories[category] = categories.get(category, 0) + amount

        if expense.expense_date is not None:
            month = expense.expense_date.strftime("%Y-%m")
            months[month] = months.get(month, 0) + amount

        spenders[expense.paid_by] = spenders.get(expense.paid_by, 0) + amount

    ranked = sorted(spenders.items(), key=lambda item: (-item[1], item[0]))

    return GroupStats(
        total_expenses=from_minor(total),
        expense_count=len(expenses),
        average_expense=_average(total, len(expenses)),
        category_breakdown={k: from_minor(v) for k, v in categories.items()},
        monthly_spending={k: from_minor(v) for k, v in sorted(months.items())},
        top_spenders=[SpenderTotal(member_id=m, amount=from_minor(a)) for m, a in ranked],
    )


def member_stats(
    member_id: str,
    members: Iterable[MemberLike],
    expenses: Iterable[Expense] = (),
    settlements: Iterable[Settlement] = (),
) -> MemberStats:
    """
    One member's paid / owed / balance figures within a group.

    Settled expenses are left out of every figure, so the average is
    always total_paid / expense_count.
    """
    expenses = list(expenses)
    sheet = {b.member_id: b for b in compute_balance_sheet(members, expenses, settlements)}
    if member_id not in sheet:
        raise ValidationError(f"{member_id} is not a member of this group", field="member_id")

    paid = [
        to_minor(e.amount)
        for e in expenses
        if e.paid_by == member_id and not e.is_settled
    ]
    row = sheet[member_id]
    return MemberStats(
        member_id=member_id,
        total_paid=row.total_paid,
        total_owed=row.total_owed,
        balance=row.balance,
        expense_count=len(paid),
        average_expense=_average(sum(paid), len(paid)),
    )


def settlement_stats(settlements: Iterable[Settlement]) -> SettlementStats:
    settled = pending = 0
    completed_count = pending_count = 0
    for s in settlements:
        if s.status == SettlementStatus.COMPLETED:
            settled += to_minor(s.amount)
            completed_count += 1
        elif s.status == SettlementStatus.PENDING:
            pending += to_minor(s.amount)
            pending_count += 1

    return SettlementStats(
        total_settled=from_minor(settled),
        pending_amount=from_minor(pending),
        completed_count=completed_count,
        pending_count=pending_count,
    )
