"""Tests for group and settlement statistics."""

import pytest
from datetime import date
from decimal import Decimal

from smartsplit.engine.errors import ValidationError
from smartsplit.engine.splits import build_expense
from smartsplit.engine.stats import group_stats, member_stats, settlement_stats
from smartsplit.models.ledger import Settlement

MEMBERS = ["alice", "bob", "carol"]


def _expense(amount, paid_by, category=None, expense_date=None):
    return build_expense(
        "Item",
        amount,
        paid_by,
        "equal",
        MEMBERS,
        category=category,
        expense_date=expense_date,
    )


class TestGroupStats:
    """Tests for group-level statistics."""

    def test_empty_group(self):
        """Test a group without expenses."""
        stats = group_stats([])
        assert stats.total_expenses == Decimal("0.00")
        assert stats.expense_count == 0
        assert stats.average_expense == Decimal("0.00")
        assert stats.top_spenders == []

    def test_totals_and_breakdowns(self):
        """Test totals, categories, months and top spenders."""
        expenses = [
            _expense("90", "alice", "food", date(2024, 1, 10)),
            _expense("30", "bob", "food", date(2024, 2, 3)),
            _expense("60", "bob", None, date(2024, 2, 20)),
            _expense("10", "carol"),
        ]
        stats = group_stats(expenses)

        assert stats.total_expenses == Decimal("190.00")
        assert stats.expense_count == 4
        assert stats.average_expense == Decimal("47.50")
        assert stats.category_breakdown == {
            "food": Decimal("120.00"),
            "other": Decimal("70.00"),
        }
        assert stats.monthly_spending == {
            "2024-01": Decimal("90.00"),
            "2024-02": Decimal("90.00"),
        }
        assert [(s.member_id, s.amount) for s in stats.top_spenders] == [
            ("alice", Decimal("90.00")),
            ("bob", Decimal("90.00")),
            ("carol", Decimal("10.00")),
        ]

    def test_average_rounds_half_up(self):
        """Test the average is rounded to the cent."""
        stats = group_stats([_expense("0.01", "alice"), _expense("0.02", "bob")])
        assert stats.average_expense == Decimal("0.02")


class TestMemberStats:
    """Tests for one member's statistics."""

    def test_member_figures(self):
        """Test paid, owed, balance and average paid."""
        expenses = [_expense("90", "alice"), _expense("30", "alice"), _expense("60", "bob")]
        stats = member_stats("alice", MEMBERS, expenses)

        assert stats.total_paid == Decimal("120.00")
        assert stats.total_owed == Decimal("60.00")
        assert stats.balance == Decimal("60.00")
        assert stats.expense_count == 2
        assert stats.average_expense == Decimal("60.00")

    def test_settled_expenses_left_out(self):
        """Test count and average cover the same expenses as total paid."""
        expenses = [_expense("100", "alice"), _expense("20", "alice").mark_settled()]
        stats = member_stats("alice", MEMBERS, expenses)

        assert stats.total_paid == Decimal("100.00")
        assert stats.expense_count == 1
        assert stats.average_expense == Decimal("100.00")

    def test_unknown_member(self):
        """Test asking for a non-member is a validation error."""
        with pytest.raises(ValidationError, match="dave is not a member of this group") as exc:
            member_stats("dave", MEMBERS, [])
        assert exc.value.field == "member_id"


class TestSettlementStats:
    """Tests for settlement statistics."""

    def test_counts_by_status(self):
        """Test completed and pending are counted separately."""
        pending = Settlement(from_member="bob", to_member="alice", amount=Decimal("10"))
        settlements = [
            pending,
            Settlement(from_member="carol", to_member="alice", amount=Decimal("25")).complete(),
            Settlement(from_member="bob", to_member="carol", amount=Decimal("5")).cancel(),
        ]
        stats = settlement_stats(settlements)
        assert stats.total_settled == Decimal("25.00")
        assert stats.pending_amount == Decimal("10.00")
        assert stats.completed_count == 1
        assert stats.pending_count == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
