"""Tests for the balance ledger."""

import pytest
from decimal import Decimal

from smartsplit.engine.balances import (
    apply_expense,
    apply_settlement,
    compute_balance_sheet,
    compute_balances,
)
from smartsplit.engine.errors import InvariantViolation, ValidationError
from smartsplit.engine.splits import build_expense
from smartsplit.models.ledger import (
    Expense,
    Member,
    Settlement,
    SettlementStatus,
    SplitShare,
)

MEMBERS = [Member(id="alice", name="Alice"), Member(id="bob"), Member(id="carol")]


def _dinner(amount="90", paid_by="alice", **fields) -> Expense:
    return build_expense("Dinner", amount, paid_by, "equal", ["alice", "bob", "carol"], **fields)


def _paid(from_member: str, to_member: str, amount: str) -> Settlement:
    return Settlement(
        from_member=from_member,
        to_member=to_member,
        amount=Decimal(amount),
    ).complete()


class TestComputeBalances:
    """Tests for deriving balances from expenses and settlements."""

    def test_no_activity(self):
        """Test every member starts at zero."""
        assert compute_balances(MEMBERS) == {
            "alice": Decimal("0.00"),
            "bob": Decimal("0.00"),
            "carol": Decimal("0.00"),
        }

    def test_single_expense(self):
        """Test the payer is owed everyone else's share."""
        balances = compute_balances(MEMBERS, [_dinner()])
        assert balances == {
            "alice": Decimal("60.00"),
            "bob": Decimal("-30.00"),
            "carol": Decimal("-30.00"),
        }

    def test_completed_settlement_moves_balance(self):
        """Test a completed payment credits the payer and debits the receiver."""
        balances = compute_balances(MEMBERS, [_dinner()], [_paid("bob", "alice", "30")])
        assert balances["bob"] == Decimal("0.00")
        assert balances["alice"] == Decimal("30.00")

    def test_pending_and_cancelled_settlements_ignored(self):
        """Test only completed settlements count."""
        pending = Settlement(from_member="bob", to_member="alice", amount=Decimal("30"))
        cancelled = pending.cancel()
        balances = compute_balances(MEMBERS, [_dinner()], [pending, cancelled])
        assert balances["bob"] == Decimal("-30.00")

    def test_settled_expense_ignored(self):
        """Test settled expenses no longer affect balances."""
        balances = compute_balances(MEMBERS, [_dinner().mark_settled()])
        assert set(balances.values()) == {Decimal("0.00")}

    def test_plain_ids_accepted(self):
        """Test members may be given as plain ids."""
        balances = compute_balances(["alice", "bob", "carol"], [_dinner()])
        assert balances["alice"] == Decimal("60.00")

    def test_sum_is_zero_with_odd_cents(self):
        """Test balances sum to zero within one cent per member."""
        expenses = [
            _dinner("100"),
            _dinner("0.05", paid_by="bob"),
            _dinner("33.33", paid_by="carol"),
        ]
        balances = compute_balances(MEMBERS, expenses)
        assert abs(sum(balances.values())) <= Decimal("0.03")

    def test_idempotent(self):
        """Test identical inputs give identical output."""
        expenses = [_dinner(), _dinner("12.34", paid_by="bob")]
        settlements = [_paid("carol", "alice", "10")]
        first = compute_balances(MEMBERS, expenses, settlements)
        second = compute_balances(MEMBERS, expenses, settlements)
        assert first == second

    def test_unknown_member_in_expense(self):
        """Test an expense naming an outsider is rejected."""
        expense = build_expense("Taxi", 10, "dave", "equal", ["alice", "dave"])
        with pytest.raises(ValidationError, match="unknown member 'dave'"):
            compute_balances(MEMBERS, [expense])

    def test_unknown_member_in_settlement(self):
        """Test a settlement naming an outsider is rejected."""
        with pytest.raises(ValidationError, match="unknown member 'dave'"):
            compute_balances(MEMBERS, [], [_paid("dave", "alice", "5")])

    def test_duplicate_members(self):
        """Test a member listed twice is rejected."""
        with pytest.raises(ValidationError, match="listed twice"):
            compute_balances(["alice", "alice"])

    def test_mixed_currencies(self):
        """Test that expenses in several currencies are rejected."""
        with pytest.raises(ValidationError, match="more than one currency"):
            compute_balances(MEMBERS, [_dinner(), _dinner(currency="EUR")])

    def test_inconsistent_expense_violates_invariant(self):
        """Test splits that don't add up to the amount break the zero-sum check."""
        broken = Expense(
            title="Broken",
            amount=Decimal("100"),
            paid_by="alice",
            splits=[SplitShare(member_id="bob", amount=Decimal("10"))],
        )
        with pytest.raises(InvariantViolation) as exc:
            compute_balances(MEMBERS, [broken])
        assert exc.value.invariant == "zero_sum"


class TestBalanceSheet:
    """Tests for the detailed balance sheet."""

    def test_totals_behind_balance(self):
        """Test paid / owed / settled totals per member."""
        sheet = compute_balance_sheet(MEMBERS, [_dinner()], [_paid("bob", "alice", "30")])
        by_id = {row.member_id: row for row in sheet}

        assert by_id["alice"].name == "Alice"
        assert by_id["alice"].total_paid == Decimal("90.00")
        assert by_id["alice"].total_owed == Decimal("30.00")
        assert by_id["alice"].settled_in == Decimal("30.00")
        assert by_id["alice"].balance == Decimal("30.00")

        assert by_id["bob"].name == "bob"
        assert by_id["bob"].settled_out == Decimal("30.00")
        assert by_id["bob"].balance == Decimal("0.00")

    def test_matches_compute_balances(self):
        """Test the sheet agrees with the plain balance map."""
        expenses = [_dinner(), _dinner("7.77", paid_by="carol")]
        balances = compute_balances(MEMBERS, expenses)
        sheet = compute_balance_sheet(MEMBERS, expenses)
        assert {row.member_id: row.balance for row in sheet} == balances


class TestIncrementalUpdates:
    """Tests for apply_expense / apply_settlement."""

    def test_apply_expense_matches_full_fold(self):
        """Test incremental and full derivation agree."""
        first, second = _dinner(), _dinner("45", paid_by="bob")
        start = compute_balances(MEMBERS, [first])
        assert apply_expense(start, second) == compute_balances(MEMBERS, [first, second])

    def test_apply_expense_does_not_mutate(self):
        """Test the input map is left untouched."""
        start = compute_balances(MEMBERS)
        snapshot = dict(start)
        apply_expense(start, _dinner())
        assert start == snapshot

    def test_apply_settlement(self):
        """Test a completed settlement applied incrementally."""
        start = compute_balances(MEMBERS, [_dinner()])
        after = apply_settlement(start, _paid("carol", "alice", "30"))
        assert after["carol"] == Decimal("0.00")
        assert after["alice"] == Decimal("30.00")

    def test_apply_pending_settlement_is_noop(self):
        """Test a pending settlement changes nothing."""
        start = compute_balances(MEMBERS, [_dinner()])
        pending = Settlement(from_member="carol", to_member="alice", amount=Decimal("30"))
        assert apply_settlement(start, pending) == start
        assert pending.status == SettlementStatus.PENDING

    def test_apply_expense_unknown_member(self):
        """Test incremental updates check membership too."""
        start = compute_balances(["alice", "bob"])
        with pytest.raises(ValidationError):
            apply_expense(start, _dinner())


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
