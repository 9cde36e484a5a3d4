"""Tests for the multi-entity cashflow allocator."""

import pytest
from decimal import Decimal

from smartsplit.engine.cashflow import (
    allocate,
    apply_transfers,
    assess_risk,
    plan_allocation,
    summarize_fleet,
    transfer_impact,
)
from smartsplit.engine.errors import ValidationError
from smartsplit.models.cashflow import (
    AllocationConstraints,
    AllocationGoal,
    Entity,
    EntityStatus,
    RiskLevel,
    Transfer,
    TransferReason,
)


def _entity(entity_id: str, cash, burn, name: str = "") -> Entity:
    return Entity(
        id=entity_id,
        name=name,
        cash_balance=Decimal(str(cash)),
        monthly_burn=Decimal(str(burn)),
    )


class TestMaximizeRunway:
    """Tests for the maximize_runway goal."""

    def test_rescues_critical_entity(self):
        """Test a critical entity is topped up to six months of burn."""
        entities = [
            _entity("A", 20000, 10000),
            _entity("B", 300000, 10000),
            _entity("C", 80000, 10000),
        ]
        transfers = allocate(entities, AllocationGoal.MAXIMIZE_RUNWAY)
        assert len(transfers) == 1
        t = transfers[0]
        assert (t.from_id, t.to_id, t.amount) == ("B", "A", Decimal("40000.00"))
        assert t.reason == TransferReason.CRITICAL_RUNWAY

    def test_donor_kept_above_min_cash(self):
        """Test a zero-burn donor only gives what it holds above min cash."""
        entities = [_entity("A", 20000, 10000), _entity("D", 60000, 0)]
        transfers = allocate(entities, "maximize_runway")
        assert [t.amount for t in transfers] == [Decimal("10000.00")]

        after = {e.id: e for e in apply_transfers(entities, transfers)}
        assert after["D"].cash_balance >= Decimal("50000")

    def test_small_needs_suppressed(self):
        """Test needs below the minimum transfer produce nothing."""
        entities = [_entity("A", 7000, 2500), _entity("B", 300000, 10000)]
        assert allocate(entities, "maximize_runway") == []

    def test_max_transfer_cap(self):
        """Test the per-transfer cap splits a large need."""
        entities = [_entity("A", 20000, 10000), _entity("B", 300000, 10000)]
        constraints = AllocationConstraints(max_transfer_amount=Decimal("15000"))
        transfers = allocate(entities, "maximize_runway", constraints)
        assert [t.amount for t in transfers] == [
            Decimal("15000.00"),
            Decimal("15000.00"),
            Decimal("10000.00"),
        ]

    def test_invariants_hold(self):
        """Test donors stay above min cash and no transfer is below the floor."""
        entities = [
            _entity("A", 5000, 10000),
            _entity("B", 10000, 20000),
            _entity("C", 400000, 10000),
            _entity("D", 200000, 15000),
            _entity("E", 90000, 0),
        ]
        constraints = AllocationConstraints()
        transfers = allocate(entities, "maximize_runway", constraints)
        assert transfers
        assert all(t.amount >= constraints.min_transfer_amount for t in transfers)

        before = {e.id: e.cash_balance for e in entities}
        for e in apply_transfers(entities, transfers):
            if e.cash_balance < before[e.id]:
                assert e.cash_balance >= constraints.min_cash_per_entity

    def test_no_donors(self):
        """Test nothing moves when nobody has runway to spare."""
        entities = [_entity("A", 20000, 10000), _entity("B", 100000, 10000)]
        assert allocate(entities, "maximize_runway") == []


class TestMinimizeRisk:
    """Tests for the minimize_risk goal."""

    def test_equalizes_toward_blended_runway(self):
        """Test both entities move toward total cash / total burn."""
        entities = [_entity("A", 100000, 10000), _entity("B", 300000, 10000)]
        transfers = allocate(entities, AllocationGoal.MINIMIZE_RISK)
        assert len(transfers) == 1
        t = transfers[0]
        assert (t.from_id, t.to_id, t.amount) == ("B", "A", Decimal("100000.00"))
        assert t.reason == TransferReason.RISK_BALANCING

    def test_zero_total_burn(self):
        """Test no transfers when nothing is burnt."""
        entities = [_entity("A", 100000, 0), _entity("B", 300000, 0)]
        assert allocate(entities, "minimize_risk") == []

    def test_small_deviations_ignored(self):
        """Test deviations within the floor are left alone."""
        entities = [_entity("A", 100000, 10000), _entity("B", 105000, 10000)]
        assert allocate(entities, "minimize_risk") == []

    def test_donor_capped_at_min_cash(self):
        """Test a zero-burn donor gives only what it holds above min cash."""
        entities = [_entity("A", 60000, 0), _entity("B", 0, 10000)]
        constraints = AllocationConstraints()
        transfers = allocate(entities, "minimize_risk", constraints)

        assert len(transfers) == 1
        t = transfers[0]
        assert (t.from_id, t.to_id, t.amount) == ("A", "B", Decimal("10000.00"))
        assert t.amount >= constraints.min_transfer_amount

        after = {e.id: e for e in apply_transfers(entities, transfers)}
        assert after["A"].cash_balance == constraints.min_cash_per_entity


class TestBalanced:
    """Tests for the balanced goal."""

    def test_rescue_pass_only(self):
        """Test critical entities are brought to three months."""
        entities = [_entity("A", 20000, 10000), _entity("B", 100000, 10000)]
        transfers = allocate(entities, AllocationGoal.BALANCED)
        assert len(transfers) == 1
        t = transfers[0]
        assert (t.from_id, t.to_id, t.amount) == ("B", "A", Decimal("10000.00"))
        assert t.reason == TransferReason.CRITICAL_RESCUE

    def test_no_equalization_between_healthy_entities(self):
        """Test healthy entities are not rebalanced."""
        entities = [_entity("A", 70000, 10000), _entity("B", 500000, 10000)]
        assert allocate(entities, "balanced") == []

    def test_donors_near_min_cash(self):
        """Test donors keep min cash and surpluses below the floor stay put."""
        entities = [
            _entity("A", 10000, 10000),
            _entity("D", 60000, 0),
            _entity("E", 55000, 0),
        ]
        constraints = AllocationConstraints()
        transfers = allocate(entities, AllocationGoal.BALANCED, constraints)

        assert [(t.from_id, t.to_id, t.amount) for t in transfers] == [
            ("D", "A", Decimal("10000.00")),
        ]
        assert all(t.amount >= constraints.min_transfer_amount for t in transfers)

        after = {e.id: e for e in apply_transfers(entities, transfers)}
        assert after["D"].cash_balance >= constraints.min_cash_per_entity
        assert after["E"].cash_balance == Decimal("55000")


class TestAllocateInputs:
    """Tests for input checks."""

    def test_needs_two_entities(self):
        """Test a single entity is rejected."""
        with pytest.raises(ValidationError, match="Need at least 2 entities"):
            allocate([_entity("A", 1, 1)], "balanced")

    def test_duplicate_ids(self):
        """Test duplicate entity ids are rejected."""
        with pytest.raises(ValidationError, match="unique"):
            allocate([_entity("A", 1, 1), _entity("A", 2, 1)], "balanced")

    def test_unknown_goal(self):
        """Test an unknown goal is rejected."""
        entities = [_entity("A", 1, 1), _entity("B", 2, 1)]
        with pytest.raises(ValidationError, match="Unknown optimization goal"):
            allocate(entities, "maximize_profit")


class TestFleetSummaries:
    """Tests for fleet state, impact and risk."""

    def test_summarize_fleet(self):
        """Test totals, blended runway and per-entity snapshots."""
        state = summarize_fleet([
            _entity("A", 20000, 10000, name="Alpha"),
            _entity("B", 100000, 10000),
        ])
        assert state.total_cash == Decimal("120000.00")
        assert state.total_monthly_burn == Decimal("20000.00")
        assert state.overall_runway == Decimal("6.0")
        assert state.entities[0].entity_name == "Alpha"
        assert state.entities[0].status == EntityStatus.CRITICAL
        assert state.entities[1].runway_months == Decimal("10.0")
        assert state.critical_count == 1

    def test_apply_transfers_returns_copies(self):
        """Test transfers are applied to copies."""
        entities = [_entity("A", 20000, 10000), _entity("B", 100000, 10000)]
        after = apply_transfers(
            entities,
            [Transfer(from_id="B", to_id="A", amount=Decimal("10000"))],
        )
        assert [e.cash_balance for e in after] == [Decimal("30000.00"), Decimal("90000.00")]
        assert entities[0].cash_balance == Decimal("20000")

    def test_apply_transfers_unknown_entity(self):
        """Test a transfer naming an unknown entity is rejected."""
        with pytest.raises(ValidationError, match="unknown entity"):
            apply_transfers(
                [_entity("A", 1, 1)],
                [Transfer(from_id="A", to_id="Z", amount=Decimal("1"))],
            )

    def test_transfer_impact(self):
        """Test runway change on both sides of a transfer."""
        entities = [_entity("A", 20000, 10000), _entity("B", 100000, 10000)]
        impact = transfer_impact(
            Transfer(from_id="B", to_id="A", amount=Decimal("10000")),
            entities,
        )
        assert impact.from_runway_change == Decimal("-1.0")
        assert impact.to_runway_change == Decimal("1.0")

    def test_transfer_impact_unknown_entity(self):
        """Test an unknown entity yields zero impact."""
        impact = transfer_impact(
            Transfer(from_id="X", to_id="Y", amount=Decimal("1")),
            [_entity("A", 1, 1)],
        )
        assert impact.from_runway_change == Decimal("0.0")
        assert impact.to_runway_change == Decimal("0.0")

    def test_risk_levels(self):
        """Test critical, high, medium and low risk."""
        critical = summarize_fleet([_entity("A", 20000, 10000), _entity("B", 100000, 10000)])
        assert assess_risk(critical).overall_risk == RiskLevel.CRITICAL

        high = summarize_fleet([_entity("A", 40000, 10000), _entity("B", 200000, 10000)])
        assert assess_risk(high).overall_risk == RiskLevel.HIGH

        medium = summarize_fleet([_entity("A", 40000, 10000), _entity("B", 50000, 10000)])
        assert assess_risk(medium).overall_risk == RiskLevel.MEDIUM

        low = summarize_fleet([_entity("A", 80000, 10000), _entity("B", 90000, 10000)])
        assessment = assess_risk(low)
        assert assessment.overall_risk == RiskLevel.LOW
        assert assessment.runway_variance == Decimal("1.0")


class TestPlanAllocation:
    """Tests for the full plan."""

    def test_plan_brackets_transfers(self):
        """Test current and optimized states around the transfers."""
        entities = [_entity("A", 20000, 10000), _entity("B", 100000, 10000)]
        plan = plan_allocation(entities, "balanced")

        assert plan.goal == AllocationGoal.BALANCED
        assert plan.total_transfers_needed == 1
        assert plan.total_amount_moved == Decimal("10000.00")
        assert plan.current_state.critical_count == 1
        assert plan.optimized_state.critical_count == 0
        assert plan.min_runway_improved is True
        assert plan.risk_assessment.overall_risk != RiskLevel.CRITICAL
        assert plan.transfers[0].impact.to_runway_change == Decimal("1.0")

    def test_plan_without_transfers(self):
        """Test a plan where nothing needs to move."""
        entities = [_entity("A", 80000, 10000), _entity("B", 90000, 10000)]
        plan = plan_allocation(entities, "maximize_runway")
        assert plan.transfers == []
        assert plan.total_amount_moved == Decimal("0.00")
        assert plan.min_runway_improved is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
