"""
Cashflow allocator.

The multi-entity form of the settlement optimizer. Entities have cash and a
monthly burn rather than a ready-made balance, so each goal first turns
every entity into a signed position against a goal-specific target:

    position > 0   the entity needs this much cash
    position < 0   the entity can give this much away
    position == 0  the entity is left alone

after which the shared largest-to-largest matching pairs donors with
recipients. Goals:

- maximize_runway: entities under 3 months are topped up to 6 months of
  burn, funded by entities over 12 months from whatever they hold above
  9 months of burn.
- minimize_risk: every entity is pulled toward the fleet's blended runway
  (total cash / total burn); only deviations larger than the transfer
  floor count.
- balanced: the rescue pass alone. Entities under 3 months are brought to
  3 months, funded by entities over 9 months. No further equalization.

Every goal keeps each donor at or above min_cash_per_entity and drops any
transfer smaller than min_transfer_amount.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Iterable, Optional, Sequence, Union

import structlog

from smartsplit.config import CashflowSettings, get_settings
from smartsplit.engine.errors import ValidationError
from smartsplit.engine.money import from_minor, to_minor
from smartsplit.engine.netting import match_largest_first, partition, positions_from
from smartsplit.models.cashflow import (
    AllocationConstraints,
    AllocationGoal,
    AllocationPlan,
    Entity,
    EntitySnapshot,
    FleetState,
    PlannedTransfer,
    RiskAssessment,
    RiskLevel,
    Transfer,
    TransferImpact,
    TransferReason,
    runway_for,
    status_for,
)

log = structlog.get_logger(__name__)

_TENTH = Decimal("0.1")


def _round_months(value: Decimal) -> Decimal:
    return value.quantize(_TENTH, rounding=ROUND_HALF_UP)


def _coerce_goal(goal: Union[AllocationGoal, str]) -> AllocationGoal:
    try:
        return AllocationGoal(goal)
    except ValueError:
        raise ValidationError(f"Unknown optimization goal: {goal}", field="goal")


def _check_entities(entities: Sequence[Entity]) -> None:
    if len(entities) < 2:
        raise ValidationError(
            "Need at least 2 entities for cashflow optimization",
            field="entities",
        )
    ids = [e.id for e in entities]
    if len(set(ids)) != len(ids):
        raise ValidationError("Entity ids must be unique", field="entities")


# =============================================================================
# POSITION FUNCTIONS - one per goal
# =============================================================================

def _surplus_above(entity: Entity, reserve_months: Decimal, min_cash: int) -> int:
    """Cents an entity can give while keeping reserve_months of burn and min_cash."""
    reserve = max(to_minor(entity.monthly_burn * reserve_months), min_cash)
    return max(to_minor(entity.cash_balance) - reserve, 0)


def _rescue_positions(
    entities: Sequence[Entity],
    constraints: AllocationConstraints,
    critical_below: Decimal,
    target_months: Decimal,
    donor_above: Decimal,
    reserve_months: Decimal,
) -> dict[str, int]:
    min_cash = to_minor(constraints.min_cash_per_entity)

    def position(entity: Entity) -> int:
        runway = entity.runway
        if runway < critical_below:
            need = to_minor(entity.monthly_burn * target_months) - to_minor(entity.cash_balance)
            return max(need, 0)
        if runway > donor_above:
            return -_surplus_above(entity, reserve_months, min_cash)
        return 0

    return positions_from(entities, key=lambda e: e.id, deviation=position)


def _maximize_runway(
    entities: Sequence[Entity],
    constraints: AllocationConstraints,
    settings: CashflowSettings,
) -> dict[str, int]:
    return _rescue_positions(
        entities,
        constraints,
        critical_below=settings.critical_runway_months,
        target_months=settings.rescue_target_months,
        donor_above=settings.donor_runway_months,
        reserve_months=settings.donor_reserve_months,
    )


def _balanced(
    entities: Sequence[Entity],
    constraints: AllocationConstraints,
    settings: CashflowSettings,
) -> dict[str, int]:
    return _rescue_positions(
        entities,
        constraints,
        critical_below=settings.critical_runway_months,
        target_months=settings.balanced_target_months,
        donor_above=settings.balanced_donor_runway_months,
        reserve_months=settings.donor_reserve_months,
    )


def _minimize_risk(
    entities: Sequence[Entity],
    constraints: AllocationConstraints,
    settings: CashflowSettings,
) -> dict[str, int]:
    total_cash = sum((e.cash_balance for e in entities), Decimal(0))
    total_burn = sum((e.monthly_burn for e in entities), Decimal(0))
    if total_burn <= 0:
        return {}

    target_runway = total_cash / total_burn
    floor = to_minor(constraints.min_transfer_amount)
    min_cash = to_minor(constraints.min_cash_per_entity)

    def position(entity: Entity) -> int:
        cash = to_minor(entity.cash_balance)
        deviation = cash - to_minor(entity.monthly_burn * target_runway)
        if deviation > floor:
            return -min(deviation, max(cash - min_cash, 0))
        if deviation < -floor:
            return -deviation
        return 0

    return positions_from(entities, key=lambda e: e.id, deviation=position)


_GOALS: dict[AllocationGoal, tuple[Callable, TransferReason]] = {
    AllocationGoal.MAXIMIZE_RUNWAY: (_maximize_runway, TransferReason.CRITICAL_RUNWAY),
    AllocationGoal.MINIMIZE_RISK: (_minimize_risk, TransferReason.RISK_BALANCING),
    AllocationGoal.BALANCED: (_balanced, TransferReason.CRITICAL_RESCUE),
}


# =============================================================================
# ALLOCATION
# =============================================================================

def allocate(
    entities: Iterable[Entity],
    goal: Union[AllocationGoal, str],
    constraints: Optional[AllocationConstraints] = None,
) -> list[Transfer]:
    """
    Propose cash transfers between entities for the given goal.

    Raises:
        ValidationError: fewer than two entities, duplicate ids, or an
            unknown goal.
    """
    entities = list(entities)
    _check_entities(entities)
    goal = _coerce_goal(goal)
    constraints = constraints or AllocationConstraints()
    settings = get_settings().cashflow

    position_fn, reason = _GOALS[goal]
    positions = position_fn(entities, constraints, settings)

    recipients, donors = partition(positions)
    floor = max(to_minor(constraints.min_transfer_amount), 1)
    cap = (
        to_minor(constraints.max_transfer_amount)
        if constraints.max_transfer_amount is not None
        else None
    )
    matches = match_largest_first(recipients, donors, floor=floor, cap=cap)

    transfers = [
        Transfer(
            from_id=m.payer,
            to_id=m.receiver,
            amount=from_minor(m.amount),
            reason=reason,
        )
        for m in matches
    ]

    log.debug(
        "cashflow_allocated",
        goal=goal.value,
        entities=len(entities),
        recipients=len(recipients),
        donors=len(donors),
        transfers=len(transfers),
    )
    return transfers


# =============================================================================
# FLEET SUMMARIES
# =============================================================================

def summarize_fleet(entities: Iterable[Entity]) -> FleetState:
    """Totals, blended runway and a rounded snapshot of each entity."""
    entities = list(entities)
    total_cash = sum((e.cash_balance for e in entities), Decimal(0))
    total_burn = sum((e.monthly_burn for e in entities), Decimal(0))

    return FleetState(
        total_cash=from_minor(to_minor(total_cash)),
        total_monthly_burn=from_minor(to_minor(total_burn)),
        overall_runway=_round_months(runway_for(total_cash, total_burn)),
        entities=[
            EntitySnapshot(
                entity_id=e.id,
                entity_name=e.display_name,
                cash_balance=from_minor(to_minor(e.cash_balance)),
                monthly_burn=from_minor(to_minor(e.monthly_burn)),
                runway_months=_round_months(e.runway),
                status=status_for(e.runway),
            )
            for e in entities
        ],
    )


def apply_transfers(
    entities: Iterable[Entity],
    transfers: Iterable[Transfer],
) -> list[Entity]:
    """Entities as they would look after the transfers, as new copies."""
    entity_list = list(entities)
    cash = {e.id: to_minor(e.cash_balance) for e in entity_list}

    for t in transfers:
        if t.from_id not in cash or t.to_id not in cash:
            raise ValidationError(
                f"Transfer references unknown entity ({t.from_id} -> {t.to_id})",
                field="transfers",
            )
        amount = to_minor(t.amount)
        cash[t.from_id] -= amount
        cash[t.to_id] += amount

    return [e.model_copy(update={"cash_balance": from_minor(cash[e.id])}) for e in entity_list]


def transfer_impact(transfer: Transfer, entities: Iterable[Entity]) -> TransferImpact:
    """Runway change a single transfer causes on each side, in months."""
    by_id = {e.id: e for e in entities}
    source = by_id.get(transfer.from_id)
    target = by_id.get(transfer.to_id)
    if source is None or target is None:
        return TransferImpact()

    source_after = runway_for(source.cash_balance - transfer.amount, source.monthly_burn)
    target_after = runway_for(target.cash_balance + transfer.amount, target.monthly_burn)
    return TransferImpact(
        from_runway_change=_round_months(source_after - source.runway),
        to_runway_change=_round_months(target_after - target.runway),
    )


def assess_risk(state: FleetState) -> RiskAssessment:
    """
    Risk of a fleet state.

    critical: any entity is critical
    high:     runway spread across entities exceeds the configured months
    medium:   blended runway is under the warning band
    low:      otherwise
    """
    settings = get_settings().cashflow
    critical = state.critical_count
    runways = [e.runway_months for e in state.entities]
    variance = (max(runways) - min(runways)) if runways else Decimal("0.0")

    if critical > 0:
        level = RiskLevel.CRITICAL
    elif variance > settings.high_risk_variance_months:
        level = RiskLevel.HIGH
    elif state.overall_runway < settings.warning_runway_months:
        level = RiskLevel.MEDIUM
    else:
        level = RiskLevel.LOW

    return RiskAssessment(
        overall_risk=level,
        critical_entities=critical,
        runway_variance=_round_months(variance),
    )


def plan_allocation(
    entities: Iterable[Entity],
    goal: Union[AllocationGoal, str],
    constraints: Optional[AllocationConstraints] = None,
) -> AllocationPlan:
    """Allocate, then describe the fleet before and after the transfers."""
    entities = list(entities)
    transfers = allocate(entities, goal, constraints)

    current = summarize_fleet(entities)
    after = apply_transfers(entities, transfers)
    optimized = summarize_fleet(after)

    min_before = min(e.runway for e in entities)
    min_after = min(e.runway for e in after)

    return AllocationPlan(
        goal=_coerce_goal(goal),
        current_state=current,
        transfers=[
            PlannedTransfer(
                **t.model_dump(),
                impact=transfer_impact(t, entities),
            )
            for t in transfers
        ],
        total_amount_moved=from_minor(sum(to_minor(t.amount) for t in transfers)),
        optimized_state=optimized,
        min_runway_improved=min_after > min_before,
        risk_assessment=assess_risk(optimized),
    )
