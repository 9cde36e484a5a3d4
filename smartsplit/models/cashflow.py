"""
Cashflow Models for SmartSplit

Schemas for the multi-entity variant of the ledger: business entities with
cash and burn, the allocation goal and constraints a user picks, and the
transfers and fleet summaries the allocator returns.

DESIGN DECISION: Transfer reasons are machine codes, not sentences.
Any human-readable explanation is written by a separate annotation layer.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from smartsplit.config import get_settings


class AllocationGoal(str, Enum):
    """What the allocator optimizes for."""
    MAXIMIZE_RUNWAY = "maximize_runway"
    MINIMIZE_RISK = "minimize_risk"
    BALANCED = "balanced"


class EntityStatus(str, Enum):
    """Runway band of an entity."""
    CRITICAL = "critical"
    WARNING = "warning"
    HEALTHY = "healthy"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TransferReason(str, Enum):
    """Why a transfer was proposed."""
    CRITICAL_RUNWAY = "critical_runway"
    RISK_BALANCING = "risk_balancing"
    CRITICAL_RESCUE = "critical_rescue"


def runway_for(cash: Decimal, burn: Decimal) -> Decimal:
    """Months of runway; the configured sentinel when nothing is burnt."""
    if burn <= 0:
        return get_settings().cashflow.runway_sentinel
    return cash / burn


def status_for(runway: Decimal) -> EntityStatus:
    settings = get_settings().cashflow
    if runway < settings.critical_runway_months:
        return EntityStatus.CRITICAL
    if runway < settings.warning_runway_months:
        return EntityStatus.WARNING
    return EntityStatus.HEALTHY


class Entity(BaseModel):
    """A business entity holding cash."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(..., min_length=1)
    name: str = Field(default="", max_length=200)
    cash_balance: Decimal = Field(
        ...,
        description="Cash currently held"
    )
    monthly_burn: Decimal = Field(
        ...,
        ge=0,
        description="Trailing monthly cash outflow"
    )
    target_runway: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Runway the entity aims to keep, in months"
    )
    currency: Optional[str] = Field(default=None, max_length=3)

    @property
    def runway(self) -> Decimal:
        return runway_for(self.cash_balance, self.monthly_burn)

    @property
    def status(self) -> EntityStatus:
        return status_for(self.runway)

    @property
    def display_name(self) -> str:
        return self.name or self.id


def _default_min_cash() -> Decimal:
    return get_settings().cashflow.default_min_cash_per_entity


def _default_min_transfer() -> Decimal:
    return get_settings().cashflow.default_min_transfer_amount


class AllocationConstraints(BaseModel):
    """Limits every allocation strategy honors."""

    min_cash_per_entity: Decimal = Field(
        default_factory=_default_min_cash,
        ge=0,
        description="No donor is drawn below this cash level"
    )
    min_transfer_amount: Decimal = Field(
        default_factory=_default_min_transfer,
        ge=0,
        description="Transfers below this amount are suppressed"
    )
    max_transfer_amount: Optional[Decimal] = Field(
        default=None,
        gt=0,
        description="Upper bound on any single transfer"
    )

    @model_validator(mode='after')
    def validate_bounds(self) -> 'AllocationConstraints':
        if (
            self.max_transfer_amount is not None
            and self.max_transfer_amount < self.min_transfer_amount
        ):
            raise ValueError("Maximum transfer cannot be below the minimum transfer")
        return self


class Transfer(BaseModel):
    """A proposed movement of cash between two entities."""

    from_id: str = Field(..., min_length=1)
    to_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    reason: Optional[TransferReason] = None

    @model_validator(mode='after')
    def validate_parties(self) -> 'Transfer':
        if self.from_id == self.to_id:
            raise ValueError("Cannot transfer to the same entity")
        return self


# =============================================================================
# PLAN / SUMMARY MODELS
# =============================================================================

class EntitySnapshot(BaseModel):
    """An entity's figures at one point of a plan, rounded for display."""

    entity_id: str
    entity_name: str
    cash_balance: Decimal
    monthly_burn: Decimal
    runway_months: Decimal
    status: EntityStatus


class FleetState(BaseModel):
    total_cash: Decimal
    total_monthly_burn: Decimal
    overall_runway: Decimal
    entities: list[EntitySnapshot] = Field(default_factory=list)

    @property
    def critical_count(self) -> int:
        return sum(1 for e in self.entities if e.status == EntityStatus.CRITICAL)


class TransferImpact(BaseModel):
    from_runway_change: Decimal = Decimal("0.0")
    to_runway_change: Decimal = Decimal("0.0")


class PlannedTransfer(Transfer):
    impact: TransferImpact = Field(default_factory=TransferImpact)


class RiskAssessment(BaseModel):
    overall_risk: RiskLevel
    critical_entities: int = Field(ge=0)
    runway_variance: Decimal


class AllocationPlan(BaseModel):
    """
    Full result of a cashflow optimization run.

    current_state and optimized_state bracket the proposed transfers so a
    caller can show the effect before anything is executed.
    """

    goal: AllocationGoal
    current_state: FleetState
    transfers: list[PlannedTransfer] = Field(default_factory=list)
    total_amount_moved: Decimal = Decimal("0.00")
    optimized_state: FleetState
    min_runway_improved: bool = False
    risk_assessment: RiskAssessment

    @property
    def total_transfers_needed(self) -> int:
        return len(self.transfers)
