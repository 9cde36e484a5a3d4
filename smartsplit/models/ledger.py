"""
Core Ledger Models for SmartSplit

These models define the schemas for everything that flows into and out of
the peer-group ledger:
1. Members and the split inputs a user enters
2. Expenses as recorded by the persistence layer
3. Settlements, both suggested by the engine and recorded by users
4. Derived balances

DESIGN DECISION: Amounts are Decimal at this boundary. The engine converts
them to integer minor units for every sum and comparison, so nothing here
does arithmetic on floats.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from smartsplit.config import get_settings


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _default_currency() -> str:
    return get_settings().ledger.default_currency


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class SplitMethod(str, Enum):
    """
    How an expense total is divided among participants.

    "unequal" is accepted as an alias of EXACT.
    """
    EQUAL = "equal"
    EXACT = "exact"
    PERCENTAGE = "percentage"
    SHARES = "shares"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            normalized = value.strip().lower()
            if normalized == "unequal":
                return cls.EXACT
            for member in cls:
                if member.value == normalized:
                    return member
        return None


class SettlementStatus(str, Enum):
    """
    Settlement lifecycle.

    CRITICAL: Only COMPLETED settlements change balances.
    Suggestions produced by the optimizer are always PENDING.
    """
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# =============================================================================
# MEMBERS & SPLIT INPUTS
# =============================================================================

class Member(BaseModel):
    """A group member. Only the id carries meaning to the engine."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque member identifier"
    )
    name: str = Field(
        default="",
        max_length=200,
        description="Display name"
    )

    @property
    def display_name(self) -> str:
        return self.name or self.id


class ParticipantInput(BaseModel):
    """
    One participant of a split as entered by the user.

    Which optional field is read depends on the split method.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    member_id: str = Field(
        ...,
        min_length=1,
        description="Member taking part in the expense"
    )
    amount: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Exact amount owed (exact method)"
    )
    percentage: Optional[Decimal] = Field(
        default=None,
        ge=0,
        le=100,
        description="Percentage of the total (percentage method)"
    )
    shares: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Relative weight (shares method)"
    )


class SplitShare(BaseModel):
    """What a single member owes for one expense."""

    member_id: str = Field(..., min_length=1)
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount owed by this member"
    )
    percentage: Optional[Decimal] = None
    shares: Optional[Decimal] = None


class SplitResult(BaseModel):
    """
    Output of the split calculator.

    INVARIANT: sum(split amounts) == total, to the cent.
    Splits keep the participants' input order.
    """

    total: Decimal
    method: SplitMethod
    splits: list[SplitShare] = Field(default_factory=list)

    def as_dict(self) -> dict[str, Decimal]:
        """Member id -> owed amount."""
        return {s.member_id: s.amount for s in self.splits}

    def amount_for(self, member_id: str) -> Decimal:
        for s in self.splits:
            if s.member_id == member_id:
                return s.amount
        raise KeyError(member_id)

    @property
    def amounts(self) -> list[Decimal]:
        return [s.amount for s in self.splits]


# =============================================================================
# EXPENSES
# =============================================================================

class ExpenseDraft(BaseModel):
    """
    An expense as typed in by a user, before validation.

    CRITICAL: This is PROPOSED data. It must pass the ExpenseValidator and
    the split calculator before an Expense is created from it.
    All fields are optional so incomplete drafts can be reported on.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    draft_id: UUID = Field(default_factory=uuid4)
    title: Optional[str] = Field(default=None, max_length=200)
    amount: Optional[Decimal] = None
    currency: Optional[str] = Field(default=None, max_length=3)
    paid_by: Optional[str] = None
    split_method: SplitMethod = SplitMethod.EQUAL
    participants: list[ParticipantInput] = Field(default_factory=list)
    category: Optional[str] = Field(default=None, max_length=50)
    expense_date: Optional[date] = None


class Expense(BaseModel):
    """
    A recorded shared expense.

    Immutable once created except for the settled flag, which is changed by
    producing a new copy through mark_settled().
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: UUID = Field(default_factory=uuid4)
    title: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="What the expense was for"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Total amount paid"
    )
    currency: str = Field(
        default_factory=_default_currency,
        min_length=3,
        max_length=3,
    )
    paid_by: str = Field(
        ...,
        min_length=1,
        description="Member who paid"
    )
    splits: list[SplitShare] = Field(
        ...,
        min_length=1,
        description="Who owes what"
    )
    split_method: SplitMethod = SplitMethod.EQUAL
    is_settled: bool = False
    category: Optional[str] = Field(default=None, max_length=50)
    expense_date: Optional[date] = None
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator('currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        if not v.isalpha():
            raise ValueError(f"Invalid currency code: {v}")
        return v.upper()

    @property
    def participant_ids(self) -> list[str]:
        return [s.member_id for s in self.splits]

    def mark_settled(self) -> 'Expense':
        return self.model_copy(update={"is_settled": True})


# =============================================================================
# SETTLEMENTS
# =============================================================================

class Settlement(BaseModel):
    """
    A payment from one member to another.

    Suggested settlements come out of the optimizer as PENDING.
    Once the persistence layer records one as COMPLETED it feeds back into
    the ledger as a credit to from_member and a debit to to_member.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    from_member: str = Field(..., min_length=1)
    to_member: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    status: SettlementStatus = SettlementStatus.PENDING
    reason: Optional[str] = Field(default=None, max_length=200)
    created_at: datetime = Field(default_factory=_utcnow)
    settled_at: Optional[datetime] = None

    @model_validator(mode='after')
    def validate_parties(self) -> 'Settlement':
        if self.from_member == self.to_member:
            raise ValueError("Cannot settle with yourself")
        return self

    @property
    def is_completed(self) -> bool:
        return self.status == SettlementStatus.COMPLETED

    def complete(self, settled_at: Optional[datetime] = None) -> 'Settlement':
        """Return a completed copy of this settlement."""
        return self.model_copy(update={
            "status": SettlementStatus.COMPLETED,
            "settled_at": settled_at or _utcnow(),
        })

    def cancel(self) -> 'Settlement':
        return self.model_copy(update={"status": SettlementStatus.CANCELLED})


# =============================================================================
# DERIVED BALANCES
# =============================================================================

class MemberBalance(BaseModel):
    """
    A member's position in a group, with the totals it was derived from.

    balance > 0: the member is owed money.
    balance < 0: the member owes money.
    """

    member_id: str
    name: str = ""
    total_paid: Decimal = Decimal("0.00")
    total_owed: Decimal = Decimal("0.00")
    settled_out: Decimal = Field(
        default=Decimal("0.00"),
        description="Completed settlements paid by this member"
    )
    settled_in: Decimal = Field(
        default=Decimal("0.00"),
        description="Completed settlements received by this member"
    )
    balance: Decimal = Decimal("0.00")

    @property
    def is_creditor(self) -> bool:
        return self.balance > 0

    @property
    def is_debtor(self) -> bool:
        return self.balance < 0


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'mismatch', 'unknown_member')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage expense validation.

    Stage 1: Schema validation (required fields)
    Stage 2: Semantic validation (split consistency, membership)
    """

    draft_id: UUID
    validated_at: datetime = Field(default_factory=_utcnow)

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool

    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def errors(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "error"]
