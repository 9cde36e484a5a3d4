"""
Data Models Package

This package contains all Pydantic models used by SmartSplit.
All data flowing into and out of the engine must conform to these schemas.
"""

from smartsplit.models.ledger import (
    Expense,
    ExpenseDraft,
    Member,
    MemberBalance,
    ParticipantInput,
    Settlement,
    SettlementStatus,
    SplitMethod,
    SplitResult,
    SplitShare,
    ValidationIssue,
    ValidationResult,
)
from smartsplit.models.cashflow import (
    AllocationConstraints,
    AllocationGoal,
    AllocationPlan,
    Entity,
    EntitySnapshot,
    EntityStatus,
    FleetState,
    PlannedTransfer,
    RiskAssessment,
    RiskLevel,
    Transfer,
    TransferImpact,
    TransferReason,
)
from smartsplit.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Expense",
    "ExpenseDraft",
    "Member",
    "MemberBalance",
    "ParticipantInput",
    "Settlement",
    "SettlementStatus",
    "SplitMethod",
    "SplitResult",
    "SplitShare",
    "ValidationIssue",
    "ValidationResult",
    # Cashflow models
    "AllocationConstraints",
    "AllocationGoal",
    "AllocationPlan",
    "Entity",
    "EntitySnapshot",
    "EntityStatus",
    "FleetState",
    "PlannedTransfer",
    "RiskAssessment",
    "RiskLevel",
    "Transfer",
    "TransferImpact",
    "TransferReason",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
