"""
Audit Models for SmartSplit

Every significant ledger action is logged for audit purposes:
1. Splits calculated or rejected
2. Balances derived and settlements suggested
3. Settlements recorded (or refused on a version conflict)
4. Cashflow allocations

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
Amounts are stored as strings so the log never round-trips through floats.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Splits and expenses
    SPLIT_CALCULATED = "split_calculated"
    SPLIT_REJECTED = "split_rejected"
    EXPENSE_RECORDED = "expense_recorded"

    # Balances
    BALANCES_COMPUTED = "balances_computed"
    INVARIANT_VIOLATION = "invariant_violation"

    # Settlements
    SETTLEMENTS_SUGGESTED = "settlements_suggested"
    SETTLEMENT_RECORDED = "settlement_recorded"
    SETTLEMENT_CONFLICT = "settlement_conflict"

    # Cashflow
    ALLOCATION_COMPUTED = "allocation_computed"
    ALLOCATION_REJECTED = "allocation_rejected"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - which group / entity set / record is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of subject (e.g., 'group', 'expense', 'settlement', 'entity_set')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the subject this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one confirm action)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.balances_computed(group_id, 4, version, cid)
        event = AuditEventBuilder.settlement_recorded(group_id, ..., cid)
    """

    @staticmethod
    def split_calculated(
        group_id: str,
        method: str,
        total: str,
        participant_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPLIT_CALCULATED,
            entity_type="group",
            entity_id=group_id,
            correlation_id=correlation_id,
            description=f"Split {total} by {method} among {participant_count} members",
            details={
                "method": method,
                "total": total,
                "participant_count": participant_count,
            },
        )

    @staticmethod
    def split_rejected(
        group_id: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPLIT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="group",
            entity_id=group_id,
            correlation_id=correlation_id,
            description=f"Expense rejected with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def expense_recorded(
        group_id: str,
        expense_id: UUID,
        amount: str,
        paid_by: str,
        version: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_RECORDED,
            entity_type="expense",
            entity_id=str(expense_id),
            correlation_id=correlation_id,
            description=f"Expense of {amount} paid by {paid_by} recorded",
            details={
                "group_id": group_id,
                "amount": amount,
                "paid_by": paid_by,
                "version": version,
            },
            is_user_action=True,
        )

    @staticmethod
    def balances_computed(
        group_id: str,
        member_count: int,
        version: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCES_COMPUTED,
            severity=AuditSeverity.DEBUG,
            entity_type="group",
            entity_id=group_id,
            correlation_id=correlation_id,
            description=f"Balances computed for {member_count} members",
            details={
                "member_count": member_count,
                "version": version,
            },
        )

    @staticmethod
    def invariant_violation(
        group_id: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVARIANT_VIOLATION,
            severity=AuditSeverity.CRITICAL,
            entity_type="group",
            entity_id=group_id,
            correlation_id=correlation_id,
            description="Ledger invariant violated",
            error_code="invariant_violation",
            error_message=error_message,
            details=details or {},
        )

    @staticmethod
    def settlements_suggested(
        group_id: str,
        count: int,
        total: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENTS_SUGGESTED,
            entity_type="group",
            entity_id=group_id,
            correlation_id=correlation_id,
            description=f"Suggested {count} settlements totaling {total}",
            details={
                "count": count,
                "total": total,
            },
        )

    @staticmethod
    def settlement_recorded(
        group_id: str,
        settlement_id: UUID,
        from_member: str,
        to_member: str,
        amount: str,
        version: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_RECORDED,
            entity_type="settlement",
            entity_id=str(settlement_id),
            correlation_id=correlation_id,
            description=f"{from_member} paid {to_member} {amount}",
            details={
                "group_id": group_id,
                "from_member": from_member,
                "to_member": to_member,
                "amount": amount,
                "version": version,
            },
            is_user_action=True,
        )

    @staticmethod
    def settlement_conflict(
        group_id: str,
        expected_version: int,
        actual_version: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_CONFLICT,
            severity=AuditSeverity.WARNING,
            entity_type="group",
            entity_id=group_id,
            correlation_id=correlation_id,
            description="Settlement refused: group changed since balances were shown",
            error_code="version_conflict",
            details={
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
            is_user_action=True,
        )

    @staticmethod
    def allocation_computed(
        entity_set_id: str,
        goal: str,
        transfer_count: int,
        total_moved: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ALLOCATION_COMPUTED,
            entity_type="entity_set",
            entity_id=entity_set_id,
            correlation_id=correlation_id,
            description=f"{goal}: {transfer_count} transfers moving {total_moved}",
            details={
                "goal": goal,
                "transfer_count": transfer_count,
                "total_moved": total_moved,
            },
        )

    @staticmethod
    def allocation_rejected(
        entity_set_id: str,
        goal: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ALLOCATION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="entity_set",
            entity_id=entity_set_id,
            correlation_id=correlation_id,
            description=f"Allocation rejected for goal {goal}",
            error_message=error_message,
            details={"goal": goal},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
