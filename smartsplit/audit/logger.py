"""
Audit Logger

DESIGN DECISION: Every significant ledger action is logged.
This provides:
1. Complete traceability of who paid whom and when
2. Debugging capability for invariant failures
3. Evidence when a settlement was refused on a stale version

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from smartsplit.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from smartsplit.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and history views)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        # Always log locally
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        # Persist to storage if available
        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_split_calculated(
        self,
        group_id: str,
        method: str,
        total: str,
        participant_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a successful split."""
        event = AuditEventBuilder.split_calculated(
            group_id=group_id,
            method=method,
            total=total,
            participant_count=participant_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_split_rejected(
        self,
        group_id: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an expense that failed validation."""
        event = AuditEventBuilder.split_rejected(
            group_id=group_id,
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_expense_recorded(
        self,
        group_id: str,
        expense_id: UUID,
        amount: str,
        paid_by: str,
        version: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.expense_recorded(
            group_id=group_id,
            expense_id=expense_id,
            amount=amount,
            paid_by=paid_by,
            version=version,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_balances_computed(
        self,
        group_id: str,
        member_count: int,
        version: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.balances_computed(
            group_id=group_id,
            member_count=member_count,
            version=version,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_invariant_violation(
        self,
        group_id: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed ledger post-condition."""
        event = AuditEventBuilder.invariant_violation(
            group_id=group_id,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_settlements_suggested(
        self,
        group_id: str,
        count: int,
        total: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.settlements_suggested(
            group_id=group_id,
            count=count,
            total=total,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_settlement_recorded(
        self,
        group_id: str,
        settlement_id: UUID,
        from_member: str,
        to_member: str,
        amount: str,
        version: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a confirmed payment between members."""
        event = AuditEventBuilder.settlement_recorded(
            group_id=group_id,
            settlement_id=settlement_id,
            from_member=from_member,
            to_member=to_member,
            amount=amount,
            version=version,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_settlement_conflict(
        self,
        group_id: str,
        expected_version: int,
        actual_version: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a settlement refused because the group moved on."""
        event = AuditEventBuilder.settlement_conflict(
            group_id=group_id,
            expected_version=expected_version,
            actual_version=actual_version,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_allocation_computed(
        self,
        entity_set_id: str,
        goal: str,
        transfer_count: int,
        total_moved: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.allocation_computed(
            entity_set_id=entity_set_id,
            goal=goal,
            transfer_count=transfer_count,
            total_moved=total_moved,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_allocation_rejected(
        self,
        entity_set_id: str,
        goal: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.allocation_rejected(
            entity_set_id=entity_set_id,
            goal=goal,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., adding an expense).
    Pass it through all subsequent operations.
    """
    return uuid4()
