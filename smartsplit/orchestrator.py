"""
Main Orchestrator for SmartSplit

This module ties together the engine, storage and audit trail and defines
the end-to-end flows for:
1. Group ledger (draft → validate → split → persist; balances → suggest →
   confirm settlement)
2. Cashflow planning (entity set → allocate → plan)

DESIGN DECISION: The orchestrator enforces the boundaries:
- The engine stays pure; all I/O happens here
- No expense persists without passing validation
- No settlement persists against a stale view of the group
- Every step is audited

Balances are cached per (group_id, version). Any write bumps the group's
version, so a cached entry can never be served for a group that changed.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

import structlog

from smartsplit.audit import AuditLogger, create_correlation_id
from smartsplit.config import get_settings, validate_all_settings
from smartsplit.engine import (
    InvariantViolation,
    ValidationError,
    build_expense,
    compute_balance_sheet,
    compute_balances,
    optimize,
    plan_allocation,
)
from smartsplit.engine.money import from_minor, to_minor
from smartsplit.models.cashflow import (
    AllocationConstraints,
    AllocationGoal,
    AllocationPlan,
)
from smartsplit.models.ledger import (
    Expense,
    ExpenseDraft,
    Member,
    MemberBalance,
    Settlement,
)
from smartsplit.services.storage import (
    AuditStorageInterface,
    ConflictError,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    StorageError,
)
from smartsplit.validation import ExpenseValidator, ensure_valid

logger = structlog.get_logger(__name__)


class _GroupSnapshot:
    """Members, expenses and settlements of a group as of one version."""

    def __init__(
        self,
        members: list[Member],
        expenses: list[Expense],
        settlements: list[Settlement],
        version: int,
    ):
        self.members = members
        self.expenses = expenses
        self.settlements = settlements
        self.version = version


class GroupLedgerFlow:
    """
    Orchestrates the peer-group ledger.

    Flow:
    1. Add expense → Validate draft → Split → Persist
    2. Get balances → Derived from expenses and completed settlements
    3. Suggest settlements → Optimizer over current balances
    4. Confirm settlement → Persist under the version the user saw

    Step 4 is refused with ConflictError if anything was written to the
    group after the balances were shown.
    """

    SNAPSHOT_ATTEMPTS = 5

    def __init__(
        self,
        storage: LedgerStorageInterface,
        validator: Optional[ExpenseValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._validator = validator or ExpenseValidator()
        self._audit_logger = audit_logger
        self._balance_cache: dict[tuple[str, int], dict[str, Decimal]] = {}

    async def _snapshot(self, group_id: str) -> _GroupSnapshot:
        """
        Read a consistent view of a group.

        The version is read before and after the lists; a write in between
        means the lists may mix two versions, so the read starts over.

        Raises:
            StorageError: If no stable view is read within SNAPSHOT_ATTEMPTS
        """
        for _ in range(self.SNAPSHOT_ATTEMPTS):
            version = await self._storage.get_version(group_id)
            members, expenses, settlements = await asyncio.gather(
                self._storage.get_members(group_id),
                self._storage.list_expenses(group_id),
                self._storage.list_settlements(group_id),
            )
            if await self._storage.get_version(group_id) == version:
                return _GroupSnapshot(members, expenses, settlements, version)
            logger.debug("snapshot_retry", group_id=group_id, version=version)

        raise StorageError(
            f"Group {group_id} changed on every read after {self.SNAPSHOT_ATTEMPTS} attempts"
        )

    async def _audit_invariant(
        self,
        group_id: str,
        error: InvariantViolation,
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_invariant_violation(
                group_id=group_id,
                error_message=str(error),
                details={"invariant": error.invariant, **error.details},
                correlation_id=correlation_id,
            )

    async def get_balances(
        self,
        group_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[dict[str, Decimal], int]:
        """
        Current balance of every member.

        Returns:
            (balances, version) - pass version to confirm_settlement
        """
        correlation_id = correlation_id or create_correlation_id()

        version = await self._storage.get_version(group_id)
        cached = self._balance_cache.get((group_id, version))
        if cached is not None:
            return dict(cached), version

        snapshot = await self._snapshot(group_id)
        try:
            balances = compute_balances(
                snapshot.members, snapshot.expenses, snapshot.settlements
            )
        except InvariantViolation as e:
            await self._audit_invariant(group_id, e, correlation_id)
            raise

        # older versions of this group can never be read again
        for key in [k for k in self._balance_cache if k[0] == group_id]:
            del self._balance_cache[key]
        self._balance_cache[(group_id, snapshot.version)] = balances

        if self._audit_logger:
            await self._audit_logger.log_balances_computed(
                group_id=group_id,
                member_count=len(balances),
                version=snapshot.version,
                correlation_id=correlation_id,
            )

        return dict(balances), snapshot.version

    async def get_balance_sheet(
        self,
        group_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> list[MemberBalance]:
        """Balances with the paid / owed / settled totals behind them."""
        correlation_id = correlation_id or create_correlation_id()

        snapshot = await self._snapshot(group_id)
        try:
            return compute_balance_sheet(
                snapshot.members, snapshot.expenses, snapshot.settlements
            )
        except InvariantViolation as e:
            await self._audit_invariant(group_id, e, correlation_id)
            raise

    async def suggest_settlements(
        self,
        group_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[list[Settlement], int]:
        """
        Payments that would square the group.

        Returns:
            (pending settlements, version they were computed from)
        """
        correlation_id = correlation_id or create_correlation_id()

        balances, version = await self.get_balances(group_id, correlation_id)
        suggestions = optimize(balances)

        if self._audit_logger:
            await self._audit_logger.log_settlements_suggested(
                group_id=group_id,
                count=len(suggestions),
                total=str(from_minor(sum(to_minor(s.amount) for s in suggestions))),
                correlation_id=correlation_id,
            )

        return suggestions, version

    async def add_expense(
        self,
        group_id: str,
        draft: ExpenseDraft,
        expected_version: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Expense, int]:
        """
        Validate a draft, split it and persist the resulting Expense.

        Returns:
            (expense, new group version)

        Raises:
            ValidationError: If the draft fails validation
            ConflictError: If expected_version is given and stale
        """
        correlation_id = correlation_id or create_correlation_id()

        members = await self._storage.get_members(group_id)
        result = self._validator.validate(draft, members)

        if not result.is_valid:
            if self._audit_logger:
                issues = [
                    {"field": i.field, "type": i.issue_type, "message": i.message}
                    for i in result.issues
                ]
                await self._audit_logger.log_split_rejected(
                    group_id=group_id,
                    issues=issues,
                    correlation_id=correlation_id,
                )
            ensure_valid(result)

        try:
            expense = build_expense(
                title=draft.title,
                total_amount=draft.amount,
                paid_by=draft.paid_by,
                method=draft.split_method,
                participants=draft.participants,
                currency=draft.currency,
                category=draft.category,
                expense_date=draft.expense_date,
            )
        except ValidationError as e:
            if self._audit_logger:
                await self._audit_logger.log_split_rejected(
                    group_id=group_id,
                    issues=[{"field": e.field, "type": "invalid_value", "message": e.message}],
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_split_calculated(
                group_id=group_id,
                method=expense.split_method.value,
                total=str(expense.amount),
                participant_count=len(expense.splits),
                correlation_id=correlation_id,
            )

        try:
            version = await self._storage.add_expense(group_id, expense, expected_version)
        except ConflictError as e:
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type="expense_conflict",
                    error_message=str(e),
                    details={
                        "group_id": group_id,
                        "expected_version": e.expected_version,
                        "actual_version": e.actual_version,
                    },
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_expense_recorded(
                group_id=group_id,
                expense_id=expense.id,
                amount=str(expense.amount),
                paid_by=expense.paid_by,
                version=version,
                correlation_id=correlation_id,
            )

        logger.info("expense_added", group_id=group_id, version=version)
        return expense, version

    async def confirm_settlement(
        self,
        group_id: str,
        settlement: Settlement,
        expected_version: int,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Settlement, int]:
        """
        Record a payment between two members as completed.

        CRITICAL: This is called ONLY after the payer confirms the payment.
        expected_version must be the version returned with the balances
        or suggestions the user acted on.

        Returns:
            (completed settlement, new group version)

        Raises:
            ValidationError: If either party is not a group member
            ConflictError: If the group changed since expected_version
        """
        correlation_id = correlation_id or create_correlation_id()

        member_ids = {m.id for m in await self._storage.get_members(group_id)}
        for member_id in (settlement.from_member, settlement.to_member):
            if member_id not in member_ids:
                raise ValidationError(
                    f"Settlement references unknown member '{member_id}'",
                    field="members",
                )

        completed = settlement if settlement.is_completed else settlement.complete()

        try:
            version = await self._storage.record_settlement(
                group_id, completed, expected_version
            )
        except ConflictError as e:
            if self._audit_logger:
                await self._audit_logger.log_settlement_conflict(
                    group_id=group_id,
                    expected_version=e.expected_version,
                    actual_version=e.actual_version,
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_settlement_recorded(
                group_id=group_id,
                settlement_id=completed.id,
                from_member=completed.from_member,
                to_member=completed.to_member,
                amount=str(completed.amount),
                version=version,
                correlation_id=correlation_id,
            )

        logger.info("settlement_confirmed", group_id=group_id, version=version)
        return completed, version


class CashflowFlow:
    """
    Orchestrates cashflow planning across an entity set.

    Flow:
    1. Load entities from storage
    2. Allocate transfers for the goal
    3. Describe the fleet before and after

    Plans are proposals only. Nothing is moved or persisted here.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger

    async def plan(
        self,
        entity_set_id: str,
        goal: Union[AllocationGoal, str],
        constraints: Optional[AllocationConstraints] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AllocationPlan:
        """
        Build an allocation plan for an entity set.

        Raises:
            ValidationError: Too few entities, duplicate ids or unknown goal
        """
        correlation_id = correlation_id or create_correlation_id()
        goal_name = goal.value if isinstance(goal, AllocationGoal) else str(goal)

        entities = await self._storage.list_entities(entity_set_id)
        try:
            plan = plan_allocation(entities, goal, constraints)
        except ValidationError as e:
            if self._audit_logger:
                await self._audit_logger.log_allocation_rejected(
                    entity_set_id=entity_set_id,
                    goal=goal_name,
                    error_message=e.message,
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_allocation_computed(
                entity_set_id=entity_set_id,
                goal=plan.goal.value,
                transfer_count=len(plan.transfers),
                total_moved=str(plan.total_amount_moved),
                correlation_id=correlation_id,
            )

        return plan


def create_app_components(
    ledger_storage: Optional[LedgerStorageInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
) -> tuple[GroupLedgerFlow, CashflowFlow, LedgerStorageInterface]:
    """
    Factory function to create all application components.

    Args:
        ledger_storage: Ledger backend. Defaults to in-memory storage.
        audit_storage: Audit backend. Defaults to in-memory storage.

    Returns:
        (group_ledger_flow, cashflow_flow, ledger_storage)
    """
    checks = validate_all_settings()
    if checks.get("app"):
        logging.basicConfig(level=get_settings().app.log_level)
    for name, ok in checks.items():
        if ok is False:
            logger.warning("settings_invalid", section=name, error=checks.get(f"{name}_error"))

    ledger_storage = ledger_storage or InMemoryLedgerStorage()
    audit_logger = AuditLogger(audit_storage or InMemoryAuditStorage())

    group_ledger_flow = GroupLedgerFlow(
        storage=ledger_storage,
        audit_logger=audit_logger,
    )

    cashflow_flow = CashflowFlow(
        storage=ledger_storage,
        audit_logger=audit_logger,
    )

    return group_ledger_flow, cashflow_flow, ledger_storage
