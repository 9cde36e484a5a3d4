"""
In-Memory Storage

Reference implementations of the storage interfaces. Used by the tests
and for local runs; nothing survives the process.

Writes to a group run under that group's asyncio.Lock, so the version
check and the append happen as one step even with many concurrent
callers on the same event loop.
"""

import asyncio
from collections import defaultdict
from typing import Iterable, Optional
from uuid import UUID

import structlog

from smartsplit.models.audit import AuditEvent
from smartsplit.models.cashflow import Entity
from smartsplit.models.ledger import Expense, Member, Settlement
from smartsplit.services.storage.interface import (
    AuditStorageInterface,
    ConflictError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)

logger = structlog.get_logger(__name__)


class _Group:
    def __init__(self, members: list[Member]):
        self.members = members
        self.expenses: list[Expense] = []
        self.settlements: list[Settlement] = []
        self.version = 0


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Ledger storage backed by plain dicts."""

    def __init__(self):
        self._groups: dict[str, _Group] = {}
        self._entity_sets: dict[str, list[Entity]] = {}
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    # -------------------------------------------------------------------------
    # Setup helpers
    # -------------------------------------------------------------------------

    async def create_group(self, group_id: str, members: Iterable[Member | str]) -> None:
        """Register a group with its members at version 0."""
        if group_id in self._groups:
            raise StorageError(f"Group {group_id} already exists")
        self._groups[group_id] = _Group(
            [Member(id=m) if isinstance(m, str) else m for m in members]
        )
        logger.info("group_created", group_id=group_id)

    async def add_member(self, group_id: str, member: Member) -> int:
        async with self._locks[group_id]:
            group = self._group(group_id)
            group.members.append(member)
            group.version += 1
            return group.version

    async def put_entities(self, entity_set_id: str, entities: Iterable[Entity]) -> None:
        """Replace the entities of an entity set."""
        self._entity_sets[entity_set_id] = list(entities)

    # -------------------------------------------------------------------------
    # LedgerStorageInterface
    # -------------------------------------------------------------------------

    def _group(self, group_id: str) -> _Group:
        group = self._groups.get(group_id)
        if group is None:
            raise NotFoundError(f"Group {group_id} not found")
        return group

    def _check_version(self, group_id: str, group: _Group, expected_version: Optional[int]) -> None:
        if expected_version is not None and expected_version != group.version:
            raise ConflictError(group_id, expected_version, group.version)

    async def get_members(self, group_id: str) -> list[Member]:
        return list(self._group(group_id).members)

    async def list_expenses(self, group_id: str) -> list[Expense]:
        return list(self._group(group_id).expenses)

    async def list_settlements(self, group_id: str) -> list[Settlement]:
        return list(self._group(group_id).settlements)

    async def get_version(self, group_id: str) -> int:
        return self._group(group_id).version

    async def add_expense(
        self,
        group_id: str,
        expense: Expense,
        expected_version: Optional[int] = None,
    ) -> int:
        async with self._locks[group_id]:
            group = self._group(group_id)
            self._check_version(group_id, group, expected_version)
            group.expenses.append(expense)
            group.version += 1
            logger.debug("expense_stored", group_id=group_id, version=group.version)
            return group.version

    async def record_settlement(
        self,
        group_id: str,
        settlement: Settlement,
        expected_version: int,
    ) -> int:
        async with self._locks[group_id]:
            group = self._group(group_id)
            self._check_version(group_id, group, expected_version)
            group.settlements.append(settlement)
            group.version += 1
            logger.debug("settlement_stored", group_id=group_id, version=group.version)
            return group.version

    async def list_entities(self, entity_set_id: str) -> list[Entity]:
        entities = self._entity_sets.get(entity_set_id)
        if entities is None:
            raise NotFoundError(f"Entity set {entity_set_id} not found")
        return list(entities)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
