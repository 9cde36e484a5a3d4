"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the engine free of any persistence concern
2. Use in-memory storage for testing and local runs
3. Swap in a real database later without touching business logic

The interface is intentionally simple - we're not building a full ORM.
Just the operations the ledger flows need.

CRITICAL: Every group carries a version that increases by one on each
write. Writes that pass expected_version are refused with ConflictError
when the stored version has moved on (optimistic concurrency). This is
how callers serialize writes per group without holding a lock across a
user's think time.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from smartsplit.models.audit import AuditEvent
from smartsplit.models.cashflow import Entity
from smartsplit.models.ledger import Expense, Member, Settlement


class LedgerStorageInterface(ABC):
    """
    Abstract interface for group ledger storage.

    Any storage implementation (in-memory, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def get_members(self, group_id: str) -> list[Member]:
        """
        Get the members of a group.

        Raises:
            NotFoundError: If the group doesn't exist
        """
        pass

    @abstractmethod
    async def list_expenses(self, group_id: str) -> list[Expense]:
        """
        List a group's expenses in the order they were recorded.

        Raises:
            NotFoundError: If the group doesn't exist
        """
        pass

    @abstractmethod
    async def list_settlements(self, group_id: str) -> list[Settlement]:
        """
        List a group's settlements in the order they were recorded.

        Raises:
            NotFoundError: If the group doesn't exist
        """
        pass

    @abstractmethod
    async def get_version(self, group_id: str) -> int:
        """
        Get the current version of a group.

        Raises:
            NotFoundError: If the group doesn't exist
        """
        pass

    @abstractmethod
    async def add_expense(
        self,
        group_id: str,
        expense: Expense,
        expected_version: Optional[int] = None,
    ) -> int:
        """
        Append an expense to a group.

        Args:
            group_id: Group to write to
            expense: The validated expense
            expected_version: If given, the write only happens when the
                group is still at this version

        Returns:
            The group's new version

        Raises:
            NotFoundError: If the group doesn't exist
            ConflictError: If expected_version is stale
        """
        pass

    @abstractmethod
    async def record_settlement(
        self,
        group_id: str,
        settlement: Settlement,
        expected_version: int,
    ) -> int:
        """
        Append a settlement to a group under a version check.

        Args:
            group_id: Group to write to
            settlement: The settlement to record
            expected_version: Version the caller computed balances from

        Returns:
            The group's new version

        Raises:
            NotFoundError: If the group doesn't exist
            ConflictError: If expected_version is stale
        """
        pass

    @abstractmethod
    async def list_entities(self, entity_set_id: str) -> list[Entity]:
        """
        List the entities of an entity set for cashflow planning.

        Raises:
            NotFoundError: If the entity set doesn't exist
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Args:
            event: The audit event to log

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one confirm action).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Group or entity set not found in storage."""
    pass


class ConflictError(StorageError):
    """A versioned write found the group at a different version."""

    def __init__(self, group_id: str, expected_version: int, actual_version: int):
        self.group_id = group_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Group {group_id} is at version {actual_version}, expected {expected_version}"
        )
