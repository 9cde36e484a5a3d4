"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Currently implements in-memory storage, but designed to be swappable.
"""

from smartsplit.services.storage.interface import (
    AuditStorageInterface,
    ConflictError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)
from smartsplit.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "ConflictError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
]
