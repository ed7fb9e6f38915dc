"""
Storage Services Package

Provides the abstract storage interface, its exceptions, and the concrete
backends. SQLite is the default; the in-memory backend is for tests and
throwaway stores.
"""

from finledger.services.storage.interface import (
    BulkOperationError,
    ConflictError,
    ConnectionError,
    LedgerStorageInterface,
    MigrationError,
    NotFoundError,
    StorageError,
    TenantRequiredError,
    ValidationError,
)
from finledger.services.storage.memory import InMemoryLedgerStorage
from finledger.services.storage.sqlite import SQLiteLedgerStorage


def create_storage(backend: str, database_path: str = "") -> LedgerStorageInterface:
    """Build the backend named in StoreSettings.backend."""
    if backend == "memory":
        return InMemoryLedgerStorage()
    if backend == "sqlite":
        return SQLiteLedgerStorage(database_path or None)
    raise StorageError(f"Unknown storage backend: {backend}")


__all__ = [
    # Interfaces
    "LedgerStorageInterface",
    # Exceptions
    "BulkOperationError",
    "ConflictError",
    "ConnectionError",
    "MigrationError",
    "NotFoundError",
    "StorageError",
    "TenantRequiredError",
    "ValidationError",
    # Implementations
    "InMemoryLedgerStorage",
    "SQLiteLedgerStorage",
    "create_storage",
]
