"""Services package."""

from finledger.services.storage import (
    BulkOperationError,
    ConflictError,
    ConnectionError,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    MigrationError,
    NotFoundError,
    SQLiteLedgerStorage,
    StorageError,
    TenantRequiredError,
    ValidationError,
    create_storage,
)

__all__ = [
    "BulkOperationError",
    "ConflictError",
    "ConnectionError",
    "InMemoryLedgerStorage",
    "LedgerStorageInterface",
    "MigrationError",
    "NotFoundError",
    "SQLiteLedgerStorage",
    "StorageError",
    "TenantRequiredError",
    "ValidationError",
    "create_storage",
]
