"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Run the same repository logic on SQLite or in memory
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The interface is intentionally simple - we're not building a full ORM.
Records go in and come out as pydantic models; filtering happens in Python
above this layer.
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from finledger.models.ledger import Collection, LedgerRecord, ValidationIssue
from finledger.models.reports import BulkOperationReport


class LedgerStorageInterface(ABC):
    """
    Abstract interface for collection storage.

    Any storage implementation (SQLite, in-memory, etc.)
    must implement these methods.

    Ids are assigned monotonically per collection and never reused,
    not even after `clear`.
    """

    @abstractmethod
    async def insert(self, collection: Collection, record: LedgerRecord) -> LedgerRecord:
        """
        Insert a record.

        Args:
            collection: Target collection
            record: The record; if it carries an id, that id is kept

        Returns:
            The stored record with its id set

        Raises:
            ConflictError: If a record with the same id exists
            StorageError: If insert fails
        """
        pass

    @abstractmethod
    async def bulk_insert(
        self,
        collection: Collection,
        records: Sequence[LedgerRecord],
    ) -> int:
        """
        Insert many records, keeping any ids they carry.

        Returns:
            Number of records inserted
        """
        pass

    @abstractmethod
    async def get(self, collection: Collection, record_id: int) -> Optional[LedgerRecord]:
        """
        Retrieve a record by its ID.

        Returns:
            The record if found, None otherwise
        """
        pass

    @abstractmethod
    async def replace(self, collection: Collection, record: LedgerRecord) -> LedgerRecord:
        """
        Overwrite an existing record (last write wins).

        Raises:
            NotFoundError: If the record doesn't exist
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, collection: Collection, record_id: int) -> bool:
        """
        Hard-delete a record.

        Returns:
            True if a record was deleted
        """
        pass

    @abstractmethod
    async def list_records(self, collection: Collection) -> list[LedgerRecord]:
        """
        All records of a collection, ordered by id.
        """
        pass

    @abstractmethod
    async def count(self, collection: Collection) -> int:
        """Number of records in a collection."""
        pass

    @abstractmethod
    async def clear(self, collection: Collection) -> int:
        """
        Delete every record of a collection.

        Returns:
            Number of records removed
        """
        pass

    async def close(self) -> None:
        """Release backend resources. No-op by default."""
        return None


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage (or not visible to the tenant)."""
    pass


class ConflictError(StorageError):
    """Attempted to write a record that collides with an existing one."""
    pass


class ConnectionError(StorageError):
    """Could not open the storage backend."""
    pass


class TenantRequiredError(StorageError):
    """A scoped write was attempted without a resolved, active tenant."""
    pass


class ValidationError(StorageError):
    """
    A write was rejected before touching storage.

    Carries every issue found, not just the first.
    """

    def __init__(self, entity_type: str, issues: list[ValidationIssue]):
        self.entity_type = entity_type
        self.issues = issues
        summary = "; ".join(f"{issue.field}: {issue.message}" for issue in issues)
        super().__init__(f"Invalid {entity_type}: {summary}")

    @property
    def fields(self) -> list[str]:
        seen: list[str] = []
        for issue in self.issues:
            if issue.field not in seen:
                seen.append(issue.field)
        return seen


class MigrationError(StorageError):
    """A schema/seed/migration step failed. Logged and reported, never fatal."""

    def __init__(self, step: str, message: str):
        self.step = step
        super().__init__(f"Migration step '{step}' failed: {message}")


class BulkOperationError(StorageError):
    """
    One or more collections failed during a clear/import/reset.

    Raised only after every collection has been attempted.
    """

    def __init__(self, report: BulkOperationReport):
        self.report = report
        failed = ", ".join(report.failed_collections)
        super().__init__(f"{report.operation} failed for: {failed}")

    @property
    def failed_collections(self) -> list[str]:
        return self.report.failed_collections
