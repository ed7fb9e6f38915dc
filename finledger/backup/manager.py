"""
Backup / Export / Import / Reset

DESIGN DECISION: Bulk operations are sequences of INDEPENDENT steps, one
per collection, not transactions:
- A collection that fails is recorded and the remaining collections
  are still attempted
- The caller gets a BulkOperationError naming every failed collection,
  raised only after all collections were attempted
- An import payload is parsed in full BEFORE anything is cleared

Ids are preserved on import so references between records
(entries -> budget rules, records -> tenants) stay consistent.
"""

from typing import Any, Awaitable, Callable, Optional, Union
from uuid import UUID

import structlog
from pydantic import ValidationError as PydanticValidationError

from finledger.audit import AuditLogger, create_correlation_id
from finledger.config import AppSettings, get_settings
from finledger.models.audit import AuditEventBuilder
from finledger.models.ledger import (
    EXPORTED_COLLECTIONS,
    Collection,
    ExportPayload,
    Snapshot,
    local_now,
)
from finledger.models.reports import BulkOperationReport, StepOutcome, StoreStats
from finledger.schema import SchemaManager
from finledger.services.storage import (
    BulkOperationError,
    LedgerStorageInterface,
    NotFoundError,
    ValidationError,
)
from finledger.validation import issues_from_pydantic


logger = structlog.get_logger(__name__)


class BackupManager:
    """
    Whole-store export, snapshots, import and reset.

    Usage:
        manager = BackupManager(storage, SchemaManager(storage))
        snapshot = await manager.create_backup("before cleanup")
        ...
        await manager.restore_backup(snapshot.id)
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        schema_manager: Optional[SchemaManager] = None,
        app_settings: Optional[AppSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()
        self._schema_manager = schema_manager or SchemaManager(
            storage, audit_logger=self._audit_logger
        )
        self._settings = app_settings or get_settings().app

    # =========================================================================
    # EXPORT & SNAPSHOTS
    # =========================================================================

    async def export_all(self) -> ExportPayload:
        """Every exported collection in one payload (snapshots are not included)."""
        records = {
            collection: await self._storage.list_records(collection)
            for collection in EXPORTED_COLLECTIONS
        }
        payload = ExportPayload(
            version=self._settings.export_format_version,
            export_date=local_now(),
            entries=records[Collection.ENTRIES],
            budgets=records[Collection.BUDGETS],
            categories=records[Collection.CATEGORIES],
            budget_rules=records[Collection.BUDGET_RULES],
            settings=records[Collection.SETTINGS],
            tenants=records[Collection.TENANTS],
        )
        self._audit_logger.log(AuditEventBuilder.data_exported(
            {collection.value: len(items) for collection, items in records.items()}
        ))
        return payload

    async def create_backup(self, name: str, description: Optional[str] = None) -> Snapshot:
        payload = await self.export_all()
        snapshot = await self._storage.insert(
            Collection.SNAPSHOTS,
            Snapshot(
                name=name,
                description=description,
                payload=payload,
                version=payload.version,
            ),
        )
        self._audit_logger.log(AuditEventBuilder.backup_created(snapshot.id, snapshot.name))
        return snapshot

    async def list_backups(self) -> list[Snapshot]:
        """Newest first."""
        snapshots = await self._storage.list_records(Collection.SNAPSHOTS)
        return sorted(snapshots, key=lambda s: (s.created_at, s.id), reverse=True)

    async def get_backup(self, snapshot_id: int) -> Snapshot:
        snapshot = await self._storage.get(Collection.SNAPSHOTS, snapshot_id)
        if snapshot is None:
            raise NotFoundError(f"snapshot not found: {snapshot_id}")
        return snapshot

    async def delete_backup(self, snapshot_id: int) -> None:
        if not await self._storage.delete(Collection.SNAPSHOTS, snapshot_id):
            raise NotFoundError(f"snapshot not found: {snapshot_id}")
        self._audit_logger.log(AuditEventBuilder.backup_deleted(snapshot_id))

    async def restore_backup(self, snapshot_id: int) -> BulkOperationReport:
        """
        Replace the exported collections with the snapshot's payload.

        Snapshots themselves are kept.
        """
        snapshot = await self.get_backup(snapshot_id)
        correlation_id = create_correlation_id()
        report = await self._replace_collections(snapshot.payload, "restore", correlation_id)
        self._audit_logger.log(AuditEventBuilder.backup_restored(snapshot_id, correlation_id))
        self._raise_on_failure(report)
        return report

    # =========================================================================
    # IMPORT
    # =========================================================================

    @staticmethod
    def parse_payload(payload: Union[ExportPayload, dict[str, Any]]) -> ExportPayload:
        """
        Raises:
            ValidationError: The payload is not a valid export document
        """
        if isinstance(payload, ExportPayload):
            return payload
        try:
            return ExportPayload.model_validate(payload)
        except PydanticValidationError as e:
            raise ValidationError("export payload", issues_from_pydantic(e)) from e

    async def import_all(self, payload: Union[ExportPayload, dict[str, Any]]) -> BulkOperationReport:
        """
        Replace every exported collection with the payload's records.

        Raises:
            ValidationError: Payload invalid; nothing was cleared
            BulkOperationError: One or more collections failed
        """
        parsed = self.parse_payload(payload)
        if parsed.version != self._settings.export_format_version:
            logger.warning(
                "import_version_mismatch",
                payload_version=parsed.version,
                expected=self._settings.export_format_version,
            )
        correlation_id = create_correlation_id()
        report = await self._replace_collections(parsed, "import", correlation_id)
        self._raise_on_failure(report)
        return report

    async def _replace_collections(
        self,
        payload: ExportPayload,
        operation: str,
        correlation_id: UUID,
    ) -> BulkOperationReport:
        report = BulkOperationReport(operation=operation)
        counts: dict[str, int] = {}

        for collection in EXPORTED_COLLECTIONS:
            records = payload.records(collection)

            async def replace(collection=collection, records=records) -> int:
                await self._storage.clear(collection)
                return await self._storage.bulk_insert(collection, records)

            outcome = await self._run_step(report, collection, replace, correlation_id)
            counts[collection.value] = outcome.affected

        self._audit_logger.log(AuditEventBuilder.data_imported(
            counts,
            report.failed_collections,
            correlation_id,
        ))
        return report

    # =========================================================================
    # RESET
    # =========================================================================

    async def clear_all(
        self,
        correlation_id: Optional[UUID] = None,
        operation: str = "clear",
    ) -> BulkOperationReport:
        """Empty all seven collections, each as its own step."""
        correlation_id = correlation_id or create_correlation_id()
        report = BulkOperationReport(operation=operation)
        for collection in Collection:
            async def clear(collection=collection) -> int:
                return await self._storage.clear(collection)

            await self._run_step(report, collection, clear, correlation_id)
        return report

    async def reset(self) -> BulkOperationReport:
        """
        Clear everything, then run default seeding only (no sample data).

        Raises:
            BulkOperationError: One or more collections could not be cleared;
                seeding still ran
        """
        correlation_id = create_correlation_id()
        report = await self.clear_all(correlation_id, operation="reset")
        report.seeding = await self._schema_manager.seed_defaults()

        self._audit_logger.log(AuditEventBuilder.store_reset(
            report.failed_collections,
            correlation_id,
        ))
        self._raise_on_failure(report)
        return report

    # =========================================================================
    # STATS
    # =========================================================================

    async def get_stats(self) -> StoreStats:
        """Store-wide record counts."""
        return StoreStats(
            entries=await self._storage.count(Collection.ENTRIES),
            budgets=await self._storage.count(Collection.BUDGETS),
            categories=await self._storage.count(Collection.CATEGORIES),
            budget_rules=await self._storage.count(Collection.BUDGET_RULES),
            settings=await self._storage.count(Collection.SETTINGS),
            tenants=await self._storage.count(Collection.TENANTS),
            snapshots=await self._storage.count(Collection.SNAPSHOTS),
        )

    # =========================================================================
    # STEP PLUMBING
    # =========================================================================

    async def _run_step(
        self,
        report: BulkOperationReport,
        collection: Collection,
        step: Callable[[], Awaitable[int]],
        correlation_id: UUID,
    ) -> StepOutcome:
        try:
            outcome = StepOutcome(name=collection.value, affected=await step())
        except Exception as e:
            # One collection failing must not stop the others
            outcome = StepOutcome(name=collection.value, succeeded=False, error=str(e))
            self._audit_logger.log(AuditEventBuilder.bulk_step_failed(
                report.operation,
                collection.value,
                str(e),
                correlation_id,
            ))
        report.steps.append(outcome)
        return outcome

    @staticmethod
    def _raise_on_failure(report: BulkOperationReport) -> None:
        if not report.ok:
            raise BulkOperationError(report)
