"""
Schema & Migration Manager

Runs once when the store is opened:
1. Reconcile duplicate categories
2. Seed defaults into empty collections
3. Assign pre-multi-tenancy records to the legacy tenant

DESIGN DECISION: Every step is independent. A step that fails is caught,
reported as a failed StepOutcome and audited; later steps still run. The
store stays usable and the failed step is retried on the next open.
Every step is idempotent, so re-running a completed step changes nothing.
"""

from typing import Awaitable, Callable, Optional
from uuid import UUID

import structlog

from finledger.audit import AuditLogger, create_correlation_id
from finledger.config import StoreSettings, get_settings
from finledger.models.ledger import (
    Category,
    Collection,
    LedgerRecord,
    OwnedRecord,
    SharedOwner,
    Tenant,
    TenantOwner,
)
from finledger.models.reports import MigrationReport, StepOutcome
from finledger.schema.defaults import (
    default_budget_rules,
    default_categories,
    default_settings,
    default_tenants,
)
from finledger.services.storage import LedgerStorageInterface, MigrationError


logger = structlog.get_logger(__name__)

StepFunction = Callable[[], Awaitable[StepOutcome]]


def owner_scope(record: OwnedRecord) -> tuple[str, Optional[int]]:
    """Hashable key for the visibility scope of a record."""
    owner = record.owner
    if isinstance(owner, TenantOwner):
        return owner.kind, owner.tenant_id
    return owner.kind, None


class SchemaManager:
    """
    Initializes and migrates a store.

    Usage:
        report = await SchemaManager(storage).run()
        if not report.ok:
            ...  # the store is still usable; failed steps retry next open
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        store_settings: Optional[StoreSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._settings = store_settings or get_settings().store
        self._audit_logger = audit_logger or AuditLogger()

    async def run(self) -> MigrationReport:
        """Run every step in order."""
        correlation_id = create_correlation_id()
        report = MigrationReport()
        await self._run_step(report, "reconcile_duplicate_categories",
                             self.reconcile_duplicate_categories, correlation_id)
        await self._run_seed_steps(report, correlation_id)
        await self._run_step(report, "migrate_legacy_ownership",
                             self.migrate_legacy_ownership, correlation_id)
        return report

    async def seed_defaults(self) -> MigrationReport:
        """Only the default seeding steps (used after a reset)."""
        correlation_id = create_correlation_id()
        report = MigrationReport()
        await self._run_seed_steps(report, correlation_id)
        return report

    async def _run_seed_steps(self, report: MigrationReport, correlation_id: UUID) -> None:
        await self._run_step(report, "seed_categories", self.seed_categories, correlation_id)
        await self._run_step(report, "seed_tenants", self.seed_tenants, correlation_id)
        await self._run_step(report, "seed_budget_rules", self.seed_budget_rules, correlation_id)
        await self._run_step(report, "seed_settings", self.seed_settings, correlation_id)

    async def _run_step(
        self,
        report: MigrationReport,
        name: str,
        step: StepFunction,
        correlation_id: UUID,
    ) -> StepOutcome:
        try:
            outcome = await step()
        except MigrationError as e:
            outcome = StepOutcome(name=name, succeeded=False, error=str(e))
        except Exception as e:
            # Any other failure is still contained to this step
            outcome = StepOutcome(
                name=name,
                succeeded=False,
                error=str(MigrationError(name, f"{type(e).__name__}: {e}")),
            )

        if not outcome.succeeded:
            logger.warning("migration_step_failed", step=name, error=outcome.error)
        self._audit_logger.log_step(outcome, correlation_id)
        report.steps.append(outcome)
        return outcome

    # =========================================================================
    # STEPS
    # =========================================================================

    async def reconcile_duplicate_categories(self) -> StepOutcome:
        """
        Remove categories that repeat (name, type) inside one owner scope.

        The lowest id of each group survives.
        """
        name = "reconcile_duplicate_categories"
        categories = await self._storage.list_records(Collection.CATEGORIES)

        seen: set[tuple] = set()
        duplicates: list[Category] = []
        for category in categories:
            key = (category.name, category.category_type, owner_scope(category))
            if key in seen:
                duplicates.append(category)
            else:
                seen.add(key)

        for duplicate in duplicates:
            await self._storage.delete(Collection.CATEGORIES, duplicate.id)
            logger.info(
                "duplicate_category_removed",
                category_id=duplicate.id,
                name=duplicate.name,
            )

        return StepOutcome(name=name, affected=len(duplicates), skipped=not duplicates)

    async def seed_categories(self) -> StepOutcome:
        return await self._seed("seed_categories", Collection.CATEGORIES, default_categories())

    async def seed_tenants(self) -> StepOutcome:
        return await self._seed("seed_tenants", Collection.TENANTS, default_tenants(self._settings))

    async def seed_budget_rules(self) -> StepOutcome:
        return await self._seed("seed_budget_rules", Collection.BUDGET_RULES, default_budget_rules())

    async def seed_settings(self) -> StepOutcome:
        return await self._seed("seed_settings", Collection.SETTINGS, default_settings())

    async def _seed(
        self,
        name: str,
        collection: Collection,
        records: list[LedgerRecord],
    ) -> StepOutcome:
        """Insert defaults only into an empty collection."""
        if await self._storage.count(collection) > 0:
            return StepOutcome(name=name, skipped=True)
        inserted = await self._storage.bulk_insert(collection, records)
        return StepOutcome(name=name, affected=inserted)

    async def migrate_legacy_ownership(self) -> StepOutcome:
        """
        Give records written before multi-tenancy an owner.

        - Entries and budgets that are unassigned or shared go to the
          legacy tenant (neither kind may be shared).
        - Unassigned custom categories go to the legacy tenant.
        - Unassigned default categories become shared.
        """
        name = "migrate_legacy_ownership"

        pending: list[tuple[Collection, OwnedRecord]] = []
        for collection in (Collection.ENTRIES, Collection.BUDGETS):
            for record in await self._storage.list_records(collection):
                if record.is_unassigned or record.is_shared:
                    pending.append((collection, record))

        stray_defaults: list[Category] = []
        for category in await self._storage.list_records(Collection.CATEGORIES):
            if not category.is_unassigned:
                continue
            if category.is_default:
                stray_defaults.append(category)
            else:
                pending.append((Collection.CATEGORIES, category))

        if not pending and not stray_defaults:
            return StepOutcome(name=name, skipped=True)

        for category in stray_defaults:
            await self._storage.replace(
                Collection.CATEGORIES,
                category.model_copy(update={"owner": SharedOwner()}),
            )

        if pending:
            legacy = await self._find_tenant(self._settings.legacy_tenant_email)
            if legacy is None:
                raise MigrationError(
                    name,
                    f"{len(pending)} records need an owner but legacy tenant "
                    f"'{self._settings.legacy_tenant_email}' does not exist",
                )
            owner = TenantOwner(tenant_id=legacy.id)
            for collection, record in pending:
                await self._storage.replace(collection, record.model_copy(update={"owner": owner}))

        return StepOutcome(name=name, affected=len(pending) + len(stray_defaults))

    async def _find_tenant(self, email: str) -> Optional[Tenant]:
        for tenant in await self._storage.list_records(Collection.TENANTS):
            if tenant.email == email:
                return tenant
        return None
