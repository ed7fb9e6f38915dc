"""
Main Orchestrator for finledger

This module ties together all the components behind one explicit store
handle, `LedgerStore`, which is what the UI layer talks to.

Opening a store:
1. Build (or accept) the storage backend
2. Run the schema manager (reconcile, seed, migrate) and keep its report
3. Wire the session, repository, engines and backup manager together

DESIGN DECISION: The facade enforces the boundaries:
- Every read and write goes through the tenant-scoped repository
- A failed startup step never prevents the store from opening; it is in
  `startup_report` and retried on the next open
- A full reset needs the typed confirmation phrase
- Every step is audited
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping, Optional, Sequence, Union

import structlog

from finledger.aggregation import AggregationEngine
from finledger.audit import AuditLogger
from finledger.auth import TenantSession
from finledger.backup import BackupManager
from finledger.config import Settings, get_settings
from finledger.insights import InsightEngine
from finledger.models.insight import Insight
from finledger.models.ledger import (
    AppSetting,
    Budget,
    BudgetRule,
    Category,
    Entry,
    ExportPayload,
    SettingType,
    Snapshot,
    Tenant,
    ValidationIssue,
)
from finledger.models.reports import (
    BudgetProgress,
    BudgetRuleProgress,
    BulkOperationReport,
    FinancialHealth,
    LoginResult,
    MigrationReport,
    RuleAllocation,
    StoreStats,
)
from finledger.repository import TenantResolver, TenantScopedRepository
from finledger.schema import SchemaManager
from finledger.services.storage import (
    ConnectionError,
    LedgerStorageInterface,
    SQLiteLedgerStorage,
    ValidationError,
    create_storage,
)


logger = structlog.get_logger(__name__)


class LedgerStore:
    """
    Explicit handle on an opened ledger store.

    Usage:
        store = await LedgerStore.open()
        await store.login("owner@finledger.local", "changeme")
        await store.add_entry({...})
        insights = await store.generate_insights()
        await store.close()
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        settings: Settings,
        session: TenantSession,
        repository: TenantScopedRepository,
        schema_manager: SchemaManager,
        backup_manager: BackupManager,
        audit_logger: AuditLogger,
        startup_report: MigrationReport,
    ):
        self._storage = storage
        self._settings = settings
        self._app_settings = settings.app
        self.session = session
        self.repository = repository
        self.aggregation = AggregationEngine(repository)
        self.schema_manager = schema_manager
        self.backup_manager = backup_manager
        self._audit_logger = audit_logger
        self.startup_report = startup_report

    @classmethod
    async def open(
        cls,
        settings: Optional[Settings] = None,
        storage: Optional[LedgerStorageInterface] = None,
        tenant_resolver: Optional[TenantResolver] = None,
        audit_logger: Optional[AuditLogger] = None,
    ) -> "LedgerStore":
        """
        Open (and if needed initialize) a store.

        Raises:
            ConnectionError: The backend could not be opened
        """
        settings = settings or get_settings()
        store_settings = settings.store
        audit_logger = audit_logger or AuditLogger()

        if storage is None:
            storage = create_storage(store_settings.backend, store_settings.database_path)
        if isinstance(storage, SQLiteLedgerStorage):
            try:
                storage.connect()
            except ConnectionError as e:
                audit_logger.log_error(
                    "ConnectionError",
                    str(e),
                    {"backend": "sqlite"},
                )
                raise

        schema_manager = SchemaManager(storage, store_settings, audit_logger)
        startup_report = await schema_manager.run()
        if not startup_report.ok:
            logger.warning(
                "store_opened_with_failed_steps",
                failed=[step.name for step in startup_report.failures],
            )

        session = TenantSession(storage, audit_logger)
        repository = TenantScopedRepository(
            storage,
            tenant_resolver or session.current,
            audit_logger,
        )
        backup_manager = BackupManager(storage, schema_manager, settings.app, audit_logger)

        return cls(
            storage=storage,
            settings=settings,
            session=session,
            repository=repository,
            schema_manager=schema_manager,
            backup_manager=backup_manager,
            audit_logger=audit_logger,
            startup_report=startup_report,
        )

    async def close(self) -> None:
        await self._storage.close()

    # =========================================================================
    # SESSION
    # =========================================================================

    async def login(self, email: str, password: str) -> LoginResult:
        return await self.session.login(email, password)

    def logout(self) -> None:
        self.session.logout()

    async def check_session(self) -> bool:
        return await self.session.check()

    # =========================================================================
    # ENTRIES
    # =========================================================================

    async def load_entries(self) -> list[Entry]:
        """Newest first, the order the UI lists them in."""
        entries = await self.repository.list_entries()
        return sorted(entries, key=lambda e: e.date, reverse=True)

    async def add_entry(self, data: Mapping[str, Any]) -> Entry:
        return await self.repository.add_entry(data)

    async def update_entry(self, entry_id: int, changes: Mapping[str, Any]) -> Entry:
        return await self.repository.update_entry(entry_id, changes)

    async def delete_entry(self, entry_id: int) -> None:
        await self.repository.delete_entry(entry_id)

    async def search_entries(self, query: str) -> list[Entry]:
        return await self.repository.search_entries(query)

    async def entries_in_range(self, start: Any, end: Any) -> list[Entry]:
        return await self.repository.entries_in_range(start, end)

    async def entries_by_category(self, category: str) -> list[Entry]:
        return await self.repository.entries_by_category(category)

    # =========================================================================
    # BUDGETS
    # =========================================================================

    async def load_budgets(self) -> list[Budget]:
        return await self.repository.list_budgets()

    async def active_budgets(self) -> list[Budget]:
        return await self.repository.active_budgets()

    async def add_budget(self, data: Mapping[str, Any]) -> Budget:
        return await self.repository.add_budget(data)

    async def update_budget(self, budget_id: int, changes: Mapping[str, Any]) -> Budget:
        return await self.repository.update_budget(budget_id, changes)

    async def delete_budget(self, budget_id: int) -> None:
        await self.repository.delete_budget(budget_id)

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    async def load_categories(self) -> list[Category]:
        return await self.repository.list_categories()

    async def default_categories(self) -> list[Category]:
        return await self.repository.default_categories()

    async def custom_categories(self) -> list[Category]:
        return await self.repository.custom_categories()

    async def add_category(self, data: Mapping[str, Any]) -> Category:
        return await self.repository.add_category(data)

    async def update_category(self, category_id: int, changes: Mapping[str, Any]) -> Category:
        return await self.repository.update_category(category_id, changes)

    async def delete_category(self, category_id: int) -> None:
        await self.repository.delete_category(category_id)

    # =========================================================================
    # BUDGET RULES
    # =========================================================================

    async def load_budget_rules(self) -> list[BudgetRule]:
        return await self.repository.list_budget_rules()

    async def add_budget_rule(self, data: Mapping[str, Any]) -> BudgetRule:
        return await self.repository.add_budget_rule(data)

    async def update_budget_rule(self, rule_id: int, changes: Mapping[str, Any]) -> BudgetRule:
        return await self.repository.update_budget_rule(rule_id, changes)

    async def delete_budget_rule(self, rule_id: int) -> None:
        await self.repository.delete_budget_rule(rule_id)

    # =========================================================================
    # TENANTS & SETTINGS
    # =========================================================================

    async def load_tenants(self) -> list[Tenant]:
        return await self.repository.list_tenants()

    async def add_tenant(self, email: str, password: str, name: str) -> Tenant:
        return await self.repository.add_tenant(email, password, name)

    async def get_setting(self, key: str, default: Any = None) -> Any:
        return await self.repository.get_setting(key, default)

    async def get_all_settings(self) -> dict[str, Any]:
        return await self.repository.get_all_settings()

    async def set_setting(
        self,
        key: str,
        value: Any,
        value_type: Optional[SettingType] = None,
    ) -> AppSetting:
        return await self.repository.set_setting(key, value, value_type)

    # =========================================================================
    # DERIVED VIEWS
    # =========================================================================

    async def get_budget_progress(
        self,
        budget_id: int,
        now: Optional[datetime] = None,
    ) -> BudgetProgress:
        return await self.aggregation.get_budget_progress(budget_id, now)

    async def get_budget_rule_progress(
        self,
        rule_id: int,
        monthly_income: Optional[Decimal] = None,
        now: Optional[datetime] = None,
    ) -> BudgetRuleProgress:
        """When monthly_income is omitted, this month's recorded income is used."""
        if monthly_income is None:
            monthly_income = await self.aggregation.monthly_income(now)
        return await self.aggregation.get_budget_rule_progress(rule_id, monthly_income, now)

    async def monthly_income(self, now: Optional[datetime] = None) -> Decimal:
        return await self.aggregation.monthly_income(now)

    async def budget_rule_allocation(self) -> RuleAllocation:
        return await self.aggregation.budget_rule_allocation()

    async def financial_health(self, now: Optional[datetime] = None) -> FinancialHealth:
        return await self.aggregation.financial_health(now)

    async def generate_insights(
        self,
        entries: Optional[Sequence[Entry]] = None,
        now: Optional[datetime] = None,
    ) -> list[Insight]:
        """Insights over the given entries, or the tenant's entries by default."""
        if entries is None:
            entries = await self.repository.list_entries()
        return InsightEngine(
            entries,
            now=now,
            max_insights=self._app_settings.max_insights,
        ).generate_insights()

    # =========================================================================
    # BACKUP & MAINTENANCE
    # =========================================================================

    async def create_backup(self, name: str, description: Optional[str] = None) -> Snapshot:
        return await self.backup_manager.create_backup(name, description)

    async def list_backups(self) -> list[Snapshot]:
        return await self.backup_manager.list_backups()

    async def restore_backup(self, snapshot_id: int) -> BulkOperationReport:
        return await self.backup_manager.restore_backup(snapshot_id)

    async def delete_backup(self, snapshot_id: int) -> None:
        await self.backup_manager.delete_backup(snapshot_id)

    async def export_all(self) -> ExportPayload:
        return await self.backup_manager.export_all()

    async def import_all(self, payload: Union[ExportPayload, dict[str, Any]]) -> BulkOperationReport:
        return await self.backup_manager.import_all(payload)

    async def get_stats(self) -> StoreStats:
        return await self.backup_manager.get_stats()

    async def reset_all(self, confirmation: str) -> BulkOperationReport:
        """
        Wipe the store back to its seeded defaults.

        Raises:
            ValidationError: The confirmation phrase does not match
            BulkOperationError: One or more collections could not be cleared
        """
        phrase = self._app_settings.reset_confirmation_phrase
        if confirmation.strip().lower() != phrase.lower():
            issue = ValidationIssue(
                field="confirmation",
                issue_type="mismatch",
                message=f"Type '{phrase}' to confirm the reset",
            )
            self._audit_logger.log_write_rejected(
                "store", reason="confirmation", issues=[issue.model_dump()]
            )
            raise ValidationError("reset", [issue])

        try:
            return await self.backup_manager.reset()
        finally:
            # The wiped tenant id must not outlive a partial reset
            self.session.logout()


async def create_store(
    settings: Optional[Settings] = None,
    storage: Optional[LedgerStorageInterface] = None,
    tenant_resolver: Optional[TenantResolver] = None,
) -> LedgerStore:
    """
    Factory function to open a fully wired store.

    Uses settings from environment by default.
    """
    return await LedgerStore.open(
        settings=settings,
        storage=storage,
        tenant_resolver=tenant_resolver,
    )
