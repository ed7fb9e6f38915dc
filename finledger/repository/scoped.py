"""
Tenant-Scoped Repository

DESIGN DECISION: This is the ONLY write path the UI layer gets.
Every call resolves the current tenant first, then:
- Reads return only what the tenant may see
  (entries/budgets: own records; categories/budget rules: own + shared)
- Writes are validated in full BEFORE anything is mutated
- Creates stamp the owner and both timestamps; updates refresh updated_at
- Updates and deletes of records the tenant cannot see raise NotFoundError

Tenants and app settings are store-wide and are not scoped.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Mapping, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from finledger.audit import AuditLogger
from finledger.models.audit import AuditEventBuilder
from finledger.models.ledger import (
    AppSetting,
    Budget,
    BudgetRule,
    Category,
    Collection,
    CurrentTenant,
    Entry,
    EntryType,
    LedgerRecord,
    OwnedRecord,
    SettingType,
    Tenant,
    TenantOwner,
    ValidationIssue,
    coerce_instant,
    local_now,
    to_local_naive,
)
from finledger.services.storage import (
    ConflictError,
    LedgerStorageInterface,
    NotFoundError,
    TenantRequiredError,
    ValidationError,
)
from finledger.validation import EntityValidator, issues_from_pydantic


logger = structlog.get_logger(__name__)

TenantResolver = Callable[[], Optional[CurrentTenant]]


def _normalize_amount(data: Mapping[str, Any]) -> dict[str, Any]:
    """Floats become Decimals through their shortest repr (0.1 stays 0.1)."""
    data = dict(data)
    if isinstance(data.get("amount"), float):
        data["amount"] = Decimal(str(data["amount"]))
    return data


def _to_document_keys(model_cls: type[LedgerRecord], changes: Mapping[str, Any]) -> dict[str, Any]:
    """Rename snake_case field names to their document aliases."""
    renamed = {}
    for key, value in changes.items():
        field = model_cls.model_fields.get(key)
        renamed[field.alias or key if field else key] = value
    return renamed


def infer_setting_type(value: Any) -> SettingType:
    if isinstance(value, bool):
        return SettingType.BOOLEAN
    if isinstance(value, (int, float, Decimal)):
        return SettingType.NUMBER
    if isinstance(value, str):
        return SettingType.STRING
    return SettingType.OBJECT


class TenantScopedRepository:
    """
    CRUD and queries for every entity kind, scoped to the current tenant.

    Usage:
        repo = TenantScopedRepository(storage, session.current)
        entry = await repo.add_entry({
            "description": "Lunch", "amount": -12.5, "type": "expense",
            "category": "Food & Dining", "date": "2024-05-02",
        })
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        tenant_resolver: TenantResolver,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[EntityValidator] = None,
    ):
        self._storage = storage
        self._resolve_tenant = tenant_resolver
        self._audit_logger = audit_logger or AuditLogger()
        self._validator = validator or EntityValidator()

    # =========================================================================
    # TENANT RESOLUTION
    # =========================================================================

    def current_tenant(self) -> Optional[CurrentTenant]:
        """The resolved tenant, or None if nobody (active) is logged in."""
        tenant = self._resolve_tenant()
        if tenant is None or not tenant.is_active:
            return None
        return tenant

    def _require_tenant(self, entity_type: str) -> CurrentTenant:
        tenant = self.current_tenant()
        if tenant is None:
            raise TenantRequiredError(f"Cannot write {entity_type} without a logged-in tenant")
        return tenant

    # =========================================================================
    # SHARED PLUMBING
    # =========================================================================

    async def _visible(
        self,
        collection: Collection,
        include_shared: bool,
    ) -> list[OwnedRecord]:
        tenant = self.current_tenant()
        if tenant is None:
            return []
        records = await self._storage.list_records(collection)
        if include_shared:
            return [r for r in records if r.is_visible_to(tenant.id)]
        return [r for r in records if r.is_owned_by(tenant.id)]

    async def _get_visible(
        self,
        collection: Collection,
        record_id: int,
        include_shared: bool,
    ) -> Optional[OwnedRecord]:
        tenant = self.current_tenant()
        if tenant is None:
            return None
        record = await self._storage.get(collection, record_id)
        if record is None:
            return None
        if include_shared and record.is_visible_to(tenant.id):
            return record
        if not include_shared and record.is_owned_by(tenant.id):
            return record
        return None

    async def _require_visible(
        self,
        collection: Collection,
        entity_type: str,
        record_id: int,
        include_shared: bool,
    ) -> OwnedRecord:
        self._require_tenant(entity_type)
        record = await self._get_visible(collection, record_id, include_shared)
        if record is None:
            raise NotFoundError(f"{entity_type} not found: {record_id}")
        return record

    def _note_shared_change(
        self,
        existing: OwnedRecord,
        entity_type: str,
        action: str,
        tenant_id: Optional[int],
    ) -> None:
        """Shared defaults are edited in place, so the change reaches every tenant."""
        if existing.is_shared:
            self._audit_logger.log_shared_record_changed(entity_type, existing.id, action, tenant_id)

    def _reject(
        self,
        entity_type: str,
        issues: list[ValidationIssue],
        tenant_id: Optional[int],
    ) -> None:
        """Audit and raise if there are any issues."""
        if not issues:
            return
        self._audit_logger.log_write_rejected(
            entity_type,
            reason="validation",
            issues=[issue.model_dump() for issue in issues],
            tenant_id=tenant_id,
        )
        raise ValidationError(entity_type, issues)

    def _conflict(self, entity_type: str, message: str, tenant_id: Optional[int]) -> None:
        self._audit_logger.log_write_rejected(
            entity_type,
            reason="conflict",
            issues=[{"field": "record", "message": message}],
            tenant_id=tenant_id,
        )
        raise ConflictError(message)

    def _build(
        self,
        model_cls: type[LedgerRecord],
        entity_type: str,
        document: Mapping[str, Any],
        tenant_id: Optional[int],
    ) -> Any:
        """Construct the model; any remaining schema error becomes ValidationError."""
        try:
            return model_cls.model_validate(document)
        except PydanticValidationError as e:
            self._reject(entity_type, issues_from_pydantic(e), tenant_id)

    def _new_document(self, data: Mapping[str, Any], tenant: CurrentTenant) -> dict[str, Any]:
        now = local_now()
        document = _normalize_amount(data)
        document.update({
            "owner": TenantOwner(tenant_id=tenant.id),
            "created_at": now,
            "updated_at": now,
        })
        return document

    def _merged_document(
        self,
        existing: LedgerRecord,
        changes: Mapping[str, Any],
    ) -> dict[str, Any]:
        """Existing record overlaid with changes; owner and created_at are kept."""
        model_cls = type(existing)
        document = existing.model_dump(by_alias=True)
        document.pop("tenantId", None)
        document.update(_to_document_keys(model_cls, _normalize_amount(changes)))
        document["owner"] = existing.owner
        document["updatedAt"] = local_now()
        return document

    async def _insert(self, collection: Collection, entity_type: str, record: LedgerRecord,
                      tenant_id: Optional[int]) -> Any:
        stored = await self._storage.insert(collection, record)
        self._audit_logger.log_record_created(entity_type, stored.id, tenant_id)
        return stored

    async def _replace(self, collection: Collection, entity_type: str, record: LedgerRecord,
                       fields: list[str], tenant_id: Optional[int]) -> Any:
        stored = await self._storage.replace(collection, record)
        self._audit_logger.log_record_updated(entity_type, stored.id, fields, tenant_id)
        return stored

    async def _delete(self, collection: Collection, entity_type: str, record_id: int,
                      tenant_id: Optional[int]) -> None:
        if not await self._storage.delete(collection, record_id):
            raise NotFoundError(f"{entity_type} not found: {record_id}")
        self._audit_logger.log_record_deleted(entity_type, record_id, tenant_id)

    # =========================================================================
    # ENTRIES
    # =========================================================================

    async def list_entries(self) -> list[Entry]:
        return await self._visible(Collection.ENTRIES, include_shared=False)

    async def get_entry(self, entry_id: int) -> Optional[Entry]:
        return await self._get_visible(Collection.ENTRIES, entry_id, include_shared=False)

    async def _category_issues(self, category: Any, entry_type: Any) -> list[ValidationIssue]:
        try:
            entry_type = EntryType(entry_type)
        except ValueError:
            return []
        if not isinstance(category, str):
            return []
        categories = await self.list_categories()
        return self._validator.check_category_reference(category.strip(), entry_type, categories)

    async def add_entry(self, data: Mapping[str, Any]) -> Entry:
        """
        Validate and insert an entry owned by the current tenant.

        Raises:
            TenantRequiredError: No active tenant
            ValidationError: Any field is invalid (every issue is listed)
        """
        tenant = self._require_tenant("entry")
        issues = self._validator.validate_entry(data).issues
        if not issues:
            issues = await self._category_issues(data["category"], data["type"])
        self._reject("entry", issues, tenant.id)

        entry = self._build(Entry, "entry", self._new_document(data, tenant), tenant.id)
        return await self._insert(Collection.ENTRIES, "entry", entry, tenant.id)

    async def update_entry(self, entry_id: int, changes: Mapping[str, Any]) -> Entry:
        existing = await self._require_visible(Collection.ENTRIES, "entry", entry_id, False)
        tenant = self._require_tenant("entry")
        self._reject("entry", self._validator.validate_entry(changes, partial=True).issues, tenant.id)

        entry = self._build(Entry, "entry", self._merged_document(existing, changes), tenant.id)
        if "category" in changes or "type" in changes:
            self._reject(
                "entry",
                await self._category_issues(entry.category, entry.entry_type),
                tenant.id,
            )
        return await self._replace(Collection.ENTRIES, "entry", entry, list(changes), tenant.id)

    async def delete_entry(self, entry_id: int) -> None:
        await self._require_visible(Collection.ENTRIES, "entry", entry_id, False)
        await self._delete(Collection.ENTRIES, "entry", entry_id, self.current_tenant().id)

    async def entries_in_range(self, start: Any, end: Any) -> list[Entry]:
        """Entries dated between start and end, both inclusive. Aware bounds are read as local time."""
        start = self._range_bound("start", start)
        end = self._range_bound("end", end)
        return [e for e in await self.list_entries() if start <= e.date <= end]

    @staticmethod
    def _range_bound(name: str, value: Any) -> datetime:
        instant = coerce_instant(value)
        if not isinstance(instant, datetime):
            raise ValidationError("entry", [ValidationIssue(
                field=name,
                issue_type="invalid_type",
                message=f"Range {name} must be a date or ISO timestamp, got {value!r}",
            )])
        return to_local_naive(instant)

    async def entries_by_category(self, category: str) -> list[Entry]:
        return [e for e in await self.list_entries() if e.category == category]

    async def search_entries(self, query: str) -> list[Entry]:
        """Case-insensitive match on description or category."""
        needle = query.strip().lower()
        return [
            e for e in await self.list_entries()
            if needle in e.description.lower() or needle in e.category.lower()
        ]

    # =========================================================================
    # BUDGETS
    # =========================================================================

    async def list_budgets(self) -> list[Budget]:
        return await self._visible(Collection.BUDGETS, include_shared=False)

    async def get_budget(self, budget_id: int) -> Optional[Budget]:
        return await self._get_visible(Collection.BUDGETS, budget_id, include_shared=False)

    async def active_budgets(self) -> list[Budget]:
        return [b for b in await self.list_budgets() if b.is_active]

    async def _check_active_budget(self, budget: Budget, tenant_id: int) -> None:
        """At most one active budget per (category, period, tenant)."""
        if not budget.is_active:
            return
        for other in await self.active_budgets():
            if other.id != budget.id and other.category == budget.category \
                    and other.period == budget.period:
                self._conflict(
                    "budget",
                    f"An active {budget.period.value} budget for '{budget.category}' "
                    f"already exists (id {other.id})",
                    tenant_id,
                )

    async def add_budget(self, data: Mapping[str, Any]) -> Budget:
        """
        Raises:
            ConflictError: The tenant already has an active budget for
                this category and period
        """
        tenant = self._require_tenant("budget")
        self._reject("budget", self._validator.validate_budget(data).issues, tenant.id)
        budget = self._build(Budget, "budget", self._new_document(data, tenant), tenant.id)
        await self._check_active_budget(budget, tenant.id)
        return await self._insert(Collection.BUDGETS, "budget", budget, tenant.id)

    async def update_budget(self, budget_id: int, changes: Mapping[str, Any]) -> Budget:
        existing = await self._require_visible(Collection.BUDGETS, "budget", budget_id, False)
        tenant = self._require_tenant("budget")
        self._reject("budget", self._validator.validate_budget(changes, partial=True).issues, tenant.id)
        budget = self._build(Budget, "budget", self._merged_document(existing, changes), tenant.id)
        await self._check_active_budget(budget, tenant.id)
        return await self._replace(Collection.BUDGETS, "budget", budget, list(changes), tenant.id)

    async def delete_budget(self, budget_id: int) -> None:
        await self._require_visible(Collection.BUDGETS, "budget", budget_id, False)
        await self._delete(Collection.BUDGETS, "budget", budget_id, self.current_tenant().id)

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    async def list_categories(self) -> list[Category]:
        return await self._visible(Collection.CATEGORIES, include_shared=True)

    async def default_categories(self) -> list[Category]:
        return [c for c in await self.list_categories() if c.is_default]

    async def custom_categories(self) -> list[Category]:
        return [c for c in await self.list_categories() if not c.is_default]

    async def _check_category_unique(self, category: Category, tenant_id: int) -> None:
        for other in await self.list_categories():
            if other.id != category.id and other.name == category.name \
                    and other.category_type == category.category_type:
                self._conflict(
                    "category",
                    f"Category '{category.name}' ({category.category_type.value}) already exists",
                    tenant_id,
                )

    async def add_category(self, data: Mapping[str, Any]) -> Category:
        tenant = self._require_tenant("category")
        self._reject("category", self._validator.validate_category(data).issues, tenant.id)
        category = self._build(Category, "category", self._new_document(data, tenant), tenant.id)
        await self._check_category_unique(category, tenant.id)
        return await self._insert(Collection.CATEGORIES, "category", category, tenant.id)

    async def update_category(self, category_id: int, changes: Mapping[str, Any]) -> Category:
        existing = await self._require_visible(Collection.CATEGORIES, "category", category_id, True)
        tenant = self._require_tenant("category")
        self._reject(
            "category",
            self._validator.validate_category(changes, partial=True).issues,
            tenant.id,
        )
        category = self._build(Category, "category", self._merged_document(existing, changes), tenant.id)
        await self._check_category_unique(category, tenant.id)
        stored = await self._replace(Collection.CATEGORIES, "category", category, list(changes), tenant.id)
        self._note_shared_change(existing, "category", "updated", tenant.id)
        return stored

    async def delete_category(self, category_id: int) -> None:
        existing = await self._require_visible(Collection.CATEGORIES, "category", category_id, True)
        tenant_id = self.current_tenant().id
        await self._delete(Collection.CATEGORIES, "category", category_id, tenant_id)
        self._note_shared_change(existing, "category", "deleted", tenant_id)

    # =========================================================================
    # BUDGET RULES
    # =========================================================================

    async def list_budget_rules(self) -> list[BudgetRule]:
        return await self._visible(Collection.BUDGET_RULES, include_shared=True)

    async def get_budget_rule(self, rule_id: int) -> Optional[BudgetRule]:
        return await self._get_visible(Collection.BUDGET_RULES, rule_id, include_shared=True)

    async def add_budget_rule(self, data: Mapping[str, Any]) -> BudgetRule:
        tenant = self._require_tenant("budget_rule")
        self._reject("budget_rule", self._validator.validate_budget_rule(data).issues, tenant.id)
        rule = self._build(BudgetRule, "budget_rule", self._new_document(data, tenant), tenant.id)
        return await self._insert(Collection.BUDGET_RULES, "budget_rule", rule, tenant.id)

    async def update_budget_rule(self, rule_id: int, changes: Mapping[str, Any]) -> BudgetRule:
        existing = await self._require_visible(Collection.BUDGET_RULES, "budget_rule", rule_id, True)
        tenant = self._require_tenant("budget_rule")
        self._reject(
            "budget_rule",
            self._validator.validate_budget_rule(changes, partial=True).issues,
            tenant.id,
        )
        rule = self._build(BudgetRule, "budget_rule", self._merged_document(existing, changes), tenant.id)
        stored = await self._replace(Collection.BUDGET_RULES, "budget_rule", rule, list(changes), tenant.id)
        self._note_shared_change(existing, "budget_rule", "updated", tenant.id)
        return stored

    async def delete_budget_rule(self, rule_id: int) -> None:
        existing = await self._require_visible(Collection.BUDGET_RULES, "budget_rule", rule_id, True)
        tenant_id = self.current_tenant().id
        await self._delete(Collection.BUDGET_RULES, "budget_rule", rule_id, tenant_id)
        self._note_shared_change(existing, "budget_rule", "deleted", tenant_id)

    # =========================================================================
    # TENANTS (store-wide)
    # =========================================================================

    async def list_tenants(self) -> list[Tenant]:
        return await self._storage.list_records(Collection.TENANTS)

    async def get_tenant_by_email(self, email: str) -> Optional[Tenant]:
        """Exact, case-sensitive match."""
        for tenant in await self.list_tenants():
            if tenant.email == email:
                return tenant
        return None

    async def add_tenant(self, email: str, password: str, name: str) -> Tenant:
        data = {"email": email, "password": password, "name": name}
        self._reject("tenant", self._validator.validate_tenant(data).issues, None)
        if await self.get_tenant_by_email(email.strip()) is not None:
            self._conflict("tenant", f"A tenant with email '{email}' already exists", None)

        now = local_now()
        tenant = self._build(Tenant, "tenant", {**data, "created_at": now, "updated_at": now}, None)
        logger.warning("plaintext_password_stored", email=tenant.email)
        return await self._insert(Collection.TENANTS, "tenant", tenant, None)

    # =========================================================================
    # APP SETTINGS (store-wide)
    # =========================================================================

    async def _find_setting(self, key: str) -> Optional[AppSetting]:
        for setting in await self._storage.list_records(Collection.SETTINGS):
            if setting.key == key:
                return setting
        return None

    async def get_setting(self, key: str, default: Any = None) -> Any:
        setting = await self._find_setting(key)
        return default if setting is None else setting.value

    async def get_all_settings(self) -> dict[str, Any]:
        return {s.key: s.value for s in await self._storage.list_records(Collection.SETTINGS)}

    async def set_setting(
        self,
        key: str,
        value: Any,
        value_type: Optional[SettingType] = None,
    ) -> AppSetting:
        """Create or overwrite a setting. The type is inferred when not given."""
        value_type = value_type or infer_setting_type(value)
        existing = await self._find_setting(key)
        setting = self._build(
            AppSetting,
            "setting",
            {
                "id": existing.id if existing else None,
                "key": key,
                "value": value,
                "value_type": value_type,
                "updated_at": local_now(),
            },
            None,
        )
        if existing is None:
            stored = await self._storage.insert(Collection.SETTINGS, setting)
        else:
            stored = await self._storage.replace(Collection.SETTINGS, setting)
        self._audit_logger.log(AuditEventBuilder.setting_updated(stored.key, value_type.value))
        return stored
