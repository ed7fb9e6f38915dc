"""
Core Data Models for finledger

These models define the strict schemas for every record the ledger stores.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Serialize to the camelCase document shape used by exports and snapshots
4. Make ownership explicit instead of overloading a nullable field

DESIGN DECISION: Ownership is a tagged variant (SharedOwner | TenantOwner |
UnassignedOwner). In documents it is still encoded as a single `tenantId`
key: null means shared, an integer means private, a missing key means the
record predates multi-tenancy.
"""

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SerializationInfo,
    field_validator,
    model_serializer,
    model_validator,
)
from pydantic.alias_generators import to_camel


def local_now() -> datetime:
    """Current local wall-clock time (naive). Budget windows are local."""
    return datetime.now()


def to_local_naive(value: datetime) -> datetime:
    """Convert an aware datetime to naive local time; naive values pass through."""
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def coerce_instant(value: Any) -> Any:
    # A bare date means midnight of that day
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time.min)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return value
    return value


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class EntryType(str, Enum):
    """
    Direction of money.

    Used by both entries and categories. For entries the sign of the
    amount is the real discriminator; this enum must agree with it.
    """
    INCOME = "income"
    EXPENSE = "expense"


class BudgetPeriod(str, Enum):
    """Recurrence period of a budget."""
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class SettingType(str, Enum):
    """Declared type of an app-level setting value."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"


class Collection(str, Enum):
    """
    Every collection the store defines.

    Values are the keys used in export payloads.
    """
    ENTRIES = "entries"
    BUDGETS = "budgets"
    CATEGORIES = "categories"
    BUDGET_RULES = "budgetRules"
    SETTINGS = "settings"
    TENANTS = "tenants"
    SNAPSHOTS = "snapshots"

    @property
    def table_name(self) -> str:
        """SQL-friendly name of the collection."""
        if self is Collection.BUDGET_RULES:
            return "budget_rules"
        return self.value


# =============================================================================
# OWNERSHIP
# =============================================================================

class SharedOwner(BaseModel):
    """Visible to every tenant (global default)."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["shared"] = "shared"


class TenantOwner(BaseModel):
    """Private to one tenant."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["tenant"] = "tenant"
    tenant_id: int


class UnassignedOwner(BaseModel):
    """Written before multi-tenancy existed; waiting for the legacy migration."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["unassigned"] = "unassigned"


Owner = Annotated[
    Union[SharedOwner, TenantOwner, UnassignedOwner],
    Field(discriminator="kind"),
]


# =============================================================================
# BASE RECORDS
# =============================================================================

class LedgerRecord(BaseModel):
    """Base of every stored record. `id` is assigned by the store on insert."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    id: Optional[int] = Field(
        default=None,
        ge=1,
        description="Store-assigned identity"
    )


class OwnedRecord(LedgerRecord):
    """
    A record that belongs to a tenant, to everyone, or (legacy) to nobody yet.

    The owner is read from and written to the `tenantId` document key.
    """

    owner: Owner = Field(
        default_factory=UnassignedOwner,
        exclude=True,
        description="Who can see this record"
    )

    @model_validator(mode='before')
    @classmethod
    def owner_from_tenant_id(cls, data: Any) -> Any:
        """Translate the document `tenantId` key into an Owner variant."""
        if not isinstance(data, dict) or "owner" in data:
            return data
        for key in ("tenantId", "tenant_id"):
            if key in data:
                data = dict(data)
                tenant_id = data.pop(key)
                if tenant_id is None:
                    data["owner"] = SharedOwner()
                else:
                    data["owner"] = TenantOwner(tenant_id=tenant_id)
                break
        return data

    @model_serializer(mode='wrap')
    def owner_as_tenant_id(self, handler, info: SerializationInfo) -> dict[str, Any]:
        data = handler(self)
        key = "tenantId" if info.by_alias else "tenant_id"
        if isinstance(self.owner, TenantOwner):
            data[key] = self.owner.tenant_id
        elif isinstance(self.owner, SharedOwner):
            data[key] = None
        return data

    @property
    def is_shared(self) -> bool:
        return isinstance(self.owner, SharedOwner)

    @property
    def is_unassigned(self) -> bool:
        return isinstance(self.owner, UnassignedOwner)

    def is_owned_by(self, tenant_id: int) -> bool:
        return isinstance(self.owner, TenantOwner) and self.owner.tenant_id == tenant_id

    def is_visible_to(self, tenant_id: int) -> bool:
        """Owned by the tenant or shared with everyone."""
        return self.is_shared or self.is_owned_by(tenant_id)


# =============================================================================
# ENTITIES
# =============================================================================

class Entry(OwnedRecord):
    """
    A single financial transaction.

    Negative amount = expense, positive amount = income.
    """

    description: str = Field(
        ...,
        min_length=1,
        max_length=500,
        description="What the money was for"
    )
    amount: Decimal = Field(
        ...,
        description="Signed amount"
    )
    entry_type: EntryType = Field(
        ...,
        alias="type",
        description="Must agree with the sign of amount"
    )
    category: str = Field(
        ...,
        min_length=1,
        description="Name of an existing category of the same type"
    )
    date: datetime = Field(
        ...,
        description="When the transaction happened"
    )
    tags: list[str] = Field(default_factory=list)
    notes: Optional[str] = Field(
        default=None,
        max_length=1000
    )
    budget_rule_id: Optional[int] = Field(
        default=None,
        description="Budget rule this expense counts against"
    )
    created_at: datetime = Field(default_factory=local_now)
    updated_at: datetime = Field(default_factory=local_now)

    @field_validator('date', mode='before')
    @classmethod
    def accept_plain_dates(cls, v: Any) -> Any:
        return coerce_instant(v)

    @field_validator('date', 'created_at', 'updated_at')
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return to_local_naive(v)

    @model_validator(mode='after')
    def validate_sign(self) -> 'Entry':
        """The type enum is redundant with the sign and must agree with it."""
        if self.amount == 0:
            raise ValueError("Amount cannot be zero")
        expected = EntryType.EXPENSE if self.amount < 0 else EntryType.INCOME
        if self.entry_type != expected:
            raise ValueError(
                f"Type '{self.entry_type.value}' does not match the sign of amount {self.amount}"
            )
        return self

    @property
    def is_expense(self) -> bool:
        return self.amount < 0

    @property
    def is_income(self) -> bool:
        return self.amount > 0

    @property
    def magnitude(self) -> Decimal:
        return abs(self.amount)


class Budget(OwnedRecord):
    """
    A spending ceiling for one category over a recurring period.

    At most one active budget per (category, period, owner); the
    repository enforces this, storage does not.
    """

    category: str = Field(
        ...,
        min_length=1,
        description="Category name the budget tracks"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Ceiling for the period"
    )
    period: BudgetPeriod = Field(
        default=BudgetPeriod.MONTHLY
    )
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=local_now)
    updated_at: datetime = Field(default_factory=local_now)

    @field_validator('start_date', 'end_date', mode='before')
    @classmethod
    def accept_plain_dates(cls, v: Any) -> Any:
        return coerce_instant(v)

    @field_validator('start_date', 'end_date', 'created_at', 'updated_at')
    @classmethod
    def normalize_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_local_naive(v) if v is not None else v

    @model_validator(mode='after')
    def validate_window(self) -> 'Budget':
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("Budget end date cannot be before start date")
        return self


class Category(OwnedRecord):
    """A named bucket for entries of one direction (income or expense)."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=100
    )
    color: str = Field(
        ...,
        min_length=1,
        description="Display token, opaque to the core"
    )
    icon: str = Field(
        ...,
        min_length=1,
        description="Icon identifier, opaque to the core"
    )
    category_type: EntryType = Field(
        ...,
        alias="type"
    )
    is_default: bool = False
    created_at: datetime = Field(default_factory=local_now)
    updated_at: datetime = Field(default_factory=local_now)


class BudgetRule(OwnedRecord):
    """
    A percentage-of-income allocation bucket (e.g. Needs/Wants/Savings).

    A tenant's rules need not sum to 100; that is only a warning.
    """

    name: str = Field(
        ...,
        min_length=1,
        max_length=100
    )
    percentage: float = Field(
        ...,
        ge=0.0,
        le=100.0
    )
    color: str = Field(..., min_length=1)
    icon: str = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=local_now)
    updated_at: datetime = Field(default_factory=local_now)


class Tenant(LedgerRecord):
    """
    An account whose private records are isolated from other accounts.

    WARNING: `password` is stored and compared verbatim. This mirrors the
    behaviour of the application this store backs and is a known defect.
    """

    email: str = Field(
        ...,
        min_length=3,
        max_length=254,
        description="Unique, case-sensitive"
    )
    password: str = Field(
        ...,
        min_length=1
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200
    )
    is_active: bool = True
    created_at: datetime = Field(default_factory=local_now)
    updated_at: datetime = Field(default_factory=local_now)

    def to_current(self) -> 'CurrentTenant':
        return CurrentTenant(id=self.id, email=self.email, is_active=self.is_active)


class CurrentTenant(BaseModel):
    """What the auth layer hands to every scoped repository call."""

    id: int
    email: str
    is_active: bool = True


class AppSetting(LedgerRecord):
    """App-level key/value setting (currency, theme, ...)."""

    key: str = Field(..., min_length=1, max_length=100)
    value: Any = None
    value_type: SettingType = Field(
        default=SettingType.STRING,
        alias="type"
    )
    updated_at: datetime = Field(default_factory=local_now)


# =============================================================================
# BACKUP MODELS
# =============================================================================

# Collections carried by an export payload, in insertion order for import
EXPORTED_COLLECTIONS: tuple[Collection, ...] = (
    Collection.TENANTS,
    Collection.CATEGORIES,
    Collection.BUDGET_RULES,
    Collection.SETTINGS,
    Collection.BUDGETS,
    Collection.ENTRIES,
)


class ExportPayload(BaseModel):
    """
    Whole-store export document.

    Import must accept this exact shape; missing arrays mean empty.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    version: str = Field(
        ...,
        min_length=1,
        description="Format version tag"
    )
    export_date: datetime = Field(
        default_factory=local_now,
        alias="exportDate",
        validation_alias=AliasChoices("exportDate", "createdAt", "export_date"),
    )
    entries: list[Entry] = Field(default_factory=list)
    budgets: list[Budget] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    budget_rules: list[BudgetRule] = Field(default_factory=list)
    settings: list[AppSetting] = Field(default_factory=list)
    tenants: list[Tenant] = Field(default_factory=list)

    @field_validator(
        'entries', 'budgets', 'categories', 'budget_rules', 'settings', 'tenants',
        mode='before',
    )
    @classmethod
    def null_means_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    def records(self, collection: Collection) -> list[LedgerRecord]:
        """Records carried for one collection."""
        return {
            Collection.ENTRIES: self.entries,
            Collection.BUDGETS: self.budgets,
            Collection.CATEGORIES: self.categories,
            Collection.BUDGET_RULES: self.budget_rules,
            Collection.SETTINGS: self.settings,
            Collection.TENANTS: self.tenants,
        }[collection]

    def to_document(self) -> dict[str, Any]:
        """JSON-compatible camelCase document."""
        return self.model_dump(mode="json", by_alias=True)


class Snapshot(LedgerRecord):
    """A named, persisted full-store backup."""

    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    payload: ExportPayload
    version: str
    created_at: datetime = Field(default_factory=local_now)


COLLECTION_MODELS: dict[Collection, type[LedgerRecord]] = {
    Collection.ENTRIES: Entry,
    Collection.BUDGETS: Budget,
    Collection.CATEGORIES: Category,
    Collection.BUDGET_RULES: BudgetRule,
    Collection.SETTINGS: AppSetting,
    Collection.TENANTS: Tenant,
    Collection.SNAPSHOTS: Snapshot,
}


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_type', 'inconsistent')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Every issue found for one write request."""

    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def fields(self) -> list[str]:
        """Distinct fields with error-level issues, in the order found."""
        seen: list[str] = []
        for issue in self.issues:
            if issue.severity == "error" and issue.field not in seen:
                seen.append(issue.field)
        return seen
