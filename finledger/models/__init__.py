"""
Data Models Package

This package contains all Pydantic models used by finledger.
All data flowing through the store must conform to these schemas.
"""

from finledger.models.ledger import (
    COLLECTION_MODELS,
    EXPORTED_COLLECTIONS,
    AppSetting,
    Budget,
    BudgetPeriod,
    BudgetRule,
    Category,
    Collection,
    CurrentTenant,
    Entry,
    EntryType,
    ExportPayload,
    LedgerRecord,
    Owner,
    OwnedRecord,
    SettingType,
    SharedOwner,
    Snapshot,
    Tenant,
    TenantOwner,
    UnassignedOwner,
    ValidationIssue,
    ValidationResult,
    local_now,
)
from finledger.models.insight import Insight, InsightSeverity, InsightType
from finledger.models.reports import (
    BudgetProgress,
    BudgetRuleProgress,
    BulkOperationReport,
    FinancialHealth,
    LoginResult,
    MigrationReport,
    RuleAllocation,
    StepOutcome,
    StoreStats,
)
from finledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "COLLECTION_MODELS",
    "EXPORTED_COLLECTIONS",
    "AppSetting",
    "Budget",
    "BudgetPeriod",
    "BudgetRule",
    "Category",
    "Collection",
    "CurrentTenant",
    "Entry",
    "EntryType",
    "ExportPayload",
    "LedgerRecord",
    "Owner",
    "OwnedRecord",
    "SettingType",
    "SharedOwner",
    "Snapshot",
    "Tenant",
    "TenantOwner",
    "UnassignedOwner",
    "ValidationIssue",
    "ValidationResult",
    "local_now",
    # Insight models
    "Insight",
    "InsightSeverity",
    "InsightType",
    # Reports
    "BudgetProgress",
    "BudgetRuleProgress",
    "BulkOperationReport",
    "FinancialHealth",
    "LoginResult",
    "MigrationReport",
    "RuleAllocation",
    "StepOutcome",
    "StoreStats",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
