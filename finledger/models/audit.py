"""
Audit Models for finledger

Every write, migration step and bulk operation is logged for audit purposes.
This provides:
1. Traceability of who changed which record
2. An operator-visible trail of startup migrations and their failures
3. A record of destructive operations (import, restore, reset)

DESIGN DECISION: Audit events are structured pydantic models, not ad hoc
log strings, so the same event can be rendered to logs and inspected in tests.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from finledger.models.ledger import local_now


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Record writes
    RECORD_CREATED = "record_created"
    RECORD_UPDATED = "record_updated"
    RECORD_DELETED = "record_deleted"
    SHARED_RECORD_CHANGED = "shared_record_changed"
    WRITE_REJECTED = "write_rejected"

    # App settings
    SETTING_UPDATED = "setting_updated"

    # Authentication
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"

    # Schema & migrations
    MIGRATION_STEP_COMPLETED = "migration_step_completed"
    MIGRATION_STEP_FAILED = "migration_step_failed"

    # Backup lifecycle
    BACKUP_CREATED = "backup_created"
    BACKUP_RESTORED = "backup_restored"
    BACKUP_DELETED = "backup_deleted"
    DATA_EXPORTED = "data_exported"
    DATA_IMPORTED = "data_imported"
    STORE_RESET = "store_reset"
    BULK_STEP_FAILED = "bulk_step_failed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=local_now,
        description="When the event occurred (local time)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'entry', 'budget', 'snapshot')"
    )
    entity_id: Optional[int] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    tenant_id: Optional[int] = Field(
        default=None,
        description="Tenant on whose behalf the action ran"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all steps of one reset)"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "tenant_id": self.tenant_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_created("entry", 12, tenant_id=1)
        event = AuditEventBuilder.migration_step_failed("seed_categories", "disk full")
    """

    @staticmethod
    def record_created(
        entity_type: str,
        entity_id: Optional[int],
        tenant_id: Optional[int] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_CREATED,
            entity_type=entity_type,
            entity_id=entity_id,
            tenant_id=tenant_id,
            description=f"{entity_type} {entity_id} created",
        )

    @staticmethod
    def record_updated(
        entity_type: str,
        entity_id: int,
        fields: list[str],
        tenant_id: Optional[int] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_UPDATED,
            entity_type=entity_type,
            entity_id=entity_id,
            tenant_id=tenant_id,
            description=f"{entity_type} {entity_id} updated",
            details={"fields": fields},
        )

    @staticmethod
    def record_deleted(
        entity_type: str,
        entity_id: int,
        tenant_id: Optional[int] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_DELETED,
            entity_type=entity_type,
            entity_id=entity_id,
            tenant_id=tenant_id,
            description=f"{entity_type} {entity_id} deleted",
        )

    @staticmethod
    def shared_record_changed(
        entity_type: str,
        entity_id: int,
        action: str,
        tenant_id: Optional[int] = None,
    ) -> AuditEvent:
        """A shared default was changed by one tenant for every tenant."""
        return AuditEvent(
            event_type=AuditEventType.SHARED_RECORD_CHANGED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=entity_id,
            tenant_id=tenant_id,
            description=f"Shared {entity_type} {entity_id} {action} by tenant {tenant_id}",
            details={"action": action, "scope": "all_tenants"},
        )

    @staticmethod
    def write_rejected(
        entity_type: str,
        reason: str,
        issues: list[dict],
        tenant_id: Optional[int] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WRITE_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            tenant_id=tenant_id,
            description=f"{entity_type} write rejected ({reason}) with {len(issues)} issues",
            details={
                "reason": reason,
                "issues": issues,
            },
        )

    @staticmethod
    def setting_updated(key: str, value_type: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTING_UPDATED,
            entity_type="setting",
            description=f"Setting '{key}' updated",
            details={"key": key, "type": value_type},
        )

    @staticmethod
    def login_succeeded(tenant_id: int, email: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGIN_SUCCEEDED,
            entity_type="tenant",
            entity_id=tenant_id,
            tenant_id=tenant_id,
            description=f"Tenant {email} logged in",
        )

    @staticmethod
    def login_failed(email: str, reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGIN_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="tenant",
            description=f"Login failed for {email}: {reason}",
            details={"email": email, "reason": reason},
        )

    @staticmethod
    def migration_step_completed(
        step: str,
        affected: int,
        skipped: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MIGRATION_STEP_COMPLETED,
            severity=AuditSeverity.DEBUG if skipped else AuditSeverity.INFO,
            correlation_id=correlation_id,
            description=f"Migration step {step} completed ({affected} records)",
            details={"step": step, "affected": affected, "skipped": skipped},
        )

    @staticmethod
    def migration_step_failed(
        step: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MIGRATION_STEP_FAILED,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"Migration step {step} failed",
            error_message=error_message,
            details={"step": step},
        )

    @staticmethod
    def backup_created(snapshot_id: Optional[int], name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_CREATED,
            entity_type="snapshot",
            entity_id=snapshot_id,
            description=f"Backup created: {name}",
            details={"name": name},
        )

    @staticmethod
    def backup_restored(snapshot_id: int, correlation_id: Optional[UUID] = None) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_RESTORED,
            severity=AuditSeverity.WARNING,
            entity_type="snapshot",
            entity_id=snapshot_id,
            correlation_id=correlation_id,
            description=f"Store restored from backup {snapshot_id}",
        )

    @staticmethod
    def backup_deleted(snapshot_id: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_DELETED,
            entity_type="snapshot",
            entity_id=snapshot_id,
            description=f"Backup {snapshot_id} deleted",
        )

    @staticmethod
    def data_exported(counts: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_EXPORTED,
            description=f"Exported {sum(counts.values())} records",
            details={"counts": counts},
        )

    @staticmethod
    def data_imported(
        counts: dict[str, int],
        failed: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_IMPORTED,
            severity=AuditSeverity.ERROR if failed else AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"Store replaced by import ({len(failed)} collections failed)",
            details={"counts": counts, "failed": failed},
        )

    @staticmethod
    def store_reset(
        failed: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_RESET,
            severity=AuditSeverity.ERROR if failed else AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description="Store reset to defaults",
            details={"failed": failed},
        )

    @staticmethod
    def bulk_step_failed(
        operation: str,
        collection: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BULK_STEP_FAILED,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"{operation} failed for collection {collection}",
            error_message=error_message,
            details={"operation": operation, "collection": collection},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
