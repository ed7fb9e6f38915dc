"""
Audit Logger

DESIGN DECISION: Every significant action in the store is logged.
This provides:
1. Traceability of writes per tenant
2. Visibility into startup migrations that failed and will retry
3. A trail for destructive operations (import, restore, reset)

The audit logger:
- Never raises (logging must not break a write or a bulk operation)
- Supports correlation IDs to trace the steps of one bulk operation
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from finledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from finledger.models.reports import StepOutcome


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Renders every AuditEvent as one structured log line.
    """

    def __init__(self, logger_name: str = "finledger.audit"):
        self._logger = structlog.get_logger(logger_name)

    def log(self, event: AuditEvent) -> None:
        """Log an audit event at the level matching its severity."""
        log_dict = event.to_log_dict()
        try:
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # A broken log handler must not fail the operation being audited
            print(f"WARNING: Failed to write audit event {event.event_id}: {e}")

    def log_record_created(
        self,
        entity_type: str,
        entity_id: Optional[int],
        tenant_id: Optional[int] = None,
    ) -> None:
        self.log(AuditEventBuilder.record_created(entity_type, entity_id, tenant_id))

    def log_record_updated(
        self,
        entity_type: str,
        entity_id: int,
        fields: list[str],
        tenant_id: Optional[int] = None,
    ) -> None:
        self.log(AuditEventBuilder.record_updated(entity_type, entity_id, fields, tenant_id))

    def log_record_deleted(
        self,
        entity_type: str,
        entity_id: int,
        tenant_id: Optional[int] = None,
    ) -> None:
        self.log(AuditEventBuilder.record_deleted(entity_type, entity_id, tenant_id))

    def log_shared_record_changed(
        self,
        entity_type: str,
        entity_id: int,
        action: str,
        tenant_id: Optional[int] = None,
    ) -> None:
        self.log(AuditEventBuilder.shared_record_changed(entity_type, entity_id, action, tenant_id))

    def log_write_rejected(
        self,
        entity_type: str,
        reason: str,
        issues: list[dict],
        tenant_id: Optional[int] = None,
    ) -> None:
        self.log(AuditEventBuilder.write_rejected(entity_type, reason, issues, tenant_id))

    def log_step(
        self,
        outcome: StepOutcome,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log the outcome of one migration step."""
        if outcome.succeeded:
            event = AuditEventBuilder.migration_step_completed(
                step=outcome.name,
                affected=outcome.affected,
                skipped=outcome.skipped,
                correlation_id=correlation_id,
            )
        else:
            event = AuditEventBuilder.migration_step_failed(
                step=outcome.name,
                error_message=outcome.error or "unknown error",
                correlation_id=correlation_id,
            )
        self.log(event)

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a multi-step operation (e.g. reset).
    Pass it through all subsequent steps.
    """
    return uuid4()
