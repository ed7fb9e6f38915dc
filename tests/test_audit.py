"""
Tests for the audit logger.
"""

from uuid import UUID

import pytest
from structlog.testing import capture_logs

from finledger.audit import AuditLogger, create_correlation_id
from finledger.models.audit import AuditEventBuilder, AuditEventType
from finledger.models.reports import StepOutcome

from factories import RecordingAuditLogger


class BrokenLogger:
    """Stands in for a structlog logger whose handler is failing."""

    def _fail(self, *args, **kwargs):
        raise OSError("log handler unavailable")

    info = warning = error = debug = _fail


class TestAuditLogger:
    """Tests for AuditLogger."""

    def test_event_is_logged_at_its_severity(self):
        """Test that a warning-severity event becomes a warning log line."""
        with capture_logs() as logs:
            AuditLogger("finledger.audit.capture").log(
                AuditEventBuilder.login_failed("owner@finledger.local", "invalid password")
            )

        assert len(logs) == 1
        assert logs[0]["event"] == "audit_event"
        assert logs[0]["log_level"] == "warning"
        assert logs[0]["event_type"] == "login_failed"
        assert logs[0]["details"]["reason"] == "invalid password"

    def test_record_events_carry_tenant(self):
        with capture_logs() as logs:
            AuditLogger("finledger.audit.capture").log_record_created("entry", 4, tenant_id=2)

        assert logs[0]["log_level"] == "info"
        assert logs[0]["entity_id"] == 4
        assert logs[0]["tenant_id"] == 2

    def test_shared_record_change_is_a_warning(self):
        with capture_logs() as logs:
            AuditLogger("finledger.audit.capture").log_shared_record_changed("category", 3, "deleted", tenant_id=2)

        assert logs[0]["log_level"] == "warning"
        assert logs[0]["event_type"] == "shared_record_changed"
        assert logs[0]["details"] == {"action": "deleted", "scope": "all_tenants"}

    def test_logging_failure_never_raises(self, capsys):
        """Test that a broken handler does not fail the audited operation."""
        audit = AuditLogger()
        audit._logger = BrokenLogger()

        audit.log_record_deleted("entry", 1, tenant_id=1)

        assert "Failed to write audit event" in capsys.readouterr().out

    def test_log_step_failed(self):
        audit = RecordingAuditLogger()
        correlation_id = create_correlation_id()
        audit.log_step(
            StepOutcome(name="seed_tenants", succeeded=False, error="disk full"),
            correlation_id,
        )

        event = audit.of_type(AuditEventType.MIGRATION_STEP_FAILED)[0]
        assert event.error_message == "disk full"
        assert event.correlation_id == correlation_id

    def test_log_step_completed(self):
        audit = RecordingAuditLogger()
        audit.log_step(StepOutcome(name="seed_categories", affected=9))

        event = audit.of_type(AuditEventType.MIGRATION_STEP_COMPLETED)[0]
        assert event.details == {"step": "seed_categories", "affected": 9, "skipped": False}

    def test_log_error(self):
        audit = RecordingAuditLogger()
        audit.log_error("ConnectionError", "unable to open database file", {"path": "/tmp/x.db"})
        assert audit.of_type(AuditEventType.SYSTEM_ERROR)[0].details["path"] == "/tmp/x.db"

    def test_correlation_ids_are_unique(self):
        first = create_correlation_id()
        assert isinstance(first, UUID)
        assert first != create_correlation_id()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
