"""
Tests for configuration loading.
"""

import pytest
from pydantic import ValidationError

from finledger.config import AppSettings, Settings, StoreSettings, get_settings, validate_all_settings


class TestStoreSettings:
    """Tests for StoreSettings."""

    def test_defaults(self):
        settings = StoreSettings()
        assert settings.backend == "sqlite"
        assert settings.legacy_tenant_email == "owner@finledger.local"
        assert settings.default_tenant_email == settings.legacy_tenant_email

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("FINLEDGER_STORE_BACKEND", "memory")
        monkeypatch.setenv("FINLEDGER_STORE_LEGACY_TENANT_EMAIL", "legacy@example.com")

        settings = get_settings().store
        assert settings.backend == "memory"
        assert settings.legacy_tenant_email == "legacy@example.com"

    def test_unknown_backend_is_rejected(self):
        with pytest.raises(ValidationError):
            StoreSettings(backend="postgres")

    def test_missing_database_directory_warns(self, tmp_path):
        with pytest.warns(UserWarning, match="does not exist"):
            StoreSettings(database_path=str(tmp_path / "missing" / "ledger.db"))


class TestAppSettings:
    """Tests for AppSettings."""

    def test_defaults(self):
        settings = AppSettings()
        assert settings.export_format_version == "1.0"
        assert settings.reset_confirmation_phrase == "accept"
        assert settings.max_insights == 8

    def test_max_insights_bounds(self):
        with pytest.raises(ValidationError):
            AppSettings(max_insights=0)


class TestValidateAllSettings:
    """Tests for the startup settings check."""

    def test_all_valid(self):
        assert validate_all_settings() == {"store": True, "app": True}

    def test_invalid_environment_is_reported(self, monkeypatch):
        monkeypatch.setenv("FINLEDGER_STORE_BACKEND", "postgres")
        results = validate_all_settings(Settings())

        assert results["store"] is False
        assert "backend" in results["store_error"]
        assert results["app"] is True

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
