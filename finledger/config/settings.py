"""
Configuration Management for finledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see which knobs exist and ensures they are
validated once at startup rather than deep inside a bulk operation.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreSettings(BaseSettings):
    """Embedded ledger store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FINLEDGER_STORE_",
        extra="ignore"
    )

    backend: str = Field(
        default="sqlite",
        pattern="^(memory|sqlite)$",
        description="Storage backend to use"
    )
    database_path: str = Field(
        default="finledger.db",
        description="Path to the SQLite database file"
    )

    # Tenant that owns records written before multi-tenancy existed
    legacy_tenant_email: str = Field(
        default="owner@finledger.local",
        description="Email of the tenant that receives legacy records"
    )

    # Seeded account (stored verbatim, see DESIGN.md)
    default_tenant_email: str = Field(
        default="owner@finledger.local",
        description="Email of the tenant seeded into an empty store"
    )
    default_tenant_password: str = Field(
        default="changeme",
        description="Password of the seeded tenant"
    )
    default_tenant_name: str = Field(
        default="Owner",
        description="Display name of the seeded tenant"
    )

    @field_validator('database_path')
    @classmethod
    def validate_database_path(cls, v: str) -> str:
        """Warn if the database directory doesn't exist (sqlite won't create it)."""
        if v != ":memory:" and not Path(v).expanduser().resolve().parent.exists():
            import warnings
            warnings.warn(
                f"Directory for database file {v} does not exist. "
                "Create it before opening the store."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Backup format
    export_format_version: str = Field(
        default="1.0",
        description="Version tag written into every export and snapshot"
    )

    # Destructive operations
    reset_confirmation_phrase: str = Field(
        default="accept",
        min_length=1,
        description="Phrase the user must type before a full reset"
    )

    # Insight ranking
    max_insights: int = Field(
        default=8,
        ge=1,
        le=50,
        description="Maximum number of insights returned"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def store(self) -> StoreSettings:
        return StoreSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings(settings: Optional[Settings] = None) -> dict[str, object]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results: dict[str, object] = {}

    settings = settings or get_settings()

    try:
        _ = settings.store
        results["store"] = True
    except Exception as e:
        results["store"] = False
        results["store_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
