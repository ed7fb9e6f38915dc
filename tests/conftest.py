"""
Shared fixtures.

Async store operations are driven with asyncio.run; the in-memory and
SQLite backends hold no event-loop state, so one store can be used across
several runs.
"""

import asyncio

import pytest

from finledger.config import get_settings
from finledger.orchestrator import LedgerStore
from finledger.services.storage import InMemoryLedgerStorage

from factories import OWNER_EMAIL, OWNER_PASSWORD, RecordingAuditLogger


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Every test sees default settings, whatever the environment holds."""
    for name in (
        "FINLEDGER_STORE_BACKEND",
        "FINLEDGER_STORE_DATABASE_PATH",
        "FINLEDGER_STORE_LEGACY_TENANT_EMAIL",
        "FINLEDGER_STORE_DEFAULT_TENANT_EMAIL",
        "FINLEDGER_STORE_DEFAULT_TENANT_PASSWORD",
        "MAX_INSIGHTS",
        "RESET_CONFIRMATION_PHRASE",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def audit():
    return RecordingAuditLogger()


@pytest.fixture
def storage():
    return InMemoryLedgerStorage()


@pytest.fixture
def anonymous_store(storage, audit):
    """Opened store with nobody logged in."""
    return asyncio.run(LedgerStore.open(storage=storage, audit_logger=audit))


@pytest.fixture
def store(anonymous_store):
    """Opened store with the seeded owner logged in."""
    result = asyncio.run(anonymous_store.login(OWNER_EMAIL, OWNER_PASSWORD))
    assert result.success
    return anonymous_store
