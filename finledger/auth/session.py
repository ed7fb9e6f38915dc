"""
Tenant Session

Holds the logged-in tenant and exposes it as the resolver every scoped
repository call uses (`session.current`).

WARNING: Passwords are compared verbatim against the stored value. This is
a known defect carried over from the application this store backs; hashing
is out of scope for the store core.
"""

from typing import Optional

import structlog

from finledger.audit import AuditLogger
from finledger.models.audit import AuditEventBuilder
from finledger.models.ledger import Collection, CurrentTenant, Tenant
from finledger.models.reports import LoginResult
from finledger.services.storage import LedgerStorageInterface


logger = structlog.get_logger(__name__)


class TenantSession:
    """
    In-process login state.

    Usage:
        session = TenantSession(storage)
        result = await session.login("owner@finledger.local", "changeme")
        repo = TenantScopedRepository(storage, session.current)
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()
        self._current: Optional[CurrentTenant] = None

    @property
    def is_authenticated(self) -> bool:
        return self._current is not None

    def current(self) -> Optional[CurrentTenant]:
        """Tenant resolver: the logged-in tenant or None."""
        return self._current

    async def _find_active(self, email: str) -> Optional[Tenant]:
        for tenant in await self._storage.list_records(Collection.TENANTS):
            if tenant.email == email and tenant.is_active:
                return tenant
        return None

    async def login(self, email: str, password: str) -> LoginResult:
        tenant = await self._find_active(email)
        if tenant is None:
            self._audit_logger.log(AuditEventBuilder.login_failed(email, "unknown or inactive"))
            return LoginResult(success=False, message="User not found")
        if tenant.password != password:
            self._audit_logger.log(AuditEventBuilder.login_failed(email, "invalid password"))
            return LoginResult(success=False, message="Invalid password")

        self._current = tenant.to_current()
        self._audit_logger.log(AuditEventBuilder.login_succeeded(tenant.id, tenant.email))
        return LoginResult(success=True, message="Login successful")

    def logout(self) -> None:
        self._current = None

    async def check(self) -> bool:
        """
        Re-verify that the logged-in tenant still exists and is active.

        Logs the session out otherwise.
        """
        if self._current is None:
            return False
        tenant = await self._find_active(self._current.email)
        if tenant is None:
            logger.info("session_invalidated", email=self._current.email)
            self._current = None
            return False
        self._current = tenant.to_current()
        return True
