"""Login state and tenant resolution."""

from finledger.auth.session import TenantSession

__all__ = ["TenantSession"]
