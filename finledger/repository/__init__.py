"""Tenant-scoped data access."""

from finledger.repository.scoped import TenantResolver, TenantScopedRepository

__all__ = ["TenantResolver", "TenantScopedRepository"]
