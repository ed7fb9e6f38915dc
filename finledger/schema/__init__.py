"""Schema initialization, default seeding and legacy migration."""

from finledger.schema.defaults import (
    DEFAULT_BUDGET_RULES,
    DEFAULT_CATEGORIES,
    DEFAULT_SETTINGS,
)
from finledger.schema.manager import SchemaManager

__all__ = [
    "DEFAULT_BUDGET_RULES",
    "DEFAULT_CATEGORIES",
    "DEFAULT_SETTINGS",
    "SchemaManager",
]
