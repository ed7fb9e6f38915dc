"""
Default seed data

Written into a collection only when that collection is empty. Defaults are
shared (visible to every tenant), except the seeded tenant itself.
"""

from typing import Any

from finledger.config import StoreSettings
from finledger.models.ledger import (
    AppSetting,
    BudgetRule,
    Category,
    EntryType,
    SettingType,
    SharedOwner,
    Tenant,
)


# (name, color, icon, type)
DEFAULT_CATEGORIES: tuple[tuple[str, str, str, EntryType], ...] = (
    ("Food & Dining", "hsl(var(--chart-1))", "UtensilsCrossed", EntryType.EXPENSE),
    ("Transportation", "hsl(var(--chart-2))", "Car", EntryType.EXPENSE),
    ("Entertainment", "hsl(var(--chart-3))", "Gamepad2", EntryType.EXPENSE),
    ("Shopping", "hsl(var(--chart-4))", "ShoppingBag", EntryType.EXPENSE),
    ("Bills & Utilities", "hsl(var(--chart-5))", "Receipt", EntryType.EXPENSE),
    ("Healthcare", "hsl(var(--chart-1))", "Heart", EntryType.EXPENSE),
    ("Salary", "hsl(var(--chart-2))", "Banknote", EntryType.INCOME),
    ("Freelance", "hsl(var(--chart-3))", "Briefcase", EntryType.INCOME),
    ("Investment", "hsl(var(--chart-4))", "TrendingUp", EntryType.INCOME),
)

# (name, percentage, color, icon)
DEFAULT_BUDGET_RULES: tuple[tuple[str, float, str, str], ...] = (
    ("Needs", 50.0, "hsl(var(--chart-1))", "Home"),
    ("Wants", 30.0, "hsl(var(--chart-2))", "ShoppingBag"),
    ("Savings", 20.0, "hsl(var(--chart-3))", "PiggyBank"),
)

# key -> (value, type)
DEFAULT_SETTINGS: dict[str, tuple[Any, SettingType]] = {
    "theme": ("dark", SettingType.STRING),
    "currency": ("USD", SettingType.STRING),
    "dateFormat": ("MM/DD/YYYY", SettingType.STRING),
    "fiscalYearStart": (0, SettingType.NUMBER),
    "defaultView": ("dashboard", SettingType.STRING),
    "compactMode": (False, SettingType.BOOLEAN),
    "autoSave": (True, SettingType.BOOLEAN),
    "showCents": (True, SettingType.BOOLEAN),
}


def default_categories() -> list[Category]:
    return [
        Category(
            name=name,
            color=color,
            icon=icon,
            category_type=category_type,
            is_default=True,
            owner=SharedOwner(),
        )
        for name, color, icon, category_type in DEFAULT_CATEGORIES
    ]


def default_budget_rules() -> list[BudgetRule]:
    return [
        BudgetRule(
            name=name,
            percentage=percentage,
            color=color,
            icon=icon,
            owner=SharedOwner(),
        )
        for name, percentage, color, icon in DEFAULT_BUDGET_RULES
    ]


def default_settings() -> list[AppSetting]:
    return [
        AppSetting(key=key, value=value, value_type=value_type)
        for key, (value, value_type) in DEFAULT_SETTINGS.items()
    ]


def default_tenants(store_settings: StoreSettings) -> list[Tenant]:
    """The single account an empty store starts with."""
    return [
        Tenant(
            email=store_settings.default_tenant_email,
            password=store_settings.default_tenant_password,
            name=store_settings.default_tenant_name,
        )
    ]
