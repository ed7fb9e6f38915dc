"""Builders for test records and write payloads."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from finledger.audit import AuditLogger
from finledger.models.ledger import Collection, CurrentTenant, Entry, EntryType
from finledger.services.storage import InMemoryLedgerStorage, StorageError


OWNER_EMAIL = "owner@finledger.local"
OWNER_PASSWORD = "changeme"


def expense_data(
    amount: Any = 25,
    category: str = "Food & Dining",
    when: Optional[datetime] = None,
    description: str = "Groceries",
    **extra: Any,
) -> dict[str, Any]:
    return {
        "description": description,
        "amount": -abs(Decimal(str(amount))),
        "type": "expense",
        "category": category,
        "date": when or datetime(2024, 5, 10, 12, 0),
        **extra,
    }


def income_data(
    amount: Any = 1000,
    category: str = "Salary",
    when: Optional[datetime] = None,
    description: str = "Paycheck",
    **extra: Any,
) -> dict[str, Any]:
    return {
        "description": description,
        "amount": abs(Decimal(str(amount))),
        "type": "income",
        "category": category,
        "date": when or datetime(2024, 5, 1, 9, 0),
        **extra,
    }


def make_expense(amount: Any, when: datetime, category: str = "Food & Dining",
                 description: str = "Expense") -> Entry:
    return Entry(
        description=description,
        amount=-abs(Decimal(str(amount))),
        entry_type=EntryType.EXPENSE,
        category=category,
        date=when,
    )


def make_income(amount: Any, when: datetime, category: str = "Salary") -> Entry:
    return Entry(
        description="Income",
        amount=abs(Decimal(str(amount))),
        entry_type=EntryType.INCOME,
        category=category,
        date=when,
    )


class RecordingAuditLogger(AuditLogger):
    """Keeps every audit event in memory instead of logging it."""

    def __init__(self):
        super().__init__("finledger.audit.test")
        self.events = []

    def log(self, event) -> None:
        self.events.append(event)

    def of_type(self, event_type) -> list:
        return [event for event in self.events if event.event_type == event_type]


class SwitchableResolver:
    """Tenant resolver whose tenant the test can change."""

    def __init__(self, tenant: Optional[CurrentTenant] = None):
        self.tenant = tenant

    def __call__(self) -> Optional[CurrentTenant]:
        return self.tenant


class FailingClearStorage(InMemoryLedgerStorage):
    """Storage that cannot clear one collection."""

    def __init__(self, failing: Collection):
        super().__init__()
        self.failing = failing

    async def clear(self, collection):
        if collection == self.failing:
            raise StorageError(f"cannot clear {collection.value}")
        return await super().clear(collection)
