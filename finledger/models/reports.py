"""
Derived view-models

Progress, health and operation reports produced by the engines and the
backup/migration managers. None of these are stored.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from finledger.models.ledger import local_now


class BudgetProgress(BaseModel):
    """Spending against one budget inside its current window."""

    budget_id: int
    spent: Decimal = Decimal("0")
    remaining: Decimal = Decimal("0")
    percentage: float = Field(
        default=0.0,
        ge=0.0,
        description="May exceed 100 when over budget"
    )
    window_start: datetime
    window_end: datetime

    @property
    def is_over_budget(self) -> bool:
        return self.percentage > 100

    @property
    def is_near_limit(self) -> bool:
        return self.percentage > 80


class BudgetRuleProgress(BaseModel):
    """Spending against one percentage-of-income rule this month."""

    rule_id: int
    budget: Decimal = Decimal("0")
    spent: Decimal = Decimal("0")
    remaining: Decimal = Decimal("0")
    percentage: float = Field(default=0.0, ge=0.0)

    @property
    def is_over_budget(self) -> bool:
        return self.percentage > 100

    @property
    def is_near_limit(self) -> bool:
        return self.percentage > 80


class RuleAllocation(BaseModel):
    """How much of income a tenant's effective rules allocate in total."""

    total_percentage: float
    rule_count: int

    @property
    def is_balanced(self) -> bool:
        return abs(self.total_percentage - 100) < 0.01


class FinancialHealth(BaseModel):
    """Composite 0-100 health score and its components."""

    overall_score: int = 0
    savings_rate: int = 0
    spending_consistency: int = 0
    budget_adherence: int = 0
    diversification: int = 0


class StoreStats(BaseModel):
    """Entity counts for display."""

    entries: int = 0
    budgets: int = 0
    categories: int = 0
    budget_rules: int = 0
    settings: int = 0
    tenants: int = 0
    snapshots: int = 0


# =============================================================================
# OPERATION REPORTS
# =============================================================================

class StepOutcome(BaseModel):
    """
    Result of one independent step of a multi-step operation.

    `error` is None on success.
    """

    name: str
    succeeded: bool = True
    affected: int = Field(
        default=0,
        ge=0,
        description="Records inserted, updated or deleted by the step"
    )
    skipped: bool = Field(
        default=False,
        description="Step had nothing to do (e.g. collection already seeded)"
    )
    error: Optional[str] = None


class MigrationReport(BaseModel):
    """Outcome of every schema/migration step run at store open."""

    started_at: datetime = Field(default_factory=local_now)
    steps: list[StepOutcome] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(step.succeeded for step in self.steps)

    @property
    def failures(self) -> list[StepOutcome]:
        return [step for step in self.steps if not step.succeeded]

    def step(self, name: str) -> Optional[StepOutcome]:
        for outcome in self.steps:
            if outcome.name == name:
                return outcome
        return None


class BulkOperationReport(BaseModel):
    """Outcome of a clear/import/reset across collections."""

    operation: str
    started_at: datetime = Field(default_factory=local_now)
    steps: list[StepOutcome] = Field(default_factory=list)
    seeding: Optional[MigrationReport] = None

    @property
    def ok(self) -> bool:
        return all(step.succeeded for step in self.steps)

    @property
    def failed_collections(self) -> list[str]:
        return [step.name for step in self.steps if not step.succeeded]


class LoginResult(BaseModel):
    """Outcome of a login attempt. The message is safe to show to the user."""

    success: bool
    message: str
