"""
Budget and Budget-Rule Progress

The window always follows the budget period. start_date and end_date are
stored for display only. Aware `now` values are converted to local naive
time on entry, matching how stored dates are normalized.

All sums are Decimal; only percentages are floats.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from finledger.models.ledger import Budget, Entry, local_now, to_local_naive
from finledger.models.reports import (
    BudgetProgress,
    BudgetRuleProgress,
    FinancialHealth,
    RuleAllocation,
)
from finledger.aggregation.health import compute_financial_health
from finledger.aggregation.windows import budget_window, month_window
from finledger.repository import TenantScopedRepository
from finledger.services.storage import NotFoundError


def _resolve_now(now: Optional[datetime]) -> datetime:
    return to_local_naive(now) if now is not None else local_now()


def _percentage(spent: Decimal, ceiling: Decimal) -> float:
    if ceiling <= 0:
        return 0.0
    return float(spent / ceiling * 100)


def compute_budget_progress(
    budget: Budget,
    entries: Iterable[Entry],
    now: datetime,
) -> BudgetProgress:
    """Spending of matching-category expenses inside the budget's window."""
    start, end = budget_window(budget.period, to_local_naive(now))
    spent = sum(
        (
            e.magnitude for e in entries
            if e.is_expense and e.category == budget.category and start <= e.date < end
        ),
        Decimal("0"),
    )
    return BudgetProgress(
        budget_id=budget.id,
        spent=spent,
        remaining=max(Decimal("0"), budget.amount - spent),
        percentage=_percentage(spent, budget.amount),
        window_start=start,
        window_end=end,
    )


def compute_monthly_income(entries: Iterable[Entry], now: datetime) -> Decimal:
    start, end = month_window(to_local_naive(now))
    return sum(
        (e.amount for e in entries if e.is_income and start <= e.date < end),
        Decimal("0"),
    )


class AggregationEngine:
    """
    Derived views over the current tenant's records.

    Usage:
        engine = AggregationEngine(repository)
        progress = await engine.get_budget_progress(budget.id)
        if progress.is_over_budget:
            ...
    """

    def __init__(self, repository: TenantScopedRepository):
        self._repository = repository

    async def get_budget_progress(
        self,
        budget_id: int,
        now: Optional[datetime] = None,
    ) -> BudgetProgress:
        """
        Raises:
            NotFoundError: The budget does not exist or is not the tenant's
        """
        budget = await self._repository.get_budget(budget_id)
        if budget is None:
            raise NotFoundError(f"budget not found: {budget_id}")
        entries = await self._repository.list_entries()
        return compute_budget_progress(budget, entries, _resolve_now(now))

    async def get_budget_rule_progress(
        self,
        rule_id: int,
        monthly_income: Decimal,
        now: Optional[datetime] = None,
    ) -> BudgetRuleProgress:
        """
        Spending tagged with this rule in the current calendar month,
        against `percentage` of the month's income.
        """
        rule = await self._repository.get_budget_rule(rule_id)
        if rule is None:
            raise NotFoundError(f"budget_rule not found: {rule_id}")

        start, end = month_window(_resolve_now(now))
        spent = sum(
            (
                e.magnitude for e in await self._repository.list_entries()
                if e.is_expense and e.budget_rule_id == rule_id and start <= e.date < end
            ),
            Decimal("0"),
        )
        ceiling = Decimal(str(monthly_income)) * Decimal(str(rule.percentage)) / 100
        return BudgetRuleProgress(
            rule_id=rule_id,
            budget=ceiling,
            spent=spent,
            remaining=max(Decimal("0"), ceiling - spent),
            percentage=_percentage(spent, ceiling),
        )

    async def monthly_income(self, now: Optional[datetime] = None) -> Decimal:
        """Income recorded in the current calendar month."""
        return compute_monthly_income(await self._repository.list_entries(), _resolve_now(now))

    async def budget_rule_allocation(self) -> RuleAllocation:
        """Total percentage of the tenant's effective rules. Unbalanced is only a warning."""
        rules = await self._repository.list_budget_rules()
        return RuleAllocation(
            total_percentage=sum(rule.percentage for rule in rules),
            rule_count=len(rules),
        )

    async def financial_health(self, now: Optional[datetime] = None) -> FinancialHealth:
        now = _resolve_now(now)
        entries = await self._repository.list_entries()
        progress = [
            compute_budget_progress(budget, entries, now)
            for budget in await self._repository.list_budgets()
        ]
        return compute_financial_health(entries, progress, now)
