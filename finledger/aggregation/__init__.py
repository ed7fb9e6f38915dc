"""Budget progress, budget-rule progress and health score."""

from finledger.aggregation.health import compute_financial_health
from finledger.aggregation.progress import (
    AggregationEngine,
    compute_budget_progress,
    compute_monthly_income,
)
from finledger.aggregation.windows import budget_window, month_window

__all__ = [
    "AggregationEngine",
    "budget_window",
    "compute_budget_progress",
    "compute_financial_health",
    "compute_monthly_income",
    "month_window",
]
