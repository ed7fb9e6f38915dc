"""
Financial health score

Four 0-100 components over the current calendar month, combined as
0.3 savings + 0.2 consistency + 0.3 adherence + 0.2 diversification.
"""

import math
from collections import defaultdict
from datetime import datetime
from typing import Sequence

from finledger.aggregation.windows import month_window
from finledger.models.ledger import Entry, to_local_naive
from finledger.models.reports import BudgetProgress, FinancialHealth


# Six expense categories in a month counts as fully diversified
IDEAL_CATEGORY_COUNT = 6


def round_score(value: float) -> int:
    """Halves round toward positive infinity: 62.5 scores 63, -2.5 scores -2."""
    return math.floor(value + 0.5)


def savings_rate(income: float, expenses: float) -> float:
    if income <= 0:
        return 0.0
    return min((income - expenses) / income * 100, 100.0)


def spending_consistency(daily_totals: Sequence[float]) -> float:
    """100 minus the coefficient of variation (in percent) of daily spend."""
    if not daily_totals:
        return 100.0
    mean = sum(daily_totals) / len(daily_totals)
    if mean == 0:
        return 100.0
    variance = sum((v - mean) ** 2 for v in daily_totals) / len(daily_totals)
    return max(0.0, 100 - math.sqrt(variance) / mean * 100)


def budget_adherence(progress: Sequence[BudgetProgress]) -> float:
    """Mean of 100 minus overspend percent per budget; 100 with no budgets."""
    if not progress:
        return 100.0
    scores = [max(0.0, 100 - max(0.0, p.percentage - 100)) for p in progress]
    return sum(scores) / len(scores)


def compute_financial_health(
    entries: Sequence[Entry],
    progress: Sequence[BudgetProgress],
    now: datetime,
) -> FinancialHealth:
    if not entries:
        return FinancialHealth()

    start, end = month_window(to_local_naive(now))
    monthly = [e for e in entries if start <= e.date < end]
    income = float(sum(e.amount for e in monthly if e.is_income))
    expenses = float(sum(e.magnitude for e in monthly if e.is_expense))

    daily: dict = defaultdict(float)
    categories = set()
    for entry in monthly:
        if entry.is_expense:
            daily[entry.date.date()] += float(entry.magnitude)
            categories.add(entry.category)

    savings = savings_rate(income, expenses)
    consistency = spending_consistency(list(daily.values()))
    adherence = budget_adherence(progress)
    diversification = min(len(categories) / IDEAL_CATEGORY_COUNT * 100, 100.0)

    return FinancialHealth(
        overall_score=round_score(
            savings * 0.3 + consistency * 0.2 + adherence * 0.3 + diversification * 0.2
        ),
        savings_rate=round_score(savings),
        spending_consistency=round_score(consistency),
        budget_adherence=round_score(adherence),
        diversification=round_score(diversification),
    )
