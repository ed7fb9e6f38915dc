"""
Spending Insight Engine

DESIGN DECISION: Insights are heuristics, not predictions.
The engine is a pure function of an entry list and a reference time:
- It never reads or writes storage
- Identical input gives identical output
- Every analysis has a minimum data threshold and stays silent below it

Thresholds (expense count):
- fewer than 5:  nothing
- 5 to 9:        anomalies and suggestions only
- 10 or more:    also day-of-week pattern, category growth and forecast
"""

import math
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence

import structlog

from finledger.aggregation.windows import shift_months
from finledger.models.insight import Insight, InsightSeverity, InsightType
from finledger.models.ledger import Entry, local_now, to_local_naive


logger = structlog.get_logger(__name__)

MIN_EXPENSES_FOR_ANOMALIES = 5
MIN_EXPENSES_FOR_PATTERNS = 10
MIN_MONTHS_FOR_FORECAST = 3

CATEGORY_GROWTH_THRESHOLD = 20.0
SPIKE_THRESHOLD = 30.0
TOP_CATEGORY_THRESHOLD = 200.0
SAVINGS_RATE_TARGET = 20.0
TREND_REPORT_THRESHOLD = 50.0
TREND_HIGH_THRESHOLD = 100.0

DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def linear_trend(values: Sequence[float]) -> float:
    """Ordinary least squares slope of values against x = 0..n-1."""
    n = len(values)
    if n < 2:
        return 0.0
    sum_x = n * (n - 1) / 2
    sum_y = sum(values)
    sum_xy = sum(index * value for index, value in enumerate(values))
    sum_xx = n * (n - 1) * (2 * n - 1) / 6
    return (n * sum_xy - sum_x * sum_y) / (n * sum_xx - sum_x * sum_x)


def category_totals(expenses: Iterable[Entry]) -> dict[str, float]:
    """Magnitude per category, in order of first appearance."""
    totals: dict[str, float] = {}
    for entry in expenses:
        totals[entry.category] = totals.get(entry.category, 0.0) + float(entry.magnitude)
    return totals


def monthly_totals(expenses: Iterable[Entry]) -> list[tuple[tuple[int, int], float]]:
    """Expense magnitude per (year, month), chronologically."""
    totals: dict[tuple[int, int], float] = defaultdict(float)
    for entry in expenses:
        totals[(entry.date.year, entry.date.month)] += float(entry.magnitude)
    return sorted(totals.items())


def _largest(totals: dict[str, float]) -> tuple[str, float]:
    """Entry with the largest value; a tie goes to the later one."""
    best = None
    for item in totals.items():
        if best is None or not best[1] > item[1]:
            best = item
    return best


class InsightEngine:
    """
    Generates ranked spending insights for one tenant's entries.

    Usage:
        insights = InsightEngine(entries).generate_insights()
    """

    def __init__(
        self,
        entries: Sequence[Entry],
        now: Optional[datetime] = None,
        max_insights: int = 8,
    ):
        self._entries = sorted(entries, key=lambda e: e.date)
        self._expenses = [e for e in self._entries if e.is_expense]
        self._now = to_local_naive(now) if now is not None else local_now()
        self._max_insights = max_insights

    def generate_insights(self) -> list[Insight]:
        """All analyses, ranked by severity weight times confidence."""
        insights: list[Insight] = []
        insights.extend(self.analyze_patterns())
        insights.extend(self.detect_anomalies())
        insights.extend(self.generate_suggestions())
        insights.extend(self.forecast_spending())

        ranked = sorted(insights, key=lambda insight: insight.rank_score, reverse=True)
        logger.debug(
            "insights_generated",
            expenses=len(self._expenses),
            produced=len(insights),
            returned=min(len(ranked), self._max_insights),
        )
        return ranked[:self._max_insights]

    # =========================================================================
    # PATTERNS
    # =========================================================================

    def analyze_patterns(self) -> list[Insight]:
        if len(self._expenses) < MIN_EXPENSES_FOR_PATTERNS:
            return []
        insights = []
        day_insight = self._day_of_week_pattern()
        if day_insight:
            insights.append(day_insight)
        insights.extend(self._category_growth())
        return insights

    def _day_of_week_pattern(self) -> Optional[Insight]:
        amounts: dict[str, list[float]] = {}
        for entry in self._expenses:
            day = DAY_NAMES[entry.date.weekday()]
            amounts.setdefault(day, []).append(float(entry.magnitude))
        averages = {day: sum(values) / len(values) for day, values in amounts.items()}

        day, average = _largest(averages)
        if average <= 0:
            return None
        return Insight(
            id="day-pattern",
            type=InsightType.PATTERN,
            title=f"You spend most on {day}s",
            description=(
                f"Your average {day} spending is ${average:.2f}. "
                "Consider planning purchases for other days."
            ),
            severity=InsightSeverity.LOW,
            confidence=0.8,
            actionable=True,
            icon="Calendar",
        )

    def _category_growth(self) -> list[Insight]:
        """
        Compare the recent window (since the 1st of last month) to the two
        months before it. Every category growing over 20% is reported.
        """
        recent_start = shift_months(self._now, -1)
        prior_start = shift_months(self._now, -3)

        prior = category_totals(
            e for e in self._expenses if prior_start <= e.date < recent_start
        )
        recent = category_totals(e for e in self._expenses if e.date >= recent_start)

        insights = []
        for category in list(prior) + [c for c in recent if c not in prior]:
            old_amount = prior.get(category, 0.0)
            new_amount = recent.get(category, 0.0)
            growth = (new_amount - old_amount) / old_amount * 100 if old_amount > 0 else 0.0
            if growth <= CATEGORY_GROWTH_THRESHOLD:
                continue
            insights.append(Insight(
                id=f"category-growth-{category}",
                type=InsightType.PATTERN,
                title=f"{category} spending is increasing",
                description=f"Your {category} expenses have grown by {growth:.1f}% recently.",
                severity=InsightSeverity.MEDIUM,
                category=category,
                confidence=0.85,
                actionable=True,
                icon="TrendingUp",
            ))
        return insights

    # =========================================================================
    # ANOMALIES
    # =========================================================================

    def detect_anomalies(self) -> list[Insight]:
        if len(self._expenses) < MIN_EXPENSES_FOR_ANOMALIES:
            return []
        insights = []
        large = self._large_expense()
        if large:
            insights.append(large)
        spike = self._monthly_spike()
        if spike:
            insights.append(spike)
        return insights

    def _large_expense(self) -> Optional[Insight]:
        """Largest expense above mean + 2 population standard deviations."""
        magnitudes = [float(e.magnitude) for e in self._expenses]
        mean = sum(magnitudes) / len(magnitudes)
        std_dev = math.sqrt(sum((m - mean) ** 2 for m in magnitudes) / len(magnitudes))
        limit = mean + 2 * std_dev

        largest = None
        for entry in self._expenses:
            if float(entry.magnitude) > limit and (largest is None or entry.magnitude > largest.magnitude):
                largest = entry
        if largest is None:
            return None

        return Insight(
            id="large-expense",
            type=InsightType.ANOMALY,
            title="Unusual large expense detected",
            description=(
                f"${largest.magnitude:.2f} for {largest.description} is significantly "
                "higher than your typical spending."
            ),
            severity=InsightSeverity.HIGH,
            amount=float(largest.magnitude),
            category=largest.category,
            confidence=0.9,
            actionable=False,
            icon="AlertTriangle",
        )

    def _monthly_spike(self) -> Optional[Insight]:
        months = monthly_totals(self._expenses)
        if len(months) < 2:
            return None
        previous = months[-2][1]
        current = months[-1][1]
        if previous <= 0:
            return None
        increase = (current - previous) / previous * 100
        if increase <= SPIKE_THRESHOLD:
            return None
        return Insight(
            id="spending-spike",
            type=InsightType.ANOMALY,
            title="Spending spike this month",
            description=(
                f"Your spending increased by {increase:.1f}% compared to last month. "
                f"Current: ${current:.2f}"
            ),
            severity=InsightSeverity.MEDIUM,
            confidence=0.8,
            actionable=True,
            icon="TrendingUp",
        )

    # =========================================================================
    # SUGGESTIONS
    # =========================================================================

    def generate_suggestions(self) -> list[Insight]:
        if len(self._expenses) < MIN_EXPENSES_FOR_ANOMALIES:
            return []
        insights = []

        category, total = _largest(category_totals(self._expenses))
        if total > TOP_CATEGORY_THRESHOLD:
            insights.append(Insight(
                id="budget-optimization",
                type=InsightType.SUGGESTION,
                title=f"Consider reducing {category} expenses",
                description=(
                    f"You've spent ${total:.2f} on {category} recently. "
                    f"A 10% reduction could save you ${total * 0.1:.2f}."
                ),
                severity=InsightSeverity.MEDIUM,
                category=category,
                amount=round(total * 0.1, 2),
                confidence=0.7,
                actionable=True,
                icon="Target",
            ))

        income = float(sum((e.amount for e in self._entries if e.is_income), Decimal("0")))
        spent = float(sum((e.magnitude for e in self._expenses), Decimal("0")))
        if income > 0:
            savings_rate = (income - spent) / income * 100
            if savings_rate < SAVINGS_RATE_TARGET:
                insights.append(Insight(
                    id="emergency-fund",
                    type=InsightType.SUGGESTION,
                    title="Build your emergency fund",
                    description=(
                        f"Your current savings rate is {savings_rate:.1f}%. "
                        "Aim for 20% to build financial security."
                    ),
                    severity=InsightSeverity.MEDIUM,
                    confidence=0.85,
                    actionable=True,
                    icon="Shield",
                ))
        return insights

    # =========================================================================
    # FORECAST
    # =========================================================================

    def forecast_spending(self) -> list[Insight]:
        if len(self._expenses) < MIN_EXPENSES_FOR_PATTERNS:
            return []
        months = monthly_totals(self._expenses)
        if len(months) < MIN_MONTHS_FOR_FORECAST:
            return []

        trend = linear_trend([amount for _, amount in months])
        if abs(trend) <= TREND_REPORT_THRESHOLD:
            return []
        forecast = months[-1][1] + trend
        sign = "+" if trend > 0 else ""
        return [Insight(
            id="spending-forecast",
            type=InsightType.FORECAST,
            title="Next month spending forecast",
            description=(
                f"Based on your trend, you're likely to spend ${forecast:.2f} next month "
                f"({sign}{trend:.2f} from this month)."
            ),
            severity=InsightSeverity.HIGH if trend > TREND_HIGH_THRESHOLD else InsightSeverity.LOW,
            amount=forecast,
            confidence=0.6,
            actionable=True,
            icon="Crystal",
        )]
