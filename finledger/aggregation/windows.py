"""
Time windows

DESIGN DECISION: Windows are half-open [start, end) in local time.
- weekly:  most recent Sunday 00:00, plus 7 days
- monthly: 1st of the month 00:00 up to the 1st of the next month
- yearly:  Jan 1 00:00 up to Jan 1 of the next year
An entry dated anywhere on the last day of a month counts toward that month.
"""

from datetime import datetime, timedelta

from finledger.models.ledger import BudgetPeriod


def _midnight(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def month_window(now: datetime) -> tuple[datetime, datetime]:
    start = _midnight(now).replace(day=1)
    if start.month == 12:
        return start, start.replace(year=start.year + 1, month=1)
    return start, start.replace(month=start.month + 1)


def shift_months(moment: datetime, months: int) -> datetime:
    """1st of the month `months` away from moment's month, at midnight."""
    index = moment.year * 12 + (moment.month - 1) + months
    return _midnight(moment).replace(year=index // 12, month=index % 12 + 1, day=1)


def budget_window(period: BudgetPeriod, now: datetime) -> tuple[datetime, datetime]:
    """The [start, end) window of the period containing `now`."""
    if period == BudgetPeriod.WEEKLY:
        # weekday(): Monday is 0; the week starts on Sunday
        start = _midnight(now) - timedelta(days=(now.weekday() + 1) % 7)
        return start, start + timedelta(days=7)
    if period == BudgetPeriod.YEARLY:
        start = _midnight(now).replace(month=1, day=1)
        return start, start.replace(year=start.year + 1)
    return month_window(now)

