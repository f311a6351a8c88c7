"""
Recurrence period arithmetic.

Months and years are calendar steps, clamped to the last day of the
target month: 2024-01-31 + 1 month is 2024-02-29, never 2024-03-02.
"""

import calendar
from datetime import date, timedelta

from ledger_engine.models.ledger import Frequency


def add_months(day: date, months: int) -> date:
    """Move `day` by whole calendar months, clamping the day of month."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def advance(day: date, frequency: Frequency) -> date:
    """Return the due date exactly one period after `day`."""
    if frequency == Frequency.DAILY:
        return day + timedelta(days=1)
    if frequency == Frequency.WEEKLY:
        return day + timedelta(days=7)
    if frequency == Frequency.MONTHLY:
        return add_months(day, 1)
    if frequency == Frequency.YEARLY:
        return add_months(day, 12)
    raise ValueError(f"Unsupported frequency: {frequency}")


def month_bounds(day: date) -> tuple[date, date]:
    """First and last day of the month containing `day`."""
    last_day = calendar.monthrange(day.year, day.month)[1]
    return date(day.year, day.month, 1), date(day.year, day.month, last_day)


def year_bounds(day: date) -> tuple[date, date]:
    return date(day.year, 1, 1), date(day.year, 12, 31)
