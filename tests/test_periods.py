"""Tests for recurrence period arithmetic."""

from datetime import date

import pytest

from ledger_engine.engine.periods import add_months, advance, month_bounds, year_bounds
from ledger_engine.models.ledger import Frequency


class TestAdvance:

    def test_daily_and_weekly(self):
        assert advance(date(2024, 12, 31), Frequency.DAILY) == date(2025, 1, 1)
        assert advance(date(2024, 2, 26), Frequency.WEEKLY) == date(2024, 3, 4)

    def test_monthly_clamps_to_leap_february(self):
        assert advance(date(2024, 1, 31), Frequency.MONTHLY) == date(2024, 2, 29)

    def test_monthly_clamps_to_short_february(self):
        assert advance(date(2023, 1, 31), Frequency.MONTHLY) == date(2023, 2, 28)

    def test_monthly_crosses_year(self):
        assert advance(date(2024, 12, 15), Frequency.MONTHLY) == date(2025, 1, 15)

    def test_yearly_from_leap_day(self):
        assert advance(date(2024, 2, 29), Frequency.YEARLY) == date(2025, 2, 28)

    def test_monthly_steps_keep_clamped_day(self):
        """Each step starts from the previous due date, so a clamped day stays clamped."""
        day = date(2024, 1, 31)
        for _ in range(2):
            day = advance(day, Frequency.MONTHLY)
        assert day == date(2024, 3, 29)


class TestBounds:

    @pytest.mark.parametrize("months,expected", [
        (0, date(2024, 5, 31)),
        (1, date(2024, 6, 30)),
        (-3, date(2024, 2, 29)),
        (-5, date(2023, 12, 31)),
    ])
    def test_add_months(self, months, expected):
        assert add_months(date(2024, 5, 31), months) == expected

    def test_month_bounds(self):
        assert month_bounds(date(2024, 2, 10)) == (date(2024, 2, 1), date(2024, 2, 29))

    def test_year_bounds(self):
        assert year_bounds(date(2024, 7, 4)) == (date(2024, 1, 1), date(2024, 12, 31))
