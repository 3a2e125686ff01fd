"""
Tests for period resolution and Sunday-anchored weeks.

Run: pytest tests/test_periods.py -v
"""

from datetime import date

import pandas as pd
import pytest

from stake_dashboard.periods import (
    is_week_anchor,
    resolve_period,
    shift_week,
    week_end,
    week_label,
    week_number,
    week_start,
    week_year,
)


class TestWeekBounds:
    """Weeks run Sunday to Saturday"""

    def test_week_start_of_wednesday(self):
        """A Wednesday maps back to the previous Sunday"""
        assert week_start(date(2026, 3, 18)) == date(2026, 3, 15)

    def test_week_start_of_sunday_is_itself(self):
        assert week_start(date(2026, 3, 15)) == date(2026, 3, 15)

    def test_week_end_is_saturday(self):
        assert week_end(date(2026, 3, 15)) == date(2026, 3, 21)

    def test_accepts_iso_strings_and_timestamps(self):
        assert week_start("2026-03-18") == date(2026, 3, 15)
        assert week_start(pd.Timestamp("2026-03-18 14:30")) == date(2026, 3, 15)

    def test_is_week_anchor(self):
        assert is_week_anchor(date(2024, 1, 7))
        assert not is_week_anchor(date(2024, 1, 8))

    def test_shift_week(self):
        assert shift_week(date(2026, 3, 15), -2) == date(2026, 3, 1)


class TestWeekNumbering:
    """Week 1 is the Sunday-started week that holds 1 January"""

    def test_year_starting_on_sunday(self):
        """1 Jan 2023 was a Sunday: that day opens week 1"""
        assert week_number(date(2023, 1, 1)) == 1
        assert week_number(date(2023, 1, 8)) == 2

    def test_year_starting_midweek(self):
        """1 Jan 2024 was a Monday; 7 Jan opens week 2"""
        assert week_number(date(2024, 1, 1)) == 1
        assert week_number(date(2024, 1, 7)) == 2

    def test_late_december_sunday_belongs_to_next_year(self):
        """28 Dec 2025 starts the week holding 1 Jan 2026"""
        assert week_number(date(2025, 12, 28)) == 1
        assert week_year(date(2025, 12, 28)) == 2026

    def test_last_full_week_of_year(self):
        assert week_number(date(2025, 12, 21)) == 52
        assert week_year(date(2025, 12, 21)) == 2025

    def test_same_number_for_every_day_of_week(self):
        numbers = {week_number(date(2026, 3, d)) for d in range(15, 22)}
        assert numbers == {12}

    def test_label(self):
        assert week_label(date(2026, 3, 18)) == "Week 12 of 2026"


class TestResolvePeriod:
    """Period tokens resolve to inclusive (start, end) pairs"""

    TODAY = date(2026, 3, 18)

    def test_current_month(self):
        assert resolve_period("current-month", self.TODAY) == (date(2026, 3, 1), self.TODAY)

    def test_last_month(self):
        assert resolve_period("last-month", self.TODAY) == (date(2026, 2, 1), date(2026, 2, 28))

    def test_last_month_in_january_wraps_year(self):
        assert resolve_period("last-month", date(2026, 1, 10)) == (date(2025, 12, 1), date(2025, 12, 31))

    def test_last_90_days(self):
        assert resolve_period("last-90-days", self.TODAY) == (date(2025, 12, 18), self.TODAY)

    def test_last_12_months(self):
        assert resolve_period("last-12-months", self.TODAY) == (date(2025, 3, 18), self.TODAY)

    def test_anchor_date_gives_its_week(self):
        assert resolve_period(date(2026, 3, 18), self.TODAY) == (date(2026, 3, 15), date(2026, 3, 21))

    def test_anchor_iso_string(self):
        assert resolve_period("2024-01-07") == (date(2024, 1, 7), date(2024, 1, 13))

    def test_unknown_token_raises(self):
        with pytest.raises(ValueError):
            resolve_period("last-fortnight", self.TODAY)
