"""
Period resolution and Sunday-anchored week arithmetic.

Weeks start on Sunday. Week numbers follow one convention everywhere:
week 1 is the Sunday-started week that contains 1 January, and each
following Sunday opens the next week. A week is numbered in the year of
its Saturday.
"""

import logging
from datetime import date, datetime, timedelta

import pandas as pd

from .config import WEEK_ANCHOR_WEEKDAY

logger = logging.getLogger(__name__)

PERIOD_CHOICES: dict[str, str] = {
    "current-month": "Current month",
    "last-month": "Last month",
    "last-90-days": "Last 90 days",
    "last-12-months": "Last 12 months",
}


def to_date(val) -> date:
    """Coerce a date, datetime, pandas Timestamp or ISO string to a date."""
    if isinstance(val, pd.Timestamp):
        return val.date()
    if isinstance(val, datetime):
        return val.date()
    if isinstance(val, date):
        return val
    return date.fromisoformat(str(val)[:10])


def _sunday_offset(d: date) -> int:
    """Days elapsed since the most recent anchor day (0 on the anchor day)."""
    return (d.weekday() - WEEK_ANCHOR_WEEKDAY) % 7


def week_start(val) -> date:
    """Most recent Sunday at or before the given date."""
    d = to_date(val)
    return d - timedelta(days=_sunday_offset(d))


def week_end(val) -> date:
    """Saturday closing the week that contains the given date."""
    return week_start(val) + timedelta(days=6)


def is_week_anchor(val) -> bool:
    d = to_date(val)
    return _sunday_offset(d) == 0


def week_year(val) -> int:
    """Year a week is numbered in: the year of its Saturday."""
    return week_end(val).year


def week_number(val) -> int:
    """Sunday-anchored week number of the week containing the date.

    Week 1 of a year is the week holding its 1 January, so the last days of
    December can fall in week 1 of the following year.
    """
    sunday = week_start(val)
    first_sunday = week_start(date(week_year(sunday), 1, 1))
    return (sunday - first_sunday).days // 7 + 1


def week_label(val) -> str:
    return f"Week {week_number(val)} of {week_year(val)}"


def shift_week(val, offset: int) -> date:
    """Move the anchor by whole weeks (negative goes back)."""
    return to_date(val) + timedelta(weeks=offset)


def resolve_period(token, today: date | None = None) -> tuple[date, date]:
    """Convert a period token into an inclusive (start, end) date pair.

    Parameters
    ----------
    token : one of PERIOD_CHOICES, or an anchor date (date or ISO string)
            for week mode.
    today : reference "now"; defaults to date.today().

    Returns
    -------
    (start, end), both inclusive.
    """
    today = today or date.today()

    if token == "current-month":
        return today.replace(day=1), today

    if token == "last-month":
        first_this_month = today.replace(day=1)
        last_prev = first_this_month - timedelta(days=1)
        return last_prev.replace(day=1), last_prev

    if token == "last-90-days":
        return today - timedelta(days=90), today

    if token == "last-12-months":
        start = (pd.Timestamp(today) - pd.DateOffset(months=12)).date()
        return start, today

    try:
        anchor = to_date(token)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Unknown period: {token!r}") from exc

    return week_start(anchor), week_end(anchor)


def year_start(val) -> date:
    return date(to_date(val).year, 1, 1)
