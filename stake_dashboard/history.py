"""
History ledger: paginated, filtered listing of recorded entries with
edit and delete.

Every filter or page change is a fresh server round-trip; nothing is
cached between pages.
"""

import logging
from dataclasses import dataclass, field
from datetime import date

import pandas as pd

from .backend import BackendClient
from .config import HISTORY_PAGE_SIZES, MESSAGES, TABLE_OBSERVATIONS
from .entry import validate_value
from .loaders.utils import coerce_dates, coerce_numeric, flatten_embedded, rows_to_frame, select_all
from .periods import is_week_anchor, to_date, week_number, week_year

logger = logging.getLogger(__name__)

HISTORY_COLUMNS = [
    "id", "value", "week_start", "created_at",
    "ward_id", "ward_name", "indicator_id", "indicator_name",
]

_HISTORY_SELECT = (
    "id,value,week_start,created_at,"
    "wards!inner(id,name),indicators!inner(id,display_name)"
)


class EntryValidationError(ValueError):
    """An edit was rejected before reaching the backend."""


class ConfirmationRequired(RuntimeError):
    """Delete was requested without explicit confirmation."""


@dataclass
class HistoryFilters:
    ward_ids: list[str] = field(default_factory=list)
    indicator_ids: list[str] = field(default_factory=list)
    week_start: date | None = None
    created_from: date | None = None
    created_to: date | None = None
    page: int = 1
    page_size: int = HISTORY_PAGE_SIZES[0]

    def to_backend(self) -> list[tuple]:
        filters = []
        if self.ward_ids:
            filters.append(("ward_id", "in", list(self.ward_ids)))
        if self.indicator_ids:
            filters.append(("indicator_id", "in", list(self.indicator_ids)))
        if self.week_start is not None:
            filters.append(("week_start", "eq", to_date(self.week_start).isoformat()))
        if self.created_from is not None:
            filters.append(("created_at", "gte", to_date(self.created_from).isoformat()))
        if self.created_to is not None:
            # inclusive of the whole end day
            end = pd.Timestamp(to_date(self.created_to)) + pd.Timedelta(days=1)
            filters.append(("created_at", "lt", end.date().isoformat()))
        return filters


@dataclass
class HistoryPage:
    rows: pd.DataFrame
    total_count: int
    page: int
    page_size: int

    @property
    def page_count(self) -> int:
        return max(1, -(-self.total_count // self.page_size))

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.page_count


def _flatten(row: dict) -> dict:
    flat = flatten_embedded(row, "wards", {"id": "ward_id", "name": "ward_name"})
    return flatten_embedded(flat, "indicators", {"id": "indicator_id", "display_name": "indicator_name"})


class HistoryLedger:
    """Browse, edit and delete recorded observations."""

    def __init__(self, client: BackendClient):
        self.client = client
        self.last_filters: HistoryFilters | None = None

    def fetch(self, filters: HistoryFilters) -> HistoryPage:
        """One page of entries, newest week first, with the exact total.

        Ordering is week_start desc then created_at desc.
        """
        page_size = int(filters.page_size)
        if page_size not in HISTORY_PAGE_SIZES:
            raise ValueError(f"Page size must be one of {HISTORY_PAGE_SIZES}, got {page_size}")
        page = max(1, int(filters.page))

        rows, total = self.client.select_with_count(
            TABLE_OBSERVATIONS,
            _HISTORY_SELECT,
            filters=filters.to_backend(),
            order=["week_start.desc", "created_at.desc"],
            limit=page_size,
            offset=(page - 1) * page_size,
        )
        df = rows_to_frame([_flatten(r) for r in rows], HISTORY_COLUMNS)
        df = coerce_numeric(df, ["value"], fill=0)
        df = coerce_dates(df, ["week_start", "created_at"])
        df["week_label"] = [
            f"Week {week_number(d)} ({week_year(d)})" if pd.notna(d) else ""
            for d in df["week_start"]
        ]

        self.last_filters = filters
        logger.info("History page %d: %d of %d entries", page, len(df), total)
        return HistoryPage(rows=df, total_count=int(total), page=page, page_size=page_size)

    def _refresh(self) -> HistoryPage | None:
        if self.last_filters is None:
            return None
        return self.fetch(self.last_filters)

    def update_entry(self, entry_id: str, value, week_start_value) -> HistoryPage | None:
        """Change the value and/or week of an entry, then reload the page.

        Raises
        ------
        EntryValidationError
            value is not a non-negative number within the ceiling, or the
            week does not start on a Sunday.
        """
        error = validate_value(value)
        if error:
            raise EntryValidationError(error)
        try:
            day = to_date(week_start_value)
        except (TypeError, ValueError) as exc:
            raise EntryValidationError(MESSAGES["required"]) from exc
        if not is_week_anchor(day):
            raise EntryValidationError(MESSAGES["date_not_sunday"])

        self.client.update(
            TABLE_OBSERVATIONS,
            {"value": float(value), "week_start": day.isoformat()},
            [("id", "eq", str(entry_id))],
        )
        logger.info("Updated entry %s", entry_id)
        return self._refresh()

    def delete_entry(self, entry_id: str, confirmed: bool = False) -> HistoryPage | None:
        if not confirmed:
            raise ConfirmationRequired(MESSAGES["confirm_delete"])
        self.client.delete(TABLE_OBSERVATIONS, [("id", "eq", str(entry_id))])
        logger.info("Deleted entry %s", entry_id)
        return self._refresh()

    def week_options(self) -> list[tuple[date, str]]:
        """Distinct recorded weeks, newest first, as (date, "Week N (YYYY)")."""
        rows = select_all(
            self.client, TABLE_OBSERVATIONS, "week_start", order=["week_start.desc", "id.desc"],
        )
        seen: list[date] = []
        for row in rows:
            if not row.get("week_start"):
                continue
            day = to_date(row["week_start"])
            if day not in seen:
                seen.append(day)
        return [(d, f"Week {week_number(d)} ({week_year(d)})") for d in seen]
