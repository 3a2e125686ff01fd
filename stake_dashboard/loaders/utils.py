"""
Shared utilities for backend ingestion: row-to-frame conversion, date and
number normalisation, embedded-resource flattening, paged reads.
"""

import logging
from typing import Any

import pandas as pd

from ..config import AGGREGATION_ALIASES, DEFAULT_AGGREGATION, FETCH_PAGE_SIZE

logger = logging.getLogger(__name__)


def normalise_date(val: Any) -> pd.Timestamp | None:
    """Convert an ISO date/datetime string or date object to a day Timestamp.

    Time-of-day and timezone are dropped; week_start values are calendar days.
    Returns None for empty or unparseable values.
    """
    if val is None or val == "":
        return None
    try:
        ts = pd.Timestamp(val)
    except (ValueError, TypeError):
        logger.warning("Could not parse date value: %s", val)
        return None
    if ts is pd.NaT:
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_localize(None)
    return ts.normalize()


def safe_float(val: Any) -> float | None:
    """Coerce a value to float, returning None for non-numeric values."""
    if val is None:
        return None
    if isinstance(val, str):
        val = val.strip().replace(",", ".")
        if not val:
            return None
    try:
        return float(val)
    except (ValueError, TypeError):
        return None


def normalise_method(val: Any) -> str:
    """Map a backend aggregation method spelling to sum / avg / snapshot."""
    key = str(val or "").strip().lower()
    method = AGGREGATION_ALIASES.get(key)
    if method is None:
        logger.warning("Unknown aggregation method %r, using %s", val, DEFAULT_AGGREGATION)
        return DEFAULT_AGGREGATION
    return method


def flatten_embedded(row: dict, resource: str, fields: dict[str, str]) -> dict:
    """Lift fields of an embedded PostgREST resource onto the row.

    e.g. {"wards": {"name": "A"}} with fields {"name": "ward_name"}
    becomes {"ward_name": "A"}.
    """
    out = {k: v for k, v in row.items() if k != resource}
    embedded = row.get(resource) or {}
    for src, dst in fields.items():
        out[dst] = embedded.get(src)
    return out


def rows_to_frame(rows: list[dict], columns: list[str]) -> pd.DataFrame:
    """Build a DataFrame with a fixed column schema, even when rows is empty."""
    if not rows:
        return pd.DataFrame(columns=columns)
    df = pd.DataFrame(rows)
    for col in columns:
        if col not in df.columns:
            df[col] = None
    return df[columns].copy()


def coerce_dates(df: pd.DataFrame, columns: list[str]) -> pd.DataFrame:
    for col in columns:
        if col in df.columns:
            df[col] = pd.to_datetime(df[col].map(normalise_date), errors="coerce")
    return df


def coerce_numeric(df: pd.DataFrame, columns: list[str], fill: float | None = None) -> pd.DataFrame:
    for col in columns:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col].map(safe_float), errors="coerce")
            if fill is not None:
                df[col] = df[col].fillna(fill)
    return df


def select_all(
    client,
    table: str,
    columns: str = "*",
    filters: list[tuple[str, str, Any]] | None = None,
    order: list[str] | None = None,
    page_size: int = FETCH_PAGE_SIZE,
) -> list[dict]:
    """Read every matching row, one page at a time.

    The server may return fewer rows than asked for, so paging continues
    from however many rows have arrived until the exact count is reached.
    order must end on a unique column for pages not to overlap.
    """
    rows: list[dict] = []
    while True:
        page, total = client.select_with_count(
            table, columns, filters=filters, order=order, limit=page_size, offset=len(rows),
        )
        rows.extend(page)
        if not page or len(rows) >= total:
            break
    if len(rows) > page_size:
        logger.info("Read %d rows from %s in pages of %d", len(rows), table, page_size)
    return rows
