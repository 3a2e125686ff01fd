"""
Loaders for weekly observations (weekly_indicator_data) and the flattened
report rows returned by the get_report_data procedure.
"""

import logging
from datetime import date

import pandas as pd

from ..backend import BackendClient
from ..config import RECENT_ENTRIES_LIMIT, RPC_REPORT_DATA, TABLE_OBSERVATIONS
from ..periods import to_date
from .utils import (
    coerce_dates,
    coerce_numeric,
    flatten_embedded,
    normalise_method,
    rows_to_frame,
    select_all,
)

logger = logging.getLogger(__name__)

OBSERVATION_COLUMNS = [
    "id", "ward_id", "indicator_id", "value", "week_start", "created_at", "created_by",
]
RECENT_COLUMNS = ["id", "value", "week_start", "ward_name", "indicator_name"]
REPORT_COLUMNS = [
    "ward_id", "ward_name", "ward_membership",
    "indicator_id", "display_name", "slug", "indicator_type", "aggregation_method",
    "responsibility", "order_index", "week_start", "raw_value",
    "aggregation_label",
]


def _prepare_observations(df: pd.DataFrame) -> pd.DataFrame:
    for col in ("id", "ward_id", "indicator_id"):
        df[col] = df[col].astype(str)
    df = coerce_numeric(df, ["value"], fill=0)
    df = coerce_dates(df, ["week_start", "created_at"])
    return df


def load_observations(
    client: BackendClient,
    start: date | None = None,
    end: date | None = None,
    ward_ids: list[str] | None = None,
    indicator_ids: list[str] | None = None,
) -> pd.DataFrame:
    """Load observations with week_start in [start, end].

    Either bound may be None. Snapshot indicators need history before the
    selected period, so callers pass start=None for them.

    Returns
    -------
    DataFrame with columns:
        id, ward_id, indicator_id, value, week_start, created_at, created_by
    week_start and created_at are day-normalised Timestamps.
    """
    filters = []
    if start is not None:
        filters.append(("week_start", "gte", to_date(start).isoformat()))
    if end is not None:
        filters.append(("week_start", "lte", to_date(end).isoformat()))
    if ward_ids:
        filters.append(("ward_id", "in", list(ward_ids)))
    if indicator_ids:
        filters.append(("indicator_id", "in", list(indicator_ids)))

    rows = select_all(
        client,
        TABLE_OBSERVATIONS,
        ",".join(OBSERVATION_COLUMNS),
        filters=filters,
        order=["week_start.asc", "id.asc"],
    )
    df = _prepare_observations(rows_to_frame(rows, OBSERVATION_COLUMNS))

    logger.info("Loaded %d observations (%s .. %s)", len(df), start, end)
    return df


def load_latest_week_start(client: BackendClient) -> date | None:
    """Most recent week_start on record, used as the dashboard's first anchor."""
    rows = client.select(TABLE_OBSERVATIONS, "week_start", order=["week_start.desc"], limit=1)
    if not rows:
        return None
    return to_date(rows[0]["week_start"])


def load_recent_entries(client: BackendClient, limit: int = RECENT_ENTRIES_LIMIT) -> pd.DataFrame:
    """Latest entries by creation time, with ward and indicator names."""
    rows = client.select(
        TABLE_OBSERVATIONS,
        "id,value,week_start,wards(name),indicators(display_name)",
        order=["created_at.desc"],
        limit=limit,
    )
    flat = [
        flatten_embedded(
            flatten_embedded(row, "wards", {"name": "ward_name"}),
            "indicators", {"display_name": "indicator_name"},
        )
        for row in rows
    ]
    df = rows_to_frame(flat, RECENT_COLUMNS)
    df = coerce_numeric(df, ["value"], fill=0)
    df = coerce_dates(df, ["week_start"])
    return df


def load_report_rows(client: BackendClient, start: date, end: date) -> pd.DataFrame:
    """Pre-joined rows for the report, one per (ward, indicator, week).

    Returns
    -------
    DataFrame with columns:
        ward_id, ward_name, ward_membership, indicator_id, display_name, slug,
        indicator_type, aggregation_method, responsibility, order_index,
        week_start, raw_value, aggregation_label

    aggregation_method is normalised to sum / avg / snapshot;
    aggregation_label keeps the spelling the backend returned.
    """
    rows = client.rpc(
        RPC_REPORT_DATA,
        {"p_start": to_date(start).isoformat(), "p_end": to_date(end).isoformat()},
    )
    df = rows_to_frame(rows, REPORT_COLUMNS)
    for col in ("ward_id", "indicator_id"):
        df[col] = df[col].astype(str)
    df = coerce_numeric(df, ["ward_membership", "order_index", "raw_value"], fill=0)
    df = coerce_dates(df, ["week_start"])
    # backend spelling kept for the export; aggregation uses the canonical method
    df["aggregation_label"] = df["aggregation_method"].fillna("").astype(str)
    df["aggregation_method"] = df["aggregation_method"].map(normalise_method)
    df["responsibility"] = df["responsibility"].fillna("")
    df["indicator_type"] = df["indicator_type"].fillna("")

    logger.info("Loaded %d report rows (%s .. %s)", len(df), start, end)
    return df
