"""
Loaders for the static catalog: indicators and wards.

Both are read once per session; the app keeps them in session state.
"""

import logging

import pandas as pd

from ..backend import BackendClient
from ..config import TABLE_INDICATORS, TABLE_WARDS
from .utils import coerce_numeric, normalise_method, rows_to_frame

logger = logging.getLogger(__name__)

INDICATOR_COLUMNS = [
    "id", "slug", "display_name", "indicator_type", "aggregation_method",
    "responsibility", "order_index", "active",
]
WARD_COLUMNS = ["id", "name", "membership_count", "active"]


def load_indicators(client: BackendClient, active_only: bool = True) -> pd.DataFrame:
    """Load the indicator catalog ordered by order_index.

    Returns
    -------
    DataFrame with columns:
        id, slug, display_name, indicator_type, aggregation_method,
        responsibility, order_index, active

    aggregation_method is normalised to sum / avg / snapshot.
    """
    filters = [("active", "eq", "true")] if active_only else None
    rows = client.select(TABLE_INDICATORS, "*", filters=filters, order=["order_index.asc"])
    df = rows_to_frame(rows, INDICATOR_COLUMNS)

    df["id"] = df["id"].astype(str)
    df["aggregation_method"] = df["aggregation_method"].map(normalise_method)
    df["responsibility"] = df["responsibility"].fillna("")
    df["indicator_type"] = df["indicator_type"].fillna("")
    df = coerce_numeric(df, ["order_index"], fill=0)
    df["active"] = df["active"].fillna(True).astype(bool)
    df = df.sort_values("order_index", kind="stable").reset_index(drop=True)

    logger.info("Loaded %d indicators", len(df))
    return df


def load_wards(client: BackendClient, active_only: bool = True) -> pd.DataFrame:
    """Load wards with their membership counts, ordered by name.

    Returns
    -------
    DataFrame with columns: id, name, membership_count, active
    """
    filters = [("active", "eq", "true")] if active_only else None
    rows = client.select(TABLE_WARDS, "id,name,membership_count,active", filters=filters, order=["name.asc"])
    df = rows_to_frame(rows, WARD_COLUMNS)

    df["id"] = df["id"].astype(str)
    df = coerce_numeric(df, ["membership_count"], fill=0)
    df["active"] = df["active"].fillna(True).astype(bool)
    df = df.sort_values("name", kind="stable").reset_index(drop=True)

    logger.info("Loaded %d wards", len(df))
    return df
