"""
Data transforms: split the flattened report rows into ward and indicator
dimension tables plus an observation fact table, and pivot facts into the
weekly series the charts draw.
"""

import logging

import pandas as pd

from .config import INDICATOR_REGISTRY

logger = logging.getLogger(__name__)


def build_dim_ward(report_rows: pd.DataFrame) -> pd.DataFrame:
    """Distinct wards in the report rows, ordered by name.

    Returns
    -------
    DataFrame with columns: id, name, membership_count
    The column names match load_wards() so the result feeds the aggregator.
    """
    if report_rows.empty:
        return pd.DataFrame(columns=["id", "name", "membership_count"])
    dim = (
        report_rows[["ward_id", "ward_name", "ward_membership"]]
        .drop_duplicates(subset="ward_id", keep="last")
        .rename(columns={"ward_id": "id", "ward_name": "name", "ward_membership": "membership_count"})
        .sort_values("name", kind="stable")
        .reset_index(drop=True)
    )
    logger.info("Built dim_ward with %d rows", len(dim))
    return dim


def build_dim_indicator(report_rows: pd.DataFrame) -> pd.DataFrame:
    """Distinct indicators in the report rows, in catalog order.

    Returns
    -------
    DataFrame with columns:
        id, slug, display_name, short_name, indicator_type,
        aggregation_method, responsibility, order_index
    """
    columns = [
        "id", "slug", "display_name", "short_name", "indicator_type",
        "aggregation_method", "responsibility", "order_index",
    ]
    if report_rows.empty:
        return pd.DataFrame(columns=columns)

    dim = (
        report_rows[[
            "indicator_id", "slug", "display_name", "indicator_type",
            "aggregation_method", "responsibility", "order_index",
        ]]
        .drop_duplicates(subset="indicator_id")
        .rename(columns={"indicator_id": "id"})
        .sort_values(["order_index", "display_name"], kind="stable")
        .reset_index(drop=True)
    )
    dim["short_name"] = [
        INDICATOR_REGISTRY.get(slug, {}).get("short_name", name)
        for slug, name in zip(dim["slug"], dim["display_name"])
    ]
    logger.info("Built dim_indicator with %d rows", len(dim))
    return dim[columns]


def build_fact_observations(report_rows: pd.DataFrame) -> pd.DataFrame:
    """Observation facts in the loader shape: ward_id, indicator_id, value, week_start."""
    if report_rows.empty:
        return pd.DataFrame(columns=["ward_id", "indicator_id", "value", "week_start"])
    fact = report_rows[["ward_id", "indicator_id", "raw_value", "week_start"]].rename(
        columns={"raw_value": "value"}
    )
    return fact.sort_values("week_start", kind="stable").reset_index(drop=True)


def build_weekly_series(
    fact: pd.DataFrame,
    dim_ward: pd.DataFrame,
    indicator_id: str,
    weeks: list,
) -> pd.DataFrame:
    """Wide weekly table for one indicator: one row per week, one column per ward.

    Weeks without an entry for a ward are 0 so every line spans the window.
    """
    names = list(dim_ward["name"])
    index = pd.DatetimeIndex(sorted(pd.Timestamp(w) for w in weeks), name="week_start")
    rows = fact[fact["indicator_id"] == str(indicator_id)]
    if rows.empty:
        return pd.DataFrame(0.0, index=index, columns=names)

    id_to_name = dim_ward.set_index("id")["name"]
    rows = rows.assign(ward_name=rows["ward_id"].map(id_to_name))
    wide = rows.pivot_table(
        index="week_start", columns="ward_name", values="value", aggfunc="sum",
    )
    return wide.reindex(index=index, columns=names).fillna(0.0)
