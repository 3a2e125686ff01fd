"""
Indicator aggregation functions. Pure functions with no side effects.

Each indicator rolls up per ward according to its aggregation method:

- sum:      total of the values in the period
- avg:      rounded mean of the values in the period
- snapshot: last known value at or before the period end

and then to the stake as a sum (sum, snapshot) or as the rounded mean of
the per-ward averages (avg), so every ward weighs the same regardless of
how many weeks it reported.
"""

import logging
import math
from datetime import date

import pandas as pd

from .loaders.utils import normalise_method

logger = logging.getLogger(__name__)

BY_WARD_COLUMNS = ["ward_id", "ward_name", "membership", "value", "n_obs"]


def round_half_up(val: float) -> float:
    """Round .5 upwards (2.5 -> 3), unlike Python's banker's rounding."""
    if val is None or pd.isna(val):
        return float("nan")
    return float(math.floor(val + 0.5))


def _window(
    observations: pd.DataFrame,
    method: str,
    start: date | None,
    end: date,
) -> pd.DataFrame:
    """Rows that feed the aggregate.

    Snapshot lookback is not bounded by start: a ward keeps its last known
    value until a newer observation supersedes it.
    """
    if observations.empty:
        return observations
    mask = observations["week_start"] <= pd.Timestamp(end)
    if method != "snapshot" and start is not None:
        mask &= observations["week_start"] >= pd.Timestamp(start)
    return observations[mask]


def aggregate_by_ward(
    observations: pd.DataFrame,
    wards: pd.DataFrame,
    method: str,
    start: date | None,
    end: date,
) -> pd.DataFrame:
    """Aggregate one indicator's observations per ward.

    Parameters
    ----------
    observations : rows of a single indicator (ward_id, value, week_start).
    wards : ward catalog (id, name, membership_count).
    method : sum / avg / snapshot (backend spellings accepted).
    start, end : inclusive period bounds; start may be None (no lower bound).

    Returns
    -------
    DataFrame with columns: ward_id, ward_name, membership, value, n_obs
    One row per ward. Wards without data get 0, except for avg where the
    value is NaN so they drop out of the stake average and the ranking.
    """
    method = normalise_method(method)
    window = _window(observations, method, start, end)

    result = pd.DataFrame({
        "ward_id": wards["id"].astype(str).values,
        "ward_name": wards["name"].values,
        "membership": wards["membership_count"].values,
    })

    if window.empty:
        result["value"] = float("nan") if method == "avg" else 0.0
        result["n_obs"] = 0
        return result[BY_WARD_COLUMNS]

    grouped = window.groupby("ward_id")["value"]
    counts = grouped.size()

    if method == "sum":
        values = grouped.sum()
    elif method == "avg":
        values = grouped.mean().map(round_half_up)
    else:
        latest_first = window.sort_values("week_start", ascending=False, kind="stable")
        values = latest_first.groupby("ward_id")["value"].first()

    result["value"] = result["ward_id"].map(values).astype(float)
    result["n_obs"] = result["ward_id"].map(counts).fillna(0).astype(int)
    if method != "avg":
        result["value"] = result["value"].fillna(0.0)

    return result[BY_WARD_COLUMNS]


def org_total(by_ward: pd.DataFrame, method: str) -> float:
    """Roll per-ward aggregates up to the stake.

    avg is an average of averages: wards without data are left out of the
    denominator. Empty input yields 0.
    """
    method = normalise_method(method)
    if by_ward.empty:
        return 0.0
    if method == "avg":
        values = by_ward["value"].dropna()
        if values.empty:
            return 0.0
        return round_half_up(values.mean())
    return float(by_ward["value"].fillna(0).sum())


def ward_aggregate(
    observations: pd.DataFrame,
    ward_id: str,
    method: str,
    start: date | None,
    end: date,
) -> float:
    """Aggregate for a single ward; 0 when the ward has no data."""
    method = normalise_method(method)
    rows = observations[observations["ward_id"] == str(ward_id)] if not observations.empty else observations
    window = _window(rows, method, start, end)
    if window.empty:
        return 0.0
    if method == "sum":
        return float(window["value"].sum())
    if method == "avg":
        return round_half_up(window["value"].mean())
    latest = window.sort_values("week_start", ascending=False, kind="stable").iloc[0]
    return float(latest["value"])


def observations_for(observations: pd.DataFrame, indicator_id: str) -> pd.DataFrame:
    if observations.empty:
        return observations
    return observations[observations["indicator_id"] == str(indicator_id)]


def aggregate_indicator(
    indicator: pd.Series | dict,
    observations: pd.DataFrame,
    wards: pd.DataFrame,
    start: date | None,
    end: date,
) -> dict:
    """Per-ward and stake aggregate for one indicator.

    Returns
    -------
    Dict with structure:
    {
        "indicator_id": ..., "slug": ..., "display_name": ...,
        "aggregation_method": "sum" | "avg" | "snapshot",
        "by_ward": DataFrame (see aggregate_by_ward),
        "total": float,
    }
    """
    method = normalise_method(indicator["aggregation_method"])
    rows = observations_for(observations, indicator["id"])
    by_ward = aggregate_by_ward(rows, wards, method, start, end)

    return {
        "indicator_id": str(indicator["id"]),
        "slug": indicator["slug"],
        "display_name": indicator["display_name"],
        "aggregation_method": method,
        "by_ward": by_ward,
        "total": org_total(by_ward, method),
    }


def aggregate_all(
    indicators: pd.DataFrame,
    observations: pd.DataFrame,
    wards: pd.DataFrame,
    start: date | None,
    end: date,
) -> list[dict]:
    """aggregate_indicator for every indicator, in catalog order."""
    results = [
        aggregate_indicator(ind, observations, wards, start, end)
        for _, ind in indicators.iterrows()
    ]
    logger.info("Aggregated %d indicators for %s .. %s", len(results), start, end)
    return results


def weekly_totals(
    observations: pd.DataFrame,
    start: date | None,
    end: date,
) -> pd.Series:
    """Stake-wide sum per week_start (one indicator's rows), oldest first."""
    window = _window(observations, "sum", start, end)
    if window.empty:
        return pd.Series(dtype=float)
    return window.groupby("week_start")["value"].sum().sort_index()
