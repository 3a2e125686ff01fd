"""
Dashboard-ready output functions.

These are the entry points the Streamlit app calls. Each returns plain
dicts or DataFrames ready for rendering cards, charts and tables.
"""

import logging
from datetime import date

import pandas as pd

from .backend import BackendClient
from .config import INDICATOR_REGISTRY
from .kpis import aggregate_all, aggregate_indicator, observations_for, round_half_up, weekly_totals
from .loaders import load_latest_week_start
from .periods import resolve_period, shift_week, week_end, week_start, year_start
from .ranking import best_and_worst, rank_wards
from .targets import build_target_matrix, calc_progress

logger = logging.getLogger(__name__)


def _fmt(val: float) -> str:
    if val is None or pd.isna(val):
        return "0"
    return f"{val:,.0f}"


def _stake_value(indicator: pd.Series, observations: pd.DataFrame, wards: pd.DataFrame,
                 method: str, start: date | None, end: date) -> float:
    ind = indicator.copy()
    ind["aggregation_method"] = method
    return aggregate_indicator(ind, observations, wards, start, end)["total"]


def _year_average(series: pd.Series) -> float:
    """Mean of the non-zero weekly stake totals (unreported weeks are skipped)."""
    non_zero = series[series > 0]
    if non_zero.empty:
        return 0.0
    return round_half_up(non_zero.mean())


def build_card(
    indicator: pd.Series,
    observations: pd.DataFrame,
    wards: pd.DataFrame,
    stake_target: float,
    reference_date,
) -> dict:
    """Headline value and secondary line for one indicator card.

    The card mode comes from INDICATOR_REGISTRY; unregistered indicators
    show the selected week's stake total.

    Returns
    -------
    {"indicator_id", "slug", "display_name", "card", "value", "secondary"}
    """
    slug = indicator["slug"]
    registry = INDICATOR_REGISTRY.get(slug, {})
    mode = registry.get("card", "week")
    secondary_mode = registry.get("secondary")

    sunday = week_start(reference_date)
    saturday = week_end(reference_date)
    jan1 = year_start(sunday)
    rows = observations_for(observations, indicator["id"])
    weekly = weekly_totals(rows, jan1, saturday)
    target = float(stake_target or 0)

    if mode == "year_to_date":
        value = _stake_value(indicator, rows, wards, "sum", jan1, saturday)
    elif mode == "month_to_date":
        month_first = sunday.replace(day=1)
        month_last = (pd.Timestamp(month_first) + pd.offsets.MonthEnd(0)).date()
        value = _stake_value(indicator, rows, wards, "sum", month_first, month_last)
    elif mode in ("snapshot", "snapshot_peak"):
        value = _stake_value(indicator, rows, wards, "snapshot", None, saturday)
    else:
        value = _stake_value(indicator, rows, wards, "sum", sunday, saturday)

    secondary = ""
    if secondary_mode == "target_percent":
        progress = calc_progress(value, target)
        secondary = f"Target: {_fmt(target)} ({progress['progress_percent']}%)"
    elif secondary_mode == "year_average":
        secondary = f"Year average: {_fmt(_year_average(weekly))}"
    elif secondary_mode == "annual_target":
        secondary = f"Annual target: {_fmt(target)}" if target > 0 else "Monthly"
    elif secondary_mode == "target_delta":
        if target > 0:
            diff = value - target
            sign = "+" if diff > 0 else ""
            secondary = f"Target: {_fmt(target)} ({sign}{_fmt(diff)})"
        else:
            secondary = "Total active"
    elif secondary_mode == "year_peak":
        peak = float(weekly.max()) if not weekly.empty else 0.0
        secondary = f"Year peak: {_fmt(peak)}"
    elif secondary_mode == "label":
        secondary = "Total active"

    return {
        "indicator_id": str(indicator["id"]),
        "slug": slug,
        "display_name": indicator["display_name"],
        "card": mode,
        "value": float(value),
        "secondary": secondary,
    }


def get_indicator_cards(
    indicators: pd.DataFrame,
    observations: pd.DataFrame,
    wards: pd.DataFrame,
    stake_targets: dict[str, float],
    reference_date,
) -> list[dict]:
    """One card per indicator for the week containing reference_date.

    Parameters
    ----------
    observations : every observation up to the week's end (snapshot cards
                   need the history before the week).
    stake_targets : {indicator_id: stake target} from org_target_totals().
    """
    cards = [
        build_card(ind, observations, wards, stake_targets.get(str(ind["id"]), 0), reference_date)
        for _, ind in indicators.iterrows()
    ]
    logger.info("Built %d indicator cards for week of %s", len(cards), week_start(reference_date))
    return cards


def get_target_overview(
    indicators: pd.DataFrame,
    wards: pd.DataFrame,
    targets: pd.DataFrame,
) -> pd.DataFrame:
    """Ward x indicator target matrix with a Total row at the bottom.

    Returns
    -------
    DataFrame indexed by ward name (plus "Total"), one column per indicator
    display name. Missing targets are 0.
    """
    matrix = build_target_matrix(targets)
    data = {}
    for _, ind in indicators.iterrows():
        ind_id = str(ind["id"])
        data[ind["display_name"]] = [
            matrix.get(str(ward_id), {}).get(ind_id, 0.0) for ward_id in wards["id"]
        ]
    overview = pd.DataFrame(data, index=pd.Index(wards["name"], name="ward"))
    overview.loc["Total"] = overview.sum(axis=0)
    return overview


def get_period_summary(
    indicators: pd.DataFrame,
    observations: pd.DataFrame,
    wards: pd.DataFrame,
    period,
    today: date | None = None,
) -> pd.DataFrame:
    """Stake total, best and worst ward per indicator for a period.

    Returns
    -------
    DataFrame with columns:
        indicator_id, display_name, aggregation_method, total,
        best_ward, best_value, best_score, worst_ward, worst_value, worst_score,
        start, end
    """
    start, end = resolve_period(period, today)
    rows = []
    for result in aggregate_all(indicators, observations, wards, start, end):
        extremes = best_and_worst(result["by_ward"])
        rows.append({
            "indicator_id": result["indicator_id"],
            "display_name": result["display_name"],
            "aggregation_method": result["aggregation_method"],
            "total": result["total"],
            "best_ward": extremes["best"]["name"],
            "best_value": extremes["best"]["value"],
            "best_score": extremes["best"]["score"],
            "worst_ward": extremes["worst"]["name"],
            "worst_value": extremes["worst"]["value"],
            "worst_score": extremes["worst"]["score"],
            "start": start,
            "end": end,
        })
    columns = [
        "indicator_id", "display_name", "aggregation_method", "total",
        "best_ward", "best_value", "best_score", "worst_ward", "worst_value", "worst_score",
        "start", "end",
    ]
    return pd.DataFrame(rows, columns=columns)


def get_ward_ranking(
    indicator: pd.Series,
    observations: pd.DataFrame,
    wards: pd.DataFrame,
    period,
    today: date | None = None,
) -> pd.DataFrame:
    """Ranked per-capita table for one indicator over a period."""
    start, end = resolve_period(period, today)
    return rank_wards(aggregate_indicator(indicator, observations, wards, start, end)["by_ward"])


def get_latest_week(client: BackendClient, today: date | None = None) -> date:
    """Sunday of the most recent recorded week, or of the current week."""
    latest = load_latest_week_start(client)
    if latest is None:
        return week_start(today or date.today())
    return week_start(latest)


def navigate_week(anchor, offset: int, today: date | None = None) -> date:
    """Move the week anchor, never past the current week."""
    target = week_start(shift_week(anchor, offset))
    return min(target, week_start(today or date.today()))
