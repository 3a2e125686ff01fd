"""
Annual targets: matrix per ward, stake totals, and progress against a target.
"""

import logging
from datetime import date

import pandas as pd

from .config import PROGRESS_AMBER_BAND
from .kpis import observations_for, round_half_up, ward_aggregate
from .periods import to_date

logger = logging.getLogger(__name__)


def build_target_matrix(targets: pd.DataFrame) -> dict[str, dict[str, float]]:
    """{ward_id: {indicator_id: target_value}} for one year's targets."""
    matrix: dict[str, dict[str, float]] = {}
    for _, row in targets.iterrows():
        matrix.setdefault(str(row["ward_id"]), {})[str(row["indicator_id"])] = float(row["target_value"])
    return matrix


def org_target_totals(targets: pd.DataFrame, indicators: pd.DataFrame) -> dict[str, float]:
    """Stake target per indicator: sum of ward targets, 0 when none are set."""
    totals = {str(ind_id): 0.0 for ind_id in indicators["id"]}
    if targets.empty:
        return totals
    sums = targets.groupby("indicator_id")["target_value"].sum()
    for ind_id, total in sums.items():
        if str(ind_id) in totals:
            totals[str(ind_id)] = float(total)
    return totals


def calc_progress(aggregate: float, target: float | None) -> dict:
    """Return progress against a target.

    progress_percent is clamped to [0, 100]; gap never goes negative.
    A missing or zero target yields 0% progress rather than an error.

    Returns
    -------
    {"progress_percent": int, "gap": float, "met": bool}
    """
    aggregate = 0.0 if aggregate is None or pd.isna(aggregate) else float(aggregate)
    target = 0.0 if target is None or pd.isna(target) else float(target)

    if target > 0:
        progress = int(min(100.0, max(0.0, round_half_up(aggregate / target * 100))))
    else:
        progress = 0

    return {
        "progress_percent": progress,
        "gap": max(0.0, target - aggregate),
        "met": target > 0 and aggregate >= target,
    }


def classify_progress(progress_percent: float, met: bool, has_target: bool = True) -> str:
    """Return 'green', 'amber', 'red' or 'grey' for a progress card.

    green  if the target is met
    amber  if progress >= PROGRESS_AMBER_BAND
    red    otherwise
    grey   when there is no target
    """
    if not has_target:
        return "grey"
    if met:
        return "green"
    if progress_percent >= PROGRESS_AMBER_BAND:
        return "amber"
    return "red"


def ward_progress(
    ward_id: str,
    year: int,
    indicators: pd.DataFrame,
    observations: pd.DataFrame,
    targets: pd.DataFrame,
    today: date | None = None,
) -> pd.DataFrame:
    """Year-to-date aggregate against target for every indicator of one ward.

    The period runs from 1 January of `year` to today (or 31 December for a
    past year).

    Returns
    -------
    DataFrame with columns:
        indicator_id, display_name, aggregation_method, current_value,
        target, progress_percent, gap, met, status
    """
    today = to_date(today or date.today())
    start = date(int(year), 1, 1)
    end = min(today, date(int(year), 12, 31))

    matrix = build_target_matrix(targets)
    ward_targets = matrix.get(str(ward_id), {})

    rows = []
    for _, ind in indicators.iterrows():
        ind_id = str(ind["id"])
        current = ward_aggregate(
            observations_for(observations, ind_id), ward_id, ind["aggregation_method"], start, end,
        )
        target = ward_targets.get(ind_id)
        progress = calc_progress(current, target)
        rows.append({
            "indicator_id": ind_id,
            "display_name": ind["display_name"],
            "aggregation_method": ind["aggregation_method"],
            "current_value": current,
            "target": target,
            **progress,
            "status": classify_progress(
                progress["progress_percent"], progress["met"], has_target=bool(target),
            ),
        })

    columns = [
        "indicator_id", "display_name", "aggregation_method", "current_value",
        "target", "progress_percent", "gap", "met", "status",
    ]
    return pd.DataFrame(rows, columns=columns)
