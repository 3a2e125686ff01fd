"""
Per-capita ranking of wards.

score = value / max(membership, 1) * 1000

A membership of zero or missing counts as 1, so the score is always finite.
Ties are broken by ward name so rankings are reproducible.
"""

import logging

import pandas as pd

logger = logging.getLogger(__name__)

PLACEHOLDER = {"name": "-", "value": 0, "score": 0}


def per_capita_score(value: float, membership: float | None) -> float:
    if membership is None or pd.isna(membership) or membership < 1:
        membership = 1
    if value is None or pd.isna(value):
        value = 0
    return value / membership * 1000


def rank_wards(by_ward: pd.DataFrame) -> pd.DataFrame:
    """Add score and rank columns, best first.

    Wards whose value is NaN (no data for an avg indicator) are left out.

    Returns
    -------
    by_ward columns + score, rank (1-based), sorted by score desc, name asc.
    """
    ranked = by_ward.dropna(subset=["value"]).copy()
    if ranked.empty:
        ranked["score"] = pd.Series(dtype=float)
        ranked["rank"] = pd.Series(dtype=int)
        return ranked.reset_index(drop=True)

    ranked["score"] = [
        per_capita_score(v, m) for v, m in zip(ranked["value"], ranked["membership"])
    ]
    ranked = ranked.sort_values(
        ["score", "ward_name"], ascending=[False, True], kind="stable"
    ).reset_index(drop=True)
    ranked["rank"] = range(1, len(ranked) + 1)
    return ranked


def _entry(row: pd.Series) -> dict:
    return {
        "ward_id": row["ward_id"],
        "name": row["ward_name"],
        "value": row["value"],
        "score": row["score"],
    }


def best_and_worst(by_ward: pd.DataFrame) -> dict:
    """Highest and lowest per-capita ward for one indicator.

    Falls back to a "-" placeholder (value 0, score 0) for both when there
    are no ranked wards or every aggregate is zero.
    """
    ranked = rank_wards(by_ward)
    if ranked.empty or (ranked["value"] == 0).all():
        return {"best": dict(PLACEHOLDER), "worst": dict(PLACEHOLDER)}

    # worst: lowest score; among equal scores the first name alphabetically
    worst_idx = ranked.sort_values(
        ["score", "ward_name"], ascending=[True, True], kind="stable"
    ).index[0]
    return {
        "best": _entry(ranked.iloc[0]),
        "worst": _entry(ranked.loc[worst_idx]),
    }


def rank_position(ranked: pd.DataFrame, ward_id: str) -> tuple[int | None, int]:
    """(1-based position, number of ranked wards); position None if absent."""
    total = len(ranked)
    match = ranked.index[ranked["ward_id"] == str(ward_id)]
    if len(match) == 0:
        return None, total
    return int(ranked.loc[match[0], "rank"]), total


def rank_tier(position: int | None, total: int) -> str:
    """'top' for the first third, 'bottom' for the last third, else 'middle'."""
    if position is None or total == 0:
        return "none"
    third = -(-total // 3)  # ceil
    if position <= third:
        return "top"
    if position > total - third:
        return "bottom"
    return "middle"
