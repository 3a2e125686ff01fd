"""
Simulated data generator for the stake dashboard.

Produces wards, the indicator catalog, weekly observations and annual
targets shaped exactly like the loader outputs, so the aggregation,
ranking, report and export steps can run without a backend.
All values are synthetic.
"""

from datetime import date

import numpy as np
import pandas as pd

from .config import INDICATOR_REGISTRY, WARD_UNIT_NUMBERS
from .periods import week_start

# ---------------------------------------------------------------------------
# Typical ward parameters (realistic ranges)
# ---------------------------------------------------------------------------
_MEMBERSHIP_RANGE = (250, 1100)

# slug -> display name, type, method, responsibility, weekly rate per 1000 members
_INDICATOR_PARAMS = {
    "frequencia_sacramental": ("Sacrament Meeting Attendance", "leading", "avg", "Bishopric", 180.0),
    "batismo_converso": ("Convert Baptisms", "lagging", "sum", "Ward Mission Leader", 0.5),
    "membros_retornando_a_igreja": ("Members Returning to Church", "leading", "snapshot", "Elders Quorum", 6.0),
    "membros_participantes": ("Participating Members", "lagging", "snapshot", "Ward Clerk", 260.0),
    "membros_jejuando": ("Members Paying Fast Offering", "leading", "sum", "Bishop", 20.0),
    "missionario_servindo_missao_do_brasil": ("Missionaries Serving", "lagging", "snapshot", "Bishop", 3.0),
    "recomendacao_templo_com_investidura": ("Temple Recommends (Endowed)", "lagging", "snapshot", "Bishopric", 70.0),
    "recomendacao_templo_sem_investidura": ("Temple Recommends (Not Endowed)", "lagging", "snapshot", "Bishopric", 15.0),
}

# Share of (ward, week) cells left unreported
_MISSING_RATE = 0.1


def generate_wards(seed: int = 42) -> pd.DataFrame:
    """Wards shaped like load_wards(): id, name, membership_count, active."""
    rng = np.random.default_rng(seed)
    names = sorted(WARD_UNIT_NUMBERS)
    return pd.DataFrame({
        "id": [f"w{i + 1}" for i in range(len(names))],
        "name": names,
        "membership_count": rng.integers(*_MEMBERSHIP_RANGE, size=len(names)).astype(float),
        "active": True,
    })


def generate_indicators() -> pd.DataFrame:
    """Indicator catalog shaped like load_indicators()."""
    rows = []
    for order, slug in enumerate(INDICATOR_REGISTRY, start=1):
        name, ind_type, method, responsibility, _ = _INDICATOR_PARAMS[slug]
        rows.append({
            "id": f"i{order}",
            "slug": slug,
            "display_name": name,
            "indicator_type": ind_type,
            "aggregation_method": method,
            "responsibility": responsibility,
            "order_index": float(order),
            "active": True,
        })
    return pd.DataFrame(rows)


def generate_observations(
    wards: pd.DataFrame,
    indicators: pd.DataFrame,
    start: date,
    end: date,
    seed: int = 42,
) -> pd.DataFrame:
    """Weekly observations for every Sunday in [start, end].

    sum/avg indicators draw an independent weekly value; snapshot indicators
    drift slowly from a per-ward starting level. About one cell in ten is
    left empty to mimic unreported weeks.

    Returns
    -------
    DataFrame shaped like load_observations():
        id, ward_id, indicator_id, value, week_start, created_at, created_by
    """
    rng = np.random.default_rng(seed)
    sundays = pd.date_range(week_start(start), end, freq="W-SUN")
    rows = []

    for _, ind in indicators.iterrows():
        rate = _INDICATOR_PARAMS.get(ind["slug"], ("", "", "sum", "", 10.0))[4]
        for _, ward in wards.iterrows():
            level = ward["membership_count"] * rate / 1000
            for sunday in sundays:
                if rng.random() < _MISSING_RATE:
                    continue
                if ind["aggregation_method"] == "snapshot":
                    level = max(0.0, level + rng.normal(0, max(level * 0.02, 0.3)))
                    value = round(level)
                elif ind["aggregation_method"] == "sum":
                    value = int(rng.poisson(level))
                else:
                    value = round(max(0.0, rng.normal(level, level * 0.08)))
                rows.append({
                    "ward_id": ward["id"],
                    "indicator_id": ind["id"],
                    "value": float(value),
                    "week_start": sunday,
                    "created_at": sunday + pd.Timedelta(days=1),
                    "created_by": "simulator",
                })

    df = pd.DataFrame(rows, columns=[
        "ward_id", "indicator_id", "value", "week_start", "created_at", "created_by",
    ])
    df.insert(0, "id", [f"o{i + 1}" for i in range(len(df))])
    return df.sort_values("week_start", kind="stable").reset_index(drop=True)


def generate_targets(
    wards: pd.DataFrame,
    indicators: pd.DataFrame,
    year: int,
    seed: int = 42,
) -> pd.DataFrame:
    """Annual targets shaped like load_targets().

    sum indicators target a year of activity; avg and snapshot indicators
    target a level slightly above the typical weekly value.
    """
    rng = np.random.default_rng(seed)
    rows = []
    for _, ind in indicators.iterrows():
        rate = _INDICATOR_PARAMS.get(ind["slug"], ("", "", "sum", "", 10.0))[4]
        for _, ward in wards.iterrows():
            level = ward["membership_count"] * rate / 1000
            weeks = 52 if ind["aggregation_method"] == "sum" else 1
            target = round(level * weeks * rng.uniform(1.0, 1.25))
            rows.append({
                "ward_id": ward["id"],
                "indicator_id": ind["id"],
                "year": int(year),
                "target_value": float(target),
            })
    return pd.DataFrame(rows, columns=["ward_id", "indicator_id", "year", "target_value"])


def generate_report_rows(
    wards: pd.DataFrame,
    indicators: pd.DataFrame,
    observations: pd.DataFrame,
    start: date,
    end: date,
) -> pd.DataFrame:
    """Flattened rows in the shape load_report_rows() returns for [start, end]."""
    mask = (observations["week_start"] >= pd.Timestamp(start)) & (
        observations["week_start"] <= pd.Timestamp(end)
    )
    window = observations[mask]
    merged = window.merge(
        wards.rename(columns={
            "id": "ward_id", "name": "ward_name", "membership_count": "ward_membership",
        })[["ward_id", "ward_name", "ward_membership"]],
        on="ward_id",
    ).merge(
        indicators.rename(columns={"id": "indicator_id"})[[
            "indicator_id", "display_name", "slug", "indicator_type",
            "aggregation_method", "responsibility", "order_index",
        ]],
        on="indicator_id",
    )
    merged = merged.rename(columns={"value": "raw_value"})
    merged["aggregation_label"] = merged["aggregation_method"]
    columns = [
        "ward_id", "ward_name", "ward_membership",
        "indicator_id", "display_name", "slug", "indicator_type", "aggregation_method",
        "responsibility", "order_index", "week_start", "raw_value", "aggregation_label",
    ]
    return merged[columns].sort_values(
        ["order_index", "ward_name", "week_start"], kind="stable"
    ).reset_index(drop=True)
