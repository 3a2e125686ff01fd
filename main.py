"""
Stake Indicators Dashboard: end-to-end analytics pipeline on simulated data.

Runs the aggregation, ranking, target, report and export steps without a
backend and prints smoke-test summaries.

Usage:
    python main.py
"""

import logging
import sys
from datetime import date, timedelta
from pathlib import Path

import pandas as pd

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent))

from stake_dashboard.config import DEFAULT_TARGET_YEAR, STAKE_NAME
from stake_dashboard.dashboard import get_indicator_cards, get_period_summary, get_target_overview
from stake_dashboard.entry import validate_entry
from stake_dashboard.kpis import aggregate_indicator
from stake_dashboard.narrative import build_payload
from stake_dashboard.periods import week_label, week_start
from stake_dashboard.ranking import rank_wards
from stake_dashboard.report import build_report, export_csv, export_filename, report_window
from stake_dashboard.simulator import (
    generate_indicators,
    generate_observations,
    generate_report_rows,
    generate_targets,
    generate_wards,
)
from stake_dashboard.targets import calc_progress, org_target_totals, ward_progress

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def main() -> None:
    """Run the full analytics pipeline and print smoke-test outputs."""

    print("=" * 70)
    print(f"  {STAKE_NAME.upper()}: Stake Indicators Dashboard")
    print("  Analytics Pipeline Smoke Test")
    print("=" * 70)
    print()

    today = date(DEFAULT_TARGET_YEAR, 10, 18)
    anchor = week_start(today)

    # ------------------------------------------------------------------
    # 1. Generate source data
    # ------------------------------------------------------------------
    print("[ 1 ] GENERATING SOURCE DATA")
    print("-" * 40)

    wards = generate_wards()
    indicators = generate_indicators()
    observations = generate_observations(wards, indicators, date(today.year - 1, 10, 1), today)
    targets = generate_targets(wards, indicators, today.year)

    print(f"\nWards: {len(wards)} rows")
    print(wards[["name", "membership_count"]].to_string(index=False))
    print(f"\nIndicators: {len(indicators)} rows")
    print(indicators[["slug", "aggregation_method"]].to_string(index=False))
    print(f"\nObservations: {len(observations)} rows")
    print(f"Targets ({today.year}): {len(targets)} rows")

    # ------------------------------------------------------------------
    # 2. Dashboard outputs
    # ------------------------------------------------------------------
    print("\n")
    print(f"[ 2 ] DASHBOARD OUTPUTS: {week_label(anchor)}")
    print("-" * 40)

    stake_targets = org_target_totals(targets, indicators)
    cards = get_indicator_cards(indicators, observations, wards, stake_targets, anchor)
    for card in cards:
        print(f"  {card['display_name']:40s} | {card['value']:>8,.0f} | {card['secondary']}")

    summary = get_period_summary(indicators, observations, wards, "last-90-days", today)
    print("\nPeriod summary (last 90 days):")
    print(summary[["display_name", "aggregation_method", "total", "best_ward", "worst_ward"]].to_string(index=False))

    overview = get_target_overview(indicators, wards, targets)
    print(f"\nTarget overview: {overview.shape[0] - 1} wards + Total")

    first_ward = wards.iloc[0]
    progress = ward_progress(first_ward["id"], today.year, indicators, observations, targets, today)
    print(f"\nProgress for {first_ward['name']}:")
    print(progress[["display_name", "current_value", "target", "progress_percent", "status"]].to_string(index=False))

    # ------------------------------------------------------------------
    # 3. Report and export
    # ------------------------------------------------------------------
    print("\n")
    print("[ 3 ] REPORT AND EXPORT")
    print("-" * 40)

    start, end = report_window(today)
    report_rows = generate_report_rows(wards, indicators, observations, start, end)
    report = build_report(report_rows)
    print(f"\nReport window: {start} .. {end}, {len(report['weeks'])} weeks")
    for ind in report["indicators"]:
        print(f"  {ind['short_name']:18s} | total {ind['total']:>8,.0f} | "
              f"best {ind['best']['name']} | worst {ind['worst']['name']}")

    csv_bytes = export_csv(report_rows)
    print(f"\n{export_filename(today)}: {len(csv_bytes)} bytes")

    # ------------------------------------------------------------------
    # 4. Acceptance criteria verification
    # ------------------------------------------------------------------
    print("\n")
    print("[ 4 ] ACCEPTANCE CRITERIA CHECKS")
    print("-" * 40)

    # Check 1: one card per indicator
    check1 = len(cards) == len(indicators)
    print(f"\n  [{'PASS' if check1 else 'FAIL'}] {len(cards)} indicator cards (need {len(indicators)})")

    # Check 2: scores are always finite, even with a zero-membership ward
    no_members = wards.copy()
    no_members.loc[0, "membership_count"] = 0
    attendance = indicators.iloc[0]
    ranked = rank_wards(aggregate_indicator(attendance, observations, no_members, anchor, anchor + timedelta(days=6))["by_ward"])
    check2 = ranked["score"].map(pd.notna).all() and (ranked["score"] != float("inf")).all()
    print(f"  [{'PASS' if check2 else 'FAIL'}] Ranking scores finite with zero membership")

    # Check 3: progress clamps at 100 with no negative gap
    over = calc_progress(250, 200)
    check3 = over["progress_percent"] == 100 and over["gap"] == 0
    print(f"  [{'PASS' if check3 else 'FAIL'}] Progress clamped: {over}")

    # Check 4: future Sundays are rejected before any network call
    future_error = validate_entry(10, week_start(today) + timedelta(days=7), today)
    check4 = future_error is not None
    print(f"  [{'PASS' if check4 else 'FAIL'}] Future entry rejected: {future_error}")

    # Check 5: CSV carries a BOM and the semicolon header
    check5 = csv_bytes.startswith(b"\xef\xbb\xbf") and b";" in csv_bytes.splitlines()[0]
    print(f"  [{'PASS' if check5 else 'FAIL'}] CSV has BOM and ';' header")

    # Check 6: narrative payload covers every indicator
    payload = build_payload(first_ward["name"], progress, today)
    check6 = len(payload["indicators"]) == len(indicators)
    print(f"  [{'PASS' if check6 else 'FAIL'}] Narrative payload has {len(payload['indicators'])} indicators")

    print("\n" + "=" * 70)
    print("  Pipeline complete.")
    print("=" * 70)


if __name__ == "__main__":
    main()
