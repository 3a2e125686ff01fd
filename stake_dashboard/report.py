"""
Printable stake report over a fixed 30-day window, with CSV and Excel export.

The report is built from the pre-joined rows of the get_report_data
procedure and reuses the same aggregation and ranking as the dashboard.
"""

import csv
import io
import logging
from datetime import date, timedelta

import openpyxl
import pandas as pd
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from .config import (
    CSV_COLUMNS,
    CSV_DELIMITER,
    CSV_ENCODING,
    DATE_DISPLAY_FORMAT,
    EXPORT_FILENAME_PREFIX,
    REPORT_WINDOW_DAYS,
)
from .kpis import aggregate_by_ward, org_total
from .ranking import best_and_worst, rank_wards
from .transforms import (
    build_dim_indicator,
    build_dim_ward,
    build_fact_observations,
    build_weekly_series,
)

logger = logging.getLogger(__name__)

# Hides Streamlit chrome and keeps each section on one A4 landscape page
PRINT_CSS = """
<style>
@media print {
  @page { size: A4 landscape; margin: 1cm; }
  header, footer, [data-testid="stSidebar"], [data-testid="stToolbar"],
  [data-testid="stDownloadButton"], .stButton, .no-print { display: none !important; }
  .report-section, [data-testid="stPlotlyChart"], table { break-inside: avoid; page-break-inside: avoid; }
  body { -webkit-print-color-adjust: exact; print-color-adjust: exact; }
}
</style>
"""


def report_window(today: date | None = None) -> tuple[date, date]:
    """The report always covers the 30 days ending today."""
    today = today or date.today()
    return today - timedelta(days=REPORT_WINDOW_DAYS), today


def build_report(report_rows: pd.DataFrame) -> dict:
    """Summarise report rows per indicator.

    Parameters
    ----------
    report_rows : DataFrame from load_report_rows().

    Returns
    -------
    Dict with structure:
    {
        "wards": DataFrame (id, name, membership_count),
        "weeks": [Timestamp, ...] oldest first,
        "membership_total": float,
        "indicators": [
            {
                "indicator_id", "display_name", "short_name", "slug",
                "aggregation_method", "responsibility",
                "total": float,
                "by_ward": DataFrame ranked best first (score, rank),
                "best": {...}, "worst": {...},
                "weekly": DataFrame week x ward,
                "chart": bool  (snapshot indicators are not charted),
            },
            ...
        ],
    }
    """
    wards = build_dim_ward(report_rows)
    indicators = build_dim_indicator(report_rows)
    fact = build_fact_observations(report_rows)
    weeks = sorted(fact["week_start"].dropna().unique()) if not fact.empty else []

    summaries = []
    end = weeks[-1] if weeks else None
    for _, ind in indicators.iterrows():
        method = ind["aggregation_method"]
        rows = fact[fact["indicator_id"] == ind["id"]]
        by_ward = aggregate_by_ward(rows, wards, method, None, end)
        extremes = best_and_worst(by_ward)
        summaries.append({
            "indicator_id": ind["id"],
            "display_name": ind["display_name"],
            "short_name": ind["short_name"],
            "slug": ind["slug"],
            "aggregation_method": method,
            "responsibility": ind["responsibility"],
            "total": org_total(by_ward, method),
            "by_ward": rank_wards(by_ward),
            "best": extremes["best"],
            "worst": extremes["worst"],
            "weekly": build_weekly_series(fact, wards, ind["id"], weeks),
            "chart": method != "snapshot",
        })

    membership_total = float(wards["membership_count"].sum()) if not wards.empty else 0.0
    logger.info("Built report: %d indicators, %d wards, %d weeks", len(summaries), len(wards), len(weeks))
    return {
        "wards": wards,
        "weeks": [pd.Timestamp(w) for w in weeks],
        "membership_total": membership_total,
        "indicators": summaries,
    }


def _integral(series: pd.Series) -> pd.Series:
    """Whole numbers as int so the export reads 120, not 120.0."""
    if series.empty or (series % 1 == 0).all():
        return series.astype("int64")
    return series


def export_frame(report_rows: pd.DataFrame) -> pd.DataFrame:
    """Report rows in the export layout, one line per (ward, indicator, week)."""
    if report_rows.empty:
        return pd.DataFrame(columns=CSV_COLUMNS)
    method = report_rows["aggregation_method"].astype(str)
    if "aggregation_label" in report_rows.columns:
        label = report_rows["aggregation_label"].fillna("").astype(str)
        method = label.where(label != "", method)
    out = pd.DataFrame({
        "Unit": report_rows["ward_name"].astype(str),
        "Indicator": report_rows["display_name"].astype(str),
        "Type": report_rows["indicator_type"].astype(str),
        "Aggregation Method": method,
        "Responsibility": report_rows["responsibility"].astype(str),
        "Week": report_rows["week_start"].dt.strftime(DATE_DISPLAY_FORMAT),
        "Value": _integral(report_rows["raw_value"]),
        "Membership": _integral(report_rows["ward_membership"]),
    })
    return out[CSV_COLUMNS].reset_index(drop=True)


def export_csv(report_rows: pd.DataFrame) -> bytes:
    """Semicolon-separated CSV with a UTF-8 BOM, text quoted, numbers raw."""
    text = export_frame(report_rows).to_csv(
        sep=CSV_DELIMITER,
        index=False,
        quoting=csv.QUOTE_NONNUMERIC,
        lineterminator="\n",
    )
    return text.encode(CSV_ENCODING)


def export_xlsx(report_rows: pd.DataFrame) -> bytes:
    """Same rows as the CSV, as an Excel workbook with a styled header."""
    frame = export_frame(report_rows)

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Report"
    ws.append(CSV_COLUMNS)
    for cell in ws[1]:
        cell.font = Font(bold=True, color="FFFFFF")
        cell.fill = PatternFill("solid", fgColor="0F172A")
    for row in frame.itertuples(index=False):
        ws.append([v.item() if hasattr(v, "item") else v for v in row])

    for idx, col in enumerate(CSV_COLUMNS, start=1):
        width = max([len(col)] + [len(str(v)) for v in frame[col]]) + 2
        ws.column_dimensions[get_column_letter(idx)].width = min(width, 50)
    ws.freeze_panes = "A2"

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def export_filename(today: date | None = None, extension: str = "csv") -> str:
    today = today or date.today()
    return f"{EXPORT_FILENAME_PREFIX}-{today.isoformat()}.{extension}"
