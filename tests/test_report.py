"""
Tests for the 30-day report and its CSV / Excel export.

Run: pytest tests/test_report.py -v
"""

import io
from datetime import date

import openpyxl
import pandas as pd
import pytest

from stake_dashboard.report import (
    PRINT_CSS,
    build_report,
    export_csv,
    export_filename,
    export_xlsx,
    report_window,
)
from stake_dashboard.loaders.observations import REPORT_COLUMNS
from stake_dashboard.transforms import (
    build_dim_indicator,
    build_dim_ward,
    build_fact_observations,
    build_weekly_series,
)


def _report_row(ward_id, ward_name, membership, ind_id, slug, name, method, week, value, order=1):
    return {
        "ward_id": ward_id, "ward_name": ward_name, "ward_membership": float(membership),
        "indicator_id": ind_id, "display_name": name, "slug": slug,
        "indicator_type": "leading", "aggregation_method": method,
        "responsibility": "Bishopric", "order_index": float(order),
        "week_start": pd.Timestamp(week), "raw_value": float(value),
    }


@pytest.fixture
def report_rows():
    rows = [
        _report_row("a", "Ward A", 100, "att", "frequencia_sacramental", "Attendance", "sum", "2026-03-01", 50),
        _report_row("a", "Ward A", 100, "att", "frequencia_sacramental", "Attendance", "sum", "2026-03-08", 30),
        _report_row("b", "Ward B", 200, "att", "frequencia_sacramental", "Attendance", "sum", "2026-03-08", 100),
        _report_row("a", "Ward A", 100, "snap", "membros_retornando_a_igreja", "Returning", "snapshot", "2026-03-01", 4, 2),
        _report_row("a", "Ward A", 100, "snap", "membros_retornando_a_igreja", "Returning", "snapshot", "2026-03-08", 6, 2),
        _report_row("b", "Ward B", 200, "snap", "membros_retornando_a_igreja", "Returning", "snapshot", "2026-03-01", 3, 2),
    ]
    return pd.DataFrame(rows)


class TestDimensions:

    def test_dim_ward(self, report_rows):
        dim = build_dim_ward(report_rows)
        assert list(dim["name"]) == ["Ward A", "Ward B"]
        assert list(dim["membership_count"]) == [100.0, 200.0]

    def test_dim_indicator_in_catalog_order(self, report_rows):
        dim = build_dim_indicator(report_rows)
        assert list(dim["id"]) == ["att", "snap"]
        assert dim.iloc[0]["short_name"] == "Sacrament Att."

    def test_weekly_series_fills_missing_weeks(self, report_rows):
        fact = build_fact_observations(report_rows)
        wide = build_weekly_series(fact, build_dim_ward(report_rows), "att",
                                   [pd.Timestamp("2026-03-01"), pd.Timestamp("2026-03-08")])
        assert list(wide["Ward A"]) == [50, 30]
        assert list(wide["Ward B"]) == [0, 100]


class TestBuildReport:

    def test_totals_and_ranking(self, report_rows):
        report = build_report(report_rows)
        att = report["indicators"][0]
        assert att["total"] == 180
        # A: 80 / 100 -> 800; B: 100 / 200 -> 500
        assert att["best"]["name"] == "Ward A"
        assert att["worst"]["name"] == "Ward B"
        assert list(att["by_ward"]["rank"]) == [1, 2]

    def test_snapshot_uses_latest_in_window(self, report_rows):
        snap = build_report(report_rows)["indicators"][1]
        assert snap["total"] == 9
        assert snap["chart"] is False

    def test_summary_fields(self, report_rows):
        report = build_report(report_rows)
        assert report["membership_total"] == 300
        assert report["weeks"] == [pd.Timestamp("2026-03-01"), pd.Timestamp("2026-03-08")]
        assert len(report["wards"]) == 2

    def test_empty_rows(self):
        report = build_report(pd.DataFrame(columns=REPORT_COLUMNS))
        assert report["indicators"] == []
        assert report["membership_total"] == 0


class TestExport:

    def test_csv_layout(self, report_rows):
        data = export_csv(report_rows)
        assert data.startswith(b"\xef\xbb\xbf")
        lines = data.decode("utf-8-sig").splitlines()
        assert lines[0] == (
            '"Unit";"Indicator";"Type";"Aggregation Method";'
            '"Responsibility";"Week";"Value";"Membership"'
        )
        assert lines[1] == '"Ward A";"Attendance";"leading";"sum";"Bishopric";"01/03/2026";50;100'
        assert len(lines) == len(report_rows) + 1

    def test_csv_keeps_fractional_values(self, report_rows):
        report_rows.loc[0, "raw_value"] = 12.5
        line = export_csv(report_rows).decode("utf-8-sig").splitlines()[1]
        assert line.endswith(";12.5;100")

    def test_csv_exports_backend_method_spelling(self, report_rows):
        """Aggregation runs on 'snapshot' but the export shows what the backend stores"""
        report_rows["aggregation_label"] = report_rows["aggregation_method"].replace({"snapshot": "last"})
        report_rows.loc[0, "aggregation_label"] = ""
        lines = export_csv(report_rows).decode("utf-8-sig").splitlines()
        assert ';"last";' in lines[4]
        assert ';"sum";' in lines[1]
        assert build_report(report_rows)["indicators"][1]["aggregation_method"] == "snapshot"

    def test_xlsx_round_trip_header(self, report_rows):
        wb = openpyxl.load_workbook(io.BytesIO(export_xlsx(report_rows)))
        ws = wb.active
        assert [c.value for c in ws[1]][:2] == ["Unit", "Indicator"]
        assert ws.max_row == len(report_rows) + 1

    def test_filename_embeds_date(self):
        assert export_filename(date(2026, 3, 18)) == "stake-report-2026-03-18.csv"
        assert export_filename(date(2026, 3, 18), "xlsx").endswith(".xlsx")

    def test_window_is_thirty_days(self):
        assert report_window(date(2026, 3, 31)) == (date(2026, 3, 1), date(2026, 3, 31))

    def test_print_css_landscape(self):
        assert "A4 landscape" in PRINT_CSS
