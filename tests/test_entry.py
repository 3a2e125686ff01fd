"""
Tests for entry validation and the compound submission.

Run: pytest tests/test_entry.py -v
"""

from datetime import date

import pytest

from stake_dashboard.backend import BackendError, CheckViolationError, DuplicateRecordError
from stake_dashboard.config import MESSAGES
from stake_dashboard.entry import (
    EntryDraft,
    EntryForm,
    EntryState,
    quick_link,
    validate_entry,
    visible_indicators,
)

SUNDAY = date(2026, 3, 15)


@pytest.fixture
def form(mock_client, indicators, wards):
    return EntryForm(mock_client, indicators, wards)


class TestValidateEntry:
    """Rules apply in order; the first failure wins"""

    def test_valid_entry(self, today):
        assert validate_entry(10, SUNDAY, today) is None

    def test_zero_is_allowed(self, today):
        assert validate_entry(0, SUNDAY, today) is None

    def test_missing_value(self, today):
        assert validate_entry(None, SUNDAY, today) == MESSAGES["required"]
        assert validate_entry("", SUNDAY, today) == MESSAGES["required"]

    def test_missing_date(self, today):
        assert validate_entry(10, None, today) == MESSAGES["required"]

    def test_not_a_number(self, today):
        assert validate_entry("ten", SUNDAY, today) == MESSAGES["value_not_number"]

    def test_negative(self, today):
        assert validate_entry(-1, SUNDAY, today) == MESSAGES["value_negative"]

    def test_ceiling(self, today):
        assert validate_entry(10_000, SUNDAY, today) is None
        assert validate_entry(10_001, SUNDAY, today) == MESSAGES["value_too_high"]

    def test_future_sunday(self, today):
        assert validate_entry(10, date(2026, 3, 22), today) == MESSAGES["date_future"]

    def test_too_old(self, today):
        assert validate_entry(10, date(2025, 12, 14), today) == MESSAGES["date_too_old"]

    def test_not_sunday(self, today):
        assert validate_entry(10, date(2026, 3, 17), today) == MESSAGES["date_not_sunday"]

    def test_future_checked_before_weekday(self, today):
        """A future Tuesday reports the future date first"""
        assert validate_entry(10, date(2026, 3, 24), today) == MESSAGES["date_future"]


class TestSubmit:

    def test_success_inserts_one_row(self, form, mock_client, today):
        result = form.submit(EntryDraft("a", "att", 120, SUNDAY), today)
        assert result.state is EntryState.SUCCESS
        assert result.ok
        assert result.message == MESSAGES["saved"]
        mock_client.insert.assert_called_once()
        table, row = mock_client.insert.call_args.args
        assert table == "weekly_indicator_data"
        assert row == {
            "ward_id": "a",
            "indicator_id": "att",
            "value": 120.0,
            "week_start": "2026-03-15",
            "source": "manual",
            "created_by": "user-1",
        }
        assert form.state is EntryState.SUCCESS

    def test_future_date_rejected_before_network(self, form, mock_client, today):
        result = form.submit(EntryDraft("a", "att", 10, date(2026, 3, 22)), today)
        assert result.state is EntryState.REJECTED
        assert result.message == MESSAGES["date_future"]
        mock_client.insert.assert_not_called()

    def test_missing_ward_rejected(self, form, mock_client, today):
        result = form.submit(EntryDraft(None, "att", 10, SUNDAY), today)
        assert result.message == MESSAGES["required"]
        mock_client.insert.assert_not_called()

    def test_duplicate_is_rejected(self, form, mock_client, today):
        mock_client.insert.side_effect = DuplicateRecordError("23505", "duplicate key", 409)
        result = form.submit(EntryDraft("a", "att", 10, SUNDAY), today)
        assert result.state is EntryState.REJECTED
        assert result.message == MESSAGES["duplicate"]
        assert not result.primary_saved
        mock_client.update.assert_not_called()

    def test_check_violation(self, form, mock_client, today):
        mock_client.insert.side_effect = CheckViolationError("23514", "check", 400)
        result = form.submit(EntryDraft("a", "att", 10, SUNDAY), today)
        assert result.message == MESSAGES["invalid_data"]

    def test_generic_failure(self, form, mock_client, today):
        mock_client.insert.side_effect = BackendError("network", "timeout")
        result = form.submit(EntryDraft("a", "att", 10, SUNDAY), today)
        assert result.state is EntryState.REJECTED
        assert result.message == MESSAGES["generic_error"]


class TestPairedIndicator:
    """Temple recommends with endowment also save the without-endowment value"""

    def test_paired_value_required(self, form, mock_client, today):
        result = form.submit(EntryDraft("a", "rec", 10, SUNDAY), today)
        assert result.message == MESSAGES["paired_required"]
        mock_client.insert.assert_not_called()

    def test_paired_value_validated(self, form, mock_client, today):
        result = form.submit(EntryDraft("a", "rec", 10, SUNDAY, paired_value=-3), today)
        assert result.message == MESSAGES["value_negative"]
        mock_client.insert.assert_not_called()

    def test_both_rows_saved(self, form, mock_client, today):
        result = form.submit(EntryDraft("a", "rec", 10, SUNDAY, paired_value=4), today)
        assert result.state is EntryState.SUCCESS
        assert result.message == MESSAGES["saved"] + MESSAGES["paired_saved"]
        assert mock_client.insert.call_count == 2
        paired_row = mock_client.insert.call_args_list[1].args[1]
        assert paired_row["indicator_id"] == "rec_sem"
        assert paired_row["value"] == 4.0

    def test_existing_paired_row_is_kept(self, form, mock_client, today):
        mock_client.insert.side_effect = [[{"id": "1"}], DuplicateRecordError("23505", "dup", 409)]
        result = form.submit(EntryDraft("a", "rec", 10, SUNDAY, paired_value=4), today)
        assert result.state is EntryState.SUCCESS
        assert MESSAGES["paired_kept"] in result.message

    def test_paired_failure_is_partial(self, form, mock_client, today):
        mock_client.insert.side_effect = [[{"id": "1"}], BackendError("network", "reset")]
        result = form.submit(EntryDraft("a", "rec", 10, SUNDAY, paired_value=4), today)
        assert result.state is EntryState.PARTIAL
        assert result.primary_saved
        assert result.failed_steps == [MESSAGES["paired_failed"]]
        assert form.state is EntryState.PARTIAL


class TestMembershipUpdate:
    """Participating members can also update the ward's membership count"""

    def test_membership_updated(self, form, mock_client, today):
        result = form.submit(EntryDraft("a", "part", 80, SUNDAY, membership_count=350), today)
        assert result.state is EntryState.SUCCESS
        mock_client.update.assert_called_once_with("wards", {"membership_count": 350}, [("id", "eq", "a")])
        assert result.message.endswith(MESSAGES["membership_saved"])

    def test_membership_out_of_range_is_ignored(self, form, mock_client, today):
        form.submit(EntryDraft("a", "part", 80, SUNDAY, membership_count=0), today)
        form.submit(EntryDraft("a", "part", 80, SUNDAY, membership_count=10_001), today)
        mock_client.update.assert_not_called()

    def test_membership_failure_is_partial(self, form, mock_client, today):
        mock_client.update.side_effect = BackendError(None, "rls")
        result = form.submit(EntryDraft("a", "part", 80, SUNDAY, membership_count=350), today)
        assert result.state is EntryState.PARTIAL
        assert result.message == MESSAGES["partial"].format(detail=MESSAGES["membership_failed"])

    def test_other_indicators_never_touch_membership(self, form, mock_client, today):
        form.submit(EntryDraft("a", "att", 80, SUNDAY, membership_count=350), today)
        mock_client.update.assert_not_called()


class TestSelectorHelpers:

    def test_paired_sub_indicator_hidden(self, indicators):
        visible = visible_indicators(indicators)
        assert "rec_sem" not in set(visible["id"])
        assert "rec" in set(visible["id"])

    def test_quick_link_with_unit_number(self):
        link = quick_link("frequencia_sacramental", "Ala Lajeado")
        assert link.endswith("unitNumber=82252")

    def test_quick_link_with_org_id(self):
        assert quick_link("membros_jejuando", "Ala Marina").endswith("orgId=20246")

    def test_quick_link_unknown_ward(self):
        assert quick_link("frequencia_sacramental", "Unknown Ward") is None

    def test_quick_link_without_placeholders(self):
        link = quick_link("missionario_servindo_missao_do_brasil", "Unknown Ward")
        assert link.startswith("https://")
