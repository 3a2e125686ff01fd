"""
Weekly entry form: validation and submission.

A submission moves through IDLE -> VALIDATING -> SUBMITTING and ends in
SUCCESS, PARTIAL or REJECTED. Validation happens entirely before the first
network call.

Some indicators are compound. Saving temple recommends "with endowment"
also saves the paired "without endowment" observation, and saving
participating members also updates the ward's membership_count. These are
separate backend calls with no transaction: when the primary insert succeeds
and a follow-up fails, the primary row stays and the result is PARTIAL.
"""

import enum
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

import pandas as pd

from .backend import BackendClient, BackendError, CheckViolationError, DuplicateRecordError
from .config import (
    INDICATOR_REGISTRY,
    MEMBERSHIP_CEILING,
    MESSAGES,
    RECENCY_WINDOW_DAYS,
    TABLE_OBSERVATIONS,
    TABLE_WARDS,
    VALUE_CEILING,
    WARD_ORG_IDS,
    WARD_UNIT_NUMBERS,
)
from .periods import is_week_anchor, to_date

logger = logging.getLogger(__name__)


class EntryState(enum.Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    SUBMITTING = "submitting"
    SUCCESS = "success"
    PARTIAL = "partial"
    REJECTED = "rejected"


@dataclass
class EntryDraft:
    ward_id: str | None
    indicator_id: str | None
    value: Any
    week_start: Any
    paired_value: Any = None
    membership_count: Any = None


@dataclass
class SubmissionResult:
    state: EntryState
    message: str
    primary_saved: bool = False
    failed_steps: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state is EntryState.SUCCESS


def _is_blank(val: Any) -> bool:
    if val is None:
        return True
    if isinstance(val, str) and not val.strip():
        return True
    try:
        return bool(pd.isna(val))
    except (TypeError, ValueError):
        return False


def _to_number(val: Any) -> float | None:
    if isinstance(val, bool):
        return None
    try:
        return float(val)
    except (TypeError, ValueError):
        return None


def validate_value(value: Any) -> str | None:
    number = _to_number(value)
    if number is None or pd.isna(number):
        return MESSAGES["value_not_number"]
    if number < 0:
        return MESSAGES["value_negative"]
    if number > VALUE_CEILING:
        return MESSAGES["value_too_high"]
    return None


def validate_entry(value: Any, week_start: Any, today: date | None = None) -> str | None:
    """Check one value/date pair. Returns the first failure message or None.

    Order: value is a non-negative number within the ceiling, date is not
    in the future, not older than the recency window, and falls on Sunday.
    """
    if _is_blank(value) or _is_blank(week_start):
        return MESSAGES["required"]

    error = validate_value(value)
    if error:
        return error

    today = to_date(today or date.today())
    try:
        day = to_date(week_start)
    except (TypeError, ValueError):
        return MESSAGES["required"]

    if day > today:
        return MESSAGES["date_future"]
    if day < today - timedelta(days=RECENCY_WINDOW_DAYS):
        return MESSAGES["date_too_old"]
    if not is_week_anchor(day):
        return MESSAGES["date_not_sunday"]
    return None


def _registry(slug: str) -> dict:
    return INDICATOR_REGISTRY.get(slug, {})


def visible_indicators(indicators: pd.DataFrame) -> pd.DataFrame:
    """Indicators offered in the selector; paired sub-indicators are hidden."""
    hidden = {slug for slug, cfg in INDICATOR_REGISTRY.items() if cfg.get("entered_with")}
    return indicators[~indicators["slug"].isin(hidden)].reset_index(drop=True)


def quick_link(slug: str, ward_name: str) -> str | None:
    """Source-system page holding this ward's number for the indicator."""
    template = _registry(slug).get("link")
    if not template:
        return None
    unit = WARD_UNIT_NUMBERS.get(ward_name)
    org = WARD_ORG_IDS.get(ward_name)
    if "{unit}" in template and unit is None:
        return None
    if "{org}" in template and org is None:
        return None
    return template.format(unit=unit, org=org)


class EntryForm:
    """Validates and saves weekly entries for one user session."""

    def __init__(self, client: BackendClient, indicators: pd.DataFrame, wards: pd.DataFrame):
        self.client = client
        self.indicators = indicators
        self.wards = wards
        self.state = EntryState.IDLE

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def _indicator(self, indicator_id: str | None) -> pd.Series | None:
        match = self.indicators[self.indicators["id"] == str(indicator_id)]
        return match.iloc[0] if not match.empty else None

    def _indicator_by_slug(self, slug: str) -> pd.Series | None:
        match = self.indicators[self.indicators["slug"] == slug]
        return match.iloc[0] if not match.empty else None

    def paired_indicator(self, indicator_id: str | None) -> pd.Series | None:
        ind = self._indicator(indicator_id)
        if ind is None:
            return None
        paired_slug = _registry(ind["slug"]).get("paired_with")
        return self._indicator_by_slug(paired_slug) if paired_slug else None

    def updates_membership(self, indicator_id: str | None) -> bool:
        ind = self._indicator(indicator_id)
        return ind is not None and bool(_registry(ind["slug"]).get("updates_membership"))

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------
    def validate(self, draft: EntryDraft, today: date | None = None) -> str | None:
        if any(_is_blank(v) for v in (draft.ward_id, draft.indicator_id, draft.value, draft.week_start)):
            return MESSAGES["required"]

        error = validate_entry(draft.value, draft.week_start, today)
        if error:
            return error

        if self.paired_indicator(draft.indicator_id) is not None:
            if _is_blank(draft.paired_value):
                return MESSAGES["paired_required"]
            error = validate_value(draft.paired_value)
            if error:
                return error
        return None

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------
    def _observation_row(self, draft: EntryDraft, indicator_id: str, value: Any) -> dict:
        return {
            "ward_id": str(draft.ward_id),
            "indicator_id": str(indicator_id),
            "value": float(value),
            "week_start": to_date(draft.week_start).isoformat(),
            "source": "manual",
            "created_by": self.client.user_id,
        }

    def _reject(self, message: str) -> SubmissionResult:
        self.state = EntryState.REJECTED
        return SubmissionResult(EntryState.REJECTED, message)

    def submit(self, draft: EntryDraft, today: date | None = None) -> SubmissionResult:
        """Validate then save the entry and its follow-up writes."""
        self.state = EntryState.VALIDATING
        error = self.validate(draft, today)
        if error:
            logger.info("Entry rejected by validation: %s", error)
            return self._reject(error)

        self.state = EntryState.SUBMITTING

        # 1. primary observation
        try:
            self.client.insert(
                TABLE_OBSERVATIONS, self._observation_row(draft, draft.indicator_id, draft.value),
            )
        except DuplicateRecordError:
            logger.info("Duplicate entry ward=%s indicator=%s week=%s",
                        draft.ward_id, draft.indicator_id, draft.week_start)
            return self._reject(MESSAGES["duplicate"])
        except CheckViolationError:
            return self._reject(MESSAGES["invalid_data"])
        except BackendError:
            logger.exception("Primary insert failed")
            return self._reject(MESSAGES["generic_error"])

        notes = ""
        failed: list[str] = []

        # 2. paired observation
        paired = self.paired_indicator(draft.indicator_id)
        if paired is not None:
            try:
                self.client.insert(
                    TABLE_OBSERVATIONS, self._observation_row(draft, paired["id"], draft.paired_value),
                )
                notes += MESSAGES["paired_saved"]
            except DuplicateRecordError:
                notes += MESSAGES["paired_kept"]
            except BackendError:
                logger.exception("Paired insert failed for indicator %s", paired["id"])
                failed.append(MESSAGES["paired_failed"])

        # 3. ward membership update
        if self.updates_membership(draft.indicator_id) and not _is_blank(draft.membership_count):
            membership = _to_number(draft.membership_count)
            if membership is not None and 0 < membership <= MEMBERSHIP_CEILING:
                try:
                    self.client.update(
                        TABLE_WARDS, {"membership_count": int(membership)},
                        [("id", "eq", str(draft.ward_id))],
                    )
                    notes += MESSAGES["membership_saved"]
                except BackendError:
                    logger.exception("Membership update failed for ward %s", draft.ward_id)
                    failed.append(MESSAGES["membership_failed"])

        if failed:
            self.state = EntryState.PARTIAL
            message = MESSAGES["partial"].format(detail="; ".join(failed))
            return SubmissionResult(EntryState.PARTIAL, message, primary_saved=True, failed_steps=failed)

        self.state = EntryState.SUCCESS
        logger.info("Saved entry ward=%s indicator=%s week=%s",
                    draft.ward_id, draft.indicator_id, draft.week_start)
        return SubmissionResult(EntryState.SUCCESS, MESSAGES["saved"] + notes, primary_saved=True)
