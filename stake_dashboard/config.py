"""
Configuration: indicator registry, backend settings, validation constants.

INDICATOR_REGISTRY maps each indicator slug to its dashboard card mode,
short display name, and the source-system page a clerk opens to read the
number before typing it in.
"""

import os

from dotenv import load_dotenv

load_dotenv()

# ---------------------------------------------------------------------------
# Backend and external services
# ---------------------------------------------------------------------------
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")
NARRATIVE_WEBHOOK_URL = os.getenv("NARRATIVE_WEBHOOK_URL", "")
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))

# ---------------------------------------------------------------------------
# Organisation identity
# ---------------------------------------------------------------------------
STAKE_NAME = os.getenv("STAKE_NAME", "Santa Cruz do Sul Stake")
APP_TITLE = "Called to Serve"

# ---------------------------------------------------------------------------
# Backend tables and procedures
# ---------------------------------------------------------------------------
TABLE_WARDS = "wards"
TABLE_INDICATORS = "indicators"
TABLE_OBSERVATIONS = "weekly_indicator_data"
TABLE_TARGETS = "targets"
RPC_REPORT_DATA = "get_report_data"

# Postgres error codes surfaced by PostgREST
PG_UNIQUE_VIOLATION = "23505"
PG_CHECK_VIOLATION = "23514"

# ---------------------------------------------------------------------------
# Entry validation
# ---------------------------------------------------------------------------
VALUE_CEILING = 10_000
MEMBERSHIP_CEILING = 10_000
RECENCY_WINDOW_DAYS = 90
WEEK_ANCHOR_WEEKDAY = 6  # Sunday (datetime.weekday: Monday == 0)

# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------
# Backend spellings -> canonical aggregation method
AGGREGATION_ALIASES: dict[str, str] = {
    "sum": "sum",
    "avg": "avg",
    "average": "avg",
    "mean": "avg",
    "snapshot": "snapshot",
    "last": "snapshot",
    "latest": "snapshot",
}
DEFAULT_AGGREGATION = "sum"

# Progress percentage below which a target card turns red instead of amber
PROGRESS_AMBER_BAND = 50.0

# ---------------------------------------------------------------------------
# Indicator registry
# ---------------------------------------------------------------------------
# card: how the dashboard card derives its headline value
#   "year_to_date"  - sum from 1 January to the selected week
#   "week"          - value of the selected week, with the year average
#   "month_to_date" - sum of the selected week's calendar month
#   "snapshot"      - last known value per ward, summed across wards
#   "snapshot_peak" - snapshot, with the peak week of the year
# secondary: what the card's second line shows
# short_name: compact label for report tables and chart axes
# link: source-system page template ({unit} / {org} are ward codes)
INDICATOR_REGISTRY: dict[str, dict] = {
    "frequencia_sacramental": {
        "card": "week",
        "secondary": "year_average",
        "short_name": "Sacrament Att.",
        "link": "https://lcr.churchofjesuschrist.org/report/sacrament-attendance?lang=por&unitNumber={unit}",
    },
    "batismo_converso": {
        "card": "year_to_date",
        "secondary": "target_percent",
        "short_name": "Baptisms",
        "link": "https://lcr.churchofjesuschrist.org/one-work/progress-record?lang=por&unitNumber={unit}&tab=recentConverts",
    },
    "membros_retornando_a_igreja": {
        "card": "snapshot",
        "secondary": "label",
        "short_name": "Returning",
        "link": "https://lcr.churchofjesuschrist.org/one-work/progress-record?lang=por&unitNumber={unit}&tab=returningMembers",
    },
    "membros_participantes": {
        "card": "snapshot",
        "secondary": "target_delta",
        "short_name": "Participating",
        "link": "https://bl.churchofjesuschrist.org/bp/pt/#/indicate-activity/297490/{unit}",
        "updates_membership": True,
    },
    "membros_jejuando": {
        "card": "month_to_date",
        "secondary": "annual_target",
        "short_name": "Fasting",
        "link": "https://lcrffe.churchofjesuschrist.org/donations?orgId={org}",
    },
    "missionario_servindo_missao_do_brasil": {
        "card": "snapshot_peak",
        "secondary": "year_peak",
        "short_name": "Missionaries",
        "link": "https://missionaryrecommendations.churchofjesuschrist.org/recommendations/home/candidates?vctype=ft",
    },
    "recomendacao_templo_com_investidura": {
        "card": "snapshot",
        "secondary": "year_average",
        "short_name": "Rec. Endowed",
        "link": "https://lcr.churchofjesuschrist.org/temple/recommend/recommend-status?lang=por&type=REGULAR&status=active&unitNumber={unit}",
        "paired_with": "recomendacao_templo_sem_investidura",
    },
    "recomendacao_templo_sem_investidura": {
        "card": "snapshot",
        "secondary": "year_average",
        "short_name": "Rec. Not Endowed",
        "link": "https://lcr.churchofjesuschrist.org/temple/recommend/recommend-status?lang=por&type=REGULAR&status=active&unitNumber={unit}",
        "entered_with": "recomendacao_templo_com_investidura",
    },
}

# Ward name -> unit number / finance org id used by the source-system links
WARD_UNIT_NUMBERS: dict[str, str] = {
    "Ala Cachoeira do Sul": "60208",
    "Ala Lajeado": "82252",
    "Ala Marina": "346136",
    "Ala Rio Pardo": "281441",
    "Ala Santa Cruz do Sul": "323306",
    "Ala Santa Cruz do Sul Campus": "331465",
    "Ala Venâncio Aires": "331686",
    "Ramo Estrela": "1547771",
}

WARD_ORG_IDS: dict[str, str] = {
    "Ala Cachoeira do Sul": "1467",
    "Ala Lajeado": "29016",
    "Ala Marina": "20246",
    "Ala Rio Pardo": "14601",
    "Ala Santa Cruz do Sul": "7167",
    "Ala Santa Cruz do Sul Campus": "1218",
    "Ala Venâncio Aires": "33991",
    "Ramo Estrela": "4010323",
}

# ---------------------------------------------------------------------------
# History ledger
# ---------------------------------------------------------------------------
HISTORY_PAGE_SIZES = (15, 50, 100)
RECENT_ENTRIES_LIMIT = 5

# Rows requested per page on unbounded reads (PostgREST caps a response at
# db-max-rows, 1000 on hosted Supabase)
FETCH_PAGE_SIZE = 1000

# ---------------------------------------------------------------------------
# Targets
# ---------------------------------------------------------------------------
TARGET_YEARS = (2025, 2026, 2027)
DEFAULT_TARGET_YEAR = 2026

# ---------------------------------------------------------------------------
# Report and export
# ---------------------------------------------------------------------------
REPORT_WINDOW_DAYS = 30
CSV_DELIMITER = ";"
CSV_ENCODING = "utf-8-sig"
DATE_DISPLAY_FORMAT = "%d/%m/%Y"
CSV_COLUMNS = [
    "Unit",
    "Indicator",
    "Type",
    "Aggregation Method",
    "Responsibility",
    "Week",
    "Value",
    "Membership",
]
EXPORT_FILENAME_PREFIX = "stake-report"

# ---------------------------------------------------------------------------
# User-facing messages
# ---------------------------------------------------------------------------
MESSAGES: dict[str, str] = {
    "required": "Fill in every field.",
    "value_not_number": "Value must be a number.",
    "value_negative": "Value must be zero or positive.",
    "value_too_high": "Value looks too high. Please check it.",
    "date_future": "Future dates are not allowed.",
    "date_too_old": f"Date is too old (maximum {RECENCY_WINDOW_DAYS} days).",
    "date_not_sunday": "The date must be a Sunday.",
    "paired_required": "Fill in the value for members WITHOUT endowment too.",
    "duplicate": "This indicator has already been recorded for this unit on this Sunday.",
    "invalid_data": "Invalid data. Check the value and the date.",
    "generic_error": "Something went wrong while saving. Please try again.",
    "saved": "Entry recorded!",
    "paired_saved": " + without endowment saved!",
    "paired_kept": " (without endowment already existed, kept.)",
    "membership_saved": " Ward membership updated!",
    "partial": "Primary entry saved, but a follow-up step failed: {detail}",
    "paired_failed": "the without-endowment entry was not saved",
    "membership_failed": "the ward membership was not updated",
    "login_failed": "Wrong e-mail or password. Try again.",
    "session_expired": "Your session has expired. Please sign in again.",
    "load_failed": "Could not load data from the server.",
    "confirm_delete": "Confirm the deletion before removing this entry.",
    "narrative_failed": "The analysis could not be generated right now. Please try again later.",
}
