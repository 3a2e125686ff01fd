"""Data loaders reading from the hosted backend."""

from .definitions import load_indicators, load_wards
from .observations import load_observations, load_latest_week_start
from .observations import load_recent_entries, load_report_rows
from .targets import load_targets

__all__ = [
    "load_indicators",
    "load_wards",
    "load_observations",
    "load_latest_week_start",
    "load_recent_entries",
    "load_report_rows",
    "load_targets",
]
