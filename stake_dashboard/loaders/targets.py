"""
Loader for annual targets per (ward, indicator, year).
"""

import logging

import pandas as pd

from ..backend import BackendClient
from ..config import TABLE_TARGETS
from .utils import coerce_numeric, rows_to_frame

logger = logging.getLogger(__name__)

TARGET_COLUMNS = ["ward_id", "indicator_id", "year", "target_value"]


def load_targets(client: BackendClient, year: int) -> pd.DataFrame:
    """Load every target row for one year.

    Returns
    -------
    DataFrame with columns: ward_id, indicator_id, year, target_value
    """
    rows = client.select(TABLE_TARGETS, ",".join(TARGET_COLUMNS), filters=[("year", "eq", int(year))])
    df = rows_to_frame(rows, TARGET_COLUMNS)
    for col in ("ward_id", "indicator_id"):
        df[col] = df[col].astype(str)
    df = coerce_numeric(df, ["target_value"], fill=0)
    df["year"] = int(year)

    logger.info("Loaded %d targets for %d", len(df), year)
    return df
