"""
Narrative analysis of a ward's progress, produced by an external webhook.

The webhook receives the ward's year-to-date progress and answers with free
text, either raw or wrapped in JSON. Any failure is contained here and turned
into a fixed message so the rest of the page keeps working.
"""

import json
import logging
from collections.abc import Iterator
from datetime import date, datetime

import pandas as pd
import requests

from .config import HTTP_TIMEOUT_SECONDS, MESSAGES

logger = logging.getLogger(__name__)

NARRATIVE_ERROR_MESSAGE = MESSAGES["narrative_failed"]

# Keys an automation workflow commonly wraps its text output in
_TEXT_KEYS = ("output", "text", "analysis", "message")


def _number(val) -> float:
    if val is None or pd.isna(val):
        return 0.0
    return float(val)


def build_payload(ward_name: str, progress: pd.DataFrame, generated_on: date | None = None) -> dict:
    """JSON body for the webhook from a ward_progress() table."""
    generated_on = generated_on or date.today()
    return {
        "unit": ward_name,
        "generated_at": generated_on.isoformat(),
        "indicators": [
            {
                "indicator": row["display_name"],
                "current_value": _number(row["current_value"]),
                "target": _number(row["target"]),
                "progress_percent": int(_number(row["progress_percent"])),
                "gap": _number(row["gap"]),
            }
            for _, row in progress.iterrows()
        ],
    }


def extract_text(body) -> str | None:
    """Pull the narrative out of a decoded response body.

    Accepts a bare string, a dict carrying one of the usual text keys, or a
    list whose first element is either of those.
    """
    if isinstance(body, str):
        return body
    if isinstance(body, list):
        return extract_text(body[0]) if body else None
    if isinstance(body, dict):
        for key in _TEXT_KEYS:
            if isinstance(body.get(key), str):
                return body[key]
    return None


def parse_response(raw: str) -> str | None:
    raw = (raw or "").strip()
    if not raw:
        return None
    try:
        decoded = json.loads(raw)
    except ValueError:
        return raw
    return extract_text(decoded)


def request_analysis(
    url: str,
    payload: dict,
    session: requests.Session | None = None,
    timeout: float = HTTP_TIMEOUT_SECONDS,
) -> str:
    """POST the payload and return the narrative text.

    Never raises: network errors, HTTP errors and unreadable bodies all
    return NARRATIVE_ERROR_MESSAGE.
    """
    if not url:
        logger.warning("Narrative webhook URL is not configured")
        return NARRATIVE_ERROR_MESSAGE

    http = session or requests
    started = datetime.now()
    try:
        response = http.post(url, json=payload, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        logger.warning("Narrative request failed: %s", exc)
        return NARRATIVE_ERROR_MESSAGE

    text = parse_response(response.text)
    if not text:
        logger.warning("Narrative response had no usable text")
        return NARRATIVE_ERROR_MESSAGE

    logger.info("Narrative for %s received in %.1fs",
                payload.get("unit"), (datetime.now() - started).total_seconds())
    return text


def iter_reveal(text: str, step: int = 3) -> Iterator[str]:
    """Yield growing prefixes of text, step characters at a time.

    The last prefix is always the full text.
    """
    if step < 1:
        raise ValueError("step must be positive")
    for end in range(step, len(text), step):
        yield text[:end]
    yield text
