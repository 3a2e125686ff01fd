"""
Stale-response guard for UI regions that refetch on every filter change.

Each fetch takes a token from a per-region counter. When the response comes
back it is only applied if no newer fetch has started for the same region.
"""

import itertools
import logging
import threading
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class RequestTracker:
    """Monotonic request ids per UI region."""

    def __init__(self):
        self._counter = itertools.count(1)
        self._latest: dict[str, int] = {}
        self._values: dict[str, Any] = {}
        self._lock = threading.Lock()

    def begin(self, region: str) -> int:
        """Start a fetch for region; supersedes any earlier one."""
        with self._lock:
            token = next(self._counter)
            self._latest[region] = token
        return token

    def is_current(self, region: str, token: int) -> bool:
        with self._lock:
            return self._latest.get(region) == token

    def accept(self, region: str, token: int, value: Any) -> bool:
        """Store value for region if token is still the latest.

        Returns False, and drops the value, for a superseded response.
        """
        with self._lock:
            if self._latest.get(region) != token:
                logger.debug("Discarding stale response for %s (token %d)", region, token)
                return False
            self._values[region] = value
            return True

    def value(self, region: str, default: Any = None) -> Any:
        with self._lock:
            return self._values.get(region, default)

    def run(self, region: str, fetch: Callable[..., Any], *args) -> Any:
        """Fetch for region and return the result, or None if superseded.

        A newer fetch for the same region started while this one ran means
        this result is stale; it is dropped and the caller skips rendering.
        """
        token = self.begin(region)
        value = fetch(*args)
        if not self.accept(region, token, value):
            return None
        return value
