"""
Thin client for the hosted backend (Supabase REST + auth).

Tables are read and written through PostgREST at /rest/v1/<table>,
pre-aggregated reads through /rest/v1/rpc/<function>, and sessions through
the GoTrue endpoints under /auth/v1. The backend owns persistence, the
(ward, indicator, week_start) uniqueness constraint, and row-level security.

One BackendClient is created per user session and passed to every loader,
form and ledger that needs it.
"""

import logging
from typing import Any

import requests

from .config import (
    HTTP_TIMEOUT_SECONDS,
    PG_CHECK_VIOLATION,
    PG_UNIQUE_VIOLATION,
    SUPABASE_ANON_KEY,
    SUPABASE_URL,
)

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """A backend or network failure, carrying the backend error code."""

    def __init__(self, code: str | None, message: str, status: int | None = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status = status

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class DuplicateRecordError(BackendError):
    """Unique constraint violation (the row already exists)."""


class CheckViolationError(BackendError):
    """Check constraint violation (value or date rejected by the database)."""


class AuthError(BackendError):
    """Login failed or the session is missing/expired."""


# Filter operators understood by PostgREST
_OPERATORS = {"eq", "neq", "gt", "gte", "lt", "lte", "in", "is", "like", "ilike"}


def _encode_filter(op: str, value: Any) -> str:
    if op not in _OPERATORS:
        raise ValueError(f"Unsupported filter operator: {op}")
    if op == "in":
        items = ",".join(str(v) for v in value)
        return f"in.({items})"
    if op == "is":
        return f"is.{'null' if value is None else str(value).lower()}"
    return f"{op}.{value}"


def _parse_content_range(header: str | None) -> int | None:
    """Return the total from a Content-Range header like '0-14/132'."""
    if not header or "/" not in header:
        return None
    total = header.rsplit("/", 1)[1]
    if total == "*":
        return None
    try:
        return int(total)
    except ValueError:
        return None


class BackendClient:
    """Session-scoped client for PostgREST tables, RPCs and auth."""

    def __init__(
        self,
        url: str,
        anon_key: str,
        session: requests.Session | None = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ):
        if not url or not anon_key:
            raise BackendError(None, "Backend URL and anon key must be configured")
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.timeout = timeout
        self.session = session or requests.Session()
        self.access_token: str | None = None
        self.user: dict | None = None

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------
    @property
    def is_authenticated(self) -> bool:
        return self.access_token is not None

    @property
    def user_id(self) -> str | None:
        return self.user.get("id") if self.user else None

    def sign_in(self, email: str, password: str) -> dict:
        """Password login. Stores the access token for later requests."""
        try:
            response = self.session.post(
                f"{self.url}/auth/v1/token",
                params={"grant_type": "password"},
                headers={"apikey": self.anon_key, "Content-Type": "application/json"},
                json={"email": email, "password": password},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise BackendError("network", str(exc)) from exc

        if response.status_code != 200:
            body = self._json_or_empty(response)
            message = body.get("error_description") or body.get("msg") or response.text[:200]
            logger.warning("Login failed for %s: %s", email, message)
            raise AuthError(body.get("error") or "auth", message, response.status_code)

        body = response.json()
        self.access_token = body.get("access_token")
        self.user = body.get("user") or {}
        logger.info("Signed in as %s", self.user.get("email", email))
        return self.user

    def sign_out(self) -> None:
        if self.access_token:
            try:
                self.session.post(
                    f"{self.url}/auth/v1/logout",
                    headers=self._headers(),
                    timeout=self.timeout,
                )
            except requests.RequestException:
                logger.warning("Logout request failed; clearing local session anyway")
        self.access_token = None
        self.user = None

    # ------------------------------------------------------------------
    # Table access
    # ------------------------------------------------------------------
    def select(
        self,
        table: str,
        columns: str = "*",
        filters: list[tuple[str, str, Any]] | None = None,
        order: list[str] | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[dict]:
        rows, _ = self._select(table, columns, filters, order, limit, offset, count=False)
        return rows

    def select_with_count(
        self,
        table: str,
        columns: str = "*",
        filters: list[tuple[str, str, Any]] | None = None,
        order: list[str] | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> tuple[list[dict], int]:
        """Select a page of rows plus the exact total matching the filters."""
        rows, total = self._select(table, columns, filters, order, limit, offset, count=True)
        return rows, total if total is not None else len(rows)

    def insert(self, table: str, row: dict) -> list[dict]:
        response = self._request(
            "POST", f"/rest/v1/{table}", json=row,
            extra_headers={"Prefer": "return=representation"},
        )
        return self._json_or_empty(response) or []

    def update(self, table: str, values: dict, filters: list[tuple[str, str, Any]]) -> list[dict]:
        if not filters:
            raise ValueError("Refusing to update without filters")
        response = self._request(
            "PATCH", f"/rest/v1/{table}", params=self._filter_params(filters),
            json=values, extra_headers={"Prefer": "return=representation"},
        )
        return self._json_or_empty(response) or []

    def delete(self, table: str, filters: list[tuple[str, str, Any]]) -> None:
        if not filters:
            raise ValueError("Refusing to delete without filters")
        self._request(
            "DELETE", f"/rest/v1/{table}", params=self._filter_params(filters),
            extra_headers={"Prefer": "return=minimal"},
        )

    def rpc(self, function: str, params: dict | None = None) -> list[dict]:
        response = self._request("POST", f"/rest/v1/rpc/{function}", json=params or {})
        return self._json_or_empty(response) or []

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _headers(self) -> dict[str, str]:
        token = self.access_token or self.anon_key
        return {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _filter_params(filters: list[tuple[str, str, Any]] | None) -> list[tuple[str, str]]:
        return [(column, _encode_filter(op, value)) for column, op, value in (filters or [])]

    def _select(self, table, columns, filters, order, limit, offset, count):
        params = [("select", columns)] + self._filter_params(filters)
        if order:
            params.append(("order", ",".join(order)))
        if limit is not None:
            params.append(("limit", str(limit)))
        if offset:
            params.append(("offset", str(offset)))

        extra = {"Prefer": "count=exact"} if count else None
        response = self._request("GET", f"/rest/v1/{table}", params=params, extra_headers=extra)
        rows = self._json_or_empty(response) or []
        total = _parse_content_range(response.headers.get("Content-Range")) if count else None
        return rows, total

    def _request(
        self,
        method: str,
        path: str,
        params: list[tuple[str, str]] | None = None,
        json: Any = None,
        extra_headers: dict[str, str] | None = None,
    ) -> requests.Response:
        headers = self._headers()
        if extra_headers:
            headers.update(extra_headers)
        try:
            response = self.session.request(
                method, f"{self.url}{path}", params=params, json=json,
                headers=headers, timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("%s %s failed: %s", method, path, exc)
            raise BackendError("network", str(exc)) from exc

        if response.status_code >= 400:
            raise self._error_from(response)
        return response

    @staticmethod
    def _json_or_empty(response: requests.Response) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {}

    def _error_from(self, response: requests.Response) -> BackendError:
        body = self._json_or_empty(response)
        if not isinstance(body, dict):
            body = {}
        code = body.get("code")
        message = body.get("message") or response.text[:200] or response.reason
        status = response.status_code
        logger.error("Backend error %s (HTTP %s): %s", code, status, message)

        if code == PG_UNIQUE_VIOLATION:
            return DuplicateRecordError(code, message, status)
        if code == PG_CHECK_VIOLATION:
            return CheckViolationError(code, message, status)
        if status in (401, 403):
            return AuthError(code or "auth", message, status)
        return BackendError(code, message, status)


def create_client(url: str = SUPABASE_URL, anon_key: str = SUPABASE_ANON_KEY) -> BackendClient:
    """Build a client from configuration. Called once per app session."""
    return BackendClient(url, anon_key)
