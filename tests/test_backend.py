"""
Tests for the backend client: request shaping and error mapping.

Run: pytest tests/test_backend.py -v
"""

from unittest.mock import MagicMock

import pytest
import requests

from stake_dashboard.backend import (
    AuthError,
    BackendClient,
    BackendError,
    CheckViolationError,
    DuplicateRecordError,
    _encode_filter,
    _parse_content_range,
)

URL = "https://example.supabase.co"


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def client(session):
    return BackendClient(URL, "anon-key", session=session, timeout=5)


class TestConstruction:

    def test_requires_url_and_key(self):
        with pytest.raises(BackendError):
            BackendClient("", "anon-key")

    def test_not_authenticated_initially(self, client):
        assert not client.is_authenticated
        assert client.user_id is None


class TestFilterEncoding:

    def test_simple_operators(self):
        assert _encode_filter("eq", "a") == "eq.a"
        assert _encode_filter("gte", "2026-01-01") == "gte.2026-01-01"

    def test_in_list(self):
        assert _encode_filter("in", ["a", "b"]) == "in.(a,b)"

    def test_is_null(self):
        assert _encode_filter("is", None) == "is.null"

    def test_unknown_operator(self):
        with pytest.raises(ValueError):
            _encode_filter("between", 1)

    def test_content_range(self):
        assert _parse_content_range("0-14/132") == 132
        assert _parse_content_range("*/0") == 0
        assert _parse_content_range("0-14/*") is None
        assert _parse_content_range(None) is None


class TestAuth:

    def test_sign_in_stores_token(self, client, session, http_response):
        session.post.return_value = http_response(200, {
            "access_token": "jwt", "user": {"id": "u1", "email": "clerk@example.com"},
        })
        user = client.sign_in("clerk@example.com", "secret")
        assert user["id"] == "u1"
        assert client.is_authenticated
        assert client.user_id == "u1"
        assert session.post.call_args.kwargs["params"] == {"grant_type": "password"}

    def test_wrong_password(self, client, session, http_response):
        session.post.return_value = http_response(400, {
            "error": "invalid_grant", "error_description": "Invalid login credentials",
        })
        with pytest.raises(AuthError):
            client.sign_in("clerk@example.com", "wrong")
        assert not client.is_authenticated

    def test_network_failure_on_login(self, client, session):
        session.post.side_effect = requests.ConnectionError("down")
        with pytest.raises(BackendError) as exc_info:
            client.sign_in("clerk@example.com", "secret")
        assert exc_info.value.code == "network"

    def test_sign_out_clears_session(self, client, session, http_response):
        session.post.return_value = http_response(200, {"access_token": "jwt", "user": {"id": "u1"}})
        client.sign_in("clerk@example.com", "secret")
        session.post.return_value = http_response(204)
        client.sign_out()
        assert not client.is_authenticated
        assert client.user_id is None


class TestRequests:

    def test_select_params_and_headers(self, client, session, http_response):
        session.request.return_value = http_response(200, [{"id": "1"}])
        rows = client.select(
            "wards", "id,name", filters=[("active", "eq", "true")], order=["name.asc"], limit=10,
        )
        assert rows == [{"id": "1"}]
        method, url = session.request.call_args.args
        kwargs = session.request.call_args.kwargs
        assert method == "GET"
        assert url == f"{URL}/rest/v1/wards"
        assert ("select", "id,name") in kwargs["params"]
        assert ("active", "eq.true") in kwargs["params"]
        assert ("order", "name.asc") in kwargs["params"]
        assert ("limit", "10") in kwargs["params"]
        assert kwargs["headers"]["apikey"] == "anon-key"
        assert kwargs["headers"]["Authorization"] == "Bearer anon-key"

    def test_select_with_count(self, client, session, http_response):
        session.request.return_value = http_response(
            206, [{"id": "1"}], headers={"Content-Range": "15-29/42"},
        )
        rows, total = client.select_with_count("weekly_indicator_data", limit=15, offset=15)
        assert total == 42
        kwargs = session.request.call_args.kwargs
        assert kwargs["headers"]["Prefer"] == "count=exact"
        assert ("offset", "15") in kwargs["params"]

    def test_rpc(self, client, session, http_response):
        session.request.return_value = http_response(200, [{"x": 1}])
        client.rpc("get_report_data", {"p_start": "2026-01-01", "p_end": "2026-01-31"})
        method, url = session.request.call_args.args
        assert method == "POST"
        assert url.endswith("/rest/v1/rpc/get_report_data")

    def test_update_requires_filters(self, client):
        with pytest.raises(ValueError):
            client.update("wards", {"membership_count": 1}, [])

    def test_delete_requires_filters(self, client):
        with pytest.raises(ValueError):
            client.delete("weekly_indicator_data", [])


class TestErrorMapping:

    def test_unique_violation(self, client, session, http_response):
        session.request.return_value = http_response(409, {"code": "23505", "message": "duplicate key"})
        with pytest.raises(DuplicateRecordError):
            client.insert("weekly_indicator_data", {"value": 1})

    def test_check_violation(self, client, session, http_response):
        session.request.return_value = http_response(400, {"code": "23514", "message": "check"})
        with pytest.raises(CheckViolationError):
            client.insert("weekly_indicator_data", {"value": -1})

    def test_unauthorised(self, client, session, http_response):
        session.request.return_value = http_response(401, {"message": "JWT expired"})
        with pytest.raises(AuthError):
            client.select("wards")

    def test_other_error_keeps_code(self, client, session, http_response):
        session.request.return_value = http_response(500, {"code": "XX000", "message": "boom"})
        with pytest.raises(BackendError) as exc_info:
            client.select("wards")
        assert exc_info.value.code == "XX000"
        assert exc_info.value.status == 500

    def test_network_error(self, client, session):
        session.request.side_effect = requests.Timeout("slow")
        with pytest.raises(BackendError) as exc_info:
            client.select("wards")
        assert exc_info.value.code == "network"
