"""Unit tests for session/client.py -- SessionApiClient.

All HTTP I/O is mocked: a MagicMock stands in for requests.Session, so the
tests check what the client sends and how it maps answers and failures.
"""

import asyncio
from unittest.mock import MagicMock

import pytest
import requests

from session.client import SessionApiClient, SessionApiError
from session.models import TokenStatus


def _response(status_code=200, payload=None, json_error=False):
    resp = MagicMock()
    resp.status_code = status_code
    resp.ok = 200 <= status_code < 300
    if json_error:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = payload if payload is not None else {}
    return resp


@pytest.fixture
def http():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def client(http):
    return SessionApiClient("http://localhost:8000/", session=http, timeout=2)


class TestRequests:
    def test_login_stores_access_token(self, client, http):
        http.request.return_value = _response(200, {"access_token": "jwt-1", "username": "alice"})
        client.login("alice", "pw")
        method, url = http.request.call_args.args
        assert (method, url) == ("POST", "http://localhost:8000/api/v1/auth/login")
        assert http.request.call_args.kwargs["json"] == {"username": "alice", "password": "pw"}
        assert http.request.call_args.kwargs["timeout"] == 2
        assert client.access_token == "jwt-1"
        assert client.username == "alice"

    def test_fetch_token_status_bypasses_caches(self, client, http):
        http.request.return_value = _response(
            200, {"isValid": True, "timeRemaining": 25, "isAboutToExpire": True}
        )
        status = client.fetch_token_status()
        assert status == TokenStatus(is_valid=True, time_remaining=25, is_about_to_expire=True)
        assert http.request.call_args.args[1].endswith("/api/v1/auth/token-status")
        assert http.request.call_args.kwargs["headers"]["Cache-Control"] == "no-cache"

    def test_unknown_status_parses_null_remaining(self, client, http):
        http.request.return_value = _response(
            200, {"isValid": False, "timeRemaining": None, "isAboutToExpire": False}
        )
        assert client.fetch_token_status() == TokenStatus.failed()

    def test_renew_requests_extension(self, client, http):
        http.request.return_value = _response(200, {"accessToken": "jwt-2", "sessionExtended": True})
        client.renew()
        assert http.request.call_args.kwargs["json"] == {"extendSession": True}
        assert client.access_token == "jwt-2"

    def test_logout_drops_access_token_even_on_failure(self, client, http):
        client.access_token = "jwt-3"
        http.request.side_effect = requests.ConnectionError("down")
        with pytest.raises(SessionApiError):
            client.logout()
        assert client.access_token is None


class TestErrors:
    def test_error_envelope_is_surfaced(self, client, http):
        http.request.return_value = _response(
            401, {"error": {"code": "refresh_failed", "message": "Refresh token expired or invalid."}}
        )
        with pytest.raises(SessionApiError) as excinfo:
            client.renew()
        assert str(excinfo.value) == "Refresh token expired or invalid."
        assert excinfo.value.status_code == 401
        assert excinfo.value.code == "refresh_failed"

    def test_non_json_error_uses_fallback(self, client, http):
        http.request.return_value = _response(502, json_error=True)
        with pytest.raises(SessionApiError) as excinfo:
            client.renew()
        assert str(excinfo.value) == "Could not extend session"
        assert excinfo.value.status_code == 502

    def test_network_error(self, client, http):
        http.request.side_effect = requests.Timeout("timed out")
        with pytest.raises(SessionApiError, match="network error"):
            client.fetch_token_status()

    def test_malformed_status_payload(self, client, http):
        http.request.return_value = _response(200, {"status": "ok"})
        with pytest.raises(SessionApiError, match="unexpected response"):
            client.fetch_token_status()


class TestAsyncAdapters:
    def test_status_source_runs_off_loop(self, client, http):
        http.request.return_value = _response(
            200, {"isValid": True, "timeRemaining": 90, "isAboutToExpire": False}
        )
        status = asyncio.run(client.status_source())
        assert status.time_remaining == 90

    def test_terminate_session_propagates_failure(self, client, http):
        http.request.return_value = _response(500, {"error": {"code": "internal_error", "message": "boom"}})
        with pytest.raises(SessionApiError):
            asyncio.run(client.terminate_session())
