"""
session/client.py -- HTTP collaborators for the session coordinator.

SessionApiClient talks to the session service over a requests.Session, which
keeps the refresh cookie in its cookie jar exactly like a browser would. The
blocking calls are exposed to the event loop through async adapters that run
them with asyncio.to_thread, so a slow network call never stalls the
countdown tick.

  status_source()     -> StatusSource for StatusPoller
  renew_session()     -> renewal collaborator (extendSession=true)
  terminate_session() -> termination collaborator (logout)

Every failure -- transport error, non-2xx answer, unreadable body -- is raised
as SessionApiError with a message suitable for showing to the user.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import requests

from session.models import TokenStatus

logger = logging.getLogger("sessionkeeper.client")

_TIMEOUT = 5  # seconds; a status answer older than this is useless anyway

# Ask every cache on the path for a fresh answer.
_NO_CACHE_HEADERS = {"Cache-Control": "no-cache", "Pragma": "no-cache"}


class SessionApiError(Exception):
    """A session API call failed. str(exc) is safe to show to the user."""

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


def _error_from_response(resp: requests.Response, fallback: str) -> SessionApiError:
    """Map a non-2xx response to SessionApiError using the service's error envelope."""
    try:
        error = resp.json().get("error", {})
        message = error.get("message") or fallback
        code = error.get("code")
    except (ValueError, AttributeError):
        message, code = fallback, None
    return SessionApiError(message, status_code=resp.status_code, code=code)


class SessionApiClient:
    """Blocking client for the session endpoints, plus async adapters.

    Usage:
        client = SessionApiClient("http://localhost:8000")
        client.login("alice", "secret")
        status = client.fetch_token_status()
    """

    def __init__(self, base_url: str, session: Optional[requests.Session] = None, timeout: float = _TIMEOUT) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http = session or requests.Session()
        self._http.max_redirects = 3
        self.access_token: Optional[str] = None
        self.username: Optional[str] = None

    def _url(self, path: str) -> str:
        return f"{self.base_url}/api/v1{path}"

    def _request(self, method: str, path: str, fallback: str, **kwargs: Any) -> dict[str, Any]:
        try:
            resp = self._http.request(method, self._url(path), timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.debug("%s %s failed: %s", method, path, exc)
            raise SessionApiError(f"{fallback} (network error)") from exc
        if not resp.ok:
            raise _error_from_response(resp, fallback)
        try:
            return resp.json()
        except ValueError as exc:
            raise SessionApiError(f"{fallback} (unreadable response)", status_code=resp.status_code) from exc

    # ------------------------------------------------------------------
    # Blocking calls
    # ------------------------------------------------------------------

    def login(self, username: str, password: str) -> dict[str, Any]:
        """Log in; the service sets the refresh cookie on this client's session."""
        data = self._request(
            "POST", "/auth/login", "Login failed", json={"username": username, "password": password}
        )
        self.access_token = data.get("access_token")
        self.username = data.get("username")
        logger.info("Logged in as %s", self.username)
        return data

    def fetch_token_status(self) -> TokenStatus:
        """Query the refresh token status, bypassing caches."""
        data = self._request("GET", "/auth/token-status", "Could not check session status", headers=_NO_CACHE_HEADERS)
        try:
            return TokenStatus.from_payload(data)
        except (TypeError, ValueError) as exc:
            raise SessionApiError("Could not check session status (unexpected response)") from exc

    def renew(self) -> dict[str, Any]:
        """Extend the session: rotates the refresh cookie and returns a new access token."""
        data = self._request("POST", "/auth/refresh", "Could not extend session", json={"extendSession": True})
        self.access_token = data.get("accessToken") or self.access_token
        return data

    def logout(self) -> None:
        """Revoke the refresh token server-side. Local credentials are dropped either way."""
        try:
            self._request("POST", "/auth/logout", "Could not sign out")
        finally:
            self.access_token = None

    def close(self) -> None:
        self._http.close()

    # ------------------------------------------------------------------
    # Async adapters for the event loop
    # ------------------------------------------------------------------

    async def status_source(self) -> TokenStatus:
        return await asyncio.to_thread(self.fetch_token_status)

    async def renew_session(self) -> dict[str, Any]:
        return await asyncio.to_thread(self.renew)

    async def terminate_session(self) -> None:
        await asyncio.to_thread(self.logout)
