"""
api/routes/v1/auth.py -- Session lifecycle REST endpoints.

Routes:
  POST /api/v1/auth/login          -- password login; returns access token, sets refresh cookie
  GET  /api/v1/auth/token-status   -- remaining lifetime of the refresh cookie (polled by clients)
  POST /api/v1/auth/refresh        -- mint a new access token; extendSession=true rotates the cookie
  POST /api/v1/auth/logout         -- revoke the refresh token and clear the cookie
  GET  /api/v1/auth/me             -- current user info (requires Bearer access token)

Security:
  POST /login is rate-limited (LOGIN_RATE_LIMIT, default 10/minute per IP).
  authenticate_user() provides timing equalization -- use it, never inline.
  Cache-Control: no-store on every response that carries or describes a
  credential. The status response in particular must never be served from a
  cache: a stale "valid" answer would keep a dead session on screen.

Auth policy:
  - login, token-status, refresh, logout: authenticated by the refresh cookie
    (or not at all) -- they are what a client with an expired access token
    calls to recover or end its session.
  - me: requires a valid access token (get_current_user).
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import (
    LoginRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    RefreshRequest,
    RefreshResponse,
    TokenStatusResponse,
)
from auth.dependencies import get_current_user
from auth.models import User
from auth.store import UserStore
from auth.tokens import (
    REFRESH_COOKIE_NAME,
    authenticate_user,
    clear_refresh_cookie,
    create_access_token,
    credential_status,
    find_renewable_token,
    hash_refresh_token,
    issue_refresh_token,
    rotate_refresh_token,
    set_refresh_cookie,
)
from core.config import get_settings

logger = logging.getLogger("sessionkeeper.api.auth")

_settings = get_settings()

router = APIRouter()


def _no_store(resp: JSONResponse) -> JSONResponse:
    resp.headers["Cache-Control"] = "no-store"
    resp.headers["Pragma"] = "no-cache"
    return resp


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return _no_store(
        JSONResponse(
            status_code=status_code,
            content={"error": {"code": code, "message": message}},
        )
    )


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


@limiter.limit(_settings.login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password.

    Returns the access token in the body and sets the refresh token as an
    httpOnly cookie. Wrong username and wrong password produce the same
    "bad_credentials" error to avoid leaking username existence.
    """
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, body.username, body.password)
    if user is None:
        return _error(401, "bad_credentials", "Invalid username or password.")

    access_token = create_access_token(user.id, user.username, user.role)
    refresh_token = issue_refresh_token(user_store, user.id)
    user_store.update_last_login(user.id)
    logger.info("Session opened for user_id=%d", user.id)

    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            access_token=access_token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=_settings.access_token_expire_seconds,
            username=user.username,
            role=user.role,
        ).model_dump(),
    )
    set_refresh_cookie(resp, refresh_token)
    return _no_store(resp)


# ---------------------------------------------------------------------------
# Token status (the StatusSource clients poll)
# ---------------------------------------------------------------------------


@router.get("/auth/token-status", response_model=TokenStatusResponse)
def token_status(request: Request) -> JSONResponse:
    """Report whether the refresh cookie is valid and how long it has left.

    Idempotent and side-effect free. Never returns an error status: a missing,
    unknown, revoked or unreadable token is reported as
    {isValid: false, timeRemaining: null, isAboutToExpire: false}.
    """
    user_store: UserStore = request.app.state.user_store
    status = credential_status(user_store, request.cookies.get(REFRESH_COOKIE_NAME))
    resp = JSONResponse(content=TokenStatusResponse.from_status(status).model_dump(by_alias=True))
    return _no_store(resp)


# ---------------------------------------------------------------------------
# Refresh (the renewal collaborator)
# ---------------------------------------------------------------------------


@router.post("/auth/refresh", response_model=RefreshResponse)
def refresh(request: Request, body: Optional[RefreshRequest] = None) -> JSONResponse:
    """Mint a new access token from the refresh cookie.

    With extendSession=true the refresh token is rotated: the old record is
    replaced and a new cookie with a full lifetime is set. That is the
    "renew" action behind the client's expiration prompt.
    """
    extend = body.extend_session if body is not None else False
    user_store: UserStore = request.app.state.user_store

    record = find_renewable_token(user_store, request.cookies.get(REFRESH_COOKIE_NAME), extend_session=extend)
    if record is None:
        return _error(401, "refresh_failed", "Refresh token expired or invalid.")

    user: Optional[User] = user_store.get_by_id(record.user_id)
    if user is None or not user.is_active:
        return _error(401, "refresh_failed", "User not found.")

    access_token = create_access_token(user.id, user.username, user.role)
    new_refresh_token = rotate_refresh_token(user_store, record) if extend else None

    resp = JSONResponse(
        content=RefreshResponse(
            access_token=access_token,
            expires_in=_settings.access_token_expire_seconds,
            session_extended=extend,
        ).model_dump(by_alias=True)
    )
    if new_refresh_token is not None:
        set_refresh_cookie(resp, new_refresh_token)
    return _no_store(resp)


# ---------------------------------------------------------------------------
# Logout (the termination collaborator)
# ---------------------------------------------------------------------------


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request) -> JSONResponse:
    """Revoke the refresh token (if any) and clear the cookie.

    Idempotent: logging out twice, or without a cookie, still returns 200.
    """
    user_store: UserStore = request.app.state.user_store
    raw = request.cookies.get(REFRESH_COOKIE_NAME)
    if raw and user_store.revoke_refresh_token(hash_refresh_token(raw)):
        logger.info("Refresh token revoked on logout")
    resp = JSONResponse(content=MessageResponse(message="Logged out.").model_dump())
    clear_refresh_cookie(resp)
    return _no_store(resp)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
async def me(current_user: User = Depends(get_current_user)) -> MeResponse:
    """Return identity information for the currently authenticated user."""
    return MeResponse(
        user_id=current_user.id,
        username=current_user.username,
        role=current_user.role,
    )
