"""
api/main.py -- FastAPI application entry point for the session service.

Serves the credential side of session continuity: login issues a renewable
refresh token, /auth/token-status reports its remaining lifetime, /auth/refresh
renews it and /auth/logout ends it. The client-side coordinator in session/
drives its prompt and countdown from these endpoints.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan handles startup (user store, token purge task) and shutdown
(cancel purge task, close DB connection) symmetrically.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.store import UserStore
from core.config import get_settings

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("sessionkeeper.api")

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI, interval_seconds: int) -> None:
    """Delete expired and revoked refresh tokens every interval_seconds.

    CancelledError from task.cancel() during shutdown propagates out of
    asyncio.sleep and unwinds the coroutine.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        removed = app.state.user_store.purge_refresh_tokens()
        if removed:
            logger.info("Purged %d expired refresh token(s)", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown. The store must exist before the purge task references it.
    """
    settings = get_settings()
    logger.info("Session service starting up")
    app.state.user_store = UserStore(settings.database_url) if settings.database_url else UserStore()
    logger.info("User store initialized (has_users=%s)", app.state.user_store.has_users())
    app.state.purge_task = asyncio.create_task(_purge_loop(app, settings.token_purge_interval_seconds))

    yield

    app.state.purge_task.cancel()
    app.state.user_store.close()
    logger.info("Session service shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Session Keeper API",
    description="Renewable session credentials with a pollable remaining-lifetime status.",
    version=__version__,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=["localhost", "127.0.0.1", "*.localhost"],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost", "http://localhost:3000", "http://127.0.0.1"],
    allow_credentials=True,  # the refresh cookie must cross the origin boundary
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization", "Cache-Control"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Request logging middleware
#
# Status polls arrive twice a second per open session, so they are logged at
# DEBUG to keep the INFO log readable.
# ---------------------------------------------------------------------------

_QUIET_PATHS = frozenset({"/api/v1/auth/token-status", "/api/v1/health"})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    level = logging.DEBUG if request.url.path in _QUIET_PATHS else logging.INFO
    logger.log(
        level,
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every error leaves through _error_response(), so clients (including
# session/client.py) parse one envelope: {"error": {code, message, detail}}.
# Errors under /api/v1/auth describe credentials and are never cacheable.
# ---------------------------------------------------------------------------


def _error_response(
    request: Request,
    status_code: int,
    error: ErrorDetail,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    response = JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error).model_dump(),
        headers=headers,
    )
    if request.url.path.startswith("/api/v1/auth"):
        response.headers["Cache-Control"] = "no-store"
    if status_code == 401:
        response.headers.setdefault("WWW-Authenticate", "Bearer")
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 for too many login attempts, with Retry-After."""
    logger.warning("Rate limit hit on %s from %s", request.url.path, request.client.host if request.client else "?")
    return _error_response(
        request,
        429,
        ErrorDetail(code="rate_limited", message="Too many login attempts. Try again later.", detail=str(exc.detail)),
        headers={"Retry-After": str(int(getattr(exc, "retry_after", 60)))},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error_response(
        request,
        422,
        ErrorDetail(code="validation_error", message="Request validation failed.", detail=str(exc.errors())),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Structured error for HTTPException.

    auth/dependencies.py raises with a dict detail ({code, message}), which
    becomes the error field as-is. Any other detail is wrapped.
    """
    if isinstance(exc.detail, dict):
        error = ErrorDetail(**exc.detail)
    else:
        error = ErrorDetail(code=f"http_{exc.status_code}", message=str(exc.detail))
    return _error_response(request, exc.status_code, error, headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Unexpected server errors. The exception goes to the log, never to the body."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(
        request,
        500,
        ErrorDetail(code="internal_error", message="An unexpected error occurred."),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py so it is reachable regardless of router state.
# No rate limit -- health checks must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=__version__)
