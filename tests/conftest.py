"""
tests/conftest.py -- Shared test fixtures for Session Keeper tests.

This module provides:
  - _make_test_store(): creates an isolated in-memory auth DB
  - _patch_lifespan(): wires the test store into app.state, bypassing real startup
  - plant_token: inserts a refresh token with a chosen lifetime for the seeded user
  - auth_store: module-scoped store with one seeded user
  - api_client: fresh TestClient per test, so cookie jars never leak between tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

DEBUG and LOGIN_RATE_LIMIT must be set before any auth/core import:
get_settings() is cached on first call, and the login rate limit is bound
when api/routes/v1/auth.py is imported.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import NamedTuple

# CRITICAL: Set these before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import RefreshToken, User
from auth.store import UserStore, to_iso
from auth.tokens import create_access_token, generate_refresh_token, hash_password, hash_refresh_token

# TrustedHostMiddleware only admits localhost-style hosts.
BASE_URL = "http://localhost"

TEST_USERNAME = "alice"
TEST_PASSWORD = "correct-horse-battery"


class SeededStore(NamedTuple):
    store: UserStore
    user_id: int
    access_token: str
    username: str = TEST_USERNAME
    password: str = TEST_PASSWORD


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_store(db_suffix: str) -> UserStore:
    """Create an isolated named shared-memory SQLite store.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    return UserStore(db_url=f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(user_store: UserStore):
    """Return an async context manager that replaces the real lifespan.

    The purge_task is a long-sleeping coroutine that keeps asyncio happy
    (a real asyncio.Task is required; MagicMock would fail on .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


def plant_refresh_token(store: UserStore, user_id: int, seconds_left: float) -> str:
    """Insert a refresh token expiring seconds_left from now (negative = already expired).

    Returns the raw token, as the client would hold it in its cookie.
    """
    raw = generate_refresh_token()
    store.create_refresh_token(
        RefreshToken(
            user_id=user_id,
            token_hash=hash_refresh_token(raw),
            expires_at=to_iso(datetime.now(timezone.utc) + timedelta(seconds=seconds_left)),
        )
    )
    return raw


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def auth_store(request) -> Generator[SeededStore, None, None]:
    """Yield a store with one active member user, isolated per test module."""
    store = _make_test_store(request.module.__name__.rsplit(".", 1)[-1])
    uid = store.create_user(User(username=TEST_USERNAME, hashed_password=hash_password(TEST_PASSWORD)))
    token = create_access_token(user_id=uid, username=TEST_USERNAME, role="member", expire_seconds=3600)
    yield SeededStore(store, uid, token)
    store.close()


@pytest.fixture()
def api_client(auth_store: SeededStore) -> Generator[TestClient, None, None]:
    """Yield a TestClient with an empty cookie jar, backed by the module's store.

    Function-scoped because the refresh cookie set by /login lives in the
    client's jar and would otherwise leak into the next test's requests.
    """
    app.router.lifespan_context = _patch_lifespan(auth_store.store)
    with TestClient(app, base_url=BASE_URL, raise_server_exceptions=True) as client:
        yield client


@pytest.fixture()
def plant_token(auth_store: SeededStore):
    """Return plant(seconds_left) -> raw token for the seeded user."""

    def plant(seconds_left: float) -> str:
        return plant_refresh_token(auth_store.store, auth_store.user_id, seconds_left)

    return plant
