"""
auth/tokens.py -- Password hashing, access tokens, and refresh-token lifecycle.

Security design decisions:
  Access tokens: python-jose with HS256. Short-lived (ACCESS_TOKEN_EXPIRE_SECONDS)
       bearer tokens carrying user_id, username, role and expiry. Verification
       returns None on any failure -- the route layer turns that into a 401.

  Refresh tokens: opaque random strings from secrets.token_urlsafe(48), sent
       to the browser only as an httpOnly cookie scoped to /api/v1/auth. We
       store HMAC-SHA256(SECRET_KEY, raw_token) so lookup is O(1) and a DB
       leak cannot be replayed. The refresh token is the renewable credential
       whose remaining lifetime the client coordinator watches.

  Passwords: bcrypt directly (no passlib wrapper). _DUMMY_HASH equalizes
       timing in authenticate_user() so response time does not reveal whether
       a username exists.

  Status: compute_credential_status() is a pure function of (expires_at, now,
       threshold) so the rule behind the status query is unit-testable without
       a database or a clock.

Layer rule: no imports from api/ or session/. Import from core/ is allowed.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from auth.models import CredentialStatus, RefreshToken
from auth.store import to_iso
from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("sessionkeeper.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

REFRESH_COOKIE_NAME = "refresh_token"
REFRESH_COOKIE_PATH = "/api/v1/auth"

# Returned whenever the credential cannot be found or evaluated.
UNKNOWN_STATUS = CredentialStatus(is_valid=False, time_remaining=None, is_about_to_expire=False)

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Timing equalization dummy hash. Computed once at module load so the first
# login attempt is not measurably slower than subsequent ones.
_DUMMY_HASH: str = hash_password("sessionkeeper_timing_dummy")


def authenticate_user(store: UserStore, username: str, password: str) -> User | None:
    """Authenticate a username/password login with timing equalization.

    Always runs bcrypt whether or not the user exists. Returns the User on
    success, None on any failure.
    """
    user = store.get_by_username(username)
    if user is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    if not user.is_active:
        return None
    return user


# ---------------------------------------------------------------------------
# Access tokens (JWT)
# ---------------------------------------------------------------------------


def create_access_token(user_id: int, username: str, role: str, expire_seconds: int = 0) -> str:
    """Encode a signed JWT with user identity and expiry.

    expire_seconds of 0 (default) uses Settings.access_token_expire_seconds.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.access_token_expire_seconds
    expire = datetime.now(timezone.utc) + timedelta(seconds=duration)
    payload = {
        "sub": username,
        "user_id": user_id,
        "role": role,
        "exp": expire,
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    """Decode and verify a JWT. Returns the payload dict or None on any failure."""
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
        if "user_id" not in payload or "role" not in payload:
            return None
        return payload
    except JWTError:
        return None


# ---------------------------------------------------------------------------
# Refresh tokens
# ---------------------------------------------------------------------------


def generate_refresh_token() -> str:
    """Return a new opaque refresh token (64 URL-safe chars, 384 bits)."""
    return secrets.token_urlsafe(48)


def hash_refresh_token(raw_token: str) -> str:
    """Return HMAC-SHA256(SECRET_KEY, raw_token) as a hex string."""
    return hmac.new(
        _settings.secret_key.encode(),
        raw_token.encode(),
        hashlib.sha256,
    ).hexdigest()


def refresh_token_expiry(now: datetime | None = None) -> datetime:
    """Return the expiry timestamp for a refresh token issued at `now`."""
    issued = now or datetime.now(timezone.utc)
    return issued + timedelta(seconds=_settings.refresh_token_expire_seconds)


def issue_refresh_token(store: UserStore, user_id: int) -> str:
    """Create and persist a fresh refresh token for user_id. Returns the raw token."""
    raw = generate_refresh_token()
    store.create_refresh_token(
        RefreshToken(
            user_id=user_id,
            token_hash=hash_refresh_token(raw),
            expires_at=to_iso(refresh_token_expiry()),
        )
    )
    return raw


def rotate_refresh_token(store: UserStore, record: RefreshToken) -> str:
    """Replace `record` with a brand-new token for the same user. Returns the raw token."""
    raw = generate_refresh_token()
    store.rotate_refresh_token(
        record.token_hash,
        RefreshToken(
            user_id=record.user_id,
            token_hash=hash_refresh_token(raw),
            expires_at=to_iso(refresh_token_expiry()),
        ),
    )
    logger.info("Rotated refresh token for user_id=%d", record.user_id)
    return raw


def compute_credential_status(expires_at: datetime, now: datetime, threshold_seconds: int) -> CredentialStatus:
    """Apply the status rule to one refresh token.

    Remaining lifetime is floored to whole seconds. A token with nothing left
    reports isValid=false with timeRemaining=0 (known to be expired, as
    opposed to unknown). isAboutToExpire is true only for a still-valid token
    inside the threshold window.
    """
    remaining = max(0, int((expires_at - now).total_seconds()))
    if remaining <= 0:
        return CredentialStatus(is_valid=False, time_remaining=0, is_about_to_expire=False)
    return CredentialStatus(
        is_valid=True,
        time_remaining=remaining,
        is_about_to_expire=0 < remaining <= threshold_seconds,
    )


def credential_status(store: UserStore, raw_token: str | None, now: datetime | None = None) -> CredentialStatus:
    """Look up a raw refresh token and report its status.

    Never raises: lookup or parse failures are logged and reported as
    UNKNOWN_STATUS, which the client treats as "assume expired".
    """
    if not raw_token:
        return UNKNOWN_STATUS
    try:
        record = store.get_refresh_token(hash_refresh_token(raw_token))
        if record is None:
            return UNKNOWN_STATUS
        expires_at = datetime.fromisoformat(record.expires_at)
    except Exception:
        logger.exception("Refresh token status lookup failed")
        return UNKNOWN_STATUS
    return compute_credential_status(
        expires_at,
        now or datetime.now(timezone.utc),
        _settings.dialog_threshold_seconds,
    )


def find_renewable_token(
    store: UserStore,
    raw_token: str | None,
    extend_session: bool = False,
    now: datetime | None = None,
) -> RefreshToken | None:
    """Return the stored record if raw_token may be used to renew the session.

    A plain refresh requires an unexpired token. An explicit extend-session
    request also accepts a token that expired less than
    DIALOG_THRESHOLD_SECONDS ago, so a user who clicks "extend" in the last
    instant of the countdown is not rejected by a few hundred milliseconds of
    network latency.
    """
    if not raw_token:
        return None
    record = store.get_refresh_token(hash_refresh_token(raw_token))
    if record is None:
        return None
    moment = now or datetime.now(timezone.utc)
    grace = timedelta(seconds=_settings.dialog_threshold_seconds if extend_session else 0)
    if datetime.fromisoformat(record.expires_at) + grace <= moment:
        return None
    return record


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_refresh_cookie(response, raw_token: str) -> None:
    """Write the refresh token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="strict": the renewal endpoints are never reached cross-site.
    path: the cookie is only sent to /api/v1/auth/* routes.
    max_age: matches the refresh token lifetime so both expire together.
    """
    response.set_cookie(
        REFRESH_COOKIE_NAME,
        value=raw_token,
        httponly=True,
        samesite="strict",
        secure=_settings.secure_cookies,
        max_age=_settings.refresh_token_expire_seconds,
        path=REFRESH_COOKIE_PATH,
    )


def clear_refresh_cookie(response) -> None:
    """Delete the refresh cookie (same path it was set with)."""
    response.delete_cookie(REFRESH_COOKIE_NAME, path=REFRESH_COOKIE_PATH)
