"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and routes do
the work.

Layer rule: no imports from api/ or session/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """An identity that can open sessions.

    hashed_password is a bcrypt hash. Inactive users cannot log in and their
    outstanding refresh tokens stop renewing.
    """

    username: str
    hashed_password: str
    role: str = "member"  # "admin", "member"
    id: int | None = None
    created_at: str | None = None
    last_login: str | None = None
    is_active: bool = True


@dataclass(frozen=True)
class CredentialStatus:
    """Server-side answer to "is this refresh token still good, and for how long?".

    time_remaining is None when the token is unknown (no cookie, revoked,
    lookup failed). When is_valid is False the other fields carry no promise.
    """

    is_valid: bool
    time_remaining: int | None
    is_about_to_expire: bool


@dataclass
class RefreshToken:
    """A server-side record of one renewable credential.

    Security design:
    - token_hash is HMAC-SHA256(SECRET_KEY, raw_token). The raw token only
      ever lives in the client's HTTP-only cookie; a leaked DB cannot be
      replayed without SECRET_KEY.
    - expires_at is an ISO 8601 UTC timestamp. Rotation deletes the old
      record and inserts a fresh one, so a token hash is never reused.
    - is_revoked is set on logout. Revoked tokens report isValid=false.
    """

    user_id: int
    token_hash: str
    expires_at: str
    id: int | None = None
    created_at: str | None = None
    is_revoked: bool = False
