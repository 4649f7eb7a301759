"""
API request and response models for the session service REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Wire format: the token status and refresh payloads use camelCase field names
(isValid, timeRemaining, isAboutToExpire, extendSession) because that is the
contract browser and CLI clients poll against. Python code uses snake_case;
the alias generator bridges the two.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth.models import CredentialStatus

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class RefreshRequest(BaseModel):
    """Request body for POST /api/v1/auth/refresh.

    extendSession=true is sent when the user explicitly confirms the renewal
    prompt: the refresh token is rotated (its lifetime restarts) and a token
    that expired within the grace window is still accepted. Without it only
    a new access token is minted.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    extend_session: bool = False


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class LoginResponse(BaseModel):
    """Response for POST /api/v1/auth/login. The refresh token travels only as a cookie."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    username: str
    role: str


class RefreshResponse(BaseModel):
    """Response for POST /api/v1/auth/refresh."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    access_token: str
    expires_in: int
    session_extended: bool


class TokenStatusResponse(BaseModel):
    """Response for GET /api/v1/auth/token-status.

    When is_valid is False, time_remaining and is_about_to_expire are not
    authoritative; clients must treat the session as expired.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    is_valid: bool
    time_remaining: Optional[int] = None
    is_about_to_expire: bool = False

    @classmethod
    def from_status(cls, status: CredentialStatus) -> "TokenStatusResponse":
        """Build the wire model from the auth-layer status value."""
        return cls(
            is_valid=status.is_valid,
            time_remaining=status.time_remaining,
            is_about_to_expire=status.is_about_to_expire,
        )


class MeResponse(BaseModel):
    """Response for GET /api/v1/auth/me."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    username: str
    role: str


class MessageResponse(BaseModel):
    """Generic acknowledgement body."""

    model_config = ConfigDict(frozen=True)

    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
