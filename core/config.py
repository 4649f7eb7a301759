"""
core/config.py -- Centralized server configuration via pydantic-settings.

All environment variable reads for the session service happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. refresh_token_expire_seconds -> REFRESH_TOKEN_EXPIRE_SECONDS).

  @model_validator(mode="after"): Cross-field validation after all fields are
      resolved. Implements the DEBUG-conditional SECRET_KEY rule and the
      lifetime ordering rule below.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. HMAC-SHA256 refresh
  token hashing and JWT signing both rely on key entropy.

  In production mode (DEBUG not set or false), a missing SECRET_KEY is a hard
  startup failure. A random key would silently invalidate every refresh token
  on restart.

Client-side timing constants (countdown ceiling, poll and tick intervals) are
NOT here: they are process-wide constants in session/models.py and are not
meant to be tuned per deployment.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or session/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("sessionkeeper.config")


class Settings(BaseSettings):
    """Service settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured". The validator below
    # either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    # Empty string means "use the SQLite file next to auth/store.py".
    database_url: str = ""

    # ------------------------------------------------------------------
    # Credential lifetimes
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    # Short-lived bearer token; renewed silently with the refresh cookie.
    access_token_expire_seconds: int = 300
    # Lifetime of the renewable credential (the refresh token cookie).
    refresh_token_expire_seconds: int = 3600
    # Remaining lifetime at which the status query reports isAboutToExpire.
    # Also the grace window in which an expired refresh token may still be
    # extended when the client explicitly asks to extend the session.
    dialog_threshold_seconds: int = 30

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    token_purge_interval_seconds: int = 3600

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
        Production mode: refuse to start if SECRET_KEY is missing.
        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning(
                    "WARNING: Using auto-generated SECRET_KEY. " "Sessions will not persist across restarts."
                )
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @model_validator(mode="after")
    def validate_lifetimes(self) -> "Settings":
        """The refresh token must outlive the prompt threshold, or it would be
        "about to expire" from the moment it is issued."""
        if self.refresh_token_expire_seconds <= self.dialog_threshold_seconds:
            raise ValueError("REFRESH_TOKEN_EXPIRE_SECONDS must be greater than DIALOG_THRESHOLD_SECONDS.")
        if self.access_token_expire_seconds <= 0:
            raise ValueError("ACCESS_TOKEN_EXPIRE_SECONDS must be positive.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
