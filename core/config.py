"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for ProductAPI happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. Settings
      are read-only after startup.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY, jwt_issuer -> JWT_ISSUER).

  @model_validator(mode="after"): Cross-field validation once every field is
      resolved. Missing signing material is a fatal startup error, surfaced to
      callers as ConfigurationError.

Security notes:
  [M6] The signing secret feeds HMAC-SHA512. A key shorter than the 512-bit
       digest weakens the signature, so SECRET_KEY must be at least 64 chars.

  [M7] Outside DEBUG mode a missing SECRET_KEY refuses to start. JWT_ISSUER and
       JWT_AUDIENCE are required in every mode.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("productapi.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'auth' / 'productapi_auth.db'}"

MIN_SECRET_KEY_LENGTH = 64


class ConfigurationError(RuntimeError):
    """Raised when required configuration is missing or invalid at startup.

    Not recoverable per request: the process should refuse to serve.
    """


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    Fields without a usable default (secret_key, jwt_issuer, jwt_audience) use
    the empty string as the "not configured" sentinel; the validator below
    rejects it, so callers never see "".
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
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Token signing
    # ------------------------------------------------------------------

    secret_key: str = ""
    jwt_issuer: str = ""
    jwt_audience: str = ""

    # Access tokens live one day, refresh tokens seven.
    access_token_expire_seconds: int = 86400
    refresh_token_expire_days: int = 7

    # ------------------------------------------------------------------
    # Passwords
    # ------------------------------------------------------------------

    bcrypt_rounds: int = 12

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_signing_config(self) -> "Settings":
        """Enforce the signing configuration policy [M6] [M7].

        Dev mode (DEBUG=true): a missing SECRET_KEY is replaced by a random
            one with a warning. Tokens will not survive a restart.

        Production mode: a missing SECRET_KEY is fatal.

        Both modes: SECRET_KEY shorter than 64 characters is rejected, and
            JWT_ISSUER / JWT_AUDIENCE must be set.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(MIN_SECRET_KEY_LENGTH)
                logger.warning("WARNING: Using auto-generated SECRET_KEY. Tokens will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < MIN_SECRET_KEY_LENGTH:
            raise ValueError(f"SECRET_KEY must be at least {MIN_SECRET_KEY_LENGTH} characters.")
        if not self.jwt_issuer.strip():
            raise ValueError("JWT_ISSUER is required.")
        if not self.jwt_audience.strip():
            raise ValueError("JWT_AUDIENCE is required.")
        if self.access_token_expire_seconds <= 0 or self.refresh_token_expire_days <= 0:
            raise ValueError("Token lifetimes must be positive.")
        return self


def load_settings() -> Settings:
    """Build a fresh Settings instance, translating validation failures.

    Raises:
        ConfigurationError: if any required value is missing or invalid.
    """
    try:
        return Settings()
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    All modules should call get_settings() rather than constructing Settings()
    directly. In tests: call get_settings.cache_clear() between test cases if
    you need to inject different environment variables.
    """
    return load_settings()
