"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the KGL API happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY, bcrypt_rounds -> BCRYPT_ROUNDS).

  @model_validator(mode="after"): Applies the signing-secret policy once all
      fields are resolved.

Signing secret policy:
  SECRET_KEY unset -> the fixed DEFAULT_SECRET_KEY is used and a warning is
      logged on every startup. This keeps a fresh checkout runnable without
      configuration. Anyone holding the default can mint tokens, so
      production deployments must set SECRET_KEY. Set ALLOW_DEFAULT_SECRET=false
      to turn the fallback into a hard startup failure.

  SECRET_KEY set but shorter than 32 chars -> rejected. This is a deliberate
      tightening over accepting any non-empty secret: HS256 signing relies on
      key entropy.

  JWT_SECRET is accepted as an alias for SECRET_KEY so existing deployment
  environments keep working. SECRET_KEY wins when both are set.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or records/.
"""

import logging
from functools import lru_cache

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("kgl.config")

DEFAULT_SECRET_KEY = "default-secret"  # nosec B105 -- documented insecure fallback


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

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
    database_url: str = "sqlite:///kgl_groceries.db"

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured"; the validator below
    # replaces it with DEFAULT_SECRET_KEY or refuses to start.
    secret_key: str = Field(default="", validation_alias=AliasChoices("SECRET_KEY", "JWT_SECRET"))
    allow_default_secret: bool = True
    # bcrypt work factor. Each +1 doubles hashing cost.
    bcrypt_rounds: int = Field(default=10, ge=4, le=31)

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    rate_limit_enabled: bool = True
    login_rate_limit: str = "10/minute"
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]
    allowed_hosts: list[str] = ["*"]

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Resolve SECRET_KEY: explicit value, documented default, or failure."""
        if not self.secret_key:
            if not self.allow_default_secret:
                raise ValueError(
                    "SECRET_KEY is not set and ALLOW_DEFAULT_SECRET=false. "
                    "Set SECRET_KEY in your environment or .env file."
                )
            logger.warning(
                "SECRET_KEY is not set -- signing tokens with the built-in default key. "
                "Tokens can be forged by anyone who knows it. Set SECRET_KEY before deploying."
            )
            self.secret_key = DEFAULT_SECRET_KEY
            return self
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @property
    def using_default_secret(self) -> bool:
        return self.secret_key == DEFAULT_SECRET_KEY


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
