"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the POS auth backend happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from POS_-prefixed environment
      variables and an optional .env file automatically. Field names map to env
      var names (e.g. session_ttl_hours -> POS_SESSION_TTL_HOURS).

  @model_validator(mode="after"): Cross-field validation after all fields are
      resolved. Rejects a non-positive session TTL and bcrypt costs that the
      bcrypt library would refuse.

Data directory: the host shell normally resolves the application-data path and
passes it via POS_DATA_DIR. The default (~/.pos-system) is only a fallback for
the management CLI.

Layer rule: core/ is the kernel. This module may not import from auth/.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("posauth.config")

# bcrypt accepts a log2 cost between 4 and 31 inclusive.
_MIN_BCRYPT_ROUNDS = 4
_MAX_BCRYPT_ROUNDS = 31


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="POS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    data_dir: Path = Path.home() / ".pos-system"
    db_filename: str = "pos.db"
    # Full SQLAlchemy URL. Overrides data_dir/db_filename when set (tests use
    # "sqlite://" for an in-memory store).
    database_url: Optional[str] = None

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # Absolute session lifetime from creation. Activity never extends it.
    session_ttl_hours: int = 24
    # 12 rounds is bcrypt's usual default and lands in the ~100-250ms range
    # per verification on desktop hardware.
    bcrypt_rounds: int = 12

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    default_admin_username: str = "admin"
    default_admin_password: str = "admin123"
    default_admin_name: str = "Administrator"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_auth_settings(self) -> "Settings":
        """Reject values that would make every session instantly expired or
        make bcrypt raise on the first hash."""
        if self.session_ttl_hours <= 0:
            raise ValueError("POS_SESSION_TTL_HOURS must be a positive number of hours.")
        if not _MIN_BCRYPT_ROUNDS <= self.bcrypt_rounds <= _MAX_BCRYPT_ROUNDS:
            raise ValueError(
                f"POS_BCRYPT_ROUNDS must be between {_MIN_BCRYPT_ROUNDS} and {_MAX_BCRYPT_ROUNDS}."
            )
        if self.debug and self.bcrypt_rounds < 10:
            logger.warning("Using a low bcrypt cost (%d rounds). Do not use this in production.", self.bcrypt_rounds)
        return self

    def resolved_database_url(self) -> str:
        """Return the SQLAlchemy URL for the auth store.

        When no explicit database_url is configured, the data directory is
        created on first use so the SQLite file can be opened.
        """
        if self.database_url:
            return self.database_url
        self.data_dir.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{self.data_dir / self.db_filename}"


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
