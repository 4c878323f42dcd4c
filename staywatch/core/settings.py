"""Staywatch application settings loaded from environment and ``.env`` files.

Uses :mod:`pydantic_settings` to parse environment variables (and optionally
an ``.env`` file) into a validated settings object.

Every environment variable maps 1-to-1 to a field in :class:`Settings`; the
field name is the **lowercase** version of the env-var name (e.g.
``WORKER_CONCURRENCY`` → ``worker_concurrency``).

Typical usage::

    from staywatch.core.settings import Settings

    settings = Settings()                  # loads from env + .env
    print(settings.telegram_configured)    # True / False
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["Settings"]

logger = logging.getLogger(__name__)

_DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/121.0.0.0 Safari/537.36"
)


class Settings(BaseSettings):
    """Central application configuration.

    Values are loaded in priority order:

    1. Actual environment variables (highest priority).
    2. ``.env`` file in the working directory.
    3. Field defaults (lowest priority).

    ``TELEGRAM_BOT_TOKEN`` may be left empty during development; live mode
    then refuses to start (see
    :func:`~staywatch.orchestrator.runner.open_runner`) while ``--dry-run``
    keeps working.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Telegram
    # ------------------------------------------------------------------
    telegram_bot_token: str = Field(
        default="",
        description="Bot token from @BotFather (required for live alerts).",
    )

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------
    database_path: str = Field(
        default="data/staywatch.db",
        description="Path to the SQLite database file.",
    )

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------
    check_interval_s: int = Field(
        default=600,
        ge=1,
        description="Seconds between two check cycles.",
    )
    startup_delay_s: float = Field(
        default=10.0,
        ge=0.0,
        description="Warm-up delay before the first cycle after startup.",
    )
    worker_concurrency: int = Field(
        default=3,
        ge=1,
        description="Maximum number of availability checks running at once.",
    )

    # ------------------------------------------------------------------
    # Availability check
    # ------------------------------------------------------------------
    navigation_timeout_ms: int = Field(
        default=60_000,
        ge=1,
        description="Hard deadline for page navigation.",
    )
    condition_timeout_ms: int = Field(
        default=10_000,
        ge=0,
        description="How long to wait for an availability marker to render.",
    )
    check_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Fetch attempts per check (1 initial + retries).",
    )
    check_retry_delay_s: float = Field(
        default=3.0,
        ge=0.0,
        description="Fixed delay between two fetch attempts.",
    )

    # ------------------------------------------------------------------
    # Browser
    # ------------------------------------------------------------------
    browser_headless: bool = Field(default=True, description="Run Chromium headless.")
    browser_user_agent: str = Field(
        default=_DEFAULT_USER_AGENT,
        description="User-Agent presented by every browser session.",
    )
    browser_accept_language: str = Field(
        default="ko-KR,ko;q=0.9,en-US;q=0.8,en;q=0.7",
        description="Accept-Language header sent with every page load.",
    )

    # ------------------------------------------------------------------
    # Platforms
    # ------------------------------------------------------------------
    agoda_partner_cid: str = Field(
        default="-1",
        description="Agoda partner (cid) query parameter appended to check URLs.",
    )

    # ------------------------------------------------------------------
    # Runtime flags
    # ------------------------------------------------------------------
    dry_run: bool = Field(
        default=False,
        description="Log alert payloads without sending Telegram messages.",
    )
    log_level: str = Field(default="INFO", description="Logging level.")
    log_format: str = Field(default="text", description="Log format: 'text' or 'json'.")

    # ------------------------------------------------------------------
    # Field validators
    # ------------------------------------------------------------------

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got {v!r}")
        return v_upper

    @field_validator("log_format")
    @classmethod
    def _validate_log_format(cls, v: str) -> str:
        allowed = {"text", "json"}
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"log_format must be one of {allowed}, got {v!r}")
        return v_lower

    @field_validator("agoda_partner_cid")
    @classmethod
    def _validate_partner_cid(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("agoda_partner_cid must not be blank")
        return v

    # ------------------------------------------------------------------
    # Derived helpers
    # ------------------------------------------------------------------

    @property
    def database_path_resolved(self) -> Path:
        """Return the database path as a resolved :class:`~pathlib.Path`."""
        return Path(self.database_path).resolve()

    @property
    def telegram_configured(self) -> bool:
        """``True`` if a bot token is set."""
        return bool(self.telegram_bot_token)
