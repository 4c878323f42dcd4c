"""Staywatch exception taxonomy.

Every custom exception inherits from :class:`StaywatchError`.  Exceptions are
organised by architectural layer so callers can catch at the right granularity:

    Layer hierarchy
    ---------------
    StaywatchError
    ├── ConfigError
    ├── StorageError
    ├── PlatformError
    │   └── UnknownPlatformError
    ├── FetchError
    │   ├── SessionError
    │   ├── TransientFetchError
    │   └── TerminalFetchError
    │       └── FetchTimeoutError
    └── NotificationError
        └── TelegramError
            └── TelegramRateLimitError

Fetch errors never escape the availability checker: they are converted into
an :class:`~staywatch.core.models.ErrorResult`.  ``TransientFetchError`` is
the only branch the checker retries.

Usage:

    from staywatch.core.exceptions import TransientFetchError

    raise TransientFetchError("Target page, context or browser has been closed") from exc
"""

from __future__ import annotations

import logging

__all__ = [
    "StaywatchError",
    # Config
    "ConfigError",
    # Storage
    "StorageError",
    # Platform
    "PlatformError",
    "UnknownPlatformError",
    # Fetch
    "FetchError",
    "SessionError",
    "TransientFetchError",
    "TerminalFetchError",
    "FetchTimeoutError",
    # Notification
    "NotificationError",
    "TelegramError",
    "TelegramRateLimitError",
]

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------


class StaywatchError(Exception):
    """Root exception for all Staywatch errors.

    Catch this to handle any application-level error uniformly.  Prefer
    catching layer-specific subclasses wherever possible.
    """


# ---------------------------------------------------------------------------
# Config layer
# ---------------------------------------------------------------------------


class ConfigError(StaywatchError):
    """Raised when the application configuration is invalid or incomplete.

    Examples:
        - Live mode is requested but ``TELEGRAM_BOT_TOKEN`` is empty.
        - A variable contains an out-of-range value.

    This is the only error class that is allowed to stop the worker process.
    """


# ---------------------------------------------------------------------------
# Storage layer
# ---------------------------------------------------------------------------


class StorageError(StaywatchError):
    """Raised when a database or persistence operation fails."""


# ---------------------------------------------------------------------------
# Platform layer
# ---------------------------------------------------------------------------


class PlatformError(StaywatchError):
    """Base class for platform classifier errors."""


class UnknownPlatformError(PlatformError):
    """Raised when no classifier is registered for a platform tag.

    Args:
        platform: The platform tag that could not be resolved.
    """

    def __init__(self, platform: str) -> None:
        self.platform = platform
        super().__init__(f"No classifier registered for platform {platform!r}")


# ---------------------------------------------------------------------------
# Fetch layer
# ---------------------------------------------------------------------------


class FetchError(StaywatchError):
    """Base class for page-fetcher failures.

    Args:
        message: Human-readable error description, usually the message of the
            underlying browser-automation exception.
    """


class SessionError(FetchError):
    """Raised when the fetcher cannot open a new session.

    Examples:
        - The browser binary fails to launch.
        - The automation driver has been shut down.
    """


class TransientFetchError(FetchError):
    """A fetch failure that is worth retrying on a brand-new session.

    Covers protocol-level failures, detached execution contexts, closed or
    reset connections, and ``net::ERR_*`` navigation errors.
    """


class TerminalFetchError(FetchError):
    """A fetch failure that will not be retried."""


class FetchTimeoutError(TerminalFetchError):
    """Raised when navigation does not finish within its deadline.

    Args:
        message: Human-readable error description.
        timeout_ms: The navigation budget that was exceeded, if known.
    """

    def __init__(self, message: str, timeout_ms: int | None = None) -> None:
        self.timeout_ms = timeout_ms
        detail = f" (after {timeout_ms} ms)" if timeout_ms is not None else ""
        super().__init__(f"Navigation timed out{detail}: {message}")


# ---------------------------------------------------------------------------
# Notification layer
# ---------------------------------------------------------------------------


class NotificationError(StaywatchError):
    """Base class for notification delivery errors."""


class TelegramError(NotificationError):
    """Raised when the Telegram Bot API returns an error or is unreachable.

    Args:
        message: Human-readable error description.
        status_code: HTTP status code from the Telegram API, if available.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        detail = f" (HTTP {status_code})" if status_code is not None else ""
        super().__init__(f"Telegram error{detail}: {message}")


class TelegramRateLimitError(TelegramError):
    """Raised when the Telegram Bot API returns HTTP 429 (Too Many Requests).

    Args:
        retry_after: Seconds to wait before retrying, as reported by Telegram.
    """

    def __init__(self, retry_after: float) -> None:
        self.retry_after = retry_after
        super().__init__(
            f"Rate limited, retry after {retry_after}s",
            status_code=429,
        )
