"""Core domain models, settings, logging configuration, and shared utilities."""

from staywatch.core.exceptions import (
    ConfigError,
    FetchError,
    FetchTimeoutError,
    NotificationError,
    PlatformError,
    SessionError,
    StaywatchError,
    StorageError,
    TelegramError,
    TelegramRateLimitError,
    TerminalFetchError,
    TransientFetchError,
    UnknownPlatformError,
)
from staywatch.core.logging_config import JsonFormatter, configure_logging
from staywatch.core.models import (
    AvailabilityStatus,
    AvailableResult,
    CheckResult,
    ErrorResult,
    ListingToCheck,
    ListingWithOwner,
    Owner,
    Platform,
    TransitionEvent,
    UnavailableResult,
)
from staywatch.core.settings import Settings

__all__ = [
    # Logging
    "configure_logging",
    "JsonFormatter",
    # Domain models
    "AvailabilityStatus",
    "AvailableResult",
    "CheckResult",
    "ErrorResult",
    "ListingToCheck",
    "ListingWithOwner",
    "Owner",
    "Platform",
    "TransitionEvent",
    "UnavailableResult",
    # Settings
    "Settings",
    # Exceptions
    "StaywatchError",
    "ConfigError",
    "StorageError",
    "PlatformError",
    "UnknownPlatformError",
    "FetchError",
    "SessionError",
    "TransientFetchError",
    "TerminalFetchError",
    "FetchTimeoutError",
    "NotificationError",
    "TelegramError",
    "TelegramRateLimitError",
]
