"""Shared pytest fixtures and configuration for the Staywatch test suite.

This file is loaded automatically by pytest before any test module.
It provides project-wide fixtures used across unit and integration tests.
"""

from __future__ import annotations

import logging
import os
from datetime import date

import pytest
from pydantic_settings import SettingsConfigDict

from staywatch.core import configure_logging
from staywatch.core.models import ListingToCheck, ListingWithOwner, Owner, Platform
from staywatch.core.settings import Settings

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _configure_test_logging() -> None:
    """Force DEBUG logging in text format for every test."""
    configure_logging(level="DEBUG", fmt="text", force=True)


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove Staywatch-related env vars and disable ``.env`` loading.

    Keeps credentials from the developer's shell or a local ``.env`` file out
    of Settings isolation tests.
    """
    prefixes = (
        "TELEGRAM_",
        "DATABASE_",
        "CHECK_",
        "STARTUP_",
        "WORKER_",
        "NAVIGATION_",
        "CONDITION_",
        "BROWSER_",
        "AGODA_",
        "DRY_RUN",
        "LOG_LEVEL",
        "LOG_FORMAT",
    )
    for key in list(os.environ):
        if any(key.startswith(prefix) for prefix in prefixes):
            monkeypatch.delenv(key, raising=False)

    monkeypatch.setattr(
        Settings,
        "model_config",
        SettingsConfigDict(
            env_file=None,
            env_file_encoding="utf-8",
            extra="ignore",
        ),
    )


# ---------------------------------------------------------------------------
# Domain helpers
# ---------------------------------------------------------------------------


def make_listing(
    *,
    id: int = 1,
    platform: Platform = Platform.AIRBNB,
    url: str = "https://www.airbnb.co.kr/rooms/123456",
    check_in: date = date(2026, 12, 24),
    check_out: date = date(2026, 12, 27),
    adults: int = 2,
) -> ListingToCheck:
    """Return a valid :class:`ListingToCheck` with sensible defaults."""
    return ListingToCheck(
        id=id,
        url=url,
        check_in=check_in,
        check_out=check_out,
        adults=adults,
        platform=platform,
    )


def make_item(
    *,
    id: int = 1,
    name: str = "Jeju stone house",
    chat_id: str | None = "987654321",
    last_status=None,
    platform: Platform = Platform.AIRBNB,
) -> ListingWithOwner:
    """Return a :class:`ListingWithOwner` around :func:`make_listing`."""
    return ListingWithOwner(
        listing=make_listing(id=id, platform=platform),
        name=name,
        owner=Owner(id=100 + id, name="Jiwoo", telegram_chat_id=chat_id),
        last_status=last_status,
    )


@pytest.fixture()
def listing() -> ListingToCheck:
    return make_listing()


@pytest.fixture()
def logger() -> logging.Logger:
    """Return a logger attributed to test code."""
    return logging.getLogger("tests")


@pytest.fixture()
def listing_factory():
    """Factory fixture: ``listing_factory(id=2, platform=Platform.AGODA)``."""
    return make_listing


@pytest.fixture()
def item_factory():
    """Factory fixture: ``item_factory(id=2, last_status=AvailabilityStatus.AVAILABLE)``."""
    return make_item
