"""Staywatch core domain models.

Defines the immutable snapshots the availability engine borrows from the
store, the tagged :data:`CheckResult` union it produces, and the
:class:`TransitionEvent` it hands back to the caller.

The engine never owns listing identity or history: a
:class:`ListingWithOwner` is read from the store at the start of a cycle,
checked, and the result is returned for the caller to persist.

Typical usage::

    from datetime import date
    from staywatch.core.models import ListingToCheck, Platform

    listing = ListingToCheck(
        id=7,
        url="https://www.airbnb.co.kr/rooms/123456",
        check_in=date(2026, 12, 24),
        check_out=date(2026, 12, 27),
        adults=2,
        platform=Platform.AIRBNB,
    )
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

__all__ = [
    "Platform",
    "AvailabilityStatus",
    "Verdict",
    "ListingToCheck",
    "Owner",
    "ListingWithOwner",
    "AvailableResult",
    "UnavailableResult",
    "ErrorResult",
    "CheckResult",
    "TransitionEvent",
    "CheckLogEntry",
    "ListingCacheUpdate",
]

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class Platform(StrEnum):
    """Booking platforms with a registered classifier.

    The value is what the store persists in the ``platform`` column.
    """

    AIRBNB = "airbnb"
    AGODA = "agoda"


class AvailabilityStatus(StrEnum):
    """Status persisted by the store after each check.

    "Never checked" is represented by ``None`` rather than a member.
    """

    AVAILABLE = "AVAILABLE"
    UNAVAILABLE = "UNAVAILABLE"
    ERROR = "ERROR"


class Verdict(StrEnum):
    """Discriminator of the :data:`CheckResult` union."""

    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Listing snapshots
# ---------------------------------------------------------------------------


class ListingToCheck(BaseModel):
    """Immutable per-cycle snapshot of one tracked listing.

    Attributes:
        id: Store identifier of the listing.
        url: Listing page URL as saved by the owner.  Classifiers rebuild the
            query string from the fields below.
        check_in: First night of the stay.
        check_out: Departure date; strictly after ``check_in``.
        adults: Party size.
        platform: Which classifier handles this listing.
    """

    model_config = {"frozen": True}

    id: int
    url: str = Field(..., min_length=1)
    check_in: date
    check_out: date
    adults: int = Field(..., ge=1)
    platform: Platform

    @field_validator("url", mode="before")
    @classmethod
    def _url_non_blank(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            raise ValueError("url must not be blank")
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode="after")
    def _check_out_after_check_in(self) -> ListingToCheck:
        if self.check_out <= self.check_in:
            raise ValueError(
                f"check_out ({self.check_out}) must be after check_in ({self.check_in})"
            )
        return self

    @property
    def nights(self) -> int:
        """Length of stay in calendar days."""
        return abs((self.check_out - self.check_in).days)


class Owner(BaseModel):
    """The user who tracks a listing and receives its alerts.

    Attributes:
        id: Store identifier of the owner.
        name: Display name, used in log lines only.
        telegram_chat_id: Chat that receives availability alerts.  ``None``
            or blank means the owner has not linked Telegram yet.
    """

    model_config = {"frozen": True}

    id: int
    name: str = ""
    telegram_chat_id: str | None = None

    @field_validator("telegram_chat_id", mode="before")
    @classmethod
    def _blank_chat_id_to_none(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def can_be_notified(self) -> bool:
        """``True`` if the owner holds a usable notification credential."""
        return self.telegram_chat_id is not None


class ListingWithOwner(BaseModel):
    """A listing due for a check, together with what the store knows about it.

    Attributes:
        listing: The snapshot handed to the checker.
        name: Owner-chosen label for the listing (used in alerts).
        owner: Who gets notified.
        last_status: Status persisted after the previous check, or ``None``
            if the listing was never checked.
        last_price: Price captured by the previous available check.
        last_checked_at: Timestamp of the previous check.
    """

    model_config = {"frozen": True}

    listing: ListingToCheck
    name: str
    owner: Owner
    last_status: AvailabilityStatus | None = None
    last_price: str | None = None
    last_checked_at: datetime | None = None


# ---------------------------------------------------------------------------
# Check results (tagged union)
# ---------------------------------------------------------------------------


class _CheckResultBase(BaseModel):
    model_config = {"frozen": True}

    url: str = Field(..., description="Exact URL that was fetched.")
    attempts: int = Field(1, ge=1, description="Fetch attempts consumed.")


class AvailableResult(_CheckResultBase):
    """The page showed an available marker and no unavailable marker."""

    verdict: Literal[Verdict.AVAILABLE] = Verdict.AVAILABLE
    price: str = Field(..., min_length=1)


class UnavailableResult(_CheckResultBase):
    """The page showed an unavailable marker, or nothing conclusive."""

    verdict: Literal[Verdict.UNAVAILABLE] = Verdict.UNAVAILABLE
    reason: str = Field(..., min_length=1)


class ErrorResult(_CheckResultBase):
    """Fetching failed terminally or ran out of retries."""

    verdict: Literal[Verdict.ERROR] = Verdict.ERROR
    detail: str = Field(..., min_length=1)


#: Outcome of one availability check.  Exactly one variant is ever populated.
CheckResult = Annotated[
    AvailableResult | UnavailableResult | ErrorResult,
    Field(discriminator="verdict"),
]


# ---------------------------------------------------------------------------
# Transition & store payloads
# ---------------------------------------------------------------------------


class TransitionEvent(BaseModel):
    """A listing flipped from not-available to available.

    Created transiently by the batch runner and consumed immediately by the
    notifier; never stored.
    """

    model_config = {"frozen": True}

    listing_id: int
    listing_name: str
    owner_id: int
    chat_id: str
    check_in: date
    check_out: date
    price: str
    url: str


class CheckLogEntry(BaseModel):
    """One row of check history, appended by the store after every check."""

    model_config = {"frozen": True}

    listing_id: int
    status: AvailabilityStatus
    price: str | None = None
    error_message: str | None = None
    notification_sent: bool = False
    checked_at: datetime


class ListingCacheUpdate(BaseModel):
    """Denormalised "last check" columns refreshed on the listing row."""

    model_config = {"frozen": True}

    last_checked_at: datetime
    last_status: AvailabilityStatus
    last_price: str | None = None
