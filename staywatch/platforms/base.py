"""Classifier contract shared by every supported booking platform.

A :class:`PlatformClassifier` knows two things about its platform:

* how to turn a :class:`~staywatch.core.models.ListingToCheck` into the exact
  URL whose rendered page shows availability for the requested stay, and
* which text markers on that page mean "sold out" and which mean "bookable"
  (its :class:`PatternSet`).

Classification precedence
-------------------------
:meth:`PlatformClassifier.classify` scans **unavailable markers first**.
Marketing copy on a sold-out page can contain booking-button wording, while
no unavailable marker has been observed on a genuinely bookable page.  A page
matching neither set is reported as unavailable with
:data:`STATUS_UNDETERMINABLE`, never as available.

Typical usage::

    from staywatch.platforms.airbnb import AirbnbClassifier

    classifier = AirbnbClassifier()
    url = classifier.build_url(listing)
    result = classifier.classify(page_text, url=url)
"""

from __future__ import annotations

import logging
import math
import re
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date
from typing import ClassVar, Final
from urllib.parse import urlencode, urlsplit, urlunsplit

from staywatch.core.models import (
    AvailableResult,
    CheckResult,
    ListingToCheck,
    Platform,
    UnavailableResult,
)

__all__ = [
    "PRICE_UNCONFIRMED",
    "STATUS_UNDETERMINABLE",
    "PatternSet",
    "PlatformClassifier",
    "format_date",
    "nights_between",
    "with_query",
]

logger = logging.getLogger(__name__)

#: Price reported for an available page on which no price pattern matched.
PRICE_UNCONFIRMED: Final[str] = "Price needs confirmation"

#: Reason reported when neither marker set matched the page text.
STATUS_UNDETERMINABLE: Final[str] = "Status undeterminable"


# ---------------------------------------------------------------------------
# Pattern set
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PatternSet:
    """Ordered text markers and price regex for one platform.

    Attributes:
        unavailable: Literal fragments signalling the stay cannot be booked.
            Scanned first, in order; the first hit wins.
        available: Literal fragments signalling a bookable stay.  Scanned
            only if no unavailable marker matched.
        price_pattern: Regex whose first match on an available page is
            reported as the price.
    """

    unavailable: tuple[str, ...]
    available: tuple[str, ...]
    price_pattern: re.Pattern[str]

    def __post_init__(self) -> None:
        if not self.unavailable and not self.available:
            raise ValueError("PatternSet needs at least one marker")
        if any(not marker for marker in (*self.unavailable, *self.available)):
            raise ValueError("PatternSet markers must be non-empty strings")

    @classmethod
    def build(
        cls,
        *,
        unavailable: Iterable[str],
        available: Iterable[str],
        price_pattern: str | re.Pattern[str],
    ) -> PatternSet:
        """Convenience constructor accepting lists and an uncompiled regex."""
        compiled = price_pattern if isinstance(price_pattern, re.Pattern) else re.compile(price_pattern)
        return cls(
            unavailable=tuple(unavailable),
            available=tuple(available),
            price_pattern=compiled,
        )

    @property
    def all_markers(self) -> tuple[str, ...]:
        """Every marker, used as the fetcher's wait-for-any condition."""
        return (*self.available, *self.unavailable)


# ---------------------------------------------------------------------------
# URL helpers
# ---------------------------------------------------------------------------


def format_date(value: date) -> str:
    """Format a date as ISO ``YYYY-MM-DD``."""
    return value.isoformat()


def nights_between(check_in: date, check_out: date) -> int:
    """Return ``ceil(|check_out - check_in|)`` in calendar days."""
    seconds = abs((check_out - check_in).total_seconds())
    return math.ceil(seconds / 86_400)


def with_query(url: str, params: Mapping[str, object]) -> str:
    """Replace the query string of *url* with *params*.

    Scheme, host and path are kept; any query or fragment the owner pasted
    along with the URL is dropped so the result is deterministic.
    """
    parts = urlsplit(url)
    query = urlencode({key: str(value) for key, value in params.items()})
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, ""))


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------


class PlatformClassifier(ABC):
    """Abstract base for per-platform URL building and page classification.

    Subclasses declare :attr:`platform` as a class variable, provide a
    :class:`PatternSet` and implement :meth:`build_url`.

    Args:
        patterns: Marker set to classify with.  Defaults to the subclass's
            :attr:`default_patterns`.
        scroll_distance: Pixels to scroll after navigation so lazily rendered
            booking widgets are loaded before the text is read.
    """

    platform: ClassVar[Platform]
    default_patterns: ClassVar[PatternSet]

    def __init__(
        self,
        patterns: PatternSet | None = None,
        *,
        scroll_distance: int = 1000,
    ) -> None:
        self.patterns = patterns or self.default_patterns
        self.scroll_distance = scroll_distance

    @property
    def wait_markers(self) -> tuple[str, ...]:
        """Markers the fetcher waits for before reading the page text."""
        return self.patterns.all_markers

    @abstractmethod
    def build_url(self, listing: ListingToCheck) -> str:
        """Build the deterministic check URL for *listing*."""

    def classify(self, page_text: str, *, url: str = "") -> CheckResult:
        """Classify rendered page text into an availability verdict.

        Args:
            page_text: Visible text of the rendered page.
            url: URL the text was fetched from; copied onto the result.

        Returns:
            :class:`~staywatch.core.models.UnavailableResult` if an
            unavailable marker is present (regardless of available markers);
            otherwise :class:`~staywatch.core.models.AvailableResult` if an
            available marker is present; otherwise an unavailable result
            with reason :data:`STATUS_UNDETERMINABLE`.
        """
        for marker in self.patterns.unavailable:
            if marker in page_text:
                return UnavailableResult(url=url, reason=marker)

        for marker in self.patterns.available:
            if marker in page_text:
                match = self.patterns.price_pattern.search(page_text)
                price = match.group(0).strip() if match else ""
                return AvailableResult(url=url, price=price or PRICE_UNCONFIRMED)

        logger.debug(
            "%s: no marker matched %d chars of page text", self.platform, len(page_text)
        )
        return UnavailableResult(url=url, reason=STATUS_UNDETERMINABLE)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(platform={self.platform.value!r})"
