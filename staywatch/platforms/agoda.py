"""Agoda classifier.

Agoda prices a stay by length of stay, so the check URL carries the check-in
date plus a ``los`` (nights) parameter instead of a check-out date, along
with a fixed partner ``cid``::

    https://www.agoda.com/ko-kr/some-hotel/hotel/seoul-kr.html?checkIn=2026-12-24&los=3&adults=2&rooms=1&cid=-1
"""

from __future__ import annotations

import logging

from staywatch.core.models import ListingToCheck, Platform
from staywatch.platforms.base import (
    PatternSet,
    PlatformClassifier,
    format_date,
    nights_between,
    with_query,
)

__all__ = ["AGODA_PATTERNS", "AgodaClassifier", "DEFAULT_PARTNER_CID"]

logger = logging.getLogger(__name__)

DEFAULT_PARTNER_CID = "-1"

AGODA_PATTERNS = PatternSet.build(
    unavailable=[
        "선택하신 날짜에 이용 가능한 객실이 없습니다",
        "매진",
        "예약 마감",
        "Sold out",
        "No rooms available",
        "not available on your dates",
    ],
    available=[
        "지금 예약하기",
        "예약하기",
        "Book now",
        "Reserve",
    ],
    price_pattern=r"(?:US\$|KRW|₩|\$)\s*[\d,]+",
)


class AgodaClassifier(PlatformClassifier):
    """Classifier for ``agoda.com`` hotel pages.

    Args:
        patterns: Marker set override.
        scroll_distance: See :class:`~staywatch.platforms.base.PlatformClassifier`.
        partner_cid: Value of the ``cid`` partner parameter appended to every
            check URL.
    """

    platform = Platform.AGODA
    default_patterns = AGODA_PATTERNS

    def __init__(
        self,
        patterns: PatternSet | None = None,
        *,
        scroll_distance: int = 1000,
        partner_cid: str = DEFAULT_PARTNER_CID,
    ) -> None:
        super().__init__(patterns, scroll_distance=scroll_distance)
        if not partner_cid.strip():
            raise ValueError("partner_cid must not be blank")
        self.partner_cid = partner_cid.strip()

    def build_url(self, listing: ListingToCheck) -> str:
        return with_query(
            listing.url,
            {
                "checkIn": format_date(listing.check_in),
                "los": nights_between(listing.check_in, listing.check_out),
                "adults": listing.adults,
                "rooms": 1,
                "cid": self.partner_cid,
            },
        )
