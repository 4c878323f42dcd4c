"""Airbnb classifier.

Check URL shape::

    https://www.airbnb.co.kr/rooms/<room-id>?check_in=2026-12-24&check_out=2026-12-27&adults=2

Airbnb renders the booking widget client-side, so the rendered text holds
either the reserve button or the "dates unavailable" notice once the page
has settled.  Markers cover the Korean and English locales.
"""

from __future__ import annotations

import logging

from staywatch.core.models import ListingToCheck, Platform
from staywatch.platforms.base import PatternSet, PlatformClassifier, format_date, with_query

__all__ = ["AIRBNB_PATTERNS", "AirbnbClassifier"]

logger = logging.getLogger(__name__)

AIRBNB_PATTERNS = PatternSet.build(
    unavailable=[
        "선택하신 날짜는 이용이 불가능합니다",
        "날짜를 변경해 주세요",
        "예약 가능 여부 확인",
        "Those dates are not available",
        "Change dates",
        "Check availability",
    ],
    available=[
        "예약하기",
        "예약 요청",
        "Reserve",
        "Request to book",
    ],
    price_pattern=r"(?:₩|US\$|\$|€)\s*[\d,]+",
)


class AirbnbClassifier(PlatformClassifier):
    """Classifier for ``airbnb.*`` room pages."""

    platform = Platform.AIRBNB
    default_patterns = AIRBNB_PATTERNS

    def build_url(self, listing: ListingToCheck) -> str:
        return with_query(
            listing.url,
            {
                "check_in": format_date(listing.check_in),
                "check_out": format_date(listing.check_out),
                "adults": listing.adults,
            },
        )
