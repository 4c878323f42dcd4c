"""Unit tests for the platform classifiers.

Covers:
- URL building for Airbnb and Agoda: date format, party size, length of stay,
  partner id, replacement of any query already on the stored URL.
- :meth:`PlatformClassifier.classify` precedence: unavailable markers win,
  price extraction, the "needs confirmation" fallback and the fail-closed
  "undeterminable" verdict.
- :class:`PatternSet` validation and :class:`ClassifierRegistry` dispatch.
"""

from __future__ import annotations

import re
from datetime import date

import pytest

from staywatch.core.exceptions import UnknownPlatformError
from staywatch.core.models import (
    AvailableResult,
    Platform,
    UnavailableResult,
    Verdict,
)
from staywatch.core.settings import Settings
from staywatch.platforms import (
    PRICE_UNCONFIRMED,
    STATUS_UNDETERMINABLE,
    AgodaClassifier,
    AirbnbClassifier,
    ClassifierRegistry,
    PatternSet,
    default_registry,
)
from staywatch.platforms.base import nights_between, with_query

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestUrlHelpers:
    def test_nights_between_simple(self) -> None:
        assert nights_between(date(2026, 12, 24), date(2026, 12, 27)) == 3

    def test_nights_between_is_absolute(self) -> None:
        assert nights_between(date(2026, 12, 27), date(2026, 12, 24)) == 3

    def test_nights_between_across_month(self) -> None:
        assert nights_between(date(2026, 1, 30), date(2026, 2, 2)) == 3

    def test_with_query_replaces_existing_query(self) -> None:
        url = with_query("https://example.com/rooms/1?foo=bar&check_in=2020-01-01", {"a": 1})
        assert url == "https://example.com/rooms/1?a=1"

    def test_with_query_drops_fragment(self) -> None:
        url = with_query("https://example.com/rooms/1#photos", {"a": "b"})
        assert url == "https://example.com/rooms/1?a=b"


# ---------------------------------------------------------------------------
# URL builders
# ---------------------------------------------------------------------------


class TestAirbnbBuildUrl:
    def test_exact_url(self, listing_factory) -> None:
        listing = listing_factory(url="https://www.airbnb.co.kr/rooms/123456", adults=2)
        assert AirbnbClassifier().build_url(listing) == (
            "https://www.airbnb.co.kr/rooms/123456"
            "?check_in=2026-12-24&check_out=2026-12-27&adults=2"
        )

    def test_stored_query_is_replaced(self, listing_factory) -> None:
        listing = listing_factory(
            url="https://www.airbnb.co.kr/rooms/123456?source_impression_id=p3&adults=9",
            adults=3,
        )
        url = AirbnbClassifier().build_url(listing)
        assert "source_impression_id" not in url
        assert url.endswith("adults=3")

    def test_deterministic(self, listing_factory) -> None:
        listing = listing_factory()
        classifier = AirbnbClassifier()
        assert classifier.build_url(listing) == classifier.build_url(listing)


class TestAgodaBuildUrl:
    def test_exact_url_with_default_partner(self, listing_factory) -> None:
        listing = listing_factory(
            platform=Platform.AGODA,
            url="https://www.agoda.com/ko-kr/some-hotel/hotel/seoul-kr.html",
            check_in=date(2026, 12, 24),
            check_out=date(2026, 12, 27),
            adults=2,
        )
        assert AgodaClassifier().build_url(listing) == (
            "https://www.agoda.com/ko-kr/some-hotel/hotel/seoul-kr.html"
            "?checkIn=2026-12-24&los=3&adults=2&rooms=1&cid=-1"
        )

    def test_custom_partner_cid(self, listing_factory) -> None:
        listing = listing_factory(platform=Platform.AGODA, url="https://www.agoda.com/h.html")
        url = AgodaClassifier(partner_cid="1844104").build_url(listing)
        assert url.endswith("cid=1844104")

    def test_los_single_night(self, listing_factory) -> None:
        listing = listing_factory(
            platform=Platform.AGODA,
            url="https://www.agoda.com/h.html",
            check_in=date(2026, 3, 1),
            check_out=date(2026, 3, 2),
        )
        assert "los=1" in AgodaClassifier().build_url(listing)

    def test_blank_partner_cid_rejected(self) -> None:
        with pytest.raises(ValueError):
            AgodaClassifier(partner_cid="  ")


# ---------------------------------------------------------------------------
# classify
# ---------------------------------------------------------------------------


class TestClassify:
    def test_unavailable_marker(self) -> None:
        result = AirbnbClassifier().classify("숙소 정보 ... 선택하신 날짜는 이용이 불가능합니다", url="u")
        assert isinstance(result, UnavailableResult)
        assert result.reason == "선택하신 날짜는 이용이 불가능합니다"
        assert result.url == "u"

    def test_unavailable_wins_over_available(self) -> None:
        text = "예약하기 ₩120,000 / 박 ... 선택하신 날짜는 이용이 불가능합니다"
        result = AirbnbClassifier().classify(text)
        assert result.verdict is Verdict.UNAVAILABLE

    def test_available_with_price(self) -> None:
        result = AirbnbClassifier().classify("₩ 150,000 /박  예약하기", url="u")
        assert isinstance(result, AvailableResult)
        assert result.price == "₩ 150,000"

    def test_available_first_price_match_wins(self) -> None:
        result = AirbnbClassifier().classify("Reserve  $120 night  $360 total")
        assert isinstance(result, AvailableResult)
        assert result.price == "$120"

    def test_available_without_price(self) -> None:
        result = AirbnbClassifier().classify("Request to book")
        assert isinstance(result, AvailableResult)
        assert result.price == PRICE_UNCONFIRMED

    def test_no_marker_is_undeterminable_unavailable(self) -> None:
        result = AgodaClassifier().classify("Loading…")
        assert isinstance(result, UnavailableResult)
        assert result.reason == STATUS_UNDETERMINABLE

    def test_empty_text_is_not_available(self) -> None:
        assert AgodaClassifier().classify("").verdict is Verdict.UNAVAILABLE

    def test_agoda_sold_out_english(self) -> None:
        result = AgodaClassifier().classify("Book now ... Sold out")
        assert isinstance(result, UnavailableResult)
        assert result.reason == "Sold out"

    def test_agoda_krw_price(self) -> None:
        result = AgodaClassifier().classify("KRW 210,500 지금 예약하기")
        assert isinstance(result, AvailableResult)
        assert result.price == "KRW 210,500"

    def test_unavailable_markers_scanned_in_order(self) -> None:
        patterns = PatternSet.build(
            unavailable=["second", "first"],
            available=["go"],
            price_pattern=r"\d+",
        )
        classifier = AirbnbClassifier(patterns)
        result = classifier.classify("first then second")
        assert isinstance(result, UnavailableResult)
        assert result.reason == "second"


# ---------------------------------------------------------------------------
# PatternSet / registry
# ---------------------------------------------------------------------------


class TestPatternSet:
    def test_build_compiles_pattern(self) -> None:
        ps = PatternSet.build(unavailable=["x"], available=["y"], price_pattern=r"\d+")
        assert isinstance(ps.price_pattern, re.Pattern)

    def test_requires_a_marker(self) -> None:
        with pytest.raises(ValueError):
            PatternSet.build(unavailable=[], available=[], price_pattern=r"\d+")

    def test_rejects_empty_marker(self) -> None:
        with pytest.raises(ValueError):
            PatternSet.build(unavailable=[""], available=["y"], price_pattern=r"\d+")

    def test_wait_markers_cover_both_sets(self) -> None:
        classifier = AirbnbClassifier()
        markers = classifier.wait_markers
        assert "예약하기" in markers
        assert "Change dates" in markers


class TestClassifierRegistry:
    def test_default_registry_has_both_platforms(self) -> None:
        registry = default_registry()
        assert set(registry.platforms) == {Platform.AIRBNB, Platform.AGODA}
        assert isinstance(registry.get(Platform.AIRBNB), AirbnbClassifier)
        assert isinstance(registry.get("agoda"), AgodaClassifier)

    def test_default_registry_uses_settings_partner_cid(self, clean_env: None) -> None:
        settings = Settings(agoda_partner_cid="777")
        agoda = default_registry(settings).get(Platform.AGODA)
        assert isinstance(agoda, AgodaClassifier)
        assert agoda.partner_cid == "777"

    def test_unknown_tag_raises(self) -> None:
        with pytest.raises(UnknownPlatformError) as excinfo:
            default_registry().get("booking")
        assert excinfo.value.platform == "booking"

    def test_unregistered_platform_raises(self) -> None:
        registry = ClassifierRegistry([AirbnbClassifier()])
        assert Platform.AGODA not in registry
        with pytest.raises(UnknownPlatformError):
            registry.get(Platform.AGODA)

    def test_register_replaces(self) -> None:
        registry = ClassifierRegistry([AgodaClassifier()])
        replacement = AgodaClassifier(partner_cid="42")
        registry.register(replacement)
        assert registry.get(Platform.AGODA) is replacement
