"""Unit tests for the batch runner and its pure transition helpers.

The store is an in-memory fake implementing the ``Store`` protocol; the
checker and notifier are :class:`unittest.mock.AsyncMock`-backed so each test
scripts verdicts and delivery outcomes directly.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from staywatch.core.logging_config import CYCLE_ID_CTX
from staywatch.core.models import (
    AvailabilityStatus,
    AvailableResult,
    CheckLogEntry,
    CheckResult,
    ErrorResult,
    ListingCacheUpdate,
    ListingToCheck,
    ListingWithOwner,
    UnavailableResult,
)
from staywatch.fetcher.base import LoadOptions, PageFetcher, PageSession
from staywatch.notifiers.notifier import Notifier
from staywatch.orchestrator.batch import (
    BatchRunner,
    CycleStats,
    build_transition_event,
    is_transition,
    status_for_result,
)
from staywatch.orchestrator.checker import AvailabilityChecker
from staywatch.orchestrator.limiter import ConcurrencyLimiter
from staywatch.platforms import AirbnbClassifier, ClassifierRegistry, PatternSet
from staywatch.storage.repository import Store

_NOW = datetime(2026, 12, 1, 9, 0, tzinfo=UTC)

AVAILABLE = AvailabilityStatus.AVAILABLE
UNAVAILABLE = AvailabilityStatus.UNAVAILABLE
ERROR = AvailabilityStatus.ERROR


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class _FakeStore:
    """In-memory :class:`Store` recording every call."""

    def __init__(self, items: list[ListingWithOwner]) -> None:
        self.items = items
        self.logs: list[CheckLogEntry] = []
        self.notified_logs: list[int] = []
        self.cache: dict[int, ListingCacheUpdate] = {}
        self.list_calls = 0
        self.fail_append_for: set[int] = set()

    async def list_active_listings_due_for_check(self, now: datetime) -> list[ListingWithOwner]:
        self.list_calls += 1
        return list(self.items)

    async def append_check_log(self, entry: CheckLogEntry) -> int:
        if entry.listing_id in self.fail_append_for:
            raise RuntimeError("disk I/O error")
        self.logs.append(entry)
        return len(self.logs)

    async def mark_log_notified(self, log_id: int) -> None:
        self.notified_logs.append(log_id)

    async def update_listing_cache(self, listing_id: int, update: ListingCacheUpdate) -> None:
        self.cache[listing_id] = update


def _available(price: str = "₩150,000") -> AvailableResult:
    return AvailableResult(url="https://www.airbnb.co.kr/rooms/1?check_in=2026-12-24", price=price)


def _unavailable() -> UnavailableResult:
    return UnavailableResult(url="https://www.airbnb.co.kr/rooms/1", reason="Change dates")


def _error() -> ErrorResult:
    return ErrorResult(url="https://www.airbnb.co.kr/rooms/1", detail="Navigation timed out", attempts=1)


def _checker(results: dict[int, CheckResult | BaseException]) -> MagicMock:
    checker = MagicMock(spec=AvailabilityChecker)

    async def _check(listing: ListingToCheck) -> CheckResult:
        outcome = results[listing.id]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    checker.check = AsyncMock(side_effect=_check)
    return checker


def _notifier(return_value: bool = True, side_effect: object = None) -> MagicMock:
    notifier = MagicMock(spec=Notifier)
    notifier.send_availability_alert = AsyncMock(return_value=return_value, side_effect=side_effect)
    return notifier


def _runner(
    store: Store,
    checker: MagicMock,
    notifier: MagicMock,
    capacity: int = 3,
) -> BatchRunner:
    return BatchRunner(
        store=store,
        checker=checker,
        limiter=ConcurrencyLimiter(capacity),
        notifier=notifier,
        clock=lambda: _NOW,
    )


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


class TestPureHelpers:
    def test_status_for_result(self) -> None:
        assert status_for_result(_available()) is AVAILABLE
        assert status_for_result(_unavailable()) is UNAVAILABLE
        assert status_for_result(_error()) is ERROR

    @pytest.mark.parametrize("prior", [None, UNAVAILABLE, ERROR])
    def test_transition_from_not_available(self, prior: AvailabilityStatus | None) -> None:
        assert is_transition(prior, _available()) is True

    def test_no_transition_when_already_available(self) -> None:
        assert is_transition(AVAILABLE, _available()) is False

    @pytest.mark.parametrize("result", [_unavailable(), _error()])
    def test_no_transition_without_available_verdict(self, result: CheckResult) -> None:
        assert is_transition(UNAVAILABLE, result) is False

    def test_build_transition_event(self, item_factory) -> None:
        item = item_factory(id=5, name="Seaside loft", chat_id="42")
        event = build_transition_event(item, _available("$300"))
        assert event is not None
        assert event.listing_id == 5
        assert event.listing_name == "Seaside loft"
        assert event.chat_id == "42"
        assert event.owner_id == item.owner.id
        assert event.price == "$300"
        assert event.check_in == item.listing.check_in

    def test_build_transition_event_without_chat(self, item_factory) -> None:
        assert build_transition_event(item_factory(chat_id=None), _available()) is None


# ---------------------------------------------------------------------------
# run_cycle
# ---------------------------------------------------------------------------


class TestTransitionNotification:
    async def test_unavailable_to_available_notifies_once(self, item_factory) -> None:
        store = _FakeStore([item_factory(id=1, last_status=UNAVAILABLE)])
        notifier = _notifier(True)
        stats = await _runner(store, _checker({1: _available()}), notifier).run_cycle()

        assert stats is not None
        notifier.send_availability_alert.assert_awaited_once()
        args = notifier.send_availability_alert.await_args.args
        assert args[0] == "987654321"
        assert args[1] == "Jeju stone house"
        assert args[4] == "₩150,000"
        assert store.notified_logs == [1]
        assert stats.transitions == 1
        assert stats.notified == 1

    async def test_never_checked_to_available_notifies(self, item_factory) -> None:
        store = _FakeStore([item_factory(id=1, last_status=None)])
        notifier = _notifier(True)
        await _runner(store, _checker({1: _available()}), notifier).run_cycle()
        notifier.send_availability_alert.assert_awaited_once()

    async def test_error_to_available_notifies(self, item_factory) -> None:
        store = _FakeStore([item_factory(id=1, last_status=ERROR)])
        notifier = _notifier(True)
        await _runner(store, _checker({1: _available()}), notifier).run_cycle()
        notifier.send_availability_alert.assert_awaited_once()

    async def test_available_to_available_is_silent(self, item_factory) -> None:
        store = _FakeStore([item_factory(id=1, last_status=AVAILABLE)])
        notifier = _notifier(True)
        stats = await _runner(store, _checker({1: _available()}), notifier).run_cycle()

        notifier.send_availability_alert.assert_not_awaited()
        assert stats is not None and stats.transitions == 0
        assert store.logs[0].status is AVAILABLE

    async def test_owner_without_chat_is_not_notified(self, item_factory) -> None:
        store = _FakeStore([item_factory(id=1, chat_id=None, last_status=UNAVAILABLE)])
        notifier = _notifier(True)
        stats = await _runner(store, _checker({1: _available()}), notifier).run_cycle()

        notifier.send_availability_alert.assert_not_awaited()
        assert stats is not None and stats.transitions == 0
        assert store.cache[1].last_status is AVAILABLE

    async def test_failed_delivery_leaves_log_unmarked(self, item_factory) -> None:
        store = _FakeStore([item_factory(id=1, last_status=UNAVAILABLE)])
        notifier = _notifier(False)
        stats = await _runner(store, _checker({1: _available()}), notifier).run_cycle()

        assert store.notified_logs == []
        assert stats is not None
        assert stats.transitions == 1
        assert stats.notified == 0
        assert stats.failures == 0
        assert store.cache[1].last_status is AVAILABLE


class TestPersistence:
    async def test_every_listing_gets_log_and_cache(self, item_factory) -> None:
        items = [item_factory(id=i) for i in (1, 2, 3)]
        store = _FakeStore(items)
        results = {1: _available("$10"), 2: _unavailable(), 3: _error()}
        stats = await _runner(store, _checker(results), _notifier()).run_cycle()

        assert [entry.status for entry in store.logs] == [AVAILABLE, UNAVAILABLE, ERROR]
        assert store.logs[0].price == "$10"
        assert store.logs[2].error_message == "Navigation timed out"
        assert store.logs[1].price is None
        assert set(store.cache) == {1, 2, 3}
        assert store.cache[1].last_price == "$10"
        assert store.cache[2].last_price is None
        assert all(update.last_checked_at == _NOW for update in store.cache.values())
        assert stats is not None
        assert (stats.checked, stats.available, stats.unavailable, stats.errors) == (3, 1, 1, 1)

    async def test_log_entries_default_not_notified(self, item_factory) -> None:
        store = _FakeStore([item_factory(id=1, last_status=UNAVAILABLE)])
        await _runner(store, _checker({1: _available()}), _notifier()).run_cycle()
        assert store.logs[0].notification_sent is False


class TestFailureIsolation:
    async def test_store_failure_for_one_listing_does_not_stop_batch(self, item_factory) -> None:
        store = _FakeStore([item_factory(id=1), item_factory(id=2)])
        store.fail_append_for = {1}
        stats = await _runner(store, _checker({1: _unavailable(), 2: _unavailable()}), _notifier()).run_cycle()

        assert stats is not None
        assert stats.failures == 1
        assert [entry.listing_id for entry in store.logs] == [2]
        assert set(store.cache) == {1, 2}
        assert stats.outcomes[0].error == "disk I/O error"

    async def test_log_append_failure_still_alerts_on_transition(self, item_factory) -> None:
        store = _FakeStore([item_factory(id=1, last_status=UNAVAILABLE)])
        store.fail_append_for = {1}
        notifier = _notifier(True)
        stats = await _runner(store, _checker({1: _available("$1,200")}), notifier).run_cycle()

        assert stats is not None
        notifier.send_availability_alert.assert_awaited_once()
        assert notifier.send_availability_alert.await_args.args[4] == "$1,200"
        assert stats.transitions == 1
        assert stats.notified == 1
        assert stats.failures == 1
        assert store.notified_logs == []
        assert store.cache[1].last_status is AVAILABLE
        assert stats.outcomes[0].notified is True
        assert stats.outcomes[0].error == "disk I/O error"

    async def test_notifier_crash_is_isolated(self, item_factory) -> None:
        store = _FakeStore([item_factory(id=1, last_status=UNAVAILABLE), item_factory(id=2, last_status=UNAVAILABLE)])
        notifier = _notifier(side_effect=[RuntimeError("kaboom"), True])
        stats = await _runner(store, _checker({1: _available(), 2: _available()}), notifier).run_cycle()

        assert stats is not None
        assert stats.failures == 1
        assert stats.notified == 1
        assert store.notified_logs == [2]
        assert set(store.cache) == {1, 2}

    async def test_checker_crash_becomes_error_status(self, item_factory) -> None:
        store = _FakeStore([item_factory(id=1)])
        stats = await _runner(store, _checker({1: RuntimeError("unexpected")}), _notifier()).run_cycle()

        assert stats is not None
        assert stats.errors == 1
        assert store.logs[0].status is ERROR
        assert store.logs[0].error_message == "unexpected"


class TestCycleBehaviour:
    async def test_empty_store_returns_empty_stats(self) -> None:
        store = _FakeStore([])
        checker = _checker({})
        stats = await _runner(store, checker, _notifier()).run_cycle()

        assert stats is not None
        assert stats.checked == 0
        checker.check.assert_not_awaited()

    async def test_checks_respect_limiter_capacity(self, item_factory) -> None:
        store = _FakeStore([item_factory(id=i) for i in range(1, 8)])
        in_flight = 0
        peak = 0

        async def _slow_check(listing: ListingToCheck) -> CheckResult:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return _unavailable()

        checker = MagicMock(spec=AvailabilityChecker)
        checker.check = AsyncMock(side_effect=_slow_check)
        stats = await _runner(store, checker, _notifier(), capacity=2).run_cycle()

        assert peak == 2
        assert stats is not None and stats.checked == 7

    async def test_overlapping_cycle_is_skipped(self, item_factory) -> None:
        store = _FakeStore([item_factory(id=1)])
        gate = asyncio.Event()

        async def _blocked_check(listing: ListingToCheck) -> CheckResult:
            await gate.wait()
            return _unavailable()

        checker = MagicMock(spec=AvailabilityChecker)
        checker.check = AsyncMock(side_effect=_blocked_check)
        runner = _runner(store, checker, _notifier())

        first = asyncio.create_task(runner.run_cycle())
        await asyncio.sleep(0)
        assert runner.in_flight is True

        assert await runner.run_cycle() is None
        assert store.list_calls == 1

        gate.set()
        stats = await first
        assert stats is not None
        assert runner.in_flight is False

    async def test_guard_cleared_after_store_failure(self) -> None:
        store = MagicMock()
        store.list_active_listings_due_for_check = AsyncMock(side_effect=RuntimeError("db locked"))
        runner = _runner(store, _checker({}), _notifier())

        with pytest.raises(RuntimeError):
            await runner.run_cycle()
        assert runner.in_flight is False

    async def test_cycle_id_set_during_cycle_and_reset_after(self, item_factory) -> None:
        seen: list[str] = []

        async def _check(listing: ListingToCheck) -> CheckResult:
            seen.append(CYCLE_ID_CTX.get())
            return _unavailable()

        checker = MagicMock(spec=AvailabilityChecker)
        checker.check = AsyncMock(side_effect=_check)
        stats = await _runner(_FakeStore([item_factory(id=1)]), checker, _notifier()).run_cycle()

        assert stats is not None
        assert seen == [stats.cycle_id]
        assert len(stats.cycle_id) == 8
        assert CYCLE_ID_CTX.get() == "-"

    async def test_duration_recorded(self, item_factory) -> None:
        stats = await _runner(_FakeStore([item_factory()]), _checker({1: _unavailable()}), _notifier()).run_cycle()
        assert stats is not None
        assert stats.duration_s >= 0.0


class TestCycleReport:
    def test_report_contains_counts(self) -> None:
        stats = CycleStats(cycle_id="abcd1234", checked=4, available=1, unavailable=2, errors=1, transitions=1, notified=1)
        stats.duration_s = 12.34
        report = stats.format_cycle_report()
        assert "abcd1234" in report
        assert "12.3s" in report
        assert "checked=4" in report
        assert "notified=1" in report


class _TextSession(PageSession):
    def __init__(self, text: str) -> None:
        self._text = text

    async def load(self, url: str, options: LoadOptions) -> str:
        return self._text

    async def close(self) -> None:
        return None


class _TextFetcher(PageFetcher):
    def __init__(self, text: str) -> None:
        self._text = text

    async def open_session(self) -> PageSession:
        return _TextSession(self._text)


class TestEndToEnd:
    async def test_book_now_page_alerts_and_caches_price(self, item_factory) -> None:
        patterns = PatternSet.build(
            unavailable=["Sold out"], available=["Book now"], price_pattern=r"\$\s*[\d,]+"
        )
        checker = AvailabilityChecker(
            _TextFetcher("Book now $1,200 total"),
            ClassifierRegistry([AirbnbClassifier(patterns)]),
            retry_delay_s=0,
        )
        store = _FakeStore([item_factory(id=1, last_status=UNAVAILABLE)])
        notifier = _notifier(True)
        runner = BatchRunner(
            store=store,
            checker=checker,
            limiter=ConcurrencyLimiter(3),
            notifier=notifier,
            clock=lambda: _NOW,
        )

        stats = await runner.run_cycle()

        assert stats is not None and stats.transitions == 1
        assert notifier.send_availability_alert.await_args.args[4] == "$1,200"
        assert store.cache[1].last_status is AVAILABLE
        assert store.cache[1].last_price == "$1,200"
        assert store.notified_logs == [1]
