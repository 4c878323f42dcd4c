"""One check cycle: load due listings → check → log → notify → cache.

:class:`BatchRunner` drives a single cycle over every listing the store says
is due:

1. **Load**: :meth:`~staywatch.storage.repository.Store.list_active_listings_due_for_check`.
2. **Check**: every listing goes through
   :meth:`~staywatch.orchestrator.checker.AvailabilityChecker.check`, all of
   them submitted at once to the
   :class:`~staywatch.orchestrator.limiter.ConcurrencyLimiter`, which keeps
   at most ``WORKER_CONCURRENCY`` browsers alive.
3. **Record**: per listing, serially (single SQLite connection), append a
   check log, alert the owner on a not-available → available transition,
   mark the log as notified when delivery succeeded, and refresh the
   listing's cached ``last_*`` columns.

Failures are isolated per listing: a store or notifier error for one listing
is logged and counted, and the cycle moves on.

Re-entrancy
-----------
A runner owns an ``in-flight`` flag.  If :meth:`BatchRunner.run_cycle` is
called while a previous cycle is still running (a slow cycle overrunning the
scheduler interval) the call logs a skip and returns ``None`` immediately
without touching the store or the fetcher.

Transition rule
---------------
An alert is sent only when the new verdict is *available*, the previous
persisted status is anything but ``AVAILABLE`` (including "never checked"),
and the owner has a chat id.  A listing that stays available is never
re-alerted; one that flips to unavailable or error and back is.

Typical usage::

    runner = BatchRunner(store=repo, checker=checker, limiter=limiter, notifier=notifier)
    stats = await runner.run_cycle()
    if stats is not None:
        logger.info("%s", stats.format_cycle_report())
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from staywatch.core import events
from staywatch.core.logging_config import CYCLE_ID_CTX
from staywatch.core.models import (
    AvailabilityStatus,
    AvailableResult,
    CheckLogEntry,
    CheckResult,
    ErrorResult,
    ListingCacheUpdate,
    ListingWithOwner,
    TransitionEvent,
    UnavailableResult,
)
from staywatch.notifiers.notifier import Notifier
from staywatch.orchestrator.checker import AvailabilityChecker
from staywatch.orchestrator.limiter import ConcurrencyLimiter
from staywatch.storage.repository import Store

__all__ = [
    "BatchRunner",
    "CycleStats",
    "ListingOutcome",
    "build_transition_event",
    "is_transition",
    "status_for_result",
]

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def status_for_result(result: CheckResult) -> AvailabilityStatus:
    """Map a check verdict onto the status the store persists."""
    if isinstance(result, AvailableResult):
        return AvailabilityStatus.AVAILABLE
    if isinstance(result, UnavailableResult):
        return AvailabilityStatus.UNAVAILABLE
    return AvailabilityStatus.ERROR


def is_transition(prior: AvailabilityStatus | None, result: CheckResult) -> bool:
    """``True`` if *result* is available and *prior* was not."""
    return isinstance(result, AvailableResult) and prior is not AvailabilityStatus.AVAILABLE


def build_transition_event(
    item: ListingWithOwner, result: AvailableResult
) -> TransitionEvent | None:
    """Build the alert payload for *item*, or ``None`` if its owner has no chat."""
    chat_id = item.owner.telegram_chat_id
    if not item.owner.can_be_notified or chat_id is None:
        return None
    return TransitionEvent(
        listing_id=item.listing.id,
        listing_name=item.name,
        owner_id=item.owner.id,
        chat_id=chat_id,
        check_in=item.listing.check_in,
        check_out=item.listing.check_out,
        price=result.price,
        url=result.url,
    )


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


@dataclass
class ListingOutcome:
    """What happened to one listing during a cycle.

    Attributes:
        listing_id: Store id of the listing.
        status: Status derived from the check verdict.
        attempts: Fetch attempts the check consumed.
        log_id: Id of the appended check log, ``None`` if the append failed.
        transitioned: The listing flipped to available this cycle.
        notified: The transition alert was delivered.
        error: Message of the processing failure, if any.
    """

    listing_id: int
    status: AvailabilityStatus
    attempts: int = 1
    log_id: int | None = None
    transitioned: bool = False
    notified: bool = False
    error: str | None = None


@dataclass
class CycleStats:
    """Counters for a single check cycle.

    Attributes:
        cycle_id: Correlation id attached to every log line of the cycle.
        checked: Listings checked.
        available: Checks that returned an available verdict.
        unavailable: Checks that returned an unavailable verdict.
        errors: Checks that returned an error verdict.
        transitions: Listings that flipped to available and whose owner can
            be notified.
        notified: Alerts delivered (or logged in dry-run).
        failures: Listings whose post-check processing raised.
        duration_s: Wall-clock duration of the cycle.
        outcomes: Per-listing details, in store order.
    """

    cycle_id: str = ""
    checked: int = 0
    available: int = 0
    unavailable: int = 0
    errors: int = 0
    transitions: int = 0
    notified: int = 0
    failures: int = 0
    duration_s: float = 0.0
    outcomes: list[ListingOutcome] = field(default_factory=list)

    def record_status(self, status: AvailabilityStatus) -> None:
        self.checked += 1
        if status is AvailabilityStatus.AVAILABLE:
            self.available += 1
        elif status is AvailabilityStatus.UNAVAILABLE:
            self.unavailable += 1
        else:
            self.errors += 1

    def format_cycle_report(self) -> str:
        """One-line human-readable summary of the cycle."""
        return (
            f"Cycle {self.cycle_id or '-'} done in {self.duration_s:.1f}s: "
            f"checked={self.checked} available={self.available} "
            f"unavailable={self.unavailable} errors={self.errors} "
            f"transitions={self.transitions} notified={self.notified} "
            f"failures={self.failures}"
        )


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


class BatchRunner:
    """Runs check cycles over the store's due listings.

    Args:
        store: Source of due listings and sink for check results.
        checker: Performs one availability check.
        limiter: Bounds how many checks run at once.
        notifier: Delivers transition alerts.
        clock: Returns the current time; injectable for tests.
    """

    def __init__(
        self,
        store: Store,
        checker: AvailabilityChecker,
        limiter: ConcurrencyLimiter,
        notifier: Notifier,
        *,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._store = store
        self._checker = checker
        self._limiter = limiter
        self._notifier = notifier
        self._clock = clock
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        """``True`` while a cycle is running."""
        return self._in_flight

    async def run_cycle(self) -> CycleStats | None:
        """Run one cycle.

        Returns:
            The cycle's :class:`CycleStats`, or ``None`` if another cycle was
            still in flight and this call was skipped.

        Raises:
            Exception: Only if loading the due listings fails; per-listing
                failures are counted in :attr:`CycleStats.failures`.
        """
        if self._in_flight:
            logger.warning(
                "Previous check cycle still running; skipping this one.",
                extra={"event": events.CYCLE_SKIPPED},
            )
            return None

        self._in_flight = True
        cycle_id = uuid.uuid4().hex[:8]
        token = CYCLE_ID_CTX.set(cycle_id)
        t0 = time.monotonic()
        try:
            stats = await self._run(CycleStats(cycle_id=cycle_id))
            stats.duration_s = time.monotonic() - t0
            logger.info(
                "%s", stats.format_cycle_report(), extra={"event": events.CYCLE_COMPLETE}
            )
            return stats
        finally:
            CYCLE_ID_CTX.reset(token)
            self._in_flight = False

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _run(self, stats: CycleStats) -> CycleStats:
        now = self._clock()
        due = await self._store.list_active_listings_due_for_check(now)
        if not due:
            logger.info("No listings due for check.", extra={"event": events.CYCLE_EMPTY})
            return stats

        logger.info(
            "Checking %d listing(s) with concurrency %d.",
            len(due),
            self._limiter.capacity,
            extra={"event": events.CYCLE_START},
        )

        results = await asyncio.gather(
            *(self._limiter.run(lambda item=item: self._checker.check(item.listing)) for item in due),
            return_exceptions=True,
        )

        for item, raw in zip(due, results, strict=True):
            result = self._coerce_result(item, raw)
            outcome = await self._record(item, result, stats)
            stats.outcomes.append(outcome)

        logger.debug("Limiter peak concurrency this run: %d", self._limiter.peak_running)
        return stats

    @staticmethod
    def _coerce_result(item: ListingWithOwner, raw: CheckResult | BaseException) -> CheckResult:
        """Turn an unexpected checker exception into an error verdict."""
        if isinstance(raw, BaseException):
            if not isinstance(raw, Exception):
                raise raw
            logger.error(
                "Listing %d: checker raised unexpectedly: %s",
                item.listing.id,
                raw,
                exc_info=raw,
                extra={"event": events.CHECK_ERROR},
            )
            return ErrorResult(url=item.listing.url, detail=str(raw) or type(raw).__name__)
        return raw

    async def _record(
        self, item: ListingWithOwner, result: CheckResult, stats: CycleStats
    ) -> ListingOutcome:
        """Persist one check result and alert the owner on a transition."""
        listing_id = item.listing.id
        status = status_for_result(result)
        stats.record_status(status)
        outcome = ListingOutcome(listing_id=listing_id, status=status, attempts=result.attempts)
        checked_at = self._clock()
        price = result.price if isinstance(result, AvailableResult) else None

        try:
            outcome.log_id = await self._store.append_check_log(
                CheckLogEntry(
                    listing_id=listing_id,
                    status=status,
                    price=price,
                    error_message=result.detail if isinstance(result, ErrorResult) else None,
                    checked_at=checked_at,
                )
            )
        except Exception as exc:  # noqa: BLE001
            self._record_failure(listing_id, exc, outcome, stats)

        # A lost log row must not cost the owner the alert.
        if isinstance(result, AvailableResult) and is_transition(item.last_status, result):
            try:
                await self._notify_transition(item, result, outcome, stats)
            except Exception as exc:  # noqa: BLE001
                if outcome.error is None:
                    self._record_failure(listing_id, exc, outcome, stats)
                else:
                    logger.error("Listing %d: alert also failed: %s", listing_id, exc)

        try:
            await self._store.update_listing_cache(
                listing_id,
                ListingCacheUpdate(last_checked_at=checked_at, last_status=status, last_price=price),
            )
        except Exception as exc:  # noqa: BLE001
            if outcome.error is None:
                self._record_failure(listing_id, exc, outcome, stats)
            else:
                logger.error("Listing %d: cache update also failed: %s", listing_id, exc)

        return outcome

    async def _notify_transition(
        self,
        item: ListingWithOwner,
        result: AvailableResult,
        outcome: ListingOutcome,
        stats: CycleStats,
    ) -> None:
        event = build_transition_event(item, result)
        if event is None:
            logger.info(
                "Listing %d became available but owner %d has no chat linked.",
                item.listing.id,
                item.owner.id,
            )
            return

        outcome.transitioned = True
        stats.transitions += 1
        logger.info(
            "Listing %d (%s) is now available at %s.",
            event.listing_id,
            event.listing_name,
            event.price,
            extra={"event": events.LISTING_TRANSITION},
        )

        sent = await self._notifier.send_availability_alert(
            event.chat_id,
            event.listing_name,
            event.check_in,
            event.check_out,
            event.price,
            event.url,
        )
        if not sent:
            logger.warning(
                "Alert for listing %d was not delivered.",
                event.listing_id,
                extra={"event": events.LISTING_NOTIFY_FAILED},
            )
            return

        if outcome.log_id is not None:
            await self._store.mark_log_notified(outcome.log_id)
        outcome.notified = True
        stats.notified += 1
        logger.info(
            "Owner %d notified about listing %d.",
            event.owner_id,
            event.listing_id,
            extra={"event": events.LISTING_NOTIFIED},
        )

    @staticmethod
    def _record_failure(
        listing_id: int, exc: Exception, outcome: ListingOutcome, stats: CycleStats
    ) -> None:
        outcome.error = str(exc) or type(exc).__name__
        stats.failures += 1
        logger.error(
            "Listing %d: processing failed; continuing with the batch: %s",
            listing_id,
            exc,
            exc_info=True,
            extra={"event": events.LISTING_PROCESS_ERROR},
        )
