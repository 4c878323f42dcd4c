"""Single-listing availability check with bounded retries.

:class:`AvailabilityChecker` turns one
:class:`~staywatch.core.models.ListingToCheck` into one
:data:`~staywatch.core.models.CheckResult`:

1. Resolve the platform classifier from the
   :class:`~staywatch.platforms.registry.ClassifierRegistry`.
2. Build the deterministic check URL.
3. Open a **brand-new** fetcher session, load the page waiting for any of the
   platform's markers, read its visible text, close the session.
4. Classify the text.

Step 3 is wrapped in :class:`tenacity.AsyncRetrying`: only failures that
:func:`~staywatch.fetcher.base.is_retryable` accepts are retried, with a
fixed delay, up to ``max_attempts`` attempts in total.  A failure that is
terminal or survives every attempt becomes an
:class:`~staywatch.core.models.ErrorResult`; :meth:`AvailabilityChecker.check`
never raises for fetch failures.

Typical usage::

    checker = AvailabilityChecker(fetcher, default_registry(settings))
    result = await checker.check(listing)
    if result.verdict is Verdict.AVAILABLE:
        print(result.price)
"""

from __future__ import annotations

import logging
from typing import Final

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

from staywatch.core import events
from staywatch.core.exceptions import UnknownPlatformError
from staywatch.core.models import CheckResult, ErrorResult, ListingToCheck
from staywatch.core.settings import Settings
from staywatch.fetcher.base import LoadOptions, PageFetcher, is_retryable
from staywatch.platforms.registry import ClassifierRegistry

__all__ = ["AvailabilityChecker"]

logger = logging.getLogger(__name__)

#: Total fetch attempts per check (1 initial + 2 retries).
DEFAULT_MAX_ATTEMPTS: Final[int] = 3

#: Fixed pause between two attempts, in seconds.
DEFAULT_RETRY_DELAY_S: Final[float] = 3.0


class AvailabilityChecker:
    """Checks one listing at a time against its platform page.

    The checker is stateless across calls and safe to share between
    concurrent coroutines; each call opens its own sessions.

    Args:
        fetcher: Source of fresh page sessions.
        registry: Platform → classifier lookup.
        max_attempts: Total fetch attempts per check.  Must be ≥ 1.
        retry_delay_s: Fixed delay between attempts.
        navigation_timeout_ms: Navigation deadline passed to the session.
        condition_timeout_ms: Marker-wait budget passed to the session.

    Raises:
        ValueError: If *max_attempts* < 1 or *retry_delay_s* < 0.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        registry: ClassifierRegistry,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_delay_s: float = DEFAULT_RETRY_DELAY_S,
        navigation_timeout_ms: int = 60_000,
        condition_timeout_ms: int = 10_000,
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be ≥ 1, got {max_attempts!r}.")
        if retry_delay_s < 0:
            raise ValueError(f"retry_delay_s must be ≥ 0, got {retry_delay_s!r}.")
        self._fetcher = fetcher
        self._registry = registry
        self._max_attempts = max_attempts
        self._retry_delay_s = retry_delay_s
        self._navigation_timeout_ms = navigation_timeout_ms
        self._condition_timeout_ms = condition_timeout_ms

    @classmethod
    def from_settings(
        cls,
        fetcher: PageFetcher,
        registry: ClassifierRegistry,
        settings: Settings,
    ) -> AvailabilityChecker:
        """Build a checker using the ``CHECK_*`` and timeout settings."""
        return cls(
            fetcher,
            registry,
            max_attempts=settings.check_max_attempts,
            retry_delay_s=settings.check_retry_delay_s,
            navigation_timeout_ms=settings.navigation_timeout_ms,
            condition_timeout_ms=settings.condition_timeout_ms,
        )

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def check(self, listing: ListingToCheck) -> CheckResult:
        """Check *listing* and return its verdict.

        Args:
            listing: The listing snapshot to check.

        Returns:
            The classifier's verdict with ``attempts`` set to the number of
            fetch attempts consumed, or an
            :class:`~staywatch.core.models.ErrorResult` if fetching failed.
        """
        try:
            classifier = self._registry.get(listing.platform)
        except UnknownPlatformError as exc:
            logger.error(
                "Listing %d: %s", listing.id, exc, extra={"event": events.CHECK_ERROR}
            )
            return ErrorResult(url=listing.url, detail=str(exc))

        url = classifier.build_url(listing)
        options = LoadOptions(
            wait_for_any=classifier.wait_markers,
            navigation_timeout_ms=self._navigation_timeout_ms,
            condition_timeout_ms=self._condition_timeout_ms,
            scroll_distance=classifier.scroll_distance,
        )

        attempts = 0

        def _before_sleep(rs: RetryCallState) -> None:
            exc = rs.outcome.exception() if rs.outcome else None
            logger.warning(
                "Listing %d: attempt %d/%d failed (%s); retrying in %.1f s on a new session.",
                listing.id,
                rs.attempt_number,
                self._max_attempts,
                exc,
                self._retry_delay_s,
                extra={"event": events.CHECK_RETRY},
            )

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._max_attempts),
                wait=wait_fixed(self._retry_delay_s),
                retry=retry_if_exception(is_retryable),
                reraise=True,
                before_sleep=_before_sleep,
            ):
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    page_text = await self._fetch_text(url, options)
        except Exception as exc:  # noqa: BLE001
            detail = str(exc) or type(exc).__name__
            logger.warning(
                "Listing %d: check failed after %d attempt(s): %s",
                listing.id,
                attempts,
                detail,
                extra={"event": events.CHECK_ERROR},
            )
            return ErrorResult(url=url, detail=detail, attempts=max(attempts, 1))

        result = classifier.classify(page_text, url=url)
        logger.debug(
            "Listing %d: %s after %d attempt(s) (%s)",
            listing.id,
            result.verdict,
            attempts,
            url,
            extra={"event": events.CHECK_DONE},
        )
        return result.model_copy(update={"attempts": attempts})

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _fetch_text(self, url: str, options: LoadOptions) -> str:
        """One attempt: open a fresh session, load *url*, always close."""
        session = await self._fetcher.open_session()
        try:
            return await session.load(url, options)
        finally:
            await session.close()
