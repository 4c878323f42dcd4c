"""Page-fetcher capability consumed by the availability checker.

The checker only needs the *visible text* of a fully rendered page.  A
:class:`PageFetcher` hands out :class:`PageSession` objects, each an isolated
browser context used for exactly one fetch attempt and then closed.

Design decisions
----------------
* **Abstract base classes** mirror the rest of the codebase: concrete
  fetchers inherit the async-context-manager plumbing of :class:`PageSession`.
* **One session per attempt**: a session that failed mid-navigation may be
  poisoned (detached frames, dead websocket), so callers never reuse one.
* **Error mapping lives here**: :func:`classify_fetch_error` and
  :func:`is_retryable` decide which failures are transient, independently of
  the automation library that raised them.

Typical usage::

    async with await fetcher.open_session() as session:
        text = await session.load(url, LoadOptions(wait_for_any=("Reserve",)))
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from types import TracebackType
from typing import Final

from staywatch.core.exceptions import (
    FetchError,
    TerminalFetchError,
    TransientFetchError,
)

__all__ = [
    "LoadOptions",
    "PageFetcher",
    "PageSession",
    "classify_fetch_error",
    "is_retryable",
]

logger = logging.getLogger(__name__)

#: Lower-cased fragments of error messages that indicate a transient,
#: connection- or protocol-level failure worth retrying on a new session.
_TRANSIENT_MARKERS: Final[tuple[str, ...]] = (
    "protocol error",
    "target closed",
    "target page, context or browser has been closed",
    "browser has been closed",
    "execution context was destroyed",
    "detached",
    "session closed",
    "connection closed",
    "websocket",
    "net::err_",
    "econnreset",
    "econnrefused",
    "socket hang up",
)


@dataclass(frozen=True)
class LoadOptions:
    """How a session loads and settles a page.

    Attributes:
        wait_for_any: Markers to wait for in ``document.body.innerText``.
            Waiting stops as soon as any one of them is present.
        navigation_timeout_ms: Hard deadline for navigation.
        condition_timeout_ms: Budget for the marker wait.  Running out of
            it is not an error; the text is read as-is.
        scroll_distance: Pixels to scroll after navigation so lazily
            rendered content is triggered.
    """

    wait_for_any: tuple[str, ...] = ()
    navigation_timeout_ms: int = 60_000
    condition_timeout_ms: int = 10_000
    scroll_distance: int = 1000


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------


def _has_transient_marker(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in _TRANSIENT_MARKERS)


def classify_fetch_error(exc: BaseException) -> FetchError:
    """Map an automation-library exception onto the fetch taxonomy.

    Args:
        exc: The exception raised while driving the browser.

    Returns:
        A :class:`~staywatch.core.exceptions.TransientFetchError` when the
        message matches a known transient marker, otherwise a
        :class:`~staywatch.core.exceptions.TerminalFetchError`.  The caller
        is expected to ``raise ... from exc``.
    """
    message = str(exc) or type(exc).__name__
    if _has_transient_marker(message):
        return TransientFetchError(message)
    return TerminalFetchError(message)


def is_retryable(exc: BaseException) -> bool:
    """Return ``True`` if a failed attempt should be retried.

    Typed fetch errors are authoritative: only
    :class:`~staywatch.core.exceptions.TransientFetchError` is retried and
    every other :class:`~staywatch.core.exceptions.FetchError` (including
    navigation timeouts and session-launch failures) is terminal.  Untyped
    exceptions fall back to message inspection.
    """
    if isinstance(exc, TransientFetchError):
        return True
    if isinstance(exc, FetchError):
        return False
    return _has_transient_marker(str(exc))


# ---------------------------------------------------------------------------
# Capability interfaces
# ---------------------------------------------------------------------------


class PageSession(ABC):
    """One isolated browser context, good for a single fetch attempt."""

    @abstractmethod
    async def load(self, url: str, options: LoadOptions) -> str:
        """Navigate to *url*, let it settle and return its visible text.

        Raises:
            TransientFetchError: Connection or protocol-level failure.
            FetchTimeoutError: Navigation exceeded its deadline.
            TerminalFetchError: Any other failure.
        """

    @abstractmethod
    async def close(self) -> None:
        """Release the session.  Idempotent and never raises."""

    async def __aenter__(self) -> PageSession:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()


class PageFetcher(ABC):
    """Factory of :class:`PageSession` objects."""

    @abstractmethod
    async def open_session(self) -> PageSession:
        """Open a brand-new session.

        Raises:
            SessionError: If resources are exhausted or the backend is down.
        """
