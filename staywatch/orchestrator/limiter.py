"""Bounded-concurrency gate for availability checks.

Every check drives a full browser, so the batch runner must never run more
than ``WORKER_CONCURRENCY`` of them at once.  :class:`ConcurrencyLimiter`
wraps an :class:`asyncio.Semaphore` (FIFO-fair on Python ≥ 3.11) and adds
the counters the cycle report and the tests read.

Guarantees:

* at most ``capacity`` tasks run simultaneously,
* waiting tasks are admitted in submission order,
* a slot is released on every exit path, including exceptions and
  cancellation,
* a task's exception reaches only the caller that submitted it.

Typical usage::

    limiter = ConcurrencyLimiter(capacity=3)
    results = await asyncio.gather(
        *(limiter.run(lambda l=l: checker.check(l)) for l in listings)
    )
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

__all__ = ["ConcurrencyLimiter"]

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConcurrencyLimiter:
    """Run async task factories with at most *capacity* in flight.

    Args:
        capacity: Maximum number of concurrently running tasks.  Must be
            ≥ 1.

    Raises:
        ValueError: If *capacity* is less than 1.
    """

    def __init__(self, capacity: int = 3) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be ≥ 1, got {capacity!r}.")
        self._capacity = capacity
        self._semaphore = asyncio.Semaphore(capacity)
        self._running = 0
        self._waiting = 0
        self._peak_running = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def running(self) -> int:
        """Tasks currently holding a slot."""
        return self._running

    @property
    def waiting(self) -> int:
        """Tasks submitted but not yet admitted."""
        return self._waiting

    @property
    def peak_running(self) -> int:
        """Highest value :attr:`running` has reached since construction."""
        return self._peak_running

    async def run(self, task_factory: Callable[[], Awaitable[T]]) -> T:
        """Wait for a free slot, run ``task_factory()`` and return its result.

        The factory is invoked exactly once, only after a slot is acquired,
        so no work starts while the limiter is saturated.

        Args:
            task_factory: Zero-argument callable returning the awaitable to
                run.

        Returns:
            Whatever the awaitable returns.

        Raises:
            Exception: Whatever the awaitable raises, unchanged.
        """
        self._waiting += 1
        try:
            await self._semaphore.acquire()
        finally:
            self._waiting -= 1

        self._running += 1
        self._peak_running = max(self._peak_running, self._running)
        try:
            return await task_factory()
        finally:
            self._running -= 1
            self._semaphore.release()

    def __repr__(self) -> str:
        return (
            f"ConcurrencyLimiter(capacity={self._capacity}, running={self._running}, "
            f"waiting={self._waiting})"
        )
