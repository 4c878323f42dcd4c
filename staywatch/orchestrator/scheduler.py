"""Continuous fixed-interval scheduler for Staywatch.

After a warm-up delay (``STARTUP_DELAY_S``, default 10 s) a check cycle is
fired every ``CHECK_INTERVAL_S`` seconds (default 600 s, i.e. every ten
minutes).  Ticks behave like cron: each cycle runs as a **background task**
and the next tick fires on schedule whether or not the previous cycle has
finished.  An overrunning cycle is therefore met by the
:class:`~staywatch.orchestrator.batch.BatchRunner` re-entrancy guard, which
logs a skip, instead of piling up behind it.

A heartbeat file is rewritten on every tick so a container health check can
tell a live process from a hung one.

Resource lifecycle is owned by
:func:`~staywatch.orchestrator.runner.open_runner`: the database, the
browser driver and the Telegram session are opened once and shared by every
cycle.

Typical usage::

    import asyncio
    from staywatch.core.run_context import RunContext
    from staywatch.orchestrator.scheduler import run_continuous

    asyncio.run(run_continuous(RunContext()))
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal
import time

from staywatch.core.run_context import RunContext
from staywatch.core.settings import Settings
from staywatch.orchestrator.batch import BatchRunner
from staywatch.orchestrator.runner import open_runner

__all__ = [
    "HEARTBEAT_PATH",
    "run_continuous",
    "run_ticks",
]

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Health-check heartbeat
# ---------------------------------------------------------------------------

#: Heartbeat file rewritten on every tick.  Override with
#: ``STAYWATCH_HEARTBEAT_PATH`` if ``/tmp`` is not writable.
HEARTBEAT_PATH: str = os.environ.get("STAYWATCH_HEARTBEAT_PATH", "/tmp/staywatch_heartbeat")


def _write_heartbeat(path: str = HEARTBEAT_PATH) -> None:
    """Write the current epoch timestamp to *path*; failures are only logged."""
    try:
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(str(time.time()))
    except OSError:
        logger.warning("Failed to write heartbeat file '%s'.", path, exc_info=True)


# ---------------------------------------------------------------------------
# Tick loop
# ---------------------------------------------------------------------------


async def _guarded_cycle(runner: BatchRunner) -> None:
    """Run one cycle; log instead of propagating any failure."""
    try:
        await runner.run_cycle()
    except Exception:
        logger.exception("Unhandled exception in check cycle; will retry on the next tick.")


async def run_ticks(
    runner: BatchRunner,
    *,
    interval_s: float,
    startup_delay_s: float = 0.0,
    heartbeat_path: str = HEARTBEAT_PATH,
    max_ticks: int | None = None,
) -> None:
    """Fire ``runner.run_cycle()`` on a fixed interval.

    Args:
        runner: The batch runner to drive.
        interval_s: Seconds between two ticks.
        startup_delay_s: Warm-up delay before the first tick.
        heartbeat_path: File rewritten on every tick.
        max_ticks: Stop after this many ticks and wait for the cycles they
            started.  ``None`` runs until cancelled.

    Raises:
        asyncio.CancelledError: On shutdown; in-flight cycles are cancelled
            and awaited before the error propagates.
    """
    if startup_delay_s > 0:
        logger.info("Waiting %.0f s before the first check cycle.", startup_delay_s)
        await asyncio.sleep(startup_delay_s)

    in_flight: set[asyncio.Task[None]] = set()
    ticks = 0
    try:
        while max_ticks is None or ticks < max_ticks:
            ticks += 1
            task = asyncio.create_task(_guarded_cycle(runner), name=f"staywatch-cycle-{ticks}")
            in_flight.add(task)
            task.add_done_callback(in_flight.discard)
            _write_heartbeat(heartbeat_path)

            if max_ticks is not None and ticks >= max_ticks:
                break
            logger.debug("Next check cycle in %.0f s.", interval_s)
            await asyncio.sleep(interval_s)

        if in_flight:
            await asyncio.gather(*in_flight)
    except asyncio.CancelledError:
        for task in in_flight:
            task.cancel()
        await asyncio.gather(*in_flight, return_exceptions=True)
        raise


# ---------------------------------------------------------------------------
# Public entry-point
# ---------------------------------------------------------------------------


async def run_continuous(ctx: RunContext, settings: Settings | None = None) -> None:
    """Run Staywatch until cancelled or terminated.

    ``SIGTERM`` (e.g. ``docker stop``) cancels the tick loop; in-flight
    cycles are cancelled and drained, then :func:`open_runner` tears down
    the browser, the Telegram session and the database.  ``SIGINT`` follows
    asyncio's default path (``KeyboardInterrupt``).

    Args:
        ctx: Operating mode.
        settings: Application settings.  Loaded from the environment if
            ``None``.

    Raises:
        ConfigError: Live mode without Telegram credentials.
        asyncio.CancelledError: On shutdown.
    """
    if settings is None:
        settings = Settings()

    logger.info(
        "Staywatch entering continuous mode; interval %d s, startup delay %.0f s.",
        settings.check_interval_s,
        settings.startup_delay_s,
    )

    async with open_runner(settings, ctx) as runner:
        loop_task = asyncio.create_task(
            run_ticks(
                runner,
                interval_s=settings.check_interval_s,
                startup_delay_s=settings.startup_delay_s,
            ),
            name="staywatch-scheduler",
        )

        loop = asyncio.get_running_loop()
        shutdown_signal: list[str] = []

        def _request_graceful_shutdown(signame: str) -> None:
            if not shutdown_signal:
                shutdown_signal.append(signame)
                logger.info("Received %s; graceful shutdown requested.", signame)
            loop_task.cancel()

        loop.add_signal_handler(signal.SIGTERM, lambda: _request_graceful_shutdown("SIGTERM"))
        try:
            await loop_task
        except asyncio.CancelledError:
            if shutdown_signal:
                logger.info("Graceful shutdown complete (signal: %s).", shutdown_signal[0])
            else:
                logger.info("Continuous loop cancelled; stopping.")
                loop_task.cancel()
                await asyncio.gather(loop_task, return_exceptions=True)
            raise
        finally:
            with contextlib.suppress(Exception):
                loop.remove_signal_handler(signal.SIGTERM)
