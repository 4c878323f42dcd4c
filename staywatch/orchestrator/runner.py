"""Component wiring and the single-cycle entry point.

:func:`open_runner` assembles every runtime component and yields a ready
:class:`~staywatch.orchestrator.batch.BatchRunner`:

1. Opens the SQLite database (:func:`~staywatch.storage.database.open_db`)
   and wraps it in an
   :class:`~staywatch.storage.repository.AccommodationRepository`.
2. Starts the :class:`~staywatch.fetcher.browser.PlaywrightFetcher` driver.
3. Opens a :class:`~staywatch.notifiers.telegram.TelegramClient` (when a
   token is configured) behind a mode-aware
   :class:`~staywatch.notifiers.notifier.Notifier`.
4. Builds the platform registry, the checker and the concurrency limiter.

Every resource is registered on one :class:`contextlib.AsyncExitStack`, so
teardown happens in reverse order on normal exit, on exceptions and on
cancellation.

Telegram / dry-run behaviour
----------------------------
In **live mode** ``TELEGRAM_BOT_TOKEN`` must be set, otherwise
:exc:`~staywatch.core.exceptions.ConfigError` is raised before any I/O.  In
**dry-run** mode the token is optional and alerts are only logged.

Typical usage::

    ctx = RunContext(dry_run=True)
    async with open_runner(Settings(), ctx) as runner:
        stats = await runner.run_cycle()
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager

from staywatch.core.exceptions import ConfigError
from staywatch.core.run_context import RunContext
from staywatch.core.settings import Settings
from staywatch.fetcher.base import PageFetcher
from staywatch.fetcher.browser import PlaywrightFetcher
from staywatch.notifiers.notifier import Notifier
from staywatch.notifiers.telegram import TelegramClient
from staywatch.orchestrator.batch import BatchRunner, CycleStats
from staywatch.orchestrator.checker import AvailabilityChecker
from staywatch.orchestrator.limiter import ConcurrencyLimiter
from staywatch.platforms.registry import default_registry
from staywatch.storage.database import open_db
from staywatch.storage.repository import AccommodationRepository

__all__ = ["open_runner", "run_once"]

logger = logging.getLogger(__name__)


def _require_live_credentials(ctx: RunContext, settings: Settings) -> None:
    if ctx.should_notify and not settings.telegram_configured:
        raise ConfigError(
            "Live mode requires Telegram credentials. "
            "Set TELEGRAM_BOT_TOKEN in .env (or env vars), or run with --dry-run."
        )


@asynccontextmanager
async def open_runner(
    settings: Settings,
    ctx: RunContext,
    *,
    fetcher: PageFetcher | None = None,
) -> AsyncIterator[BatchRunner]:
    """Wire all components and yield a :class:`BatchRunner`.

    Args:
        settings: Loaded application settings.
        ctx: Operating mode.
        fetcher: Page fetcher to use instead of a Playwright one.  The caller
            owns its lifecycle.

    Yields:
        A runner whose store, fetcher and notifier stay open until the
        context exits.

    Raises:
        ConfigError: Live mode without ``TELEGRAM_BOT_TOKEN``.
    """
    _require_live_credentials(ctx, settings)

    async with AsyncExitStack() as stack:
        conn = await open_db(settings.database_path_resolved)
        stack.push_async_callback(conn.close)
        repo = AccommodationRepository(conn)

        if fetcher is None:
            fetcher = await stack.enter_async_context(PlaywrightFetcher.from_settings(settings))

        client: TelegramClient | None = None
        if settings.telegram_configured:
            client = await stack.enter_async_context(TelegramClient(settings.telegram_bot_token))
        else:
            logger.debug("Telegram not configured; alerts are logged only (%s).", ctx.mode_label)
        notifier = Notifier(client=client, ctx=ctx)

        registry = default_registry(settings)
        checker = AvailabilityChecker.from_settings(fetcher, registry, settings)
        limiter = ConcurrencyLimiter(settings.worker_concurrency)

        logger.info(
            "Runner ready; mode=%s db=%s concurrency=%d platforms=%s",
            ctx.mode_label,
            settings.database_path,
            settings.worker_concurrency,
            ",".join(registry.platforms),
        )
        yield BatchRunner(store=repo, checker=checker, limiter=limiter, notifier=notifier)

    logger.debug("Runner resources released.")


async def run_once(ctx: RunContext, settings: Settings | None = None) -> CycleStats | None:
    """Open a runner, execute exactly one cycle and tear everything down.

    Args:
        ctx: Operating mode.
        settings: Application settings.  Loaded from the environment if
            ``None``.

    Returns:
        The cycle's stats (never ``None`` in practice, since the runner is
        fresh).

    Raises:
        ConfigError: Live mode without Telegram credentials.
    """
    if settings is None:
        settings = Settings()

    async with open_runner(settings, ctx) as runner:
        return await runner.run_cycle()
