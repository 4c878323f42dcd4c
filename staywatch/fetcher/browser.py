"""Playwright-backed page fetcher.

:class:`PlaywrightFetcher` owns the Playwright driver for the lifetime of the
worker and launches a **fresh Chromium browser for every session**, so a
crashed renderer or a dropped DevTools connection can never leak into the
next attempt.

Page setup applied to every session:

* desktop User-Agent and a 1920×1080 viewport,
* ``Accept-Language`` header (the platforms localise their markers),
* ``navigator.webdriver`` hidden,
* default action / navigation timeouts.

Playwright exceptions are translated into the fetch taxonomy of
:mod:`staywatch.core.exceptions` before they leave this module.

Typical usage::

    async with PlaywrightFetcher(headless=True) as fetcher:
        session = await fetcher.open_session()
        try:
            text = await session.load(url, LoadOptions(wait_for_any=markers))
        finally:
            await session.close()
"""

from __future__ import annotations

import contextlib
import logging
from types import TracebackType
from typing import Final

from playwright.async_api import (
    Browser,
    Page,
    Playwright,
    async_playwright,
)
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from staywatch.core.exceptions import FetchTimeoutError, SessionError
from staywatch.core.settings import Settings
from staywatch.fetcher.base import LoadOptions, PageFetcher, PageSession, classify_fetch_error

__all__ = ["PlaywrightFetcher", "PlaywrightSession"]

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_LAUNCH_ARGS: Final[list[str]] = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--disable-gpu",
    "--window-size=1920,1080",
    "--disable-blink-features=AutomationControlled",
    "--disable-infobars",
]

_VIEWPORT: Final[dict[str, int]] = {"width": 1920, "height": 1080}

#: Timeout for individual page actions (evaluate, waits without explicit budget).
_DEFAULT_ACTION_TIMEOUT_MS: Final[int] = 30_000

_HIDE_WEBDRIVER_JS: Final[str] = (
    "Object.defineProperty(navigator, 'webdriver', { get: () => undefined });"
)

_SCROLL_JS: Final[str] = "(distance) => window.scrollBy(0, distance)"

_WAIT_FOR_ANY_JS: Final[str] = """
(markers) => {
    const text = (document.body && document.body.innerText) || "";
    return markers.some((m) => text.includes(m));
}
"""

_BODY_TEXT_JS: Final[str] = "() => (document.body && document.body.innerText) || ''"

#: Navigation ends at the load event; the marker wait decides when the page is ready.
_NAVIGATION_WAIT_UNTIL: Final[str] = "load"


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class PlaywrightSession(PageSession):
    """A single-use Chromium browser with one page.

    Args:
        browser: The browser launched for this session; closed by
            :meth:`close`.
        page: The page to drive.
    """

    def __init__(self, browser: Browser, page: Page) -> None:
        self._browser = browser
        self._page = page
        self._closed = False

    async def load(self, url: str, options: LoadOptions) -> str:
        try:
            await self._page.goto(
                url,
                wait_until=_NAVIGATION_WAIT_UNTIL,
                timeout=options.navigation_timeout_ms,
            )
            await self._page.evaluate(_SCROLL_JS, options.scroll_distance)
            await self._wait_for_markers(options)
            return await self._page.evaluate(_BODY_TEXT_JS)
        except PlaywrightTimeoutError as exc:
            raise FetchTimeoutError(str(exc), timeout_ms=options.navigation_timeout_ms) from exc
        except PlaywrightError as exc:
            raise classify_fetch_error(exc) from exc

    async def _wait_for_markers(self, options: LoadOptions) -> None:
        """Wait until any marker is rendered; give up quietly on timeout."""
        if not options.wait_for_any or options.condition_timeout_ms <= 0:
            return
        try:
            await self._page.wait_for_function(
                _WAIT_FOR_ANY_JS,
                arg=list(options.wait_for_any),
                timeout=options.condition_timeout_ms,
            )
        except PlaywrightTimeoutError:
            logger.debug(
                "No marker rendered within %d ms on %s; reading text as-is.",
                options.condition_timeout_ms,
                self._page.url,
            )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._browser.close()
        except Exception:  # noqa: BLE001
            logger.debug("Ignoring error while closing browser session.", exc_info=True)


# ---------------------------------------------------------------------------
# Fetcher
# ---------------------------------------------------------------------------


class PlaywrightFetcher(PageFetcher):
    """Launches one Chromium browser per session on a shared Playwright driver.

    Use as an ``async with`` context manager so the driver is stopped on exit.

    Args:
        headless: Run Chromium without a window.
        user_agent: User-Agent header for every page.
        accept_language: ``Accept-Language`` header for every page.
        launch_timeout_ms: Deadline for the browser process to start.
    """

    def __init__(
        self,
        *,
        headless: bool = True,
        user_agent: str | None = None,
        accept_language: str = "ko-KR,ko;q=0.9,en-US;q=0.8,en;q=0.7",
        launch_timeout_ms: int = 60_000,
    ) -> None:
        self._headless = headless
        self._user_agent = user_agent
        self._accept_language = accept_language
        self._launch_timeout_ms = launch_timeout_ms
        self._playwright: Playwright | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> PlaywrightFetcher:
        """Build a fetcher from the ``BROWSER_*`` settings."""
        return cls(
            headless=settings.browser_headless,
            user_agent=settings.browser_user_agent,
            accept_language=settings.browser_accept_language,
            launch_timeout_ms=settings.navigation_timeout_ms,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the Playwright driver.  Safe to call more than once."""
        if self._playwright is None:
            self._playwright = await async_playwright().start()
            logger.debug("Playwright driver started (headless=%s).", self._headless)

    async def close(self) -> None:
        """Stop the Playwright driver.  Safe to call more than once."""
        if self._playwright is not None:
            with contextlib.suppress(Exception):
                await self._playwright.stop()
            self._playwright = None
            logger.debug("Playwright driver stopped.")

    async def __aenter__(self) -> PlaywrightFetcher:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # PageFetcher
    # ------------------------------------------------------------------

    async def open_session(self) -> PlaywrightSession:
        if self._playwright is None:
            raise SessionError("PlaywrightFetcher is not started")

        browser: Browser | None = None
        try:
            browser = await self._playwright.chromium.launch(
                headless=self._headless,
                args=_LAUNCH_ARGS,
                timeout=self._launch_timeout_ms,
            )
            context = await browser.new_context(
                user_agent=self._user_agent,
                viewport=_VIEWPORT,
                extra_http_headers={"Accept-Language": self._accept_language},
            )
            await context.add_init_script(_HIDE_WEBDRIVER_JS)
            page = await context.new_page()
            page.set_default_timeout(_DEFAULT_ACTION_TIMEOUT_MS)
            page.set_default_navigation_timeout(self._launch_timeout_ms)
        except PlaywrightError as exc:
            if browser is not None:
                with contextlib.suppress(Exception):
                    await browser.close()
            raise SessionError(f"Could not open browser session: {exc}") from exc

        return PlaywrightSession(browser, page)
