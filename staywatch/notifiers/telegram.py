"""Telegram Bot API client for Staywatch.

Provides :class:`TelegramClient`, a lightweight async wrapper around the
``sendMessage`` endpoint.  Unlike a single-channel bot, every alert goes to
the chat of the owner who tracks the listing, so the destination is a
per-call argument.

The client handles:

* A keep-alive :class:`httpx.AsyncClient` with an explicit timeout budget.
* Automatic retries with capped exponential back-off via :mod:`tenacity`.
* ``retry_after`` honouring on HTTP 429 responses.
* Mapping of failures to
  :class:`~staywatch.core.exceptions.TelegramError` and
  :class:`~staywatch.core.exceptions.TelegramRateLimitError`.

Formatting lives in :mod:`staywatch.notifiers.formatter`; the mode-aware
entry point lives in :mod:`staywatch.notifiers.notifier`.

Typical usage::

    async with TelegramClient(token="123:ABC") as client:
        await client.send_message("987654321", "Hello from Staywatch\\!")
"""

from __future__ import annotations

import logging
import random
from typing import Final

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
)

from staywatch.core.exceptions import TelegramError, TelegramRateLimitError

__all__ = ["TelegramClient"]

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_TELEGRAM_BASE_URL: Final[str] = "https://api.telegram.org"

#: HTTP status codes that indicate a transient server error.
_RETRYABLE_STATUS: Final[frozenset[int]] = frozenset({500, 502, 503, 504})

_DEFAULT_CONNECT_TIMEOUT: Final[float] = 5.0
_DEFAULT_READ_TIMEOUT: Final[float] = 10.0
_DEFAULT_WRITE_TIMEOUT: Final[float] = 10.0

#: Default total send attempts (1 initial + 3 retries).
_DEFAULT_MAX_ATTEMPTS: Final[int] = 4

_MAX_BACKOFF_JITTER: Final[float] = 5.0
_MAX_BACKOFF_BASE: Final[float] = 30.0


class _RetryableServerError(TelegramError):
    """Raised on 5xx to trigger a tenacity retry; re-raised as-is when exhausted."""


# ---------------------------------------------------------------------------
# Wait strategy
# ---------------------------------------------------------------------------


def _telegram_wait(retry_state: RetryCallState) -> float:
    """Seconds to sleep before the next attempt.

    HTTP 429 waits exactly ``retry_after``; everything else backs off
    exponentially (1, 2, 4 … s, capped) with random jitter.
    """
    if retry_state.outcome is not None:
        exc = retry_state.outcome.exception()
        if isinstance(exc, TelegramRateLimitError) and exc.retry_after > 0:
            return exc.retry_after

    attempt = max(retry_state.attempt_number, 1)
    base = min(2.0 ** (attempt - 1), _MAX_BACKOFF_BASE)
    jitter = random.uniform(0.0, min(base, _MAX_BACKOFF_JITTER))
    return base + jitter


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class TelegramClient:
    """Async Telegram Bot API client with timeout budget and retries.

    Args:
        token: Bot token as provided by @BotFather (non-empty).
        connect_timeout: Seconds to establish a TCP connection.
        read_timeout: Seconds to wait for the response body.
        write_timeout: Seconds to upload the request body.
        max_attempts: Total send attempts including the first.  Must be ≥ 1.

    Raises:
        ValueError: If ``token`` is empty or ``max_attempts`` < 1.
    """

    def __init__(
        self,
        token: str,
        *,
        connect_timeout: float = _DEFAULT_CONNECT_TIMEOUT,
        read_timeout: float = _DEFAULT_READ_TIMEOUT,
        write_timeout: float = _DEFAULT_WRITE_TIMEOUT,
        max_attempts: int = _DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        if not token:
            raise ValueError("TelegramClient requires a non-empty token.")
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be ≥ 1, got {max_attempts!r}.")

        self._token = token
        self._max_attempts = max_attempts
        self._timeout = httpx.Timeout(
            connect=connect_timeout,
            read=read_timeout,
            write=write_timeout,
            pool=5.0,
        )
        self._http: httpx.AsyncClient | None = None

    async def __aenter__(self) -> TelegramClient:
        await self._ensure_http_client()
        return self

    async def __aexit__(self, *_args: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def send_message(
        self,
        chat_id: str,
        text: str,
        *,
        parse_mode: str = "MarkdownV2",
    ) -> None:
        """Send *text* to *chat_id*.

        Retries on transport errors, HTTP 429 and HTTP 5xx.  Other 4xx
        responses (bad request, invalid token, bot blocked by the user) fail
        immediately.

        Args:
            chat_id: Destination chat identifier.
            text: Message text, already escaped for *parse_mode*.
            parse_mode: ``"MarkdownV2"`` (default), ``"HTML"``, or ``""`` for
                plain text.

        Raises:
            ValueError: If *chat_id* is empty.
            TelegramRateLimitError: After exhausting retries on HTTP 429.
            TelegramError: For any other non-recoverable API or network error.
        """
        if not chat_id:
            raise ValueError("send_message requires a non-empty chat_id.")
        try:
            await self._send_with_retry(chat_id=chat_id, text=text, parse_mode=parse_mode)
        except httpx.TransportError as exc:
            raise TelegramError(f"Network error: {exc}") from exc

    async def close(self) -> None:
        """Close the HTTP session.  Safe to call repeatedly."""
        if self._http is not None and not self._http.is_closed:
            await self._http.aclose()
            logger.debug("TelegramClient HTTP session closed.")
        self._http = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _ensure_http_client(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                base_url=_TELEGRAM_BASE_URL,
                timeout=self._timeout,
                headers={"User-Agent": "Staywatch/0.1"},
            )
            logger.debug("TelegramClient HTTP session opened.")
        return self._http

    async def _send_with_retry(self, *, chat_id: str, text: str, parse_mode: str) -> None:
        retry_types = (
            TelegramRateLimitError,
            _RetryableServerError,
            httpx.TransportError,
        )

        def _before_sleep(rs: RetryCallState) -> None:
            exc = rs.outcome.exception() if rs.outcome else None
            logger.warning(
                "Telegram send attempt %d/%d failed (%s); retrying…",
                rs.attempt_number,
                self._max_attempts,
                type(exc).__name__ if exc else "?",
            )

        async for attempt in AsyncRetrying(
            wait=_telegram_wait,
            stop=stop_after_attempt(self._max_attempts),
            retry=retry_if_exception_type(retry_types),
            reraise=True,
            before_sleep=_before_sleep,
        ):
            with attempt:
                await self._single_attempt(chat_id=chat_id, text=text, parse_mode=parse_mode)

    async def _single_attempt(self, *, chat_id: str, text: str, parse_mode: str) -> None:
        """Perform exactly one POST to ``sendMessage``.

        Raises:
            TelegramRateLimitError: HTTP 429.
            _RetryableServerError: HTTP 5xx.
            TelegramError: Any other non-200 status or ``ok=false`` body.
            httpx.TransportError: Network-level failure.
        """
        client = await self._ensure_http_client()
        endpoint = f"/bot{self._token}/sendMessage"

        payload: dict[str, object] = {
            "chat_id": chat_id,
            "text": text,
            "disable_web_page_preview": True,
        }
        if parse_mode:
            payload["parse_mode"] = parse_mode

        logger.debug(
            "Telegram sendMessage (chat_id=%s, chars=%d, parse_mode=%r)",
            chat_id,
            len(text),
            parse_mode,
        )

        response = await client.post(endpoint, json=payload)

        if response.status_code == 200:
            _assert_telegram_ok(response)
            return

        if response.status_code == 429:
            retry_after = _parse_retry_after(response)
            logger.warning("Telegram rate limit (HTTP 429), retry_after=%.1f s", retry_after)
            raise TelegramRateLimitError(retry_after=retry_after)

        if response.status_code in _RETRYABLE_STATUS:
            raise _RetryableServerError(
                f"Transient server error: HTTP {response.status_code}",
                status_code=response.status_code,
            )

        raise TelegramError(_extract_description(response), status_code=response.status_code)


# ---------------------------------------------------------------------------
# Response parsing helpers
# ---------------------------------------------------------------------------


def _assert_telegram_ok(response: httpx.Response) -> None:
    """Raise :class:`TelegramError` unless the 200 body says ``"ok": true``."""
    try:
        body = response.json()
    except ValueError as exc:
        raise TelegramError(
            f"Could not parse Telegram 200 response: {exc}",
            status_code=200,
        ) from exc

    if not body.get("ok"):
        description = body.get("description", "(no description)")
        raise TelegramError(f"Telegram ok=false: {description}", status_code=200)


def _parse_retry_after(response: httpx.Response) -> float:
    """Extract the back-off delay from an HTTP 429 response (≥ 1.0 s).

    ``parameters.retry_after`` in the JSON body wins over the ``Retry-After``
    header; 1.0 s is used when neither is present.
    """
    try:
        ra = response.json().get("parameters", {}).get("retry_after")
        if ra is not None:
            return max(float(ra), 1.0)
    except (ValueError, AttributeError, TypeError):
        pass

    header = response.headers.get("retry-after", "")
    if header:
        try:
            return max(float(header), 1.0)
        except ValueError:
            pass

    return 1.0


def _extract_description(response: httpx.Response) -> str:
    try:
        body = response.json()
        return str(body.get("description") or response.text or f"HTTP {response.status_code}")
    except (ValueError, AttributeError):
        return response.text or f"HTTP {response.status_code}"
