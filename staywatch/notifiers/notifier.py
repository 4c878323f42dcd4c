"""Mode-aware availability-alert entry point.

:class:`Notifier` is what the batch runner calls when a listing transitions
to available.  It decides *whether* to send (per
:class:`~staywatch.core.run_context.RunContext`), formats the message via
:func:`~staywatch.notifiers.formatter.format_availability_alert` and delivers
it through :class:`~staywatch.notifiers.telegram.TelegramClient`.

The return value is the delivery verdict the runner persists on the check
log: ``True`` means the owner was told (or, in dry-run, would have been).
Known delivery failures are reported as ``False`` so the next cycle's
transition logic is unaffected; anything unexpected is re-raised for the
runner to isolate.

Typical usage::

    async with TelegramClient(token=settings.telegram_bot_token) as client:
        notifier = Notifier(client=client, ctx=RunContext())
        sent = await notifier.send_availability_alert(
            "987654321", "Jeju stone house",
            date(2026, 12, 24), date(2026, 12, 27),
            "₩320,000", url,
        )
"""

from __future__ import annotations

import logging
from datetime import date

from staywatch.core.exceptions import TelegramError
from staywatch.core.models import TransitionEvent
from staywatch.core.run_context import RunContext
from staywatch.notifiers.formatter import format_availability_alert
from staywatch.notifiers.telegram import TelegramClient

__all__ = ["Notifier"]

logger = logging.getLogger(__name__)


class Notifier:
    """Formats and delivers availability alerts to listing owners.

    * **dry-run** (``ctx.dry_run=True``): the message is formatted and logged
      at ``INFO``; nothing is sent and ``True`` is returned.
    * **live**: the message is sent to the owner's chat.

    Args:
        client: Open :class:`TelegramClient`, or ``None`` in dry-run mode.
            The Notifier does not manage the client's lifecycle.
        ctx: Runtime operating mode.

    Raises:
        ValueError: If *client* is ``None`` in live mode.
    """

    def __init__(self, client: TelegramClient | None, ctx: RunContext) -> None:
        if client is None and ctx.should_notify:
            raise ValueError("A TelegramClient is required in live mode.")
        self._client = client
        self._ctx = ctx

    async def send_availability_alert(
        self,
        chat_id: str,
        listing_name: str,
        check_in: date,
        check_out: date,
        price: str,
        url: str,
    ) -> bool:
        """Tell the owner behind *chat_id* that a listing became available.

        Returns:
            ``True`` if the alert was sent (live) or logged (dry-run);
            ``False`` if Telegram rejected it or stayed unreachable after
            retries.

        Raises:
            Exception: Unexpected non-Telegram errors are logged at
                ``CRITICAL`` and re-raised.
        """
        text = format_availability_alert(
            listing_name=listing_name,
            check_in=check_in,
            check_out=check_out,
            price=price,
            url=url,
        )

        if not self._ctx.should_notify:
            logger.info(
                "[dry-run] Would send alert to chat %s for %r\n%s",
                chat_id,
                listing_name,
                text,
            )
            return True

        assert self._client is not None
        try:
            await self._client.send_message(chat_id, text, parse_mode="MarkdownV2")
        except TelegramError as exc:
            logger.error("Failed to send alert for %r to chat %s: %s", listing_name, chat_id, exc)
            return False
        except Exception as exc:
            logger.critical(
                "Unexpected error sending alert for %r to chat %s: %s",
                listing_name,
                chat_id,
                exc,
                exc_info=True,
            )
            raise

        logger.info("Alert sent for %r to chat %s", listing_name, chat_id)
        return True

    async def send_transition(self, event: TransitionEvent) -> bool:
        """Deliver the alert described by a :class:`TransitionEvent`."""
        return await self.send_availability_alert(
            event.chat_id,
            event.listing_name,
            event.check_in,
            event.check_out,
            event.price,
            event.url,
        )
