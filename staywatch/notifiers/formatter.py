"""Telegram MarkdownV2 availability-alert formatter.

Turns the fields of a :class:`~staywatch.core.models.TransitionEvent` into a
ready-to-send Telegram ``MarkdownV2`` message.

Telegram MarkdownV2 escaping rules
-----------------------------------
The following characters **must** be escaped with a leading backslash when
they appear in ordinary message text::

    _ * [ ] ( ) ~ ` > # + - = | { } . !

Inside a ``[text](url)`` construct only ``)`` and ``\\`` need escaping.

Reference: https://core.telegram.org/bots/api#markdownv2-style

Typical usage::

    from staywatch.notifiers.formatter import format_availability_alert

    text = format_availability_alert(
        listing_name="Jeju stone house",
        check_in=date(2026, 12, 24),
        check_out=date(2026, 12, 27),
        price="₩320,000",
        url="https://www.airbnb.co.kr/rooms/123456?check_in=2026-12-24&...",
    )
"""

from __future__ import annotations

import logging
import re
from datetime import date

__all__ = [
    "escape_mdv2",
    "escape_url",
    "format_availability_alert",
]

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Escaping
# ---------------------------------------------------------------------------

_MDV2_SPECIAL = re.compile(r"([_*\[\]()~`>#+\-=|{}.!\\])")


def escape_mdv2(text: str) -> str:
    """Escape plain text for embedding in a MarkdownV2 message body.

    Examples:
        >>> escape_mdv2("₩320,000 (3 nights).")
        '₩320,000 \\\\(3 nights\\\\)\\\\.'
    """
    return _MDV2_SPECIAL.sub(r"\\\1", text)


_URL_SPECIAL = re.compile(r"([)\\])")


def escape_url(url: str) -> str:
    """Escape a URL for the ``(url)`` part of a MarkdownV2 link."""
    return _URL_SPECIAL.sub(r"\\\1", url)


# ---------------------------------------------------------------------------
# Alert formatter
# ---------------------------------------------------------------------------

#: Listing names longer than this are truncated in the header line.
NAME_MAX_CHARS: int = 80


def _fmt_stay(check_in: date, check_out: date) -> str:
    nights = abs((check_out - check_in).days)
    label = "night" if nights == 1 else "nights"
    return escape_mdv2(f"{check_in.isoformat()} → {check_out.isoformat()} ({nights} {label})")


def format_availability_alert(
    *,
    listing_name: str,
    check_in: date,
    check_out: date,
    price: str,
    url: str,
) -> str:
    """Format an "it just became available" alert as MarkdownV2.

    Layout::

        *🏠 Now available: <name>*
        📅 2026-12-24 → 2026-12-27 (3 nights)
        💰 ₩320,000

        [🔗 Open listing](<url>)

    Args:
        listing_name: Owner-chosen label of the listing.
        check_in: First night of the stay.
        check_out: Departure date.
        price: Price string captured from the page (or the "needs
            confirmation" placeholder).
        url: The exact URL that was checked, with dates and party size.

    Returns:
        Complete MarkdownV2 message, safe to pass to
        :meth:`~staywatch.notifiers.telegram.TelegramClient.send_message`.
    """
    name = listing_name.strip() or "Your listing"
    if len(name) > NAME_MAX_CHARS:
        name = name[:NAME_MAX_CHARS].rstrip() + "…"

    lines = [
        f"*🏠 Now available: {escape_mdv2(name)}*",
        f"📅 {_fmt_stay(check_in, check_out)}",
        f"💰 {escape_mdv2(price)}",
        "",
        f"[🔗 Open listing]({escape_url(url)})",
    ]
    return "\n".join(lines)
