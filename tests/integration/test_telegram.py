"""Integration tests: alert delivery against the live Telegram Bot API.

All tests are marked ``@pytest.mark.integration`` and are excluded from the
default run (``addopts = "-m 'not integration'"`` in ``pyproject.toml``).

Run on demand::

    pytest -m integration

Tests are skipped unless ``TELEGRAM_BOT_TOKEN`` and ``TELEGRAM_TEST_CHAT_ID``
are present in the environment or in a ``.env`` file.
"""

from __future__ import annotations

import logging
import os
from datetime import date, timedelta

import pytest
from dotenv import load_dotenv

from staywatch.core.exceptions import TelegramError
from staywatch.core.run_context import RunContext
from staywatch.notifiers.formatter import format_availability_alert
from staywatch.notifiers.notifier import Notifier
from staywatch.notifiers.telegram import TelegramClient

logger = logging.getLogger(__name__)

load_dotenv()

_TOKEN = os.environ.get("TELEGRAM_BOT_TOKEN", "")
_CHAT_ID = os.environ.get("TELEGRAM_TEST_CHAT_ID", "")

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        not (_TOKEN and _CHAT_ID),
        reason="TELEGRAM_BOT_TOKEN and TELEGRAM_TEST_CHAT_ID must be set.",
    ),
]

_CHECK_IN = date.today() + timedelta(days=60)


async def test_send_plain_message() -> None:
    async with TelegramClient(_TOKEN) as client:
        await client.send_message(_CHAT_ID, "[staywatch integration] plain text", parse_mode="")


async def test_send_formatted_alert() -> None:
    text = format_availability_alert(
        listing_name="[TEST] Jeju stone house (sea-view) #2",
        check_in=_CHECK_IN,
        check_out=_CHECK_IN + timedelta(days=3),
        price="₩320,000",
        url="https://www.airbnb.co.kr/rooms/123456?adults=2",
    )
    async with TelegramClient(_TOKEN) as client:
        await client.send_message(_CHAT_ID, text)


async def test_notifier_live_round_trip() -> None:
    async with TelegramClient(_TOKEN) as client:
        notifier = Notifier(client=client, ctx=RunContext())
        sent = await notifier.send_availability_alert(
            _CHAT_ID,
            "[TEST] Notifier round trip",
            _CHECK_IN,
            _CHECK_IN + timedelta(days=1),
            "$99",
            "https://www.agoda.com/ko-kr/test/hotel/seoul-kr.html",
        )
    assert sent is True


async def test_unknown_chat_is_rejected() -> None:
    async with TelegramClient(_TOKEN, max_attempts=1) as client:
        with pytest.raises(TelegramError):
            await client.send_message("0", "should never arrive", parse_mode="")
