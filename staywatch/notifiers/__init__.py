"""Telegram availability-alert delivery and message formatting."""

from staywatch.notifiers.formatter import escape_mdv2, escape_url, format_availability_alert
from staywatch.notifiers.notifier import Notifier
from staywatch.notifiers.telegram import TelegramClient

__all__ = [
    "Notifier",
    "TelegramClient",
    "escape_mdv2",
    "escape_url",
    "format_availability_alert",
]
