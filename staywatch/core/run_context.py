"""Runtime context for a single Staywatch execution.

Holds the user-selected operating mode.  One :class:`RunContext` instance is
created in :mod:`staywatch.__main__` and threaded through the orchestrator
and the notifier so neither needs the raw CLI args.

dry_run
    Run the full check cycle, including storage writes and the alert
    formatter, but **log the alert payload** instead of sending it to
    Telegram.  Useful for local development and for validating new marker
    sets against live pages.

:attr:`should_notify` is the property every layer reads:

    >>> RunContext().should_notify
    True

    >>> RunContext(dry_run=True).should_notify
    False
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

__all__ = ["RunContext"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunContext:
    """Immutable container for per-run operating-mode flags.

    Attributes:
        dry_run: When ``True``, alerts are formatted and logged but never
            delivered.  Check logs are still written.
    """

    dry_run: bool = field(default=False)

    @property
    def should_notify(self) -> bool:
        """``True`` if the notifier should actually send messages."""
        return not self.dry_run

    @property
    def mode_label(self) -> str:
        """``"dry-run"`` or ``"live"``, used in log lines."""
        return "dry-run" if self.dry_run else "live"

    def __str__(self) -> str:
        return f"RunContext(mode={self.mode_label}, should_notify={self.should_notify})"
