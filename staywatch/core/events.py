"""Structured log event name constants for the Staywatch check cycle.

Key transitions emit a log record with an ``event`` field (passed via
``extra={"event": events.X}``).  In ``LOG_FORMAT=json`` mode the value
surfaces as ``extra.event``; in text mode it is appended to the line as ``{EVENT}``.

Usage example::

    import logging
    from staywatch.core import events

    logger = logging.getLogger(__name__)

    logger.info("Cycle started", extra={"event": events.CYCLE_START})
"""

from __future__ import annotations

__all__ = [
    # Cycle lifecycle
    "CYCLE_START",
    "CYCLE_COMPLETE",
    "CYCLE_SKIPPED",
    "CYCLE_EMPTY",
    # Check lifecycle
    "CHECK_RETRY",
    "CHECK_ERROR",
    "CHECK_DONE",
    # Listing outcome
    "LISTING_TRANSITION",
    "LISTING_NOTIFIED",
    "LISTING_NOTIFY_FAILED",
    "LISTING_PROCESS_ERROR",
]

# ---------------------------------------------------------------------------
# Cycle lifecycle
# ---------------------------------------------------------------------------

#: Emitted once when a check cycle acquires the re-entrancy guard.
CYCLE_START: str = "CYCLE_START"

#: Emitted once when a cycle finishes and logs its summary.
CYCLE_COMPLETE: str = "CYCLE_COMPLETE"

#: A cycle was requested while the previous one was still in flight.
CYCLE_SKIPPED: str = "CYCLE_SKIPPED"

#: The store returned no listings due for a check.
CYCLE_EMPTY: str = "CYCLE_EMPTY"

# ---------------------------------------------------------------------------
# Check lifecycle
# ---------------------------------------------------------------------------

#: A transient fetch failure is about to be retried on a fresh session.
CHECK_RETRY: str = "CHECK_RETRY"

#: A check ended with an error verdict (terminal or retries exhausted).
CHECK_ERROR: str = "CHECK_ERROR"

#: A check produced an available / unavailable verdict.
CHECK_DONE: str = "CHECK_DONE"

# ---------------------------------------------------------------------------
# Listing outcome
# ---------------------------------------------------------------------------

#: A listing flipped from not-available to available.
LISTING_TRANSITION: str = "LISTING_TRANSITION"

#: The availability alert was delivered and the log entry marked.
LISTING_NOTIFIED: str = "LISTING_NOTIFIED"

#: The notifier reported a failed delivery.
LISTING_NOTIFY_FAILED: str = "LISTING_NOTIFY_FAILED"

#: Store or notifier raised while processing one listing; batch continued.
LISTING_PROCESS_ERROR: str = "LISTING_PROCESS_ERROR"
