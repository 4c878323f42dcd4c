"""Staywatch logging configuration.

Call ``configure_logging()`` once at process startup (in ``__main__``).
Every other module defines its own logger at module scope:

    import logging
    logger = logging.getLogger(__name__)

Each check cycle is tagged with a short id held in :data:`CYCLE_ID_CTX`.
The batch runner sets it when a cycle acquires its guard and resets it to
``"-"`` when the cycle ends, so every line logged by the checks, the store
and the notifier during that cycle carries the same id, including lines from
the concurrent check tasks.  Scheduler lines between cycles show ``"-"``.

Records that mark a listing or cycle milestone carry an ``event`` name from
:mod:`staywatch.core.events`.  Text output appends it as ``{EVENT}`` so
transitions and alerts can be grepped; JSON output puts it under
``extra.event``.

Supported environment variables (read at call time):
    LOG_LEVEL   DEBUG | INFO | WARNING | ERROR   (default: INFO)
    LOG_FORMAT  text | json                      (default: text)
"""

from __future__ import annotations

import json
import logging
import os
import sys
import traceback
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

__all__ = [
    "configure_logging",
    "JsonFormatter",
    "CycleTextFormatter",
    "CYCLE_ID_CTX",
    "CycleContextFilter",
]

# ---------------------------------------------------------------------------
# Cycle-scoped context variable
# ---------------------------------------------------------------------------

#: Holds the current check-cycle identifier.  Set to ``uuid4().hex[:8]`` at
#: the start of :meth:`~staywatch.orchestrator.batch.BatchRunner.run_cycle`
#: and inherited by every check task spawned through ``asyncio.gather``.
#: Defaults to ``"-"`` outside of any cycle.
CYCLE_ID_CTX: ContextVar[str] = ContextVar("cycle_id", default="-")

logger = logging.getLogger(__name__)

_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
_VALID_FORMATS = {"text", "json"}

_TEXT_FORMAT = "%(asctime)s %(levelname)-8s [%(cycle_id)s] %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

#: Third-party loggers pinned to WARNING unless DEBUG is requested.
_NOISY_LOGGERS = ("httpx", "httpcore", "asyncio", "aiosqlite", "playwright")


class CycleContextFilter(logging.Filter):
    """Inject the current check-cycle ID into every log record.

    Installed on the handler by :func:`configure_logging`, so it runs after
    propagation and just before formatting.  In text mode the value fills the
    ``%(cycle_id)s`` token; in JSON mode it appears under ``"extra"``.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        record.cycle_id = CYCLE_ID_CTX.get("-")
        return True


class CycleTextFormatter(logging.Formatter):
    """Human-readable formatter that appends the record's event name.

    ``Listing 7 (Seaside loft) is now available at $300. {LISTING_TRANSITION}``
    """

    def __init__(self) -> None:
        super().__init__(fmt=_TEXT_FORMAT, datefmt=_DATE_FORMAT)

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        line = super().format(record)
        event = getattr(record, "event", None)
        if not event:
            return line
        head, sep, tail = line.partition("\n")
        return f"{head} {{{event}}}{sep}{tail}"


def configure_logging(
    level: str | None = None,
    fmt: str | None = None,
    *,
    force: bool = False,
) -> None:
    """Configure the root logger for the entire process.

    Args:
        level: Logging level string (DEBUG/INFO/WARNING/ERROR/CRITICAL).
            Falls back to ``$LOG_LEVEL``, then "INFO".
        fmt: Output format ("text" or "json").  Falls back to
            ``$LOG_FORMAT``, then "text".
        force: Reconfigure even if the root logger already has handlers.
            Used by tests and the CLI entry-point.

    Raises:
        ValueError: If *level* or *fmt* contain an unrecognised value.
    """
    resolved_level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    resolved_fmt = (fmt or os.environ.get("LOG_FORMAT", "text")).lower()

    if resolved_level not in _VALID_LEVELS:
        raise ValueError(
            f"Unknown LOG_LEVEL {resolved_level!r}. "
            f"Must be one of: {', '.join(sorted(_VALID_LEVELS))}"
        )
    if resolved_fmt not in _VALID_FORMATS:
        raise ValueError(
            f"Unknown LOG_FORMAT {resolved_fmt!r}. "
            f"Must be one of: {', '.join(sorted(_VALID_FORMATS))}"
        )

    root = logging.getLogger()

    if root.handlers and not force:
        # Someone (e.g. pytest's log_cli) already installed handlers; keep
        # them and only apply the requested level.
        root.setLevel(resolved_level)
        return

    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(resolved_level)
    handler.addFilter(CycleContextFilter())

    if resolved_fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(CycleTextFormatter())

    root.setLevel(resolved_level)
    root.addHandler(handler)

    if resolved_level != "DEBUG":
        for noisy in _NOISY_LOGGERS:
            logging.getLogger(noisy).setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# JSON formatter
# ---------------------------------------------------------------------------


class JsonFormatter(logging.Formatter):
    """Emit one JSON object per log record.

    Output shape (all fields always present)::

        {
            "ts":      "2026-10-18T12:34:56.789Z",
            "level":   "INFO",
            "logger":  "staywatch.orchestrator.batch",
            "message": "Cycle complete",
            "extra":   {"cycle_id": "a3f2b1c0", "event": "CYCLE_COMPLETE"}
        }

    ``"exc_info"`` and ``"stack_info"`` are added only when present.
    """

    _RECORD_ATTRS: frozenset[str] = frozenset(
        {
            "args",
            "created",
            "exc_info",
            "exc_text",
            "filename",
            "funcName",
            "levelname",
            "levelno",
            "lineno",
            "message",
            "module",
            "msecs",
            "msg",
            "name",
            "pathname",
            "process",
            "processName",
            "relativeCreated",
            "stack_info",
            "taskName",
            "thread",
            "threadName",
        }
    )

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        """Serialise *record* to a JSON string."""
        record.message = record.getMessage()

        ts = (
            datetime.fromtimestamp(record.created, tz=UTC).strftime("%Y-%m-%dT%H:%M:%S.")
            + f"{int(record.msecs):03d}Z"
        )

        payload: dict[str, Any] = {
            "ts": ts,
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
            "extra": {k: v for k, v in record.__dict__.items() if k not in self._RECORD_ATTRS},
        }

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        elif record.exc_text:
            payload["exc_info"] = record.exc_text

        if record.stack_info:
            payload["stack_info"] = self.formatStack(record.stack_info)

        try:
            return json.dumps(payload, default=str)
        except Exception:  # pragma: no cover
            return json.dumps(
                {
                    "ts": ts,
                    "level": "ERROR",
                    "logger": __name__,
                    "message": "JsonFormatter serialisation error",
                    "exc_info": traceback.format_exc(),
                    "extra": {},
                }
            )
