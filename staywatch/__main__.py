"""Staywatch process entry-point.

Usage:
    python -m staywatch [--once] [--dry-run] [--log-level LEVEL] [--log-format FORMAT]

Logging is configured first so every subsequent import already has a
working logger, then control passes to the orchestrator.

Default behaviour is continuous: a check cycle every ``CHECK_INTERVAL_S``
seconds after a ``STARTUP_DELAY_S`` warm-up.  ``--once`` runs a single cycle
and exits.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from pydantic import ValidationError

from staywatch.core import configure_logging
from staywatch.core.exceptions import ConfigError
from staywatch.core.run_context import RunContext
from staywatch.core.settings import Settings


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="staywatch",
        description="Accommodation availability monitor for Airbnb and Agoda listings.",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single check cycle and exit instead of looping continuously.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run the full cycle but log alerts instead of sending Telegram messages.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        metavar="LEVEL",
        help="Override LOG_LEVEL env var (DEBUG|INFO|WARNING|ERROR).",
    )
    parser.add_argument(
        "--log-format",
        default=None,
        metavar="FORMAT",
        help="Override LOG_FORMAT env var (text|json).",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry-point registered in ``pyproject.toml``."""
    args = _build_parser().parse_args(argv)

    try:
        configure_logging(level=args.log_level, fmt=args.log_format)
    except ValueError as exc:
        print(f"staywatch: configuration error: {exc}", file=sys.stderr)  # noqa: T201
        sys.exit(1)

    logger = logging.getLogger(__name__)
    logger.info("Staywatch starting up")

    try:
        settings = Settings()
    except ValidationError as exc:
        logger.critical("Configuration error: %s", exc)
        sys.exit(1)

    ctx = RunContext(dry_run=args.dry_run or settings.dry_run)
    logger.info("Run context: %s", ctx)

    from staywatch.orchestrator.runner import run_once  # noqa: PLC0415
    from staywatch.orchestrator.scheduler import run_continuous  # noqa: PLC0415

    try:
        if args.once:
            logger.info("Running a single check cycle (--once).")
            asyncio.run(run_once(ctx=ctx, settings=settings))
        else:
            logger.info("Running in continuous mode (Ctrl+C to stop).")
            asyncio.run(run_continuous(ctx=ctx, settings=settings))
    except ConfigError as exc:
        logger.critical("Configuration error: %s", exc)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted; exiting.")
        sys.exit(0)
    except asyncio.CancelledError:
        logger.info("Shutdown complete; exiting.")
        sys.exit(0)


if __name__ == "__main__":
    main()
