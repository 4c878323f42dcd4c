"""SQLite database initialisation for Staywatch.

This module is responsible for:

* Opening (or creating) the SQLite file.
* Configuring PRAGMA settings (WAL journal mode, foreign keys).
* Bootstrapping the ``owners``, ``accommodations`` and ``check_logs`` tables
  via ``CREATE ... IF NOT EXISTS``, safe to run on every startup.

The worker opens one connection at startup and shares it with
:class:`~staywatch.storage.repository.AccommodationRepository`.  All writes go
through that single connection, one listing at a time.

Typical usage::

    from staywatch.storage.database import open_db

    async def main() -> None:
        conn = await open_db(Path("data/staywatch.db"))
        # ... pass conn to AccommodationRepository ...
        await conn.close()
"""

from __future__ import annotations

import logging
from pathlib import Path

import aiosqlite

__all__ = [
    "DEFAULT_DB_PATH",
    "open_db",
    "create_schema",
]

logger = logging.getLogger(__name__)

#: Fallback database path when no explicit path is passed to :func:`open_db`.
DEFAULT_DB_PATH: Path = Path("data/staywatch.db")

# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

#: People who track listings.  ``telegram_chat_id`` NULL means the owner has
#: not linked a chat yet and is never notified.
_DDL_OWNERS = """\
CREATE TABLE IF NOT EXISTS owners (
    id               INTEGER  PRIMARY KEY AUTOINCREMENT,
    name             TEXT     NOT NULL DEFAULT '',
    telegram_chat_id TEXT,
    created_at       TEXT     NOT NULL
)"""

#: Tracked listings.  ``check_in`` / ``check_out`` are ISO dates so that
#: lexical comparison matches calendar order.  The ``last_*`` columns are a
#: denormalised cache of the newest ``check_logs`` row.
_DDL_ACCOMMODATIONS = """\
CREATE TABLE IF NOT EXISTS accommodations (
    id              INTEGER  PRIMARY KEY AUTOINCREMENT,
    owner_id        INTEGER  NOT NULL REFERENCES owners(id) ON DELETE CASCADE,
    name            TEXT     NOT NULL,
    url             TEXT     NOT NULL,
    platform        TEXT     NOT NULL,
    check_in        TEXT     NOT NULL,
    check_out       TEXT     NOT NULL,
    adults          INTEGER  NOT NULL DEFAULT 2,
    is_active       INTEGER  NOT NULL DEFAULT 1,
    last_checked_at TEXT,
    last_status     TEXT,
    last_price      TEXT,
    created_at      TEXT     NOT NULL
)"""

#: Append-only history, one row per check.
_DDL_CHECK_LOGS = """\
CREATE TABLE IF NOT EXISTS check_logs (
    id                INTEGER  PRIMARY KEY AUTOINCREMENT,
    accommodation_id  INTEGER  NOT NULL REFERENCES accommodations(id) ON DELETE CASCADE,
    status            TEXT     NOT NULL,
    price             TEXT,
    error_message     TEXT,
    notification_sent INTEGER  NOT NULL DEFAULT 0,
    checked_at        TEXT     NOT NULL
)"""

_DDL_INDEXES: tuple[str, ...] = (
    "CREATE INDEX IF NOT EXISTS idx_accommodations_due "
    "ON accommodations (is_active, check_in)",
    "CREATE INDEX IF NOT EXISTS idx_check_logs_accommodation "
    "ON check_logs (accommodation_id, checked_at)",
)

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def open_db(path: Path | str | None = None) -> aiosqlite.Connection:
    """Open (or create) the SQLite database and configure it.

    Steps performed on every call:

    1. Create parent directories for the DB file if they do not exist.
    2. Open the ``aiosqlite`` connection with ``row_factory = aiosqlite.Row``.
    3. Enable WAL journal mode and foreign-key enforcement.
    4. Call :func:`create_schema` (idempotent).

    Args:
        path: Filesystem path for the SQLite file, or ``":memory:"``.
            Defaults to :data:`DEFAULT_DB_PATH`.

    Returns:
        An open, configured :class:`aiosqlite.Connection`.  The caller is
        responsible for closing it.

    Raises:
        aiosqlite.OperationalError: If the database file cannot be opened or
            created.
    """
    target = str(path) if path is not None else str(DEFAULT_DB_PATH)
    if target != ":memory:":
        Path(target).parent.mkdir(parents=True, exist_ok=True)

    logger.debug("Opening SQLite database at %s", target)

    conn: aiosqlite.Connection = await aiosqlite.connect(target)
    conn.row_factory = aiosqlite.Row

    await _configure_pragmas(conn)
    await create_schema(conn)

    logger.info("SQLite database ready at %s", target)
    return conn


async def create_schema(conn: aiosqlite.Connection) -> None:
    """Create all tables and indexes if they do not already exist.

    Never migrates or drops anything; existing data is untouched.

    Args:
        conn: An open :class:`aiosqlite.Connection`.
    """
    for ddl in (_DDL_OWNERS, _DDL_ACCOMMODATIONS, _DDL_CHECK_LOGS, *_DDL_INDEXES):
        await conn.execute(ddl)
    await conn.commit()
    logger.debug("Schema bootstrap complete (owners, accommodations, check_logs)")


# ---------------------------------------------------------------------------
# Internals
# ---------------------------------------------------------------------------


async def _configure_pragmas(conn: aiosqlite.Connection) -> None:
    """Apply the PRAGMAs that must be set right after opening.

    ``journal_mode=WAL`` lets tooling read while the worker writes;
    ``foreign_keys=ON`` makes the cascades in the DDL effective.
    """
    result = await conn.execute("PRAGMA journal_mode=WAL")
    row = await result.fetchone()
    mode = row[0] if row else "unknown"
    if mode != "wal":
        logger.debug("SQLite journal_mode is %r (expected for in-memory databases)", mode)

    await conn.execute("PRAGMA foreign_keys=ON")
