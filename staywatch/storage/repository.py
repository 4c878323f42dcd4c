"""Accommodation repository: the SQLite implementation of the check-cycle store.

The batch runner depends only on the :class:`Store` protocol:

* :meth:`Store.list_active_listings_due_for_check`: active listings whose
  check-in date has not passed, each joined with its owner and the cached
  result of the previous check;
* :meth:`Store.append_check_log`: record one check, return the log id;
* :meth:`Store.mark_log_notified`: flag a log row once its alert went out;
* :meth:`Store.update_listing_cache`: refresh the ``last_*`` columns.

:class:`AccommodationRepository` implements that protocol on top of the
schema in :mod:`staywatch.storage.database`, plus a few helpers used by
tooling and tests to register owners and listings.

Typical usage::

    conn = await open_db(settings.database_path_resolved)
    repo = AccommodationRepository(conn)

    owner_id = await repo.add_owner("Jiwoo", telegram_chat_id="123456789")
    listing_id = await repo.add_accommodation(
        owner_id,
        name="Jeju stone house",
        url="https://www.airbnb.co.kr/rooms/123456",
        platform=Platform.AIRBNB,
        check_in=date(2026, 12, 24),
        check_out=date(2026, 12, 27),
    )
    due = await repo.list_active_listings_due_for_check(datetime.now(UTC))
"""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime
from typing import Protocol, runtime_checkable

import aiosqlite
from pydantic import ValidationError

from staywatch.core.exceptions import StorageError
from staywatch.core.models import (
    AvailabilityStatus,
    CheckLogEntry,
    ListingCacheUpdate,
    ListingToCheck,
    ListingWithOwner,
    Owner,
    Platform,
)

__all__ = ["Store", "AccommodationRepository"]

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Store protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class Store(Protocol):
    """Persistence operations the batch runner relies on."""

    async def list_active_listings_due_for_check(
        self, now: datetime
    ) -> list[ListingWithOwner]: ...

    async def append_check_log(self, entry: CheckLogEntry) -> int: ...

    async def mark_log_notified(self, log_id: int) -> None: ...

    async def update_listing_cache(
        self, listing_id: int, update: ListingCacheUpdate
    ) -> None: ...


# ---------------------------------------------------------------------------
# Row mapping helpers
# ---------------------------------------------------------------------------

_SELECT_WITH_OWNER = """
    SELECT
        a.id, a.name, a.url, a.platform, a.check_in, a.check_out, a.adults,
        a.last_status, a.last_price, a.last_checked_at,
        o.id   AS owner_id,
        o.name AS owner_name,
        o.telegram_chat_id
    FROM accommodations AS a
    JOIN owners AS o ON o.id = a.owner_id
"""


def _iso(value: datetime) -> str:
    """Serialise a timestamp as ISO-8601 UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _row_to_listing(row: aiosqlite.Row) -> ListingWithOwner:
    """Map a joined accommodation/owner row onto :class:`ListingWithOwner`.

    Raises:
        ValueError: If the row holds an unknown platform tag or invalid
            dates (pydantic's ``ValidationError`` is a ``ValueError``).
    """
    last_status = row["last_status"]
    return ListingWithOwner(
        listing=ListingToCheck(
            id=row["id"],
            url=row["url"],
            check_in=date.fromisoformat(row["check_in"]),
            check_out=date.fromisoformat(row["check_out"]),
            adults=row["adults"],
            platform=Platform(row["platform"]),
        ),
        name=row["name"],
        owner=Owner(
            id=row["owner_id"],
            name=row["owner_name"],
            telegram_chat_id=row["telegram_chat_id"],
        ),
        last_status=AvailabilityStatus(last_status) if last_status else None,
        last_price=row["last_price"],
        last_checked_at=_parse_ts(row["last_checked_at"]),
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccommodationRepository:
    """Data-access object for owners, accommodations and their check logs.

    Owns no connection lifecycle: the caller supplies an open
    :class:`aiosqlite.Connection` (see
    :func:`~staywatch.storage.database.open_db`) and closes it when done.
    Every write commits immediately.

    Args:
        conn: Open, configured :class:`aiosqlite.Connection`.
    """

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    # ------------------------------------------------------------------
    # Store protocol
    # ------------------------------------------------------------------

    async def list_active_listings_due_for_check(
        self, now: datetime
    ) -> list[ListingWithOwner]:
        """Return active listings whose check-in date is today or later.

        Rows that cannot be mapped (unknown platform, corrupt dates) are
        skipped with a warning so one bad row never blocks the cycle.

        Args:
            now: Current time; only its calendar date is used.

        Returns:
            Listings ordered by id.
        """
        cursor = await self._conn.execute(
            _SELECT_WITH_OWNER
            + " WHERE a.is_active = 1 AND a.check_in >= ? ORDER BY a.id",
            (now.date().isoformat(),),
        )
        rows = await cursor.fetchall()

        listings: list[ListingWithOwner] = []
        for row in rows:
            try:
                listings.append(_row_to_listing(row))
            except (ValueError, ValidationError) as exc:
                logger.warning(
                    "Skipping accommodation %s: cannot map row (%s)", row["id"], exc
                )
        logger.debug("%d listing(s) due for check on %s", len(listings), now.date())
        return listings

    async def append_check_log(self, entry: CheckLogEntry) -> int:
        """Insert one ``check_logs`` row and return its id."""
        cursor = await self._conn.execute(
            """
            INSERT INTO check_logs
                (accommodation_id, status, price, error_message, notification_sent, checked_at)
            VALUES
                (?, ?, ?, ?, ?, ?)
            """,
            (
                entry.listing_id,
                str(entry.status),
                entry.price,
                entry.error_message,
                int(entry.notification_sent),
                _iso(entry.checked_at),
            ),
        )
        await self._conn.commit()
        log_id = cursor.lastrowid
        if log_id is None:
            raise StorageError(f"check_logs insert for listing {entry.listing_id} returned no id")
        logger.debug("Appended check log %d for listing %d (%s)", log_id, entry.listing_id, entry.status)
        return log_id

    async def mark_log_notified(self, log_id: int) -> None:
        """Set ``notification_sent = 1`` on a check-log row.

        Raises:
            StorageError: If no row has that id.
        """
        cursor = await self._conn.execute(
            "UPDATE check_logs SET notification_sent = 1 WHERE id = ?",
            (log_id,),
        )
        await self._conn.commit()
        if cursor.rowcount == 0:
            raise StorageError(f"No check log with id {log_id}")
        logger.debug("Marked check log %d as notified", log_id)

    async def update_listing_cache(
        self, listing_id: int, update: ListingCacheUpdate
    ) -> None:
        """Refresh the ``last_*`` columns of an accommodation.

        Raises:
            StorageError: If no accommodation has that id.
        """
        cursor = await self._conn.execute(
            """
            UPDATE accommodations
               SET last_checked_at = ?, last_status = ?, last_price = ?
             WHERE id = ?
            """,
            (
                _iso(update.last_checked_at),
                str(update.last_status),
                update.last_price,
                listing_id,
            ),
        )
        await self._conn.commit()
        if cursor.rowcount == 0:
            raise StorageError(f"No accommodation with id {listing_id}")

    # ------------------------------------------------------------------
    # Tooling helpers
    # ------------------------------------------------------------------

    async def add_owner(self, name: str, telegram_chat_id: str | None = None) -> int:
        """Insert an owner and return its id."""
        cursor = await self._conn.execute(
            "INSERT INTO owners (name, telegram_chat_id, created_at) VALUES (?, ?, ?)",
            (name, telegram_chat_id, _iso(datetime.now(UTC))),
        )
        await self._conn.commit()
        assert cursor.lastrowid is not None
        return cursor.lastrowid

    async def add_accommodation(
        self,
        owner_id: int,
        *,
        name: str,
        url: str,
        platform: Platform | str,
        check_in: date,
        check_out: date,
        adults: int = 2,
        is_active: bool = True,
    ) -> int:
        """Insert a tracked accommodation and return its id.

        Raises:
            StorageError: If *owner_id* does not exist.
            ValueError: If ``check_out`` is not after ``check_in``.
        """
        if check_out <= check_in:
            raise ValueError(f"check_out ({check_out}) must be after check_in ({check_in})")
        try:
            cursor = await self._conn.execute(
                """
                INSERT INTO accommodations
                    (owner_id, name, url, platform, check_in, check_out, adults,
                     is_active, created_at)
                VALUES
                    (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    owner_id,
                    name,
                    url,
                    str(platform),
                    check_in.isoformat(),
                    check_out.isoformat(),
                    adults,
                    int(is_active),
                    _iso(datetime.now(UTC)),
                ),
            )
        except aiosqlite.IntegrityError as exc:
            raise StorageError(f"Cannot add accommodation for owner {owner_id}: {exc}") from exc
        await self._conn.commit()
        assert cursor.lastrowid is not None
        logger.debug("Added accommodation %d (%s, %s)", cursor.lastrowid, name, platform)
        return cursor.lastrowid

    async def get_accommodation(self, listing_id: int) -> ListingWithOwner | None:
        """Return one accommodation joined with its owner, or ``None``."""
        cursor = await self._conn.execute(
            _SELECT_WITH_OWNER + " WHERE a.id = ?",
            (listing_id,),
        )
        row = await cursor.fetchone()
        return _row_to_listing(row) if row is not None else None

    async def recent_logs(self, listing_id: int, limit: int = 20) -> list[CheckLogEntry]:
        """Return the newest check logs of a listing, newest first."""
        cursor = await self._conn.execute(
            """
            SELECT accommodation_id, status, price, error_message,
                   notification_sent, checked_at
              FROM check_logs
             WHERE accommodation_id = ?
             ORDER BY id DESC
             LIMIT ?
            """,
            (listing_id, limit),
        )
        rows = await cursor.fetchall()
        return [
            CheckLogEntry(
                listing_id=row["accommodation_id"],
                status=AvailabilityStatus(row["status"]),
                price=row["price"],
                error_message=row["error_message"],
                notification_sent=bool(row["notification_sent"]),
                checked_at=datetime.fromisoformat(row["checked_at"]),
            )
            for row in rows
        ]

    async def deactivate(self, listing_id: int) -> None:
        """Stop tracking an accommodation without deleting its history."""
        await self._conn.execute(
            "UPDATE accommodations SET is_active = 0 WHERE id = ?",
            (listing_id,),
        )
        await self._conn.commit()
        logger.debug("Deactivated accommodation %d", listing_id)
