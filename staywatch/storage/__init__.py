"""SQLite-backed store for tracked accommodations and their check history."""

from staywatch.storage.database import DEFAULT_DB_PATH, create_schema, open_db
from staywatch.storage.repository import AccommodationRepository, Store

__all__ = [
    "DEFAULT_DB_PATH",
    "open_db",
    "create_schema",
    "AccommodationRepository",
    "Store",
]
