"""SQLite-backed subscriber store keyed by a hash of the push endpoint."""

from __future__ import annotations

import hashlib
import sqlite3
import threading
from datetime import datetime
from pathlib import Path

from ..core.types import DeliveryDescriptor, SubscriberRecord
from ..errors import StoreUnavailable


def derive_key(endpoint: str) -> str:
    """Return the subscriber key for a push endpoint.

    The key is the SHA-256 hex digest of the endpoint, so registration and
    dispatch compute the same key independently.

    Example:
        >>> len(derive_key("https://push.example.com/abc"))
        64
    """
    return hashlib.sha256(endpoint.encode("utf-8")).hexdigest()


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace(" ", "T"))


class SubscriberStore:
    """SQLite database wrapper holding one row per subscriber.

    Every public method touches a single key, so concurrent upserts and
    deletes need no coordination beyond the connection lock.
    """

    SCHEMA = """
    CREATE TABLE IF NOT EXISTS subscribers (
        key TEXT PRIMARY KEY,
        endpoint TEXT NOT NULL,
        p256dh TEXT NOT NULL,
        auth TEXT NOT NULL,
        expiration_time INTEGER,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        last_verified TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );
    """

    def __init__(self, db_path: Path | str):
        """Open the database, creating the file and table if needed."""
        self.db_path = Path(db_path)
        self._lock = threading.Lock()
        try:
            if str(db_path) != ":memory:":
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
            self.conn.row_factory = sqlite3.Row
            self.conn.executescript(self.SCHEMA)
            self.conn.commit()
        except (sqlite3.Error, OSError) as exc:
            raise StoreUnavailable(f"Cannot open subscriber store at {db_path}: {exc}") from exc

    def close(self) -> None:
        """Close database connection."""
        self.conn.close()

    def list_all(self) -> list[SubscriberRecord]:
        """Return a snapshot of every subscriber.

        Raises:
            StoreUnavailable: The database could not be read
        """
        try:
            with self._lock:
                rows = self.conn.execute(
                    "SELECT * FROM subscribers ORDER BY created_at, key"
                ).fetchall()
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"Failed to list subscribers: {exc}") from exc
        return [self._to_record(row) for row in rows]

    def get(self, key: str) -> SubscriberRecord | None:
        try:
            with self._lock:
                row = self.conn.execute(
                    "SELECT * FROM subscribers WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"Failed to read subscriber {key}: {exc}") from exc
        return self._to_record(row) if row else None

    def count(self) -> int:
        try:
            with self._lock:
                row = self.conn.execute("SELECT COUNT(*) AS n FROM subscribers").fetchone()
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"Failed to count subscribers: {exc}") from exc
        return row["n"]

    def upsert(self, descriptor: DeliveryDescriptor) -> str:
        """Store a descriptor under its derived key and return the key.

        Re-registering the same endpoint replaces the secrets and refreshes
        ``last_verified`` while keeping ``created_at``.
        """
        key = derive_key(descriptor.endpoint)
        try:
            with self._lock:
                self.conn.execute(
                    """INSERT INTO subscribers (key, endpoint, p256dh, auth, expiration_time)
                       VALUES (?, ?, ?, ?, ?)
                       ON CONFLICT(key) DO UPDATE SET
                           endpoint = excluded.endpoint,
                           p256dh = excluded.p256dh,
                           auth = excluded.auth,
                           expiration_time = excluded.expiration_time,
                           last_verified = CURRENT_TIMESTAMP""",
                    (
                        key,
                        descriptor.endpoint,
                        descriptor.p256dh,
                        descriptor.auth,
                        descriptor.expiration_time,
                    ),
                )
                self.conn.commit()
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"Failed to store subscriber {key}: {exc}") from exc
        return key

    def delete(self, key: str) -> bool:
        """Remove a subscriber. Returns False when the key was not present."""
        try:
            with self._lock:
                cursor = self.conn.execute("DELETE FROM subscribers WHERE key = ?", (key,))
                self.conn.commit()
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"Failed to delete subscriber {key}: {exc}") from exc
        return cursor.rowcount > 0

    @staticmethod
    def _to_record(row: sqlite3.Row) -> SubscriberRecord:
        return SubscriberRecord(
            key=row["key"],
            descriptor=DeliveryDescriptor(
                endpoint=row["endpoint"],
                p256dh=row["p256dh"],
                auth=row["auth"],
                expiration_time=row["expiration_time"],
            ),
            created_at=_parse_timestamp(row["created_at"]),
            last_verified=_parse_timestamp(row["last_verified"]),
        )
