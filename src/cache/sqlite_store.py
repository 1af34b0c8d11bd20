# src/cache/sqlite_store.py — v2
"""SQLite-based key-value store (KV_BACKEND=sqlite).

Uses stdlib sqlite3, no external dependency. Conditional inserts run inside
a transaction, which makes ``put_if_absent`` atomic across processes sharing
the database file.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Callable
from pathlib import Path

from rapidval.cache.base_kv_store import BaseKeyValueStore
from rapidval.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_entries (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    expires_at REAL NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_expires_at ON kv_entries(expires_at);
"""


class SqliteKeyValueStore(BaseKeyValueStore):
    """SQLite-backed key-value store."""

    supports_atomic_create = True

    def __init__(
        self, db_path: Path | str, clock: Callable[[], float] = time.time
    ) -> None:
        self._db_path = Path(db_path).expanduser()
        self._clock = clock
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self._db_path), isolation_level=None)
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.executescript(_SCHEMA)
        except (OSError, sqlite3.Error) as e:
            raise StoreUnavailableError(f"Cannot open SQLite store {self._db_path}: {e}") from e

    async def get(self, key: str) -> str | None:
        try:
            row = self._conn.execute(
                "SELECT value FROM kv_entries WHERE key = ? AND expires_at > ?",
                (key, self._clock()),
            ).fetchone()
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"Failed to read key {key}: {e}") from e
        return None if row is None else row[0]

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            self._conn.execute(
                "INSERT OR REPLACE INTO kv_entries (key, value, expires_at) VALUES (?, ?, ?)",
                (key, value, self._clock() + ttl_seconds),
            )
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"Failed to write key {key}: {e}") from e

    async def put_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        now = self._clock()
        try:
            self._conn.execute("BEGIN IMMEDIATE")
            try:
                self._conn.execute(
                    "DELETE FROM kv_entries WHERE key = ? AND expires_at <= ?",
                    (key, now),
                )
                cursor = self._conn.execute(
                    "INSERT OR IGNORE INTO kv_entries (key, value, expires_at) VALUES (?, ?, ?)",
                    (key, value, now + ttl_seconds),
                )
                created = cursor.rowcount == 1
            except sqlite3.Error:
                self._conn.execute("ROLLBACK")
                raise
            self._conn.execute("COMMIT")
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"Failed to create key {key}: {e}") from e
        return created

    async def list_prefix(self, prefix: str) -> list[str]:
        try:
            rows = self._conn.execute(
                "SELECT key FROM kv_entries WHERE substr(key, 1, ?) = ? AND expires_at > ? ORDER BY key",
                (len(prefix), prefix, self._clock()),
            ).fetchall()
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"Failed to scan prefix {prefix}: {e}") from e
        return [row[0] for row in rows]

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
