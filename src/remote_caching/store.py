"""
Durable store for cache rows.

A thin async wrapper over one SQLite table, accessed through aiosqlite:

    cache(key TEXT PRIMARY KEY, data TEXT, created_at INTEGER, expires_at INTEGER)

Timestamps are epoch milliseconds. Every mutating statement is committed
on its own, so each insert-or-replace and delete is atomic.
"""

from __future__ import annotations

from pathlib import Path

import aiosqlite

from remote_caching.exceptions import NotInitializedError
from remote_caching.logging import get_logger
from remote_caching.types import CacheEntry

logger = get_logger(__name__)

SCHEMA_VERSION = 1


class CacheStore:
    """Handle to the SQLite cache table.

    Opened once with open() and released once with close(); no query is
    valid outside that window.
    """

    def __init__(self, db_path: str | Path) -> None:
        """Initialize the store handle.

        Args:
            db_path: Path of the SQLite database file, or ":memory:".
        """
        self.db_path = db_path if db_path == ":memory:" else Path(db_path)
        self._db: aiosqlite.Connection | None = None

    @property
    def is_open(self) -> bool:
        return self._db is not None

    async def open(self) -> None:
        """Open the database connection and create the schema if absent."""
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._db = await aiosqlite.connect(self.db_path)
        self._db.row_factory = aiosqlite.Row
        try:
            await self._create_schema(self._db)
        except BaseException:
            await self.close()
            raise

        logger.debug("Cache store opened", db_path=str(self.db_path))

    async def _create_schema(self, db: aiosqlite.Connection) -> None:
        async with db.execute("PRAGMA user_version") as cursor:
            row = await cursor.fetchone()
        version = row[0] if row else 0

        await db.execute("""
            CREATE TABLE IF NOT EXISTS cache (
                key TEXT PRIMARY KEY,
                data TEXT NOT NULL,
                created_at INTEGER NOT NULL,
                expires_at INTEGER NOT NULL
            )
        """)
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_expires_at ON cache (expires_at)"
        )

        if version == 0:
            await db.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
        elif version != SCHEMA_VERSION:
            logger.warning(
                "Unexpected cache schema version",
                found=version,
                expected=SCHEMA_VERSION,
            )

        await db.commit()

    async def close(self) -> None:
        """Close the database connection."""
        if self._db:
            await self._db.close()
            self._db = None

    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise NotInitializedError(
                "CacheStore not opened. Call open() first.",
                context={"db_path": str(self.db_path)},
            )
        return self._db

    async def get(self, key: str) -> CacheEntry | None:
        """Fetch the row for a key.

        Args:
            key: The cache key.

        Returns:
            The entry, or None if there is no row.
        """
        async with self._conn().execute(
            "SELECT key, data, created_at, expires_at FROM cache WHERE key = ?",
            (key,),
        ) as cursor:
            row = await cursor.fetchone()

        if not row:
            return None

        return CacheEntry(
            key=row["key"],
            data=row["data"],
            created_at=row["created_at"],
            expires_at=row["expires_at"],
        )

    async def put(self, key: str, data: str, created_at: int, expires_at: int) -> None:
        """Insert a row, replacing any existing row for the same key."""
        db = self._conn()
        await db.execute(
            """
            INSERT OR REPLACE INTO cache (key, data, created_at, expires_at)
            VALUES (?, ?, ?, ?)
            """,
            (key, data, created_at, expires_at),
        )
        await db.commit()

    async def delete(self, key: str) -> bool:
        """Delete the row for a key.

        Returns:
            True if a row was removed.
        """
        db = self._conn()
        cursor = await db.execute("DELETE FROM cache WHERE key = ?", (key,))
        await db.commit()
        return cursor.rowcount > 0

    async def delete_expired(self, now_ms: int) -> int:
        """Delete every row whose expiry is strictly before now_ms.

        Returns:
            Number of rows removed.
        """
        db = self._conn()
        cursor = await db.execute("DELETE FROM cache WHERE expires_at < ?", (now_ms,))
        await db.commit()
        return cursor.rowcount

    async def delete_all(self) -> int:
        """Delete every row.

        Returns:
            Number of rows removed.
        """
        db = self._conn()
        cursor = await db.execute("DELETE FROM cache")
        await db.commit()
        return cursor.rowcount

    async def count_and_size(self) -> tuple[int, int]:
        """Row count and total size in bytes of the stored data."""
        async with self._conn().execute(
            """
            SELECT COUNT(*) AS total_entries,
                   SUM(LENGTH(CAST(data AS BLOB))) AS total_size
            FROM cache
            """
        ) as cursor:
            row = await cursor.fetchone()

        if not row:
            return 0, 0
        return row["total_entries"] or 0, row["total_size"] or 0

    async def count_expired(self, now_ms: int) -> int:
        """Number of rows whose expiry is strictly before now_ms."""
        async with self._conn().execute(
            "SELECT COUNT(*) AS expired_entries FROM cache WHERE expires_at < ?",
            (now_ms,),
        ) as cursor:
            row = await cursor.fetchone()

        return row["expired_entries"] if row else 0

    async def keys(self) -> list[str]:
        """All keys currently stored, in key order."""
        async with self._conn().execute("SELECT key FROM cache ORDER BY key") as cursor:
            rows = await cursor.fetchall()
        return [row["key"] for row in rows]
