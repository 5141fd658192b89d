"""
Tests for the SQLite cache store.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from remote_caching.exceptions import NotInitializedError
from remote_caching.store import SCHEMA_VERSION, CacheStore


@pytest.fixture
async def store(temp_dir: Path) -> CacheStore:
    """Create an opened cache store for testing."""
    cache_store = CacheStore(temp_dir / "nested" / "remote_caching.db")
    await cache_store.open()
    yield cache_store
    await cache_store.close()


class TestCacheStoreSchema:
    """Test schema creation and handle lifecycle."""

    @pytest.mark.asyncio
    async def test_open_creates_file_and_directories(self, store: CacheStore) -> None:
        """Test that open() creates parent directories and the database."""
        assert isinstance(store.db_path, Path)
        assert store.db_path.exists()
        assert store.is_open

    @pytest.mark.asyncio
    async def test_schema_version_and_index(self, store: CacheStore) -> None:
        """Test that the schema is stamped with version 1 and indexed on expiry."""
        db = store._conn()
        async with db.execute("PRAGMA user_version") as cursor:
            row = await cursor.fetchone()
        assert row[0] == SCHEMA_VERSION == 1

        async with db.execute(
            "SELECT name FROM sqlite_master WHERE type = 'index' AND tbl_name = 'cache'"
        ) as cursor:
            names = [r[0] for r in await cursor.fetchall()]
        assert "idx_expires_at" in names

    @pytest.mark.asyncio
    async def test_queries_before_open_raise(self, temp_dir: Path) -> None:
        """Test that an unopened store refuses queries."""
        cache_store = CacheStore(temp_dir / "x.db")

        with pytest.raises(NotInitializedError):
            await cache_store.get("k")

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, temp_dir: Path) -> None:
        """Test that closing twice is harmless."""
        cache_store = CacheStore(temp_dir / "x.db")
        await cache_store.open()
        await cache_store.close()
        await cache_store.close()
        assert not cache_store.is_open

    @pytest.mark.asyncio
    async def test_reopen_keeps_rows(self, temp_dir: Path) -> None:
        """Test that rows persist across close and reopen."""
        path = temp_dir / "persist.db"
        cache_store = CacheStore(path)
        await cache_store.open()
        await cache_store.put("k", '"v"', 1, 2)
        await cache_store.close()

        await cache_store.open()
        try:
            entry = await cache_store.get("k")
            assert entry is not None
            assert entry.data == '"v"'
        finally:
            await cache_store.close()

    @pytest.mark.asyncio
    async def test_open_non_database_file_closes_handle(self, temp_dir: Path) -> None:
        """Test that a schema failure during open() does not leave a connection behind."""
        path = temp_dir / "garbage.db"
        path.write_bytes(b"this is not a sqlite database" * 64)
        cache_store = CacheStore(path)

        with pytest.raises(sqlite3.DatabaseError):
            await cache_store.open()

        assert not cache_store.is_open
        with pytest.raises(NotInitializedError):
            await cache_store.get("k")

    @pytest.mark.asyncio
    async def test_in_memory_database(self) -> None:
        """Test that ':memory:' is accepted as a path."""
        cache_store = CacheStore(":memory:")
        await cache_store.open()
        try:
            await cache_store.put("k", "1", 0, 10)
            assert await cache_store.keys() == ["k"]
        finally:
            await cache_store.close()


class TestCacheStoreRows:
    """Test row operations."""

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, store: CacheStore) -> None:
        """Test that an absent key returns None."""
        assert await store.get("missing") is None

    @pytest.mark.asyncio
    async def test_put_and_get(self, store: CacheStore) -> None:
        """Test that a row is read back exactly as written."""
        await store.put("k", '{"a":1}', created_at=1000, expires_at=5000)

        entry = await store.get("k")

        assert entry is not None
        assert entry.key == "k"
        assert entry.data == '{"a":1}'
        assert entry.created_at == 1000
        assert entry.expires_at == 5000
        assert entry.is_valid(4999)
        assert not entry.is_valid(5000)

    @pytest.mark.asyncio
    async def test_put_replaces(self, store: CacheStore) -> None:
        """Test that put() on an existing key replaces the row."""
        await store.put("k", "1", 1, 10)
        await store.put("k", "2", 2, 20)

        entry = await store.get("k")
        count, _ = await store.count_and_size()

        assert count == 1
        assert entry is not None
        assert (entry.data, entry.created_at, entry.expires_at) == ("2", 2, 20)

    @pytest.mark.asyncio
    async def test_delete(self, store: CacheStore) -> None:
        """Test that delete() reports whether a row was removed."""
        await store.put("k", "1", 1, 10)

        assert await store.delete("k") is True
        assert await store.delete("k") is False
        assert await store.get("k") is None

    @pytest.mark.asyncio
    async def test_delete_expired_is_strict(self, store: CacheStore) -> None:
        """Test that only rows strictly before now are swept."""
        await store.put("past", "1", 0, 99)
        await store.put("boundary", "2", 0, 100)
        await store.put("future", "3", 0, 101)

        removed = await store.delete_expired(100)

        assert removed == 1
        assert await store.keys() == ["boundary", "future"]

    @pytest.mark.asyncio
    async def test_delete_all(self, store: CacheStore) -> None:
        """Test that delete_all() empties the table."""
        for key in ("a", "b", "c"):
            await store.put(key, "0", 0, 1)

        assert await store.delete_all() == 3
        assert await store.keys() == []


class TestCacheStoreAggregates:
    """Test aggregate queries."""

    @pytest.mark.asyncio
    async def test_empty_table(self, store: CacheStore) -> None:
        """Test that aggregates over an empty table are zero."""
        assert await store.count_and_size() == (0, 0)
        assert await store.count_expired(0) == 0

    @pytest.mark.asyncio
    async def test_size_is_in_bytes(self, store: CacheStore) -> None:
        """Test that the size sum counts UTF-8 bytes, not characters."""
        await store.put("ascii", '"abc"', 0, 10)
        await store.put("utf8", '"ąę"', 0, 10)

        count, size = await store.count_and_size()

        assert count == 2
        assert size == 5 + 6

    @pytest.mark.asyncio
    async def test_count_expired(self, store: CacheStore) -> None:
        """Test that rows before the given instant are counted as expired."""
        await store.put("a", "1", 0, 50)
        await store.put("b", "1", 0, 150)

        assert await store.count_expired(100) == 1
        assert await store.count_expired(200) == 2
