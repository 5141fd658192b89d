"""
Persistent TTL cache for async remote calls.

RemoteCaching memoizes the result of an awaitable "remote" function under a
string key in a local SQLite database. Within the validity window repeated
calls are served from disk; afterwards the remote function runs again and
its result replaces the stored row.

Usage:
    cache = RemoteCaching()
    await cache.init(default_ttl=timedelta(minutes=30))

    profile = await cache.call(
        "user_profile",
        remote=fetch_user_profile,
        from_json=UserProfile.model_validate,
        cache_duration=timedelta(minutes=5),
    )

    await cache.dispose()
"""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Awaitable, Callable, Final, TypeVar

from remote_caching import codec
from remote_caching.config import Settings, get_settings
from remote_caching.exceptions import CacheContractError, CodecError, NotInitializedError
from remote_caching.logging import get_logger, log_context, set_log_level
from remote_caching.store import CacheStore
from remote_caching.types import CachingStats, to_millis, utc_now

logger = get_logger(__name__)

T = TypeVar("T")


class _Missing:
    """Marker for a lookup that produced no usable value."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Final = _Missing()


class RemoteCaching:
    """Get-or-fetch cache over a durable SQLite table.

    One instance owns one store handle. Instances are independent, so an
    application can hold several caches pointing at different files.

    Concurrent call()s for the same key are not deduplicated: both may miss,
    both run the remote function and the last write wins.
    """

    def __init__(
        self,
        db_path: str | Path | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Create an uninitialized cache.

        Args:
            db_path: SQLite file to use. Defaults to the configured
                CACHE_DIR / DB_FILENAME.
            settings: Settings to read defaults from. Defaults to get_settings().
            clock: Source of the current time, aware UTC datetimes.
        """
        self._db_path = db_path
        self._settings = settings
        self._clock = clock
        self._store: CacheStore | None = None
        self._default_cache_duration = timedelta(hours=1)
        self._verbose = False
        self._is_initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    @property
    def default_cache_duration(self) -> timedelta:
        return self._default_cache_duration

    @property
    def verbose(self) -> bool:
        return self._verbose

    @property
    def db_path(self) -> str | Path | None:
        """Resolved database path, once init() has run."""
        return self._store.db_path if self._store else self._db_path

    def _now_ms(self) -> int:
        return to_millis(self._clock())

    def _log_info(self, message: str, **kwargs: Any) -> None:
        if self._verbose:
            logger.info(message, **kwargs)

    def _log_error(self, message: str, error: BaseException, **kwargs: Any) -> None:
        if self._verbose:
            logger.error(message, exc_info=error, **kwargs)

    def _require_initialized(self, operation: str) -> CacheStore:
        if not self._is_initialized or self._store is None:
            raise NotInitializedError(
                "RemoteCaching must be initialized before use.",
                context={"operation": operation},
            )
        return self._store

    async def init(
        self,
        default_ttl: timedelta | None = None,
        verbose: bool | None = None,
    ) -> None:
        """Open the cache and sweep entries that expired while it was closed.

        Calling init() on an initialized cache does nothing; in particular it
        does not reopen storage or change the default TTL.

        Args:
            default_ttl: TTL for calls that give neither a duration nor an
                expiry instant. Defaults to the configured DEFAULT_TTL_SECONDS.
            verbose: Emit diagnostics. Defaults to the configured VERBOSE.
        """
        if self._is_initialized:
            return

        settings = self._settings or get_settings()
        set_log_level(settings.LOG_LEVEL)
        self._default_cache_duration = settings.default_ttl if default_ttl is None else default_ttl
        self._verbose = settings.VERBOSE if verbose is None else verbose

        db_path = self._db_path if self._db_path is not None else settings.database_file
        self._store = CacheStore(db_path)
        try:
            await self._store.open()
            self._is_initialized = True
            removed = await self._cleanup_expired_entries()
        except BaseException:
            await self._store.close()
            self._store = None
            self._is_initialized = False
            raise

        self._log_info(
            "Cache initialized",
            db_path=str(db_path),
            default_ttl_seconds=self._default_cache_duration.total_seconds(),
            expired_removed=removed,
        )

    async def call(
        self,
        key: str,
        remote: Callable[[], Awaitable[T]],
        from_json: Callable[[Any], T],
        *,
        cache_duration: timedelta | None = None,
        cache_expiring: datetime | None = None,
        force_refresh: bool = False,
        to_json: Callable[[T], Any] | None = None,
    ) -> T:
        """Return the cached value for key, or fetch, store and return it.

        Args:
            key: Cache key.
            remote: Coroutine function producing the authoritative value.
            from_json: Converts the parsed JSON structure back into a value.
            cache_duration: How long a freshly fetched value stays valid.
            cache_expiring: Absolute instant the fresh value expires.
                Mutually exclusive with cache_duration.
            force_refresh: Skip the lookup and always call remote.
            to_json: Optional conversion applied before JSON encoding.

        Returns:
            The cached value on a valid hit, otherwise the value from remote.

        Raises:
            NotInitializedError: If init() has not completed.
            CacheContractError: If both cache_duration and cache_expiring are given.
            Exception: Anything raised by remote, unchanged.
        """
        self._require_initialized("call")

        if cache_duration is not None and cache_expiring is not None:
            raise CacheContractError(
                "You cannot specify both cache_duration and cache_expiring at the same time.",
                context={"key": key},
            )

        if cache_expiring is not None:
            expires_at = to_millis(cache_expiring)
        else:
            duration = self._default_cache_duration if cache_duration is None else cache_duration
            expires_at = to_millis(self._clock() + duration)

        with log_context(cache_key=key):
            if not force_refresh:
                cached = await self.lookup(key, from_json)
                if cached is not MISSING:
                    return cached

            data = await remote()
            self._log_info("Data fetched from remote", key=key)
            if await self.store(key, data, expires_at, to_json=to_json):
                self._log_info("Data cached", key=key, expires_at=expires_at)
            return data

    async def lookup(self, key: str, from_json: Callable[[Any], T]) -> T | _Missing:
        """Read a valid, decodable value for key.

        An expired row is deleted as part of the read. A row that fails to
        decode is reported as MISSING and left in place; the next successful
        write replaces it.

        Returns:
            The decoded value, or MISSING.
        """
        store = self._require_initialized("lookup")
        entry = await store.get(key)

        if entry is None:
            self._log_info("No cached data found", key=key)
            return MISSING

        if not entry.is_valid(self._now_ms()):
            self._log_info("Cached data expired", key=key, expires_at=entry.expires_at)
            await store.delete(key)
            return MISSING

        try:
            value = codec.decode(entry.data, from_json, key=key)
        except CodecError as e:
            self._log_error(str(e), e.__cause__ or e, key=key)
            return MISSING

        self._log_info("Cached data found", key=key)
        return value

    async def store(
        self,
        key: str,
        value: T,
        expires_at: datetime | int,
        to_json: Callable[[T], Any] | None = None,
    ) -> bool:
        """Encode value and insert-or-replace the row for key.

        Args:
            key: Cache key.
            value: Value to store.
            expires_at: Expiry instant, as a datetime or epoch milliseconds.
            to_json: Optional conversion applied before JSON encoding.

        Returns:
            False if encoding failed and nothing was written.
        """
        store = self._require_initialized("store")

        try:
            data = codec.encode(value, to_json=to_json, key=key)
        except CodecError as e:
            self._log_error(str(e), e.__cause__ or e, key=key)
            return False

        if isinstance(expires_at, datetime):
            expires_at = to_millis(expires_at)

        await store.put(key, data, created_at=self._now_ms(), expires_at=expires_at)
        return True

    async def _cleanup_expired_entries(self) -> int:
        store = self._require_initialized("cleanup")
        return await store.delete_expired(self._now_ms())

    async def clear_cache(self) -> None:
        """Remove every entry. Does nothing if the cache is not initialized."""
        if not self._is_initialized or self._store is None:
            return
        removed = await self._store.delete_all()
        self._log_info("Cache cleared", removed=removed)

    async def clear_cache_for_key(self, key: str) -> bool:
        """Remove the entry for key, if any. Does nothing if not initialized.

        Returns:
            True if a row was removed.
        """
        if not self._is_initialized or self._store is None:
            return False
        removed = await self._store.delete(key)
        if removed:
            self._log_info("Cache entry cleared", key=key)
        return removed

    async def get_cache_stats(self) -> CachingStats:
        """Compute entry count, stored size and expired count.

        The two underlying aggregate reads are not run in one transaction, so
        the result is a best-effort snapshot under concurrent writes.

        Raises:
            NotInitializedError: If init() has not completed.
        """
        store = self._require_initialized("get_cache_stats")

        total_entries, total_size = await store.count_and_size()
        expired = await store.count_expired(self._now_ms())

        return CachingStats(
            total_entries=total_entries,
            total_size_bytes=total_size,
            expired_entries=expired,
        )

    async def keys(self) -> list[str]:
        """Keys currently stored, expired or not."""
        store = self._require_initialized("keys")
        return await store.keys()

    async def dispose(self) -> None:
        """Close the store. A later init() reopens it."""
        if self._store is not None:
            await self._store.close()
            self._store = None
        self._is_initialized = False
        self._log_info("Cache disposed")

    async def __aenter__(self) -> RemoteCaching:
        await self.init()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.dispose()
