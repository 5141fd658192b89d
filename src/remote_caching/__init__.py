"""
remote_caching

Persistent TTL cache for async remote calls, backed by SQLite.
"""

from remote_caching.cache import MISSING, RemoteCaching
from remote_caching.config import Settings, clear_settings_cache, get_settings
from remote_caching.exceptions import (
    CacheContractError,
    CodecError,
    NotInitializedError,
    RemoteCachingError,
)
from remote_caching.types import CacheEntry, CachingStats

__all__ = [
    "RemoteCaching",
    "MISSING",
    "CacheEntry",
    "CachingStats",
    "Settings",
    "get_settings",
    "clear_settings_cache",
    "RemoteCachingError",
    "NotInitializedError",
    "CacheContractError",
    "CodecError",
]

__version__ = "0.1.0"
