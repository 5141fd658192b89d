"""
Custom exception hierarchy for the remote caching system.

All exceptions inherit from RemoteCachingError, which provides optional
context for structured error handling and logging.

Failures of the caller's remote operation and of the underlying SQLite
store are deliberately not wrapped; they propagate unchanged.
"""

from __future__ import annotations

from typing import Any


class RemoteCachingError(Exception):
    """Base exception for all remote caching errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class NotInitializedError(RemoteCachingError, RuntimeError):
    """Raised when a data-path operation runs before init() or after dispose().

    Context should include:
        - operation: The operation that was attempted
    """

    pass


class CacheContractError(RemoteCachingError, ValueError):
    """Raised when a caller violates the call contract.

    Examples:
        - Passing both cache_duration and cache_expiring to call()
    """

    pass


class CodecError(RemoteCachingError):
    """Raised when a value cannot be encoded to or decoded from JSON text.

    Never escapes RemoteCaching.call(); the engine degrades it to a cache
    miss (read path) or a skipped write (write path).

    Context should include:
        - stage: "encode", "json_decode" or "from_json"
        - key: The cache key involved, when known
    """

    pass
