"""Exceptions raised by the cache layer."""

from __future__ import annotations


class CacheError(Exception):
    """Base class for cache layer errors."""


class InvalidKeyError(CacheError, ValueError):
    """Raised when a cache key cannot be built from the given components."""


class CacheBackendUnavailable(CacheError):
    """Raised when the key-value backend cannot be reached."""


class InvalidationFailure(CacheError):
    """Raised while clearing cache entries after a write.

    Never escapes the manager or the dispatcher; it is logged and swallowed
    so that a failed invalidation cannot fail the request that caused it.
    """

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(f"{kind}: {message}")
        self.kind = kind


class ComputeAbandoned(CacheError):
    """A shared single-flight compute stopped without a result.

    Raised to requests waiting on a compute whose leading task was
    cancelled; they compute the value themselves instead.
    """


class UnknownWarmerError(CacheError, ValueError):
    """Raised when a warm-up names a warmer that is not registered."""
