"""HTTP routers of the cache service."""

from campus.api.routers import cache, health

__all__ = [
    "cache",
    "health",
]
