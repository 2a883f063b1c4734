"""FastAPI dependencies for the operator API."""

from __future__ import annotations

from campus.cache.manager import CacheManager
from campus.cache.runtime import CacheRuntime, get_runtime


def get_cache_runtime() -> CacheRuntime:
    return get_runtime()


def get_cache_manager() -> CacheManager:
    return get_runtime().manager
