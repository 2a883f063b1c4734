"""Tenant cache warm-up.

Read-models are computed by the services that own them, so the cache layer
cannot warm anything by itself. Services register warmers instead: a
warmer is called with the CacheManager and a tenant id and fills the
read-models it knows how to compute through the per-domain caches.

Warmers are registered in code or listed in settings as import paths:

    CAMPUS_CACHE_WARMERS='["lms.warmers:dashboard", "lms.warmers:categories"]'

    async def dashboard(manager: CacheManager, tenant_id: str) -> None:
        await manager.dashboard.warm_up(
            tenant_id,
            stats=lambda: stats_service.stats(tenant_id),
            revenue=lambda: stats_service.revenue(tenant_id),
            engagement=lambda: stats_service.engagement(tenant_id),
            performance=lambda: stats_service.course_performance(tenant_id),
        )
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

from campus.cache.errors import UnknownWarmerError

if TYPE_CHECKING:
    from campus.cache.manager import CacheManager

logger = logging.getLogger(__name__)

Warmer = Callable[["CacheManager", str], Any]


def load_warmer(path: str) -> tuple[str, Warmer]:
    """Import a warmer from "package.module:function".

    Returns the function name (used as the warmer name) and the function.

    Raises:
        ValueError: If path is not of the form module:function
        ImportError: If the module cannot be imported
        TypeError: If the attribute is not callable
    """
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ValueError(f"Warmer path must look like 'module:function', got {path!r}")
    module = importlib.import_module(module_name)
    warmer = getattr(module, attr)
    if not callable(warmer):
        raise TypeError(f"Warmer {path!r} is not callable")
    return attr, warmer


class WarmerRegistry:
    """Named warmers in registration order."""

    def __init__(self) -> None:
        self._warmers: dict[str, Warmer] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._warmers

    def __len__(self) -> int:
        return len(self._warmers)

    def names(self) -> list[str]:
        return list(self._warmers)

    def register(self, name: str, warmer: Warmer) -> None:
        if name in self._warmers:
            logger.warning("Replacing cache warmer %s", name)
        self._warmers[name] = warmer

    def load(self, paths: Iterable[str]) -> None:
        for path in paths:
            name, warmer = load_warmer(path)
            self.register(name, warmer)

    def select(self, only: Iterable[str] | None = None) -> list[tuple[str, Warmer]]:
        """Warmers to run; all of them unless only names a subset.

        Raises:
            UnknownWarmerError: If only names an unregistered warmer
        """
        if only is None:
            return list(self._warmers.items())
        names = list(only)
        unknown = [name for name in names if name not in self._warmers]
        if unknown:
            raise UnknownWarmerError(f"Unknown cache warmer(s): {', '.join(unknown)}")
        return [(name, self._warmers[name]) for name in names]
