"""Prometheus metrics for the Campus cache layer.

Provides:
- Read-through hit/miss counters per cache domain
- Backend error counters per operation
- Invalidation and invalidation-failure counters per entity kind
- Compute latency histogram per cache domain

Usage:
    from campus.observability.metrics import get_metrics

    metrics = get_metrics()
    metrics.cache_hits_total.labels(domain="course").inc()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram, generate_latest

from campus.config import settings

logger = logging.getLogger(__name__)


class NoOpMetric:
    """Stand-in metric used when metrics are disabled."""

    def labels(self, **kwargs: Any) -> NoOpMetric:
        return self

    def inc(self, amount: float = 1) -> None:
        pass

    def observe(self, value: float) -> None:
        pass


@dataclass
class CacheMetrics:
    """Registry of cache metrics."""

    cache_hits_total: Any = field(default_factory=NoOpMetric)
    cache_misses_total: Any = field(default_factory=NoOpMetric)
    cache_errors_total: Any = field(default_factory=NoOpMetric)
    cache_invalidations_total: Any = field(default_factory=NoOpMetric)
    cache_invalidation_failures_total: Any = field(default_factory=NoOpMetric)
    cache_compute_seconds: Any = field(default_factory=NoOpMetric)
    cache_warmups_total: Any = field(default_factory=NoOpMetric)

    _initialized: bool = field(default=False, repr=False)
    _registry: CollectorRegistry | None = field(default=None, repr=False)

    def initialize(self, registry: CollectorRegistry | None = None, enabled: bool = True) -> None:
        """Register Prometheus collectors (once)."""
        if self._initialized:
            return

        if not enabled:
            logger.info("Metrics are disabled")
            self._initialized = True
            return

        self._registry = registry or REGISTRY

        self.cache_hits_total = Counter(
            "campus_cache_hits_total",
            "Read-through cache hits",
            ["domain"],
            registry=self._registry,
        )
        self.cache_misses_total = Counter(
            "campus_cache_misses_total",
            "Read-through cache misses",
            ["domain"],
            registry=self._registry,
        )
        self.cache_errors_total = Counter(
            "campus_cache_errors_total",
            "Cache backend errors",
            ["operation"],
            registry=self._registry,
        )
        self.cache_invalidations_total = Counter(
            "campus_cache_invalidations_total",
            "Cache invalidations by entity kind",
            ["kind"],
            registry=self._registry,
        )
        self.cache_invalidation_failures_total = Counter(
            "campus_cache_invalidation_failures_total",
            "Cache invalidations that failed and were swallowed",
            ["kind"],
            registry=self._registry,
        )
        self.cache_compute_seconds = Histogram(
            "campus_cache_compute_seconds",
            "Time spent computing values on cache misses",
            ["domain"],
            buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
            registry=self._registry,
        )
        self.cache_warmups_total = Counter(
            "campus_cache_warmups_total",
            "Cache warmer runs by warmer and outcome",
            ["warmer", "outcome"],
            registry=self._registry,
        )

        self._initialized = True
        logger.info("Prometheus cache metrics initialized")

    def generate_latest(self) -> bytes:
        """Prometheus exposition format."""
        if self._registry is None:
            return b"# Metrics disabled\n"
        return generate_latest(self._registry)


# Global metrics registry
cache_metrics = CacheMetrics()


def get_metrics() -> CacheMetrics:
    """Get the global cache metrics, initializing them on first access."""
    if not cache_metrics._initialized:
        cache_metrics.initialize(enabled=settings.enable_metrics)
    return cache_metrics
