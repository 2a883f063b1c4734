"""Observability for the cache service: structured logging and Prometheus metrics."""

from campus.observability.logging import LogContext, configure_logging
from campus.observability.metrics import CacheMetrics, get_metrics

__all__ = [
    "CacheMetrics",
    "LogContext",
    "configure_logging",
    "get_metrics",
]
