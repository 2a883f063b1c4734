"""Middleware for the Campus cache service.

- CacheInvalidationMiddleware: clears cached read-models after 2xx writes
- CorrelationMiddleware: request id for log correlation
"""

from campus.api.middleware.correlation import CorrelationMiddleware
from campus.api.middleware.invalidation import CacheInvalidationMiddleware

__all__ = [
    "CacheInvalidationMiddleware",
    "CorrelationMiddleware",
]
