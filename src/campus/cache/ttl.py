"""TTL classes for cached read-models.

Call sites name a class instead of hard-coding seconds, so every entry of
the same kind expires on the same schedule.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from campus.config import Settings


class TTLClass(str, Enum):
    """Symbolic time-to-live buckets."""

    SHORT = "short"  # live-session polling
    DEFAULT = "default"
    STATS = "stats"  # aggregates and counters
    LONG = "long"
    VERY_LONG = "very_long"  # tenant-by-domain lookups


@dataclass(frozen=True)
class TTLPolicy:
    """Seconds for each TTL class."""

    short: int = 60
    default: int = 300
    stats: int = 900
    long: int = 1800
    very_long: int = 3600

    @classmethod
    def from_settings(cls, settings: Settings) -> TTLPolicy:
        return cls(
            short=settings.cache_ttl_short,
            default=settings.cache_ttl_default,
            stats=settings.cache_ttl_stats,
            long=settings.cache_ttl_long,
            very_long=settings.cache_ttl_very_long,
        )

    def seconds(self, ttl: TTLClass | int) -> int:
        """Resolve a TTL class (or an explicit number of seconds)."""
        if isinstance(ttl, TTLClass):
            value = getattr(self, ttl.value)
        else:
            value = int(ttl)
        if value <= 0:
            raise ValueError(f"TTL must be positive, got {value}")
        return value
