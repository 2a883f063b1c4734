"""Global pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from prometheus_client import CollectorRegistry

from campus.cache.keys import KeyBuilder
from campus.cache.memory import InMemoryCacheBackend
from campus.cache.runtime import CacheRuntime, build_runtime, set_runtime
from campus.config import Settings
from campus.observability.metrics import CacheMetrics


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def keys() -> KeyBuilder:
    return KeyBuilder("campus")


@pytest.fixture
def memory_backend(clock: FakeClock) -> InMemoryCacheBackend:
    return InMemoryCacheBackend(clock=clock)


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def metrics(registry: CollectorRegistry) -> CacheMetrics:
    """Metrics on a private registry so counts start at zero."""
    cache_metrics = CacheMetrics()
    cache_metrics.initialize(registry=registry)
    return cache_metrics


@pytest.fixture
def test_settings() -> Settings:
    return Settings(cache_backend="memory", cache_namespace="campus", enable_metrics=False)


@pytest.fixture
def runtime(memory_backend: InMemoryCacheBackend, test_settings: Settings) -> CacheRuntime:
    """Fully wired runtime over an in-memory backend."""
    return build_runtime(memory_backend, test_settings)


@pytest.fixture(autouse=True)
def reset_runtime() -> Iterator[None]:
    yield
    set_runtime(None)
