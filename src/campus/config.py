from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CAMPUS_", env_file=".env", extra="ignore", populate_by_name=True
    )

    app_name: str = "campus-cache"
    env: str = "dev"

    # Redis
    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias="REDIS_URL")

    # Cache backend: "redis" or "memory" (single process only)
    cache_backend: str = Field(default="redis", validation_alias="CAMPUS_CACHE_BACKEND")
    cache_namespace: str = Field(default="campus", validation_alias="CAMPUS_CACHE_NAMESPACE")

    # TTL classes (seconds)
    cache_ttl_short: int = Field(default=60, validation_alias="CAMPUS_CACHE_TTL_SHORT")
    cache_ttl_default: int = Field(default=300, validation_alias="CAMPUS_CACHE_TTL_DEFAULT")
    cache_ttl_stats: int = Field(default=900, validation_alias="CAMPUS_CACHE_TTL_STATS")
    cache_ttl_long: int = Field(default=1800, validation_alias="CAMPUS_CACHE_TTL_LONG")
    cache_ttl_very_long: int = Field(default=3600, validation_alias="CAMPUS_CACHE_TTL_VERY_LONG")

    # Collapse concurrent misses for the same key into one compute
    cache_single_flight: bool = Field(default=False, validation_alias="CAMPUS_CACHE_SINGLE_FLIGHT")

    cache_memory_max_entries: int | None = Field(
        default=10000, validation_alias="CAMPUS_CACHE_MEMORY_MAX_ENTRIES"
    )
    cache_scan_batch_size: int = Field(default=500, validation_alias="CAMPUS_CACHE_SCAN_BATCH_SIZE")

    # Exact route name -> entity kinds, e.g. {"courses.enroll": ["course", "user"]}
    invalidation_route_rules: dict[str, list[str]] = Field(
        default_factory=dict, validation_alias="CAMPUS_INVALIDATION_ROUTE_RULES"
    )

    # Warm-up functions as "module:function" import paths
    cache_warmers: list[str] = Field(
        default_factory=list, validation_alias="CAMPUS_CACHE_WARMERS"
    )

    # Observability
    log_level: str = Field(default="INFO", validation_alias="CAMPUS_LOG_LEVEL")
    log_json: bool = Field(default=False, validation_alias="CAMPUS_LOG_JSON")
    enable_metrics: bool = Field(default=True, validation_alias="CAMPUS_ENABLE_METRICS")


settings = Settings()
