"""
Shared configuration management for the memo-cache layer.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CacheSettings(BaseSettings):
    """Process-wide cache settings, read from MEMO_CACHE_* variables."""

    model_config = SettingsConfigDict(
        env_prefix="MEMO_CACHE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Defaults for callers that omit ttl_ms
    default_ttl_ms: float = Field(default=1000, gt=0)

    # Expiring store
    max_entries: int = Field(default=100_000, ge=1)

    # Background refresh
    refresh_workers: int = Field(default=4, ge=1)
    refresh_concurrency: int = Field(default=8, ge=1)

    # Observability
    log_level: str = Field(default="info")
    metrics_enabled: bool = Field(default=True)


@lru_cache(maxsize=1)
def get_settings() -> CacheSettings:
    """Get the process-wide cache settings."""
    return CacheSettings()
