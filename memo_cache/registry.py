"""
Process-wide default cache manager.

The shared manager is built from CacheSettings on first use and lives until
the process exits. Tests call reset_cache() to start from an empty cache.
"""

import threading
from typing import Any, Awaitable, Callable, Optional, TypeVar

from prometheus_client import REGISTRY

from shared.config import get_settings
from shared.logging import get_logger
from shared.metrics import CacheMetrics
from .caching.cache_manager import CacheManager

T = TypeVar("T")

_lock = threading.Lock()
_manager: Optional[CacheManager] = None
_metrics: Optional[CacheMetrics] = None
logger = get_logger("memo_cache.registry")


def get_cache_manager() -> CacheManager:
    """Get the shared cache manager, creating it on first use."""
    global _manager, _metrics
    with _lock:
        if _manager is None:
            settings = get_settings()
            # Counters register once per process
            if _metrics is None:
                _metrics = CacheMetrics(registry=REGISTRY, enabled=settings.metrics_enabled)
            _manager = CacheManager(
                metrics=_metrics,
                max_entries=settings.max_entries,
                refresh_workers=settings.refresh_workers,
                refresh_concurrency=settings.refresh_concurrency,
            )
            logger.info(
                "Created shared cache manager",
                max_entries=settings.max_entries,
                refresh_workers=settings.refresh_workers,
            )
        return _manager


def reset_cache() -> None:
    """Clear the shared cache's entries and refresh metadata."""
    get_cache_manager().reset()


def resolve_ttl(ttl_ms: Optional[float]) -> float:
    """Return ttl_ms, or CacheSettings.default_ttl_ms when it is None."""
    return ttl_ms if ttl_ms is not None else get_settings().default_ttl_ms


def get_or_compute(
    key: str,
    producer: Callable[[], Optional[T]],
    ttl_ms: Optional[float] = None,
    cache_absence: bool = False,
    value_type: Optional[type] = None,
) -> Optional[T]:
    """Shared-cache get_or_compute."""
    return get_cache_manager().get_or_compute(
        key, producer, resolve_ttl(ttl_ms), cache_absence, value_type
    )


async def get_or_compute_async(
    key: str,
    producer: Callable[[], Awaitable[Optional[T]]],
    ttl_ms: Optional[float] = None,
    cache_absence: bool = False,
    value_type: Optional[type] = None,
) -> Optional[T]:
    """Shared-cache get_or_compute_async."""
    return await get_cache_manager().get_or_compute_async(
        key, producer, resolve_ttl(ttl_ms), cache_absence, value_type
    )


def get_or_compute_with_refresh(
    key: str,
    producer: Callable[[], Optional[T]],
    ttl_ms: Optional[float] = None,
    cache_absence: bool = False,
    value_type: Optional[type] = None,
) -> Optional[T]:
    """Shared-cache get_or_compute_with_refresh."""
    return get_cache_manager().get_or_compute_with_refresh(
        key, producer, resolve_ttl(ttl_ms), cache_absence, value_type
    )


async def get_or_compute_with_refresh_async(
    key: str,
    producer: Callable[[], Awaitable[Optional[T]]],
    ttl_ms: Optional[float] = None,
    cache_absence: bool = False,
    value_type: Optional[type] = None,
) -> Optional[T]:
    """Shared-cache get_or_compute_with_refresh_async."""
    return await get_cache_manager().get_or_compute_with_refresh_async(
        key, producer, resolve_ttl(ttl_ms), cache_absence, value_type
    )


def remove(key: str) -> None:
    """Drop key from the shared cache."""
    get_cache_manager().remove(key)


def _set_cache_manager(manager: Optional[CacheManager]) -> Optional[CacheManager]:
    """Swap the shared manager, returning the previous one. Test hook."""
    global _manager
    with _lock:
        previous, _manager = _manager, manager
    return previous
