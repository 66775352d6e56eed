"""
Get-or-compute cache manager.
"""

import time
from concurrent.futures import Executor
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from shared.errors import CacheTypeMismatchError, ValidationError
from shared.logging import get_logger
from shared.metrics import CacheMetrics
from .entry import Absent, Slot, unwrap
from .refresh import RefreshCoordinator
from .store import Clock, ExpiringStore, InMemoryExpiringStore, StoreAdapter

T = TypeVar("T")

DEFAULT_TTL_MS = 1000


class CacheManager:
    """Memoizes producer results per key with TTL expiry and optional refresh-ahead.

    A producer returning ``None`` means "no result". It is only cached when
    ``cache_absence`` is set; otherwise the next call recomputes. Producer
    exceptions on the caller's path propagate unchanged and are never cached.

    Callers must use one logical value type per key. Passing ``value_type``
    turns a violation into a ``CacheTypeMismatchError``.
    """

    def __init__(
        self,
        store: Optional[ExpiringStore] = None,
        *,
        clock: Clock = time.monotonic,
        metrics: Optional[CacheMetrics] = None,
        executor: Optional[Executor] = None,
        max_entries: int = 100_000,
        refresh_workers: int = 4,
        refresh_concurrency: int = 8,
    ):
        self.logger = get_logger("memo_cache.cache_manager")
        self.metrics = metrics or CacheMetrics()
        self.clock = clock
        self.store = StoreAdapter(
            store if store is not None else InMemoryExpiringStore(max_entries, clock=clock),
            clock=clock,
        )
        self.refresher = RefreshCoordinator(
            self.store,
            clock,
            metrics=self.metrics,
            executor=executor,
            workers=refresh_workers,
            concurrency=refresh_concurrency,
        )

    def get_or_compute(
        self,
        key: str,
        producer: Callable[[], Optional[T]],
        ttl_ms: float = DEFAULT_TTL_MS,
        cache_absence: bool = False,
        value_type: Optional[type] = None,
    ) -> Optional[T]:
        """Return the cached value for key, computing and storing it on a miss."""
        self._validate(key, ttl_ms)

        slot = self.store.get(key)
        if slot is not None:
            self.metrics.record_hit("plain")
            return self._read(key, slot, value_type)

        self.metrics.record_miss("plain")
        result = producer()
        self.refresher.store_result(key, result, ttl_ms, cache_absence)
        self.logger.debug("Computed cache miss", key=key, ttl_ms=ttl_ms, absent=result is None)
        return result

    async def get_or_compute_async(
        self,
        key: str,
        producer: Callable[[], Awaitable[Optional[T]]],
        ttl_ms: float = DEFAULT_TTL_MS,
        cache_absence: bool = False,
        value_type: Optional[type] = None,
    ) -> Optional[T]:
        """Async variant of get_or_compute; awaits the producer on a miss."""
        self._validate(key, ttl_ms)

        slot = self.store.get(key)
        if slot is not None:
            self.metrics.record_hit("plain")
            return self._read(key, slot, value_type)

        self.metrics.record_miss("plain")
        result = await producer()
        self.refresher.store_result(key, result, ttl_ms, cache_absence)
        self.logger.debug("Computed cache miss", key=key, ttl_ms=ttl_ms, absent=result is None)
        return result

    def get_or_compute_with_refresh(
        self,
        key: str,
        producer: Callable[[], Optional[T]],
        ttl_ms: float = DEFAULT_TTL_MS,
        cache_absence: bool = False,
        value_type: Optional[type] = None,
    ) -> Optional[T]:
        """Like get_or_compute, but hits close to expiry refresh in the background.

        The value returned on a hit is always the one read before any refresh
        was scheduled.
        """
        self._validate(key, ttl_ms)
        metadata = self.refresher.metadata_for(key, ttl_ms)

        slot = self.store.get(key)
        if slot is not None:
            self.metrics.record_hit("refresh")
            value = self._read(key, slot, value_type)
            self.refresher.maybe_schedule(key, metadata, producer, ttl_ms, cache_absence)
            return value

        self.metrics.record_miss("refresh")
        result = producer()
        self.refresher.store_result(key, result, ttl_ms, cache_absence)
        self.refresher.record_compute(metadata, ttl_ms)
        self.logger.debug("Computed cache miss", key=key, ttl_ms=ttl_ms, absent=result is None)
        return result

    async def get_or_compute_with_refresh_async(
        self,
        key: str,
        producer: Callable[[], Awaitable[Optional[T]]],
        ttl_ms: float = DEFAULT_TTL_MS,
        cache_absence: bool = False,
        value_type: Optional[type] = None,
    ) -> Optional[T]:
        """Async variant of get_or_compute_with_refresh."""
        self._validate(key, ttl_ms)
        metadata = self.refresher.metadata_for(key, ttl_ms)

        slot = self.store.get(key)
        if slot is not None:
            self.metrics.record_hit("refresh")
            value = self._read(key, slot, value_type)
            self.refresher.maybe_schedule_async(key, metadata, producer, ttl_ms, cache_absence)
            return value

        self.metrics.record_miss("refresh")
        result = await producer()
        self.refresher.store_result(key, result, ttl_ms, cache_absence)
        self.refresher.record_compute(metadata, ttl_ms)
        self.logger.debug("Computed cache miss", key=key, ttl_ms=ttl_ms, absent=result is None)
        return result

    def remove(self, key: str) -> None:
        """Drop the cached value for key. Refresh metadata is kept."""
        self.store.remove(key)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        return {
            "entries": len(self.store),
            "tracked_keys": len(self.refresher.registry),
            "refreshes_in_flight": self.refresher.registry.in_flight_count(),
            "pending_async_refreshes": self.refresher.pending_async,
        }

    def reset(self) -> None:
        """Clear all entries and refresh metadata."""
        self.store.clear()
        self.refresher.reset()
        self.logger.info("Cache reset")

    def shutdown(self, wait: bool = True) -> None:
        """Stop background refresh workers."""
        self.refresher.shutdown(wait=wait)

    def _read(self, key: str, slot: Slot, value_type: Optional[type]) -> Any:
        if isinstance(slot, Absent):
            return None
        value = unwrap(slot)
        if value_type is not None and not isinstance(value, value_type):
            raise CacheTypeMismatchError(key, value_type, type(value))
        return value

    @staticmethod
    def _validate(key: str, ttl_ms: float) -> None:
        if not key:
            raise ValidationError("Cache key must be a non-empty string")
        if ttl_ms <= 0:
            raise ValidationError("ttl_ms must be positive", {"key": key, "ttl_ms": ttl_ms})
