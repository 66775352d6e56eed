"""
Refresh-ahead coordination for cached keys.

A hit on a key whose value is past 80% of its TTL schedules one background
recompute while the still-valid value keeps serving reads. Per-key metadata
tracks when the key was last computed and whether a refresh is in flight.
"""

import asyncio
import threading
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from shared.logging import get_logger
from shared.metrics import CacheMetrics
from .entry import wrap
from .store import Clock, StoreAdapter

# TTLs at or below this are too cheap to refresh in the background
REFRESH_MIN_TTL_MS = 500
# Fraction of the TTL that must elapse before a hit triggers a refresh
REFRESH_THRESHOLD = 0.8
NEVER_REFRESHED = float("-inf")


@dataclass
class KeyMetadata:
    """Refresh bookkeeping for one key. Lives as long as the process."""

    key: str
    ttl_ms: float
    last_refresh: float = NEVER_REFRESHED
    refresh_in_flight: bool = False

    def needs_refresh(self, now: float) -> bool:
        """Whether a hit at ``now`` should also schedule a background refresh."""
        elapsed_ms = (now - self.last_refresh) * 1000.0
        return (
            not self.refresh_in_flight
            and self.ttl_ms > REFRESH_MIN_TTL_MS
            and elapsed_ms > self.ttl_ms * REFRESH_THRESHOLD
        )

    def mark_refreshed(self, now: float, ttl_ms: float) -> None:
        self.last_refresh = now
        self.ttl_ms = ttl_ms


class MetadataRegistry:
    """Key -> KeyMetadata map with insert-if-absent under an internal lock."""

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[str, KeyMetadata] = {}

    def get_or_create(self, key: str, ttl_ms: float) -> KeyMetadata:
        with self._lock:
            metadata = self._entries.get(key)
            if metadata is None:
                metadata = KeyMetadata(key=key, ttl_ms=ttl_ms)
                self._entries[key] = metadata
            return metadata

    def get(self, key: str) -> Optional[KeyMetadata]:
        with self._lock:
            return self._entries.get(key)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def in_flight_count(self) -> int:
        with self._lock:
            return sum(1 for metadata in self._entries.values() if metadata.refresh_in_flight)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RefreshCoordinator:
    """Decides when hits trigger background refreshes and runs them.

    Sync producers are refreshed on a bounded thread pool. Async producers
    are refreshed on the coordinator's own event loop thread, started on
    first use, with at most ``concurrency`` refreshes awaiting their producer
    at once. A scheduled refresh therefore outlives the caller's loop and
    runs to completion or failure. Async producers must not depend on
    objects bound to the caller's loop.

    The ``refresh_in_flight`` flag is a check-then-set guard, not an atomic
    exchange: racing callers can occasionally schedule two refreshes for one
    key, which both write the same entry.
    """

    def __init__(
        self,
        store: StoreAdapter,
        clock: Clock = time.monotonic,
        *,
        metrics: Optional[CacheMetrics] = None,
        executor: Optional[Executor] = None,
        workers: int = 4,
        concurrency: int = 8,
    ):
        self.store = store
        self.clock = clock
        self.metrics = metrics or CacheMetrics()
        self.registry = MetadataRegistry()
        self.logger = get_logger("memo_cache.refresh")

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max(1, workers),
            thread_name_prefix="memo-cache-refresh",
        )
        self._concurrency = max(1, concurrency)
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._loop_lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._loop_thread: Optional[threading.Thread] = None
        self._closed = False
        self._futures: Set[Future] = set()

    def metadata_for(self, key: str, ttl_ms: float) -> KeyMetadata:
        """Fetch the key's metadata, creating it on first access."""
        return self.registry.get_or_create(key, ttl_ms)

    def store_result(self, key: str, result: Any, ttl_ms: float, cache_absence: bool) -> None:
        """Write a producer result to the store, honouring the absence rule."""
        slot = wrap(result, cache_absence)
        if slot is not None:
            self.store.set(key, slot, ttl_ms)

    def record_compute(self, metadata: KeyMetadata, ttl_ms: float) -> None:
        metadata.mark_refreshed(self.clock(), ttl_ms)

    def maybe_schedule(
        self,
        key: str,
        metadata: KeyMetadata,
        producer: Callable[[], Any],
        ttl_ms: float,
        cache_absence: bool,
    ) -> bool:
        """Submit a background refresh for key when its metadata calls for one."""
        if not metadata.needs_refresh(self.clock()):
            return False

        metadata.refresh_in_flight = True
        try:
            self._executor.submit(self.refresh_once, key, producer, ttl_ms, cache_absence)
        except RuntimeError as exc:
            return self._reject(key, metadata, str(exc))

        self.metrics.record_refresh("scheduled")
        self.logger.debug("Background refresh scheduled", key=key, ttl_ms=ttl_ms)
        return True

    def maybe_schedule_async(
        self,
        key: str,
        metadata: KeyMetadata,
        producer: Callable[[], Awaitable[Any]],
        ttl_ms: float,
        cache_absence: bool,
    ) -> bool:
        """Hand a background refresh for key to the refresh loop when its metadata calls for one."""
        if not metadata.needs_refresh(self.clock()):
            return False

        metadata.refresh_in_flight = True
        loop = self._refresh_loop()
        if loop is None:
            return self._reject(key, metadata, "refresh loop is shut down")

        coro = self.refresh_once_async(key, producer, ttl_ms, cache_absence)
        try:
            future = asyncio.run_coroutine_threadsafe(coro, loop)
        except RuntimeError as exc:
            coro.close()
            return self._reject(key, metadata, str(exc))
        self._futures.add(future)
        future.add_done_callback(self._futures.discard)

        self.metrics.record_refresh("scheduled")
        self.logger.debug("Background refresh scheduled", key=key, ttl_ms=ttl_ms)
        return True

    def refresh_once(
        self,
        key: str,
        producer: Callable[[], Any],
        ttl_ms: float,
        cache_absence: bool,
    ) -> None:
        """Recompute key in the background. Never raises."""
        metadata = self.registry.get(key)
        if metadata is None:
            return

        try:
            result = producer()
            self.store_result(key, result, ttl_ms, cache_absence)
            self.record_compute(metadata, ttl_ms)
            self.metrics.record_refresh("succeeded")
            self.logger.debug("Background refresh completed", key=key)
        except Exception as exc:
            self.metrics.record_refresh("failed")
            self.logger.warning("Background refresh failed", key=key, error=str(exc))
        finally:
            metadata.refresh_in_flight = False

    async def refresh_once_async(
        self,
        key: str,
        producer: Callable[[], Awaitable[Any]],
        ttl_ms: float,
        cache_absence: bool,
    ) -> None:
        """Recompute key from an async producer in the background. Never raises."""
        metadata = self.registry.get(key)
        if metadata is None:
            return

        try:
            async with self._refresh_semaphore():
                result = await producer()
            self.store_result(key, result, ttl_ms, cache_absence)
            self.record_compute(metadata, ttl_ms)
            self.metrics.record_refresh("succeeded")
            self.logger.debug("Background refresh completed", key=key)
        except Exception as exc:
            self.metrics.record_refresh("failed")
            self.logger.warning("Background refresh failed", key=key, error=str(exc))
        finally:
            metadata.refresh_in_flight = False

    def _reject(self, key: str, metadata: KeyMetadata, reason: str) -> bool:
        # Refresh workers already shut down; leave the key refreshable
        metadata.refresh_in_flight = False
        self.metrics.record_refresh("rejected")
        self.logger.error("Background refresh rejected", key=key, error=reason)
        return False

    def _refresh_semaphore(self) -> asyncio.Semaphore:
        """Semaphore bounding async refreshes. Only touched on the refresh loop."""
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self._concurrency)
        return self._semaphore

    def _refresh_loop(self) -> Optional[asyncio.AbstractEventLoop]:
        """Get the refresh loop, starting its thread on first use."""
        with self._loop_lock:
            if self._closed:
                return None
            if self._loop is None:
                loop = asyncio.new_event_loop()
                thread = threading.Thread(
                    target=self._run_refresh_loop,
                    args=(loop,),
                    name="memo-cache-refresh-loop",
                    daemon=True,
                )
                thread.start()
                self._loop, self._loop_thread = loop, thread
                self.logger.debug("Started refresh loop")
            return self._loop

    @staticmethod
    def _run_refresh_loop(loop: asyncio.AbstractEventLoop) -> None:
        asyncio.set_event_loop(loop)
        try:
            loop.run_forever()
        finally:
            loop.close()

    @property
    def pending_async(self) -> int:
        return len(self._futures)

    def join(self, timeout: Optional[float] = None) -> bool:
        """Block until scheduled async refreshes finish. Returns False on timeout."""
        pending = list(self._futures)
        if not pending:
            return True
        _, not_done = wait_futures(pending, timeout=timeout)
        return not not_done

    async def join_async(self) -> None:
        """Wait, without blocking the running loop, for scheduled async refreshes."""
        pending = list(self._futures)
        if pending:
            await asyncio.gather(
                *(asyncio.wrap_future(future) for future in pending),
                return_exceptions=True,
            )

    def reset(self) -> None:
        """Forget all key metadata."""
        self.registry.clear()

    def shutdown(self, wait: bool = True) -> None:
        """Stop the refresh loop, and the refresh pool if this coordinator created it.

        With ``wait`` set, refreshes already scheduled finish first.
        """
        with self._loop_lock:
            self._closed = True
            loop, thread = self._loop, self._loop_thread
            self._loop = self._loop_thread = None

        if loop is not None:
            if wait:
                self.join()
            loop.call_soon_threadsafe(loop.stop)
            if wait:
                thread.join()

        if self._owns_executor:
            self._executor.shutdown(wait=wait)
