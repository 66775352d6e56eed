"""
Expiring key-value store used by the cache manager.

The manager only depends on the ExpiringStore protocol; the bundled
implementation keeps entries in process memory.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from cachetools import TLRUCache

from .entry import Slot

Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheEntry:
    """A stored slot with its absolute expiry on the store clock (seconds)."""

    key: str
    value: Any
    expire_at: float


class ExpiringStore(Protocol):
    """String-keyed mapping whose entries carry an absolute expiry."""

    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any, expire_at: float) -> None:
        ...

    def remove(self, key: str) -> None:
        ...

    def clear(self) -> None:
        ...

    def __len__(self) -> int:
        ...


def _entry_expiry(key: str, entry: CacheEntry, now: float) -> float:
    return entry.expire_at


class InMemoryExpiringStore:
    """Thread-safe in-process store; expired entries read as missing.

    Once ``max_entries`` is reached the least recently used entry is evicted.
    """

    def __init__(self, max_entries: int = 100_000, clock: Clock = time.monotonic):
        self._lock = threading.Lock()
        self._cache: TLRUCache = TLRUCache(maxsize=max_entries, ttu=_entry_expiry, timer=clock)

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._cache.get(key)
        return entry.value if entry is not None else None

    def set(self, key: str, value: Any, expire_at: float) -> None:
        with self._lock:
            self._cache[key] = CacheEntry(key=key, value=value, expire_at=expire_at)

    def remove(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            self._cache.expire()
            return len(self._cache)


class StoreAdapter:
    """Translates TTL-based writes into absolute expiries on the cache clock."""

    def __init__(self, store: ExpiringStore, clock: Clock = time.monotonic):
        self.store = store
        self.clock = clock

    def get(self, key: str) -> Optional[Slot]:
        """Return the live slot for key, or None when missing or expired."""
        return self.store.get(key)

    def set(self, key: str, slot: Slot, ttl_ms: float) -> None:
        """Create or replace key, expiring ttl_ms from now."""
        self.store.set(key, slot, self.clock() + ttl_ms / 1000.0)

    def remove(self, key: str) -> None:
        self.store.remove(key)

    def clear(self) -> None:
        self.store.clear()

    def __len__(self) -> int:
        return len(self.store)
