"""
Caching primitives: the expiring store, stored slot types, the
get-or-compute manager and refresh-ahead coordination.
"""

from .cache_manager import CacheManager, DEFAULT_TTL_MS
from .entry import ABSENT, Absent, Present
from .refresh import (
    KeyMetadata,
    NEVER_REFRESHED,
    REFRESH_MIN_TTL_MS,
    REFRESH_THRESHOLD,
    RefreshCoordinator,
)
from .store import CacheEntry, ExpiringStore, InMemoryExpiringStore, StoreAdapter

__all__ = [
    "ABSENT",
    "Absent",
    "CacheEntry",
    "CacheManager",
    "DEFAULT_TTL_MS",
    "ExpiringStore",
    "InMemoryExpiringStore",
    "KeyMetadata",
    "NEVER_REFRESHED",
    "Present",
    "REFRESH_MIN_TTL_MS",
    "REFRESH_THRESHOLD",
    "RefreshCoordinator",
    "StoreAdapter",
]
