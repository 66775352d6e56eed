"""
memo-cache: memoizing get-or-compute cache with TTL expiry and refresh-ahead.

Wrap slow producers (database lookups, remote calls) behind a key::

    from memo_cache import get_or_compute_with_refresh

    rates = get_or_compute_with_refresh("fx:rates", load_rates, ttl_ms=5000)

Hits inside the TTL return the cached value. Hits past 80% of a TTL above
500ms also recompute the value in the background, so hot keys rarely miss.
"""

from shared.config import CacheSettings, get_settings
from shared.errors import CacheLayerException, CacheTypeMismatchError, ValidationError
from shared.logging import configure_logging
from .caching import ABSENT, Absent, CacheManager, InMemoryExpiringStore, Present
from .decorators import cached
from .registry import (
    get_cache_manager,
    get_or_compute,
    get_or_compute_async,
    get_or_compute_with_refresh,
    get_or_compute_with_refresh_async,
    remove,
    reset_cache,
)

__all__ = [
    "ABSENT",
    "Absent",
    "CacheLayerException",
    "CacheManager",
    "CacheSettings",
    "CacheTypeMismatchError",
    "InMemoryExpiringStore",
    "Present",
    "ValidationError",
    "cached",
    "configure_logging",
    "get_cache_manager",
    "get_or_compute",
    "get_or_compute_async",
    "get_or_compute_with_refresh",
    "get_or_compute_with_refresh_async",
    "get_settings",
    "remove",
    "reset_cache",
]
