"""
Decorator for memoizing function results through a cache manager.
"""

import asyncio
import functools
from typing import Any, Callable, Optional

from .caching.cache_manager import CacheManager
from .registry import get_cache_manager, resolve_ttl


def make_key(func: Callable, *args, **kwargs) -> str:
    """Generate cache key from the function identity and its arguments."""
    key_parts = [f"{func.__module__}.{func.__qualname__}"] + [str(arg) for arg in args]
    key_parts += [f"{name}={kwargs[name]}" for name in sorted(kwargs)]
    return ":".join(key_parts)


def cached(
    ttl_ms: Optional[float] = None,
    cache_absence: bool = False,
    refresh: bool = False,
    key_builder: Optional[Callable[..., str]] = None,
    manager: Optional[CacheManager] = None,
) -> Callable:
    """Memoize a sync or async function.

    Results are cached per argument tuple for ``ttl_ms``, which defaults to
    ``CacheSettings.default_ttl_ms`` when omitted. With ``refresh``
    set, hits close to expiry recompute in the background. The shared
    manager is used unless ``manager`` is given.
    """
    def decorator(func: Callable) -> Callable:
        def build_key(*args, **kwargs) -> str:
            if key_builder is not None:
                return key_builder(*args, **kwargs)
            return make_key(func, *args, **kwargs)

        if asyncio.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs) -> Any:
                cache = manager or get_cache_manager()
                key = build_key(*args, **kwargs)
                producer = functools.partial(func, *args, **kwargs)
                ttl = resolve_ttl(ttl_ms)
                if refresh:
                    return await cache.get_or_compute_with_refresh_async(key, producer, ttl, cache_absence)
                return await cache.get_or_compute_async(key, producer, ttl, cache_absence)

            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs) -> Any:
            cache = manager or get_cache_manager()
            key = build_key(*args, **kwargs)
            producer = functools.partial(func, *args, **kwargs)
            ttl = resolve_ttl(ttl_ms)
            if refresh:
                return cache.get_or_compute_with_refresh(key, producer, ttl, cache_absence)
            return cache.get_or_compute(key, producer, ttl, cache_absence)

        return sync_wrapper
    return decorator
