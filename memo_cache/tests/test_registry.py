"""
Unit tests for the process-wide cache functions and settings.
"""

import pytest

import memo_cache
from memo_cache import registry as cache_registry
from shared.config import CacheSettings


class TestSharedCache:
    """Test cases for module-level cache functions."""

    def test_get_or_compute_uses_shared_manager(self, shared_manager, counting_producer):
        """Module functions delegate to the installed manager."""
        producer = counting_producer("value")

        assert memo_cache.get_or_compute("k", producer) == "value"
        assert memo_cache.get_or_compute("k", producer) == "value"

        assert producer.calls == 1
        assert shared_manager.store.get("k") is not None

    def test_default_ttl_comes_from_settings(self, shared_manager, clock, counting_producer):
        """Omitted ttl_ms falls back to CacheSettings.default_ttl_ms."""
        producer = counting_producer("a", "b")
        with pytest.MonkeyPatch.context() as mp:
            mp.setattr(cache_registry, "get_settings", lambda: CacheSettings(default_ttl_ms=2000))
            memo_cache.get_or_compute("k", producer)

            clock.advance_ms(1500)
            assert memo_cache.get_or_compute("k", producer) == "a"

            clock.advance_ms(500)
            assert memo_cache.get_or_compute("k", producer) == "b"

    def test_remove_then_get_recomputes(self, shared_manager, counting_producer):
        """remove() on the shared cache forces the next call to compute."""
        producer = counting_producer("a", "b")
        memo_cache.get_or_compute("k", producer, ttl_ms=1000)

        memo_cache.remove("k")

        assert memo_cache.get_or_compute("k", producer, ttl_ms=1000) == "b"

    def test_refresh_variant(self, shared_manager, clock, deferred_executor, counting_producer):
        """Module-level refresh variant schedules through the shared manager."""
        producer = counting_producer("a", "b")
        memo_cache.get_or_compute_with_refresh("k", producer, ttl_ms=1000)

        clock.advance_ms(850)

        assert memo_cache.get_or_compute_with_refresh("k", producer, ttl_ms=1000) == "a"
        assert deferred_executor.submitted == 1

    @pytest.mark.asyncio
    async def test_async_variants(self, shared_manager, clock, counting_producer):
        """Module-level async functions delegate to the shared manager."""
        producer = counting_producer("a", "b")

        assert await memo_cache.get_or_compute_async("plain", producer.async_call, ttl_ms=1000) == "a"
        assert await memo_cache.get_or_compute_with_refresh_async("refresh", producer.async_call, ttl_ms=1000) == "b"
        assert producer.calls == 2

    def test_reset_cache(self, shared_manager, counting_producer):
        """reset_cache() drops entries and metadata of the shared manager."""
        producer = counting_producer("a", "b")
        memo_cache.get_or_compute_with_refresh("k", producer, ttl_ms=1000)

        memo_cache.reset_cache()

        assert shared_manager.get_stats()["entries"] == 0
        assert shared_manager.get_stats()["tracked_keys"] == 0
        assert memo_cache.get_or_compute("k", producer, ttl_ms=1000) == "b"

    def test_get_cache_manager_builds_from_settings(self):
        """The lazily built manager is reused across calls."""
        previous = cache_registry._set_cache_manager(None)
        try:
            with pytest.MonkeyPatch.context() as mp:
                mp.setattr(cache_registry, "get_settings", lambda: CacheSettings(refresh_workers=2))
                first = cache_registry.get_cache_manager()
                second = cache_registry.get_cache_manager()

            assert first is second
            assert first.refresher._executor._max_workers == 2
            first.shutdown()
        finally:
            cache_registry._set_cache_manager(previous)


class TestCacheSettings:
    """Test cases for CacheSettings."""

    def test_defaults(self, monkeypatch):
        """Defaults match the documented cache behaviour."""
        for name in ("DEFAULT_TTL_MS", "MAX_ENTRIES", "REFRESH_WORKERS", "REFRESH_CONCURRENCY"):
            monkeypatch.delenv(f"MEMO_CACHE_{name}", raising=False)

        settings = CacheSettings(_env_file=None)

        assert settings.default_ttl_ms == 1000
        assert settings.max_entries == 100_000
        assert settings.refresh_workers == 4
        assert settings.refresh_concurrency == 8
        assert settings.metrics_enabled is True

    def test_environment_overrides(self, monkeypatch):
        """MEMO_CACHE_* variables override defaults."""
        monkeypatch.setenv("MEMO_CACHE_DEFAULT_TTL_MS", "2500")
        monkeypatch.setenv("MEMO_CACHE_REFRESH_WORKERS", "16")
        monkeypatch.setenv("MEMO_CACHE_METRICS_ENABLED", "false")

        settings = CacheSettings(_env_file=None)

        assert settings.default_ttl_ms == 2500
        assert settings.refresh_workers == 16
        assert settings.metrics_enabled is False

    def test_invalid_ttl_rejected(self):
        """Non-positive default TTLs fail validation."""
        with pytest.raises(ValueError):
            CacheSettings(_env_file=None, default_ttl_ms=0)
