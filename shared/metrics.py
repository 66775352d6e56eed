"""
Shared metrics configuration for the memo-cache layer.
"""

from typing import Dict, Any, Optional

from prometheus_client import Counter, CollectorRegistry


class CacheMetrics:
    """Prometheus counters for cache lookups and background refreshes.

    Metrics are only registered when a registry is supplied, so several
    managers can coexist in one process without duplicate-series errors.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None, enabled: bool = True):
        self.registry = registry
        self.enabled = enabled
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up cache metrics."""
        self._metrics["memo_cache_hits_total"] = Counter(
            "memo_cache_hits_total",
            "Total cache hits",
            ["mode"],
            registry=self.registry
        )

        self._metrics["memo_cache_misses_total"] = Counter(
            "memo_cache_misses_total",
            "Total cache misses",
            ["mode"],
            registry=self.registry
        )

        self._metrics["memo_cache_refreshes_total"] = Counter(
            "memo_cache_refreshes_total",
            "Total background refresh events",
            ["outcome"],
            registry=self.registry
        )

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter metric."""
        if self.enabled and metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).inc()

    def record_hit(self, mode: str):
        """Record a cache hit for the plain or refresh lookup path."""
        self.increment_counter("memo_cache_hits_total", mode=mode)

    def record_miss(self, mode: str):
        """Record a cache miss for the plain or refresh lookup path."""
        self.increment_counter("memo_cache_misses_total", mode=mode)

    def record_refresh(self, outcome: str):
        """Record a background refresh transition."""
        self.increment_counter("memo_cache_refreshes_total", outcome=outcome)
