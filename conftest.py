"""Pytest configuration and shared fixtures."""

from concurrent.futures import Executor, Future
from typing import Any, Callable, List, Tuple

import pytest
from prometheus_client import CollectorRegistry

from memo_cache import registry as cache_registry
from memo_cache.caching import CacheManager
from shared.metrics import CacheMetrics


class FakeClock:
    """Manually advanced monotonic clock.

    Time is kept in whole milliseconds so expiry boundaries compare exactly.
    """

    def __init__(self, start_ms: int = 1_000_000):
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms / 1000.0

    def advance_ms(self, milliseconds: int) -> None:
        self.now_ms += milliseconds


class DeferredExecutor(Executor):
    """Executor that queues submissions until run_all() is called."""

    def __init__(self):
        self.pending: List[Tuple[Future, Callable, tuple, dict]] = []
        self.submitted = 0
        self._shutdown = False

    def submit(self, fn: Callable, /, *args: Any, **kwargs: Any) -> Future:
        if self._shutdown:
            raise RuntimeError("cannot schedule new futures after shutdown")
        future: Future = Future()
        self.pending.append((future, fn, args, kwargs))
        self.submitted += 1
        return future

    def run_all(self) -> None:
        while self.pending:
            future, fn, args, kwargs = self.pending.pop(0)
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as exc:
                future.set_exception(exc)

    def shutdown(self, wait: bool = True, *, cancel_futures: bool = False) -> None:
        self._shutdown = True


class InlineExecutor(Executor):
    """Executor that runs submissions immediately on the caller's thread."""

    def submit(self, fn: Callable, /, *args: Any, **kwargs: Any) -> Future:
        future: Future = Future()
        future.set_result(fn(*args, **kwargs))
        return future


class CountingProducer:
    """Producer returning queued results and counting invocations."""

    def __init__(self, *results: Any):
        self.results = list(results)
        self.calls = 0

    def _next(self) -> Any:
        self.calls += 1
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result

    def __call__(self) -> Any:
        return self._next()

    async def async_call(self) -> Any:
        return self._next()


@pytest.fixture
def clock():
    """Fake clock shared by the store and refresh metadata."""
    return FakeClock()


@pytest.fixture
def deferred_executor():
    """Refresh pool whose work runs only when the test says so."""
    return DeferredExecutor()


@pytest.fixture
def inline_executor():
    """Refresh pool that runs work before submit() returns."""
    return InlineExecutor()


@pytest.fixture
def metrics_registry():
    """Isolated Prometheus registry."""
    return CollectorRegistry()


@pytest.fixture
def manager(clock, deferred_executor, metrics_registry):
    """CacheManager on a fake clock with a deferred refresh pool."""
    cache = CacheManager(
        clock=clock,
        executor=deferred_executor,
        metrics=CacheMetrics(registry=metrics_registry),
    )
    yield cache
    cache.shutdown()


@pytest.fixture
def shared_manager(manager):
    """Install the test manager as the process-wide cache."""
    previous = cache_registry._set_cache_manager(manager)
    yield manager
    cache_registry._set_cache_manager(previous)


@pytest.fixture
def counting_producer():
    """Factory for CountingProducer instances."""
    return CountingProducer
