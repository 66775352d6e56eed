"""
Shared utilities for the memo-cache layer.

This package aggregates the ambient building blocks used by the cache:

- config: Cache settings via pydantic-settings
- logging: Structured logging via structlog
- metrics: Prometheus counters for hits, misses and refreshes
- errors: Canonical exception types

Do not import from memo_cache into shared/.
"""
