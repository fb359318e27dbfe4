"""Prometheus metrics for taskhub.

Provides metrics collection for the data-access layer:
- Cache metrics (hits, misses, contained errors, latency)
- Batch loader metrics (keys per batch)
- Origin store metrics (queries issued)
- Invalidation metrics (deleted entries, failed deletions)

Usage:
    from taskhub.observability.metrics import record_cache_hit

    record_cache_hit("user")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from prometheus_client import Counter, Histogram

from taskhub.config import Settings
from taskhub.config import settings as default_settings

logger = logging.getLogger(__name__)


@dataclass
class MetricsRegistry:
    """Registry for Prometheus metrics."""

    # Cache metrics
    cache_hits_total: Any = None
    cache_misses_total: Any = None
    cache_errors_total: Any = None
    cache_operation_duration_seconds: Any = None

    # Loader / origin metrics
    loader_batch_size: Any = None
    origin_queries_total: Any = None

    # Invalidation metrics
    invalidation_deletions_total: Any = None
    invalidation_failures_total: Any = None

    # Internal state
    _initialized: bool = field(default=False, repr=False)

    def initialize(self, settings: Settings | None = None) -> None:
        """Initialize Prometheus metrics.

        Only the first call counts; later calls keep whatever the first one set up.
        """
        if self._initialized:
            return

        s = settings or default_settings
        if not s.enable_metrics:
            logger.info("Metrics are disabled")
            self._initialized = True
            return

        self.cache_hits_total = Counter(
            "taskhub_cache_hits_total",
            "Cache hits",
            ["namespace"],
        )

        self.cache_misses_total = Counter(
            "taskhub_cache_misses_total",
            "Cache misses",
            ["namespace"],
        )

        self.cache_errors_total = Counter(
            "taskhub_cache_errors_total",
            "Cache operations that failed and were contained",
            ["operation"],
        )

        self.cache_operation_duration_seconds = Histogram(
            "taskhub_cache_operation_duration_seconds",
            "Cache operation latency in seconds",
            ["operation"],
            buckets=(0.0001, 0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1),
        )

        self.loader_batch_size = Histogram(
            "taskhub_loader_batch_size",
            "Keys dispatched per loader batch",
            ["loader"],
            buckets=(1, 2, 5, 10, 25, 50, 100, 250),
        )

        self.origin_queries_total = Counter(
            "taskhub_origin_queries_total",
            "Queries issued against the origin store",
            ["source"],
        )

        self.invalidation_deletions_total = Counter(
            "taskhub_invalidation_deletions_total",
            "Cache entries removed by invalidation",
            ["entity"],
        )

        self.invalidation_failures_total = Counter(
            "taskhub_invalidation_failures_total",
            "Invalidation targets that could not be deleted",
            ["entity"],
        )

        self._initialized = True
        logger.info("Prometheus metrics initialized")

# Global metrics registry
metrics_registry = MetricsRegistry()


def get_metrics(settings: Settings | None = None) -> MetricsRegistry:
    """Get the global metrics registry.

    Initializes metrics on first access, from settings if given.
    """
    if not metrics_registry._initialized:
        metrics_registry.initialize(settings)
    return metrics_registry


def record_cache_hit(namespace: str) -> None:
    """Record cache hit."""
    metrics = get_metrics()
    if metrics.cache_hits_total:
        metrics.cache_hits_total.labels(namespace=namespace).inc()


def record_cache_miss(namespace: str) -> None:
    """Record cache miss."""
    metrics = get_metrics()
    if metrics.cache_misses_total:
        metrics.cache_misses_total.labels(namespace=namespace).inc()


def record_cache_error(operation: str) -> None:
    """Record a contained cache failure."""
    metrics = get_metrics()
    if metrics.cache_errors_total:
        metrics.cache_errors_total.labels(operation=operation).inc()


def record_cache_operation(operation: str, duration: float) -> None:
    """Record cache operation duration.

    Args:
        operation: Cache operation (get, set, mget, delete, scan_delete)
        duration: Operation duration in seconds
    """
    metrics = get_metrics()
    if metrics.cache_operation_duration_seconds:
        metrics.cache_operation_duration_seconds.labels(operation=operation).observe(duration)


def record_batch(loader: str, size: int) -> None:
    metrics = get_metrics()
    if metrics.loader_batch_size:
        metrics.loader_batch_size.labels(loader=loader).observe(size)


def record_origin_query(source: str) -> None:
    metrics = get_metrics()
    if metrics.origin_queries_total:
        metrics.origin_queries_total.labels(source=source).inc()


def record_invalidation(entity: str, deleted: int, failed: int) -> None:
    """Record the outcome of one invalidation pass."""
    metrics = get_metrics()
    if metrics.invalidation_deletions_total and deleted:
        metrics.invalidation_deletions_total.labels(entity=entity).inc(deleted)
    if metrics.invalidation_failures_total and failed:
        metrics.invalidation_failures_total.labels(entity=entity).inc(failed)
