"""Tests for Prometheus metrics helpers."""

from prometheus_client import REGISTRY

from taskhub.config import Settings
from taskhub.observability.metrics import (
    MetricsRegistry,
    get_metrics,
    record_batch,
    record_cache_hit,
    record_invalidation,
)


def sample(name: str, labels: dict[str, str]) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestMetrics:
    """Test that helpers update the registered collectors."""

    def test_registry_is_singleton(self) -> None:
        assert get_metrics() is get_metrics()

    def test_cache_hit_counter(self) -> None:
        before = sample("taskhub_cache_hits_total", {"namespace": "metrics-test"})
        record_cache_hit("metrics-test")
        assert sample("taskhub_cache_hits_total", {"namespace": "metrics-test"}) == before + 1

    def test_batch_histogram(self) -> None:
        labels = {"loader": "metrics_test_loader"}
        before = sample("taskhub_loader_batch_size_count", labels)
        record_batch("metrics_test_loader", 7)
        assert sample("taskhub_loader_batch_size_count", labels) == before + 1

    def test_invalidation_counters(self) -> None:
        labels = {"entity": "metrics-test"}
        before_deleted = sample("taskhub_invalidation_deletions_total", labels)
        before_failed = sample("taskhub_invalidation_failures_total", labels)

        record_invalidation("metrics-test", deleted=3, failed=1)

        assert sample("taskhub_invalidation_deletions_total", labels) == before_deleted + 3
        assert sample("taskhub_invalidation_failures_total", labels) == before_failed + 1

    def test_disabled_by_given_settings(self) -> None:
        """ENABLE_METRICS on the settings passed in wins over the module default."""
        registry = MetricsRegistry()
        registry.initialize(Settings(_env_file=None, ENABLE_METRICS=False))

        assert registry.cache_hits_total is None
        assert registry.invalidation_failures_total is None
