"""Observability module for taskhub.

Provides metrics and structured logging:
- Prometheus metrics for cache, loaders and invalidation
- JSON structured logging with operation IDs
"""

from taskhub.observability.logging import (
    LogContext,
    actor_id_var,
    configure_logging,
    operation_id_var,
)
from taskhub.observability.metrics import get_metrics, metrics_registry

__all__ = [
    # Logging
    "configure_logging",
    "LogContext",
    "operation_id_var",
    "actor_id_var",
    # Metrics
    "metrics_registry",
    "get_metrics",
]
