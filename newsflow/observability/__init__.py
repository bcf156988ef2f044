"""Observability: structured logging and Prometheus metrics."""

from newsflow.observability.logging import log_context, setup_logging
from newsflow.observability.metrics import MetricsCollector, get_metrics

__all__ = [
    "MetricsCollector",
    "get_metrics",
    "log_context",
    "setup_logging",
]
