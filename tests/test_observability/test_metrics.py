"""Tests for the Prometheus metrics collector."""

from prometheus_client import REGISTRY

from newsflow.observability.metrics import get_metrics


def _value(name: str, labels: dict | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


def test_get_metrics_is_singleton():
    assert get_metrics() is get_metrics()


def test_record_source_processed():
    metrics = get_metrics()
    before = _value("newsflow_articles_created_total")

    metrics.record_source_processed(created=3, existing=1, latency=0.5)

    assert _value("newsflow_articles_created_total") == before + 3


def test_record_credit_restore_outcomes():
    metrics = get_metrics()
    restored = _value("newsflow_credit_restores_total", {"outcome": "restored"})
    failed = _value("newsflow_credit_restores_total", {"outcome": "failed"})

    metrics.record_credit_restore(True)
    metrics.record_credit_restore(False)

    assert _value("newsflow_credit_restores_total", {"outcome": "restored"}) == restored + 1
    assert _value("newsflow_credit_restores_total", {"outcome": "failed"}) == failed + 1
