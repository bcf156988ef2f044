"""
Prometheus metrics for the article-automation pipeline.

Defines and exposes metrics for:
- Source processing (created / existing articles, fetch latency)
- AI rewrites and compensating credit restores
- Publishing outcomes by error kind
- Integrity validation findings

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    Counter,
    Histogram,
    start_http_server,
)

from newsflow.config.settings import get_settings

logger = logging.getLogger(__name__)

# Remote calls are slow: feeds can take minutes, rewrites even longer
LATENCY_BUCKETS = (0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the newsflow pipeline.

    Usage:
        metrics = get_metrics()
        metrics.start_server()

        metrics.record_source_processed(created=3, existing=7, latency=1.2)
        metrics.record_rewrite("failed")
    """

    def __init__(self):
        """Initialize Prometheus metrics."""

        # Source processing
        self.articles_created = Counter(
            "newsflow_articles_created_total",
            "Articles persisted for the first time by source processing",
        )
        self.articles_existing = Counter(
            "newsflow_articles_existing_total",
            "Candidate articles already present in the article store",
        )
        self.source_errors = Counter(
            "newsflow_source_errors_total",
            "Source processing failures",
            ["error_kind"],
        )
        self.origin_fetch_latency = Histogram(
            "newsflow_origin_fetch_latency_seconds",
            "Time to fetch a batch of candidates from a source origin",
            buckets=LATENCY_BUCKETS,
        )

        # Rewrites and credits
        self.rewrites = Counter(
            "newsflow_rewrites_total",
            "AI rewrite attempts by outcome",
            ["outcome"],  # success, failed, skipped
        )
        self.rewrite_latency = Histogram(
            "newsflow_rewrite_latency_seconds",
            "Time spent waiting on the AI rewrite service",
            buckets=LATENCY_BUCKETS,
        )
        self.credit_restores = Counter(
            "newsflow_credit_restores_total",
            "Compensating credit restores by outcome",
            ["outcome"],  # restored, failed
        )

        # Publishing
        self.publishes = Counter(
            "newsflow_publishes_total",
            "Publish attempts by outcome",
            ["outcome"],  # published, scheduled, or an error kind
        )
        self.publish_latency = Histogram(
            "newsflow_publish_latency_seconds",
            "Time spent waiting on the publish collaborator",
            buckets=LATENCY_BUCKETS,
        )
        self.site_fallbacks = Counter(
            "newsflow_site_fallbacks_total",
            "Publishes that fell back to the user's only site",
        )

        # Integrity
        self.integrity_issues = Counter(
            "newsflow_integrity_issues_total",
            "Integrity issues detected by kind",
            ["issue_kind"],
        )
        self.healed_cache_groups = Counter(
            "newsflow_healed_cache_groups_total",
            "Orphaned cached article groups removed",
        )

        # Monitoring runs
        self.monitoring_runs = Counter(
            "newsflow_monitoring_runs_total",
            "Monitoring executions by outcome",
            ["outcome"],  # completed, failed
        )

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        settings = get_settings()
        port = port or settings.metrics_port

        start_http_server(port, registry=REGISTRY)
        logger.info(f"Prometheus metrics server started on port {port}")

    # Convenience methods

    def record_source_processed(
        self,
        created: int,
        existing: int,
        latency: float | None = None,
    ) -> None:
        """Record the outcome of one ProcessSource call."""
        self.articles_created.inc(created)
        self.articles_existing.inc(existing)
        if latency is not None:
            self.origin_fetch_latency.observe(latency)

    def record_source_error(self, error_kind: str) -> None:
        """Record a failed ProcessSource call."""
        self.source_errors.labels(error_kind=error_kind).inc()

    def record_rewrite(self, outcome: str, latency: float | None = None) -> None:
        """Record one rewrite attempt."""
        self.rewrites.labels(outcome=outcome).inc()
        if latency is not None:
            self.rewrite_latency.observe(latency)

    def record_credit_restore(self, restored: bool) -> None:
        """Record a compensating restore attempt."""
        self.credit_restores.labels(outcome="restored" if restored else "failed").inc()

    def record_publish(self, outcome: str, latency: float | None = None) -> None:
        """Record one publish or schedule attempt."""
        self.publishes.labels(outcome=outcome).inc()
        if latency is not None:
            self.publish_latency.observe(latency)

    def record_integrity_issue(self, issue_kind: str) -> None:
        """Record a detected integrity issue."""
        self.integrity_issues.labels(issue_kind=issue_kind).inc()


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
