"""
Monitoring execution: process a monitoring config's source, then rewrite
and publish the new articles according to the config's flags.

There is no scheduler loop here. ``run_due`` is the entry point an
external trigger (cron or similar) calls; it executes every active config
whose next run is due, one after another.
"""

import uuid
from datetime import datetime, timezone

import structlog

from newsflow.articles.schemas import Article
from newsflow.credits.ledger import CreditLedger
from newsflow.backend.http_client import HTTPClientError
from newsflow.credits.schemas import CreditType
from newsflow.errors import (
    ErrorKind,
    InsufficientCreditsError,
    PipelineError,
    StoreError,
    store_errors,
)
from newsflow.monitoring.repository import MonitoringRepository
from newsflow.monitoring.schedule import due_configs
from newsflow.monitoring.schemas import MonitoringConfig
from newsflow.observability.logging import log_context
from newsflow.observability.metrics import get_metrics
from newsflow.pipeline.publish import PublishOrchestrator
from newsflow.pipeline.rewrite import CREDITS_PER_REWRITE, RewriteOrchestrator
from newsflow.pipeline.schemas import ItemFailure, MonitoringRunResult
from newsflow.pipeline.source_processor import SourceProcessor
from newsflow.sites.repository import SitesRepository

logger = structlog.get_logger(__name__)


class MonitoringRunner:
    """Runs monitoring configs end to end.

    Args:
        processor: Source processor for the fetch step.
        rewriter: Rewrite orchestrator.
        publisher: Publish orchestrator.
        monitoring: Monitoring registry (lookup and last-check stamping).
        sites: Site registry, loaded once per run for publishing.
        ledger: Credit ledger for the up-front batch check.
    """

    def __init__(
        self,
        processor: SourceProcessor,
        rewriter: RewriteOrchestrator,
        publisher: PublishOrchestrator,
        monitoring: MonitoringRepository,
        sites: SitesRepository,
        ledger: CreditLedger,
    ) -> None:
        self._processor = processor
        self._rewriter = rewriter
        self._publisher = publisher
        self._monitoring = monitoring
        self._sites = sites
        self._ledger = ledger
        self._metrics = get_metrics()

    async def execute(
        self,
        monitoring: MonitoringConfig | str,
        user_id: str,
    ) -> MonitoringRunResult:
        """
        Execute one monitoring config.

        Whole-run failures (source unreachable, not enough credits for the
        batch, a backend store call failing) are returned in ``result.error``
        rather than raised, so ``run_due`` can continue with the next config.
        Only an unknown ``monitoring`` id raises.
        """
        if not isinstance(monitoring, MonitoringConfig):
            with store_errors(f"Loading monitoring {monitoring}", monitoring_id=str(monitoring)):
                config = await self._monitoring.get(monitoring)
            if config is None:
                raise PipelineError(
                    f"Monitoring {monitoring} not found",
                    kind=ErrorKind.NOT_FOUND,
                    details={"monitoring_id": str(monitoring)},
                )
        else:
            config = monitoring

        result = MonitoringRunResult(monitoring_id=config.id)
        with log_context(run_id=uuid.uuid4().hex[:12], monitoring_id=config.id):
            try:
                await self._execute(config, user_id, result)
            except (PipelineError, HTTPClientError) as e:
                error = _as_pipeline_error(e, f"Monitoring {config.id}")
                logger.warning(
                    "Monitoring run failed", error_kind=error.kind.value, error=error.message
                )
                # Keep the first failure of the run
                result.error = result.error or error

        self._metrics.monitoring_runs.labels(
            outcome="completed" if result.succeeded else "failed"
        ).inc()
        return result

    async def _execute(
        self,
        config: MonitoringConfig,
        user_id: str,
        result: MonitoringRunResult,
    ) -> None:
        logger.info(
            "Executing monitoring",
            source_id=config.news_source_id,
            site_id=config.site_id,
            rewrite=config.rewrite_content,
            auto_publish=config.auto_publish,
            limit=config.article_limit,
        )

        if not config.news_source_id:
            result.error = PipelineError(
                f"Monitoring {config.id} has no source",
                kind=ErrorKind.SOURCE_NOT_FOUND,
            )
            return

        try:
            result.process = await self._processor.process_source(
                config.news_source_id, batch_size=config.article_limit, offset=0
            )
        except PipelineError as e:
            logger.warning("Monitoring source failed", error_kind=e.kind.value, error=e.message)
            result.error = e
            return

        result.selected = [
            a for a in result.process.articles
            if config.matches_keywords(a.title, a.original_content)
        ][: config.article_limit]

        if result.selected:
            try:
                await self._rewrite_and_publish(config, user_id, result)
            except (PipelineError, HTTPClientError) as e:
                result.error = _as_pipeline_error(e, f"Monitoring {config.id}")
                logger.warning(
                    "Monitoring run aborted",
                    error_kind=result.error.kind.value,
                    error=result.error.message,
                )
        else:
            logger.info("No new articles for monitoring")

        with store_errors(f"Recording check of monitoring {config.id}", monitoring_id=config.id):
            await self._monitoring.mark_checked(config.id)
        logger.info("Monitoring finished", summary=result.summary)

    async def _rewrite_and_publish(
        self,
        config: MonitoringConfig,
        user_id: str,
        result: MonitoringRunResult,
    ) -> None:
        to_publish: list[Article] = result.selected

        if config.rewrite_content:
            needed = len(result.selected) * CREDITS_PER_REWRITE
            check = await self._ledger.check_credits(user_id, CreditType.ARTICLES, needed)
            if not check.has_credits:
                result.error = InsufficientCreditsError(
                    f"Monitoring {config.id} needs {needed} credits, "
                    f"{check.current_credits or 0} available",
                    required=needed,
                    available=check.current_credits,
                )
                logger.warning("Not enough credits for batch", needed=needed)
                return
            result.rewrite = await self._rewriter.rewrite_batch(result.selected, user_id)
            to_publish = result.rewrite.rewritten

        if not config.auto_publish or not to_publish:
            return

        with store_errors("Loading sites"):
            sites = await self._sites.list_sites()
        for article in to_publish:
            try:
                result.published.append(
                    await self._publisher.publish(article, sites=sites, monitoring=config)
                )
            except (PipelineError, HTTPClientError) as e:
                error = _as_pipeline_error(e, f"Publishing article {article.id}")
                result.publish_failures.append(ItemFailure.from_error(article.id, error))

    async def run_due(
        self,
        user_id: str,
        now: datetime | None = None,
    ) -> list[MonitoringRunResult]:
        """Execute every active config whose next run is due, in order."""
        now = now or datetime.now(timezone.utc)
        with store_errors("Loading monitoring configs"):
            configs = await self._monitoring.list_configs(active_only=True)
        due = due_configs(configs, now)
        logger.info("Running due monitoring configs", due=len(due), active=len(configs))

        results = []
        for config in due:
            results.append(await self.execute(config, user_id))
        return results


def _as_pipeline_error(exc: Exception, message: str) -> PipelineError:
    if isinstance(exc, PipelineError):
        return exc
    return StoreError.from_http(exc, message)
