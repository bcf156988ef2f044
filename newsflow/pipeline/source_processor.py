"""
Source processing: fetch a window of a source's origin and store new items.

Deduplication is by origin URL, so re-running the same window is
idempotent: the second run finds every candidate already stored and
creates nothing. Inserts are not rolled back when a later step fails.
"""

import time

import structlog

from newsflow.articles.repository import ArticleRepository
from newsflow.articles.schemas import Article, resolve_source_id
from newsflow.backend.http_client import HTTPClientError
from newsflow.errors import (
    ErrorKind,
    OriginError,
    PipelineError,
    SourceNotFoundError,
    ValidationError,
    classify_http_error,
    store_errors,
)
from newsflow.ids import same_id
from newsflow.observability.metrics import get_metrics
from newsflow.pipeline.config import PipelineConfig
from newsflow.pipeline.execution_counter import ExecutionCounter
from newsflow.pipeline.feeds import CandidateArticle, FeedFetcher, SortOrder
from newsflow.pipeline.schemas import ItemFailure, ProcessResult
from newsflow.sources.schemas import Source, SourceValidation, ValidationStatus
from newsflow.sources.service import SourcesService

logger = structlog.get_logger(__name__)


class SourceProcessor:
    """Fetches, deduplicates and stores candidate articles for a source.

    Args:
        sources: Source registry (cached).
        articles: Article store.
        fetcher: Origin reader.
        counter: Execution counter used by ``process_next``.
        config: Pipeline configuration.
    """

    def __init__(
        self,
        sources: SourcesService,
        articles: ArticleRepository,
        fetcher: FeedFetcher,
        counter: ExecutionCounter | None = None,
        config: PipelineConfig | None = None,
    ) -> None:
        self._config = config or PipelineConfig()
        self._sources = sources
        self._articles = articles
        self._fetcher = fetcher
        self._counter = counter or ExecutionCounter(batch_size=self._config.batch_size)
        self._metrics = get_metrics()

    @property
    def counter(self) -> ExecutionCounter:
        return self._counter

    async def process_source(
        self,
        source_id: str,
        batch_size: int,
        offset: int = 0,
        sort_order: SortOrder = "desc",
    ) -> ProcessResult:
        """
        Process one window of a source.

        Raises:
            ValidationError: batch_size or offset out of range.
            SourceNotFoundError: The source does not exist.
            StoreError: The source registry could not be read or updated.
            OriginError: The origin was unreachable, timed out or is not a feed.
        """
        if batch_size <= 0:
            raise ValidationError(
                f"batch_size must be positive, got {batch_size}",
                errors={"batch_size": "must be > 0"},
            )
        if offset < 0:
            raise ValidationError(
                f"offset must not be negative, got {offset}",
                errors={"offset": "must be >= 0"},
            )

        with store_errors(f"Loading source {source_id}", source_id=str(source_id)):
            source = await self._sources.get_source(source_id)
        if source is None:
            raise SourceNotFoundError(
                f"Source {source_id} not found", details={"source_id": str(source_id)}
            )

        log = logger.bind(source_id=source.id, offset=offset, batch_size=batch_size)
        log.info("Processing source", url=source.fetch_url)

        started = time.perf_counter()
        try:
            batch = await self._fetcher.fetch(
                source, limit=batch_size, offset=offset, sort_order=sort_order
            )
        except OriginError as e:
            self._metrics.record_source_error(e.kind.value)
            log.warning("Origin fetch failed", error_kind=e.kind.value, error=e.message)
            if e.kind == ErrorKind.MALFORMED_FEED:
                await self._flag_malformed(source, e)
            raise
        fetch_latency = time.perf_counter() - started

        result = ProcessResult(
            source_id=source.id,
            offset=offset,
            created=0,
            existing=0,
            processed=len(batch.entries),
            validation=SourceValidation(status=ValidationStatus.PENDING),
        )

        seen_urls: set[str] = set()
        for candidate in batch.entries:
            if candidate.url in seen_urls:
                result.existing += 1
                continue
            seen_urls.add(candidate.url)
            try:
                article = await self._store_candidate(source, candidate)
            except HTTPClientError as e:
                kind = classify_http_error(e)
                result.failures.append(
                    ItemFailure(item_id=candidate.origin_id, kind=kind, message=str(e))
                )
                log.warning("Could not store candidate", url=candidate.url, error=str(e))
                continue
            if article is None:
                result.existing += 1
            else:
                result.created += 1
                result.articles.append(article)

        empty_runs = 0 if result.processed else source.consecutive_empty_runs + 1
        result.validation = self.validate(result.processed, empty_runs)

        with store_errors(f"Recording check of source {source.id}", source_id=source.id):
            await self._sources.repository.mark_checked(
                source.id, result.validation, consecutive_empty_runs=empty_runs
            )
        self._sources.invalidate_cache()

        self._metrics.record_source_processed(result.created, result.existing, fetch_latency)
        log.info(
            "Source processed",
            created=result.created,
            existing=result.existing,
            processed=result.processed,
            failed=len(result.failures),
            validation=result.validation.status.value,
        )
        return result

    async def process_next(self, source_id: str, sort_order: SortOrder = "desc") -> ProcessResult:
        """Manual "fetch more": process the next unseen window.

        The counter only advances when processing succeeds, so a failed
        run is retried from the same offset.
        """
        offset = await self._counter.next_offset(source_id)
        result = await self.process_source(
            source_id, self._counter.batch_size, offset=offset, sort_order=sort_order
        )
        await self._counter.record_execution(source_id)
        return result

    def validate(self, item_count: int, consecutive_empty_runs: int) -> SourceValidation:
        """Health verdict from the number of usable items in this run."""
        cfg = self._config
        if item_count == 0:
            if consecutive_empty_runs >= cfg.invalid_after_empty_runs:
                return SourceValidation(
                    status=ValidationStatus.INVALID,
                    message=(
                        f"No usable items in the last {consecutive_empty_runs} runs"
                    ),
                    suggestions=[
                        "Check that the URL still serves a feed",
                        "Try the site's RSS or Atom link instead of the home page",
                        "Reset the execution counter if older pages were exhausted",
                    ],
                )
            return SourceValidation(
                status=ValidationStatus.WARNING,
                message="No usable items in this run",
                suggestions=["Reset the execution counter to read the most recent items"],
            )
        if item_count < cfg.healthy_item_threshold:
            return SourceValidation(
                status=ValidationStatus.WARNING,
                message=f"Only {item_count} usable items returned",
            )
        return SourceValidation(status=ValidationStatus.VALID)

    async def _store_candidate(self, source: Source, candidate: CandidateArticle) -> Article | None:
        """Persist a candidate; None when it already exists for this source."""
        for existing in await self._articles.find_by_origin_url(candidate.url):
            owner = resolve_source_id(existing)
            if same_id(owner, source.id):
                return None
            if owner is None:
                # Stored without a source reference; claim it
                await self._articles.update(existing.id, {"news_source_id": source.id})
                logger.debug("Re-associated article", article_id=existing.id, source_id=source.id)
                return None
        return await self._articles.create(candidate.to_article_fields(source.id))

    async def _flag_malformed(self, source: Source, error: PipelineError) -> None:
        try:
            await self._sources.update(
                source.id,
                {
                    "validation_status": ValidationStatus.INVALID.value,
                    "validation_message": error.message,
                },
            )
        except HTTPClientError as e:
            logger.warning("Could not flag source as invalid", source_id=source.id, error=str(e))
