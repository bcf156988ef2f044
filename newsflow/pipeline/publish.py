"""
Publish orchestration: destination resolution, precondition checks and
error classification around the publish collaborator.

Destination sites are resolved in a fixed order, first match wins:

1. the site passed explicitly by the caller
2. the site of the article's monitoring config
3. the target site configured on the article's source
4. the user's only site, if they have exactly one (with a warning)

A reference in steps 1-3 that points at a site which no longer exists
stops resolution with ``destination-unresolved``; it never falls through
to the single-site fallback.
"""

import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog

from newsflow.articles.repository import ArticleRepository
from newsflow.articles.schemas import Article, resolve_source_id
from newsflow.backend.client import BackendClient, is_success, unwrap_data
from newsflow.backend.http_client import HTTPClientError
from newsflow.errors import (
    DestinationError,
    ErrorKind,
    PublishError,
    ScheduleError,
    StoreError,
    classify_http_error,
    store_errors,
)
from newsflow.ids import find_by_id, normalize_id
from newsflow.monitoring.repository import MonitoringRepository
from newsflow.monitoring.schemas import MonitoringConfig
from newsflow.observability.metrics import get_metrics
from newsflow.pipeline.config import PipelineConfig
from newsflow.pipeline.schemas import (
    PublishResult,
    ResolutionStrategy,
    ScheduleResult,
    SiteResolution,
)
from newsflow.sites.repository import SitesRepository
from newsflow.sites.schemas import Site
from newsflow.sources.schemas import Source
from newsflow.sources.service import SourcesService

logger = structlog.get_logger(__name__)


@dataclass
class PublishMetadata:
    """Author, categories and tags sent with a publish."""

    author_id: str | None = None
    categories: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)

    @classmethod
    def resolve(
        cls,
        monitoring: MonitoringConfig | None,
        source: Source | None,
    ) -> "PublishMetadata":
        """Monitoring overrides win over source defaults, field by field."""
        author = monitoring.author_id if monitoring else None
        categories = monitoring.publish_categories if monitoring else []
        tags = list(monitoring.tags) if monitoring else []
        if source is not None:
            author = author or source.default_author_id
            categories = categories or list(source.default_categories)
            tags = tags or list(source.default_tags)
        return cls(author_id=author, categories=categories, tags=tags)


@dataclass
class _Context:
    """Everything resolution looked up, reused for metadata."""

    article: Article
    sites: list[Site]
    monitoring: MonitoringConfig | None = None
    source: Source | None = None


SiteLookup = Callable[["PublishOrchestrator", _Context, str | None], Awaitable[str | None]]


class PublishOrchestrator:
    """Resolves a destination and publishes or schedules an article.

    Args:
        backend: Client for the publish and schedule collaborators.
        sites: Destination site registry.
        sources: Source registry, for the source target site and defaults.
        monitoring: Monitoring registry, for the monitoring site and overrides.
        articles: Article store, updated after a successful publish.
        config: Pipeline configuration (publish timeout).
    """

    def __init__(
        self,
        backend: BackendClient,
        sites: SitesRepository,
        sources: SourcesService,
        monitoring: MonitoringRepository,
        articles: ArticleRepository,
        config: PipelineConfig | None = None,
    ) -> None:
        self._backend = backend
        self._sites = sites
        self._sources = sources
        self._monitoring = monitoring
        self._articles = articles
        self._config = config or PipelineConfig()
        self._metrics = get_metrics()

    # ── Site resolution ──────────────────────────────────────────

    async def _load_sites(self, sites: Sequence[Site] | None) -> list[Site]:
        if sites is not None:
            return list(sites)
        with store_errors("Loading sites"):
            return await self._sites.list_sites()

    async def _explicit_site(self, ctx: _Context, explicit_site_id: str | None) -> str | None:
        return normalize_id(explicit_site_id)

    async def _monitoring_site(self, ctx: _Context, _: str | None) -> str | None:
        monitoring_id = ctx.article.monitoring_id
        if ctx.monitoring is None and monitoring_id:
            ctx.monitoring = await self._monitoring.get(monitoring_id)
        if ctx.monitoring is not None:
            return ctx.monitoring.site_id
        embedded = (ctx.article.news_monitoring or {}).get("site") or {}
        return normalize_id(embedded.get("id")) if isinstance(embedded, dict) else None

    async def _source_target_site(self, ctx: _Context, _: str | None) -> str | None:
        if ctx.source is None:
            monitoring_sources = {}
            if ctx.monitoring is not None and ctx.monitoring.news_source_id:
                monitoring_sources[ctx.monitoring.id] = ctx.monitoring.news_source_id
            source_id = resolve_source_id(ctx.article, monitoring_sources)
            if source_id:
                ctx.source = await self._sources.get_source(source_id)
        return ctx.source.target_site_id if ctx.source else None

    STRATEGIES: tuple[tuple[ResolutionStrategy, SiteLookup], ...] = (
        (ResolutionStrategy.EXPLICIT, _explicit_site),
        (ResolutionStrategy.MONITORING, _monitoring_site),
        (ResolutionStrategy.SOURCE_TARGET, _source_target_site),
    )

    async def resolve_site(
        self,
        article: Article,
        explicit_site_id: str | None = None,
        sites: Sequence[Site] | None = None,
        monitoring: MonitoringConfig | None = None,
    ) -> SiteResolution:
        """
        Pick the destination site for ``article``.

        Raises:
            DestinationError: No rule produced a site, or a rule referenced
                a site the user no longer has.
        """
        ctx = _Context(
            article=article,
            sites=await self._load_sites(sites),
            monitoring=monitoring,
        )
        return await self._resolve(ctx, explicit_site_id)

    async def _resolve(self, ctx: _Context, explicit_site_id: str | None) -> SiteResolution:
        for strategy, lookup in self.STRATEGIES:
            with store_errors(
                f"Resolving {strategy.value} site for article {ctx.article.id}",
                article_id=ctx.article.id,
            ):
                site_id = await lookup(self, ctx, explicit_site_id)
            if not site_id:
                continue
            site = find_by_id(ctx.sites, site_id)
            if site is None:
                raise DestinationError(
                    f"Site {site_id} ({strategy.value}) for article {ctx.article.id} "
                    "does not exist",
                    details={
                        "article_id": ctx.article.id,
                        "site_id": site_id,
                        "strategy": strategy.value,
                    },
                )
            return SiteResolution(site=site, strategy=strategy)

        if len(ctx.sites) == 1:
            site = ctx.sites[0]
            warning = (
                f"No destination configured for article {ctx.article.id}; using the only "
                f"site '{site.label}'. Set a target site on the source to avoid this."
            )
            logger.warning(
                "Falling back to single site", article_id=ctx.article.id, site_id=site.id
            )
            self._metrics.site_fallbacks.inc()
            return SiteResolution(
                site=site, strategy=ResolutionStrategy.SINGLE_SITE_FALLBACK, warning=warning
            )

        raise DestinationError(
            f"No destination site for article {ctx.article.id} "
            f"({len(ctx.sites)} sites available, none configured)",
            details={"article_id": ctx.article.id, "site_count": len(ctx.sites)},
        )

    @staticmethod
    def require_credentials(site: Site) -> None:
        """Raise ``incomplete-destination-config`` if any credential is blank."""
        missing = site.missing_credentials()
        if missing:
            raise DestinationError(
                f"Site '{site.label}' is missing {', '.join(missing)}",
                kind=ErrorKind.INCOMPLETE_DESTINATION_CONFIG,
                details={"site_id": site.id, "missing": missing},
            )

    # ── Publish ──────────────────────────────────────────────────

    async def publish(
        self,
        article: Article,
        explicit_site_id: str | None = None,
        sites: Sequence[Site] | None = None,
        monitoring: MonitoringConfig | None = None,
    ) -> PublishResult:
        """
        Publish ``article`` and mark it published.

        On failure the article's status is left untouched.

        Raises:
            DestinationError: Unresolved site or incomplete credentials.
            PublishError: The collaborator rejected the publish; ``kind`` is
                ``unauthorized``, ``forbidden``, ``not-found``,
                ``server-error``, ``timeout`` or ``publish-failed``.
            StoreError: A registry lookup failed, or the post went live but
                the article record could not be updated (``details`` carry
                ``published_url`` and ``post_id``).
        """
        ctx = _Context(
            article=article,
            sites=await self._load_sites(sites),
            monitoring=monitoring,
        )
        try:
            resolution = await self._resolve(ctx, explicit_site_id)
            self.require_credentials(resolution.site)
        except DestinationError as e:
            self._metrics.record_publish(e.kind.value)
            raise

        # Resolution may have stopped early; overrides and defaults are still needed
        with store_errors(
            f"Loading publish defaults for article {article.id}", article_id=article.id
        ):
            if ctx.monitoring is None:
                await self._monitoring_site(ctx, None)
            if ctx.source is None:
                await self._source_target_site(ctx, None)
        meta = PublishMetadata.resolve(ctx.monitoring, ctx.source)
        site = resolution.site
        log = logger.bind(
            article_id=article.id, site_id=site.id, strategy=resolution.strategy.value
        )

        body: dict[str, Any] = {
            "site_id": site.id,
            "author_id": meta.author_id,
            "categories": meta.categories,
            "tags": meta.tags,
        }
        started = time.perf_counter()
        payload = await self._send(f"/news/articles/{article.id}/publish", body, article.id)
        latency = time.perf_counter() - started

        data = unwrap_data(payload)
        data = data if isinstance(data, dict) else {}
        post_url = payload.get("postUrl") or data.get("postUrl") or data.get("published_url")
        post_id = normalize_id(
            payload.get("postId") or data.get("postId") or data.get("wordpress_post_id")
        )

        self._metrics.record_publish("published", latency)
        try:
            updated = await self._articles.mark_published(
                article.id, published_url=post_url, post_id=post_id, site_id=site.id
            )
        except HTTPClientError as e:
            # The post is live; keep its coordinates so the caller can reconcile
            log.error("Published but could not update article", url=post_url, error=str(e))
            raise StoreError.from_http(
                e,
                f"Article {article.id} was published but could not be marked published",
                article_id=article.id,
                site_id=site.id,
                published_url=post_url,
                post_id=post_id,
            ) from e
        log.info("Article published", url=post_url, post_id=post_id)

        return PublishResult(
            article=updated,
            site=site,
            strategy=resolution.strategy,
            published_url=post_url,
            remote_post_id=post_id,
            warning=resolution.warning,
        )

    async def schedule_publish(
        self,
        article: Article,
        when_utc: datetime,
        site_id: str | None = None,
        now: datetime | None = None,
    ) -> ScheduleResult:
        """
        Ask the collaborator to publish ``article`` at ``when_utc``.

        Raises:
            ScheduleError: ``when_utc`` is not strictly in the future.
            DestinationError: Unresolved site or incomplete credentials.
            PublishError: The collaborator rejected the request.
        """
        when = when_utc if when_utc.tzinfo else when_utc.replace(tzinfo=timezone.utc)
        now = now or datetime.now(timezone.utc)
        if when <= now:
            self._metrics.record_publish(ErrorKind.INVALID_SCHEDULE_TIME.value)
            raise ScheduleError(
                f"Scheduled time {when.isoformat()} is not in the future",
                details={"article_id": article.id, "scheduled_for": when.isoformat()},
            )

        resolution = await self.resolve_site(article, explicit_site_id=site_id)
        self.require_credentials(resolution.site)

        when_iso = when.astimezone(timezone.utc).isoformat()
        body = {"scheduled_date": when_iso, "site_id": resolution.site.id}
        started = time.perf_counter()
        await self._send(f"/news/articles/{article.id}/schedule", body, article.id)
        self._metrics.record_publish("scheduled", time.perf_counter() - started)
        logger.info(
            "Article scheduled",
            article_id=article.id,
            site_id=resolution.site.id,
            scheduled_for=when_iso,
        )
        return ScheduleResult(article_id=article.id, site=resolution.site, scheduled_for=when)

    async def _send(self, path: str, body: dict[str, Any], article_id: str) -> dict[str, Any]:
        try:
            payload = await self._backend.post(path, body, timeout=self._config.publish_timeout)
        except HTTPClientError as e:
            kind = classify_http_error(
                e, unreachable=ErrorKind.SERVER_ERROR, fallback=ErrorKind.PUBLISH_FAILED
            )
            self._metrics.record_publish(kind.value)
            logger.warning("Publish call failed", article_id=article_id, error_kind=kind.value)
            raise PublishError(
                f"Publishing article {article_id} failed: {e}",
                kind=kind,
                details={"article_id": article_id, "status_code": e.status_code},
            ) from e

        if not isinstance(payload, dict) or not is_success(payload):
            message = None
            if isinstance(payload, dict):
                message = payload.get("message") or payload.get("error")
            self._metrics.record_publish(ErrorKind.PUBLISH_FAILED.value)
            raise PublishError(
                f"Publishing article {article_id} was rejected: {message or 'unknown error'}",
                details={"article_id": article_id},
            )
        return payload
