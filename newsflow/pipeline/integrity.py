"""
Integrity validation over snapshots of the registries.

Finds dangling references:

- sources whose target site no longer exists
- monitoring configs whose source or site no longer exists
- cached article groups keyed by a source that no longer exists

Canonical records (sources, monitoring configs, articles) are only
reported. Cached groups are a derived projection and are dropped from the
cache when ``heal`` is set.
"""

from collections.abc import Iterable, MutableMapping
from typing import Any

import structlog

from newsflow.articles.cache import SourceArticleCache
from newsflow.articles.repository import ArticleRepository
from newsflow.ids import id_set, normalize_id
from newsflow.monitoring.repository import MonitoringRepository
from newsflow.monitoring.schemas import MonitoringConfig
from newsflow.observability.metrics import get_metrics
from newsflow.pipeline.schemas import IntegrityIssue, IntegrityReport, IssueKind
from newsflow.sites.repository import SitesRepository
from newsflow.sites.schemas import Site
from newsflow.sources.schemas import Source
from newsflow.sources.service import SourcesService

logger = structlog.get_logger(__name__)


class IntegrityValidator:
    """Reconciliation pass over sources, monitoring configs and the cache.

    The repositories are only needed for ``check``, which loads fresh
    snapshots; ``validate`` works on whatever it is given.
    """

    def __init__(
        self,
        sources: SourcesService | None = None,
        monitoring: MonitoringRepository | None = None,
        sites: SitesRepository | None = None,
        articles: ArticleRepository | None = None,
    ) -> None:
        self._sources = sources
        self._monitoring = monitoring
        self._sites = sites
        self._articles = articles
        self._metrics = get_metrics()

    def validate(
        self,
        sources: Iterable[Source],
        monitoring_configs: Iterable[MonitoringConfig],
        cached_articles: MutableMapping[Any, Any],
        known_sites: Iterable[Site],
        heal: bool = True,
    ) -> IntegrityReport:
        """
        Report orphans and, if ``heal``, drop orphaned cache groups.

        Args:
            sources: Snapshot of all sources.
            monitoring_configs: Snapshot of all monitoring configs.
            cached_articles: Article groups keyed by source id. Mutated
                when ``heal`` is set.
            known_sites: Snapshot of the user's sites.
            heal: Remove orphaned cache groups.
        """
        sources = list(sources)
        source_ids = id_set(sources)
        site_ids = id_set(known_sites)
        report = IntegrityReport()

        for source in sources:
            if source.target_site_id and source.target_site_id not in site_ids:
                report.issues.append(
                    IntegrityIssue(
                        kind=IssueKind.ORPHANED_SOURCE,
                        record_id=source.id,
                        missing={"site_id": source.target_site_id},
                        message=(
                            f"Source '{source.name}' targets site "
                            f"{source.target_site_id}, which does not exist"
                        ),
                    )
                )

        for config in monitoring_configs:
            missing: dict[str, str] = {}
            if not config.news_source_id or config.news_source_id not in source_ids:
                missing["news_source_id"] = config.news_source_id or ""
            if not config.site_id or config.site_id not in site_ids:
                missing["site_id"] = config.site_id or ""
            if missing:
                report.issues.append(
                    IntegrityIssue(
                        kind=IssueKind.ORPHANED_MONITORING,
                        record_id=config.id,
                        missing=missing,
                        message=(
                            f"Monitoring {config.id} references missing "
                            + " and ".join(f"{k}={v or '(none)'}" for k, v in missing.items())
                        ),
                    )
                )

        for key in list(cached_articles.keys()):
            group_id = normalize_id(key)
            if group_id is not None and group_id in source_ids:
                continue
            issue = IntegrityIssue(
                kind=IssueKind.ORPHANED_CACHE_GROUP,
                record_id=str(key),
                missing={"news_source_id": str(key)},
                message=f"Cached article group for deleted source {key}",
            )
            if heal:
                del cached_articles[key]
                issue.healed = True
                report.healed_groups.append(str(key))
            report.issues.append(issue)

        for issue in report.issues:
            self._metrics.record_integrity_issue(issue.kind.value)
        if report.healed_groups:
            self._metrics.healed_cache_groups.inc(len(report.healed_groups))

        if report.is_clean:
            logger.debug("Integrity check clean")
        else:
            logger.warning(
                "Integrity issues found",
                issues=len(report.issues),
                orphaned_sources=len(report.by_kind(IssueKind.ORPHANED_SOURCE)),
                orphaned_monitoring=len(report.by_kind(IssueKind.ORPHANED_MONITORING)),
                healed_groups=report.healed_groups,
            )
        return report

    async def check(
        self,
        cache: SourceArticleCache | None = None,
        heal: bool = True,
    ) -> tuple[IntegrityReport, SourceArticleCache]:
        """Load fresh snapshots and validate them.

        When no cache is given one is built from the article store, so
        articles of deleted sources show up as orphaned groups.
        """
        if None in (self._sources, self._monitoring, self._sites):
            raise RuntimeError("IntegrityValidator.check needs the registries")

        self._sources.invalidate_cache()
        sources = await self._sources.list_sources()
        configs = await self._monitoring.list_configs()
        sites = await self._sites.list_sites()

        if cache is None:
            if self._articles is None:
                raise RuntimeError("IntegrityValidator.check needs an article store")
            monitoring_sources = {
                c.id: c.news_source_id for c in configs if c.news_source_id
            }
            cache = SourceArticleCache.from_articles(
                await self._articles.list_articles(), monitoring_sources
            )

        return self.validate(sources, configs, cache, sites, heal=heal), cache
