"""Backend repository for articles."""

import logging
from collections import Counter
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from newsflow.backend.client import BackendClient, unwrap_data
from newsflow.backend.http_client import HTTPClientError
from newsflow.articles.schemas import Article, ArticleStatistics, ArticleStatus

logger = logging.getLogger(__name__)

_BASE = "/news/articles"


def count_by_status(articles: Iterable[Article]) -> ArticleStatistics:
    """Aggregate a listing into per-status counts."""
    counts = Counter(a.status.value for a in articles)
    return ArticleStatistics(total=sum(counts.values()), by_status=dict(counts))


class ArticleRepository:
    """Article store over the backend API.

    Articles are never physically removed here: ``delete`` and ``ignore``
    are status transitions.
    """

    def __init__(self, backend: BackendClient) -> None:
        self._backend = backend

    async def list_articles(
        self,
        status: ArticleStatus | str | None = None,
        news_source_id: str | None = None,
        news_monitoring_id: str | None = None,
        original_url: str | None = None,
        limit: int | None = None,
        page: int | None = None,
    ) -> list[Article]:
        """List articles with optional backend-side filters."""
        params: dict[str, Any] = {
            "status": ArticleStatus(status).value if status else None,
            "news_source_id": news_source_id,
            "news_monitoring_id": news_monitoring_id,
            "original_url": original_url,
            "limit": limit,
            "page": page,
        }
        payload = await self._backend.get(_BASE, params=params)
        return [Article.model_validate(row) for row in unwrap_data(payload) or []]

    async def get(self, article_id: str) -> Article | None:
        try:
            payload = await self._backend.get(f"{_BASE}/{article_id}")
        except HTTPClientError as e:
            if e.status_code == 404:
                return None
            raise
        data = unwrap_data(payload)
        return Article.model_validate(data) if data else None

    async def find_by_origin_url(self, original_url: str) -> list[Article]:
        """Articles recorded for ``original_url`` across all sources.

        The backend filter is advisory, so results are re-checked locally.
        """
        rows = await self.list_articles(original_url=original_url)
        return [a for a in rows if a.original_url == original_url]

    async def create(self, fields: dict[str, Any]) -> Article:
        payload = await self._backend.post(_BASE, fields)
        article = Article.model_validate(unwrap_data(payload))
        logger.debug("Created article %s (%s)", article.id, article.original_url)
        return article

    async def update(self, article_id: str, fields: dict[str, Any]) -> Article:
        payload = await self._backend.put(f"{_BASE}/{article_id}", fields)
        return Article.model_validate(unwrap_data(payload))

    async def delete(self, article_id: str) -> Article:
        """Soft-delete: the record stays, with status ``deleted``."""
        article = await self.update(article_id, {"status": ArticleStatus.DELETED.value})
        logger.info("Marked article %s as deleted", article_id)
        return article

    async def ignore(self, article_id: str) -> Article | None:
        payload = await self._backend.post(f"{_BASE}/{article_id}/ignore")
        data = unwrap_data(payload)
        if isinstance(data, dict) and data.get("id") is not None:
            return Article.model_validate(data)
        # Older backends acknowledge without echoing the record
        return await self.get(article_id)

    async def mark_published(
        self,
        article_id: str,
        published_url: str | None,
        post_id: str | None,
        site_id: str,
        published_at: datetime | None = None,
    ) -> Article:
        published_at = published_at or datetime.now(timezone.utc)
        return await self.update(
            article_id,
            {
                "status": ArticleStatus.PUBLISHED.value,
                "published_url": published_url,
                "wordpress_post_id": post_id,
                "site_id": site_id,
                "published_at": published_at.isoformat(),
            },
        )

    async def statistics(self) -> ArticleStatistics:
        """Counts per status over every article of the user."""
        return count_by_status(await self.list_articles())
