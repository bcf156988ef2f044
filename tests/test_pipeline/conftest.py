"""Shared fixtures for pipeline tests."""

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from newsflow.articles.schemas import Article
from newsflow.pipeline.feeds import CandidateArticle, FeedBatch


class FakeArticleStore:
    """Stateful stand-in for ArticleRepository."""

    def __init__(self, articles: list[Article] | None = None) -> None:
        self.articles: dict[str, Article] = {a.id: a for a in articles or []}
        self._next_id = 1000
        self.create_calls = 0

    async def find_by_origin_url(self, original_url: str) -> list[Article]:
        return [a for a in self.articles.values() if a.original_url == original_url]

    async def create(self, fields: dict[str, Any]) -> Article:
        self.create_calls += 1
        self._next_id += 1
        article = Article.model_validate({"id": self._next_id, **fields})
        self.articles[article.id] = article
        return article

    async def update(self, article_id: str, fields: dict[str, Any]) -> Article:
        article = Article.model_validate({**self.articles[article_id].model_dump(), **fields})
        self.articles[article_id] = article
        return article

    async def get(self, article_id: str) -> Article | None:
        return self.articles.get(article_id)

    async def mark_published(self, article_id, published_url, post_id, site_id, published_at=None):
        return await self.update(
            article_id,
            {
                "status": "published",
                "published_url": published_url,
                "wordpress_post_id": post_id,
                "site_id": site_id,
            },
        )


class FakeFetcher:
    """Windows a fixed list of candidates the way FeedFetcher does."""

    def __init__(self, candidates: list[CandidateArticle]) -> None:
        self.candidates = candidates
        self.calls: list[tuple[int, int]] = []
        self.error: Exception | None = None

    async def fetch(self, source, limit, offset=0, sort_order="desc") -> FeedBatch:
        self.calls.append((offset, limit))
        if self.error is not None:
            raise self.error
        return FeedBatch(
            entries=self.candidates[offset:offset + limit],
            total_entries=len(self.candidates),
        )


def _candidates(count: int) -> list[CandidateArticle]:
    return [
        CandidateArticle(
            origin_id=f"o{i}",
            title=f"Post {i}",
            url=f"https://techwire.example.com/posts/{i}",
            summary=f"Summary {i}",
        )
        for i in range(count)
    ]


@pytest.fixture
def make_candidates():
    return _candidates


@pytest.fixture
def store() -> FakeArticleStore:
    return FakeArticleStore()


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher(_candidates(25))


@pytest.fixture
def sources(source) -> MagicMock:
    """SourcesService mock that knows the default source."""
    service = MagicMock()
    service.get_source = AsyncMock(return_value=source)
    service.list_sources = AsyncMock(return_value=[source])
    service.update = AsyncMock(return_value=source)
    service.repository.mark_checked = AsyncMock(return_value=source)
    service.invalidate_cache = MagicMock()
    return service
