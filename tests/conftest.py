"""Pytest fixtures for newsflow tests."""

from datetime import datetime, timezone
from typing import Any, AsyncGenerator

import pytest

from newsflow.articles.schemas import Article
from newsflow.backend.client import BackendClient
from newsflow.backend.http_client import RetryConfig
from newsflow.config.settings import Settings
from newsflow.monitoring.schemas import MonitoringConfig
from newsflow.sites.schemas import Site
from newsflow.sources.schemas import Source

API = "https://api.test/api"


@pytest.fixture
def test_settings() -> Settings:
    """Settings configured for testing."""
    return Settings(
        environment="development",
        log_level="DEBUG",
        api_base_url=API,
        api_token="test-token",
        redis_url="redis://localhost:6379/1",  # Use DB 1 for tests
    )


@pytest.fixture
async def backend() -> AsyncGenerator[BackendClient, None]:
    """Backend client without retries, for use with respx."""
    client = BackendClient(
        base_url=API,
        token="test-token",
        retry_config=RetryConfig(max_retries=0, base_delay=0.01, jitter_factor=0.0),
    )
    async with client:
        yield client


def _source(**overrides: Any) -> Source:
    data: dict[str, Any] = {
        "id": "12",
        "name": "Tech Wire",
        "url": "https://techwire.example.com/feed",
        "type": "rss",
        "target_site_id": None,
        "active": True,
    }
    data.update(overrides)
    return Source.model_validate(data)


def _site(site_id: str = "3", complete: bool = True, **overrides: Any) -> Site:
    data: dict[str, Any] = {"id": site_id, "nome": f"Blog {site_id}"}
    if complete:
        data.update(
            wordpressUrl=f"https://blog{site_id}.example.com",
            wordpressUsername="editor",
            wordpressPassword="app-pass",
        )
    data.update(overrides)
    return Site.model_validate(data)


def _article(article_id: str = "301", **overrides: Any) -> Article:
    data: dict[str, Any] = {
        "id": article_id,
        "title": f"Article {article_id}",
        "original_url": f"https://techwire.example.com/posts/{article_id}",
        "original_content": "Body text",
        "status": "pending",
    }
    data.update(overrides)
    return Article.model_validate(data)


def _monitoring(**overrides: Any) -> MonitoringConfig:
    data: dict[str, Any] = {
        "id": "7",
        "news_source_id": "12",
        "site_id": "3",
        "check_interval_minutes": 60,
        "active": True,
        "rewrite_content": True,
        "auto_publish": False,
        "settings": {"articles_count": 5},
    }
    data.update(overrides)
    return MonitoringConfig.model_validate(data)


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_source():
    """Factory for Source records; keyword overrides replace defaults."""
    return _source


@pytest.fixture
def make_site():
    """Factory for Site records; ``complete=False`` omits the credentials."""
    return _site


@pytest.fixture
def make_article():
    return _article


@pytest.fixture
def make_monitoring():
    return _monitoring


@pytest.fixture
def source() -> Source:
    return _source()


@pytest.fixture
def site() -> Site:
    return _site()


@pytest.fixture
def article() -> Article:
    return _article()
