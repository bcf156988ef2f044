"""Shared fixtures for sources tests."""

from unittest.mock import AsyncMock

import pytest

from newsflow.sources.repository import SourcesRepository


@pytest.fixture
def mock_repository() -> AsyncMock:
    """Mock SourcesRepository matching its async API."""
    repo = AsyncMock(spec=SourcesRepository)
    repo.list_sources = AsyncMock(return_value=[])
    repo.get = AsyncMock(return_value=None)
    return repo


@pytest.fixture
def source_row() -> dict:
    """A source as the backend returns it."""
    return {
        "id": 12,
        "name": "Tech Wire",
        "url": "https://techwire.example.com",
        "feed_url": "https://techwire.example.com/feed",
        "type": "rss",
        "target_site_id": 3,
        "active": True,
        "validation_status": None,
        "default_categories": None,
        "last_fetched_at": "2026-03-01T10:00:00Z",
    }
