"""Sources service with caching and type auto-detection."""

import logging
import time
from typing import Any

from newsflow.backend.http_client import HTTPClient, HTTPClientError
from newsflow.ids import find_by_id
from newsflow.sources.config import SourcesConfig
from newsflow.sources.detection import detect_source_type
from newsflow.sources.repository import SourcesRepository
from newsflow.sources.schemas import Source, SourceCreate, SourceType

logger = logging.getLogger(__name__)


class SourcesService:
    """Cached access to the source registry.

    Wraps SourcesRepository with a TTL-based in-memory cache of the full
    source list, so that lookups during a pipeline run (site resolution,
    integrity checks) avoid a round-trip per article.
    """

    def __init__(
        self,
        repository: SourcesRepository,
        config: SourcesConfig | None = None,
    ) -> None:
        self._config = config or SourcesConfig()
        self._repo = repository

        self._cache: list[Source] | None = None
        self._cached_at: float = 0.0

    @property
    def repository(self) -> SourcesRepository:
        """Access the underlying repository for direct backend operations."""
        return self._repo

    # ── Cached accessors ────────────────────────────────────────

    async def list_sources(self) -> list[Source]:
        """All sources of the user (cached)."""
        now = time.monotonic()
        ttl = self._config.cache_ttl_seconds
        if self._cache is not None and (now - self._cached_at) < ttl:
            return self._cache

        sources = await self._repo.list_sources()
        self._cache = sources
        self._cached_at = now
        return sources

    async def get_source(self, source_id: str) -> Source | None:
        """Look a source up in the cache, falling back to the backend."""
        cached = find_by_id(await self.list_sources(), source_id)
        if cached is not None:
            return cached
        return await self._repo.get(source_id)

    def invalidate_cache(self) -> None:
        """Force-clear the cache so next access hits the backend."""
        self._cache = None
        self._cached_at = 0.0

    # ── Mutations ───────────────────────────────────────────────

    async def create(self, data: SourceCreate | dict[str, Any]) -> Source:
        source = await self._repo.create(data)
        self.invalidate_cache()
        return source

    async def create_with_autodetection(
        self,
        data: dict[str, Any],
        http: HTTPClient,
    ) -> Source:
        """Probe the URL, fill in type / feed_url, then create.

        Detection failures are not fatal: the source is created as
        UNKNOWN and processing will report it.
        """
        create = SourceCreate.model_validate(data)
        try:
            detection = await detect_source_type(
                create.url, http, timeout=self._config.detection_timeout
            )
        except HTTPClientError as e:
            logger.warning("Type detection failed for %s: %s", create.url, e)
        else:
            create.type = detection.type
            if detection.feed_url and detection.feed_url != create.url:
                create.feed_url = detection.feed_url
            if create.type == SourceType.UNKNOWN:
                logger.warning("Could not detect a feed at %s", create.url)

        return await self.create(create)

    async def update(self, source_id: str, fields: dict[str, Any]) -> Source:
        source = await self._repo.update(source_id, fields)
        self.invalidate_cache()
        return source

    async def delete(self, source_id: str) -> bool:
        deleted = await self._repo.delete(source_id)
        self.invalidate_cache()
        return deleted

    async def toggle(self, source_id: str) -> Source:
        source = await self._repo.toggle(source_id)
        self.invalidate_cache()
        return source
