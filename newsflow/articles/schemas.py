"""Data models for the article store."""

from collections.abc import Callable, Mapping
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from newsflow.ids import OptionalRecordId, RecordId, normalize_id


class ArticleStatus(str, Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    PUBLISHED = "published"
    SCHEDULED = "scheduled"
    IGNORED = "ignored"
    DELETED = "deleted"
    FAILED = "failed"
    DUPLICATE = "duplicate"


# Soft-terminated: the subsystem never removes records, it only moves them here
TERMINAL_STATUSES = frozenset({ArticleStatus.IGNORED, ArticleStatus.DELETED})


class Article(BaseModel):
    """A fetched or derived content record."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: RecordId
    title: str = Field(default="", validation_alias=AliasChoices("title", "titulo"))
    original_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("original_url", "source_url", "link"),
    )
    origin_id: str | None = None
    original_content: str | None = Field(
        default=None,
        validation_alias=AliasChoices("original_content", "content", "conteudo"),
    )
    rewritten_content: str | None = None
    image_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("image_url", "featured_image_url", "imageUrl"),
    )
    status: ArticleStatus = ArticleStatus.PENDING
    news_source_id: OptionalRecordId = None
    source_id: OptionalRecordId = None
    news_monitoring_id: OptionalRecordId = None
    news_monitoring: dict[str, Any] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    site_id: OptionalRecordId = None
    published_url: str | None = None
    wordpress_post_id: str | None = None
    published_at: datetime | None = None
    scheduled_date: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("metadata", mode="before")
    @classmethod
    def _none_to_dict(cls, value: Any) -> Any:
        return value or {}

    @field_validator("wordpress_post_id", mode="before")
    @classmethod
    def _post_id_str(cls, value: Any) -> Any:
        return normalize_id(value)

    @field_validator("status", mode="before")
    @classmethod
    def _default_status(cls, value: Any) -> Any:
        return value or ArticleStatus.PENDING

    @property
    def monitoring_id(self) -> str | None:
        """Monitoring config this article came through, if any."""
        if self.news_monitoring_id:
            return self.news_monitoring_id
        if self.news_monitoring:
            return normalize_id(self.news_monitoring.get("id"))
        return None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


# ── Source association ──────────────────────────────────────────
#
# Records from different backend versions carry the source reference in
# different places. The lookups below are tried in order and the first
# non-empty answer wins.

SourceLookup = Callable[[Article, Mapping[str, str]], str | None]


def _direct(article: Article, _: Mapping[str, str]) -> str | None:
    return article.news_source_id


def _metadata(article: Article, _: Mapping[str, str]) -> str | None:
    return normalize_id(article.metadata.get("source_id"))


def _legacy_field(article: Article, _: Mapping[str, str]) -> str | None:
    return article.source_id


def _via_monitoring(article: Article, monitoring_sources: Mapping[str, str]) -> str | None:
    embedded = (article.news_monitoring or {}).get("news_source") or {}
    if isinstance(embedded, dict) and normalize_id(embedded.get("id")):
        return normalize_id(embedded.get("id"))
    if article.monitoring_id:
        return normalize_id(monitoring_sources.get(article.monitoring_id))
    return None


SOURCE_LOOKUPS: tuple[tuple[str, SourceLookup], ...] = (
    ("news_source_id", _direct),
    ("metadata.source_id", _metadata),
    ("source_id", _legacy_field),
    ("monitoring", _via_monitoring),
)


def resolve_source_id(
    article: Article,
    monitoring_sources: Mapping[str, str] | None = None,
) -> str | None:
    """Source id an article belongs to, or None if it cannot be determined.

    Args:
        article: Article record.
        monitoring_sources: Map of monitoring config id to its source id,
            used when the article only references its monitoring config.
    """
    lookup_table = monitoring_sources or {}
    for _, lookup in SOURCE_LOOKUPS:
        source_id = lookup(article, lookup_table)
        if source_id:
            return source_id
    return None


class ArticleStatistics(BaseModel):
    """Article counts per status."""

    total: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)

    def count(self, status: ArticleStatus | str) -> int:
        return self.by_status.get(ArticleStatus(status).value, 0)
