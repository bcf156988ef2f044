"""Data models for monitoring configurations."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from newsflow.ids import OptionalRecordId, RecordId

DEFAULT_ARTICLE_LIMIT = 5

# Frequency presets offered by the dashboard, in minutes
FREQUENCY_PRESETS: dict[str, int] = {
    "hourly": 60,
    "daily": 1440,
    "weekly": 10080,
}


def _split_keywords(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        return [k.strip() for k in value.split(",") if k.strip()]
    return value


def _lift_article_limit(data: Any) -> Any:
    # The backend nests the per-run limit under settings.articles_count
    if isinstance(data, dict) and "article_limit" not in data:
        settings = data.get("settings") or {}
        count = settings.get("articles_count") if isinstance(settings, dict) else None
        if count is not None:
            data = {**data, "article_limit": count}
    return data


class MonitoringConfig(BaseModel):
    """Binding of one source to one destination site with a run policy."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: RecordId
    news_source_id: OptionalRecordId = Field(
        default=None,
        validation_alias=AliasChoices("news_source_id", "source_id"),
    )
    site_id: OptionalRecordId = None
    check_interval_minutes: int = 60
    active: bool = True
    rewrite_content: bool = True
    auto_publish: bool = False
    article_limit: int = DEFAULT_ARTICLE_LIMIT
    last_check_at: datetime | None = None
    target_category: str | None = None
    categories: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    author_id: OptionalRecordId = Field(
        default=None,
        validation_alias=AliasChoices("author_id", "target_author_id"),
    )
    keywords_filter: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _settings_limit(cls, data: Any) -> Any:
        return _lift_article_limit(data)

    @field_validator("keywords_filter", mode="before")
    @classmethod
    def _keywords(cls, value: Any) -> Any:
        return _split_keywords(value)

    @field_validator("categories", "tags", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return value or []

    @field_validator("article_limit", mode="before")
    @classmethod
    def _default_limit(cls, value: Any) -> Any:
        return value or DEFAULT_ARTICLE_LIMIT

    @property
    def publish_categories(self) -> list[str]:
        """Category overrides, falling back to the single target category."""
        if self.categories:
            return list(self.categories)
        return [self.target_category] if self.target_category else []

    def matches_keywords(self, *texts: str | None) -> bool:
        """True when no filter is set or any keyword occurs in ``texts``."""
        if not self.keywords_filter:
            return True
        haystack = " ".join(t for t in texts if t).lower()
        return any(k.lower() in haystack for k in self.keywords_filter)


class MonitoringConfigCreate(BaseModel):
    """Payload for creating or replacing a monitoring config.

    Range checks that depend on configuration (interval bounds) happen in
    the repository, not here.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    news_source_id: OptionalRecordId = Field(
        default=None,
        validation_alias=AliasChoices("news_source_id", "source_id"),
    )
    site_id: OptionalRecordId = None
    check_interval_minutes: int | None = None
    frequency: str | None = None
    active: bool = True
    rewrite_content: bool = True
    auto_publish: bool = False
    article_limit: int | None = None
    target_category: str | None = None
    categories: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    author_id: OptionalRecordId = None
    keywords_filter: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _settings_limit(cls, data: Any) -> Any:
        return _lift_article_limit(data)

    @field_validator("keywords_filter", mode="before")
    @classmethod
    def _keywords(cls, value: Any) -> Any:
        return _split_keywords(value)

    @field_validator("frequency")
    @classmethod
    def _known_frequency(cls, value: str | None) -> str | None:
        if value is not None and value not in FREQUENCY_PRESETS:
            raise ValueError(
                f"frequency must be one of {', '.join(FREQUENCY_PRESETS)}"
            )
        return value

    def to_payload(self, interval: int, article_limit: int) -> dict[str, Any]:
        """Serialize in the shape the backend stores."""
        payload = self.model_dump(
            mode="json",
            exclude={"frequency", "article_limit", "check_interval_minutes"},
        )
        payload["check_interval_minutes"] = interval
        payload["settings"] = {"articles_count": article_limit}
        if self.frequency:
            payload["settings"]["frequency"] = self.frequency
        return payload


class RunState(str, Enum):
    PAUSED = "paused"
    READY = "ready"
    SCHEDULED = "scheduled"


@dataclass(frozen=True)
class NextRun:
    """When a monitoring config should run next.

    ``at`` is set only for SCHEDULED.
    """

    state: RunState
    at: datetime | None = None

    @property
    def status(self) -> str:
        """``paused``, ``ready`` or the ISO timestamp of the next run."""
        if self.state == RunState.SCHEDULED and self.at is not None:
            return self.at.isoformat()
        return self.state.value

    @property
    def is_ready(self) -> bool:
        return self.state == RunState.READY
