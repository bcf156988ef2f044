"""Data models for the sources registry."""

from datetime import datetime
from enum import Enum
from typing import Any
from urllib.parse import urlparse

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

from newsflow.ids import OptionalRecordId, RecordId

# Feed flavours the dashboard stores as the source type
_FEED_TYPE_ALIASES = frozenset({"feed", "rss", "atom", "json", "json_feed"})


class SourceType(str, Enum):
    """Detected origin type."""

    FEED = "feed"
    WEBSITE = "website"
    UNKNOWN = "unknown"


class ValidationStatus(str, Enum):
    """Health of a source as judged by its most recent processing run."""

    VALID = "valid"
    WARNING = "warning"
    INVALID = "invalid"
    PENDING = "pending"


def _coerce_source_type(value: Any) -> Any:
    if value is None or value == "":
        return SourceType.UNKNOWN
    if isinstance(value, str) and value.lower() in _FEED_TYPE_ALIASES:
        return SourceType.FEED
    return value


def is_http_url(value: str) -> bool:
    parsed = urlparse(value.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class Source(BaseModel):
    """A configured content origin (feed or website)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: RecordId
    name: str
    url: str
    type: SourceType = SourceType.UNKNOWN
    feed_url: str | None = None
    target_site_id: OptionalRecordId = None
    default_author_id: OptionalRecordId = None
    default_categories: list[str] = Field(default_factory=list)
    default_tags: list[str] = Field(default_factory=list)
    active: bool = True
    validation_status: ValidationStatus = ValidationStatus.PENDING
    validation_message: str | None = None
    consecutive_empty_runs: int = 0
    last_check_at: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("last_check_at", "last_fetched_at"),
    )
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: Any) -> Any:
        return _coerce_source_type(value)

    @field_validator("validation_status", mode="before")
    @classmethod
    def _default_status(cls, value: Any) -> Any:
        return value or ValidationStatus.PENDING

    @field_validator("default_categories", "default_tags", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return value or []

    @property
    def fetch_url(self) -> str:
        """URL the feed fetcher should read (discovered feed wins)."""
        return self.feed_url or self.url


class SourceCreate(BaseModel):
    """Validated payload for creating a source."""

    model_config = ConfigDict(extra="ignore")

    name: str
    url: str
    type: SourceType = SourceType.UNKNOWN
    feed_url: str | None = None
    target_site_id: OptionalRecordId = None
    default_author_id: OptionalRecordId = None
    default_categories: list[str] = Field(default_factory=list)
    default_tags: list[str] = Field(default_factory=list)
    active: bool = True

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: Any) -> Any:
        return _coerce_source_type(value)

    @field_validator("name")
    @classmethod
    def _name_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name is required")
        return value

    @field_validator("url")
    @classmethod
    def _url_valid(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("url is required")
        if not is_http_url(value):
            raise ValueError("url must be an absolute http(s) URL")
        return value


class SourceValidation(BaseModel):
    """Validation verdict returned with a processing result."""

    status: ValidationStatus
    message: str = ""
    suggestions: list[str] = Field(default_factory=list)


class DetectionResult(BaseModel):
    """Outcome of probing a URL for its source type."""

    type: SourceType
    feed_url: str | None = None
    title: str | None = None
    entry_count: int = 0
