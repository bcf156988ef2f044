"""Result types returned by the pipeline orchestrators.

Batch operations report per-item failures instead of raising; every
result type here can be rendered as a ``"N succeeded, M failed"`` summary.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from newsflow.articles.schemas import Article
from newsflow.errors import ErrorKind, PipelineError
from newsflow.sites.schemas import Site
from newsflow.sources.schemas import SourceValidation


def summarize(succeeded: int, failed: int) -> str:
    return f"{succeeded} succeeded, {failed} failed"


@dataclass
class ItemFailure:
    """One item of a batch that did not go through."""

    item_id: str
    kind: ErrorKind
    message: str

    @classmethod
    def from_error(cls, item_id: str, error: PipelineError) -> "ItemFailure":
        return cls(item_id=str(item_id), kind=error.kind, message=error.message)

    def to_dict(self) -> dict[str, Any]:
        return {"item_id": self.item_id, "kind": self.kind.value, "message": self.message}


@dataclass
class ProcessResult:
    """Outcome of processing one window of a source.

    Attributes:
        source_id: Source that was processed.
        offset: Window start that was requested.
        created: Candidates persisted as new articles.
        existing: Candidates already present for this source.
        processed: Candidates read from the origin.
        validation: Health verdict for the source.
        articles: The newly created article records.
        failures: Candidates that could not be stored.
    """

    source_id: str
    offset: int
    created: int
    existing: int
    processed: int
    validation: SourceValidation
    articles: list[Article] = field(default_factory=list)
    failures: list[ItemFailure] = field(default_factory=list)

    @property
    def summary(self) -> str:
        return summarize(self.created + self.existing, len(self.failures))

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_id": self.source_id,
            "offset": self.offset,
            "created": self.created,
            "existing": self.existing,
            "processed": self.processed,
            "validation": self.validation.model_dump(mode="json"),
            "failures": [f.to_dict() for f in self.failures],
        }


@dataclass
class RewriteBatchResult:
    """Outcome of a sequential rewrite batch, in input order."""

    rewritten: list[Article] = field(default_factory=list)
    failures: list[ItemFailure] = field(default_factory=list)

    @property
    def summary(self) -> str:
        return summarize(len(self.rewritten), len(self.failures))


class ResolutionStrategy(str, Enum):
    """How the destination site of a publish was chosen."""

    EXPLICIT = "explicit"
    MONITORING = "monitoring"
    SOURCE_TARGET = "source-target"
    SINGLE_SITE_FALLBACK = "single-site-fallback"


@dataclass
class SiteResolution:
    site: Site
    strategy: ResolutionStrategy
    warning: str | None = None

    @property
    def is_fallback(self) -> bool:
        return self.strategy == ResolutionStrategy.SINGLE_SITE_FALLBACK


@dataclass
class PublishResult:
    """A successful publish."""

    article: Article
    site: Site
    strategy: ResolutionStrategy
    published_url: str | None = None
    remote_post_id: str | None = None
    warning: str | None = None

    @property
    def used_fallback(self) -> bool:
        return self.strategy == ResolutionStrategy.SINGLE_SITE_FALLBACK


@dataclass
class ScheduleResult:
    article_id: str
    site: Site
    scheduled_for: datetime


class IssueKind(str, Enum):
    ORPHANED_SOURCE = "orphaned-source"
    ORPHANED_MONITORING = "orphaned-monitoring"
    ORPHANED_CACHE_GROUP = "orphaned-cache-group"


@dataclass
class IntegrityIssue:
    """A dangling reference found during validation."""

    kind: IssueKind
    record_id: str
    missing: dict[str, str]
    message: str
    healed: bool = False

    @property
    def error_kind(self) -> ErrorKind:
        return ErrorKind.INTEGRITY_ORPHAN


@dataclass
class IntegrityReport:
    issues: list[IntegrityIssue] = field(default_factory=list)
    healed_groups: list[str] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not self.issues

    def by_kind(self, kind: IssueKind) -> list[IntegrityIssue]:
        return [i for i in self.issues if i.kind == kind]


@dataclass
class MonitoringRunResult:
    """Everything one monitoring execution did."""

    monitoring_id: str
    process: ProcessResult | None = None
    selected: list[Article] = field(default_factory=list)
    rewrite: RewriteBatchResult | None = None
    published: list[PublishResult] = field(default_factory=list)
    publish_failures: list[ItemFailure] = field(default_factory=list)
    error: PipelineError | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @property
    def summary(self) -> str:
        parts = [f"{len(self.selected)} new"]
        if self.rewrite is not None:
            parts.append(f"rewrite: {self.rewrite.summary}")
        if self.published or self.publish_failures:
            parts.append(
                f"publish: {summarize(len(self.published), len(self.publish_failures))}"
            )
        if self.error is not None:
            parts.append(f"error: {self.error.kind.value}")
        return "; ".join(parts)
