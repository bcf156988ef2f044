"""Pipeline core: source processing, rewrite, publish, integrity and runs."""

from newsflow.pipeline.config import PipelineConfig
from newsflow.pipeline.execution_counter import (
    CounterStore,
    ExecutionCounter,
    InMemoryCounterStore,
    RedisCounterStore,
)
from newsflow.pipeline.feeds import CandidateArticle, FeedBatch, FeedFetcher
from newsflow.pipeline.integrity import IntegrityValidator
from newsflow.pipeline.publish import PublishMetadata, PublishOrchestrator
from newsflow.pipeline.rewrite import DEFAULT_REWRITE_OPTIONS, RewriteOrchestrator
from newsflow.pipeline.runner import MonitoringRunner
from newsflow.pipeline.schemas import (
    IntegrityIssue,
    IntegrityReport,
    IssueKind,
    ItemFailure,
    MonitoringRunResult,
    ProcessResult,
    PublishResult,
    ResolutionStrategy,
    RewriteBatchResult,
    ScheduleResult,
    SiteResolution,
)
from newsflow.pipeline.source_processor import SourceProcessor

__all__ = [
    "DEFAULT_REWRITE_OPTIONS",
    "CandidateArticle",
    "CounterStore",
    "ExecutionCounter",
    "FeedBatch",
    "FeedFetcher",
    "InMemoryCounterStore",
    "IntegrityIssue",
    "IntegrityReport",
    "IntegrityValidator",
    "IssueKind",
    "ItemFailure",
    "MonitoringRunResult",
    "MonitoringRunner",
    "PipelineConfig",
    "ProcessResult",
    "PublishMetadata",
    "PublishOrchestrator",
    "PublishResult",
    "RedisCounterStore",
    "ResolutionStrategy",
    "RewriteBatchResult",
    "RewriteOrchestrator",
    "ScheduleResult",
    "SiteResolution",
    "SourceProcessor",
]
