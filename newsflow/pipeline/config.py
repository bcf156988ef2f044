"""Configuration for the article-automation pipeline."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PipelineConfig(BaseSettings):
    """Pipeline batch sizes, collaborator timeouts and validation thresholds.

    All settings can be overridden via environment variables with the
    ``PIPELINE_`` prefix (e.g. ``PIPELINE_BATCH_SIZE=20``).
    """

    model_config = SettingsConfigDict(
        env_prefix="PIPELINE_",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Pagination ───────────────────────────────────────────
    batch_size: int = Field(
        default=10,
        gt=0,
        description="Items requested per manual 'fetch more' run",
    )

    # ── Collaborator timeouts (seconds) ──────────────────────
    origin_fetch_timeout: float = Field(
        default=120.0,
        gt=0,
        description="Feeds can be slow; allow up to two minutes",
    )
    publish_timeout: float = Field(
        default=45.0,
        gt=0,
        description="Publish and schedule calls",
    )
    rewrite_timeout: float = Field(
        default=300.0,
        gt=0,
        description="AI rewrite of a single article",
    )
    default_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Everything else (registry and store calls)",
    )

    # ── Source validation ────────────────────────────────────
    healthy_item_threshold: int = Field(
        default=3,
        ge=1,
        description="Fewer usable items than this (but more than zero) is a warning",
    )
    invalid_after_empty_runs: int = Field(
        default=3,
        ge=1,
        description="Consecutive empty runs before a source is marked invalid",
    )

    # ── Execution counter ────────────────────────────────────
    counter_backend: Literal["memory", "file", "redis"] = Field(
        default="file",
        description="Where manual execution counts are kept; memory lasts one process",
    )
    counter_path: str = Field(
        default="~/.newsflow/executions.json",
        description="Counter file for the file backend",
    )
    counter_key_prefix: str = Field(
        default="newsflow:executions:",
        description="Redis key prefix for execution counters",
    )
