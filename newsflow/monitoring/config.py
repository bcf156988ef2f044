"""Configuration for monitoring configs and their schedules."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MonitoringSettings(BaseSettings):
    """Bounds and defaults applied to monitoring configurations.

    All settings can be overridden via environment variables with the
    ``MONITORING_`` prefix (e.g. ``MONITORING_MIN_INTERVAL_MINUTES=30``).
    """

    model_config = SettingsConfigDict(
        env_prefix="MONITORING_",
        case_sensitive=False,
        extra="ignore",
    )

    min_interval_minutes: int = Field(
        default=15,
        ge=1,
        description="Shortest allowed check interval",
    )
    max_interval_minutes: int = Field(
        default=10080,
        ge=1,
        description="Longest allowed check interval (one week)",
    )
    default_interval_minutes: int = Field(
        default=60,
        ge=1,
        description="Interval used when a payload does not specify one",
    )
    default_article_limit: int = Field(
        default=5,
        ge=1,
        description="Articles handled per run when a config does not say",
    )
    max_article_limit: int = Field(
        default=50,
        ge=1,
        description="Upper bound on the per-run article limit",
    )
