"""Configuration for the sources registry."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SourcesConfig(BaseSettings):
    """Settings for source registry caching and type detection."""

    model_config = SettingsConfigDict(
        env_prefix="SOURCES_",
        case_sensitive=False,
        extra="ignore",
    )

    cache_ttl_seconds: int = Field(
        default=300,
        ge=0,
        description="TTL for the in-memory source list cache (0 = no caching)",
    )
    detection_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Timeout in seconds when probing a URL for its feed type",
    )
