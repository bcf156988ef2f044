"""Sources: registry of content origins (feeds and websites)."""

from newsflow.sources.config import SourcesConfig
from newsflow.sources.repository import SourcesRepository
from newsflow.sources.schemas import (
    DetectionResult,
    Source,
    SourceCreate,
    SourceType,
    SourceValidation,
    ValidationStatus,
)
from newsflow.sources.service import SourcesService

__all__ = [
    "DetectionResult",
    "Source",
    "SourceCreate",
    "SourceType",
    "SourceValidation",
    "SourcesConfig",
    "SourcesRepository",
    "SourcesService",
    "ValidationStatus",
]
