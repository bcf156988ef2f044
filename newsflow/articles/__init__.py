"""Articles: store access, source association and cached groupings."""

from newsflow.articles.cache import SourceArticleCache
from newsflow.articles.repository import ArticleRepository, count_by_status
from newsflow.articles.schemas import (
    SOURCE_LOOKUPS,
    TERMINAL_STATUSES,
    Article,
    ArticleStatistics,
    ArticleStatus,
    resolve_source_id,
)

__all__ = [
    "SOURCE_LOOKUPS",
    "TERMINAL_STATUSES",
    "Article",
    "ArticleRepository",
    "ArticleStatistics",
    "ArticleStatus",
    "SourceArticleCache",
    "count_by_status",
    "resolve_source_id",
]
