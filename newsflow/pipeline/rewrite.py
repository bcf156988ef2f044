"""
AI rewrite orchestration with credit compensation.

The rewrite service consumes the user's credit itself. This orchestrator
checks availability first, never consumes, and issues a compensating
restore of one credit whenever the rewrite call fails, so a user is never
charged for a rewrite they did not get.
"""

import time
from collections.abc import Sequence
from typing import Any

import pydantic
import structlog

from newsflow.articles.schemas import Article
from newsflow.backend.client import BackendClient, is_success, unwrap_data
from newsflow.backend.http_client import HTTPClientError
from newsflow.credits.ledger import CreditLedger
from newsflow.credits.schemas import CreditType
from newsflow.errors import (
    ErrorKind,
    InsufficientCreditsError,
    LedgerError,
    PipelineError,
    RewriteError,
    classify_http_error,
)
from newsflow.observability.metrics import get_metrics
from newsflow.pipeline.config import PipelineConfig
from newsflow.pipeline.schemas import ItemFailure, RewriteBatchResult

logger = structlog.get_logger(__name__)

# Style the dashboard sends for a full article rewrite
DEFAULT_REWRITE_OPTIONS: dict[str, Any] = {
    "style": "comprehensive",
    "min_words": 1000,
    "tone": "engaging",
    "depth": "detailed",
    "expand_content": True,
    "add_context": True,
    "improve_readability": True,
    "add_examples": True,
    "preserve_image": True,
    "natural_writing": True,
    "enhance_title": True,
    "investigative_tone": True,
    "no_subtitles": True,
    "fluid_narrative": True,
    "conversational_flow": True,
}

CREDITS_PER_REWRITE = 1


class RewriteOrchestrator:
    """Sequential AI rewrites gated by the credit ledger.

    Args:
        backend: Client for the rewrite collaborator
            (``POST /news/articles/<id>/rewrite``).
        ledger: Credit ledger for checks and compensating restores.
        config: Pipeline configuration (rewrite timeout).
    """

    def __init__(
        self,
        backend: BackendClient,
        ledger: CreditLedger,
        config: PipelineConfig | None = None,
    ) -> None:
        self._backend = backend
        self._ledger = ledger
        self._config = config or PipelineConfig()
        self._metrics = get_metrics()

    async def rewrite_one(
        self,
        article: Article,
        user_id: str,
        style_options: dict[str, Any] | None = None,
    ) -> Article:
        """
        Rewrite a single article.

        Re-rewriting an already rewritten article is allowed and is
        charged again.

        Raises:
            InsufficientCreditsError: The user has no article credit; the
                rewrite service was not called.
            RewriteError: The rewrite failed; a compensating restore was
                attempted (see ``details["credit_restored"]``).
        """
        log = logger.bind(article_id=article.id, user_id=str(user_id))

        check = await self._ledger.check_credits(user_id, CreditType.ARTICLES, CREDITS_PER_REWRITE)
        if not check.has_credits:
            self._metrics.record_rewrite("skipped")
            log.info("Skipping rewrite, no credits", available=check.current_credits)
            raise InsufficientCreditsError(
                f"Insufficient credits to rewrite article {article.id}",
                required=CREDITS_PER_REWRITE,
                available=check.current_credits,
            )

        options = {**DEFAULT_REWRITE_OPTIONS, **(style_options or {})}
        started = time.perf_counter()
        try:
            rewritten = await self._call_rewrite(article, options)
        except RewriteError as e:
            self._metrics.record_rewrite("failed", time.perf_counter() - started)
            e.details["credit_restored"] = await self._restore(user_id, article.id)
            log.warning("Rewrite failed", error_kind=e.kind.value, error=e.message)
            raise

        self._metrics.record_rewrite("success", time.perf_counter() - started)
        log.info("Article rewritten")
        return rewritten

    async def rewrite_batch(
        self,
        articles: Sequence[Article],
        user_id: str,
        style_options: dict[str, Any] | None = None,
    ) -> RewriteBatchResult:
        """Rewrite ``articles`` one at a time, in order.

        A failed item is recorded and the batch moves on.
        """
        result = RewriteBatchResult()
        for index, article in enumerate(articles, start=1):
            logger.debug("Rewriting", position=index, total=len(articles), article_id=article.id)
            try:
                result.rewritten.append(await self.rewrite_one(article, user_id, style_options))
            except PipelineError as e:
                result.failures.append(ItemFailure.from_error(article.id, e))

        logger.info("Rewrite batch finished", user_id=str(user_id), summary=result.summary)
        return result

    async def _call_rewrite(self, article: Article, options: dict[str, Any]) -> Article:
        try:
            payload = await self._backend.post(
                f"/news/articles/{article.id}/rewrite",
                options,
                timeout=self._config.rewrite_timeout,
            )
        except HTTPClientError as e:
            kind = classify_http_error(e, fallback=ErrorKind.REWRITE_FAILED)
            raise RewriteError(
                f"Rewrite of article {article.id} failed: {e}",
                kind=kind,
                details={"article_id": article.id, "status_code": e.status_code},
            ) from e

        data = unwrap_data(payload)
        if not is_success(payload) or not isinstance(data, dict):
            message = payload.get("error") if isinstance(payload, dict) else None
            raise RewriteError(
                f"Rewrite of article {article.id} was rejected: {message or 'no article returned'}",
                details={"article_id": article.id},
            )
        try:
            return Article.model_validate({"id": article.id, **data})
        except pydantic.ValidationError as e:
            raise RewriteError(
                f"Rewrite of article {article.id} returned an unreadable record",
                details={"article_id": article.id},
            ) from e

    async def _restore(self, user_id: str, article_id: str) -> bool:
        """Compensating restore; never raises."""
        try:
            restored = await self._ledger.restore_credit(
                user_id, CreditType.ARTICLES, CREDITS_PER_REWRITE
            )
        except LedgerError as e:
            logger.error(
                "Credit restore failed",
                user_id=str(user_id),
                article_id=article_id,
                error=e.message,
            )
            restored = False
        self._metrics.record_credit_restore(restored)
        if restored:
            logger.info(
                "Credit restored after failed rewrite",
                user_id=str(user_id),
                article_id=article_id,
            )
        return restored
