"""Tests for RewriteOrchestrator."""

from unittest.mock import AsyncMock

import httpx
import pytest
import respx

from newsflow.backend.http_client import HTTPClientError
from newsflow.credits.ledger import InMemoryCreditLedger
from newsflow.credits.schemas import CreditType
from newsflow.errors import ErrorKind, InsufficientCreditsError, LedgerError, RewriteError
from newsflow.pipeline.rewrite import RewriteOrchestrator

API = "https://api.test/api"
USER = "42"


@pytest.fixture
def ledger() -> InMemoryCreditLedger:
    ledger = InMemoryCreditLedger()
    ledger.set_quota(USER, CreditType.ARTICLES, quota=5)
    return ledger


def _consuming_backend(ledger: InMemoryCreditLedger, error: Exception | None = None) -> AsyncMock:
    """Backend whose rewrite endpoint charges a credit before answering."""
    backend = AsyncMock()

    async def post(path, body=None, timeout=None, idempotent=False):
        await ledger.consume_credits(USER, CreditType.ARTICLES)
        if error is not None:
            raise error
        return {"success": True, "data": {"title": "Rewritten", "rewritten_content": "New body"}}

    backend.post = AsyncMock(side_effect=post)
    return backend


class TestRewriteOne:
    @pytest.mark.asyncio
    async def test_success_charges_one_credit(self, ledger, article):
        orchestrator = RewriteOrchestrator(_consuming_backend(ledger), ledger)

        rewritten = await orchestrator.rewrite_one(article, USER)

        assert rewritten.id == article.id
        assert rewritten.rewritten_content == "New body"
        assert ledger.balance(USER, CreditType.ARTICLES).available == 4

    @pytest.mark.asyncio
    async def test_failure_restores_credit(self, ledger, article):
        backend = _consuming_backend(ledger, HTTPClientError("upstream", status_code=500))
        orchestrator = RewriteOrchestrator(backend, ledger)

        with pytest.raises(RewriteError) as exc_info:
            await orchestrator.rewrite_one(article, USER)

        assert exc_info.value.kind == ErrorKind.SERVER_ERROR
        assert exc_info.value.details["credit_restored"] is True
        assert ledger.balance(USER, CreditType.ARTICLES).available == 5

    @pytest.mark.asyncio
    async def test_no_credits_skips_service(self, article):
        ledger = InMemoryCreditLedger()
        ledger.set_quota(USER, CreditType.ARTICLES, quota=1, consumed=1)
        backend = AsyncMock()
        orchestrator = RewriteOrchestrator(backend, ledger)

        with pytest.raises(InsufficientCreditsError) as exc_info:
            await orchestrator.rewrite_one(article, USER)

        assert exc_info.value.available == 0
        backend.post.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_restore_failure_is_reported_not_raised(self, ledger, article):
        backend = _consuming_backend(ledger, HTTPClientError("timeout"))
        ledger.restore_credit = AsyncMock(side_effect=LedgerError("ledger down"))
        orchestrator = RewriteOrchestrator(backend, ledger)

        with pytest.raises(RewriteError) as exc_info:
            await orchestrator.rewrite_one(article, USER)

        assert exc_info.value.details["credit_restored"] is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_rejected_payload_is_failure(self, backend, ledger, article):
        route = respx.post(f"{API}/news/articles/301/rewrite").mock(
            return_value=httpx.Response(200, json={"success": False, "error": "model overloaded"})
        )
        orchestrator = RewriteOrchestrator(backend, ledger)

        with pytest.raises(RewriteError) as exc_info:
            await orchestrator.rewrite_one(article, USER)

        assert "model overloaded" in exc_info.value.message
        assert exc_info.value.kind == ErrorKind.REWRITE_FAILED
        assert route.call_count == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_sends_style_options(self, backend, ledger, article):
        route = respx.post(f"{API}/news/articles/301/rewrite").mock(
            return_value=httpx.Response(200, json={"success": True, "data": {"title": "T"}})
        )
        orchestrator = RewriteOrchestrator(backend, ledger)

        await orchestrator.rewrite_one(article, USER, {"tone": "formal"})

        body = route.calls.last.request.content
        assert b'"tone"' in body
        assert b"formal" in body
        assert b"engaging" not in body


class TestRewriteBatch:
    @pytest.mark.asyncio
    async def test_failures_do_not_stop_batch(self, ledger, make_article):
        calls = []

        async def post(path, body=None, timeout=None, idempotent=False):
            calls.append(path)
            await ledger.consume_credits(USER, CreditType.ARTICLES)
            if "/2/" in path:
                raise HTTPClientError("bad gateway", status_code=502)
            return {"success": True, "data": {"rewritten_content": "x"}}

        backend = AsyncMock()
        backend.post = AsyncMock(side_effect=post)
        orchestrator = RewriteOrchestrator(backend, ledger)
        articles = [make_article("1"), make_article("2"), make_article("3")]

        result = await orchestrator.rewrite_batch(articles, USER)

        assert [a.id for a in result.rewritten] == ["1", "3"]
        assert [f.item_id for f in result.failures] == ["2"]
        assert result.summary == "2 succeeded, 1 failed"
        assert calls == [f"/news/articles/{i}/rewrite" for i in ("1", "2", "3")]
        # Two successes charged; the failure was compensated
        assert ledger.balance(USER, CreditType.ARTICLES).available == 3

    @pytest.mark.asyncio
    async def test_runs_out_of_credits_midway(self, make_article):
        ledger = InMemoryCreditLedger()
        ledger.set_quota(USER, CreditType.ARTICLES, quota=1)
        orchestrator = RewriteOrchestrator(_consuming_backend(ledger), ledger)

        result = await orchestrator.rewrite_batch([make_article("1"), make_article("2")], USER)

        assert len(result.rewritten) == 1
        assert result.failures[0].kind == ErrorKind.INSUFFICIENT_CREDITS
