"""Tests for the newsflow CLI commands."""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from newsflow.articles.schemas import ArticleStatistics
from newsflow.cli import main
from newsflow.credits.schemas import CreditBalance, CreditType
from newsflow.errors import DestinationError, ErrorKind, OriginError
from newsflow.pipeline.schemas import (
    IntegrityIssue,
    IntegrityReport,
    IssueKind,
    MonitoringRunResult,
    ProcessResult,
    PublishResult,
    ResolutionStrategy,
    ScheduleResult,
)
from newsflow.pipeline.source_processor import SourceProcessor
from newsflow.sources.schemas import SourceValidation, ValidationStatus


# ── Fixtures ──────────────────────────────────────────────


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def services():
    """Services bundle with every component mocked."""
    services = MagicMock()
    services.processor.counter.batch_size = 10
    services.processor.counter.next_offset = AsyncMock(return_value=20)
    services.processor.counter.reset = AsyncMock()
    services.processor.process_source = AsyncMock()
    services.processor.process_next = AsyncMock()
    services.articles.get = AsyncMock(return_value=None)
    services.runner.execute = AsyncMock()
    services.runner.run_due = AsyncMock(return_value=[])
    services.monitoring.list_configs = AsyncMock(return_value=[])
    services.rewriter.rewrite_batch = AsyncMock()
    services.publisher.publish = AsyncMock()
    services.publisher.schedule_publish = AsyncMock()
    services.integrity.check = AsyncMock()
    services.ledger.get_balance = AsyncMock()
    return services


@pytest.fixture
def invoke(runner, services):
    """Invoke the CLI with open_services patched to yield the mocks."""

    @asynccontextmanager
    async def fake_open_services():
        yield services

    def _invoke(*args: str):
        with patch("newsflow.cli.open_services", fake_open_services):
            return runner.invoke(main, list(args))

    return _invoke


def _process_result(status=ValidationStatus.VALID, offset=0) -> ProcessResult:
    return ProcessResult(
        source_id="12",
        offset=offset,
        created=7,
        existing=3,
        processed=10,
        validation=SourceValidation(status=status, suggestions=["Check the URL"]),
    )


# ── Source commands ───────────────────────────────────────


class TestProcessSource:
    def test_prints_counts(self, invoke, services):
        services.processor.process_source.return_value = _process_result()

        result = invoke("process-source", "12", "--offset", "20")

        assert result.exit_code == 0
        assert "Created:   7" in result.output
        assert "Validation: valid" in result.output
        services.processor.process_source.assert_awaited_once_with(
            "12", 10, offset=20, sort_order="desc"
        )

    def test_origin_error_exits_1(self, invoke, services):
        services.processor.process_source.side_effect = OriginError(
            "no feed", kind=ErrorKind.MALFORMED_FEED
        )

        result = invoke("process-source", "12")

        assert result.exit_code == 1
        assert "malformed-feed" in result.output


def test_fetch_more_shows_next_offset(invoke, services):
    services.processor.process_next.return_value = _process_result(offset=10)

    result = invoke("fetch-more", "12")

    assert result.exit_code == 0
    assert "Next offset: 20" in result.output


def test_reset_counter(invoke, services):
    result = invoke("reset-counter", "12")

    assert result.exit_code == 0
    services.processor.counter.reset.assert_awaited_once_with("12")


def test_fetch_more_continues_across_invocations(runner, tmp_path, monkeypatch):
    monkeypatch.setenv("PIPELINE_COUNTER_BACKEND", "file")
    monkeypatch.setenv("PIPELINE_COUNTER_PATH", str(tmp_path / "executions.json"))
    process = AsyncMock(
        side_effect=lambda source_id, size, offset, sort_order: _process_result(offset=offset)
    )

    with patch.object(SourceProcessor, "process_source", process):
        first = runner.invoke(main, ["fetch-more", "12"])
        second = runner.invoke(main, ["fetch-more", "12"])
        runner.invoke(main, ["reset-counter", "12"])
        runner.invoke(main, ["fetch-more", "12"])

    assert first.exit_code == 0
    assert "Next offset: 10" in first.output
    assert "Next offset: 20" in second.output
    assert [c.kwargs["offset"] for c in process.await_args_list] == [0, 10, 0]


# ── Monitoring commands ───────────────────────────────────


class TestExecuteMonitoring:
    def test_success(self, invoke, services):
        services.runner.execute.return_value = MonitoringRunResult(monitoring_id="7")

        result = invoke("execute-monitoring", "7", "--user-id", "42")

        assert result.exit_code == 0
        assert "Monitoring 7: 0 new" in result.output
        services.runner.execute.assert_awaited_once_with("7", "42")

    def test_failed_run_exits_1(self, invoke, services):
        services.runner.execute.return_value = MonitoringRunResult(
            monitoring_id="7", error=OriginError("down")
        )

        result = invoke("execute-monitoring", "7", "--user-id", "42")

        assert result.exit_code == 1
        assert "origin-unreachable" in result.output

    def test_user_id_required(self, invoke):
        assert invoke("execute-monitoring", "7").exit_code == 2


def test_run_due_nothing_due(invoke):
    result = invoke("run-due", "--user-id", "42")

    assert result.exit_code == 0
    assert "Nothing due" in result.output


def test_next_run_lists_configs(invoke, services, make_monitoring):
    services.monitoring.list_configs.return_value = [
        make_monitoring(id="7", last_check_at=datetime.now(timezone.utc) - timedelta(hours=3)),
        make_monitoring(id="8", active=False),
    ]

    result = invoke("next-run")

    assert result.exit_code == 0
    assert "ready" in result.output
    assert "paused" in result.output


# ── Article commands ──────────────────────────────────────


class TestPublish:
    def test_unknown_article(self, invoke):
        result = invoke("publish", "999")

        assert result.exit_code == 1
        assert "Article 999 not found" in result.output

    def test_fallback_warning_is_shown(self, invoke, services, article, site):
        services.articles.get.return_value = article
        services.publisher.publish.return_value = PublishResult(
            article=article,
            site=site,
            strategy=ResolutionStrategy.SINGLE_SITE_FALLBACK,
            published_url="https://blog3.example.com/?p=55",
            warning="using the only site",
        )

        result = invoke("publish", "301")

        assert result.exit_code == 0
        assert "Warning: using the only site" in result.output
        assert "https://blog3.example.com/?p=55" in result.output

    def test_destination_error(self, invoke, services, article):
        services.articles.get.return_value = article
        services.publisher.publish.side_effect = DestinationError("no site")

        result = invoke("publish", "301")

        assert result.exit_code == 1
        assert "destination-unresolved" in result.output


def test_schedule_passes_utc(invoke, services, article, site):
    services.articles.get.return_value = article
    when = datetime(2030, 1, 1, 9, 0, tzinfo=timezone.utc)
    services.publisher.schedule_publish.return_value = ScheduleResult(
        article_id="301", site=site, scheduled_for=when
    )

    result = invoke("schedule", "301", "--at", "2030-01-01 09:00", "--site-id", "3")

    assert result.exit_code == 0
    args, kwargs = services.publisher.schedule_publish.await_args
    assert args[1] == when
    assert kwargs["site_id"] == "3"


# ── Integrity and credits ─────────────────────────────────


def test_validate_integrity_reports_issues(invoke, services):
    report = IntegrityReport(
        issues=[
            IntegrityIssue(
                kind=IssueKind.ORPHANED_CACHE_GROUP,
                record_id="77",
                missing={"news_source_id": "77"},
                message="Cached article group for deleted source 77",
                healed=True,
            )
        ],
        healed_groups=["77"],
    )
    services.integrity.check.return_value = (report, {})

    result = invoke("validate-integrity")

    assert result.exit_code == 0
    assert "(healed)" in result.output
    assert "1 issues, 1 cache groups healed" in result.output
    services.integrity.check.assert_awaited_once_with(heal=True)


def test_credits(invoke, services):
    services.ledger.get_balance.return_value = CreditBalance(
        user_id="42", credit_type=CreditType.ARTICLES, quota=10, consumed=4
    )

    result = invoke("credits", "--user-id", "42")

    assert result.exit_code == 0
    assert "Available: 6" in result.output


def test_stats(invoke, services):
    services.articles.statistics = AsyncMock(
        return_value=ArticleStatistics(total=3, by_status={"published": 2, "pending": 1})
    )

    result = invoke("stats")

    assert result.exit_code == 0
    assert "Articles: 3" in result.output
    assert "published    2" in result.output
    assert "ignored      0" in result.output
