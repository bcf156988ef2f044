"""
Command-line interface for newsflow.

Every command is one sequential flow against the backend API. Periodic
execution is left to an external trigger, e.g. a cron entry calling
``newsflow run-due --user-id 42`` every few minutes.

Usage:
    newsflow process-source 12 --batch-size 10 --offset 0
    newsflow fetch-more 12            # next unseen window of source 12
    newsflow reset-counter 12
    newsflow execute-monitoring 7 --user-id 42
    newsflow run-due --user-id 42
    newsflow next-run
    newsflow rewrite 301 302 --user-id 42
    newsflow publish 301 --site-id 3
    newsflow schedule 301 --at "2030-01-01 09:00"
    newsflow validate-integrity
    newsflow credits --user-id 42
    newsflow stats
"""

import asyncio
import sys
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timezone
from typing import Any

import click

from newsflow.articles.repository import ArticleRepository
from newsflow.articles.schemas import Article, ArticleStatus
from newsflow.backend.client import BackendClient
from newsflow.backend.http_client import HTTPClient, HTTPClientError, RetryConfig
from newsflow.config.settings import get_settings
from newsflow.credits.ledger import CreditLedgerClient
from newsflow.credits.schemas import CreditType
from newsflow.errors import PipelineError
from newsflow.monitoring.repository import MonitoringRepository
from newsflow.monitoring.schedule import next_run
from newsflow.observability.logging import setup_logging
from newsflow.observability.metrics import get_metrics
from newsflow.pipeline.config import PipelineConfig
from newsflow.pipeline.execution_counter import (
    ExecutionCounter,
    FileCounterStore,
    InMemoryCounterStore,
    RedisCounterStore,
)
from newsflow.pipeline.feeds import FeedFetcher
from newsflow.pipeline.integrity import IntegrityValidator
from newsflow.pipeline.publish import PublishOrchestrator
from newsflow.pipeline.rewrite import RewriteOrchestrator
from newsflow.pipeline.runner import MonitoringRunner
from newsflow.pipeline.schemas import ItemFailure, ProcessResult
from newsflow.pipeline.source_processor import SourceProcessor
from newsflow.sites.repository import SitesRepository
from newsflow.sources.repository import SourcesRepository
from newsflow.sources.service import SourcesService


@dataclass
class Services:
    """Wired pipeline components for one CLI invocation."""

    backend: BackendClient
    sources: SourcesService
    monitoring: MonitoringRepository
    articles: ArticleRepository
    sites: SitesRepository
    ledger: CreditLedgerClient
    processor: SourceProcessor
    rewriter: RewriteOrchestrator
    publisher: PublishOrchestrator
    runner: MonitoringRunner
    integrity: IntegrityValidator


@asynccontextmanager
async def open_services() -> AsyncIterator[Services]:
    """Connect to the backend (and Redis, if configured) and wire components."""
    settings = get_settings()
    config = PipelineConfig()

    if config.counter_backend == "redis":
        store: Any = RedisCounterStore(
            redis_url=str(settings.redis_url), key_prefix=config.counter_key_prefix
        )
        await store.connect()
    elif config.counter_backend == "file":
        store = FileCounterStore(config.counter_path)
    else:
        store = InMemoryCounterStore()

    origin_http = HTTPClient(
        retry_config=RetryConfig(
            max_retries=settings.max_http_retries,
            max_backoff_seconds=settings.max_backoff_seconds,
        ),
        timeout=config.origin_fetch_timeout,
        headers={"User-Agent": settings.user_agent},
    )

    try:
        async with BackendClient.from_settings(settings) as backend, origin_http:
            sources = SourcesService(SourcesRepository(backend))
            monitoring = MonitoringRepository(backend)
            articles = ArticleRepository(backend)
            sites = SitesRepository(backend)
            ledger = CreditLedgerClient(backend)

            processor = SourceProcessor(
                sources,
                articles,
                FeedFetcher(origin_http, timeout=config.origin_fetch_timeout),
                counter=ExecutionCounter(store, batch_size=config.batch_size),
                config=config,
            )
            rewriter = RewriteOrchestrator(backend, ledger, config)
            publisher = PublishOrchestrator(backend, sites, sources, monitoring, articles, config)

            yield Services(
                backend=backend,
                sources=sources,
                monitoring=monitoring,
                articles=articles,
                sites=sites,
                ledger=ledger,
                processor=processor,
                rewriter=rewriter,
                publisher=publisher,
                runner=MonitoringRunner(processor, rewriter, publisher, monitoring, sites, ledger),
                integrity=IntegrityValidator(sources, monitoring, sites, articles),
            )
    finally:
        if isinstance(store, RedisCounterStore):
            await store.close()


def _run(coro: Coroutine[Any, Any, None]) -> None:
    """Run a command coroutine, turning pipeline errors into exit code 1."""
    try:
        asyncio.run(coro)
    except PipelineError as e:
        click.echo(click.style(f"Error [{e.kind.value}]: {e.message}", fg="red"), err=True)
        sys.exit(1)
    except HTTPClientError as e:
        click.echo(click.style(f"Backend error: {e}", fg="red"), err=True)
        sys.exit(1)


def _failure_line(failure: ItemFailure, prefix: str = "") -> str:
    return f"  ✗ {prefix}{failure.item_id}: [{failure.kind.value}] {failure.message}"


def _echo_process_result(result: ProcessResult) -> None:
    click.echo(f"\nSource {result.source_id} (offset {result.offset}):")
    click.echo("-" * 40)
    click.echo(f"  Processed: {result.processed}")
    click.echo(f"  Created:   {result.created}")
    click.echo(f"  Existing:  {result.existing}")
    color = {"valid": "green", "warning": "yellow"}.get(result.validation.status.value, "red")
    click.echo(click.style(f"  Validation: {result.validation.status.value}", fg=color))
    if result.validation.message:
        click.echo(f"    {result.validation.message}")
    for suggestion in result.validation.suggestions:
        click.echo(f"    - {suggestion}")
    for failure in result.failures:
        click.echo(click.style(_failure_line(failure), fg="red"))


async def _load_article(services: Services, article_id: str) -> Article:
    article = await services.articles.get(article_id)
    if article is None:
        raise click.ClickException(f"Article {article_id} not found")
    return article


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """newsflow - news source monitoring and article automation."""
    setup_logging(level="DEBUG" if debug else None)


@main.command("process-source")
@click.argument("source_id")
@click.option("--batch-size", default=None, type=int, help="Items to request")
@click.option("--offset", default=0, type=int, help="Items to skip from the newest")
@click.option("--order", type=click.Choice(["desc", "asc"]), default="desc", help="Publish date order")
def process_source(source_id: str, batch_size: int | None, offset: int, order: str) -> None:
    """Fetch one window of a source and store new articles."""

    async def run():
        async with open_services() as services:
            size = batch_size or services.processor.counter.batch_size
            result = await services.processor.process_source(
                source_id, size, offset=offset, sort_order=order
            )
            _echo_process_result(result)

    _run(run())


@main.command("fetch-more")
@click.argument("source_id")
def fetch_more(source_id: str) -> None:
    """Process the next unseen window of a source."""

    async def run():
        async with open_services() as services:
            result = await services.processor.process_next(source_id)
            _echo_process_result(result)
            next_offset = await services.processor.counter.next_offset(source_id)
            click.echo(f"\nNext offset: {next_offset}")

    _run(run())


@main.command("reset-counter")
@click.argument("source_id")
def reset_counter(source_id: str) -> None:
    """Return a source to its most recent items."""

    async def run():
        async with open_services() as services:
            await services.processor.counter.reset(source_id)
            click.echo(f"Execution counter for source {source_id} reset")

    _run(run())


@main.command("execute-monitoring")
@click.argument("monitoring_id")
@click.option("--user-id", required=True, help="User whose credits are charged")
def execute_monitoring(monitoring_id: str, user_id: str) -> None:
    """Run one monitoring config now."""

    async def run():
        async with open_services() as services:
            result = await services.runner.execute(monitoring_id, user_id)
            color = "green" if result.succeeded else "red"
            click.echo(click.style(f"Monitoring {monitoring_id}: {result.summary}", fg=color))
            for failure in result.publish_failures:
                click.echo(_failure_line(failure, "publish "))
            if result.rewrite:
                for failure in result.rewrite.failures:
                    click.echo(_failure_line(failure, "rewrite "))
            if not result.succeeded:
                sys.exit(1)

    _run(run())


@main.command("run-due")
@click.option("--user-id", required=True, help="User whose credits are charged")
@click.option("--metrics/--no-metrics", default=False, help="Expose Prometheus metrics while running")
def run_due(user_id: str, metrics: bool) -> None:
    """Run every active monitoring config that is due."""

    async def run():
        if metrics:
            get_metrics().start_server()
        async with open_services() as services:
            results = await services.runner.run_due(user_id)
            if not results:
                click.echo("Nothing due")
            for result in results:
                color = "green" if result.succeeded else "red"
                click.echo(click.style(f"  {result.monitoring_id}: {result.summary}", fg=color))

    _run(run())


@main.command("next-run")
def next_run_cmd() -> None:
    """Show when each monitoring config runs next."""

    async def run():
        async with open_services() as services:
            configs = await services.monitoring.list_configs()
            click.echo(f"\n{'Monitoring':<12} {'Source':<10} {'Interval':<10} Next run")
            click.echo("-" * 60)
            for config in configs:
                status = next_run(config).status
                color = {"ready": "green", "paused": "yellow"}.get(status)
                click.echo(
                    click.style(
                        f"{config.id:<12} {config.news_source_id or '-':<10} "
                        f"{config.check_interval_minutes:<10} {status}",
                        fg=color,
                    )
                )

    _run(run())


@main.command()
@click.argument("article_ids", nargs=-1, required=True)
@click.option("--user-id", required=True, help="User whose credits are charged")
def rewrite(article_ids: tuple[str, ...], user_id: str) -> None:
    """Rewrite articles with AI, one at a time."""

    async def run():
        async with open_services() as services:
            articles = [await _load_article(services, a) for a in article_ids]
            result = await services.rewriter.rewrite_batch(articles, user_id)
            for article in result.rewritten:
                click.echo(click.style(f"  ✓ {article.id}: {article.title}", fg="green"))
            for failure in result.failures:
                click.echo(click.style(_failure_line(failure), fg="red"))
            click.echo(result.summary)
            if result.failures:
                sys.exit(1)

    _run(run())


@main.command()
@click.argument("article_id")
@click.option("--site-id", default=None, help="Destination site (default: resolved)")
def publish(article_id: str, site_id: str | None) -> None:
    """Publish an article to its destination site."""

    async def run():
        async with open_services() as services:
            article = await _load_article(services, article_id)
            result = await services.publisher.publish(article, explicit_site_id=site_id)
            if result.warning:
                click.echo(click.style(f"Warning: {result.warning}", fg="yellow"))
            click.echo(click.style(
                f"Published to '{result.site.label}': {result.published_url or '(no url)'}",
                fg="green",
            ))

    _run(run())


@main.command()
@click.argument("article_id")
@click.option(
    "--at",
    "when",
    required=True,
    type=click.DateTime(formats=["%Y-%m-%d %H:%M", "%Y-%m-%dT%H:%M", "%Y-%m-%dT%H:%M:%S"]),
    help="Publication time in UTC",
)
@click.option("--site-id", default=None, help="Destination site (default: resolved)")
def schedule(article_id: str, when: Any, site_id: str | None) -> None:
    """Schedule an article for later publication."""

    async def run():
        async with open_services() as services:
            article = await _load_article(services, article_id)
            result = await services.publisher.schedule_publish(
                article, when.replace(tzinfo=timezone.utc), site_id=site_id
            )
            click.echo(click.style(
                f"Scheduled for {result.scheduled_for.isoformat()} on '{result.site.label}'",
                fg="green",
            ))

    _run(run())


@main.command("validate-integrity")
@click.option("--heal/--no-heal", default=True, help="Drop orphaned cached article groups")
def validate_integrity(heal: bool) -> None:
    """Report dangling references between sources, monitoring and sites."""

    async def run():
        async with open_services() as services:
            report, _ = await services.integrity.check(heal=heal)
            if report.is_clean:
                click.echo(click.style("No integrity issues", fg="green"))
                return
            for issue in report.issues:
                suffix = " (healed)" if issue.healed else ""
                line = f"  ✗ [{issue.kind.value}] {issue.message}{suffix}"
                click.echo(click.style(line, fg="yellow"))
            click.echo(f"\n{len(report.issues)} issues, {len(report.healed_groups)} cache groups healed")

    _run(run())


@main.command()
@click.option("--user-id", required=True, help="User to inspect")
@click.option(
    "--type",
    "credit_type",
    type=click.Choice([t.value for t in CreditType]),
    default=CreditType.ARTICLES.value,
    help="Resource type",
)
def credits(user_id: str, credit_type: str) -> None:
    """Show a user's credit balance."""

    async def run():
        async with open_services() as services:
            balance = await services.ledger.get_balance(user_id, CreditType(credit_type))
            click.echo(f"\nCredits for user {user_id} ({credit_type}):")
            click.echo("-" * 40)
            click.echo(f"  Quota:     {balance.quota}")
            click.echo(f"  Consumed:  {balance.consumed}")
            click.echo(f"  Available: {balance.available}")

    _run(run())


@main.command()
def stats() -> None:
    """Show article counts per status."""

    async def run():
        async with open_services() as services:
            statistics = await services.articles.statistics()
            click.echo(f"\nArticles: {statistics.total}")
            click.echo("-" * 40)
            for status in ArticleStatus:
                click.echo(f"  {status.value:<12} {statistics.count(status)}")

    _run(run())


if __name__ == "__main__":
    main()
