"""
Structured logging for the pipeline.

Production runs (cron-triggered ``run-due``) emit one JSON object per
line; interactive runs get colored console output. Every event logged
inside a monitoring execution carries its ``run_id`` and
``monitoring_id``.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from newsflow.config.settings import get_settings

# Site credentials and backend tokens must never reach the log stream
SECRET_KEYS = frozenset({
    "api_token",
    "token",
    "password",
    "application_password",
    "applicationPassword",
    "authorization",
})

NOISY_LOGGERS = ("httpx", "httpcore", "redis", "asyncio")


def redact_secrets(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Mask values of credential-like keys."""
    for key in event_dict.keys() & SECRET_KEYS:
        if event_dict[key]:
            event_dict[key] = "***"
    return event_dict


def setup_logging(level: str | None = None) -> None:
    """
    Configure structlog and the standard library root logger.

    Args:
        level: Overrides ``LOG_LEVEL`` (the CLI passes ``DEBUG`` for --debug).
    """
    settings = get_settings()
    level = (level or settings.log_level).upper()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        redact_secrets,
    ]

    if settings.is_production:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [structlog.dev.ConsoleRenderer(colors=True)]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Repositories log through the standard library
    logging.basicConfig(format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)
    logging.getLogger().setLevel(getattr(logging, level))

    # Request-level chatter stays hidden unless debugging
    quiet = logging.DEBUG if level == "DEBUG" else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet)


@contextmanager
def log_context(**values: Any) -> Iterator[None]:
    """Bind ``values`` to every event logged inside the block.

    Only the keys bound here are removed on exit; context bound by the
    caller survives.
    """
    with structlog.contextvars.bound_contextvars(**values):
        yield
