"""
Error taxonomy for the article-automation pipeline.

Whole-operation failures raise a PipelineError subclass carrying an
ErrorKind. Batch operations never raise for a single item; they record an
ItemFailure (see newsflow.pipeline) built from the same kinds.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum
from typing import Any

from newsflow.backend.http_client import (
    ConnectionFailedError,
    HTTPClientError,
    RateLimitError,
    RequestTimeoutError,
)


class ErrorKind(str, Enum):
    """Machine-readable failure classification surfaced to callers."""

    ORIGIN_UNREACHABLE = "origin-unreachable"
    MALFORMED_FEED = "malformed-feed"
    TIMEOUT = "timeout"
    INSUFFICIENT_CREDITS = "insufficient-credits"
    DESTINATION_UNRESOLVED = "destination-unresolved"
    INCOMPLETE_DESTINATION_CONFIG = "incomplete-destination-config"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    SERVER_ERROR = "server-error"
    NOT_FOUND = "not-found"
    INVALID_SCHEDULE_TIME = "invalid-schedule-time"
    INTEGRITY_ORPHAN = "integrity-orphan"
    REWRITE_FAILED = "rewrite-failed"
    PUBLISH_FAILED = "publish-failed"
    SOURCE_NOT_FOUND = "source-not-found"
    INVALID_INPUT = "invalid-input"
    LEDGER_ERROR = "ledger-error"


class PipelineError(Exception):
    """Base class for structured pipeline failures."""

    default_kind: ErrorKind = ErrorKind.SERVER_ERROR

    def __init__(
        self,
        message: str,
        kind: ErrorKind | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind or self.default_kind
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "details": dict(self.details),
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, message={self.message!r})"


class ValidationError(PipelineError):
    """Input rejected before any remote call was made."""

    default_kind = ErrorKind.INVALID_INPUT

    def __init__(self, message: str, errors: dict[str, str] | None = None) -> None:
        super().__init__(message, details={"errors": errors or {}})
        self.errors = errors or {}


class SourceNotFoundError(PipelineError):
    default_kind = ErrorKind.SOURCE_NOT_FOUND


class OriginError(PipelineError):
    """Fetching from a source origin failed (unreachable, timeout, malformed)."""

    default_kind = ErrorKind.ORIGIN_UNREACHABLE


class InsufficientCreditsError(PipelineError):
    default_kind = ErrorKind.INSUFFICIENT_CREDITS

    def __init__(
        self,
        message: str,
        required: int = 1,
        available: int | None = None,
    ) -> None:
        super().__init__(
            message,
            details={"required": required, "available": available},
        )
        self.required = required
        self.available = available


class LedgerError(PipelineError):
    """The credit ledger could not complete a consume or restore."""

    default_kind = ErrorKind.LEDGER_ERROR


class RewriteError(PipelineError):
    default_kind = ErrorKind.REWRITE_FAILED


class DestinationError(PipelineError):
    """No usable destination site (unresolved or incomplete credentials)."""

    default_kind = ErrorKind.DESTINATION_UNRESOLVED


class PublishError(PipelineError):
    default_kind = ErrorKind.PUBLISH_FAILED


class ScheduleError(PipelineError):
    default_kind = ErrorKind.INVALID_SCHEDULE_TIME


class StoreError(PipelineError):
    """A registry or article store call to the backend failed."""

    default_kind = ErrorKind.SERVER_ERROR

    @classmethod
    def from_http(cls, exc: HTTPClientError, message: str, **details: Any) -> "StoreError":
        kind = classify_http_error(exc, unreachable=ErrorKind.SERVER_ERROR)
        return cls(
            f"{message}: {exc}",
            kind=kind,
            details={**details, "status_code": exc.status_code},
        )


def classify_http_error(
    exc: HTTPClientError,
    unreachable: ErrorKind = ErrorKind.ORIGIN_UNREACHABLE,
    fallback: ErrorKind = ErrorKind.SERVER_ERROR,
) -> ErrorKind:
    """Map a transport error onto the pipeline taxonomy.

    Args:
        exc: Error raised by HTTPClient.
        unreachable: Kind used when the host could not be reached.
        fallback: Kind used for statuses with no specific mapping.
    """
    if isinstance(exc, RequestTimeoutError):
        return ErrorKind.TIMEOUT
    if isinstance(exc, ConnectionFailedError):
        return unreachable
    if isinstance(exc, RateLimitError):
        return ErrorKind.SERVER_ERROR

    status = exc.status_code
    if status == 401:
        return ErrorKind.UNAUTHORIZED
    if status == 403:
        return ErrorKind.FORBIDDEN
    if status == 404:
        return ErrorKind.NOT_FOUND
    if status is not None and status >= 500:
        return ErrorKind.SERVER_ERROR
    return fallback


@contextmanager
def store_errors(message: str, **details: Any) -> Iterator[None]:
    """Re-raise transport errors from backend store calls as StoreError."""
    try:
        yield
    except HTTPClientError as e:
        raise StoreError.from_http(e, message, **details) from e
