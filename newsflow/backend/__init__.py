"""Remote backend access: retrying HTTP transport and JSON API client."""

from newsflow.backend.client import BackendClient, is_success, unwrap_data
from newsflow.backend.http_client import (
    ConnectionFailedError,
    HTTPClient,
    HTTPClientError,
    RateLimitError,
    RequestTimeoutError,
    RetryConfig,
)

__all__ = [
    "BackendClient",
    "ConnectionFailedError",
    "HTTPClient",
    "HTTPClientError",
    "RateLimitError",
    "RequestTimeoutError",
    "RetryConfig",
    "is_success",
    "unwrap_data",
]
