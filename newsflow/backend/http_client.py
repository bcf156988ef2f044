"""
HTTP infrastructure layer with retry logic and typed transport errors.

Provides:
- RetryConfig: Exponential backoff configuration
- HTTPClient: Async HTTP client with automatic retry
- HTTPClientError and subclasses distinguishing timeouts, connection
  failures and rate limiting from plain error statuses

This layer separates HTTP concerns (retries, backoff, timeouts) from the
pipeline logic (credit compensation, site resolution) in the orchestrators.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)

_SUPPORTED_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE"})


@dataclass
class RetryConfig:
    """
    Exponential backoff configuration for HTTP retries.

    Implements exponential backoff with jitter to prevent thundering herd
    problems when multiple clients retry simultaneously.

    Formula: min(max_backoff, base_delay * 2^attempt) * (1 + random(0, jitter_factor))
    """

    max_retries: int = 3
    max_backoff_seconds: float = 60.0
    base_delay: float = 1.0
    jitter_factor: float = 0.1

    def calculate_backoff(self, attempt: int) -> float:
        """
        Calculate backoff duration for a given retry attempt.

        Args:
            attempt: The retry attempt number (0-indexed)

        Returns:
            Backoff duration in seconds with jitter applied
        """
        delay = self.base_delay * (2**attempt)
        delay = min(delay, self.max_backoff_seconds)

        jitter = delay * self.jitter_factor * random.random()
        return delay + jitter

    def is_retryable_status(self, status_code: int) -> bool:
        """
        Check if an HTTP status code should trigger a retry.

        Retryable status codes: 429, 500, 502, 503, 504.
        """
        return status_code in {429, 500, 502, 503, 504}


class HTTPClientError(Exception):
    """Base exception for HTTP client errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class RateLimitError(HTTPClientError):
    """Raised when rate limit is hit and all retries exhausted."""

    pass


class RequestTimeoutError(HTTPClientError):
    """Raised when the remote call did not complete within its timeout."""

    pass


class ConnectionFailedError(HTTPClientError):
    """Raised when the remote host could not be reached."""

    pass


class HTTPClient:
    """
    Async HTTP client with retry logic.

    Features:
    - Exponential backoff with jitter on retryable errors
    - Automatic retry on 429, 5xx status codes
    - Automatic retry on timeout/connection errors
    - Per-call timeout and retry overrides (non-idempotent calls pass
      ``max_retries=0``)
    - Context manager for proper resource cleanup

    Example:
        async with HTTPClient(RetryConfig(max_retries=3)) as client:
            response = await client.request("GET", "https://example.com/feed")
    """

    def __init__(
        self,
        retry_config: RetryConfig | None = None,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize HTTP client.

        Args:
            retry_config: Configuration for retry behavior. Uses defaults if None.
            timeout: Default request timeout in seconds.
            headers: Headers sent with every request.
            transport: Optional httpx transport (tests, proxies).
        """
        self.retry_config = retry_config or RetryConfig()
        self.timeout = timeout
        self._headers = dict(headers) if headers else {}
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "HTTPClient":
        """Enter async context manager, create client."""
        await self.open()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager, close client."""
        await self.close()

    async def open(self) -> None:
        """Create the underlying httpx client if not already open."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers=self._headers,
                transport=self._transport,
                follow_redirects=True,
            )

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """Perform GET request with retry logic."""
        return await self.request("GET", url, params=params, headers=headers, timeout=timeout)

    async def post(
        self,
        url: str,
        json_body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
    ) -> httpx.Response:
        """Perform POST request with retry logic."""
        return await self.request(
            "POST",
            url,
            params=params,
            headers=headers,
            json_body=json_body,
            timeout=timeout,
            max_retries=max_retries,
        )

    async def request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
    ) -> httpx.Response:
        """
        Execute HTTP request with retry logic.

        Args:
            method: HTTP method (GET, POST, PUT, PATCH, DELETE)
            url: Request URL
            params: Query parameters
            headers: Extra request headers
            json_body: JSON body to send
            timeout: Timeout override in seconds for this call
            max_retries: Retry override for this call (0 disables retries)

        Returns:
            httpx.Response on success

        Raises:
            RequestTimeoutError: When the call timed out on the last attempt
            ConnectionFailedError: When the host was unreachable on the last attempt
            RateLimitError: When rate limited and retries exhausted
            HTTPClientError: On any other error status
        """
        if not self._client:
            raise RuntimeError("HTTPClient must be used as async context manager")

        method = method.upper()
        if method not in _SUPPORTED_METHODS:
            raise ValueError(f"Unsupported HTTP method: {method}")

        retries = self.retry_config.max_retries if max_retries is None else max_retries
        request_timeout = self.timeout if timeout is None else timeout
        last_status_code: int | None = None
        last_response_body: str | None = None

        for attempt in range(retries + 1):
            try:
                response = await self._client.request(
                    method,
                    url,
                    params=params or None,
                    headers=headers or None,
                    json=json_body,
                    timeout=request_timeout,
                )
            except httpx.TimeoutException as e:
                if attempt < retries:
                    await self._backoff(url, type(e).__name__, attempt, retries)
                    continue
                raise RequestTimeoutError(
                    f"Request to {url} timed out after {request_timeout:.0f}s "
                    f"({attempt + 1} attempts)",
                    status_code=last_status_code,
                ) from e
            except (httpx.ConnectError, httpx.ReadError) as e:
                if attempt < retries:
                    await self._backoff(url, type(e).__name__, attempt, retries)
                    continue
                raise ConnectionFailedError(
                    f"Could not reach {url} after {attempt + 1} attempts: {e}",
                    status_code=last_status_code,
                ) from e

            if self.retry_config.is_retryable_status(response.status_code):
                last_status_code = response.status_code
                last_response_body = response.text

                if attempt < retries:
                    await self._backoff(url, f"status {response.status_code}", attempt, retries)
                    continue

                if response.status_code == 429:
                    raise RateLimitError(
                        f"Rate limit exceeded for {url} after {attempt + 1} attempts",
                        status_code=response.status_code,
                        response_body=last_response_body,
                    )
                raise HTTPClientError(
                    f"Request failed with status {response.status_code} after {attempt + 1} attempts",
                    status_code=response.status_code,
                    response_body=last_response_body,
                )

            if response.status_code >= 400:
                raise HTTPClientError(
                    f"Request failed with status {response.status_code}",
                    status_code=response.status_code,
                    response_body=response.text,
                )

            return response

        # Should not reach here, but just in case
        raise HTTPClientError(
            f"Request failed after {retries + 1} attempts",
            status_code=last_status_code,
            response_body=last_response_body,
        )

    async def _backoff(self, url: str, reason: str, attempt: int, retries: int) -> None:
        backoff = self.retry_config.calculate_backoff(attempt)
        logger.warning(
            f"Retryable error {reason} for {url}, "
            f"attempt {attempt + 1}/{retries + 1}, "
            f"backing off {backoff:.2f}s"
        )
        await asyncio.sleep(backoff)
