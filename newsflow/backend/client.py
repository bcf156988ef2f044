"""
JSON request/response client for the remote backend.

Every persisted entity (sources, monitoring configs, articles, sites,
credit balances) and every collaborator (AI rewrite, publish, schedule)
sits behind one REST API. BackendClient adds the base URL, bearer token
and JSON decoding on top of HTTPClient; repositories and orchestrators
only deal in paths and dicts.
"""

import logging
from types import TracebackType
from typing import Any

import httpx

from newsflow.backend.http_client import HTTPClient, HTTPClientError, RetryConfig
from newsflow.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def unwrap_data(payload: Any) -> Any:
    """Return the ``data`` member of a ``{"success": ..., "data": ...}`` envelope.

    Paginated listings nest one level deeper (``data.data``); both shapes
    are accepted. Payloads without an envelope are returned unchanged.
    """
    if isinstance(payload, dict) and "data" in payload:
        data = payload["data"]
        if isinstance(data, dict) and isinstance(data.get("data"), list):
            return data["data"]
        return data
    return payload


def is_success(payload: Any) -> bool:
    """True unless the payload explicitly reports ``success: false``."""
    if isinstance(payload, dict):
        return payload.get("success", True) is not False
    return True


class BackendClient:
    """
    Async client for the remote backend API.

    Usage:
        async with BackendClient.from_settings() as backend:
            payload = await backend.get("/news/sources")
            sources = unwrap_data(payload)
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        retry_config: RetryConfig | None = None,
        timeout: float = 30.0,
        user_agent: str = "newsflow/0.1.0",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        headers = {
            "Accept": "application/json",
            "User-Agent": user_agent,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._http = HTTPClient(
            retry_config=retry_config,
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "BackendClient":
        """Build a client from application settings."""
        settings = settings or get_settings()
        token = settings.api_token.get_secret_value() if settings.api_token else None
        return cls(
            base_url=settings.api_base_url,
            token=token,
            retry_config=RetryConfig(
                max_retries=settings.max_http_retries,
                max_backoff_seconds=settings.max_backoff_seconds,
            ),
            user_agent=settings.user_agent,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def __aenter__(self) -> "BackendClient":
        await self._http.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self._http.close()

    def url_for(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    async def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """GET a resource. Retried on transient failures."""
        response = await self._http.request(
            "GET", self.url_for(path), params=_clean_params(params), timeout=timeout
        )
        return _decode(response)

    async def post(
        self,
        path: str,
        body: dict[str, Any] | None = None,
        timeout: float | None = None,
        idempotent: bool = False,
    ) -> Any:
        """POST to a resource.

        Non-idempotent posts (the default) are sent exactly once so a
        transient failure can never charge a credit or publish twice.
        """
        response = await self._http.request(
            "POST",
            self.url_for(path),
            json_body=body or {},
            timeout=timeout,
            max_retries=None if idempotent else 0,
        )
        return _decode(response)

    async def put(
        self,
        path: str,
        body: dict[str, Any],
        timeout: float | None = None,
    ) -> Any:
        """PUT a full or partial update. Updates are idempotent and retried."""
        response = await self._http.request(
            "PUT", self.url_for(path), json_body=body, timeout=timeout
        )
        return _decode(response)

    async def delete(self, path: str, timeout: float | None = None) -> Any:
        """DELETE a resource."""
        response = await self._http.request(
            "DELETE", self.url_for(path), timeout=timeout
        )
        return _decode(response)


def _clean_params(params: dict[str, Any] | None) -> dict[str, Any] | None:
    if not params:
        return None
    return {k: v for k, v in params.items() if v is not None}


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError as e:
        raise HTTPClientError(
            f"Backend returned a non-JSON body for {response.request.url}",
            status_code=response.status_code,
            response_body=response.text[:500],
        ) from e
