"""Tests for the backend JSON client."""

import httpx
import pytest
import respx

from newsflow.backend.client import BackendClient, is_success, unwrap_data
from newsflow.backend.http_client import HTTPClientError, RetryConfig

API = "https://api.test/api"


class TestUnwrapData:
    def test_plain_envelope(self):
        assert unwrap_data({"success": True, "data": {"id": 1}}) == {"id": 1}

    def test_paginated_envelope(self):
        payload = {"success": True, "data": {"data": [{"id": 1}], "total": 1}}

        assert unwrap_data(payload) == [{"id": 1}]

    def test_no_envelope(self):
        assert unwrap_data([{"id": 1}]) == [{"id": 1}]

    def test_is_success(self):
        assert is_success({"success": True})
        assert is_success({"data": []})
        assert not is_success({"success": False})


class TestBackendClient:
    @pytest.mark.asyncio
    @respx.mock
    async def test_sends_bearer_token(self, backend):
        route = respx.get(f"{API}/sites").mock(
            return_value=httpx.Response(200, json={"data": []})
        )

        await backend.get("/sites")

        assert route.calls.last.request.headers["Authorization"] == "Bearer test-token"

    @pytest.mark.asyncio
    @respx.mock
    async def test_drops_none_params(self, backend):
        route = respx.get(f"{API}/news/articles").mock(
            return_value=httpx.Response(200, json={"data": []})
        )

        await backend.get("/news/articles", params={"status": "pending", "page": None})

        url = str(route.calls.last.request.url)
        assert "status=pending" in url
        assert "page" not in url

    @pytest.mark.asyncio
    @respx.mock
    async def test_post_is_sent_once_by_default(self):
        route = respx.post(f"{API}/news/articles/1/publish").mock(
            return_value=httpx.Response(503)
        )
        client = BackendClient(
            API, retry_config=RetryConfig(max_retries=3, base_delay=0.01, jitter_factor=0.0)
        )

        async with client:
            with pytest.raises(HTTPClientError):
                await client.post("/news/articles/1/publish", {"site_id": "3"})

        assert route.call_count == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_idempotent_post_is_retried(self):
        route = respx.post(f"{API}/users/1/check-credits").mock(
            side_effect=[httpx.Response(503), httpx.Response(200, json={"hasCredits": True})]
        )
        client = BackendClient(
            API, retry_config=RetryConfig(max_retries=2, base_delay=0.01, jitter_factor=0.0)
        )

        async with client:
            payload = await client.post("/users/1/check-credits", {}, idempotent=True)

        assert payload == {"hasCredits": True}
        assert route.call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_empty_body_decodes_to_empty_dict(self, backend):
        respx.delete(f"{API}/news/sources/5").mock(return_value=httpx.Response(204))

        assert await backend.delete("/news/sources/5") == {}

    @pytest.mark.asyncio
    @respx.mock
    async def test_non_json_body_raises(self, backend):
        respx.get(f"{API}/sites").mock(return_value=httpx.Response(200, text="<html>"))

        with pytest.raises(HTTPClientError, match="non-JSON"):
            await backend.get("/sites")

    def test_from_settings(self, test_settings):
        client = BackendClient.from_settings(test_settings)

        assert client.base_url == API
        assert client.url_for("/sites") == f"{API}/sites"
