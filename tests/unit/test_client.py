"""
Unit tests for the httpx-based CompletionClient.

All calls go through httpx.MockTransport, so no network access is needed.
"""

import json
from datetime import date

import httpx
import pytest

from completion_throttle.client import CompletionClient
from completion_throttle.config import ProviderSettings
from completion_throttle.exceptions import (
    InvalidCredentialsError,
    NetworkError,
    ProviderTimeoutError,
    QuotaExceededError,
    RateLimitError,
    ServerError,
    UnknownProviderError,
)

API_KEY = "sk-test-1234567890abcd"


def make_client(handler, **settings_kwargs):
    settings = ProviderSettings(api_key=API_KEY, **settings_kwargs)
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return CompletionClient(settings, http_client=http_client), http_client


class TestHeaders:
    def test_bearer_auth(self):
        client = CompletionClient(ProviderSettings(api_key=API_KEY))
        headers = client.get_headers()
        assert headers["Authorization"] == f"Bearer {API_KEY}"
        assert headers["Content-Type"] == "application/json"
        assert "OpenAI-Organization" not in headers

    def test_organization_header(self):
        client = CompletionClient(ProviderSettings(api_key=API_KEY, organization="org-1"))
        assert client.get_headers()["OpenAI-Organization"] == "org-1"

    def test_missing_key_is_invalid_credentials(self):
        client = CompletionClient(ProviderSettings())
        with pytest.raises(InvalidCredentialsError):
            client.get_headers()


class TestChatCompletion:
    @pytest.mark.asyncio
    async def test_posts_payload(self, request_data):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"content": "hi"}}]})

        client, _ = make_client(handler)
        body = await client.create_chat_completion(request_data)

        assert body["choices"][0]["message"]["content"] == "hi"
        assert seen["method"] == "POST"
        assert seen["url"] == "https://api.openai.com/v1/chat/completions"
        assert seen["auth"] == f"Bearer {API_KEY}"
        assert seen["body"] == request_data

    @pytest.mark.asyncio
    async def test_custom_base_url(self, request_data):
        urls = []

        def handler(request: httpx.Request) -> httpx.Response:
            urls.append(str(request.url))
            return httpx.Response(200, json={})

        client, _ = make_client(handler, base_url="https://gateway.example.com/v1/")
        await client.create_chat_completion(request_data)
        assert urls == ["https://gateway.example.com/v1/chat/completions"]

    @pytest.mark.asyncio
    async def test_rate_limit(self, request_data):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                429,
                headers={"Retry-After": "10"},
                json={"error": {"message": "Rate limit reached", "code": "rate_limit_exceeded"}},
            )

        client, _ = make_client(handler)
        with pytest.raises(RateLimitError) as exc_info:
            await client.create_chat_completion(request_data)
        assert exc_info.value.retry_after == 10.0

    @pytest.mark.asyncio
    async def test_insufficient_quota(self, request_data):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                429, json={"error": {"message": "quota", "code": "insufficient_quota"}}
            )

        client, _ = make_client(handler)
        with pytest.raises(QuotaExceededError):
            await client.create_chat_completion(request_data)

    @pytest.mark.asyncio
    async def test_unauthorized(self, request_data):
        client, _ = make_client(lambda request: httpx.Response(401, json={"error": {}}))
        with pytest.raises(InvalidCredentialsError):
            await client.create_chat_completion(request_data)

    @pytest.mark.asyncio
    async def test_server_error(self, request_data):
        client, _ = make_client(lambda request: httpx.Response(503))
        with pytest.raises(ServerError) as exc_info:
            await client.create_chat_completion(request_data)
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_timeout(self, request_data):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client, _ = make_client(handler)
        with pytest.raises(ProviderTimeoutError):
            await client.create_chat_completion(request_data)

    @pytest.mark.asyncio
    async def test_connection_error(self, request_data):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Name or service not known", request=request)

        client, _ = make_client(handler)
        with pytest.raises(NetworkError):
            await client.create_chat_completion(request_data)

    @pytest.mark.asyncio
    async def test_non_json_body(self, request_data):
        client, _ = make_client(lambda request: httpx.Response(200, text="not json"))
        with pytest.raises(UnknownProviderError, match="non-JSON"):
            await client.create_chat_completion(request_data)

    @pytest.mark.asyncio
    async def test_non_object_body(self, request_data):
        client, _ = make_client(lambda request: httpx.Response(200, json=[1, 2]))
        with pytest.raises(UnknownProviderError, match="unexpected body"):
            await client.create_chat_completion(request_data)

    @pytest.mark.asyncio
    async def test_missing_key_fails_before_request(self, request_data):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={})

        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = CompletionClient(ProviderSettings(), http_client=http_client)
        with pytest.raises(InvalidCredentialsError):
            await client.create_chat_completion(request_data)
        assert calls == []


class TestBillingEndpoints:
    @pytest.mark.asyncio
    async def test_get_usage(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"total_usage": 1234.0})

        client, _ = make_client(handler)
        body = await client.get_usage(date(2026, 10, 1), date(2026, 10, 20))

        assert body == {"total_usage": 1234.0}
        assert seen["path"] == "/v1/dashboard/billing/usage"
        assert seen["params"] == {"start_date": "2026-10-01", "end_date": "2026-10-20"}

    @pytest.mark.asyncio
    async def test_get_subscription(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v1/dashboard/billing/subscription"
            return httpx.Response(200, json={"has_payment_method": True})

        client, _ = make_client(handler)
        assert await client.get_subscription() == {"has_payment_method": True}


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_external_http_client_not_closed(self):
        client, http_client = make_client(lambda request: httpx.Response(200, json={}))
        await client.aclose()
        assert not http_client.is_closed
        await http_client.aclose()

    @pytest.mark.asyncio
    async def test_owned_http_client_closed(self):
        client = CompletionClient(ProviderSettings(api_key=API_KEY))
        await client.aclose()
        assert client._http.is_closed
