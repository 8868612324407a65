"""Tests for the HTTP client utilities."""

from datetime import datetime, timezone

import httpx
import pytest

from src.policy_monitor.http_client import HTTPClient, is_retryable_status
from src.policy_monitor.models import CollectorConfig, CollectorStats


def _dummy_client_factory(status_codes, attempts, seen_headers=None):
    class DummyAsyncClient:
        def __init__(self, *args, **kwargs):
            self._attempt = 0

        async def __aenter__(self):
            return self

        async def __aexit__(self, exc_type, exc, tb):
            return False

        async def request(self, method, url, **kwargs):
            self._attempt += 1
            attempts.append(self._attempt)
            if seen_headers is not None:
                seen_headers.append(kwargs.get("headers") or {})
            request = httpx.Request(method, url)
            status = status_codes[min(self._attempt, len(status_codes)) - 1]
            if status >= 400:
                response = httpx.Response(status, request=request)
                raise httpx.HTTPStatusError("error", request=request, response=response)
            return httpx.Response(status, request=request, json={"results": []})

    return DummyAsyncClient


async def noop_sleep(_):
    return None


@pytest.mark.asyncio
async def test_http_client_retries_on_server_error(monkeypatch):
    """HTTP client should retry on retryable server errors."""
    attempts = []
    monkeypatch.setattr(
        "src.policy_monitor.http_client.httpx.AsyncClient",
        _dummy_client_factory([500, 503, 200], attempts),
    )
    monkeypatch.setattr("src.policy_monitor.http_client.asyncio.sleep", noop_sleep)

    config = CollectorConfig(name="test", max_retries=2, retry_base_delay=0.01)
    client = HTTPClient(config)
    stats = CollectorStats(collector_name="test", started_at=datetime.now(timezone.utc))

    response = await client.get_async("https://example.com", stats=stats)

    assert response.status_code == 200
    assert attempts == [1, 2, 3]
    assert stats.http_requests == 3
    assert stats.retry_attempts == 2


@pytest.mark.asyncio
async def test_http_client_does_not_retry_client_errors(monkeypatch):
    attempts = []
    monkeypatch.setattr(
        "src.policy_monitor.http_client.httpx.AsyncClient",
        _dummy_client_factory([404], attempts),
    )
    monkeypatch.setattr("src.policy_monitor.http_client.asyncio.sleep", noop_sleep)

    client = HTTPClient(CollectorConfig(name="test", max_retries=3))

    with pytest.raises(httpx.HTTPStatusError):
        await client.get_async("https://example.com/missing")

    assert attempts == [1]


@pytest.mark.asyncio
async def test_get_json_sends_accept_header(monkeypatch):
    attempts = []
    headers = []
    monkeypatch.setattr(
        "src.policy_monitor.http_client.httpx.AsyncClient",
        _dummy_client_factory([200], attempts, headers),
    )

    client = HTTPClient(CollectorConfig(name="test"))
    payload = await client.get_json("https://example.com/api")

    assert payload == {"results": []}
    assert headers[0]["Accept"] == "application/json"
    assert "AI-Policy-Monitor" in headers[0]["User-Agent"]


def test_retry_delay_is_capped():
    client = HTTPClient(
        CollectorConfig(name="test", retry_base_delay=1.0, retry_exponential_base=2.0, retry_max_delay=5.0)
    )

    assert client.backoff_delay(1) == 1.0
    assert client.backoff_delay(3) == 4.0
    assert client.backoff_delay(10) == 5.0
    assert is_retryable_status(429)
    assert is_retryable_status(502)
    assert not is_retryable_status(400)


@pytest.mark.asyncio
async def test_http_client_retries_network_errors(monkeypatch):
    calls = []

    class FlakyAsyncClient:
        def __init__(self, *args, **kwargs):
            pass

        async def __aenter__(self):
            return self

        async def __aexit__(self, exc_type, exc, tb):
            return False

        async def request(self, method, url, **kwargs):
            calls.append(url)
            request = httpx.Request(method, url)
            if len(calls) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, request=request, text="<rss/>")

    monkeypatch.setattr("src.policy_monitor.http_client.httpx.AsyncClient", FlakyAsyncClient)
    monkeypatch.setattr("src.policy_monitor.http_client.asyncio.sleep", noop_sleep)

    response = await HTTPClient(CollectorConfig(name="feeds", max_retries=1)).get_async("https://feeds.example/rss")

    assert response.text == "<rss/>"
    assert len(calls) == 2
