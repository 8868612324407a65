"""Async HTTP access for the source connectors.

Every request gets an explicit timeout and a bounded number of retries with
exponential backoff. Only transient failures are retried: network errors,
timeouts, 5xx and a handful of 4xx statuses that signal "try again later".
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

import httpx

from .logging_config import get_logger
from .models import CollectorConfig, CollectorStats

logger = get_logger("http_client")

USER_AGENT = "AI-Policy-Monitor/1.0 (policy ingestion; +https://github.com/policy-monitor)"

RETRYABLE_STATUS = frozenset({408, 409, 425, 429})


def is_retryable_status(status_code: int) -> bool:
    return status_code >= 500 or status_code in RETRYABLE_STATUS


def _retry_reason(exc: Exception) -> Optional[str]:
    """Describe a transient failure, or return None if retrying is pointless."""
    if isinstance(exc, httpx.HTTPStatusError):
        status_code = exc.response.status_code
        return f"status {status_code}" if is_retryable_status(status_code) else None
    if isinstance(exc, httpx.RequestError):
        return type(exc).__name__
    return None


class HTTPClient:
    """Connector-facing HTTP client configured from a ``CollectorConfig``."""

    def __init__(self, config: Optional[CollectorConfig] = None) -> None:
        self.config = config or CollectorConfig(name="default")
        self.timeout = httpx.Timeout(self.config.timeout_seconds, connect=10.0, pool=5.0)
        self.headers = {"User-Agent": USER_AGENT, **self.config.headers}

    async def get_async(
        self,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        stats: Optional[CollectorStats] = None,
    ) -> httpx.Response:
        return await self.request_async("GET", url, headers=headers, params=params, stats=stats)

    async def get_json(
        self,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        stats: Optional[CollectorStats] = None,
    ) -> Any:
        """GET ``url`` and decode the body as JSON."""
        response = await self.get_async(
            url, headers={"Accept": "application/json"}, params=params, stats=stats
        )
        return response.json()

    async def request_async(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        stats: Optional[CollectorStats] = None,
    ) -> httpx.Response:
        """Send a request, retrying transient failures up to ``max_retries`` times.

        The last failure is re-raised once retries are exhausted or when the
        failure is not transient (for example a 404).
        """
        request_headers = {**self.headers, **(headers or {})}
        max_retries = self.config.max_retries

        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            attempt = 0
            while True:
                if stats:
                    stats.http_requests += 1
                try:
                    response = await client.request(method, url, headers=request_headers, params=params)
                    response.raise_for_status()
                    return response
                except (httpx.HTTPStatusError, httpx.RequestError) as exc:
                    reason = _retry_reason(exc)
                    if reason is None or attempt >= max_retries:
                        logger.error(f"{method} {url} failed after {attempt + 1} attempt(s): {exc}")
                        raise

                    attempt += 1
                    delay = self.backoff_delay(attempt)
                    if stats:
                        stats.retry_attempts += 1
                    logger.warning(
                        f"{method} {url} failed ({reason}), retry {attempt}/{max_retries} in {delay:.2f}s"
                    )
                    await asyncio.sleep(delay)

    def backoff_delay(self, retry_number: int) -> float:
        """Delay before retry ``retry_number`` (1-based), capped at ``retry_max_delay``."""
        delay = self.config.retry_base_delay * self.config.retry_exponential_base ** (retry_number - 1)
        return min(delay, self.config.retry_max_delay)
