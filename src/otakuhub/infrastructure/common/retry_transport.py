"""httpx transport that rides out the streaming API's cold starts.

The free API host sleeps when idle: the first requests after a pause are
refused at the TCP level or answered with 502/503/504 until the instance
is up. Idempotent requests are replayed with capped exponential backoff.
"""

from __future__ import annotations

import asyncio
import random

import httpx
import structlog

log = structlog.get_logger(__name__)

_RETRY_STATUSES = frozenset({429, 502, 503, 504})
_SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


def _parse_retry_after(headers: httpx.Headers) -> float | None:
    """Seconds from a numeric ``Retry-After``; None if absent or a date."""
    value = headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class RetryTransport(httpx.AsyncBaseTransport):
    """Replays idempotent requests on cold-start and throttling answers.

    Args:
        wrapped: inner transport (default ``httpx.AsyncHTTPTransport()``).
        max_retries: replays after the first try.
        backoff_base: first backoff step in seconds; doubles per retry.
        max_backoff: upper bound for any single wait.
        retryable_status_codes: statuses that trigger a replay.
    """

    def __init__(
        self,
        wrapped: httpx.AsyncBaseTransport | None = None,
        *,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        max_backoff: float = 30.0,
        retryable_status_codes: frozenset[int] = _RETRY_STATUSES,
    ) -> None:
        self._inner = wrapped or httpx.AsyncHTTPTransport()
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        self._max_backoff = max_backoff
        self._statuses = retryable_status_codes

    def _backoff(self, attempt: int) -> float:
        jitter = random.uniform(0, self._backoff_base)  # noqa: S311
        return min(self._backoff_base * 2**attempt + jitter, self._max_backoff)

    def _compute_delay(self, response: httpx.Response, attempt: int) -> float:
        retry_after = _parse_retry_after(response.headers)
        if retry_after is None:
            return self._backoff(attempt)
        return min(retry_after, self._max_backoff)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        if request.method not in _SAFE_METHODS:
            return await self._inner.handle_async_request(request)

        attempt = 0
        while True:
            last_try = attempt == self._max_retries
            try:
                response = await self._inner.handle_async_request(request)
            except httpx.ConnectError as e:
                if last_try:
                    raise
                delay = self._backoff(attempt)
                log.info(
                    "http_retry",
                    url=str(request.url),
                    error=str(e) or type(e).__name__,
                    attempt=attempt + 1,
                    delay=round(delay, 2),
                )
                await asyncio.sleep(delay)
                attempt += 1
                continue

            if response.status_code not in self._statuses or last_try:
                return response

            # Drain so the pooled connection can be reused.
            await response.aread()
            await response.aclose()
            delay = self._compute_delay(response, attempt)
            log.info(
                "http_retry",
                url=str(request.url),
                status=response.status_code,
                attempt=attempt + 1,
                delay=round(delay, 2),
            )
            await asyncio.sleep(delay)
            attempt += 1

    async def aclose(self) -> None:
        await self._inner.aclose()
