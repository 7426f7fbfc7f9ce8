"""
Upstream interval fetcher.

Requests ``{base_url}/history/{resource}`` and turns the body into Interval
objects. Throttling is detected by content (the body carries a marker such as
"slow down", whatever the status code). Throttled, unparsable and failed
requests are all retried under the injected RetryPolicy.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import aiohttp
from pydantic import ValidationError

from history_replicator.config.state import UpstreamConfig
from history_replicator.domain.models import Interval, IntervalHistoryResponse, to_unix
from history_replicator.exceptions import (
    FetchError,
    FetchRetriesExhausted,
    MalformedResponseError,
    RateLimitedError,
    UpstreamTransportError,
)
from history_replicator.infrastructure.observability import get_ingestion_logger

from .ports.http import IHttpClient
from .retry import RetryPolicy


class UpstreamFetcher:
    """Fetch interval history pages from the upstream API."""

    def __init__(
        self,
        config: UpstreamConfig,
        http_client: IHttpClient,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config
        self.http = http_client
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self.log = get_ingestion_logger("fetcher", resource=config.resource)

    @property
    def url(self) -> str:
        return f"{self.config.base_url.rstrip('/')}/history/{self.config.resource}"

    def build_params(
        self,
        from_time: datetime | None,
        count: int,
        to_time: datetime | None = None,
    ) -> dict[str, str]:
        params = {"interval": self.config.interval, "count": str(count)}
        if from_time is not None:
            params["from"] = str(to_unix(from_time))
        if to_time is not None:
            params["to"] = str(to_unix(to_time))
        return params

    async def fetch(
        self,
        from_time: datetime | None,
        count: int,
        to_time: datetime | None = None,
    ) -> list[Interval]:
        """
        Fetch up to ``count`` intervals starting at ``from_time``.

        Returns:
            Intervals in upstream order (possibly empty)

        Raises:
            FetchRetriesExhausted: The retry policy gave up; chained to the last error
        """
        params = self.build_params(from_time, count, to_time)
        started = time.monotonic()
        attempt = 0

        while True:
            attempt += 1
            try:
                intervals = await self._fetch_once(params)
            except FetchError as e:
                elapsed = time.monotonic() - started
                if not self.retry_policy.should_retry(attempt, elapsed):
                    self.log.error(
                        "fetch_retries_exhausted",
                        attempts=attempt,
                        error=str(e),
                        params=params,
                    )
                    raise FetchRetriesExhausted(
                        f"Giving up after {attempt} attempts: {e}",
                        attempts=attempt,
                        url=self.url,
                    ) from e

                delay = self.retry_policy.delay_for(attempt)
                if isinstance(e, RateLimitedError):
                    self.log.warning(
                        f"⏳ Rate limited, waiting for {delay:g} seconds before retry...",
                        attempt=attempt,
                    )
                else:
                    self.log.warning(
                        "fetch_retry_scheduled",
                        attempt=attempt,
                        delay=delay,
                        error_type=type(e).__name__,
                        error=str(e),
                    )
                await self._sleep(delay)
                continue

            self.log.info(
                "fetch_completed",
                attempts=attempt,
                intervals=len(intervals),
                params=params,
            )
            return intervals

    async def fetch_latest_hour(self, now: datetime | None = None) -> list[Interval]:
        """Fetch the single most recent hourly interval (count=1, from=now-1h, to=now)."""
        now = now or datetime.now(UTC)
        return await self.fetch(now - timedelta(hours=1), 1, to_time=now)

    async def _fetch_once(self, params: dict[str, str]) -> list[Interval]:
        try:
            response = await self.http.get(
                self.url, params=params, timeout=self.config.timeout
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise UpstreamTransportError(
                f"Request failed: {type(e).__name__}: {e}", url=self.url
            ) from e

        body = response.body or ""
        if self.config.rate_limit_marker and self.config.rate_limit_marker in body:
            raise RateLimitedError(
                f"Upstream throttled the request (HTTP {response.status_code})",
                url=response.url,
            )

        try:
            parsed = IntervalHistoryResponse.model_validate_json(body)
        except ValidationError as e:
            preview = body[: self.config.body_preview_chars]
            self.log.error(
                "response_parse_failed",
                status=response.status_code,
                error=str(e).splitlines()[0],
                body_preview=preview,
            )
            raise MalformedResponseError(
                f"Failed to parse response (HTTP {response.status_code})",
                body_preview=preview,
                url=response.url,
            ) from e

        return parsed.intervals
