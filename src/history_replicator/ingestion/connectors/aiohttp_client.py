"""Concrete HTTP client implementation for async requests.

Wraps aiohttp behind the IHttpClient abstraction.
"""

from typing import Any

import aiohttp

from history_replicator.ingestion.ports.http import HttpResponse, IHttpClient


class AiohttpClient(IHttpClient):
    """HTTP client implementation using aiohttp."""

    def __init__(self, timeout: float = 30.0):
        """Initialize HTTP client.

        Args:
            timeout: Default total request timeout in seconds
        """
        self.timeout = timeout
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    async def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> HttpResponse:
        """Execute GET request.

        Returns:
            HttpResponse with status, raw text body, headers

        Raises:
            aiohttp.ClientError: On connection errors
            asyncio.TimeoutError: When the request exceeds the timeout
        """
        session = await self._get_session()
        timeout_obj = aiohttp.ClientTimeout(total=timeout or self.timeout)

        async with session.get(
            url, params=params, headers=headers, timeout=timeout_obj
        ) as resp:
            return HttpResponse(
                status_code=resp.status,
                body=await resp.text(),
                headers=dict(resp.headers),
                url=str(resp.url),
            )

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None
