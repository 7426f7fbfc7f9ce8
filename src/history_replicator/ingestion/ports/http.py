"""HTTP communication abstraction for the upstream fetcher.

Separates the transport from parsing, throttling detection and retries so
tests can swap in a scripted client.
"""

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass
class HttpResponse:
    """HTTP response data container."""

    status_code: int
    body: str  # raw text; the fetcher decides how to parse it
    headers: dict[str, str]
    url: str


class IHttpClient(Protocol):
    """Abstraction for HTTP client.

    Executes requests and returns raw responses. Does NOT handle:
    - Response parsing
    - Rate limit detection
    - Retry logic
    """

    async def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> HttpResponse:
        """Execute GET request.

        Raises:
            aiohttp.ClientError / asyncio.TimeoutError: On network or connection errors
        """
        ...

    async def close(self) -> None: ...
