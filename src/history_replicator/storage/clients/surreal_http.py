"""Minimal async SurrealDB client over the HTTP ``/sql`` endpoint.

Wraps aiohttp the same way the upstream connector does. Query variables are
sent as URL query parameters, which SurrealDB exposes as ``$name`` inside the
statement (always as strings, so statements cast them, e.g. ``<int>$start``).
"""

from typing import Any

import aiohttp


class SurrealQueryError(Exception):
    """SurrealDB rejected the request or one of its statements."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SurrealHttpClient:
    """HTTP client for a single SurrealDB namespace/database."""

    def __init__(
        self,
        base_url: str,
        namespace: str,
        database: str,
        username: str,
        password: str,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.namespace = namespace
        self.database = database
        self._auth = aiohttp.BasicAuth(username, password)
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "text/plain",
            # 1.x and 2.x header spellings
            "NS": self.namespace,
            "DB": self.database,
            "surreal-ns": self.namespace,
            "surreal-db": self.database,
        }

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout, auth=self._auth)
        return self._session

    async def query(self, sql: str, variables: dict[str, Any] | None = None) -> list[Any]:
        """Run one or more statements and return each statement's result.

        Raises:
            SurrealQueryError: HTTP error or a statement reported status ERR
        """
        session = await self._get_session()
        params = {k: str(v) for k, v in (variables or {}).items()}

        async with session.post(
            f"{self.base_url}/sql", data=sql, params=params, headers=self.headers
        ) as resp:
            text = await resp.text()
            if resp.status != 200:
                raise SurrealQueryError(
                    f"HTTP {resp.status}: {text[:500]}", status_code=resp.status
                )
            try:
                payload = await resp.json(content_type=None)
            except ValueError as e:
                raise SurrealQueryError(f"Invalid JSON from SurrealDB: {text[:500]}") from e

        if not isinstance(payload, list):
            raise SurrealQueryError(f"Unexpected SurrealDB response: {text[:500]}")

        results: list[Any] = []
        for statement in payload:
            if statement.get("status") != "OK":
                detail = statement.get("result") or statement.get("detail")
                raise SurrealQueryError(f"Statement failed: {detail}")
            results.append(statement.get("result"))
        return results

    async def ping(self) -> None:
        await self.query("RETURN 1;")

    async def close(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None
