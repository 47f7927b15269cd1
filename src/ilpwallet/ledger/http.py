"""
Shared plumbing for the wallet's authenticated HTTP endpoints.
"""

from __future__ import annotations

from typing import Any

import httpx


class WalletHTTP:
    """
    Authenticated access to wallet endpoints.

    Holds the credentials and the shared httpx client the ledger adapters
    use. The client is created lazily and owned here unless one is injected.
    """

    def __init__(
        self,
        username: str,
        password: str,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._auth = httpx.BasicAuth(username, password)
        self._http_client = http_client
        self._owns_http_client = False
        self._timeout = timeout

    @property
    def auth(self) -> httpx.BasicAuth:
        return self._auth

    async def client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_http_client = True
        return self._http_client

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send an authenticated request and raise on non-2xx."""
        client = await self.client()
        response = await client.request(method, url, auth=self._auth, **kwargs)
        response.raise_for_status()
        return response

    async def close(self) -> None:
        """Close HTTP client if owned."""
        if self._owns_http_client and self._http_client:
            await self._http_client.aclose()
            self._http_client = None


def response_body(response: httpx.Response) -> Any:
    """JSON body when there is one, text otherwise."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text
