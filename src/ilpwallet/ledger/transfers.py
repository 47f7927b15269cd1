"""
Transfer detail lookups used to enrich payment notifications.
"""

from __future__ import annotations

from typing import Any

import httpx

from ilpwallet.core.exceptions import DetailFetchError
from ilpwallet.core.logging import get_logger
from ilpwallet.ledger.http import WalletHTTP, response_body
from ilpwallet.resilience.retry import execute_with_retry

logger = get_logger("ledger.transfers")


class TransferLookup:
    """Fetches a transfer and its fulfillment by transfer URI."""

    def __init__(
        self,
        http: WalletHTTP,
        max_retries: int = 3,
        retry_max_wait: float = 4.0,
    ) -> None:
        self._http = http
        self._max_retries = max_retries
        self._retry_max_wait = retry_max_wait

    async def _get(self, url: str) -> Any:
        response = await self._http.request("GET", url)
        return response_body(response)

    async def _fetch(self, url: str) -> Any:
        logger.debug(f"GET {url}")
        try:
            return await execute_with_retry(
                self._get, url, attempts=self._max_retries, max_wait=self._retry_max_wait
            )
        except httpx.HTTPStatusError as e:
            raise DetailFetchError(
                f"Transfer lookup failed: HTTP {e.response.status_code}",
                status_code=e.response.status_code,
                url=url,
            ) from e
        except httpx.HTTPError as e:
            raise DetailFetchError(f"Transfer lookup failed: {e!r}", url=url) from e

    async def get_transfer(self, transfer_id: str) -> Any:
        """Get the transfer resource."""
        return await self._fetch(transfer_id)

    async def get_fulfillment(self, transfer_id: str) -> Any:
        """Get the fulfillment of a transfer."""
        return await self._fetch(f"{transfer_id.rstrip('/')}/fulfillment")


__all__ = ["TransferLookup"]
