"""
WebFinger Address Resolver.

Resolves a wallet address (user@host) to the ledger account and the wallet's
notification, payment and path-finding endpoints by reading the host's
WebFinger document.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit, urlunsplit

import httpx

from ilpwallet.core.exceptions import AddressLookupError
from ilpwallet.core.logging import get_logger
from ilpwallet.core.types import Endpoints
from ilpwallet.resilience.retry import execute_with_retry

logger = get_logger("discovery.resolver")

WEBFINGER_RELS = {
    "https://interledger.org/rel/ledgerAccount": "ledger_account",
    "https://interledger.org/rel/socketIOUri": "notification_uri",
    "https://interledger.org/rel/paymentUri": "payment_uri",
    "https://interledger.org/rel/pathfindUri": "pathfind_uri",
}


@dataclass(frozen=True)
class ResolvedAddress:
    """Links read from a WebFinger document."""

    ledger_account: str
    notification_uri: str
    payment_uri: str | None = None
    pathfind_uri: str | None = None


def _sibling_uri(uri: str, segment: str) -> str:
    """Replace the last path segment of uri with segment."""
    parts = urlsplit(uri)
    parent = parts.path.rstrip("/").rsplit("/", 1)[0]
    return urlunsplit((parts.scheme, parts.netloc, f"{parent}/{segment}", "", ""))


def derive_endpoints(resolved: ResolvedAddress) -> Endpoints:
    """
    Build the full endpoint set.

    When the wallet does not advertise payment or path-find URIs they live
    next to the notification URI, e.g. https://ledger/socket.io gives
    https://ledger/payments and https://ledger/pathFind.
    """
    return Endpoints(
        ledger_account=resolved.ledger_account,
        notification_uri=resolved.notification_uri,
        payment_uri=resolved.payment_uri or _sibling_uri(resolved.notification_uri, "payments"),
        pathfind_uri=resolved.pathfind_uri or _sibling_uri(resolved.notification_uri, "pathFind"),
    )


def parse_webfinger(document: Any) -> ResolvedAddress:
    """Map WebFinger links to a ResolvedAddress."""
    try:
        links = document["links"]
        found: dict[str, str] = {}
        for link in links:
            key = WEBFINGER_RELS.get(link.get("rel"))
            if key and link.get("href"):
                found[key] = link["href"]
    except (KeyError, TypeError, AttributeError) as e:
        raise AddressLookupError(f"Error parsing webfinger response: {e!r}") from e

    missing = [k for k in ("ledger_account", "notification_uri") if k not in found]
    if missing:
        raise AddressLookupError(
            "Webfinger response is missing required links",
            details={"missing": missing},
        )
    return ResolvedAddress(**found)


class AddressResolver:
    """
    Looks up wallet addresses over WebFinger.

    Uses a shared httpx client when given one, otherwise creates and owns its own.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        scheme: str = "https",
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_max_wait: float = 4.0,
    ) -> None:
        self._http_client = http_client
        self._owns_http_client = False
        self._scheme = scheme
        self._timeout = timeout
        self._max_retries = max_retries
        self._retry_max_wait = retry_max_wait

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Lazy-init HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_http_client = True
        return self._http_client

    async def close(self) -> None:
        """Close owned HTTP client."""
        if self._owns_http_client and self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    def webfinger_url(self, address: str) -> str:
        if address.count("@") != 1 or address.startswith("@") or address.endswith("@"):
            raise AddressLookupError(
                f"Address must be of the form user@host: {address!r}", address=address
            )
        host = address.split("@", 1)[1]
        return f"{self._scheme}://{host}/.well-known/webfinger"

    async def _fetch(self, url: str, address: str) -> Any:
        client = await self._get_http_client()
        response = await client.get(url, params={"resource": f"acct:{address}"})
        response.raise_for_status()
        return response.json()

    async def resolve(self, address: str) -> ResolvedAddress:
        """
        Resolve an address to its WebFinger links.

        Raises:
            AddressLookupError: If the lookup fails or the document lacks links
        """
        url = self.webfinger_url(address)
        logger.debug(f"Looking up {address} at {url}")
        try:
            document = await execute_with_retry(
                self._fetch,
                url,
                address,
                attempts=self._max_retries,
                max_wait=self._retry_max_wait,
            )
        except httpx.HTTPStatusError as e:
            raise AddressLookupError(
                f"Error looking up wallet address: HTTP {e.response.status_code}",
                address=address,
                details={"url": url},
            ) from e
        except httpx.HTTPError as e:
            raise AddressLookupError(
                f"Error looking up wallet address: {e!r}", address=address
            ) from e
        except ValueError as e:
            raise AddressLookupError(
                "Error parsing webfinger response: invalid JSON", address=address
            ) from e

        try:
            resolved = parse_webfinger(document)
        except AddressLookupError as e:
            e.address = address
            raise
        logger.debug(f"Got webfinger response {resolved}")
        return resolved


__all__ = ["AddressResolver", "ResolvedAddress", "derive_endpoints", "parse_webfinger"]
