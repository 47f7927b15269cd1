"""
Path-finding adapter.

Asks the wallet's path-finder how much has to leave the source account for
a given amount to arrive at the destination, or the other way round.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import httpx

from ilpwallet.core.exceptions import NoPathFoundError, QuoteError, ValidationError
from ilpwallet.core.logging import get_logger
from ilpwallet.core.types import PathQuote, to_amount
from ilpwallet.ledger.http import WalletHTTP, response_body
from ilpwallet.resilience.retry import execute_with_retry

logger = get_logger("ledger.pathfind")


def _hop_amount(hop: Any, transfers_key: str, side: str) -> Decimal | None:
    """Amount of the first debit/credit of the first transfer of a hop."""
    try:
        return to_amount(hop[transfers_key][0][side][0]["amount"])
    except (KeyError, IndexError, TypeError, ValidationError):
        return None


def parse_path(body: Any, destination_account: str | None = None) -> PathQuote:
    """
    Extract the implied amounts from a path-finder response.

    The response is either an ordered list of hops, or an object carrying
    source_amount and destination_amount directly.

    Raises:
        NoPathFoundError: If the response is empty or carries no amounts
    """
    if isinstance(body, list) and body:
        first, last = body[0], body[-1]
        source_amount = _hop_amount(first, "source_transfers", "debits")
        destination_amount = _hop_amount(last, "destination_transfers", "credits")
        if source_amount is None and destination_amount is None:
            raise NoPathFoundError(
                "Path-finder returned a malformed path",
                destination_account=destination_account,
                details={"path": body},
            )
        return PathQuote(source_amount=source_amount, destination_amount=destination_amount, path=body)

    if isinstance(body, dict) and body:
        try:
            source_amount = to_amount(body.get("source_amount"))
            destination_amount = to_amount(body.get("destination_amount"))
        except ValidationError as e:
            raise NoPathFoundError(
                f"Path-finder returned invalid amounts: {e.message}",
                destination_account=destination_account,
            ) from e
        if source_amount is None and destination_amount is None:
            raise NoPathFoundError(
                "Path-finder response carries no amounts",
                destination_account=destination_account,
                details={"response": body},
            )
        return PathQuote(
            source_amount=source_amount,
            destination_amount=destination_amount,
            path=body.get("path"),
        )

    raise NoPathFoundError(
        "No path found",
        destination_account=destination_account,
        details={"response": body},
    )


class PathFinder:
    """Client for the wallet's path-find endpoint."""

    def __init__(
        self,
        http: WalletHTTP,
        max_retries: int = 3,
        retry_max_wait: float = 4.0,
    ) -> None:
        self._http = http
        self._max_retries = max_retries
        self._retry_max_wait = retry_max_wait

    async def _post(self, pathfind_uri: str, body: dict[str, Any]) -> Any:
        logger.debug(f"POST {pathfind_uri} {body}")
        response = await self._http.request("POST", pathfind_uri, json=body)
        return response_body(response)

    async def find_path(
        self,
        pathfind_uri: str,
        destination_account: str,
        source_amount: Decimal | None = None,
        destination_amount: Decimal | None = None,
    ) -> PathQuote:
        """
        Find a path to destination_account for whichever amount is known.

        Raises:
            ValidationError: If neither amount is given
            NoPathFoundError: If the path-finder returns nothing usable
            QuoteError: If the request fails
        """
        if source_amount is None and destination_amount is None:
            raise ValidationError("Either source_amount or destination_amount must be supplied")

        body: dict[str, Any] = {"destination": destination_account}
        if destination_amount is not None:
            body["destination_amount"] = str(destination_amount)
        if source_amount is not None:
            body["source_amount"] = str(source_amount)

        try:
            result = await execute_with_retry(
                self._post,
                pathfind_uri,
                body,
                attempts=self._max_retries,
                max_wait=self._retry_max_wait,
            )
        except httpx.HTTPStatusError as e:
            logger.debug(f"Error finding path {body}: {e}")
            raise QuoteError(
                f"Path-finding failed: HTTP {e.response.status_code}",
                status_code=e.response.status_code,
                url=pathfind_uri,
                details={"response": response_body(e.response)},
            ) from e
        except httpx.HTTPError as e:
            logger.debug(f"Error finding path {body}: {e!r}")
            raise QuoteError(f"Path-finding failed: {e!r}", url=pathfind_uri) from e

        quote = parse_path(result, destination_account)
        logger.debug(
            f"{quote.destination_amount} to {destination_account} "
            f"is equivalent to {quote.source_amount} from the source account"
        )
        return quote


__all__ = ["PathFinder", "parse_path"]
