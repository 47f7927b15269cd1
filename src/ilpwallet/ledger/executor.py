"""
Payment submission adapter.
"""

from __future__ import annotations

import uuid

import httpx

from ilpwallet.core.exceptions import ExecutionError
from ilpwallet.core.logging import get_logger
from ilpwallet.core.types import PaymentParams, PaymentResult
from ilpwallet.ledger.http import WalletHTTP, response_body

logger = get_logger("ledger.executor")


class PaymentExecutor:
    """
    Submits payments to the wallet.

    Each call PUTs to payment_uri/{id} with a freshly generated id. The
    wallet treats the id as the payment's identity, so a caller retrying a
    failed submission gets a new id; nothing here deduplicates.
    """

    def __init__(self, http: WalletHTTP) -> None:
        self._http = http

    async def submit(self, payment_uri: str, params: PaymentParams) -> PaymentResult:
        """
        Submit a payment.

        Raises:
            ExecutionError: If the wallet rejects the payment or is unreachable
        """
        payment_id = str(uuid.uuid4())
        url = f"{payment_uri.rstrip('/')}/{payment_id}"
        body = params.to_wire()
        logger.debug(f"PUT {url} {body}")

        try:
            response = await self._http.request("PUT", url, json=body)
        except httpx.HTTPStatusError as e:
            raise ExecutionError(
                f"Payment rejected: HTTP {e.response.status_code}",
                payment_id=payment_id,
                status_code=e.response.status_code,
                url=url,
                details={"response": response_body(e.response)},
            ) from e
        except httpx.HTTPError as e:
            raise ExecutionError(
                f"Payment submission failed: {e!r}", payment_id=payment_id, url=url
            ) from e

        logger.info(f"Payment {payment_id} submitted to {params.destination_account}")
        return PaymentResult(payment_id=payment_id, data=response_body(response))


__all__ = ["PaymentExecutor"]
