"""
Payment: one quote-then-send workflow.

Example:
    >>> payment = client.payment({"destinationAccount": bob, "destinationAmount": "10"})
    >>> payment.on(PaymentEvent.QUOTE, lambda params: print(params.source_amount))
    >>> await payment.quote()
    >>> await payment.send()
    >>> payment.result.payment_id
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from ilpwallet.core.events import PAYMENT_EVENT_PAYLOADS, EventDispatcher, PaymentEvent
from ilpwallet.core.exceptions import NoPathFoundError, ValidationError
from ilpwallet.core.logging import get_logger
from ilpwallet.core.types import PaymentParams, PaymentResult, PaymentState

if TYPE_CHECKING:
    from ilpwallet.client import WalletClient

logger = get_logger("payment")


class Payment:
    """
    Quotes and sends a single payment.

    The Payment belongs to whoever created it; the client only provides
    path-finding and submission. State moves CREATED -> QUOTED -> SENT and
    never back.
    """

    def __init__(self, client: WalletClient, params: PaymentParams) -> None:
        """
        Args:
            client: WalletClient used for quoting and sending
            params: Payment parameters; either amount may be omitted
        """
        self._client = client
        self.params = params
        self.result: PaymentResult | None = None
        self._state = PaymentState.CREATED
        self._sending = False
        # Name of the amount the path-finder fills in, "" when the caller gave both
        self._quoted_field: str | None = None
        self._events: EventDispatcher[PaymentEvent] = EventDispatcher(PAYMENT_EVENT_PAYLOADS)

    @property
    def state(self) -> PaymentState:
        return self._state

    @property
    def quoted(self) -> bool:
        return self._state in (PaymentState.QUOTED, PaymentState.SENT)

    @property
    def sent(self) -> bool:
        return self._state == PaymentState.SENT

    def on(self, event: PaymentEvent, handler: Callable[..., Any]) -> Callable[..., Any]:
        return self._events.on(event, handler)

    def off(self, event: PaymentEvent, handler: Callable[..., Any]) -> bool:
        return self._events.off(event, handler)

    def _check_not_sent(self) -> None:
        if self._state == PaymentState.SENT or self._sending:
            raise ValidationError(
                "Payment has already been sent",
                details={"destination_account": self.params.destination_account},
            )

    async def quote(self) -> PaymentParams:
        """
        Fill in whichever of source_amount/destination_amount was not given.

        Always asks the path-finder, so calling again re-quotes the missing
        amount at current rates.

        Returns:
            The params with both amounts and the path filled in

        Raises:
            NoPathFoundError: If no path exists
            QuoteError: If the path-finder request fails
            WalletConnectionError: If the client was never connected
        """
        self._check_not_sent()
        self.params.require_amount()

        if self._quoted_field is None:
            if self.params.source_amount is None:
                self._quoted_field = "source_amount"
            elif self.params.destination_amount is None:
                self._quoted_field = "destination_amount"
            else:
                self._quoted_field = ""

        request = self.params.copy()
        if self._quoted_field:
            setattr(request, self._quoted_field, None)

        quote = await self._client._find_path(request)

        if self._quoted_field:
            value = getattr(quote, self._quoted_field)
            if value is None:
                raise NoPathFoundError(
                    f"Path-finder did not return {self._quoted_field}",
                    destination_account=self.params.destination_account,
                )
            setattr(self.params, self._quoted_field, value)
        self.params.path = quote.path

        self._state = PaymentState.QUOTED
        logger.debug(
            f"Quoted {self.params.source_amount} -> {self.params.destination_amount} "
            f"to {self.params.destination_account}"
        )
        self._events.emit(PaymentEvent.QUOTE, self.params)
        return self.params

    async def send(self) -> Payment:
        """
        Execute the payment.

        Waits for the client to be ready if it is not.

        Returns:
            This payment, with result set

        Raises:
            ValidationError: If already sent or no amount is known
            ExecutionError: If the wallet rejects the payment
        """
        self._check_not_sent()
        self._sending = True
        try:
            result = await self._client.send_payment(self.params)
        finally:
            self._sending = False

        self.result = result
        self._state = PaymentState.SENT
        self._events.emit(PaymentEvent.SENT, result)
        return self


__all__ = ["Payment"]
