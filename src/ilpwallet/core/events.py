"""
Event types and a typed dispatch table for client and payment events.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any, Generic, TypeVar

from ilpwallet.core.logging import get_logger

logger = get_logger("events")


class WalletEvent(str, Enum):
    """Events emitted by WalletClient."""

    CONNECT = "connect"  # ()
    READY = "connect"  # alias of CONNECT
    OUTGOING = "outgoing"  # (notification)
    INCOMING = "incoming"  # (notification)
    OUTGOING_FULFILLMENT = "outgoing_fulfillment"  # (transfer, fulfillment)
    INCOMING_TRANSFER = "incoming_transfer"  # (transfer)


class PaymentEvent(str, Enum):
    """Events emitted by Payment."""

    QUOTE = "quote"  # (params)
    SENT = "sent"  # (result)


WALLET_EVENT_PAYLOADS: dict[WalletEvent, tuple[str, ...]] = {
    WalletEvent.CONNECT: (),
    WalletEvent.OUTGOING: ("notification",),
    WalletEvent.INCOMING: ("notification",),
    WalletEvent.OUTGOING_FULFILLMENT: ("transfer", "fulfillment"),
    WalletEvent.INCOMING_TRANSFER: ("transfer",),
}

PAYMENT_EVENT_PAYLOADS: dict[PaymentEvent, tuple[str, ...]] = {
    PaymentEvent.QUOTE: ("params",),
    PaymentEvent.SENT: ("result",),
}

E = TypeVar("E", bound=Enum)
Handler = Callable[..., Any]


class EventDispatcher(Generic[E]):
    """
    Maps each event to its handlers.

    Every event has a fixed payload shape declared in the table passed at
    construction; emitting with a different number of arguments is a
    programming error and raises TypeError. Handlers may be plain functions
    or coroutine functions. Coroutines are scheduled on the running loop.
    A failing handler is logged and does not stop the others.
    """

    def __init__(self, payloads: Mapping[E, tuple[str, ...]]) -> None:
        self._payloads = dict(payloads)
        self._handlers: dict[E, list[Handler]] = {event: [] for event in self._payloads}
        self._tasks: set[asyncio.Task[Any]] = set()

    def _check_event(self, event: E) -> None:
        if event not in self._payloads:
            raise ValueError(f"Unknown event: {event!r}")

    def on(self, event: E, handler: Handler) -> Handler:
        """Register a handler. Returns it so this can be used as a decorator factory."""
        self._check_event(event)
        self._handlers[event].append(handler)
        return handler

    def off(self, event: E, handler: Handler) -> bool:
        """Remove a handler. Returns False if it was not registered."""
        self._check_event(event)
        try:
            self._handlers[event].remove(handler)
        except ValueError:
            return False
        return True

    def listener_count(self, event: E) -> int:
        self._check_event(event)
        return len(self._handlers[event])

    def emit(self, event: E, *payload: Any) -> int:
        """
        Call every handler of event with payload.

        Returns:
            Number of handlers called
        """
        self._check_event(event)
        expected = self._payloads[event]
        if len(payload) != len(expected):
            raise TypeError(
                f"Event {event.value!r} takes ({', '.join(expected)}), got {len(payload)} values"
            )

        handlers = list(self._handlers[event])
        for handler in handlers:
            try:
                result = handler(*payload)
                if inspect.isawaitable(result):
                    task = asyncio.ensure_future(result)
                    self._tasks.add(task)
                    task.add_done_callback(self._task_done)
            except Exception:
                logger.exception(f"Handler for {event.value!r} failed")
        return len(handlers)

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Async event handler failed: {task.exception()!r}")
