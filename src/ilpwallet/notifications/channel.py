"""
Notification channel.

The wallet pushes payment notifications over a long-lived duplex channel.
NotificationChannel is the interface the client talks to; WebSocketChannel
is the default implementation built on the websockets library.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import json
from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from ilpwallet.core.exceptions import WalletConnectionError
from ilpwallet.core.logging import get_logger

logger = get_logger("notifications.channel")

# Wire name of inbound payment notifications
PAYMENT_EVENT = "payment"


class ChannelEvent(str, Enum):
    """Events a channel reports to its owner."""

    CONNECTED = "connected"  # ()
    DISCONNECTED = "disconnected"  # ()
    CONNECT_ERROR = "connect_error"  # (error)
    NOTIFICATION = "notification"  # (payload)


class NotificationChannel(ABC):
    """
    Abstract duplex channel to the wallet.

    Subclasses implement open/send/close and call _fire() to report events.
    Handlers may be plain functions or coroutine functions; coroutines are
    awaited in order.
    """

    def __init__(self) -> None:
        self._handlers: dict[ChannelEvent, list[Callable[..., Any]]] = {
            event: [] for event in ChannelEvent
        }

    def on(self, event: ChannelEvent, handler: Callable[..., Any]) -> None:
        self._handlers[event].append(handler)

    async def _fire(self, event: ChannelEvent, *args: Any) -> None:
        for handler in list(self._handlers[event]):
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Channel handler for {event.value} failed")

    @abstractmethod
    async def open(self) -> None:
        """Start connecting. Returns without waiting for CONNECTED."""
        ...

    @abstractmethod
    async def send(self, signal: str, payload: Any) -> None:
        """Send a signal (subscribe/unsubscribe) to the wallet."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Tear down the channel."""
        ...


ChannelFactory = Callable[[str, str], NotificationChannel]


def to_websocket_url(host: str, path: str) -> str:
    """https://wallet.example + /socket.io -> wss://wallet.example/socket.io"""
    if host.startswith("https://"):
        host = "wss://" + host[len("https://"):]
    elif host.startswith("http://"):
        host = "ws://" + host[len("http://"):]
    return host + (path or "/")


class WebSocketChannel(NotificationChannel):
    """
    Notification channel over a websocket.

    Frames are JSON objects of the form {"event": name, "data": payload}.
    """

    def __init__(self, host: str, path: str, open_timeout: float = 10.0) -> None:
        super().__init__()
        self.url = to_websocket_url(host, path)
        self._open_timeout = open_timeout
        self._ws: Any = None
        self._reader: asyncio.Task[None] | None = None

    async def open(self) -> None:
        if self._reader is not None and not self._reader.done():
            return
        self._reader = asyncio.create_task(self._run(), name=f"ilpwallet-channel:{self.url}")

    async def _run(self) -> None:
        logger.debug(f"Attempting to connect to wallet at {self.url}")
        try:
            ws = await websockets.connect(self.url, open_timeout=self._open_timeout)
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            logger.debug(f"Connection error: {e!r}")
            await self._fire(ChannelEvent.CONNECT_ERROR, e)
            return

        self._ws = ws
        try:
            await self._fire(ChannelEvent.CONNECTED)
            async for raw in ws:
                await self._dispatch(raw)
        except ConnectionClosed as e:
            logger.debug(f"Wallet channel closed: {e}")
        finally:
            self._ws = None
            await self._fire(ChannelEvent.DISCONNECTED)

    async def _dispatch(self, raw: str | bytes) -> None:
        try:
            message = json.loads(raw)
        except ValueError:
            logger.debug("Dropping non-JSON frame")
            return
        if not isinstance(message, dict):
            return
        if message.get("event") == PAYMENT_EVENT:
            await self._fire(ChannelEvent.NOTIFICATION, message.get("data"))

    async def send(self, signal: str, payload: Any) -> None:
        if self._ws is None:
            raise WalletConnectionError("Notification channel is not open", uri=self.url)
        await self._ws.send(json.dumps({"event": signal, "data": payload}))

    async def close(self) -> None:
        reader, self._reader = self._reader, None
        if self._ws is not None:
            await self._ws.close()
        elif reader is not None and not reader.done():
            # Still connecting
            reader.cancel()
        if reader is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await reader


__all__ = [
    "ChannelEvent",
    "ChannelFactory",
    "NotificationChannel",
    "WebSocketChannel",
    "to_websocket_url",
]
