"""WalletClient - Main entry point."""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Awaitable, Callable, Coroutine
from decimal import Decimal
from typing import Any
from urllib.parse import urlsplit

import httpx

from ilpwallet.core.config import Config
from ilpwallet.core.events import WALLET_EVENT_PAYLOADS, EventDispatcher, WalletEvent
from ilpwallet.core.exceptions import (
    DetailFetchError,
    NoPathFoundError,
    WalletClientError,
    WalletConnectionError,
)
from ilpwallet.core.logging import configure_logging, get_logger
from ilpwallet.core.types import (
    ConnectionState,
    Endpoints,
    Notification,
    PathQuote,
    PaymentParams,
    PaymentResult,
)
from ilpwallet.discovery.resolver import AddressResolver, derive_endpoints
from ilpwallet.ledger.executor import PaymentExecutor
from ilpwallet.ledger.http import WalletHTTP
from ilpwallet.ledger.pathfind import PathFinder
from ilpwallet.ledger.transfers import TransferLookup
from ilpwallet.notifications.channel import (
    ChannelEvent,
    ChannelFactory,
    NotificationChannel,
    WebSocketChannel,
)
from ilpwallet.payment import Payment
from ilpwallet.rates.cache import RateCache

SUBSCRIBE = "subscribe"
UNSUBSCRIBE = "unsubscribe"


class WalletClient:
    """
    Client for an Interledger wallet.

    Resolves the wallet address, keeps a subscription to payment
    notifications, quotes payments through the wallet's path-finder and
    submits them.

    Connection lifecycle: DISCONNECTED -> CONNECTING -> READY, and back to
    DISCONNECTED when the channel drops or disconnect() is called. Only
    connect() and the channel callbacks change the state.

    Example:
        >>> async with WalletClient("alice@wallet.example", "secret") as client:
        ...     payment = client.payment({"destinationAccount": bob, "destinationAmount": "10"})
        ...     await payment.quote()
        ...     await payment.send()
    """

    def __init__(
        self,
        address: str | None = None,
        password: str | None = None,
        *,
        config: Config | None = None,
        auto_connect: bool | None = None,
        log_level: int | str | None = None,
        http_client: httpx.AsyncClient | None = None,
        channel_factory: ChannelFactory | None = None,
        resolver: AddressResolver | None = None,
        rate_cache: RateCache | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            address: Wallet address user@host (or from ILPWALLET_ADDRESS env)
            password: Wallet password (or from ILPWALLET_PASSWORD env)
            config: Full configuration; overrides the other settings when given
            auto_connect: Start connect() from calls that wait for ready
            log_level: Logging level (default INFO)
            http_client: Shared httpx client; one is created and owned if omitted
            channel_factory: Builds the notification channel from (host, path)
            resolver: Address resolver (defaults to WebFinger over http_client)
            rate_cache: Rate cache (defaults to one built from config)
        """
        if config is None:
            overrides = {
                "address": address,
                "password": password,
                "auto_connect": auto_connect,
                "log_level": log_level,
            }
            config = Config.from_env(**{k: v for k, v in overrides.items() if v is not None})
        self._config = config

        configure_logging(level=config.log_level)
        self._logger = get_logger("client")
        self._logger.info(f"Initializing wallet client for {config.address}")

        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=config.http_timeout)
        self._http = WalletHTTP(
            config.username,
            config.password,
            http_client=self._http_client,
            timeout=config.http_timeout,
        )
        self._resolver = resolver or AddressResolver(
            http_client=self._http_client,
            scheme=config.webfinger_scheme,
            timeout=config.http_timeout,
            max_retries=config.max_retries,
            retry_max_wait=config.retry_max_wait,
        )
        self._pathfinder = PathFinder(
            self._http, max_retries=config.max_retries, retry_max_wait=config.retry_max_wait
        )
        self._executor = PaymentExecutor(self._http)
        self._transfers = TransferLookup(
            self._http, max_retries=config.max_retries, retry_max_wait=config.retry_max_wait
        )
        self._rate_cache = rate_cache or RateCache(
            refresh_interval=config.rate_cache_refresh,
            tolerance=config.rate_cache_tolerance,
        )
        self._channel_factory = channel_factory or self._websocket_channel

        self._events: EventDispatcher[WalletEvent] = EventDispatcher(WALLET_EVENT_PAYLOADS)
        self._state = ConnectionState.DISCONNECTED
        self._endpoints: Endpoints | None = None
        self._channel: NotificationChannel | None = None
        self._channel_open = False
        self._connect_future: asyncio.Future[None] | None = None
        self._ready_waiters: list[asyncio.Future[None]] = []
        self._background_tasks: set[asyncio.Task[Any]] = set()

    def _websocket_channel(self, host: str, path: str) -> NotificationChannel:
        return WebSocketChannel(host, path, open_timeout=self._config.channel_open_timeout)

    async def __aenter__(self) -> WalletClient:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @property
    def config(self) -> Config:
        return self._config

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def endpoints(self) -> Endpoints | None:
        """Resolved endpoint set, None until the address has been resolved."""
        return self._endpoints

    @property
    def rate_cache(self) -> RateCache:
        return self._rate_cache

    # ─── Events ──────────────────────────────────────────────────────

    def on(self, event: WalletEvent, handler: Callable[..., Any]) -> Callable[..., Any]:
        """Register an event handler. Registering never triggers a connection."""
        return self._events.on(event, handler)

    def off(self, event: WalletEvent, handler: Callable[..., Any]) -> bool:
        return self._events.off(event, handler)

    def listener_count(self, event: WalletEvent) -> int:
        return self._events.listener_count(event)

    # ─── Connection Lifecycle ────────────────────────────────────────

    def is_connected(self) -> bool:
        return self._state == ConnectionState.READY

    async def connect(self) -> None:
        """
        Connect and subscribe to payment notifications.

        Returns immediately when already ready. Concurrent calls share one
        attempt.

        Raises:
            AddressLookupError: If the wallet address cannot be resolved
            WalletConnectionError: If the channel fails or drops before ready
        """
        if self._state == ConnectionState.READY:
            return
        if self._connect_future is not None and not self._connect_future.done():
            await asyncio.shield(self._connect_future)
            return

        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._connect_future = future
        self._state = ConnectionState.CONNECTING

        try:
            endpoints = await self._ensure_endpoints()
            if self._channel is not None and self._channel_open:
                # Channel survived a disconnect(); only the subscription is gone
                await self._subscribe(self._channel)
                self._become_ready()
            else:
                await self._open_channel(endpoints)
        except asyncio.CancelledError:
            self._fail_connect(WalletConnectionError("Connect cancelled"))
            raise
        except Exception as e:
            self._logger.error(f"Connection to wallet failed: {e}")
            self._fail_connect(e)
            raise

        await asyncio.shield(future)

    async def _ensure_endpoints(self) -> Endpoints:
        if self._endpoints is None:
            resolved = await self._resolver.resolve(self._config.address)
            self._endpoints = derive_endpoints(resolved)
            self._logger.debug(f"Resolved endpoints {self._endpoints}")
        return self._endpoints

    async def _open_channel(self, endpoints: Endpoints) -> None:
        if self._channel is not None:
            stale, self._channel = self._channel, None
            await stale.close()

        # Host and path are passed separately so the path is not mistaken for
        # part of the host by the transport
        parts = urlsplit(endpoints.notification_uri)
        host = f"{parts.scheme}://{parts.netloc}"
        path = parts.path or "/"
        if parts.query:
            path = f"{path}?{parts.query}"

        self._logger.debug(f"Attempting to connect to wallet host: {host} path: {path}")
        channel = self._channel_factory(host, path)
        channel.on(ChannelEvent.CONNECTED, functools.partial(self._on_channel_connected, channel))
        channel.on(
            ChannelEvent.DISCONNECTED, functools.partial(self._on_channel_disconnected, channel)
        )
        channel.on(
            ChannelEvent.CONNECT_ERROR, functools.partial(self._on_channel_error, channel)
        )
        channel.on(
            ChannelEvent.NOTIFICATION, functools.partial(self._on_channel_notification, channel)
        )
        self._channel = channel
        self._channel_open = False
        await channel.open()

    async def _subscribe(self, channel: NotificationChannel) -> None:
        # Unsubscribe first so a subscription left over from an earlier
        # session is not doubled
        await channel.send(UNSUBSCRIBE, self._config.username)
        await channel.send(SUBSCRIBE, self._config.username)

    def _become_ready(self) -> None:
        self._state = ConnectionState.READY
        self._logger.info("Connected to wallet")
        waiters, self._ready_waiters = self._ready_waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)
        if self._connect_future is not None and not self._connect_future.done():
            self._connect_future.set_result(None)
        self._events.emit(WalletEvent.CONNECT)

    def _fail_connect(self, error: Exception) -> None:
        self._state = ConnectionState.DISCONNECTED
        future = self._connect_future
        if future is not None and not future.done():
            future.set_exception(error)
            # Mark retrieved; the caller of connect() gets the error directly
            future.exception()

    async def _on_channel_connected(self, channel: NotificationChannel) -> None:
        if channel is not self._channel:
            return
        self._logger.debug("Connected to wallet notification channel")
        self._channel_open = True
        try:
            await self._subscribe(channel)
        except Exception as e:
            self._logger.warning(f"Subscribe handshake failed: {e!r}")
            self._fail_connect(WalletConnectionError(f"Subscribe handshake failed: {e}"))
            return
        self._become_ready()

    def _on_channel_disconnected(self, channel: NotificationChannel) -> None:
        if channel is not self._channel:
            return
        self._channel_open = False
        self._state = ConnectionState.DISCONNECTED
        self._logger.info("Disconnected from wallet")
        self._fail_connect(
            WalletConnectionError(
                "Disconnected from wallet before ready",
                uri=self._endpoints.notification_uri if self._endpoints else None,
            )
        )

    def _on_channel_error(self, channel: NotificationChannel, error: BaseException) -> None:
        if channel is not self._channel:
            return
        self._channel_open = False
        self._logger.warning(f"Connection error: {error!r}")
        self._fail_connect(
            WalletConnectionError(
                f"Could not connect to wallet: {error}",
                uri=self._endpoints.notification_uri if self._endpoints else None,
            )
        )

    def _on_channel_notification(self, channel: NotificationChannel, payload: Any) -> None:
        if channel is not self._channel:
            return
        self._handle_notification(payload)

    async def _wait_until_ready(self) -> None:
        """Suspend until the next transition to READY."""
        if self._state == ConnectionState.READY:
            return
        if self._config.auto_connect and (
            self._connect_future is None or self._connect_future.done()
        ):
            self._spawn(self._auto_connect())

        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._ready_waiters.append(waiter)
        try:
            await waiter
        finally:
            if waiter in self._ready_waiters:
                self._ready_waiters.remove(waiter)

    async def _auto_connect(self) -> None:
        try:
            await self.connect()
        except WalletClientError as e:
            self._logger.warning(f"Automatic connect failed: {e}")

    def _resolved_endpoints(self) -> Endpoints:
        if self._endpoints is None:
            raise WalletConnectionError("Wallet address has not been resolved")
        return self._endpoints

    async def get_account(self) -> str:
        """
        Get the ledger account URI of this wallet.

        Waits for the next successful connection when not yet resolved.
        """
        if self._endpoints is not None:
            return self._endpoints.ledger_account
        await self._wait_until_ready()
        return self._resolved_endpoints().ledger_account

    async def disconnect(self) -> None:
        """
        Unsubscribe from notifications.

        The channel itself stays open; connect() subscribes again over it.
        """
        if self._channel is None or not self._channel_open:
            self._logger.debug("disconnect() called without an open channel")
            return
        await self._channel.send(UNSUBSCRIBE, self._config.username)
        self._state = ConnectionState.DISCONNECTED
        self._logger.info("Unsubscribed from wallet notifications")

    async def close(self) -> None:
        """Close the channel and owned HTTP resources."""
        channel, self._channel = self._channel, None
        self._channel_open = False
        self._state = ConnectionState.DISCONNECTED
        self._fail_connect(WalletConnectionError("Client closed"))
        waiters, self._ready_waiters = self._ready_waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_exception(WalletConnectionError("Client closed"))
        if channel is not None:
            await channel.close()

        tasks = list(self._background_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        await self._resolver.close()
        await self._http.close()
        if self._owns_http_client:
            await self._http_client.aclose()

    # ─── Notifications ───────────────────────────────────────────────

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.ensure_future(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_done)
        return task

    def _background_done(self, task: asyncio.Task[Any]) -> None:
        self._background_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self._logger.error(f"Background task failed: {task.exception()!r}")

    def _handle_notification(self, payload: Any) -> None:
        """
        Classify a notification as outgoing or incoming and emit it.

        Transfer details are only fetched when someone listens for them, and
        in the background so the channel is never held up.
        """
        self._logger.debug(f"Got notification {payload}")
        notification = Notification.from_payload(payload)
        if notification is None or self._endpoints is None:
            return

        account = self._endpoints.ledger_account
        if notification.source_account == account:
            self._events.emit(WalletEvent.OUTGOING, notification)
            if self._events.listener_count(WalletEvent.OUTGOING_FULFILLMENT) > 0:
                self._fetch_in_background(notification, self._emit_outgoing_fulfillment)
        elif notification.destination_account == account:
            self._events.emit(WalletEvent.INCOMING, notification)
            if self._events.listener_count(WalletEvent.INCOMING_TRANSFER) > 0:
                self._fetch_in_background(notification, self._emit_incoming_transfer)

    def _fetch_in_background(
        self,
        notification: Notification,
        fetch: Callable[[str], Awaitable[None]],
    ) -> None:
        if not notification.transfer:
            self._logger.debug("Notification has no transfer reference, skipping details")
            return
        self._spawn(fetch(notification.transfer))

    async def _emit_outgoing_fulfillment(self, transfer_id: str) -> None:
        try:
            transfer, fulfillment = await asyncio.gather(
                self.get_transfer(transfer_id),
                self.get_transfer_fulfillment(transfer_id),
            )
        except DetailFetchError as e:
            self._logger.warning(f"Error getting outgoing_fulfillment: {e}")
            return
        self._events.emit(WalletEvent.OUTGOING_FULFILLMENT, transfer, fulfillment)

    async def _emit_incoming_transfer(self, transfer_id: str) -> None:
        try:
            transfer = await self.get_transfer(transfer_id)
        except DetailFetchError as e:
            self._logger.warning(f"Error getting incoming_transfer: {e}")
            return
        self._events.emit(WalletEvent.INCOMING_TRANSFER, transfer)

    async def get_transfer(self, transfer_id: str) -> Any:
        """Fetch a transfer by its URI."""
        return await self._transfers.get_transfer(transfer_id)

    async def get_transfer_fulfillment(self, transfer_id: str) -> Any:
        """Fetch the fulfillment of a transfer."""
        return await self._transfers.get_fulfillment(transfer_id)

    # ─── Quoting & Payments ──────────────────────────────────────────

    async def _find_path(self, params: PaymentParams) -> PathQuote:
        """
        Run path-finding for params.

        Before the address has been resolved this waits for the connection
        when one is in flight or auto_connect is set, and fails otherwise.
        """
        params.require_amount()
        if self._endpoints is None:
            connecting = self._connect_future is not None and not self._connect_future.done()
            if not connecting and not self._config.auto_connect:
                raise WalletConnectionError("Not connected; call connect() first")
            await self._wait_until_ready()
        return await self._pathfinder.find_path(
            self._resolved_endpoints().pathfind_uri,
            params.destination_account,
            source_amount=params.source_amount,
            destination_amount=params.destination_amount,
        )

    async def convert_amount(self, params: PaymentParams | dict[str, Any]) -> Decimal:
        """
        Convert an amount through the path-finder.

        With destination_amount set, returns the source amount needed, using
        the rate cache when a fresh nearby quote exists. With only
        source_amount set, returns the destination amount it buys.

        Raises:
            NoPathFoundError: If no path exists
            QuoteError: If the path-finder request fails
            WalletConnectionError: If the client was never connected
        """
        params = PaymentParams.coerce(params)
        params.require_amount()

        if params.destination_amount is not None:
            cached = self._rate_cache.lookup(params.destination_account, params.destination_amount)
            if cached is not None:
                return cached

        quote = await self._find_path(
            PaymentParams(
                destination_account=params.destination_account,
                source_amount=params.source_amount if params.destination_amount is None else None,
                destination_amount=params.destination_amount,
            )
        )

        if params.destination_amount is not None:
            if quote.source_amount is None:
                raise NoPathFoundError(
                    "Path-finder did not return a source amount",
                    destination_account=params.destination_account,
                )
            self._rate_cache.store(
                params.destination_account, params.destination_amount, quote.source_amount
            )
            return quote.source_amount

        if quote.destination_amount is None:
            raise NoPathFoundError(
                "Path-finder did not return a destination amount",
                destination_account=params.destination_account,
            )
        return quote.destination_amount

    async def send_payment(self, params: PaymentParams | dict[str, Any]) -> PaymentResult:
        """
        Submit a payment.

        The params are captured when this is called. If the client is not
        ready the submission waits for the next ready transition and then
        runs once.

        Raises:
            ValidationError: If params carry no amount
            ExecutionError: If the wallet rejects the payment
        """
        snapshot = PaymentParams.coerce(params).copy()
        snapshot.require_amount()
        if self._state != ConnectionState.READY:
            self._logger.debug("Not connected, payment queued until ready")
            await self._wait_until_ready()
        self._logger.debug(f"send_payment {snapshot.to_wire()}")
        return await self._executor.submit(self._resolved_endpoints().payment_uri, snapshot)

    def payment(self, params: PaymentParams | dict[str, Any]) -> Payment:
        """Create a Payment to quote and send."""
        return Payment(self, PaymentParams.coerce(params))


__all__ = ["WalletClient"]
