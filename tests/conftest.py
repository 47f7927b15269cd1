import asyncio
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from ilpwallet.client import WalletClient
from ilpwallet.core.config import Config
from ilpwallet.discovery.resolver import AddressResolver, ResolvedAddress
from ilpwallet.notifications.channel import ChannelEvent, NotificationChannel

ADDRESS = "alice@wallet.example"
ACCOUNT = "https://wallet.example/ledger/accounts/alice"
BOB = "https://wallet.example/ledger/accounts/bob"
NOTIFICATION_URI = "https://wallet.example/socket.io"
PAYMENT_URI = "https://wallet.example/payments"
PATHFIND_URI = "https://wallet.example/pathFind"


class FakeChannel(NotificationChannel):
    """In-memory notification channel driven by the test."""

    def __init__(self, host: str, path: str, connect_on_open: bool = True) -> None:
        super().__init__()
        self.host = host
        self.path = path
        self.connect_on_open = connect_on_open
        self.opened = 0
        self.closed = False
        self.sent: list[tuple[str, Any]] = []
        self._pending: asyncio.Future[Any] | None = None

    async def open(self) -> None:
        self.opened += 1
        if self.connect_on_open:
            # Report CONNECTED on a later loop iteration, like a real transport
            self._pending = asyncio.ensure_future(self._fire(ChannelEvent.CONNECTED))

    async def send(self, signal: str, payload: Any) -> None:
        self.sent.append((signal, payload))

    async def close(self) -> None:
        self.closed = True

    async def connected(self) -> None:
        await self._fire(ChannelEvent.CONNECTED)

    async def drop(self) -> None:
        await self._fire(ChannelEvent.DISCONNECTED)

    async def fail(self, error: Exception) -> None:
        await self._fire(ChannelEvent.CONNECT_ERROR, error)

    async def push(self, payload: Any) -> None:
        await self._fire(ChannelEvent.NOTIFICATION, payload)


class FakeChannelFactory:
    """Records every channel the client creates."""

    def __init__(self, connect_on_open: bool = True) -> None:
        self.connect_on_open = connect_on_open
        self.channels: list[FakeChannel] = []

    def __call__(self, host: str, path: str) -> FakeChannel:
        channel = FakeChannel(host, path, connect_on_open=self.connect_on_open)
        self.channels.append(channel)
        return channel

    @property
    def last(self) -> FakeChannel:
        return self.channels[-1]


async def settle(rounds: int = 5) -> None:
    """Let scheduled callbacks and tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


async def drain(client: WalletClient) -> None:
    """Wait for the client's background detail fetches."""
    while client._background_tasks:
        await asyncio.gather(*list(client._background_tasks), return_exceptions=True)


@pytest.fixture
def config() -> Config:
    return Config(address=ADDRESS, password="secret", max_retries=1)


@pytest.fixture
def resolver() -> MagicMock:
    mock = MagicMock(spec=AddressResolver)
    mock.resolve = AsyncMock(
        return_value=ResolvedAddress(ledger_account=ACCOUNT, notification_uri=NOTIFICATION_URI)
    )
    mock.close = AsyncMock()
    return mock


@pytest.fixture
def channels() -> FakeChannelFactory:
    return FakeChannelFactory()


@pytest_asyncio.fixture
async def client(config, resolver, channels):
    wallet = WalletClient(config=config, resolver=resolver, channel_factory=channels)
    yield wallet
    await wallet.close()


@pytest_asyncio.fixture
async def connected_client(client):
    await client.connect()
    return client
