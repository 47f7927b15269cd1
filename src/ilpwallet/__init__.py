"""
ilpwallet - asyncio client for Interledger wallets.

Resolve a wallet address, subscribe to payment notifications, quote
cross-ledger payments and send them.

Usage:
    >>> from ilpwallet import WalletClient, WalletEvent
    >>>
    >>> async with WalletClient("alice@wallet.example", "secret") as client:
    ...     client.on(WalletEvent.INCOMING, print)
    ...     source = await client.convert_amount(
    ...         {"destinationAccount": bob_account, "destinationAmount": "10"}
    ...     )
    ...     payment = client.payment(
    ...         {"destinationAccount": bob_account, "destinationAmount": "10"}
    ...     )
    ...     await payment.quote()
    ...     await payment.send()
"""

from ilpwallet.client import WalletClient
from ilpwallet.core.config import Config
from ilpwallet.core.events import EventDispatcher, PaymentEvent, WalletEvent
from ilpwallet.core.exceptions import (
    AddressLookupError,
    ConfigurationError,
    DetailFetchError,
    ExecutionError,
    NetworkError,
    NoPathFoundError,
    QuoteError,
    ValidationError,
    WalletClientError,
    WalletConnectionError,
)
from ilpwallet.core.logging import configure_logging
from ilpwallet.core.types import (
    ConnectionState,
    Endpoints,
    Notification,
    PathQuote,
    PaymentParams,
    PaymentResult,
    PaymentState,
)
from ilpwallet.discovery import AddressResolver
from ilpwallet.notifications import ChannelEvent, NotificationChannel, WebSocketChannel
from ilpwallet.payment import Payment
from ilpwallet.rates import RateCache

__version__ = "0.1.0"
__all__ = [
    # Main Client
    "WalletClient",
    "Payment",
    # Config
    "Config",
    "configure_logging",
    # Types
    "ConnectionState",
    "PaymentState",
    "Endpoints",
    "PaymentParams",
    "PathQuote",
    "PaymentResult",
    "Notification",
    # Events
    "WalletEvent",
    "PaymentEvent",
    "EventDispatcher",
    # Collaborators
    "AddressResolver",
    "RateCache",
    "NotificationChannel",
    "WebSocketChannel",
    "ChannelEvent",
    # Exceptions
    "WalletClientError",
    "ConfigurationError",
    "ValidationError",
    "AddressLookupError",
    "WalletConnectionError",
    "NetworkError",
    "QuoteError",
    "NoPathFoundError",
    "ExecutionError",
    "DetailFetchError",
]
