"""
Ledger module - HTTP adapters for the wallet's ledger endpoints.

Provides path-finding, payment submission and transfer lookups.
"""

from ilpwallet.ledger.executor import PaymentExecutor
from ilpwallet.ledger.http import WalletHTTP
from ilpwallet.ledger.pathfind import PathFinder, parse_path
from ilpwallet.ledger.transfers import TransferLookup

__all__ = [
    "PathFinder",
    "PaymentExecutor",
    "TransferLookup",
    "WalletHTTP",
    "parse_path",
]
