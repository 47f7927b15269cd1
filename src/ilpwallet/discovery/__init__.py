"""
Address discovery.

Resolves user@host wallet addresses to ledger endpoints over WebFinger.
"""

from ilpwallet.discovery.resolver import (
    AddressResolver,
    ResolvedAddress,
    derive_endpoints,
    parse_webfinger,
)

__all__ = [
    "AddressResolver",
    "ResolvedAddress",
    "derive_endpoints",
    "parse_webfinger",
]
