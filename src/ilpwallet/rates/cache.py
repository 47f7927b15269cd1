"""
Rate Cache: short-lived cache of path-finding results.

Maps (destination account, destination amount) to the source amount the
path-finder quoted for it. A lookup matches any cached destination amount
within 1% of the requested one, so repeated quotes for nearly the same
amount skip the network round trip.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal

from ilpwallet.core.logging import get_logger

logger = get_logger("rates.cache")

RATE_CACHE_REFRESH = 60.0  # seconds
RATE_CACHE_TOLERANCE = 100  # match within requested / 100


@dataclass(frozen=True)
class RateCacheEntry:
    destination_account: str
    destination_amount: Decimal
    source_amount: Decimal
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class RateCache:
    """
    Per-account rate cache with lazy expiry.

    Expired entries are only removed when a lookup walks past them.
    """

    def __init__(
        self,
        refresh_interval: float = RATE_CACHE_REFRESH,
        tolerance: int = RATE_CACHE_TOLERANCE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._refresh_interval = refresh_interval
        self._tolerance = tolerance
        self._clock = clock
        # destination_account -> {destination_amount: entry}, in insertion order
        self._entries: dict[str, dict[Decimal, RateCacheEntry]] = {}

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries.values())

    def lookup(self, destination_account: str, destination_amount: Decimal) -> Decimal | None:
        """
        Find a fresh cached source amount close to destination_amount.

        Returns None on miss.
        """
        entries = self._entries.get(destination_account)
        if not entries:
            return None

        now = self._clock()
        threshold = abs(destination_amount) / self._tolerance
        for cached_amount, entry in list(entries.items()):
            if entry.is_expired(now):
                del entries[cached_amount]
                continue
            if abs(cached_amount - destination_amount) < threshold:
                logger.debug(
                    f"Rate cache hit for {destination_amount} to {destination_account} "
                    f"(cached {cached_amount})"
                )
                return entry.source_amount

        if not entries:
            del self._entries[destination_account]
        return None

    def store(
        self,
        destination_account: str,
        destination_amount: Decimal,
        source_amount: Decimal,
    ) -> RateCacheEntry:
        """Insert or overwrite the entry for this exact account and amount."""
        entry = RateCacheEntry(
            destination_account=destination_account,
            destination_amount=destination_amount,
            source_amount=source_amount,
            expires_at=self._clock() + self._refresh_interval,
        )
        self._entries.setdefault(destination_account, {})[destination_amount] = entry
        return entry

    def clear(self) -> None:
        self._entries.clear()


__all__ = ["RateCache", "RateCacheEntry", "RATE_CACHE_REFRESH", "RATE_CACHE_TOLERANCE"]
