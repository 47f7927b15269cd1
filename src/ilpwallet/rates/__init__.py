"""
Rate caching for path-finding results.
"""

from ilpwallet.rates.cache import RATE_CACHE_REFRESH, RATE_CACHE_TOLERANCE, RateCache, RateCacheEntry

__all__ = ["RateCache", "RateCacheEntry", "RATE_CACHE_REFRESH", "RATE_CACHE_TOLERANCE"]
