"""
Resilience patterns for wallet HTTP calls.
"""

from ilpwallet.resilience.retry import execute_with_retry, is_transient_error

__all__ = ["execute_with_retry", "is_transient_error"]
