"""
Exception hierarchy for the ilpwallet client.

All client-specific exceptions inherit from WalletClientError for easy catching.
"""

from __future__ import annotations

from typing import Any


class WalletClientError(Exception):
    """
    Base exception for all ilpwallet errors.

    Catch this to handle any client-related exception.

    Example:
        >>> try:
        ...     await client.send_payment(params)
        ... except WalletClientError as e:
        ...     print(f"Wallet error: {e}")
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(WalletClientError):
    """
    Configuration is missing or invalid.

    Raised when:
    - The wallet address or password is not provided
    - An environment variable holds a value that cannot be parsed
    """

    pass


class ValidationError(WalletClientError):
    """
    Input validation error.

    Raised when:
    - Payment parameters are missing a destination or both amounts
    - A Payment is asked to move backwards in its lifecycle
    """

    pass


class AddressLookupError(WalletClientError, LookupError):
    """
    The wallet address could not be resolved.

    Raised when:
    - The address is not of the form user@host
    - The WebFinger request fails
    - The WebFinger document lacks the account or notification links
    """

    def __init__(
        self,
        message: str,
        address: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.address = address


class WalletConnectionError(WalletClientError, ConnectionError):
    """
    The notification channel failed to connect or was lost before ready.
    """

    def __init__(
        self,
        message: str,
        uri: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.uri = uri


class NetworkError(WalletClientError):
    """
    HTTP communication with the wallet failed.

    Raised when:
    - The request fails at the transport level (timeout, connection error)
    - The wallet answers with a non-2xx status
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        url: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code
        self.url = url

    def is_rate_limited(self) -> bool:
        """Check if this is a rate limit error."""
        return self.status_code == 429

    def is_server_error(self) -> bool:
        """Check if this is a server-side error."""
        return self.status_code is not None and 500 <= self.status_code < 600


class QuoteError(NetworkError):
    """Path-finding request failed."""

    pass


class NoPathFoundError(QuoteError):
    """
    The path-finder answered but returned nothing usable.

    Raised when the response is empty, not a path, or missing amounts.
    """

    def __init__(
        self,
        message: str,
        destination_account: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.destination_account = destination_account


class ExecutionError(NetworkError):
    """
    The ledger rejected the payment submission.
    """

    def __init__(
        self,
        message: str,
        payment_id: str | None = None,
        status_code: int | None = None,
        url: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code, url=url, details=details)
        self.payment_id = payment_id


class DetailFetchError(NetworkError):
    """Fetching a transfer or its fulfillment failed."""

    pass
