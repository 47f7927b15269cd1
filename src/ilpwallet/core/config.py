"""
Configuration management for the ilpwallet client.

Handles loading configuration from environment variables and validation.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from typing import Any

from ilpwallet.core.exceptions import ConfigurationError


def _get_env_var(name: str, default: str | None = None, required: bool = False) -> str | None:
    """Get environment variable with optional default."""
    value = os.environ.get(name, default)
    if required and not value:
        raise ConfigurationError(f"Required environment variable {name} is not set")
    return value


def _parse_bool(value: str | bool | None) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_float(name: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from e


@dataclass(frozen=True)
class Config:
    """Client configuration."""

    address: str
    password: str
    log_level: str = "INFO"
    # Timeout configuration
    http_timeout: float = 30.0  # seconds, applies to every HTTP call
    channel_open_timeout: float = 10.0  # seconds, websocket handshake
    # Rate cache
    rate_cache_refresh: float = 60.0  # seconds a cached rate stays usable
    rate_cache_tolerance: int = 100  # match within requested_amount / tolerance
    # Retries for idempotent calls (WebFinger, path-find, transfer lookups)
    max_retries: int = 3
    retry_max_wait: float = 4.0
    # Start connect() from operations that wait for ready
    auto_connect: bool = False
    webfinger_scheme: str = "https"

    def __post_init__(self) -> None:
        if not self.address:
            raise ConfigurationError("Must instantiate WalletClient with a wallet address")
        if "@" not in self.address:
            raise ConfigurationError(
                f"Wallet address must be of the form user@host, got {self.address!r}"
            )
        if not self.password:
            raise ConfigurationError("Must instantiate WalletClient with a wallet password")
        if self.rate_cache_tolerance <= 0:
            raise ConfigurationError("rate_cache_tolerance must be positive")
        if self.max_retries < 1:
            raise ConfigurationError("max_retries must be at least 1")

    @property
    def username(self) -> str:
        """Local part of the address, used for auth and subscriptions."""
        return self.address.split("@", 1)[0]

    @property
    def host(self) -> str:
        return self.address.split("@", 1)[1]

    @classmethod
    def from_env(cls, **overrides: Any) -> Config:
        """Load configuration from environment variables."""
        address = overrides.pop("address", None) or _get_env_var(
            "ILPWALLET_ADDRESS", required=True
        )
        password = overrides.pop("password", None) or _get_env_var(
            "ILPWALLET_PASSWORD", required=True
        )

        log_level = overrides.pop("log_level", None) or _get_env_var(
            "ILPWALLET_LOG_LEVEL", default="INFO"
        )

        http_timeout = overrides.pop("http_timeout", None)
        if http_timeout is None:
            http_timeout = _parse_float(
                "ILPWALLET_HTTP_TIMEOUT", _get_env_var("ILPWALLET_HTTP_TIMEOUT", default="30")
            )

        auto_connect = overrides.pop("auto_connect", None)
        if auto_connect is None:
            auto_connect = _parse_bool(_get_env_var("ILPWALLET_AUTO_CONNECT"))

        return cls(
            address=address,  # type: ignore
            password=password,  # type: ignore
            log_level=log_level,  # type: ignore
            http_timeout=http_timeout,
            auto_connect=auto_connect,
            **overrides,
        )

    def with_updates(self, **updates: Any) -> Config:
        """Create a new Config with updated values."""
        current = asdict(self)
        current.update(updates)
        return Config(**current)

    def masked_password(self) -> str:
        """Return password with most characters masked for safe logging."""
        if len(self.password) <= 8:
            return "****"
        return self.password[:2] + "..." + self.password[-2:]
