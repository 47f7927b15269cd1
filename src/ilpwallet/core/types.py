"""
Type definitions for the ilpwallet client.

This module contains the enums and data classes shared by the client,
the payment workflow and the ledger adapters.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, TypeAlias

from ilpwallet.core.exceptions import ValidationError

# Type alias for flexible amount input
AmountType: TypeAlias = Decimal | int | float | str


class ConnectionState(str, Enum):
    """Lifecycle of the notification subscription."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"


class PaymentState(str, Enum):
    """Lifecycle of a single Payment. Transitions are forward only."""

    CREATED = "created"
    QUOTED = "quoted"
    SENT = "sent"


def to_amount(value: AmountType | None) -> Decimal | None:
    """
    Normalize an amount to Decimal.

    Floats go through str() so 0.1 stays 0.1. NaN and Infinity are rejected.
    """
    if value is None or value == "":
        return None
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as e:
        raise ValidationError(f"Invalid amount: {value!r}") from e
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}")
    return amount


@dataclass(frozen=True)
class Endpoints:
    """The endpoint set resolved for a wallet address."""

    ledger_account: str
    notification_uri: str
    payment_uri: str
    pathfind_uri: str


# camelCase keys accepted by PaymentParams.from_dict
_PARAM_ALIASES = {
    "destinationAccount": "destination_account",
    "sourceAmount": "source_amount",
    "destinationAmount": "destination_amount",
    "sourceMemo": "source_memo",
    "destinationMemo": "destination_memo",
}


@dataclass
class PaymentParams:
    """
    Parameters of a payment.

    Either source_amount or destination_amount may be omitted before quoting;
    after quoting both are set and path holds the resolved path.
    """

    destination_account: str
    source_amount: Decimal | None = None
    destination_amount: Decimal | None = None
    source_memo: Any = None
    destination_memo: Any = None
    message: str | None = None
    path: Any = None

    def __post_init__(self) -> None:
        if not self.destination_account:
            raise ValidationError("destination_account is required")
        self.source_amount = to_amount(self.source_amount)
        self.destination_amount = to_amount(self.destination_amount)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PaymentParams:
        """Build params from a dict with camelCase or snake_case keys."""
        normalized: dict[str, Any] = {}
        for key, value in data.items():
            name = _PARAM_ALIASES.get(key, key)
            if name not in cls.__dataclass_fields__:
                raise ValidationError(f"Unknown payment parameter: {key}")
            if value is not None:
                normalized[name] = value
        if "destination_account" not in normalized:
            raise ValidationError("destination_account is required")
        return cls(**normalized)

    @classmethod
    def coerce(cls, params: PaymentParams | dict[str, Any]) -> PaymentParams:
        if isinstance(params, PaymentParams):
            return params
        return cls.from_dict(params)

    def copy(self) -> PaymentParams:
        """Snapshot of the params as they are now."""
        return deepcopy(self)

    def require_amount(self) -> None:
        if self.source_amount is None and self.destination_amount is None:
            raise ValidationError(
                "Either source_amount or destination_amount must be supplied",
                details={"destination_account": self.destination_account},
            )

    def to_wire(self) -> dict[str, Any]:
        """Serialize for the payment endpoint. Amounts become decimal strings."""
        body: dict[str, Any] = {
            "destination_account": self.destination_account,
            "source_amount": str(self.source_amount) if self.source_amount is not None else None,
            "destination_amount": (
                str(self.destination_amount) if self.destination_amount is not None else None
            ),
            "source_memo": self.source_memo,
            "destination_memo": self.destination_memo,
            "message": self.message,
            "path": self.path,
        }
        return {k: v for k, v in body.items() if v is not None}


@dataclass(frozen=True)
class PathQuote:
    """Amounts and path returned by the path-finder."""

    source_amount: Decimal | None
    destination_amount: Decimal | None
    path: Any = None


@dataclass(frozen=True)
class PaymentResult:
    """Result of a payment submission."""

    payment_id: str
    data: Any = None


@dataclass(frozen=True)
class Notification:
    """An inbound payment notification."""

    source_account: str | None
    destination_account: str | None
    source_amount: Decimal | None = None
    destination_amount: Decimal | None = None
    message: str | None = None
    transfer: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_payload(cls, payload: Any) -> Notification | None:
        """
        Build a Notification from a channel payload.

        Returns None when the payload is empty or not a notification.
        """
        if not payload or not isinstance(payload, dict):
            return None
        source = payload.get("source_account")
        destination = payload.get("destination_account")
        if not source and not destination:
            return None
        try:
            source_amount = to_amount(payload.get("source_amount"))
            destination_amount = to_amount(payload.get("destination_amount"))
        except ValidationError:
            return None
        # Older wallets send the transfer id under "transfers"
        transfer = payload.get("transfer") or payload.get("transfers")
        return cls(
            source_account=source,
            destination_account=destination,
            source_amount=source_amount,
            destination_amount=destination_amount,
            message=payload.get("message"),
            transfer=transfer,
            raw=payload,
        )
