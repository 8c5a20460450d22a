"""Request and result types for the Hypercore adapter.

Request dataclasses describe a caller's intent before any asset or nonce
resolution; ``actions.py`` turns them into wire actions. The generic
``Order*`` types at the bottom are what the wrapper adapter exposes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Literal

from hyperliquid.utils.signing import OrderType
from hyperliquid.utils.types import BuilderInfo

__all__ = [
    "AccountBalances",
    "Balance",
    "BuilderInfo",
    "CancelByCloidRequest",
    "CancelRequest",
    "FundingRate",
    "ModifyRequest",
    "MultiSigRequest",
    "OpenInterest",
    "OrderCancellation",
    "OrderModification",
    "OrderRequest",
    "OrderSide",
    "OrderStatus",
    "OrderSubmission",
    "OrderType",
    "SubmitResult",
    "TimeInForce",
    "TradablePair",
]


class OrderStatus(StrEnum):
    UNKNOWN = "UNKNOWN"
    ACTIVE = "ACTIVE"
    FILLED = "FILLED"
    PARTIALLY_FILLED = "PARTIALLY_FILLED"
    CANCELLED = "CANCELLED"
    REJECTED = "REJECTED"

    @classmethod
    def from_venue(cls, value: str | None) -> OrderStatus:
        """Map a venue order-status string onto the generic status set."""
        match (value or "").strip().lower():
            case "open" | "active" | "resting" | "new":
                return cls.ACTIVE
            case "filled" | "complete":
                return cls.FILLED
            case "cancelled" | "canceled" | "margincanceled":
                return cls.CANCELLED
            case "partial" | "partially_filled":
                return cls.PARTIALLY_FILLED
            case "rejected":
                return cls.REJECTED
            case _:
                return cls.UNKNOWN


class OrderSide(StrEnum):
    BUY = "BUY"
    SELL = "SELL"

    @classmethod
    def from_venue(cls, side: str) -> OrderSide:
        # The venue reports bids as "B" and asks as "A".
        return cls.BUY if side.upper() in ("B", "BUY", "BID") else cls.SELL


class TimeInForce(StrEnum):
    GTC = "GTC"
    IOC = "IOC"
    FOK = "FOK"


@dataclass
class OrderRequest:
    coin: str
    is_buy: bool
    size: float
    limit_price: float
    order_type: OrderType = field(default_factory=lambda: {"limit": {"tif": "Gtc"}})
    reduce_only: bool = False
    cloid: str | None = None


@dataclass
class ModifyRequest:
    order: OrderRequest
    oid: int | None = None
    cloid: str | None = None


@dataclass
class CancelRequest:
    coin: str
    oid: int


@dataclass
class CancelByCloidRequest:
    coin: str
    cloid: str


@dataclass
class MultiSigRequest:
    multi_sig_user: str
    action: dict[str, Any]
    signatures: list[dict[str, Any]]
    nonce: int
    vault_address: str | None = None


@dataclass
class OrderSubmission:
    coin: str
    side: OrderSide
    amount: float
    price: float
    order_kind: Literal["limit", "market"] = "limit"
    time_in_force: TimeInForce = TimeInForce.GTC
    post_only: bool = False
    reduce_only: bool = False
    client_order_id: str | None = None
    asset_class: Literal["perp", "spot"] = "perp"


@dataclass
class OrderModification:
    coin: str
    side: OrderSide
    amount: float
    price: float
    order_id: str | None = None
    client_order_id: str | None = None
    time_in_force: TimeInForce = TimeInForce.GTC
    post_only: bool = False
    reduce_only: bool = False


@dataclass
class SubmitResult:
    coin: str
    side: OrderSide
    amount: float
    price: float
    order_id: str | None = None
    client_order_id: str | None = None
    status: OrderStatus = OrderStatus.UNKNOWN
    raw: Any = None


@dataclass(frozen=True)
class TradablePair:
    base: str
    quote: str
    asset_class: Literal["perp", "spot"]
    index: int
    sz_decimals: int | None = None

    @property
    def symbol(self) -> str:
        if self.asset_class == "spot":
            return f"{self.base}/{self.quote}"
        return self.base


@dataclass
class OrderCancellation:
    coin: str
    order_id: str | None = None
    client_order_id: str | None = None


@dataclass(frozen=True)
class Balance:
    asset: str
    total: float
    free: float
    hold: float


@dataclass
class AccountBalances:
    perp: list[Balance] = field(default_factory=list)
    spot: list[Balance] = field(default_factory=list)
    positions: list[dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class FundingRate:
    pair: str
    rate: float
    premium: float | None = None
    mark_price: float | None = None


@dataclass(frozen=True)
class OpenInterest:
    pair: str
    open_interest: float
    mark_price: float | None = None
