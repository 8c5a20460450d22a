from __future__ import annotations

from decimal import Decimal
from typing import Any

from hyperliquid.utils.signing import (
    OrderWire,
    float_to_usd_int,
    float_to_wire,
    order_type_to_wire,
)

from hypercore_client.adapters.hypercore_adapter.types import BuilderInfo, OrderRequest
from hypercore_client.core.errors import RequestValidationError


def to_wire_decimal(x: float) -> str:
    """Render a price or size with at most 8 decimals, refusing lossy rounding."""
    try:
        return float_to_wire(float(x))
    except ValueError as exc:
        raise RequestValidationError(f"hyperliquid: {exc}") from exc


def to_usd_int(x: float) -> int:
    try:
        return float_to_usd_int(float(x))
    except ValueError as exc:
        raise RequestValidationError(f"hyperliquid: {exc}") from exc


def format_amount(x: float) -> str:
    """Shortest decimal string for ``x`` with no exponent and no trailing zeros."""
    if x == 0:
        return "0"
    return f"{Decimal(repr(float(x))).normalize():f}"


def normalize_address(address: str | None) -> str:
    return (address or "").strip().lower()


def order_request_to_wire(req: OrderRequest, asset: int) -> OrderWire:
    try:
        order_type = order_type_to_wire(req.order_type)
    except (KeyError, ValueError) as exc:
        raise RequestValidationError(
            f"hyperliquid: invalid order type {req.order_type!r}"
        ) from exc

    wire: OrderWire = {
        "a": asset,
        "b": req.is_buy,
        "p": to_wire_decimal(req.limit_price),
        "s": to_wire_decimal(req.size),
        "r": req.reduce_only,
        "t": order_type,
    }
    if req.cloid:
        wire["c"] = req.cloid
    return wire


def builder_to_wire(builder: BuilderInfo | None) -> dict[str, Any] | None:
    if not builder:
        return None
    address = normalize_address(builder.get("b"))
    if not address:
        raise RequestValidationError("hyperliquid: builder address required")
    return {"b": address, "f": int(builder.get("f", 0))}
