"""Pydantic models for inbound WebSocket frames.

Prices and sizes arrive as decimal strings; pydantic's lax mode coerces them
to floats. Unknown keys are ignored so that additive venue changes do not
break decoding.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, RootModel, model_validator


class WsModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class WsEnvelope(WsModel):
    channel: str = ""
    data: Any = None


class SubscriptionAck(WsModel):
    method: str = ""
    subscription: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None


class AllMidsData(WsModel):
    mids: dict[str, float] = Field(default_factory=dict)


class L2Level(WsModel):
    px: float
    sz: float
    n: int = 0


class L2BookData(WsModel):
    coin: str
    levels: list[list[L2Level]] = Field(default_factory=list)
    time: int = 0


class BboData(WsModel):
    coin: str
    time: int = 0
    bbo: list[L2Level | None] = Field(default_factory=lambda: [None, None])


class WsTrade(WsModel):
    coin: str
    side: str
    px: float
    sz: float
    time: int = 0
    hash: str = ""
    tid: int | None = None
    users: list[str] = Field(default_factory=list)


class TradesData(RootModel[list[WsTrade]]):
    root: list[WsTrade] = Field(default_factory=list)


class CandleData(WsModel):
    open_time: int = Field(alias="t")
    close_time: int = Field(alias="T")
    symbol: str = Field(alias="s")
    interval: str = Field(alias="i")
    open: float = Field(alias="o")
    close: float = Field(alias="c")
    high: float = Field(alias="h")
    low: float = Field(alias="l")
    volume: float = Field(alias="v")
    trade_count: int = Field(default=0, alias="n")


class WsLeverage(WsModel):
    type: str = ""
    value: float = 0.0
    raw_usd: float | None = Field(default=None, alias="rawUsd")


class ActiveAssetData(WsModel):
    user: str = ""
    coin: str = ""
    leverage: WsLeverage | None = None
    max_trade_szs: list[float] = Field(default_factory=list, alias="maxTradeSzs")
    available_to_trade: list[float] = Field(
        default_factory=list, alias="availableToTrade"
    )
    mark_px: float = Field(default=0.0, alias="markPx")


class ActiveAssetCtxData(WsModel):
    coin: str = ""
    ctx: dict[str, Any] = Field(default_factory=dict)


class UserFill(WsModel):
    coin: str
    px: float
    sz: float
    side: str
    time: int = 0
    start_position: float = Field(default=0.0, alias="startPosition")
    dir: str = ""
    closed_pnl: float = Field(default=0.0, alias="closedPnl")
    hash: str = ""
    oid: int = 0
    crossed: bool = False
    fee: float = 0.0
    fee_token: str | None = Field(default=None, alias="feeToken")
    tid: int | None = None


class UserEventsData(WsModel):
    fills: list[UserFill] = Field(default_factory=list)


class UserFillsData(WsModel):
    user: str = ""
    is_snapshot: bool = Field(default=False, alias="isSnapshot")
    fills: list[UserFill] = Field(default_factory=list)


class OrderStatusOrder(WsModel):
    coin: str
    side: str
    limit_px: float = Field(alias="limitPx")
    sz: float
    orig_sz: float = Field(default=0.0, alias="origSz")
    oid: int
    timestamp: int = 0
    trigger_px: float | None = Field(default=None, alias="triggerPx")
    order_type: str = Field(default="", alias="orderType")
    tif: str | None = None
    reduce_only: bool = Field(default=False, alias="reduceOnly")
    cloid: str | None = None


class OrderStatusEntry(WsModel):
    status: str = ""
    status_timestamp: int = Field(default=0, alias="statusTimestamp")
    order: OrderStatusOrder | None = None


class OrderUpdatesData(WsModel):
    user: str = ""
    statuses: list[OrderStatusEntry] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _wrap_bare_list(cls, value: Any) -> Any:
        # The venue may send the status list without the user wrapper.
        if isinstance(value, list):
            return {"statuses": value}
        return value


class LedgerEntryData(WsModel):
    user: str = ""
    time: int = 0
    hash: str = ""
    delta: dict[str, Any] = Field(default_factory=dict)


class WebData2Data(WsModel):
    user: str = ""
    data: dict[str, Any] = Field(default_factory=dict)
