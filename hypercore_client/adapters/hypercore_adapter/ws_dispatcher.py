"""Inbound frame routing for the WebSocket feed.

One reader task feeds frames to :meth:`MessageDispatcher.handle` in arrival
order. Each data channel is decoded through its pydantic model and turned
into typed events, which are put on an ``asyncio.Queue`` for the host to
drain. Frame order is preserved end to end.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterable, Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from loguru import logger
from pydantic import BaseModel, ValidationError
from websockets.exceptions import ConnectionClosed

from hypercore_client.adapters.hypercore_adapter.types import OrderSide, OrderStatus
from hypercore_client.adapters.hypercore_adapter.ws_models import (
    ActiveAssetCtxData,
    ActiveAssetData,
    AllMidsData,
    BboData,
    CandleData,
    L2BookData,
    LedgerEntryData,
    OrderStatusEntry,
    OrderUpdatesData,
    TradesData,
    UserEventsData,
    UserFill,
    UserFillsData,
    WebData2Data,
    WsEnvelope,
    WsTrade,
)
from hypercore_client.adapters.hypercore_adapter.ws_subscriptions import (
    SubscriptionReconciler,
)
from hypercore_client.core.constants.hyperliquid import (
    CONNECTION_ESTABLISHED_MESSAGE,
    QUOTE_ASSET,
)
from hypercore_client.core.errors import (
    ActiveAssetDataNotFoundError,
    HypercoreError,
    RequestValidationError,
    WebsocketMessageError,
)

PERP = "perp"
SPOT = "spot"


class DataChannel(StrEnum):
    ALL_MIDS = "allMids"
    L2_BOOK = "l2Book"
    TRADES = "trades"
    CANDLE = "candle"
    BBO = "bbo"
    ACTIVE_ASSET_DATA = "activeAssetData"
    ACTIVE_ASSET_CTX = "activeAssetCtx"
    ACTIVE_SPOT_ASSET_CTX = "activeSpotAssetCtx"
    USER = "user"
    USER_FILLS = "userFills"
    ORDER_UPDATES = "orderUpdates"
    USER_FUNDINGS = "userFundings"
    USER_NON_FUNDING_LEDGER_UPDATES = "userNonFundingLedgerUpdates"
    WEB_DATA2 = "webData2"


def parse_market(market: str) -> tuple[str, str]:
    """Split a venue market string into ``(asset_class, "BASE/QUOTE")``.

    Spot markets already carry a slash; anything else is a perp quoted in USDC.
    """
    market = (market or "").strip()
    if not market:
        raise WebsocketMessageError("hyperliquid: empty market identifier")
    if "/" in market:
        base, _, quote = market.partition("/")
        if not base or not quote:
            raise WebsocketMessageError(f"hyperliquid: parse market {market}")
        return SPOT, f"{base.upper()}/{quote.upper()}"
    return PERP, f"{market.upper()}/{QUOTE_ASSET}"


def _from_ms(ms: int) -> datetime:
    try:
        return datetime.fromtimestamp(ms / 1000, tz=UTC)
    except (OverflowError, OSError, ValueError) as exc:
        raise WebsocketMessageError(
            f"hyperliquid: timestamp {ms} out of range"
        ) from exc


# Events


@dataclass(frozen=True)
class TickerEvent:
    pair: str
    asset_class: str
    price: float
    timestamp: datetime


@dataclass(frozen=True)
class OrderbookEvent:
    pair: str
    asset_class: str
    bids: list[tuple[float, float]]
    asks: list[tuple[float, float]]
    timestamp: datetime


@dataclass(frozen=True)
class BestBidOfferEvent:
    pair: str
    asset_class: str
    bid_price: float
    bid_size: float
    ask_price: float
    ask_size: float
    timestamp: datetime


@dataclass(frozen=True)
class TradeEvent:
    pair: str
    asset_class: str
    price: float
    amount: float
    side: OrderSide
    timestamp: datetime
    trade_id: int | None = None


@dataclass(frozen=True)
class CandleEvent:
    pair: str
    asset_class: str
    interval: str
    open_time: datetime
    close_time: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float
    trade_count: int = 0


@dataclass(frozen=True)
class ActiveLeverage:
    type: str = ""
    value: float = 0.0
    raw_usd: float | None = None


@dataclass(frozen=True)
class ActiveAssetDataEvent:
    address: str
    pair: str
    asset_class: str
    leverage: ActiveLeverage
    max_trade_sizes: tuple[float, float]
    available_to_trade: tuple[float, float]
    mark_price: float
    timestamp: datetime


@dataclass(frozen=True)
class ActiveAssetContextEvent:
    pair: str
    asset_class: str
    context: dict[str, Any]
    timestamp: datetime


@dataclass(frozen=True)
class ActiveSpotAssetContextEvent:
    pair: str
    context: dict[str, Any]
    timestamp: datetime


@dataclass(frozen=True)
class UserFillEvent:
    user: str
    pair: str
    asset_class: str
    price: float
    amount: float
    side: OrderSide
    fee: float
    fee_asset: str | None
    hash: str
    order_id: int
    trade_id: int | None
    crossed: bool
    direction: str
    start_position: float
    closed_pnl: float
    timestamp: datetime
    raw: UserFill


@dataclass(frozen=True)
class UserEventsUpdate:
    user: str
    fills: list[UserFillEvent]


@dataclass(frozen=True)
class UserFillsUpdate:
    user: str
    is_snapshot: bool
    fills: list[UserFillEvent]


@dataclass(frozen=True)
class OrderUpdateEvent:
    user: str
    order_id: str
    client_order_id: str
    pair: str
    asset_class: str
    side: OrderSide
    status: OrderStatus
    order_type: str
    time_in_force: str
    price: float
    amount: float
    executed_amount: float
    remaining_amount: float
    reduce_only: bool
    trigger_price: float | None
    created_at: datetime
    last_updated: datetime
    raw: OrderStatusEntry


@dataclass(frozen=True)
class UserFundingEvent:
    user: str
    entry: dict[str, Any]
    timestamp: datetime


@dataclass(frozen=True)
class UserLedgerUpdateEvent:
    user: str
    entry: dict[str, Any]
    timestamp: datetime


@dataclass(frozen=True)
class WebData2Event:
    user: str
    data: dict[str, Any]


@dataclass(frozen=True)
class UnhandledMessage:
    channel: str
    raw: str


@dataclass(frozen=True)
class ErrorEvent:
    error: Exception


# Active asset data snapshot


def active_asset_data_key(asset_class: str, pair: str) -> str:
    return f"{asset_class.lower()}:{pair.upper()}"


class ActiveAssetDataCache:
    """Latest ``activeAssetData`` update per market; last write wins."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._data: dict[str, ActiveAssetDataEvent] = {}

    async def store(self, event: ActiveAssetDataEvent) -> None:
        if not event.pair:
            return
        async with self._lock:
            self._data[active_asset_data_key(event.asset_class, event.pair)] = event

    async def latest(self, pair: str, asset_class: str = PERP) -> ActiveAssetDataEvent:
        if not (pair or "").strip():
            raise RequestValidationError("hyperliquid: pair required")
        pair = pair.strip()
        if asset_class.lower() == PERP and "/" not in pair:
            pair = f"{pair}/{QUOTE_ASSET}"
        key = active_asset_data_key(asset_class, pair)
        async with self._lock:
            event = self._data.get(key)
        if event is None:
            raise ActiveAssetDataNotFoundError(key)
        return event


# Dispatcher


Handler = Callable[[Any], Awaitable[None]]


class MessageDispatcher:
    def __init__(
        self,
        reconciler: SubscriptionReconciler,
        *,
        account_address: str | None = None,
        queue: asyncio.Queue[Any] | None = None,
        active_assets: ActiveAssetDataCache | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.reconciler = reconciler
        self.account_address = (account_address or "").strip().lower()
        self.queue: asyncio.Queue[Any] = queue if queue is not None else asyncio.Queue()
        self.active_assets = active_assets or ActiveAssetDataCache()
        self._clock = clock or (lambda: datetime.now(UTC))
        self.logger = logger.bind(adapter=self.__class__.__name__)
        self._routes: dict[DataChannel, tuple[type[BaseModel], Handler]] = {
            DataChannel.ALL_MIDS: (AllMidsData, self._on_all_mids),
            DataChannel.L2_BOOK: (L2BookData, self._on_l2_book),
            DataChannel.TRADES: (TradesData, self._on_trades),
            DataChannel.CANDLE: (CandleData, self._on_candle),
            DataChannel.BBO: (BboData, self._on_bbo),
            DataChannel.ACTIVE_ASSET_DATA: (ActiveAssetData, self._on_active_asset_data),
            DataChannel.ACTIVE_ASSET_CTX: (ActiveAssetCtxData, self._on_active_asset_ctx),
            DataChannel.ACTIVE_SPOT_ASSET_CTX: (
                ActiveAssetCtxData,
                self._on_active_spot_asset_ctx,
            ),
            DataChannel.USER: (UserEventsData, self._on_user_events),
            DataChannel.USER_FILLS: (UserFillsData, self._on_user_fills),
            DataChannel.ORDER_UPDATES: (OrderUpdatesData, self._on_order_updates),
            DataChannel.USER_FUNDINGS: (LedgerEntryData, self._on_user_funding),
            DataChannel.USER_NON_FUNDING_LEDGER_UPDATES: (
                LedgerEntryData,
                self._on_ledger_update,
            ),
            DataChannel.WEB_DATA2: (WebData2Data, self._on_web_data2),
        }

    async def publish(self, event: Any) -> None:
        await self.queue.put(event)

    def _user_or_default(self, user: str) -> str:
        return (user or "").strip().lower() or self.account_address

    async def handle(self, raw: str | bytes) -> None:
        if isinstance(raw, bytes):
            try:
                raw = raw.decode("utf-8", errors="strict")
            except UnicodeDecodeError as exc:
                raise WebsocketMessageError(
                    f"hyperliquid: websocket frame is not valid UTF-8: {exc}"
                ) from exc
        text = raw
        text = text.strip()
        if not text or text == CONNECTION_ESTABLISHED_MESSAGE:
            return

        try:
            envelope = WsEnvelope.model_validate_json(text)
        except ValidationError as exc:
            raise WebsocketMessageError(
                f"hyperliquid: decode websocket message: {exc}"
            ) from exc

        channel = envelope.channel
        if channel == "subscriptionResponse":
            if envelope.data:
                await self.reconciler.handle_ack(envelope.data)
            return
        if channel == "pong":
            return
        if channel == "error":
            data = envelope.data
            if isinstance(data, str):
                message = data.strip()
            else:
                message = json.dumps(data) if data else ""
            raise WebsocketMessageError(
                f"hyperliquid websocket error: {message or 'unknown websocket error'}",
                channel=channel,
            )

        try:
            route = self._routes[DataChannel(channel)]
        except ValueError:
            self.logger.warning(f"Unhandled websocket channel {channel!r}")
            await self.publish(UnhandledMessage(channel=channel, raw=text))
            return

        model, handler = route
        try:
            payload = model.model_validate(envelope.data)
        except ValidationError as exc:
            raise WebsocketMessageError(
                f"hyperliquid: decode {channel} payload: {exc}", channel=channel
            ) from exc
        await handler(payload)

    async def consume(self, frames: AsyncIterable[str | bytes]) -> None:
        """Dispatch every frame; per-frame failures are published as ErrorEvents."""
        async for frame in frames:
            try:
                await self.handle(frame)
            except ConnectionClosed:
                raise
            except HypercoreError as exc:
                self.logger.warning(f"Websocket frame failed: {exc}")
                await self.publish(ErrorEvent(error=exc))
            except Exception as exc:
                self.logger.exception(f"Websocket frame handler crashed: {exc}")
                await self.publish(ErrorEvent(error=exc))

    # Market data

    async def _on_all_mids(self, payload: AllMidsData) -> None:
        now = self._clock()
        for market, price in payload.mids.items():
            if price <= 0:
                continue
            try:
                asset_class, pair = parse_market(market)
            except WebsocketMessageError:
                continue
            await self.publish(
                TickerEvent(pair=pair, asset_class=asset_class, price=price, timestamp=now)
            )

    async def _on_l2_book(self, payload: L2BookData) -> None:
        if (event := orderbook_event(payload)) is not None:
            await self.publish(event)

    async def _on_bbo(self, payload: BboData) -> None:
        asset_class, pair = parse_market(payload.coin)
        sides = list(payload.bbo) + [None, None]
        bid, ask = sides[0], sides[1]
        bid_price, bid_size = (bid.px, bid.sz) if bid else (0.0, 0.0)
        ask_price, ask_size = (ask.px, ask.sz) if ask else (0.0, 0.0)
        if bid_price == 0 and ask_price == 0:
            return
        await self.publish(
            BestBidOfferEvent(
                pair=pair,
                asset_class=asset_class,
                bid_price=bid_price,
                bid_size=bid_size,
                ask_price=ask_price,
                ask_size=ask_size,
                timestamp=_from_ms(payload.time),
            )
        )

    async def _on_trades(self, payload: TradesData) -> None:
        for event in trade_events(payload.root):
            await self.publish(event)

    async def _on_candle(self, payload: CandleData) -> None:
        await self.publish(candle_event(payload))

    # Active asset feeds

    async def _on_active_asset_data(self, payload: ActiveAssetData) -> None:
        if not payload.coin:
            raise WebsocketMessageError(
                "hyperliquid: active asset data missing coin", channel="activeAssetData"
            )
        if not payload.user:
            raise WebsocketMessageError(
                "hyperliquid: active asset data missing user", channel="activeAssetData"
            )
        asset_class, pair = parse_market(payload.coin)
        max_trade = _sized_pair(payload.max_trade_szs, "max trade sizes")
        available = _sized_pair(payload.available_to_trade, "available to trade")
        leverage = ActiveLeverage()
        if payload.leverage is not None:
            leverage = ActiveLeverage(
                type=payload.leverage.type.lower(),
                value=payload.leverage.value,
                raw_usd=payload.leverage.raw_usd,
            )
        event = ActiveAssetDataEvent(
            address=payload.user.lower(),
            pair=pair,
            asset_class=asset_class,
            leverage=leverage,
            max_trade_sizes=max_trade,
            available_to_trade=available,
            mark_price=payload.mark_px,
            timestamp=self._clock(),
        )
        await self.active_assets.store(event)
        await self.publish(event)

    async def _on_active_asset_ctx(self, payload: ActiveAssetCtxData) -> None:
        asset_class, pair = _ctx_market(payload, "activeAssetCtx")
        if asset_class != PERP:
            raise WebsocketMessageError(
                f"hyperliquid: unexpected asset for active asset context {asset_class}",
                channel="activeAssetCtx",
            )
        await self.publish(
            ActiveAssetContextEvent(
                pair=pair,
                asset_class=asset_class,
                context=dict(payload.ctx),
                timestamp=self._clock(),
            )
        )

    async def _on_active_spot_asset_ctx(self, payload: ActiveAssetCtxData) -> None:
        asset_class, pair = _ctx_market(payload, "activeSpotAssetCtx")
        if asset_class != SPOT:
            raise WebsocketMessageError(
                f"hyperliquid: unexpected asset for active spot asset context {asset_class}",
                channel="activeSpotAssetCtx",
            )
        await self.publish(
            ActiveSpotAssetContextEvent(
                pair=pair, context=dict(payload.ctx), timestamp=self._clock()
            )
        )

    # User feeds

    async def _on_user_events(self, payload: UserEventsData) -> None:
        if not payload.fills:
            return
        user = self.account_address
        fills = [fill_event(user, fill) for fill in payload.fills]
        await self.publish(UserEventsUpdate(user=user, fills=fills))

    async def _on_user_fills(self, payload: UserFillsData) -> None:
        user = self._user_or_default(payload.user)
        fills = [fill_event(user, fill) for fill in payload.fills]
        await self.publish(
            UserFillsUpdate(user=user, is_snapshot=payload.is_snapshot, fills=fills)
        )

    async def _on_order_updates(self, payload: OrderUpdatesData) -> None:
        user = self._user_or_default(payload.user)
        for entry in payload.statuses:
            await self.publish(order_update_event(user, entry))

    async def _on_user_funding(self, payload: LedgerEntryData) -> None:
        await self.publish(
            UserFundingEvent(
                user=self._user_or_default(payload.user),
                entry=payload.model_dump(exclude={"user"}),
                timestamp=_from_ms(payload.time),
            )
        )

    async def _on_ledger_update(self, payload: LedgerEntryData) -> None:
        await self.publish(
            UserLedgerUpdateEvent(
                user=self._user_or_default(payload.user),
                entry=payload.model_dump(exclude={"user"}),
                timestamp=_from_ms(payload.time),
            )
        )

    async def _on_web_data2(self, payload: WebData2Data) -> None:
        await self.publish(
            WebData2Event(user=self._user_or_default(payload.user), data=dict(payload.data))
        )


def _sized_pair(values: list[float], what: str) -> tuple[float, float]:
    if len(values) != 2:
        raise WebsocketMessageError(
            f"hyperliquid: parse active asset {what}: expected sized tuple length 2 "
            f"got {len(values)}",
            channel="activeAssetData",
        )
    return values[0], values[1]


def _ctx_market(payload: ActiveAssetCtxData, channel: str) -> tuple[str, str]:
    if not payload.coin:
        raise WebsocketMessageError(
            f"hyperliquid: {channel} payload missing coin", channel=channel
        )
    return parse_market(payload.coin)


# Payload converters, shared with the REST snapshots in the wrapper adapter.


def orderbook_event(payload: L2BookData) -> OrderbookEvent | None:
    """Build a book event, dropping zero levels; ``None`` when both sides are empty."""
    if len(payload.levels) < 2:
        raise WebsocketMessageError(
            "hyperliquid: orderbook payload missing sides", channel="l2Book"
        )
    asset_class, pair = parse_market(payload.coin)
    bids = [(lvl.px, lvl.sz) for lvl in payload.levels[0] if lvl.px and lvl.sz]
    asks = [(lvl.px, lvl.sz) for lvl in payload.levels[1] if lvl.px and lvl.sz]
    if not bids and not asks:
        return None
    return OrderbookEvent(
        pair=pair,
        asset_class=asset_class,
        bids=bids,
        asks=asks,
        timestamp=_from_ms(payload.time),
    )


def trade_events(trades: Iterable[WsTrade]) -> list[TradeEvent]:
    events = []
    for trade in trades:
        try:
            asset_class, pair = parse_market(trade.coin)
        except WebsocketMessageError:
            continue
        events.append(
            TradeEvent(
                pair=pair,
                asset_class=asset_class,
                price=trade.px,
                amount=trade.sz,
                side=OrderSide.from_venue(trade.side),
                timestamp=_from_ms(trade.time),
                trade_id=trade.tid,
            )
        )
    return events


def candle_event(payload: CandleData) -> CandleEvent:
    asset_class, pair = parse_market(payload.symbol)
    return CandleEvent(
        pair=pair,
        asset_class=asset_class,
        interval=payload.interval,
        open_time=_from_ms(payload.open_time),
        close_time=_from_ms(payload.close_time),
        open=payload.open,
        high=payload.high,
        low=payload.low,
        close=payload.close,
        volume=payload.volume,
        trade_count=payload.trade_count,
    )


def fill_event(user: str, fill: UserFill) -> UserFillEvent:
    asset_class, pair = parse_market(fill.coin)
    return UserFillEvent(
        user=user,
        pair=pair,
        asset_class=asset_class,
        price=fill.px,
        amount=fill.sz,
        side=OrderSide.from_venue(fill.side),
        fee=fill.fee,
        fee_asset=fill.fee_token.upper() if fill.fee_token else None,
        hash=fill.hash,
        order_id=fill.oid,
        trade_id=fill.tid,
        crossed=fill.crossed,
        direction=fill.dir.lower(),
        start_position=fill.start_position,
        closed_pnl=fill.closed_pnl,
        timestamp=_from_ms(fill.time),
        raw=fill,
    )


def order_update_event(user: str, entry: OrderStatusEntry) -> OrderUpdateEvent:
    order = entry.order
    if order is None:
        raise WebsocketMessageError(
            "hyperliquid: order status missing order data", channel="orderUpdates"
        )
    asset_class, pair = parse_market(order.coin)
    original = order.orig_sz or order.sz
    executed = max(original - order.sz, 0.0)
    return OrderUpdateEvent(
        user=user,
        order_id=str(order.oid),
        client_order_id=order.cloid or "",
        pair=pair,
        asset_class=asset_class,
        side=OrderSide.from_venue(order.side),
        status=OrderStatus.from_venue(entry.status),
        order_type=order.order_type,
        time_in_force=order.tif or "",
        price=order.limit_px,
        amount=original,
        executed_amount=executed,
        remaining_amount=max(order.sz, 0.0),
        reduce_only=order.reduce_only,
        trigger_price=order.trigger_px,
        created_at=_from_ms(order.timestamp),
        last_updated=_from_ms(entry.status_timestamp),
        raw=entry,
    )
