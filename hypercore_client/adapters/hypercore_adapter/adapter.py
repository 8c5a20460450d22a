from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any, TypeVar

from aiocache import Cache
from pydantic import BaseModel, ValidationError

from hypercore_client.adapters.hypercore_adapter.assets import AssetResolver
from hypercore_client.adapters.hypercore_adapter.envelope import (
    ActionResult,
    extract_order_status,
)
from hypercore_client.adapters.hypercore_adapter.exchange import Exchange
from hypercore_client.adapters.hypercore_adapter.executor import ActionExecutor
from hypercore_client.adapters.hypercore_adapter.info import InfoClient
from hypercore_client.adapters.hypercore_adapter.types import (
    AccountBalances,
    Balance,
    CancelByCloidRequest,
    CancelRequest,
    FundingRate,
    ModifyRequest,
    OpenInterest,
    OrderCancellation,
    OrderModification,
    OrderRequest,
    OrderSide,
    OrderStatus,
    OrderSubmission,
    SubmitResult,
    TimeInForce,
    TradablePair,
)
from hypercore_client.adapters.hypercore_adapter.websocket import WebsocketClient
from hypercore_client.adapters.hypercore_adapter.wire import normalize_address
from hypercore_client.adapters.hypercore_adapter.ws_dispatcher import (
    PERP,
    SPOT,
    ActiveAssetDataEvent,
    CandleEvent,
    OrderbookEvent,
    OrderUpdateEvent,
    TradeEvent,
    UserFillEvent,
    candle_event,
    fill_event,
    order_update_event,
    orderbook_event,
    parse_market,
    trade_events,
)
from hypercore_client.adapters.hypercore_adapter.ws_models import (
    CandleData,
    L2BookData,
    OrderStatusEntry,
    OrderStatusOrder,
    TradesData,
    UserFill,
)
from hypercore_client.core.adapters import BaseAdapter, status_tuple
from hypercore_client.core.clients.HypercoreHttpClient import HypercoreHttpClient
from hypercore_client.core.config import SessionConfig
from hypercore_client.core.constants.hyperliquid import (
    MAINNET_BRIDGE_ADDRESS,
    QUOTE_ASSET,
    SPOT_ASSET_OFFSET,
    TESTNET_BRIDGE_ADDRESS,
)
from hypercore_client.core.credentials import CredentialProvider
from hypercore_client.core.errors import (
    HypercoreError,
    OrderNotFoundError,
    RequestValidationError,
    ResponseDecodeError,
    ResponseMissingError,
    ResponseStatusesEmptyError,
)

META_CACHE_KEY = "hypercore_meta"
SPOT_META_CACHE_KEY = "hypercore_spot_meta"
META_CACHE_TTL = 60

_BRIDGE_CHAINS = frozenset({"", "arbitrum", "arbitrum-one", "arbitrum one"})


def map_time_in_force(tif: TimeInForce | str | None, post_only: bool = False) -> str:
    """Translate a generic time-in-force into the venue's ``tif`` string.

    Unknown values fall back to ``Gtc``.
    """
    value = str(tif or "").strip().upper()
    if post_only:
        if value in (TimeInForce.IOC, TimeInForce.FOK):
            raise RequestValidationError(
                "hyperliquid: post-only cannot be combined with IOC or FOK"
            )
        return "Alo"
    match value:
        case TimeInForce.IOC:
            return "Ioc"
        case TimeInForce.FOK:
            return "Fok"
        case _:
            return "Gtc"


def _perp_coin(value: str) -> str:
    coin = (value or "").strip().upper()
    if not coin:
        raise RequestValidationError("hyperliquid: coin required")
    if "/" in coin:
        base, _, quote = coin.partition("/")
        if quote != QUOTE_ASSET or not base:
            raise RequestValidationError(
                f"hyperliquid: {value} is not a {QUOTE_ASSET} perpetual market"
            )
        coin = base
    return coin


def _positive(value: float, what: str) -> float:
    if value is None or value <= 0:
        raise RequestValidationError(f"hyperliquid: {what} must be positive")
    return float(value)


def _float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


M = TypeVar("M", bound=BaseModel)


def _decode(model: type[M], data: Any, what: str) -> M:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise ResponseDecodeError(f"hyperliquid: decode {what}: {exc}") from exc


def _check_bridge_route(asset: str, chain: str) -> None:
    if (asset or "").strip().upper() != QUOTE_ASSET:
        raise RequestValidationError(
            f"hyperliquid: only {QUOTE_ASSET} transfers are supported"
        )
    if (chain or "").strip().lower() not in _BRIDGE_CHAINS:
        raise RequestValidationError(f"hyperliquid: unsupported chain {chain}")


class HypercoreAdapter(BaseAdapter):
    """Generic exchange surface over one Hypercore session.

    Every public method returns ``(ok, value)``; on failure ``value`` is the
    error text. Reads default to the session's account address.
    """

    adapter_type = "HYPERCORE"

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        *,
        session: SessionConfig | None = None,
        credentials: CredentialProvider | None = None,
        info: InfoClient | None = None,
        exchange: Exchange | None = None,
        websocket: WebsocketClient | None = None,
    ) -> None:
        super().__init__("hypercore_adapter", config)
        self.session = session or SessionConfig.from_config(self.config)

        self._cache = Cache(Cache.MEMORY)
        self._http: HypercoreHttpClient | None = None
        if info is None or exchange is None:
            self._http = HypercoreHttpClient(
                self.session.api_url, timeout=self.session.http_timeout
            )

        self.info = info or InfoClient(self._http)
        if exchange is None:
            assets = AssetResolver(
                self.info.meta, max_age=self.session.asset_cache_max_age
            )
            executor = ActionExecutor(
                self.session, self._http, assets=assets, credentials=credentials
            )
            exchange = Exchange(executor)
        self.exchange = exchange
        self.websocket = websocket or WebsocketClient(self.session)

    async def close(self) -> None:
        await self.websocket.close()
        if self._http is not None:
            await self._http.close()

    async def _user(self, address: str | None = None) -> str:
        if user := normalize_address(address):
            return user
        executor = self.exchange.executor
        if executor.account_address:
            return executor.account_address
        wallet = await executor.ensure_wallet()
        return executor.account_address or wallet.address

    async def _meta(self) -> dict[str, Any]:
        cached = await self._cache.get(META_CACHE_KEY)
        if cached:
            return cached
        data = await self.info.meta()
        await self._cache.set(META_CACHE_KEY, data, ttl=META_CACHE_TTL)
        return data

    async def _spot_meta(self) -> dict[str, Any]:
        cached = await self._cache.get(SPOT_META_CACHE_KEY)
        if cached:
            return cached
        data = await self.info.spot_meta()
        await self._cache.set(SPOT_META_CACHE_KEY, data, ttl=META_CACHE_TTL)
        return data

    # Orders

    @status_tuple
    async def submit_order(self, order: OrderSubmission) -> SubmitResult:
        if order.asset_class != PERP:
            raise RequestValidationError(
                f"hyperliquid: unsupported asset class {order.asset_class}"
            )
        if order.order_kind != "limit":
            raise RequestValidationError("hyperliquid: only limit orders are supported")
        price = _positive(order.price, "price")
        amount = _positive(order.amount, "amount")
        tif = map_time_in_force(order.time_in_force, order.post_only)
        coin = _perp_coin(order.coin)

        request = OrderRequest(
            coin=coin,
            is_buy=order.side is OrderSide.BUY,
            size=amount,
            limit_price=price,
            order_type={"limit": {"tif": tif}},
            reduce_only=order.reduce_only,
            cloid=order.client_order_id,
        )
        response = await self.exchange.place_order(request)

        result = SubmitResult(
            coin=coin,
            side=order.side,
            amount=amount,
            price=price,
            client_order_id=order.client_order_id,
            status=OrderStatus.ACTIVE,
            raw=response.raw,
        )
        try:
            order_id, status, error = extract_order_status(response.raw)
        except (ResponseMissingError, ResponseStatusesEmptyError) as exc:
            self.logger.debug(f"Order response carried no statuses: {exc}")
            return result
        if order_id:
            result.order_id = order_id
        if status is not OrderStatus.UNKNOWN:
            result.status = status
        if error is not None:
            error.result = result
            raise error
        return result

    @status_tuple
    async def modify_order(self, modification: OrderModification) -> SubmitResult:
        price = _positive(modification.price, "price")
        amount = _positive(modification.amount, "amount")
        tif = map_time_in_force(modification.time_in_force, modification.post_only)
        coin = _perp_coin(modification.coin)
        order = OrderRequest(
            coin=coin,
            is_buy=modification.side is OrderSide.BUY,
            size=amount,
            limit_price=price,
            order_type={"limit": {"tif": tif}},
            reduce_only=modification.reduce_only,
            cloid=modification.client_order_id,
        )

        if modification.order_id:
            try:
                oid = int(modification.order_id)
            except ValueError as exc:
                raise RequestValidationError(
                    f"hyperliquid: invalid order id {modification.order_id}"
                ) from exc
            request = ModifyRequest(order=order, oid=oid)
        elif modification.client_order_id:
            request = ModifyRequest(order=order, cloid=modification.client_order_id)
        else:
            raise RequestValidationError(
                "hyperliquid: order id or client order id required"
            )

        response = (await self.exchange.amend_orders([request])).raise_for_error()
        status = response.order_status
        return SubmitResult(
            coin=coin,
            side=modification.side,
            amount=amount,
            price=price,
            order_id=response.order_id or modification.order_id,
            client_order_id=modification.client_order_id,
            status=OrderStatus.ACTIVE if status is OrderStatus.UNKNOWN else status,
            raw=response.raw,
        )

    async def _cancel(
        self,
        coin: str,
        order_id: str | int | None = None,
        client_order_id: str | None = None,
    ) -> ActionResult:
        coin = _perp_coin(coin)
        if order_id not in (None, ""):
            try:
                oid = int(order_id)
            except ValueError as exc:
                raise RequestValidationError(
                    f"hyperliquid: invalid order id {order_id}"
                ) from exc
            result = await self.exchange.cancel_orders_by_id(
                [CancelRequest(coin=coin, oid=oid)]
            )
        elif client_order_id:
            result = await self.exchange.cancel_orders_by_cloid(
                [CancelByCloidRequest(coin=coin, cloid=client_order_id)]
            )
        else:
            raise RequestValidationError(
                "hyperliquid: order id or client order id required"
            )
        return result.raise_for_error()

    @status_tuple
    async def cancel_order(
        self,
        coin: str,
        order_id: str | int | None = None,
        client_order_id: str | None = None,
    ) -> ActionResult:
        return await self._cancel(coin, order_id, client_order_id)

    @status_tuple
    async def cancel_batch_orders(
        self, cancellations: Sequence[OrderCancellation]
    ) -> dict[str, str]:
        """Cancel each order independently; one failure does not stop the rest."""
        if not cancellations:
            raise RequestValidationError("hyperliquid: no cancel requests supplied")
        outcome: dict[str, str] = {}
        for i, req in enumerate(cancellations):
            key = req.order_id or req.client_order_id or f"index_{i}"
            try:
                await self._cancel(req.coin, req.order_id, req.client_order_id)
                outcome[key] = "success"
            except HypercoreError as exc:
                outcome[key] = str(exc)
        return outcome

    @status_tuple
    async def cancel_all_orders(self, coin: str | None = None) -> dict[str, str]:
        outcome: dict[str, str] = {}
        for order in await self._open_orders(coin):
            try:
                await self._cancel(order.coin, order.oid)
                outcome[str(order.oid)] = "success"
            except HypercoreError as exc:
                outcome[str(order.oid)] = str(exc)
        return outcome

    async def _open_orders(self, coin: str | None = None) -> list[OrderStatusOrder]:
        user = await self._user()
        raw = await self.info.frontend_open_orders(user)
        orders = [_decode(OrderStatusOrder, o, "open order") for o in raw or []]
        if coin:
            wanted = _perp_coin(coin)
            orders = [o for o in orders if o.coin.upper() == wanted]
        return orders

    @status_tuple
    async def get_active_orders(self, coin: str | None = None) -> list[OrderUpdateEvent]:
        user = await self._user()
        return [
            order_update_event(
                user,
                OrderStatusEntry(
                    status="open", status_timestamp=order.timestamp, order=order
                ),
            )
            for order in await self._open_orders(coin)
        ]

    async def _historical_orders(self, user: str) -> list[OrderStatusEntry]:
        raw = await self.info.historical_orders(user)
        return [_decode(OrderStatusEntry, e, "historical order") for e in raw or []]

    @status_tuple
    async def get_order_history(self) -> list[OrderUpdateEvent]:
        user = await self._user()
        return [
            order_update_event(user, entry)
            for entry in await self._historical_orders(user)
            if entry.order is not None
        ]

    @status_tuple
    async def get_order_info(self, order_id: str) -> OrderUpdateEvent:
        order_id = str(order_id or "").strip()
        if not order_id:
            raise RequestValidationError("hyperliquid: order id required")
        user = await self._user()

        for order in await self._open_orders():
            if str(order.oid) == order_id:
                entry = OrderStatusEntry(
                    status="open", status_timestamp=order.timestamp, order=order
                )
                return order_update_event(user, entry)

        for entry in await self._historical_orders(user):
            if entry.order is not None and str(entry.order.oid) == order_id:
                return order_update_event(user, entry)

        raise OrderNotFoundError(order_id)

    # Account

    @status_tuple
    async def get_balances(self, address: str | None = None) -> AccountBalances:
        user = await self._user(address)
        state = await self.info.user_state(user) or {}
        spot_state = await self.info.spot_user_state(user) or {}

        summary = state.get("marginSummary") or {}
        withdrawable = _float(state.get("withdrawable"))
        total = _float(summary.get("accountValue"), withdrawable)
        if "totalMarginUsed" in summary:
            hold = _float(summary.get("totalMarginUsed"))
        else:
            hold = max(total - withdrawable, 0.0)

        balances = AccountBalances(
            perp=[Balance(asset=QUOTE_ASSET, total=total, free=withdrawable, hold=hold)]
        )
        for entry in state.get("assetPositions") or []:
            position = entry.get("position") or {}
            if _float(position.get("szi")) != 0:
                balances.positions.append(position)

        for entry in spot_state.get("balances") or []:
            spot_total = _float(entry.get("total"))
            if spot_total == 0:
                continue
            spot_hold = _float(entry.get("hold"))
            balances.spot.append(
                Balance(
                    asset=str(entry.get("coin") or "").upper(),
                    total=spot_total,
                    free=max(spot_total - spot_hold, 0.0),
                    hold=spot_hold,
                )
            )
        return balances

    @status_tuple
    async def get_user_fills(self, address: str | None = None) -> list[UserFillEvent]:
        user = await self._user(address)
        raw = await self.info.user_fills(user)
        return [fill_event(user, _decode(UserFill, f, "user fill")) for f in raw or []]

    @status_tuple
    async def get_leverage(self, coin: str) -> float:
        coin = _perp_coin(coin)
        state = await self.info.user_state(await self._user()) or {}
        for entry in state.get("assetPositions") or []:
            position = entry.get("position") or {}
            if str(position.get("coin") or "").upper() != coin:
                continue
            value = _float((position.get("leverage") or {}).get("value"))
            return value if value > 0 else 0.0
        return 0.0

    @status_tuple
    async def set_leverage(
        self, coin: str, leverage: float, is_cross: bool = True
    ) -> ActionResult:
        _positive(leverage, "leverage")
        result = await self.exchange.update_leverage(
            _perp_coin(coin), round(leverage), is_cross
        )
        return result.raise_for_error()

    # Market data

    @status_tuple
    async def get_tickers(self) -> dict[str, float]:
        mids = await self.info.all_mids() or {}
        out: dict[str, float] = {}
        for coin, price in mids.items():
            if (px := _float(price)) > 0:
                out[coin] = px
        return out

    @status_tuple
    async def get_orderbook(self, coin: str) -> OrderbookEvent:
        snapshot = _decode(L2BookData, await self.info.l2_snapshot(coin), "orderbook")
        if (event := orderbook_event(snapshot)) is not None:
            return event
        asset_class, pair = parse_market(snapshot.coin)
        return OrderbookEvent(
            pair=pair,
            asset_class=asset_class,
            bids=[],
            asks=[],
            timestamp=datetime.fromtimestamp(snapshot.time / 1000, tz=UTC),
        )

    @status_tuple
    async def get_recent_trades(self, coin: str) -> list[TradeEvent]:
        trades = _decode(TradesData, await self.info.recent_trades(coin), "trades")
        return trade_events(trades.root)

    @status_tuple
    async def get_candles(
        self, coin: str, interval: str, start_ms: int, end_ms: int
    ) -> list[CandleEvent]:
        if end_ms < start_ms:
            raise RequestValidationError("hyperliquid: candle end precedes start")
        raw = await self.info.candle_snapshot(coin, interval, start_ms, end_ms)
        return [candle_event(_decode(CandleData, c, "candle")) for c in raw or []]

    @status_tuple
    async def get_meta(self) -> dict[str, Any]:
        return await self._meta()

    @status_tuple
    async def get_spot_meta(self) -> dict[str, Any]:
        return await self._spot_meta()

    @status_tuple
    async def fetch_tradable_pairs(
        self, asset_class: str | None = None
    ) -> list[TradablePair]:
        pairs: list[TradablePair] = []
        if asset_class in (None, PERP):
            pairs.extend(_perp_pairs(await self._meta()))
        if asset_class in (None, SPOT):
            pairs.extend(_spot_pairs(await self._spot_meta()))
        if asset_class not in (None, PERP, SPOT):
            raise RequestValidationError(
                f"hyperliquid: unsupported asset class {asset_class}"
            )
        return pairs

    async def _perp_contexts(self) -> list[tuple[str, dict[str, Any]]]:
        meta, ctxs = await self.info.meta_and_asset_ctxs()
        universe = meta.get("universe") or []
        return [
            (str(market.get("name") or "").upper(), ctx or {})
            for market, ctx in zip(universe, ctxs, strict=False)
            if not market.get("isDelisted") and market.get("name")
        ]

    @status_tuple
    async def get_latest_funding_rates(
        self, coins: Sequence[str] | None = None
    ) -> list[FundingRate]:
        wanted = {_perp_coin(c) for c in coins} if coins else None
        rates = []
        for coin, ctx in await self._perp_contexts():
            if wanted is not None and coin not in wanted:
                continue
            premium = ctx.get("premium")
            mark = ctx.get("markPx")
            rates.append(
                FundingRate(
                    pair=f"{coin}/{QUOTE_ASSET}",
                    rate=_float(ctx.get("funding")),
                    premium=_float(premium) if premium is not None else None,
                    mark_price=_float(mark) if mark is not None else None,
                )
            )
        return rates

    @status_tuple
    async def get_open_interest(
        self, coins: Sequence[str] | None = None
    ) -> list[OpenInterest]:
        wanted = {_perp_coin(c) for c in coins} if coins else None
        out = []
        for coin, ctx in await self._perp_contexts():
            if wanted is not None and coin not in wanted:
                continue
            mark = ctx.get("markPx")
            out.append(
                OpenInterest(
                    pair=f"{coin}/{QUOTE_ASSET}",
                    open_interest=_float(ctx.get("openInterest")),
                    mark_price=_float(mark) if mark is not None else None,
                )
            )
        return out

    # Funding and transfers

    @status_tuple
    async def get_deposit_address(
        self, asset: str = QUOTE_ASSET, chain: str = ""
    ) -> str:
        _check_bridge_route(asset, chain)
        if self.session.is_mainnet:
            return MAINNET_BRIDGE_ADDRESS
        return TESTNET_BRIDGE_ADDRESS

    @status_tuple
    async def withdraw(
        self,
        destination: str,
        amount: float,
        asset: str = QUOTE_ASSET,
        chain: str = "",
    ) -> ActionResult:
        _check_bridge_route(asset, chain)
        _positive(amount, "amount")
        result = await self.exchange.withdraw_from_bridge(destination, amount)
        return result.raise_for_error()

    # Streaming

    @status_tuple
    async def get_latest_active_asset_data(
        self, pair: str, asset_class: str = PERP
    ) -> ActiveAssetDataEvent:
        return await self.websocket.active_assets.latest(pair, asset_class)


def _perp_pairs(meta: dict[str, Any]) -> list[TradablePair]:
    universe = meta.get("universe") or []
    if not universe:
        raise ResponseDecodeError("hyperliquid: perp meta returned no markets")
    pairs = [
        TradablePair(
            base=str(market["name"]).upper(),
            quote=QUOTE_ASSET,
            asset_class=PERP,
            index=idx,
            sz_decimals=market.get("szDecimals"),
        )
        for idx, market in enumerate(universe)
        if market.get("name") and not market.get("isDelisted")
    ]
    if not pairs:
        raise ResponseDecodeError("hyperliquid: no active perp markets available")
    return pairs


def _spot_pairs(meta: dict[str, Any]) -> list[TradablePair]:
    tokens = meta.get("tokens") or []
    universe = meta.get("universe") or []
    if not tokens or not universe:
        raise ResponseDecodeError("hyperliquid: spot meta returned no markets")
    pairs = []
    for position, market in enumerate(universe):
        if not market.get("isCanonical"):
            continue
        indexes = market.get("tokens") or []
        if len(indexes) != 2 or not all(0 <= i < len(tokens) for i in indexes):
            continue
        base, quote = (tokens[i] for i in indexes)
        pairs.append(
            TradablePair(
                base=str(base.get("name") or "").upper(),
                quote=str(quote.get("name") or "").upper(),
                asset_class=SPOT,
                index=SPOT_ASSET_OFFSET + int(market.get("index", position)),
                sz_decimals=base.get("szDecimals"),
            )
        )
    if not pairs:
        raise ResponseDecodeError("hyperliquid: no canonical spot markets available")
    return pairs
