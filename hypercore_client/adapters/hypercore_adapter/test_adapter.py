from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from hypercore_client.adapters.hypercore_adapter.adapter import (
    HypercoreAdapter,
    map_time_in_force,
)
from hypercore_client.adapters.hypercore_adapter.envelope import parse_envelope
from hypercore_client.adapters.hypercore_adapter.info import MetaAndAssetCtxs
from hypercore_client.adapters.hypercore_adapter.types import (
    OrderCancellation,
    OrderModification,
    OrderSide,
    OrderStatus,
    OrderSubmission,
    TimeInForce,
)
from hypercore_client.adapters.hypercore_adapter.ws_dispatcher import (
    ActiveAssetDataCache,
    ActiveAssetDataEvent,
    ActiveLeverage,
)
from hypercore_client.core.config import SessionConfig
from hypercore_client.core.constants.base import TESTNET_API_URL
from hypercore_client.core.constants.hyperliquid import (
    MAINNET_BRIDGE_ADDRESS,
    TESTNET_BRIDGE_ADDRESS,
)
from hypercore_client.core.errors import (
    ActionSubmissionError,
    RequestValidationError,
)
from hypercore_client.tests.test_utils import assert_status_tuple

USER = "0x00000000000000000000000000000000000000aa"

META = {
    "universe": [
        {"name": "BTC", "szDecimals": 5},
        {"name": "OLD", "szDecimals": 2, "isDelisted": True},
        {"name": "ETH", "szDecimals": 4},
    ]
}
SPOT_META = {
    "tokens": [
        {"name": "USDC", "index": 0, "szDecimals": 8},
        {"name": "PURR", "index": 1, "szDecimals": 0},
        {"name": "HYPE", "index": 2, "szDecimals": 2},
    ],
    "universe": [
        {"name": "PURR/USDC", "tokens": [1, 0], "index": 0, "isCanonical": True},
        {"name": "@1", "tokens": [2, 0], "index": 1, "isCanonical": False},
        {"name": "@2", "tokens": [2, 9], "index": 2, "isCanonical": True},
        {"name": "HYPE/USDC", "tokens": [2, 0], "index": 107, "isCanonical": True},
    ],
}
OPEN_ORDER = {
    "coin": "BTC",
    "side": "B",
    "limitPx": "50000",
    "sz": "0.1",
    "origSz": "0.1",
    "oid": 11,
    "timestamp": 1700000000000,
    "orderType": "Limit",
    "tif": "Gtc",
    "reduceOnly": False,
}


def _envelope(*statuses):
    return parse_envelope(
        {
            "status": "ok",
            "response": {"type": "order", "data": {"statuses": list(statuses)}},
        }
    )


@pytest.fixture
def info():
    return MagicMock(
        meta=AsyncMock(return_value=META),
        spot_meta=AsyncMock(return_value=SPOT_META),
        frontend_open_orders=AsyncMock(return_value=[OPEN_ORDER]),
        historical_orders=AsyncMock(return_value=[]),
        user_state=AsyncMock(return_value={}),
        spot_user_state=AsyncMock(return_value={}),
        all_mids=AsyncMock(return_value={}),
    )


@pytest.fixture
def exchange():
    exchange = MagicMock()
    exchange.executor = SimpleNamespace(account_address=USER, ensure_wallet=AsyncMock())
    exchange.place_order = AsyncMock(return_value=_envelope({"resting": {"oid": 5}}))
    exchange.amend_orders = AsyncMock(return_value=_envelope("success"))
    exchange.cancel_orders_by_id = AsyncMock(return_value=_envelope("success"))
    exchange.cancel_orders_by_cloid = AsyncMock(return_value=_envelope("success"))
    exchange.update_leverage = AsyncMock(return_value=_envelope("success"))
    exchange.withdraw_from_bridge = AsyncMock(return_value=parse_envelope({"status": "ok"}))
    return exchange


@pytest.fixture
def adapter(info, exchange):
    websocket = SimpleNamespace(active_assets=ActiveAssetDataCache(), close=AsyncMock())
    return HypercoreAdapter(
        session=SessionConfig(api_url=TESTNET_API_URL),
        info=info,
        exchange=exchange,
        websocket=websocket,
    )


def _submission(**overrides):
    fields = {"coin": "btc", "side": OrderSide.BUY, "amount": 0.1, "price": 50000.0}
    fields.update(overrides)
    return OrderSubmission(**fields)


class TestTimeInForce:
    @pytest.mark.parametrize(
        "tif,post_only,expected",
        [
            (TimeInForce.GTC, False, "Gtc"),
            (TimeInForce.IOC, False, "Ioc"),
            ("fok", False, "Fok"),
            (None, False, "Gtc"),
            ("weird", False, "Gtc"),
            (TimeInForce.GTC, True, "Alo"),
        ],
    )
    def test_mapping(self, tif, post_only, expected):
        assert map_time_in_force(tif, post_only) == expected

    @pytest.mark.parametrize("tif", [TimeInForce.IOC, TimeInForce.FOK])
    def test_post_only_conflicts(self, tif):
        with pytest.raises(RequestValidationError):
            map_time_in_force(tif, post_only=True)


class TestOrders:
    @pytest.mark.asyncio
    async def test_submit_order(self, adapter, exchange):
        ok, result = await adapter.submit_order(_submission(client_order_id="0xc1"))

        assert ok is True
        assert result.order_id == "5"
        assert result.status is OrderStatus.ACTIVE
        request = exchange.place_order.await_args.args[0]
        assert request.coin == "BTC"
        assert request.is_buy is True
        assert request.order_type == {"limit": {"tif": "Gtc"}}
        assert request.cloid == "0xc1"

    @pytest.mark.asyncio
    async def test_submit_order_filled(self, adapter, exchange):
        exchange.place_order.return_value = _envelope("success")
        ok, result = await adapter.submit_order(_submission(coin="BTC/USDC"))
        assert ok is True
        assert result.status is OrderStatus.FILLED

    @pytest.mark.asyncio
    async def test_submit_order_rejection_is_a_status_tuple(self, adapter, exchange):
        exchange.place_order.return_value = _envelope({"error": "Insufficient margin"})
        ok, msg = assert_status_tuple(await adapter.submit_order(_submission()))
        assert ok is False
        assert "Insufficient margin" in msg

    @pytest.mark.asyncio
    async def test_rejection_carries_partial_result(self, adapter, exchange):
        exchange.place_order.return_value = _envelope({"error": "bad"})
        with pytest.raises(ActionSubmissionError) as exc_info:
            await HypercoreAdapter.submit_order.__wrapped__(adapter, _submission())
        assert exc_info.value.result.coin == "BTC"
        assert exc_info.value.result.status is OrderStatus.ACTIVE

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides,message",
        [
            ({"asset_class": "spot"}, "unsupported asset class"),
            ({"order_kind": "market"}, "only limit orders"),
            ({"price": 0}, "price must be positive"),
            ({"amount": -1}, "amount must be positive"),
            ({"coin": "ETH/USDT"}, "not a USDC perpetual"),
            ({"post_only": True, "time_in_force": TimeInForce.IOC}, "post-only"),
        ],
    )
    async def test_submit_order_validation(self, adapter, exchange, overrides, message):
        ok, msg = await adapter.submit_order(_submission(**overrides))
        assert ok is False
        assert message in msg
        exchange.place_order.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_modify_by_order_id(self, adapter, exchange):
        ok, result = await adapter.modify_order(
            OrderModification(
                coin="ETH", side=OrderSide.SELL, amount=1, price=2000, order_id="42"
            )
        )
        assert ok is True
        assert result.order_id == "42"
        assert result.status is OrderStatus.ACTIVE
        (request,) = exchange.amend_orders.await_args.args[0]
        assert request.oid == 42
        assert request.order.is_buy is False

    @pytest.mark.asyncio
    async def test_modify_requires_identifier(self, adapter):
        ok, msg = await adapter.modify_order(
            OrderModification(coin="ETH", side=OrderSide.SELL, amount=1, price=2000)
        )
        assert ok is False
        assert "order id or client order id required" in msg

    @pytest.mark.asyncio
    async def test_modify_rejects_non_numeric_order_id(self, adapter):
        ok, msg = await adapter.modify_order(
            OrderModification(
                coin="ETH", side=OrderSide.SELL, amount=1, price=2000, order_id="abc"
            )
        )
        assert ok is False
        assert "invalid order id" in msg


class TestCancels:
    @pytest.mark.asyncio
    async def test_cancel_by_cloid(self, adapter, exchange):
        ok, _ = await adapter.cancel_order("BTC", client_order_id="0xc1")
        assert ok is True
        (request,) = exchange.cancel_orders_by_cloid.await_args.args[0]
        assert request.cloid == "0xc1"

    @pytest.mark.asyncio
    async def test_batch_reports_each_outcome(self, adapter, exchange):
        exchange.cancel_orders_by_id.side_effect = [
            _envelope("success"),
            _envelope({"error": "Order was never placed"}),
        ]
        ok, outcome = await adapter.cancel_batch_orders(
            [
                OrderCancellation(coin="BTC", order_id="1"),
                OrderCancellation(coin="BTC", order_id="2"),
                OrderCancellation(coin="BTC"),
                OrderCancellation(coin="BTC", client_order_id="0xc9"),
            ]
        )

        assert ok is True
        assert outcome["1"] == "success"
        assert "never placed" in outcome["2"]
        assert "required" in outcome["index_2"]
        assert outcome["0xc9"] == "success"

    @pytest.mark.asyncio
    async def test_empty_batch(self, adapter):
        ok, msg = await adapter.cancel_batch_orders([])
        assert ok is False
        assert "no cancel requests" in msg

    @pytest.mark.asyncio
    async def test_cancel_all_filters_by_coin(self, adapter, info, exchange):
        info.frontend_open_orders.return_value = [OPEN_ORDER, {**OPEN_ORDER, "coin": "ETH", "oid": 12}]
        ok, outcome = await adapter.cancel_all_orders("ETH")

        assert ok is True
        assert outcome == {"12": "success"}
        info.frontend_open_orders.assert_awaited_with(USER)


class TestOrderQueries:
    @pytest.mark.asyncio
    async def test_active_orders(self, adapter):
        ok, orders = await adapter.get_active_orders()
        assert ok is True
        (order,) = orders
        assert order.order_id == "11"
        assert order.status is OrderStatus.ACTIVE
        assert order.pair == "BTC/USDC"

    @pytest.mark.asyncio
    async def test_order_info_falls_back_to_history(self, adapter, info):
        info.historical_orders.return_value = [
            {"status": "filled", "statusTimestamp": 1, "order": {**OPEN_ORDER, "oid": 77}}
        ]
        ok, order = await adapter.get_order_info("77")
        assert ok is True
        assert order.status is OrderStatus.FILLED

    @pytest.mark.asyncio
    async def test_order_info_not_found(self, adapter):
        assert await adapter.get_order_info("9") == (False, "hyperliquid: order 9 not found")

    @pytest.mark.asyncio
    async def test_malformed_open_order(self, adapter, info):
        info.frontend_open_orders.return_value = [{"coin": "BTC"}]
        ok, msg = await adapter.get_active_orders()
        assert ok is False
        assert "decode open order" in msg


class TestAccount:
    @pytest.mark.asyncio
    async def test_balances(self, adapter, info):
        info.user_state.return_value = {
            "marginSummary": {"accountValue": "1000", "totalMarginUsed": "250"},
            "withdrawable": "750",
            "assetPositions": [
                {"position": {"coin": "BTC", "szi": "0.5"}},
                {"position": {"coin": "ETH", "szi": "0"}},
            ],
        }
        info.spot_user_state.return_value = {
            "balances": [
                {"coin": "usdc", "total": "100", "hold": "40"},
                {"coin": "PURR", "total": "0", "hold": "0"},
            ]
        }

        ok, balances = await adapter.get_balances()

        assert ok is True
        (perp,) = balances.perp
        assert (perp.total, perp.free, perp.hold) == (1000.0, 750.0, 250.0)
        assert [p["coin"] for p in balances.positions] == ["BTC"]
        (spot,) = balances.spot
        assert (spot.asset, spot.free, spot.hold) == ("USDC", 60.0, 40.0)

    @pytest.mark.asyncio
    async def test_balances_without_margin_used(self, adapter, info):
        info.user_state.return_value = {
            "marginSummary": {"accountValue": "100"},
            "withdrawable": "80",
        }
        _, balances = await adapter.get_balances("0x00000000000000000000000000000000000000BB")
        assert balances.perp[0].hold == 20.0
        info.user_state.assert_awaited_with("0x00000000000000000000000000000000000000bb")

    @pytest.mark.asyncio
    async def test_leverage(self, adapter, info, exchange):
        info.user_state.return_value = {
            "assetPositions": [{"position": {"coin": "ETH", "leverage": {"value": 7}}}]
        }
        assert await adapter.get_leverage("eth") == (True, 7.0)
        assert await adapter.get_leverage("BTC") == (True, 0.0)

        ok, _ = await adapter.set_leverage("ETH", 4.6, is_cross=False)
        assert ok is True
        exchange.update_leverage.assert_awaited_with("ETH", 5, False)

    @pytest.mark.asyncio
    async def test_user_falls_back_to_wallet(self, adapter, info, exchange):
        exchange.executor.account_address = None
        exchange.executor.ensure_wallet.return_value = SimpleNamespace(address=USER)
        await adapter.get_balances()
        exchange.executor.ensure_wallet.assert_awaited_once()
        info.user_state.assert_awaited_with(USER)


class TestMarketData:
    @pytest.mark.asyncio
    async def test_tickers_skip_non_positive(self, adapter, info):
        info.all_mids.return_value = {"BTC": "50000", "DEAD": "0", "BAD": "x"}
        assert await adapter.get_tickers() == (True, {"BTC": 50000.0})

    @pytest.mark.asyncio
    async def test_empty_orderbook(self, adapter, info):
        info.l2_snapshot = AsyncMock(return_value={"coin": "BTC", "levels": [[], []], "time": 0})
        ok, book = await adapter.get_orderbook("BTC")
        assert ok is True
        assert book.bids == [] and book.asks == []

    @pytest.mark.asyncio
    async def test_candles_reject_inverted_range(self, adapter):
        ok, msg = await adapter.get_candles("BTC", "1m", 10, 5)
        assert ok is False
        assert "end precedes start" in msg

    @pytest.mark.asyncio
    async def test_tradable_pairs(self, adapter, info):
        await adapter._cache.clear()
        ok, pairs = await adapter.fetch_tradable_pairs()

        assert ok is True
        assert [(p.symbol, p.index) for p in pairs] == [
            ("BTC", 0),
            ("ETH", 2),
            ("PURR/USDC", 10000),
            ("HYPE/USDC", 10107),
        ]
        assert pairs[0].sz_decimals == 5

        await adapter.fetch_tradable_pairs("perp")
        info.meta.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_tradable_pairs_unknown_class(self, adapter):
        ok, msg = await adapter.fetch_tradable_pairs("options")
        assert ok is False
        assert "unsupported asset class" in msg

    @pytest.mark.asyncio
    async def test_funding_and_open_interest_skip_delisted(self, adapter, info):
        info.meta_and_asset_ctxs = AsyncMock(
            return_value=MetaAndAssetCtxs(
                meta=META,
                asset_ctxs=[
                    {"funding": "0.0001", "premium": "0.0002", "markPx": "50000", "openInterest": "10"},
                    {"funding": "0.5", "openInterest": "1"},
                    {"funding": "-0.0003", "markPx": "2500", "openInterest": "200"},
                ],
            )
        )

        ok, rates = await adapter.get_latest_funding_rates()
        assert ok is True
        assert [r.pair for r in rates] == ["BTC/USDC", "ETH/USDC"]
        assert rates[1].rate == -0.0003
        assert rates[1].premium is None

        ok, interest = await adapter.get_open_interest(["eth"])
        assert ok is True
        assert [(o.pair, o.open_interest) for o in interest] == [("ETH/USDC", 200.0)]


class TestBridge:
    @pytest.mark.asyncio
    async def test_deposit_address_follows_network(self, adapter, info, exchange):
        assert await adapter.get_deposit_address() == (True, TESTNET_BRIDGE_ADDRESS)
        mainnet = HypercoreAdapter(
            session=SessionConfig(), info=info, exchange=exchange, websocket=adapter.websocket
        )
        assert await mainnet.get_deposit_address("usdc", "Arbitrum") == (
            True,
            MAINNET_BRIDGE_ADDRESS,
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("asset,chain", [("ETH", ""), ("USDC", "ethereum")])
    async def test_unsupported_route(self, adapter, asset, chain):
        ok, _ = await adapter.get_deposit_address(asset, chain)
        assert ok is False

    @pytest.mark.asyncio
    async def test_withdraw(self, adapter, exchange):
        ok, _ = await adapter.withdraw("0x1111111111111111111111111111111111111111", 5)
        assert ok is True
        exchange.withdraw_from_bridge.assert_awaited_once_with(
            "0x1111111111111111111111111111111111111111", 5
        )


class TestActiveAssetData:
    @pytest.mark.asyncio
    async def test_latest_from_stream_cache(self, adapter):
        event = ActiveAssetDataEvent(
            address=USER,
            pair="BTC/USDC",
            asset_class="perp",
            leverage=ActiveLeverage(type="cross", value=3),
            max_trade_sizes=(1.0, 1.0),
            available_to_trade=(2.0, 2.0),
            mark_price=50000.0,
            timestamp=None,
        )
        await adapter.websocket.active_assets.store(event)

        assert await adapter.get_latest_active_asset_data("BTC") == (True, event)
        ok, msg = await adapter.get_latest_active_asset_data("ETH")
        assert ok is False
        assert "no active asset data" in msg
