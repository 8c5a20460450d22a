import json
from datetime import UTC, datetime

import pytest

from hypercore_client.adapters.hypercore_adapter.types import OrderSide, OrderStatus
from hypercore_client.adapters.hypercore_adapter.ws_dispatcher import (
    ActiveAssetDataCache,
    ActiveAssetDataEvent,
    BestBidOfferEvent,
    CandleEvent,
    DataChannel,
    ErrorEvent,
    MessageDispatcher,
    OrderbookEvent,
    OrderUpdateEvent,
    TickerEvent,
    TradeEvent,
    UnhandledMessage,
    UserEventsUpdate,
    UserFillsUpdate,
    parse_market,
)
from hypercore_client.adapters.hypercore_adapter.ws_subscriptions import (
    SubscriptionReconciler,
)
from hypercore_client.core.errors import (
    ActiveAssetDataNotFoundError,
    SubscriptionAckError,
    WebsocketMessageError,
)

USER = "0x00000000000000000000000000000000000000aa"
NOW = datetime(2024, 1, 1, tzinfo=UTC)

FILL = {
    "coin": "BTC",
    "px": "50000",
    "sz": "0.1",
    "side": "B",
    "time": 1700000000000,
    "startPosition": "0",
    "dir": "Open Long",
    "closedPnl": "0",
    "hash": "0xhash",
    "oid": 12,
    "crossed": True,
    "fee": "0.5",
    "feeToken": "usdc",
    "tid": 99,
}


def frame(channel, data):
    return json.dumps({"channel": channel, "data": data})


@pytest.fixture
def dispatcher():
    return MessageDispatcher(
        SubscriptionReconciler(),
        account_address="0x00000000000000000000000000000000000000AA",
        clock=lambda: NOW,
    )


def drain(dispatcher):
    events = []
    while not dispatcher.queue.empty():
        events.append(dispatcher.queue.get_nowait())
    return events


class TestParseMarket:
    def test_perp_and_spot(self):
        assert parse_market("btc") == ("perp", "BTC/USDC")
        assert parse_market("purr/usdc") == ("spot", "PURR/USDC")

    @pytest.mark.parametrize("market", ["", "  ", "/USDC", "PURR/"])
    def test_invalid(self, market):
        with pytest.raises(WebsocketMessageError):
            parse_market(market)


class TestRouting:
    def test_every_data_channel_has_a_route(self, dispatcher):
        assert set(dispatcher._routes) == set(DataChannel)

    @pytest.mark.asyncio
    async def test_connection_banner_and_pong_are_ignored(self, dispatcher):
        await dispatcher.handle("Websocket connection established.")
        await dispatcher.handle(frame("pong", None))
        await dispatcher.handle(b"")
        assert drain(dispatcher) == []

    @pytest.mark.asyncio
    async def test_unknown_channel_is_published_raw(self, dispatcher):
        text = frame("somethingNew", {"a": 1})
        await dispatcher.handle(text)
        assert drain(dispatcher) == [UnhandledMessage(channel="somethingNew", raw=text)]

    @pytest.mark.asyncio
    async def test_error_channel_raises(self, dispatcher):
        with pytest.raises(WebsocketMessageError, match="bad request") as exc_info:
            await dispatcher.handle(frame("error", " bad request "))
        assert exc_info.value.channel == "error"

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self, dispatcher):
        with pytest.raises(WebsocketMessageError, match="decode websocket message"):
            await dispatcher.handle("{not json")

    @pytest.mark.asyncio
    async def test_subscription_ack_goes_to_reconciler(self, dispatcher):
        await dispatcher.handle(
            frame("subscriptionResponse", {"method": "subscribe", "subscription": {"type": "allMids"}})
        )
        assert len(dispatcher.reconciler.registry) == 1

    @pytest.mark.asyncio
    async def test_consume_keeps_order_and_survives_bad_frames(self, dispatcher):
        async def frames():
            yield frame("allMids", {"mids": {"BTC": "1"}})
            yield frame("l2Book", {"coin": "BTC", "levels": [[]], "time": 0})
            yield frame(
                "subscriptionResponse",
                {"method": "subscribe", "subscription": {"type": "allMids"}, "error": "nope"},
            )
            yield frame("allMids", {"mids": {"ETH": "2"}})

        await dispatcher.consume(frames())

        events = drain(dispatcher)
        assert [type(e) for e in events] == [TickerEvent, ErrorEvent, ErrorEvent, TickerEvent]
        assert events[0].pair == "BTC/USDC"
        assert isinstance(events[1].error, WebsocketMessageError)
        assert isinstance(events[2].error, SubscriptionAckError)
        assert events[3].pair == "ETH/USDC"

    @pytest.mark.asyncio
    async def test_invalid_utf8_frame_raises(self, dispatcher):
        with pytest.raises(WebsocketMessageError, match="not valid UTF-8"):
            await dispatcher.handle(b"\xff\xfe{bad")

    @pytest.mark.asyncio
    async def test_out_of_range_timestamp_raises(self, dispatcher):
        book = {
            "coin": "BTC",
            "time": 10**20,
            "levels": [[{"px": "100", "sz": "1", "n": 1}], [{"px": "101", "sz": "1", "n": 1}]],
        }
        with pytest.raises(WebsocketMessageError, match="out of range"):
            await dispatcher.handle(frame("l2Book", book))

    @pytest.mark.asyncio
    async def test_consume_continues_after_undecodable_frames(self, dispatcher):
        book = {
            "coin": "BTC",
            "time": 10**20,
            "levels": [[{"px": "100", "sz": "1", "n": 1}], [{"px": "101", "sz": "1", "n": 1}]],
        }

        async def frames():
            yield b"\xff\xfe{bad"
            yield frame("l2Book", book)
            yield frame("allMids", {"mids": {"BTC": "1"}}).encode()

        await dispatcher.consume(frames())

        events = drain(dispatcher)
        assert [type(e) for e in events] == [ErrorEvent, ErrorEvent, TickerEvent]
        assert all(isinstance(e.error, WebsocketMessageError) for e in events[:2])
        assert events[2].pair == "BTC/USDC"

    @pytest.mark.asyncio
    async def test_consume_publishes_unexpected_handler_failures(self, dispatcher):
        async def broken(payload):
            raise RuntimeError("handler bug")

        model, _ = dispatcher._routes[DataChannel.ALL_MIDS]
        dispatcher._routes[DataChannel.ALL_MIDS] = (model, broken)

        async def frames():
            yield frame("allMids", {"mids": {"BTC": "1"}})
            yield frame("bbo", {"coin": "BTC", "time": 0, "bbo": [None, {"px": "10", "sz": "2", "n": 1}]})

        await dispatcher.consume(frames())

        events = drain(dispatcher)
        assert isinstance(events[0], ErrorEvent)
        assert isinstance(events[0].error, RuntimeError)
        assert len(events) == 2


class TestMarketData:
    @pytest.mark.asyncio
    async def test_all_mids_skips_non_positive(self, dispatcher):
        await dispatcher.handle(frame("allMids", {"mids": {"BTC": "50000.5", "DEAD": "0"}}))
        assert drain(dispatcher) == [
            TickerEvent(pair="BTC/USDC", asset_class="perp", price=50000.5, timestamp=NOW)
        ]

    @pytest.mark.asyncio
    async def test_l2_book_drops_zero_levels(self, dispatcher):
        await dispatcher.handle(
            frame(
                "l2Book",
                {
                    "coin": "ETH",
                    "time": 1700000000000,
                    "levels": [
                        [{"px": "100", "sz": "1", "n": 1}, {"px": "99", "sz": "0", "n": 0}],
                        [{"px": "101", "sz": "2", "n": 3}],
                    ],
                },
            )
        )
        (event,) = drain(dispatcher)
        assert isinstance(event, OrderbookEvent)
        assert event.bids == [(100.0, 1.0)]
        assert event.asks == [(101.0, 2.0)]
        assert event.timestamp == datetime.fromtimestamp(1700000000, tz=UTC)

    @pytest.mark.asyncio
    async def test_empty_book_publishes_nothing(self, dispatcher):
        await dispatcher.handle(frame("l2Book", {"coin": "ETH", "levels": [[], []]}))
        assert drain(dispatcher) == []

    @pytest.mark.asyncio
    async def test_bbo_with_one_side(self, dispatcher):
        await dispatcher.handle(
            frame("bbo", {"coin": "BTC", "time": 0, "bbo": [None, {"px": "10", "sz": "2", "n": 1}]})
        )
        (event,) = drain(dispatcher)
        assert isinstance(event, BestBidOfferEvent)
        assert (event.bid_price, event.ask_price, event.ask_size) == (0.0, 10.0, 2.0)

    @pytest.mark.asyncio
    async def test_trades(self, dispatcher):
        await dispatcher.handle(
            frame(
                "trades",
                [
                    {"coin": "PURR/USDC", "side": "A", "px": "0.2", "sz": "10", "time": 0, "tid": 5},
                    {"coin": "", "side": "B", "px": "1", "sz": "1"},
                ],
            )
        )
        (event,) = drain(dispatcher)
        assert isinstance(event, TradeEvent)
        assert event.asset_class == "spot"
        assert event.side is OrderSide.SELL
        assert event.trade_id == 5

    @pytest.mark.asyncio
    async def test_candle(self, dispatcher):
        await dispatcher.handle(
            frame(
                "candle",
                {
                    "t": 0, "T": 60000, "s": "BTC", "i": "1m",
                    "o": "1", "c": "2", "h": "3", "l": "0.5", "v": "10", "n": 4,
                },
            )
        )
        (event,) = drain(dispatcher)
        assert isinstance(event, CandleEvent)
        assert (event.open, event.high, event.low, event.close) == (1.0, 3.0, 0.5, 2.0)
        assert event.trade_count == 4


class TestActiveAssets:
    PAYLOAD = {
        "user": "0x00000000000000000000000000000000000000AA",
        "coin": "BTC",
        "leverage": {"type": "Cross", "value": 5},
        "maxTradeSzs": ["1", "2"],
        "availableToTrade": ["3", "4"],
        "markPx": "50000",
    }

    @pytest.mark.asyncio
    async def test_event_is_cached_and_published(self, dispatcher):
        await dispatcher.handle(frame("activeAssetData", self.PAYLOAD))

        (event,) = drain(dispatcher)
        assert isinstance(event, ActiveAssetDataEvent)
        assert event.address == USER
        assert event.leverage.type == "cross"
        assert event.max_trade_sizes == (1.0, 2.0)
        assert await dispatcher.active_assets.latest("btc") is event

    @pytest.mark.asyncio
    async def test_size_tuples_must_have_two_entries(self, dispatcher):
        payload = {**self.PAYLOAD, "maxTradeSzs": ["1"]}
        with pytest.raises(WebsocketMessageError, match="sized tuple length 2"):
            await dispatcher.handle(frame("activeAssetData", payload))

    @pytest.mark.asyncio
    async def test_spot_context_on_perp_channel_rejected(self, dispatcher):
        with pytest.raises(WebsocketMessageError, match="unexpected asset"):
            await dispatcher.handle(frame("activeAssetCtx", {"coin": "PURR/USDC", "ctx": {}}))

    @pytest.mark.asyncio
    async def test_cache_miss_and_blank_pair(self):
        cache = ActiveAssetDataCache()
        with pytest.raises(ActiveAssetDataNotFoundError, match="perp:ETH/USDC"):
            await cache.latest("ETH")
        with pytest.raises(ValueError):
            await cache.latest(" ")


class TestUserFeeds:
    @pytest.mark.asyncio
    async def test_user_events_use_session_account(self, dispatcher):
        await dispatcher.handle(frame("user", {"fills": [FILL]}))
        (event,) = drain(dispatcher)
        assert isinstance(event, UserEventsUpdate)
        assert event.user == USER
        fill = event.fills[0]
        assert fill.side is OrderSide.BUY
        assert fill.fee_asset == "USDC"
        assert fill.direction == "open long"

    @pytest.mark.asyncio
    async def test_user_fills_snapshot(self, dispatcher):
        await dispatcher.handle(
            frame("userFills", {"user": "0xBB", "isSnapshot": True, "fills": [FILL]})
        )
        (event,) = drain(dispatcher)
        assert isinstance(event, UserFillsUpdate)
        assert event.user == "0xbb"
        assert event.is_snapshot is True

    @pytest.mark.asyncio
    async def test_order_updates_accept_bare_list(self, dispatcher):
        entry = {
            "status": "open",
            "statusTimestamp": 1700000000000,
            "order": {
                "coin": "ETH",
                "side": "A",
                "limitPx": "2000",
                "sz": "0.6",
                "origSz": "1",
                "oid": 7,
                "timestamp": 1700000000000,
                "cloid": "0xc1",
            },
        }
        await dispatcher.handle(frame("orderUpdates", [entry]))

        (event,) = drain(dispatcher)
        assert isinstance(event, OrderUpdateEvent)
        assert event.user == USER
        assert event.status is OrderStatus.ACTIVE
        assert event.amount == 1.0
        assert event.executed_amount == pytest.approx(0.4)
        assert event.remaining_amount == 0.6
        assert event.client_order_id == "0xc1"

    @pytest.mark.asyncio
    async def test_order_update_without_order_raises(self, dispatcher):
        with pytest.raises(WebsocketMessageError, match="missing order data"):
            await dispatcher.handle(frame("orderUpdates", {"statuses": [{"status": "open"}]}))
