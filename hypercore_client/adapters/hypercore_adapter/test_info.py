from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from hypercore_client.adapters.hypercore_adapter.info import InfoClient, MetaAndAssetCtxs
from hypercore_client.core.errors import RequestValidationError, ResponseDecodeError

USER = "0x00000000000000000000000000000000000000AA"


@pytest.fixture
def transport():
    return SimpleNamespace(info=AsyncMock(return_value={}))


@pytest.fixture
def info(transport):
    return InfoClient(transport)


def _body(transport):
    return transport.info.await_args.args[0]


class TestUserQueries:
    @pytest.mark.asyncio
    async def test_user_is_lowercased(self, info, transport):
        await info.user_state(USER)
        assert _body(transport) == {"type": "clearinghouseState", "user": USER.lower()}

    @pytest.mark.asyncio
    async def test_dex_is_sent_only_when_set(self, info, transport):
        await info.open_orders(USER, dex="xyz")
        assert _body(transport)["dex"] == "xyz"

        await info.frontend_open_orders(USER)
        assert "dex" not in _body(transport)

    @pytest.mark.asyncio
    async def test_blank_user_rejected_without_io(self, info, transport):
        with pytest.raises(RequestValidationError, match="user required"):
            await info.user_fills("  ")
        transport.info.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fills_by_time_omits_unset_end(self, info, transport):
        await info.user_fills_by_time(USER, 1000)
        assert _body(transport) == {
            "type": "userFillsByTime",
            "user": USER.lower(),
            "startTime": 1000,
            "aggregateByTime": False,
        }

        await info.user_fills_by_time(USER, 1000, end_time=2000, aggregate_by_time=True)
        body = _body(transport)
        assert body["endTime"] == 2000
        assert body["aggregateByTime"] is True

    @pytest.mark.asyncio
    async def test_order_status_accepts_oid_or_cloid(self, info, transport):
        await info.order_status(USER, 12)
        assert _body(transport)["oid"] == 12

        await info.order_status(USER, "0xfeed")
        assert _body(transport)["oid"] == "0xfeed"

        with pytest.raises(RequestValidationError):
            await info.order_status(USER, "")

    @pytest.mark.asyncio
    async def test_portfolio_periods(self, info, transport):
        transport.info.return_value = [["day", {"pnlHistory": []}], ["week", None]]
        periods = await info.portfolio(USER)
        assert [p.period for p in periods] == ["day", "week"]
        assert periods[1].metrics == {}


class TestMarketData:
    @pytest.mark.asyncio
    async def test_recent_trades_filters(self, info, transport):
        await info.recent_trades("BTC", limit=5)
        assert _body(transport) == {"type": "recentTrades", "coin": "BTC", "n": 5}

    @pytest.mark.asyncio
    async def test_candle_snapshot_nests_request(self, info, transport):
        await info.candle_snapshot("ETH", "1h", 1, 2)
        assert _body(transport) == {
            "type": "candleSnapshot",
            "req": {"coin": "ETH", "interval": "1h", "startTime": 1, "endTime": 2},
        }

    @pytest.mark.asyncio
    async def test_meta_and_asset_ctxs_pair(self, info, transport):
        transport.info.return_value = [{"universe": [{"name": "BTC"}]}, [{"funding": "0.0001"}]]
        result = await info.meta_and_asset_ctxs()
        assert isinstance(result, MetaAndAssetCtxs)
        assert result.meta["universe"][0]["name"] == "BTC"
        assert result.asset_ctxs == [{"funding": "0.0001"}]

    @pytest.mark.asyncio
    async def test_meta_and_asset_ctxs_malformed(self, info, transport):
        transport.info.return_value = {"universe": []}
        with pytest.raises(ResponseDecodeError, match="pair"):
            await info.spot_meta_and_asset_ctxs()
        transport.info.return_value = [{"universe": []}]
        with pytest.raises(ResponseDecodeError):
            await info.meta_and_asset_ctxs()

    @pytest.mark.asyncio
    async def test_l2_snapshot_requires_coin(self, info, transport):
        with pytest.raises(RequestValidationError, match="coin required"):
            await info.l2_snapshot("")
        transport.info.assert_not_awaited()
