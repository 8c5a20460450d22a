from __future__ import annotations

from typing import Any, NamedTuple, Protocol

from hypercore_client.core.errors import RequestValidationError, ResponseDecodeError


class InfoTransport(Protocol):
    async def info(self, payload: dict[str, Any]) -> Any: ...


class MetaAndAssetCtxs(NamedTuple):
    meta: dict[str, Any]
    asset_ctxs: list[dict[str, Any]]


class PortfolioPeriod(NamedTuple):
    period: str
    metrics: dict[str, Any]


def _require(value: str, name: str) -> str:
    value = (value or "").strip()
    if not value:
        raise RequestValidationError(f"hyperliquid: {name} required")
    return value


def _user(user: str) -> str:
    return _require(user, "user").lower()


def _with_optional(payload: dict[str, Any], **optional: Any) -> dict[str, Any]:
    for key, value in optional.items():
        if value is not None and value != "":
            payload[key] = int(value) if key in ("startTime", "endTime", "n") else value
    return payload


def _pair(raw: Any) -> MetaAndAssetCtxs:
    if not isinstance(raw, list) or len(raw) != 2:
        raise ResponseDecodeError(
            f"hyperliquid: expected [meta, assetCtxs] pair, got {raw!r}"
        )
    return MetaAndAssetCtxs(meta=raw[0] or {}, asset_ctxs=list(raw[1] or []))


class InfoClient:
    """Typed wrappers around the ``/info`` read endpoints.

    Each method posts ``{"type": ..., ...}`` and returns the decoded JSON.
    Optional filters are omitted from the body when unset.
    """

    def __init__(self, transport: InfoTransport) -> None:
        self.transport = transport

    async def _post(self, payload: dict[str, Any]) -> Any:
        return await self.transport.info(payload)

    async def _user_query(self, type_: str, user: str) -> Any:
        return await self._post({"type": type_, "user": _user(user)})

    # Account state

    async def user_state(self, user: str, dex: str = "") -> dict[str, Any]:
        return await self._post(
            _with_optional({"type": "clearinghouseState", "user": _user(user)}, dex=dex)
        )

    async def spot_user_state(self, user: str) -> dict[str, Any]:
        return await self._user_query("spotClearinghouseState", user)

    async def open_orders(self, user: str, dex: str = "") -> list[dict[str, Any]]:
        return await self._post(
            _with_optional({"type": "openOrders", "user": _user(user)}, dex=dex)
        )

    async def frontend_open_orders(
        self, user: str, dex: str = ""
    ) -> list[dict[str, Any]]:
        return await self._post(
            _with_optional({"type": "frontendOpenOrders", "user": _user(user)}, dex=dex)
        )

    async def user_fills(self, user: str) -> list[dict[str, Any]]:
        return await self._user_query("userFills", user)

    async def user_fills_by_time(
        self,
        user: str,
        start_time: int,
        end_time: int | None = None,
        aggregate_by_time: bool = False,
    ) -> list[dict[str, Any]]:
        payload = {
            "type": "userFillsByTime",
            "user": _user(user),
            "startTime": int(start_time),
        }
        _with_optional(payload, endTime=end_time)
        payload["aggregateByTime"] = aggregate_by_time
        return await self._post(payload)

    async def user_funding(
        self, user: str, start_time: int, end_time: int | None = None
    ) -> list[dict[str, Any]]:
        return await self._post(
            _with_optional(
                {
                    "type": "userFunding",
                    "user": _user(user),
                    "startTime": int(start_time),
                },
                endTime=end_time,
            )
        )

    async def user_non_funding_ledger_updates(
        self, user: str, start_time: int, end_time: int | None = None
    ) -> list[dict[str, Any]]:
        return await self._post(
            _with_optional(
                {
                    "type": "userNonFundingLedgerUpdates",
                    "user": _user(user),
                    "startTime": int(start_time),
                },
                endTime=end_time,
            )
        )

    async def order_status(self, user: str, oid: int | str) -> dict[str, Any]:
        """Look an order up by numeric oid or by its 0x-prefixed cloid."""
        if isinstance(oid, str):
            oid = _require(oid, "cloid")
        return await self._post({"type": "orderStatus", "user": _user(user), "oid": oid})

    async def historical_orders(self, user: str) -> list[dict[str, Any]]:
        return await self._user_query("historicalOrders", user)

    async def user_fees(self, user: str) -> dict[str, Any]:
        return await self._user_query("userFees", user)

    async def portfolio(self, user: str) -> list[PortfolioPeriod]:
        raw = await self._user_query("portfolio", user)
        return [PortfolioPeriod(period=str(p[0]), metrics=p[1] or {}) for p in raw or []]

    async def user_twap_slice_fills(self, user: str) -> list[dict[str, Any]]:
        return await self._user_query("userTwapSliceFills", user)

    async def user_vault_equities(self, user: str) -> list[dict[str, Any]]:
        return await self._user_query("userVaultEquities", user)

    async def user_role(self, user: str) -> dict[str, Any]:
        return await self._user_query("userRole", user)

    async def user_rate_limit(self, user: str) -> dict[str, Any]:
        return await self._user_query("userRateLimit", user)

    async def referral(self, user: str) -> dict[str, Any]:
        return await self._user_query("referral", user)

    async def sub_accounts(self, user: str) -> list[dict[str, Any]] | None:
        return await self._user_query("subAccounts", user)

    async def user_to_multi_sig_signers(self, user: str) -> dict[str, Any] | None:
        return await self._user_query("userToMultiSigSigners", user)

    async def user_dex_abstraction(self, user: str) -> Any:
        return await self._user_query("userDexAbstraction", user)

    async def extra_agents(self, user: str) -> list[dict[str, Any]]:
        return await self._user_query("extraAgents", user)

    # Staking

    async def delegator_summary(self, user: str) -> dict[str, Any]:
        return await self._user_query("delegatorSummary", user)

    async def delegations(self, user: str) -> list[dict[str, Any]]:
        return await self._user_query("delegations", user)

    async def delegator_rewards(self, user: str) -> list[dict[str, Any]]:
        return await self._user_query("delegatorRewards", user)

    async def delegator_history(self, user: str) -> list[dict[str, Any]]:
        return await self._user_query("delegatorHistory", user)

    # Market data

    async def all_mids(self, dex: str = "") -> dict[str, str]:
        return await self._post(_with_optional({"type": "allMids"}, dex=dex))

    async def recent_trades(
        self,
        coin: str,
        limit: int | None = None,
        start_time: int | None = None,
        end_time: int | None = None,
    ) -> list[dict[str, Any]]:
        return await self._post(
            _with_optional(
                {"type": "recentTrades", "coin": _require(coin, "coin")},
                n=limit,
                startTime=start_time,
                endTime=end_time,
            )
        )

    async def meta(self, dex: str = "") -> dict[str, Any]:
        return await self._post(_with_optional({"type": "meta"}, dex=dex))

    async def meta_and_asset_ctxs(self) -> MetaAndAssetCtxs:
        return _pair(await self._post({"type": "metaAndAssetCtxs"}))

    async def perp_dexs(self) -> list[dict[str, Any] | None]:
        return await self._post({"type": "perpDexs"})

    async def spot_meta(self) -> dict[str, Any]:
        return await self._post({"type": "spotMeta"})

    async def spot_meta_and_asset_ctxs(self) -> MetaAndAssetCtxs:
        return _pair(await self._post({"type": "spotMetaAndAssetCtxs"}))

    async def funding_history(
        self, coin: str, start_time: int, end_time: int | None = None
    ) -> list[dict[str, Any]]:
        return await self._post(
            _with_optional(
                {
                    "type": "fundingHistory",
                    "coin": _require(coin, "coin"),
                    "startTime": int(start_time),
                },
                endTime=end_time,
            )
        )

    async def l2_snapshot(self, coin: str) -> dict[str, Any]:
        return await self._post({"type": "l2Book", "coin": _require(coin, "coin")})

    async def candle_snapshot(
        self, coin: str, interval: str, start_time: int, end_time: int
    ) -> list[dict[str, Any]]:
        return await self._post(
            {
                "type": "candleSnapshot",
                "req": {
                    "coin": _require(coin, "coin"),
                    "interval": _require(interval, "interval"),
                    "startTime": int(start_time),
                    "endTime": int(end_time),
                },
            }
        )

    # Deployment

    async def perp_deploy_auction_status(self) -> dict[str, Any]:
        return await self._post({"type": "perpDeployAuctionStatus"})

    async def spot_deploy_state(self, user: str) -> dict[str, Any]:
        return await self._user_query("spotDeployState", user)

