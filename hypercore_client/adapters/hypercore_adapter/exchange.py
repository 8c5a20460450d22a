from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any

from eth_utils import is_hex_address

from hypercore_client.adapters.hypercore_adapter.actions import (
    AgentEnableDexAbstractionAction,
    ApproveAgentAction,
    ApproveBuilderFeeAction,
    BatchModifyAction,
    CancelAction,
    CancelByCloidAction,
    ConvertToMultiSigUserAction,
    CreateSubAccountAction,
    CSignerAction,
    CValidatorAction,
    EvmUserModifyAction,
    NoopAction,
    OrderAction,
    PerpDeployAction,
    ScheduleCancelAction,
    SendAssetAction,
    SetReferrerAction,
    SpotDeployAction,
    SpotSendAction,
    SubAccountSpotTransferAction,
    SubAccountTransferAction,
    TokenDelegateAction,
    UpdateIsolatedMarginAction,
    UpdateLeverageAction,
    UsdClassTransferAction,
    UsdSendAction,
    UserDexAbstractionAction,
    VaultTransferAction,
    WithdrawAction,
)
from hypercore_client.adapters.hypercore_adapter.envelope import ActionResult
from hypercore_client.adapters.hypercore_adapter.executor import ActionExecutor
from hypercore_client.adapters.hypercore_adapter.nonce import validate_nonce
from hypercore_client.adapters.hypercore_adapter.types import (
    BuilderInfo,
    CancelByCloidRequest,
    CancelRequest,
    ModifyRequest,
    MultiSigRequest,
    OrderRequest,
)
from hypercore_client.adapters.hypercore_adapter.wallet import Wallet
from hypercore_client.adapters.hypercore_adapter.wire import (
    builder_to_wire,
    format_amount,
    normalize_address,
    order_request_to_wire,
    to_usd_int,
)
from hypercore_client.core.errors import RequestValidationError


def _required(value: str | None, what: str) -> str:
    value = (value or "").strip()
    if not value:
        raise RequestValidationError(f"hyperliquid: {what} required")
    return value


def _required_address(value: str | None, what: str) -> str:
    address = _required(value, what)
    if not is_hex_address(address):
        raise RequestValidationError(f"hyperliquid: invalid {what} {address!r}")
    return address.lower()


def _sorted_pairs(prices: Mapping[str, str]) -> list[list[str]]:
    return [[k, prices[k]] for k in sorted(prices)]


class Exchange:
    """Signed write actions.

    Each method validates its inputs and resolves coin symbols before any
    signing or network I/O, then hands a typed action to the executor and
    returns the parsed :class:`ActionResult`.
    """

    def __init__(self, executor: ActionExecutor) -> None:
        self.executor = executor
        self.assets = executor.assets

    def set_vault_address(self, address: str | None) -> None:
        self.executor.set_vault_address(address)

    def set_account_address(self, address: str | None) -> None:
        self.executor.set_account_address(address)

    def set_expires_after(self, expires_after: int | None) -> None:
        self.executor.set_expires_after(expires_after)

    # Orders

    async def place_orders(
        self, orders: Sequence[OrderRequest], builder: BuilderInfo | None = None
    ) -> ActionResult:
        if not orders:
            raise RequestValidationError("hyperliquid: no orders supplied")
        wires = [
            order_request_to_wire(order, await self.assets.asset_id(order.coin))
            for order in orders
        ]
        action = OrderAction(orders=tuple(wires), builder=builder_to_wire(builder))
        return await self.executor.execute(action)

    async def place_order(
        self, order: OrderRequest, builder: BuilderInfo | None = None
    ) -> ActionResult:
        return await self.place_orders([order], builder)

    async def amend_orders(self, requests: Sequence[ModifyRequest]) -> ActionResult:
        if not requests:
            raise RequestValidationError("hyperliquid: no modify requests supplied")
        modifies = []
        for req in requests:
            if req.oid is not None:
                identifier: int | str = int(req.oid)
            elif req.cloid:
                identifier = req.cloid
            else:
                raise RequestValidationError(
                    "hyperliquid: modify request missing identifier"
                )
            asset = await self.assets.asset_id(req.order.coin)
            modifies.append(
                {"oid": identifier, "order": order_request_to_wire(req.order, asset)}
            )
        return await self.executor.execute(BatchModifyAction(modifies=tuple(modifies)))

    async def cancel_orders_by_id(
        self, requests: Sequence[CancelRequest]
    ) -> ActionResult:
        if not requests:
            raise RequestValidationError("hyperliquid: no cancel requests supplied")
        cancels = []
        for req in requests:
            if req.oid is None:
                raise RequestValidationError(
                    "hyperliquid: cancel request missing order ID"
                )
            cancels.append((await self.assets.asset_id(req.coin), int(req.oid)))
        return await self.executor.execute(CancelAction(cancels=tuple(cancels)))

    async def cancel_orders_by_cloid(
        self, requests: Sequence[CancelByCloidRequest]
    ) -> ActionResult:
        if not requests:
            raise RequestValidationError("hyperliquid: no cancel requests supplied")
        cancels = []
        for req in requests:
            cloid = _required(req.cloid, "client order ID")
            cancels.append((await self.assets.asset_id(req.coin), cloid))
        return await self.executor.execute(CancelByCloidAction(cancels=tuple(cancels)))

    async def schedule_cancel(self, scheduled_time: int | None = None) -> ActionResult:
        """Schedule a cancel-all at ``scheduled_time`` (ms), or clear it with ``None``."""
        return await self.executor.execute(ScheduleCancelAction(time=scheduled_time))

    async def update_leverage(
        self, coin: str, leverage: int, is_cross: bool = True
    ) -> ActionResult:
        asset = await self.assets.asset_id(coin)
        return await self.executor.execute(
            UpdateLeverageAction(asset=asset, is_cross=is_cross, leverage=int(leverage))
        )

    async def update_isolated_margin(
        self, coin: str, amount: float, is_buy: bool = True
    ) -> ActionResult:
        asset = await self.assets.asset_id(coin)
        return await self.executor.execute(
            UpdateIsolatedMarginAction(asset=asset, is_buy=is_buy, ntli=to_usd_int(amount))
        )

    # Account

    async def set_referrer(self, code: str) -> ActionResult:
        return await self.executor.execute(
            SetReferrerAction(code=_required(code, "referrer code"))
        )

    async def create_sub_account(self, name: str) -> ActionResult:
        return await self.executor.execute(
            CreateSubAccountAction(name=_required(name, "sub-account name"))
        )

    # Transfers

    async def usd_class_transfer(self, amount: float, to_perp: bool) -> ActionResult:
        await self.executor.ensure_wallet()
        wire_amount = format_amount(amount)
        if vault := self.executor.vault_address:
            wire_amount += f" subaccount:{vault}"
        return await self.executor.execute_user_signed(
            UsdClassTransferAction(amount=wire_amount, to_perp=to_perp)
        )

    async def send_asset(
        self,
        destination: str,
        source_dex: str,
        destination_dex: str,
        token: str,
        amount: float,
    ) -> ActionResult:
        await self.executor.ensure_wallet()
        action = SendAssetAction(
            destination=_required_address(destination, "destination"),
            source_dex=_required(source_dex, "source dex"),
            destination_dex=_required(destination_dex, "destination dex"),
            token=_required(token, "token"),
            amount=format_amount(amount),
            from_sub_account=self.executor.vault_address or "",
        )
        return await self.executor.execute_user_signed(action)

    async def sub_account_transfer(
        self, sub_account_user: str, is_deposit: bool, usd: int
    ) -> ActionResult:
        return await self.executor.execute(
            SubAccountTransferAction(
                sub_account_user=_required_address(sub_account_user, "sub-account user"),
                is_deposit=is_deposit,
                usd=int(usd),
            )
        )

    async def sub_account_spot_transfer(
        self, sub_account_user: str, is_deposit: bool, token: str, amount: float
    ) -> ActionResult:
        return await self.executor.execute(
            SubAccountSpotTransferAction(
                sub_account_user=_required_address(sub_account_user, "sub-account user"),
                is_deposit=is_deposit,
                token=_required(token, "token"),
                amount=format_amount(amount),
            )
        )

    async def vault_usd_transfer(
        self, vault_address: str, is_deposit: bool, usd: int
    ) -> ActionResult:
        return await self.executor.execute(
            VaultTransferAction(
                vault_address=_required_address(vault_address, "vault address"),
                is_deposit=is_deposit,
                usd=int(usd),
            )
        )

    async def usd_transfer(self, destination: str, amount: float) -> ActionResult:
        return await self.executor.execute_user_signed(
            UsdSendAction(
                destination=_required_address(destination, "destination"),
                amount=format_amount(amount),
            )
        )

    async def spot_transfer(
        self, destination: str, token: str, amount: float
    ) -> ActionResult:
        return await self.executor.execute_user_signed(
            SpotSendAction(
                destination=_required_address(destination, "destination"),
                token=_required(token, "token"),
                amount=format_amount(amount),
            )
        )

    async def token_delegate(
        self, validator: str, wei: int, is_undelegate: bool = False
    ) -> ActionResult:
        return await self.executor.execute_user_signed(
            TokenDelegateAction(
                validator=_required_address(validator, "validator address"),
                wei=int(wei),
                is_undelegate=is_undelegate,
            )
        )

    async def withdraw_from_bridge(
        self, destination: str, amount: float
    ) -> ActionResult:
        return await self.executor.execute_user_signed(
            WithdrawAction(
                destination=_required_address(destination, "destination"),
                amount=format_amount(amount),
            )
        )

    # Approvals

    async def approve_agent(self, agent_name: str = "") -> tuple[ActionResult, str]:
        """Authorise a freshly generated agent key; returns the result and the key."""
        agent, agent_key = Wallet.generate()
        action = ApproveAgentAction(
            agent_address=agent.address, agent_name=(agent_name or "").strip()
        )
        return await self.executor.execute_user_signed(action), agent_key

    async def approve_builder_fee(self, builder: str, max_fee_rate: str) -> ActionResult:
        return await self.executor.execute_user_signed(
            ApproveBuilderFeeAction(
                builder=_required_address(builder, "builder address"),
                max_fee_rate=_required(max_fee_rate, "max fee rate"),
            )
        )

    async def convert_to_multi_sig_user(
        self, authorized_users: Sequence[str], threshold: int
    ) -> ActionResult:
        if threshold <= 0:
            raise RequestValidationError("hyperliquid: threshold must be positive")
        if not authorized_users:
            raise RequestValidationError(
                "hyperliquid: at least one authorised user required"
            )
        users = sorted(
            _required_address(user, "authorised user") for user in authorized_users
        )
        signers = json.dumps({"authorizedUsers": users, "threshold": threshold})
        return await self.executor.execute_user_signed(
            ConvertToMultiSigUserAction(signers=signers)
        )

    async def user_dex_abstraction(self, user: str, enabled: bool) -> ActionResult:
        return await self.executor.execute_user_signed(
            UserDexAbstractionAction(
                user=_required_address(user, "user address"), enabled=enabled
            )
        )

    async def agent_enable_dex_abstraction(self) -> ActionResult:
        return await self.executor.execute(AgentEnableDexAbstractionAction())

    # Spot deploy

    async def _spot_deploy(self, payload: dict[str, Any]) -> ActionResult:
        return await self.executor.execute(SpotDeployAction(payload=payload))

    async def spot_deploy_register_token(
        self,
        token_name: str,
        sz_decimals: int,
        wei_decimals: int,
        max_gas: int,
        full_name: str,
    ) -> ActionResult:
        return await self._spot_deploy(
            {
                "registerToken2": {
                    "spec": {
                        "name": _required(token_name, "token name"),
                        "szDecimals": sz_decimals,
                        "weiDecimals": wei_decimals,
                    },
                    "maxGas": max_gas,
                    "fullName": _required(full_name, "token full name"),
                }
            }
        )

    async def spot_deploy_user_genesis(
        self,
        token: int,
        user_and_wei: Sequence[tuple[str, str]],
        existing_token_and_wei: Sequence[tuple[int, str]] = (),
    ) -> ActionResult:
        users = [
            [_required_address(user, "user genesis user"), wei]
            for user, wei in user_and_wei
        ]
        existing = [[tok, wei] for tok, wei in existing_token_and_wei]
        return await self._spot_deploy(
            {
                "userGenesis": {
                    "token": token,
                    "userAndWei": users,
                    "existingTokenAndWei": existing,
                }
            }
        )

    async def spot_deploy_enable_freeze_privilege(self, token: int) -> ActionResult:
        return await self._spot_deploy({"enableFreezePrivilege": {"token": token}})

    async def spot_deploy_revoke_freeze_privilege(self, token: int) -> ActionResult:
        return await self._spot_deploy({"revokeFreezePrivilege": {"token": token}})

    async def spot_deploy_enable_quote_token(self, token: int) -> ActionResult:
        return await self._spot_deploy({"enableQuoteToken": {"token": token}})

    async def spot_deploy_freeze_user(
        self, token: int, user: str, freeze: bool
    ) -> ActionResult:
        return await self._spot_deploy(
            {
                "freezeUser": {
                    "token": token,
                    "user": _required_address(user, "user address"),
                    "freeze": freeze,
                }
            }
        )

    async def spot_deploy_genesis(
        self, token: int, max_supply: str, no_hyperliquidity: bool
    ) -> ActionResult:
        return await self._spot_deploy(
            {
                "genesis": {
                    "token": token,
                    "maxSupply": _required(max_supply, "max supply"),
                    "noHyperliquidity": no_hyperliquidity,
                }
            }
        )

    async def spot_deploy_register_spot(
        self, base_token: int, quote_token: int
    ) -> ActionResult:
        return await self._spot_deploy(
            {"registerSpot": {"baseToken": base_token, "quoteToken": quote_token}}
        )

    async def spot_deploy_register_hyperliquidity(
        self,
        spot: int,
        start_px: float,
        order_sz: float,
        n_orders: int,
        n_seeded_levels: int | None = None,
    ) -> ActionResult:
        body: dict[str, Any] = {
            "spot": spot,
            "startPx": format_amount(start_px),
            "orderSz": format_amount(order_sz),
            "nOrders": n_orders,
        }
        if n_seeded_levels is not None:
            body["nSeededLevels"] = n_seeded_levels
        return await self._spot_deploy({"registerHyperliquidity": body})

    async def spot_deploy_set_deployer_trading_fee_share(
        self, token: int, share: str
    ) -> ActionResult:
        return await self._spot_deploy(
            {
                "setDeployerTradingFeeShare": {
                    "token": token,
                    "share": _required(share, "trading fee share"),
                }
            }
        )

    # Perp deploy

    async def perp_deploy_register_asset(
        self,
        dex: str,
        coin: str,
        sz_decimals: int,
        oracle_px: str,
        margin_table_id: int,
        only_isolated: bool,
        max_gas: int | None = None,
        schema: Mapping[str, Any] | None = None,
    ) -> ActionResult:
        register: dict[str, Any] = {
            "dex": _required(dex, "dex identifier"),
            "assetRequest": {
                "coin": _required(coin, "coin"),
                "szDecimals": sz_decimals,
                "oraclePx": _required(oracle_px, "oracle price"),
                "marginTableId": margin_table_id,
                "onlyIsolated": only_isolated,
            },
            "maxGas": max_gas,
        }
        if schema is not None:
            updater = normalize_address(schema.get("oracleUpdater")) or None
            register["schema"] = {
                "fullName": (schema.get("fullName") or "").strip(),
                "collateralToken": schema.get("collateralToken"),
                "oracleUpdater": updater,
            }
        return await self.executor.execute(
            PerpDeployAction(payload={"registerAsset": register})
        )

    async def perp_deploy_set_oracle(
        self,
        dex: str,
        oracle_pxs: Mapping[str, str],
        mark_pxs: Sequence[Mapping[str, str]] = (),
        external_perp_pxs: Mapping[str, str] | None = None,
    ) -> ActionResult:
        payload = {
            "setOracle": {
                "dex": _required(dex, "dex identifier"),
                "oraclePxs": _sorted_pairs(oracle_pxs),
                "markPxs": [_sorted_pairs(m) for m in mark_pxs],
                "externalPerpPxs": _sorted_pairs(external_perp_pxs or {}),
            }
        }
        return await self.executor.execute(PerpDeployAction(payload=payload))

    # Validators and signers

    async def c_signer_jail_self(self) -> ActionResult:
        return await self.executor.execute(CSignerAction(operation="jailSelf"))

    async def c_signer_unjail_self(self) -> ActionResult:
        return await self.executor.execute(CSignerAction(operation="unjailSelf"))

    async def c_validator_register(
        self,
        node_ip: str,
        name: str,
        description: str,
        delegations_disabled: bool,
        commission_bps: int,
        signer: str,
        unjailed: bool,
        initial_wei: int,
    ) -> ActionResult:
        payload = {
            "register": {
                "profile": {
                    "node_ip": {"Ip": _required(node_ip, "node IP")},
                    "name": _required(name, "validator name"),
                    "description": (description or "").strip(),
                    "delegations_disabled": delegations_disabled,
                    "commission_bps": commission_bps,
                    "signer": _required_address(signer, "signer address"),
                },
                "unjailed": unjailed,
                "initial_wei": initial_wei,
            }
        }
        return await self.executor.execute(CValidatorAction(payload=payload))

    async def c_validator_change_profile(
        self,
        *,
        unjailed: bool,
        node_ip: str | None = None,
        name: str | None = None,
        description: str | None = None,
        disable_delegations: bool | None = None,
        commission_bps: int | None = None,
        signer: str | None = None,
    ) -> ActionResult:
        node = (node_ip or "").strip()
        payload = {
            "changeProfile": {
                "node_ip": {"Ip": node} if node else None,
                "name": name.strip() if name is not None else None,
                "description": description.strip() if description is not None else None,
                "unjailed": unjailed,
                "disable_delegations": disable_delegations,
                "commission_bps": commission_bps,
                "signer": normalize_address(signer) or None,
            }
        }
        return await self.executor.execute(CValidatorAction(payload=payload))

    async def c_validator_unregister(self) -> ActionResult:
        return await self.executor.execute(CValidatorAction(payload={"unregister": None}))

    # Misc

    async def multi_sig(self, request: MultiSigRequest) -> ActionResult:
        return await self.executor.execute_multi_sig(request)

    async def use_big_blocks(self, enable: bool) -> ActionResult:
        return await self.executor.execute(EvmUserModifyAction(using_big_blocks=enable))

    async def noop(self, nonce: int) -> ActionResult:
        return await self.executor.execute(NoopAction(), nonce=validate_nonce(nonce))
