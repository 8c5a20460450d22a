"""Typed action variants and their wire form.

Every action the executor can sign is one of the classes below. ``to_wire``
emits keys in a fixed order with ``type`` first, because L1 signatures hash
the msgpack encoding of the map and msgpack preserves insertion order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

from hypercore_client.adapters.hypercore_adapter.sign_types import UserSignedFamily
from hypercore_client.core.constants.hyperliquid import SIGNATURE_CHAIN_ID


@dataclass(frozen=True)
class L1Action:
    type: ClassVar[str]
    vault_scoped: ClassVar[bool]

    def body(self) -> dict[str, Any]:
        return {}

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.type, **self.body()}


@dataclass(frozen=True)
class UserSignedAction:
    type: ClassVar[str]
    family: ClassVar[UserSignedFamily]
    # Families that fold the vault into their signed fields post a null vault.
    vault_in_payload: ClassVar[bool] = False
    # Keys dropped from the posted body when empty, after signing.
    omit_if_empty: ClassVar[tuple[str, ...]] = ()

    def body(self) -> dict[str, Any]:
        raise NotImplementedError

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.type, **self.body()}


# Vault-scoped L1 actions.


@dataclass(frozen=True)
class OrderAction(L1Action):
    type: ClassVar[str] = "order"
    vault_scoped: ClassVar[bool] = True

    orders: tuple[dict[str, Any], ...]
    builder: dict[str, Any] | None = None

    def body(self) -> dict[str, Any]:
        out: dict[str, Any] = {"orders": list(self.orders), "grouping": "na"}
        if self.builder:
            out["builder"] = self.builder
        return out


@dataclass(frozen=True)
class BatchModifyAction(L1Action):
    type: ClassVar[str] = "batchModify"
    vault_scoped: ClassVar[bool] = True

    modifies: tuple[dict[str, Any], ...]

    def body(self) -> dict[str, Any]:
        return {"modifies": list(self.modifies)}


@dataclass(frozen=True)
class CancelAction(L1Action):
    type: ClassVar[str] = "cancel"
    vault_scoped: ClassVar[bool] = True

    cancels: tuple[tuple[int, int], ...]

    def body(self) -> dict[str, Any]:
        return {"cancels": [{"a": asset, "o": oid} for asset, oid in self.cancels]}


@dataclass(frozen=True)
class CancelByCloidAction(L1Action):
    type: ClassVar[str] = "cancelByCloid"
    vault_scoped: ClassVar[bool] = True

    cancels: tuple[tuple[int, str], ...]

    def body(self) -> dict[str, Any]:
        return {
            "cancels": [
                {"asset": asset, "cloid": cloid} for asset, cloid in self.cancels
            ]
        }


@dataclass(frozen=True)
class ScheduleCancelAction(L1Action):
    type: ClassVar[str] = "scheduleCancel"
    vault_scoped: ClassVar[bool] = True

    time: int | None = None

    def body(self) -> dict[str, Any]:
        return {} if self.time is None else {"time": self.time}


@dataclass(frozen=True)
class UpdateLeverageAction(L1Action):
    type: ClassVar[str] = "updateLeverage"
    vault_scoped: ClassVar[bool] = True

    asset: int
    is_cross: bool
    leverage: int

    def body(self) -> dict[str, Any]:
        return {"asset": self.asset, "isCross": self.is_cross, "leverage": self.leverage}


@dataclass(frozen=True)
class UpdateIsolatedMarginAction(L1Action):
    type: ClassVar[str] = "updateIsolatedMargin"
    vault_scoped: ClassVar[bool] = True

    asset: int
    is_buy: bool
    ntli: int

    def body(self) -> dict[str, Any]:
        return {"asset": self.asset, "isBuy": self.is_buy, "ntli": self.ntli}


@dataclass(frozen=True)
class NoopAction(L1Action):
    type: ClassVar[str] = "noop"
    vault_scoped: ClassVar[bool] = True


@dataclass(frozen=True)
class AgentEnableDexAbstractionAction(L1Action):
    type: ClassVar[str] = "agentEnableDexAbstraction"
    vault_scoped: ClassVar[bool] = True


@dataclass(frozen=True)
class MultiSigAction(L1Action):
    type: ClassVar[str] = "multiSig"
    vault_scoped: ClassVar[bool] = True

    multi_sig_user: str
    outer_signer: str
    inner: dict[str, Any]
    signatures: tuple[dict[str, Any], ...]

    def body(self) -> dict[str, Any]:
        return {
            "signatureChainId": SIGNATURE_CHAIN_ID,
            "signatures": list(self.signatures),
            "payload": {
                "multiSigUser": self.multi_sig_user,
                "outerSigner": self.outer_signer,
                "action": self.inner,
            },
        }


# Account-level L1 actions; these never carry a vault.


@dataclass(frozen=True)
class SetReferrerAction(L1Action):
    type: ClassVar[str] = "setReferrer"
    vault_scoped: ClassVar[bool] = False

    code: str

    def body(self) -> dict[str, Any]:
        return {"code": self.code}


@dataclass(frozen=True)
class CreateSubAccountAction(L1Action):
    type: ClassVar[str] = "createSubAccount"
    vault_scoped: ClassVar[bool] = False

    name: str

    def body(self) -> dict[str, Any]:
        return {"name": self.name}


@dataclass(frozen=True)
class SubAccountTransferAction(L1Action):
    type: ClassVar[str] = "subAccountTransfer"
    vault_scoped: ClassVar[bool] = False

    sub_account_user: str
    is_deposit: bool
    usd: int

    def body(self) -> dict[str, Any]:
        return {
            "subAccountUser": self.sub_account_user,
            "isDeposit": self.is_deposit,
            "usd": self.usd,
        }


@dataclass(frozen=True)
class SubAccountSpotTransferAction(L1Action):
    type: ClassVar[str] = "subAccountSpotTransfer"
    vault_scoped: ClassVar[bool] = False

    sub_account_user: str
    is_deposit: bool
    token: str
    amount: str

    def body(self) -> dict[str, Any]:
        return {
            "subAccountUser": self.sub_account_user,
            "isDeposit": self.is_deposit,
            "token": self.token,
            "amount": self.amount,
        }


@dataclass(frozen=True)
class VaultTransferAction(L1Action):
    type: ClassVar[str] = "vaultTransfer"
    vault_scoped: ClassVar[bool] = False

    vault_address: str
    is_deposit: bool
    usd: int

    def body(self) -> dict[str, Any]:
        return {
            "vaultAddress": self.vault_address,
            "isDeposit": self.is_deposit,
            "usd": self.usd,
        }


@dataclass(frozen=True)
class SpotDeployAction(L1Action):
    """One spot-deploy step; ``payload`` is the single variant key and its body."""

    type: ClassVar[str] = "spotDeploy"
    vault_scoped: ClassVar[bool] = False

    payload: dict[str, Any] = field(default_factory=dict)

    def body(self) -> dict[str, Any]:
        return dict(self.payload)


@dataclass(frozen=True)
class PerpDeployAction(L1Action):
    type: ClassVar[str] = "perpDeploy"
    vault_scoped: ClassVar[bool] = False

    payload: dict[str, Any] = field(default_factory=dict)

    def body(self) -> dict[str, Any]:
        return dict(self.payload)


@dataclass(frozen=True)
class CSignerAction(L1Action):
    type: ClassVar[str] = "CSignerAction"
    vault_scoped: ClassVar[bool] = False

    operation: str

    def body(self) -> dict[str, Any]:
        return {self.operation: None}


@dataclass(frozen=True)
class CValidatorAction(L1Action):
    type: ClassVar[str] = "CValidatorAction"
    vault_scoped: ClassVar[bool] = False

    payload: dict[str, Any] = field(default_factory=dict)

    def body(self) -> dict[str, Any]:
        return dict(self.payload)


@dataclass(frozen=True)
class EvmUserModifyAction(L1Action):
    type: ClassVar[str] = "evmUserModify"
    vault_scoped: ClassVar[bool] = False

    using_big_blocks: bool

    def body(self) -> dict[str, Any]:
        return {"usingBigBlocks": self.using_big_blocks}


# User-signed actions. The nonce field ("time" or "nonce") is filled in by
# the executor, and the chain fields by the signer.


@dataclass(frozen=True)
class UsdSendAction(UserSignedAction):
    type: ClassVar[str] = "usdSend"
    family: ClassVar[UserSignedFamily] = UserSignedFamily.USD_SEND

    destination: str
    amount: str

    def body(self) -> dict[str, Any]:
        return {"destination": self.destination, "amount": self.amount}


@dataclass(frozen=True)
class SpotSendAction(UserSignedAction):
    type: ClassVar[str] = "spotSend"
    family: ClassVar[UserSignedFamily] = UserSignedFamily.SPOT_SEND

    destination: str
    token: str
    amount: str

    def body(self) -> dict[str, Any]:
        return {
            "destination": self.destination,
            "token": self.token,
            "amount": self.amount,
        }


@dataclass(frozen=True)
class UsdClassTransferAction(UserSignedAction):
    type: ClassVar[str] = "usdClassTransfer"
    family: ClassVar[UserSignedFamily] = UserSignedFamily.USD_CLASS_TRANSFER
    vault_in_payload: ClassVar[bool] = True

    amount: str
    to_perp: bool

    def body(self) -> dict[str, Any]:
        return {"amount": self.amount, "toPerp": self.to_perp}


@dataclass(frozen=True)
class SendAssetAction(UserSignedAction):
    type: ClassVar[str] = "sendAsset"
    family: ClassVar[UserSignedFamily] = UserSignedFamily.SEND_ASSET
    vault_in_payload: ClassVar[bool] = True

    destination: str
    source_dex: str
    destination_dex: str
    token: str
    amount: str
    from_sub_account: str = ""

    def body(self) -> dict[str, Any]:
        return {
            "destination": self.destination,
            "sourceDex": self.source_dex,
            "destinationDex": self.destination_dex,
            "token": self.token,
            "amount": self.amount,
            "fromSubAccount": self.from_sub_account,
        }


@dataclass(frozen=True)
class TokenDelegateAction(UserSignedAction):
    type: ClassVar[str] = "tokenDelegate"
    family: ClassVar[UserSignedFamily] = UserSignedFamily.TOKEN_DELEGATE

    validator: str
    wei: int
    is_undelegate: bool

    def body(self) -> dict[str, Any]:
        return {
            "validator": self.validator,
            "wei": self.wei,
            "isUndelegate": self.is_undelegate,
        }


@dataclass(frozen=True)
class WithdrawAction(UserSignedAction):
    type: ClassVar[str] = "withdraw3"
    family: ClassVar[UserSignedFamily] = UserSignedFamily.WITHDRAW

    destination: str
    amount: str

    def body(self) -> dict[str, Any]:
        return {"destination": self.destination, "amount": self.amount}


@dataclass(frozen=True)
class ApproveAgentAction(UserSignedAction):
    type: ClassVar[str] = "approveAgent"
    family: ClassVar[UserSignedFamily] = UserSignedFamily.APPROVE_AGENT
    omit_if_empty: ClassVar[tuple[str, ...]] = ("agentName",)

    agent_address: str
    agent_name: str = ""

    def body(self) -> dict[str, Any]:
        return {"agentAddress": self.agent_address, "agentName": self.agent_name}


@dataclass(frozen=True)
class ApproveBuilderFeeAction(UserSignedAction):
    type: ClassVar[str] = "approveBuilderFee"
    family: ClassVar[UserSignedFamily] = UserSignedFamily.APPROVE_BUILDER_FEE

    builder: str
    max_fee_rate: str

    def body(self) -> dict[str, Any]:
        return {"maxFeeRate": self.max_fee_rate, "builder": self.builder}


@dataclass(frozen=True)
class ConvertToMultiSigUserAction(UserSignedAction):
    type: ClassVar[str] = "convertToMultiSigUser"
    family: ClassVar[UserSignedFamily] = UserSignedFamily.CONVERT_TO_MULTI_SIG_USER

    signers: str

    def body(self) -> dict[str, Any]:
        return {"signers": self.signers}


@dataclass(frozen=True)
class UserDexAbstractionAction(UserSignedAction):
    type: ClassVar[str] = "userDexAbstraction"
    family: ClassVar[UserSignedFamily] = UserSignedFamily.USER_DEX_ABSTRACTION

    user: str
    enabled: bool

    def body(self) -> dict[str, Any]:
        return {"user": self.user, "enabled": self.enabled}


Action = L1Action | UserSignedAction
