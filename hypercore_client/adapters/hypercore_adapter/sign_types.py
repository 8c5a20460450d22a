"""EIP-712 schemas for user-signed actions.

Each family signs with its own primary type and field list; the field order
is part of the typed-data hash and must not change. Schemas the signing
library exports are used as-is; it signs agent approvals and builder fee
approvals with inline lists, so those two are spelled out here.
"""

from __future__ import annotations

from enum import StrEnum

from hyperliquid.utils.signing import (
    CONVERT_TO_MULTI_SIG_USER_SIGN_TYPES,
    MULTI_SIG_ENVELOPE_SIGN_TYPES,
    SEND_ASSET_SIGN_TYPES,
    SPOT_TRANSFER_SIGN_TYPES,
    TOKEN_DELEGATE_TYPES,
    USD_CLASS_TRANSFER_SIGN_TYPES,
    USD_SEND_SIGN_TYPES,
    USER_DEX_ABSTRACTION_SIGN_TYPES,
    WITHDRAW_SIGN_TYPES,
)

SignTypes = list[dict[str, str]]


def _fields(*pairs: tuple[str, str]) -> SignTypes:
    return [{"name": name, "type": type_} for name, type_ in pairs]


APPROVE_AGENT_SIGN_TYPES: SignTypes = _fields(
    ("hyperliquidChain", "string"),
    ("agentAddress", "address"),
    ("agentName", "string"),
    ("nonce", "uint64"),
)

BUILDER_FEE_SIGN_TYPES: SignTypes = _fields(
    ("hyperliquidChain", "string"),
    ("maxFeeRate", "string"),
    ("builder", "address"),
    ("nonce", "uint64"),
)

class UserSignedFamily(StrEnum):
    USD_SEND = "UsdSend"
    SPOT_SEND = "SpotSend"
    USD_CLASS_TRANSFER = "UsdClassTransfer"
    SEND_ASSET = "SendAsset"
    TOKEN_DELEGATE = "TokenDelegate"
    WITHDRAW = "Withdraw"
    APPROVE_AGENT = "ApproveAgent"
    APPROVE_BUILDER_FEE = "ApproveBuilderFee"
    CONVERT_TO_MULTI_SIG_USER = "ConvertToMultiSigUser"
    SEND_MULTI_SIG = "SendMultiSig"
    USER_DEX_ABSTRACTION = "UserDexAbstraction"

    @property
    def primary_type(self) -> str:
        return f"HyperliquidTransaction:{self.value}"

    @property
    def sign_types(self) -> SignTypes:
        return _SIGN_TYPES[self]

    @property
    def nonce_field(self) -> str:
        """Name of the field that carries the action nonce."""
        return "time" if self in _TIME_NONCE_FAMILIES else "nonce"


_SIGN_TYPES: dict[UserSignedFamily, SignTypes] = {
    UserSignedFamily.USD_SEND: USD_SEND_SIGN_TYPES,
    UserSignedFamily.SPOT_SEND: SPOT_TRANSFER_SIGN_TYPES,
    UserSignedFamily.USD_CLASS_TRANSFER: USD_CLASS_TRANSFER_SIGN_TYPES,
    UserSignedFamily.SEND_ASSET: SEND_ASSET_SIGN_TYPES,
    UserSignedFamily.TOKEN_DELEGATE: TOKEN_DELEGATE_TYPES,
    UserSignedFamily.WITHDRAW: WITHDRAW_SIGN_TYPES,
    UserSignedFamily.APPROVE_AGENT: APPROVE_AGENT_SIGN_TYPES,
    UserSignedFamily.APPROVE_BUILDER_FEE: BUILDER_FEE_SIGN_TYPES,
    UserSignedFamily.CONVERT_TO_MULTI_SIG_USER: CONVERT_TO_MULTI_SIG_USER_SIGN_TYPES,
    UserSignedFamily.SEND_MULTI_SIG: MULTI_SIG_ENVELOPE_SIGN_TYPES,
    UserSignedFamily.USER_DEX_ABSTRACTION: USER_DEX_ABSTRACTION_SIGN_TYPES,
}

_TIME_NONCE_FAMILIES = frozenset(
    {
        UserSignedFamily.USD_SEND,
        UserSignedFamily.SPOT_SEND,
        UserSignedFamily.WITHDRAW,
    }
)


def sign_type_names(family: UserSignedFamily) -> list[str]:
    return [f["name"] for f in family.sign_types]

