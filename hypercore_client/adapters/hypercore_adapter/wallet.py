from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Any

from eth_account import Account
from eth_account.messages import encode_typed_data
from hyperliquid.utils.signing import (
    action_hash,
    construct_phantom_agent,
    l1_payload,
    user_signed_payload,
)

from hypercore_client.adapters.hypercore_adapter.sign_types import UserSignedFamily
from hypercore_client.core.constants.hyperliquid import (
    MAINNET,
    SIGNATURE_CHAIN_ID,
    TESTNET,
)
from hypercore_client.core.errors import InvalidKeyError, SigningError

SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


@dataclass(frozen=True)
class Signature:
    r: str
    s: str
    v: int

    def to_wire(self) -> dict[str, Any]:
        return {"r": self.r, "s": self.s, "v": self.v}


class Wallet:
    """A secp256k1 key bound to its lowercase venue address."""

    __slots__ = ("_account", "_address")

    def __init__(self, account: Any) -> None:
        self._account = account
        self._address = account.address.lower()

    @classmethod
    def from_hex(cls, hex_private_key: str) -> Wallet:
        key = (hex_private_key or "").strip()
        if key.startswith(("0x", "0X")):
            key = key[2:]
        if not key:
            raise InvalidKeyError("hyperliquid: private key is empty")
        try:
            raw = bytes.fromhex(key)
        except ValueError as exc:
            raise InvalidKeyError("hyperliquid: private key is not valid hex") from exc
        if len(raw) != 32:
            raise InvalidKeyError(
                f"hyperliquid: private key must be 32 bytes, got {len(raw)}"
            )
        if not 0 < int.from_bytes(raw, "big") < SECP256K1_N:
            raise InvalidKeyError("hyperliquid: private key out of curve range")
        try:
            account = Account.from_key(raw)
        except (ValueError, TypeError) as exc:
            raise InvalidKeyError(f"hyperliquid: invalid private key: {exc}") from exc
        return cls(account)

    @classmethod
    def generate(cls) -> tuple[Wallet, str]:
        """Create a random wallet and return it with its ``0x`` hex secret."""
        key = "0x" + secrets.token_hex(32)
        return cls.from_hex(key), key

    @property
    def address(self) -> str:
        return self._address

    def sign_typed_data(self, payload: dict[str, Any]) -> Signature:
        try:
            message = encode_typed_data(full_message=payload)
            signed = self._account.sign_message(message)
        except (TypeError, ValueError) as exc:
            raise SigningError(f"hyperliquid: failed to sign typed data: {exc}") from exc
        return Signature(r=f"0x{signed.r:064x}", s=f"0x{signed.s:064x}", v=signed.v)

    def __repr__(self) -> str:
        return f"Wallet(address={self._address!r})"


def chain_name(is_mainnet: bool) -> str:
    return MAINNET if is_mainnet else TESTNET


def l1_action_hash(
    action: dict[str, Any],
    vault_address: str | None,
    nonce: int,
    expires_after: int | None,
) -> bytes:
    try:
        return action_hash(action, vault_address, nonce, expires_after)
    except (TypeError, ValueError, OverflowError) as exc:
        raise SigningError(f"hyperliquid: cannot serialize action: {exc}") from exc


def sign_l1_action(
    wallet: Wallet,
    action: dict[str, Any],
    vault_address: str | None,
    nonce: int,
    expires_after: int | None,
    is_mainnet: bool,
) -> Signature:
    digest = l1_action_hash(action, vault_address, nonce, expires_after)
    payload = l1_payload(construct_phantom_agent(digest, is_mainnet))
    return wallet.sign_typed_data(payload)


def sign_user_action(
    wallet: Wallet,
    action: dict[str, Any],
    family: UserSignedFamily,
    is_mainnet: bool,
) -> Signature:
    """Sign a user-signed action with its family schema.

    ``action`` is completed in place with ``hyperliquidChain`` and
    ``signatureChainId``, so the posted body matches what was signed.
    """
    action["signatureChainId"] = SIGNATURE_CHAIN_ID
    action["hyperliquidChain"] = chain_name(is_mainnet)
    payload = user_signed_payload(family.primary_type, family.sign_types, action)
    return wallet.sign_typed_data(payload)


def sign_multi_sig_action(
    wallet: Wallet,
    action: dict[str, Any],
    is_mainnet: bool,
    vault_address: str | None,
    nonce: int,
    expires_after: int | None,
) -> Signature:
    inner = {k: v for k, v in action.items() if k != "type"}
    envelope = {
        "multiSigActionHash": l1_action_hash(inner, vault_address, nonce, expires_after),
        "nonce": nonce,
    }
    return sign_user_action(wallet, envelope, UserSignedFamily.SEND_MULTI_SIG, is_mainnet)
