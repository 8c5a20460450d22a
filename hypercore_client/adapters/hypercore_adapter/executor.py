from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any, Protocol

from loguru import logger

from hypercore_client.adapters.hypercore_adapter.actions import (
    L1Action,
    MultiSigAction,
    UserSignedAction,
)
from hypercore_client.adapters.hypercore_adapter.assets import AssetResolver
from hypercore_client.adapters.hypercore_adapter.envelope import (
    ActionResult,
    parse_envelope,
)
from hypercore_client.adapters.hypercore_adapter.nonce import NonceSequencer
from hypercore_client.adapters.hypercore_adapter.types import MultiSigRequest
from hypercore_client.adapters.hypercore_adapter.wallet import (
    Signature,
    Wallet,
    sign_l1_action,
    sign_multi_sig_action,
    sign_user_action,
)
from hypercore_client.adapters.hypercore_adapter.wire import normalize_address
from hypercore_client.core.config import SessionConfig
from hypercore_client.core.credentials import (
    CredentialProvider,
    StaticCredentialProvider,
)
from hypercore_client.core.errors import (
    ExpiresAfterUnsupportedError,
    MissingCredentialError,
    RequestValidationError,
)

# Sentinel for "leave vaultAddress out of the envelope entirely".
_OMIT = object()


class ExchangeTransport(Protocol):
    async def exchange(self, payload: dict[str, Any]) -> Any: ...


class ActionExecutor:
    """Sign-and-post pipeline shared by every write action.

    One instance belongs to one session: it owns the bound wallet, the
    account/vault addressing and the optional ``expiresAfter`` setting.
    """

    def __init__(
        self,
        config: SessionConfig,
        transport: ExchangeTransport,
        *,
        assets: AssetResolver,
        credentials: CredentialProvider | None = None,
        nonces: NonceSequencer | None = None,
        wallet_factory: Callable[[str], Wallet] = Wallet.from_hex,
    ) -> None:
        self.config = config
        self.transport = transport
        self.assets = assets
        self.credentials = credentials or StaticCredentialProvider(config.credentials)
        self.nonces = nonces or NonceSequencer()
        self._wallet_factory = wallet_factory
        self._wallet: Wallet | None = None
        self._wallet_lock = asyncio.Lock()
        self.logger = logger.bind(adapter=self.__class__.__name__)

        self.account_address = normalize_address(config.account_address) or None
        self.vault_address = normalize_address(config.vault_address) or None
        self.expires_after: int | None = config.expires_after

    @property
    def wallet(self) -> Wallet | None:
        return self._wallet

    @property
    def is_mainnet(self) -> bool:
        return self.config.is_mainnet

    async def ensure_wallet(self) -> Wallet:
        if self._wallet is not None:
            return self._wallet

        async with self._wallet_lock:
            if self._wallet is not None:
                return self._wallet

            creds = await self.credentials.get_credentials()
            if not (creds.secret or "").strip():
                raise MissingCredentialError("secret")
            wallet = self._wallet_factory(creds.secret)

            key = normalize_address(creds.key)
            if key and key != wallet.address:
                self.logger.warning(
                    f"Credential key {key} does not match derived address {wallet.address}; using derived address"
                )

            self.account_address = normalize_address(creds.client_id) or wallet.address
            if sub_account := normalize_address(creds.sub_account):
                self.vault_address = sub_account
            self.expires_after = self.config.expires_after
            self._wallet = wallet

        await self.assets.reset()
        return wallet

    def set_vault_address(self, address: str | None) -> None:
        self.vault_address = normalize_address(address) or None

    def set_account_address(self, address: str | None) -> None:
        self.account_address = normalize_address(address) or None

    def set_expires_after(self, expires_after: int | None) -> None:
        self.expires_after = expires_after

    def build_envelope(
        self,
        action: dict[str, Any],
        signature: Signature,
        nonce: int,
        vault: Any = _OMIT,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "action": action,
            "nonce": nonce,
            "signature": signature.to_wire(),
        }
        if vault is not _OMIT:
            payload["vaultAddress"] = normalize_address(vault) or None
        if self.expires_after is not None:
            payload["expiresAfter"] = self.expires_after
        return payload

    async def _post(self, payload: dict[str, Any]) -> ActionResult:
        self.logger.info(f"Broadcasting Hypercore payload: {payload}")
        raw = await self.transport.exchange(payload)
        return parse_envelope(raw)

    async def execute(
        self, action: L1Action, *, nonce: int | None = None
    ) -> ActionResult:
        wallet = await self.ensure_wallet()
        nonce = self.nonces.next_nonce(nonce)
        vault = self.vault_address if action.vault_scoped else None
        wire = action.to_wire()
        signature = sign_l1_action(
            wallet, wire, vault, nonce, self.expires_after, self.is_mainnet
        )
        envelope = self.build_envelope(
            wire, signature, nonce, vault if action.vault_scoped else _OMIT
        )
        return await self._post(envelope)

    async def execute_user_signed(
        self, action: UserSignedAction, *, nonce: int | None = None
    ) -> ActionResult:
        wallet = await self.ensure_wallet()
        if self.expires_after is not None:
            raise ExpiresAfterUnsupportedError(action.type)
        nonce = self.nonces.next_nonce(nonce)

        wire = action.to_wire()
        wire[action.family.nonce_field] = nonce
        signature = sign_user_action(wallet, wire, action.family, self.is_mainnet)
        for key in action.omit_if_empty:
            if not wire.get(key):
                wire.pop(key, None)

        vault = None if action.vault_in_payload else self.vault_address
        return await self._post(self.build_envelope(wire, signature, nonce, vault))

    async def execute_multi_sig(self, request: MultiSigRequest) -> ActionResult:
        if not request.action:
            raise RequestValidationError("hyperliquid: multi-sig inner action required")
        if not request.signatures:
            raise RequestValidationError("hyperliquid: at least one signature required")
        if not request.nonce:
            raise RequestValidationError("hyperliquid: nonce required")
        nonce = self.nonces.next_nonce(request.nonce)
        multi_sig_user = normalize_address(request.multi_sig_user)
        if not multi_sig_user:
            raise RequestValidationError("hyperliquid: multi-sig user required")

        wallet = await self.ensure_wallet()
        action = MultiSigAction(
            multi_sig_user=multi_sig_user,
            outer_signer=self.account_address or wallet.address,
            inner=request.action,
            signatures=tuple(
                {"r": sig["r"], "s": sig["s"], "v": sig["v"]}
                for sig in request.signatures
            ),
        )
        if request.vault_address is not None:
            vault = normalize_address(request.vault_address) or None
        else:
            vault = self.vault_address

        wire = action.to_wire()
        signature = sign_multi_sig_action(
            wallet, wire, self.is_mainnet, vault, nonce, self.expires_after
        )
        return await self._post(
            self.build_envelope(wire, signature, nonce, vault)
        )
