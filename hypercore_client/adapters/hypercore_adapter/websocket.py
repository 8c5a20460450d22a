from __future__ import annotations

import asyncio
import json
from collections.abc import Callable, Iterable, Sequence
from typing import Any

import websockets
from loguru import logger
from websockets.exceptions import ConnectionClosed

from hypercore_client.adapters.hypercore_adapter.ws_dispatcher import (
    ActiveAssetDataCache,
    MessageDispatcher,
)
from hypercore_client.adapters.hypercore_adapter.ws_subscriptions import (
    SUBSCRIBE,
    UNSUBSCRIBE,
    Channel,
    SubscriptionDescriptor,
    SubscriptionReconciler,
)
from hypercore_client.core.config import SessionConfig
from hypercore_client.core.constants import WS_PING_INTERVAL
from hypercore_client.core.errors import SubscriptionError

DEFAULT_CANDLE_INTERVAL = "1m"


def default_descriptors(
    channels: Iterable[str], coins: Sequence[str], user: str | None = None
) -> list[SubscriptionDescriptor]:
    """Expand channel names into concrete descriptors for ``coins`` and ``user``.

    Coins containing ``/`` are spot markets. Per-user channels are skipped when
    no user is known, as is ``activeAssetData`` for spot markets.
    """
    user = (user or "").strip().lower()
    perps = [c for c in coins if "/" not in c]
    spots = [c for c in coins if "/" in c]
    out: list[SubscriptionDescriptor] = []
    for name in channels:
        channel = Channel.parse(name)
        match channel:
            case Channel.ALL_MIDS:
                out.append(SubscriptionDescriptor(type=channel))
            case Channel.L2_BOOK | Channel.TRADES | Channel.BBO:
                out.extend(SubscriptionDescriptor(type=channel, coin=c) for c in coins)
            case Channel.CANDLE:
                out.extend(
                    SubscriptionDescriptor(
                        type=channel, coin=c, interval=DEFAULT_CANDLE_INTERVAL
                    )
                    for c in coins
                )
            case Channel.ACTIVE_ASSET_DATA:
                if user:
                    out.extend(
                        SubscriptionDescriptor(type=channel, coin=c, user=user)
                        for c in perps
                    )
            case Channel.ACTIVE_ASSET_CTX:
                out.extend(SubscriptionDescriptor(type=channel, coin=c) for c in perps)
            case Channel.ACTIVE_SPOT_ASSET_CTX:
                out.extend(SubscriptionDescriptor(type=channel, coin=c) for c in spots)
            case _:
                if user:
                    out.append(SubscriptionDescriptor(type=channel, user=user))
    return out


class WebsocketClient:
    """One venue WebSocket connection with a single background reader task."""

    def __init__(
        self,
        config: SessionConfig,
        *,
        reconciler: SubscriptionReconciler | None = None,
        dispatcher: MessageDispatcher | None = None,
        connect: Callable[..., Any] = websockets.connect,
    ) -> None:
        self.config = config
        self.reconciler = reconciler or SubscriptionReconciler()
        self.dispatcher = dispatcher or MessageDispatcher(
            self.reconciler, account_address=config.account_address
        )
        self._connect = connect
        self._ws: Any = None
        self._reader: asyncio.Task[None] | None = None
        self.logger = logger.bind(adapter=self.__class__.__name__)

    @property
    def events(self) -> asyncio.Queue[Any]:
        return self.dispatcher.queue

    @property
    def active_assets(self) -> ActiveAssetDataCache:
        return self.dispatcher.active_assets

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def connect(self) -> None:
        if self._ws is not None:
            return
        self.logger.info(f"Connecting to {self.config.ws_url}")
        self._ws = await self._connect(
            self.config.ws_url,
            ping_interval=WS_PING_INTERVAL,
            open_timeout=self.config.http_timeout,
        )
        self._reader = asyncio.create_task(self._read_loop())

    async def _read_loop(self) -> None:
        try:
            await self.dispatcher.consume(self._ws)
        except ConnectionClosed as exc:
            self.logger.info(f"Websocket closed: {exc}")
        finally:
            self._ws = None

    async def _send(self, method: str, descriptor: SubscriptionDescriptor) -> None:
        if self._ws is None:
            raise SubscriptionError("hyperliquid: websocket not connected")
        # Queue before sending so an ack can never arrive ahead of its entry.
        await self.reconciler.enqueue(method, descriptor)
        try:
            await self._ws.send(
                json.dumps({"method": method, "subscription": descriptor.to_wire()})
            )
        except Exception:
            await self.reconciler.dequeue(method, descriptor)
            raise

    async def subscribe(self, descriptors: Iterable[SubscriptionDescriptor]) -> None:
        validated = [d.validated() for d in descriptors]
        for descriptor in validated:
            await self._send(SUBSCRIBE, descriptor)

    async def unsubscribe(self, descriptors: Iterable[SubscriptionDescriptor]) -> None:
        validated = [d.validated() for d in descriptors]
        for descriptor in validated:
            await self._send(UNSUBSCRIBE, descriptor)

    async def subscribe_defaults(
        self, coins: Sequence[str], user: str | None = None
    ) -> list[SubscriptionDescriptor]:
        descriptors = default_descriptors(
            self.config.default_subscriptions,
            coins,
            user or self.config.account_address,
        )
        await self.subscribe(descriptors)
        return descriptors

    async def close(self) -> None:
        ws, reader = self._ws, self._reader
        self._reader = None
        if ws is not None:
            await ws.close()
        if reader is not None:
            await reader
        self._ws = None
