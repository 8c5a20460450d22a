"""Subscription bookkeeping for the WebSocket feed.

The venue acknowledges a subscribe or unsubscribe by echoing the
subscription's own fields, with no client-chosen correlation id. Pending
requests are therefore keyed by a content fingerprint and queued FIFO, so two
identical requests in flight are matched to their acks in the order they were
sent.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict, deque
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, fields, replace
from enum import StrEnum
from typing import Any

from loguru import logger
from pydantic import ValidationError

from hypercore_client.adapters.hypercore_adapter.ws_models import SubscriptionAck
from hypercore_client.core.constants.hyperliquid import CANDLE_INTERVALS
from hypercore_client.core.errors import (
    DuplicateSubscriptionError,
    RequestValidationError,
    SubscriptionAckError,
    SubscriptionDecodeError,
    SubscriptionNotFoundError,
)

SUBSCRIBE = "subscribe"
UNSUBSCRIBE = "unsubscribe"


class Channel(StrEnum):
    ALL_MIDS = "allMids"
    L2_BOOK = "l2Book"
    TRADES = "trades"
    CANDLE = "candle"
    BBO = "bbo"
    ACTIVE_ASSET_DATA = "activeAssetData"
    ACTIVE_ASSET_CTX = "activeAssetCtx"
    ACTIVE_SPOT_ASSET_CTX = "activeSpotAssetCtx"
    USER_EVENTS = "userEvents"
    USER_FILLS = "userFills"
    ORDER_UPDATES = "orderUpdates"
    USER_FUNDINGS = "userFundings"
    USER_NON_FUNDING_LEDGER_UPDATES = "userNonFundingLedgerUpdates"
    WEB_DATA2 = "webData2"

    @classmethod
    def parse(cls, value: str) -> Channel:
        needle = (value or "").strip().lower()
        for member in cls:
            if member.value.lower() == needle:
                return member
        raise RequestValidationError(
            f"hyperliquid: unsupported subscription channel {value}"
        )

    @property
    def requires_coin(self) -> bool:
        return self in _MARKET_CHANNELS

    @property
    def requires_user(self) -> bool:
        return self in _USER_CHANNELS or self is Channel.ACTIVE_ASSET_DATA


_MARKET_CHANNELS = frozenset(
    {
        Channel.L2_BOOK,
        Channel.TRADES,
        Channel.CANDLE,
        Channel.BBO,
        Channel.ACTIVE_ASSET_DATA,
        Channel.ACTIVE_ASSET_CTX,
        Channel.ACTIVE_SPOT_ASSET_CTX,
    }
)

_USER_CHANNELS = frozenset(
    {
        Channel.USER_EVENTS,
        Channel.USER_FILLS,
        Channel.ORDER_UPDATES,
        Channel.USER_FUNDINGS,
        Channel.USER_NON_FUNDING_LEDGER_UPDATES,
        Channel.WEB_DATA2,
    }
)


@dataclass(frozen=True)
class SubscriptionDescriptor:
    type: str
    coin: str = ""
    interval: str = ""
    user: str = ""
    dex: str = ""

    def fingerprint(self) -> str:
        return "|".join(
            value.lower()
            for value in (self.type, self.coin, self.interval, self.user, self.dex)
        )

    def describe(self) -> str:
        return ", ".join(
            f"{f.name}={getattr(self, f.name)}"
            for f in fields(self)
            if getattr(self, f.name)
        )

    def to_wire(self) -> dict[str, str]:
        return {
            f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name)
        }

    @classmethod
    def from_ack(
        cls, subscription: Mapping[str, Any] | None
    ) -> SubscriptionDescriptor:
        if not subscription:
            raise SubscriptionDecodeError("hyperliquid: subscription ack missing payload")
        type_ = subscription.get("type")
        if not isinstance(type_, str) or not type_:
            raise SubscriptionDecodeError("hyperliquid: subscription ack missing type")

        def _str(key: str) -> str:
            value = subscription.get(key)
            return value if isinstance(value, str) else ""

        return cls(
            type=type_,
            coin=_str("coin"),
            interval=_str("interval"),
            user=_str("user"),
            dex=_str("dex"),
        )

    def validated(self) -> SubscriptionDescriptor:
        """Return a normalised copy, or raise if the channel's fields are incomplete."""
        channel = Channel.parse(self.type)
        coin = self.coin.strip()
        user = self.user.strip().lower()
        if channel.requires_coin and not coin:
            raise RequestValidationError(
                f"hyperliquid: {channel} subscription missing market identifier"
            )
        if channel.requires_user and not user:
            raise RequestValidationError(
                f"hyperliquid: {channel} subscription missing user"
            )
        if channel is Channel.CANDLE and self.interval.lower() not in CANDLE_INTERVALS:
            raise RequestValidationError(
                f"hyperliquid: unsupported kline interval {self.interval!r}"
            )
        return replace(
            self,
            type=channel.value,
            coin=coin,
            interval=self.interval.lower(),
            user=user,
            dex=self.dex.strip(),
        )


class SubscriptionRegistry:
    """Active subscriptions keyed by fingerprint."""

    def __init__(self) -> None:
        self._active: dict[str, SubscriptionDescriptor] = {}

    def add(self, descriptor: SubscriptionDescriptor) -> None:
        key = descriptor.fingerprint()
        if key in self._active:
            raise DuplicateSubscriptionError(key)
        self._active[key] = descriptor

    def remove(self, descriptor: SubscriptionDescriptor) -> None:
        key = descriptor.fingerprint()
        if key not in self._active:
            raise SubscriptionNotFoundError(key)
        del self._active[key]

    def find(self, fingerprint: str) -> SubscriptionDescriptor | None:
        return self._active.get(fingerprint)

    def __contains__(self, descriptor: object) -> bool:
        return (
            isinstance(descriptor, SubscriptionDescriptor)
            and descriptor.fingerprint() in self._active
        )

    def __iter__(self) -> Iterator[SubscriptionDescriptor]:
        return iter(list(self._active.values()))

    def __len__(self) -> int:
        return len(self._active)


class SubscriptionReconciler:
    def __init__(self, registry: SubscriptionRegistry | None = None) -> None:
        self.registry = registry if registry is not None else SubscriptionRegistry()
        self._pending: defaultdict[str, deque[tuple[str, SubscriptionDescriptor]]] = (
            defaultdict(deque)
        )
        self._lock = asyncio.Lock()

    async def enqueue(self, method: str, descriptor: SubscriptionDescriptor) -> None:
        async with self._lock:
            self._pending[descriptor.fingerprint()].append(
                (method.lower(), descriptor)
            )

    async def dequeue(
        self, method: str, descriptor: SubscriptionDescriptor
    ) -> SubscriptionDescriptor | None:
        method = method.lower()
        key = descriptor.fingerprint()
        async with self._lock:
            queue = self._pending.get(key)
            if not queue:
                return None
            for i, (pending_method, pending) in enumerate(queue):
                if pending_method == method:
                    del queue[i]
                    if not queue:
                        del self._pending[key]
                    return pending
        return None

    def pending_count(self) -> int:
        return sum(len(q) for q in self._pending.values())

    async def handle_ack(self, ack: Mapping[str, Any]) -> SubscriptionDescriptor | None:
        """Match an ack to its pending request and update the active registry.

        Returns the descriptor that was added or removed, or ``None`` for an
        unsolicited unsubscribe ack with nothing to remove.
        """
        try:
            parsed = SubscriptionAck.model_validate(ack)
        except ValidationError as exc:
            raise SubscriptionDecodeError(
                f"hyperliquid: decode subscription ack: {exc}"
            ) from exc

        echoed = SubscriptionDescriptor.from_ack(parsed.subscription)
        method = parsed.method.strip().lower() or SUBSCRIBE
        pending = await self.dequeue(method, echoed)

        if parsed.error:
            raise SubscriptionAckError(method, echoed.describe(), parsed.error)

        if method == SUBSCRIBE:
            if pending is None:
                try:
                    pending = echoed.validated()
                except RequestValidationError as exc:
                    raise SubscriptionDecodeError(str(exc)) from exc
            try:
                self.registry.add(pending)
            except DuplicateSubscriptionError:
                logger.debug(f"Subscription {echoed.describe()} already active")
            return pending

        if method == UNSUBSCRIBE:
            if pending is None:
                pending = self.registry.find(echoed.fingerprint())
                if pending is None:
                    return None
            try:
                self.registry.remove(pending)
            except SubscriptionNotFoundError:
                logger.debug(f"Subscription {echoed.describe()} was not active")
            return pending

        raise SubscriptionDecodeError(
            f"hyperliquid: unsupported subscription ack method {parsed.method}"
        )
