from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Mapping
from types import MappingProxyType
from typing import Any

from loguru import logger

from hypercore_client.core.errors import UnknownCoinError

MetaFetcher = Callable[[], Awaitable[Mapping[str, Any]]]

_EMPTY: Mapping[str, int] = MappingProxyType({})


def build_asset_map(meta: Mapping[str, Any]) -> dict[str, int]:
    """Map upper-cased coin names to their position in ``meta.universe``.

    Delisted markets are skipped but still consume their index.
    """
    out: dict[str, int] = {}
    for idx, entry in enumerate(meta.get("universe") or []):
        if not isinstance(entry, Mapping) or entry.get("isDelisted"):
            continue
        name = str(entry.get("name") or "").strip().upper()
        if name:
            out[name] = idx
    return out


class AssetResolver:
    """Perp coin → asset index cache.

    ``lookup`` only reads the current snapshot. ``refresh`` fetches metadata
    without holding the lock and then swaps in a complete new snapshot, so
    readers never see a partially built map. With ``max_age`` set, a snapshot
    older than that many seconds reads as empty.
    """

    def __init__(
        self,
        fetch_meta: MetaFetcher,
        *,
        max_age: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetch_meta = fetch_meta
        self._max_age = max_age
        self._clock = clock
        self._lock = asyncio.Lock()
        self._assets: Mapping[str, int] = _EMPTY
        self._built_at: float | None = None

    def _fresh(self) -> bool:
        if self._built_at is None:
            return False
        if self._max_age is None:
            return True
        return self._clock() - self._built_at <= self._max_age

    def lookup(self, coin: str) -> int | None:
        if not self._fresh():
            return None
        return self._assets.get(coin.strip().upper())

    async def refresh(self) -> None:
        meta = await self._fetch_meta()
        assets = MappingProxyType(build_asset_map(meta or {}))
        async with self._lock:
            self._assets = assets
            self._built_at = self._clock()
        logger.debug(f"Asset cache rebuilt with {len(assets)} listed markets")

    async def asset_id(self, coin: str) -> int:
        if (idx := self.lookup(coin)) is not None:
            return idx
        await self.refresh()
        if (idx := self.lookup(coin)) is not None:
            return idx
        raise UnknownCoinError(coin.strip().upper())

    async def reset(self) -> None:
        async with self._lock:
            self._assets = _EMPTY
            self._built_at = None

    def snapshot(self) -> dict[str, int]:
        return dict(self._assets) if self._fresh() else {}
