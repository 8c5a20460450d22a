from __future__ import annotations

import time
from collections.abc import Callable

from hypercore_client.core.errors import NegativeTimestampError, RequestValidationError

# Nonces are signed as uint64.
MAX_NONCE = 2**64 - 1


def _wall_clock_ms() -> int:
    return time.time_ns() // 1_000_000


class NonceSequencer:
    """Millisecond nonces from an injectable clock.

    The venue only requires nonces to be unique within its acceptance window,
    so no local monotonicity is enforced. Caller-supplied overrides must be a
    positive uint64.
    """

    def __init__(self, clock: Callable[[], int] | None = None) -> None:
        self._clock = clock or _wall_clock_ms

    def next_nonce(self, override: int | None = None) -> int:
        if override is not None:
            return validate_nonce(override)
        now = int(self._clock())
        if now < 0:
            raise NegativeTimestampError(now)
        return now


def validate_nonce(nonce: int) -> int:
    nonce = int(nonce)
    if not 0 < nonce <= MAX_NONCE:
        raise RequestValidationError(
            f"hyperliquid: nonce must be a positive uint64, got {nonce}"
        )
    return nonce
