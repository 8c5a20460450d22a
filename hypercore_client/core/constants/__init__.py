from .base import (
    DEFAULT_HTTP_TIMEOUT,
    EXCHANGE_PATH,
    INFO_PATH,
    MAINNET_API_URL,
    MAINNET_WS_URL,
    TESTNET_API_URL,
    TESTNET_WS_URL,
    WS_PING_INTERVAL,
)

__all__ = [
    "DEFAULT_HTTP_TIMEOUT",
    "EXCHANGE_PATH",
    "INFO_PATH",
    "MAINNET_API_URL",
    "MAINNET_WS_URL",
    "TESTNET_API_URL",
    "TESTNET_WS_URL",
    "WS_PING_INTERVAL",
]
