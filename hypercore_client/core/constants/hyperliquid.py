from __future__ import annotations

MAINNET = "Mainnet"
TESTNET = "Testnet"

# signatureChainId carried by every user-signed action.
SIGNATURE_CHAIN_ID = "0x66eee"

MAINNET_BRIDGE_ADDRESS = "0x2df1c51e09aecf9cacb7bc98cb1742757f163df7"
TESTNET_BRIDGE_ADDRESS = "0x08cfc1b6b2dcf36a1480b99353a354aa8ac56f89"

QUOTE_ASSET = "USDC"
SPOT_ASSET_OFFSET = 10_000

CANDLE_INTERVALS: frozenset[str] = frozenset({"1m", "5m", "15m", "1h", "4h", "1d"})

CONNECTION_ESTABLISHED_MESSAGE = "Websocket connection established."
