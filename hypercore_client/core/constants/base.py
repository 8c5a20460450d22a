DEFAULT_HTTP_TIMEOUT = 30.0  # HTTP client timeout

MAINNET_API_URL = "https://api.hyperliquid.xyz"
TESTNET_API_URL = "https://api.hyperliquid-testnet.xyz"
MAINNET_WS_URL = "wss://api.hyperliquid.xyz/ws"
TESTNET_WS_URL = "wss://api.hyperliquid-testnet.xyz/ws"

INFO_PATH = "/info"
EXCHANGE_PATH = "/exchange"

WS_PING_INTERVAL = 20.0
