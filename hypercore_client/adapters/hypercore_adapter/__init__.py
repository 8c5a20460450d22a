from .adapter import HypercoreAdapter
from .exchange import Exchange
from .executor import ActionExecutor
from .info import InfoClient
from .websocket import WebsocketClient

__all__ = [
    "ActionExecutor",
    "Exchange",
    "HypercoreAdapter",
    "InfoClient",
    "WebsocketClient",
]
