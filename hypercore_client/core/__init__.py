from hypercore_client.core.adapters.BaseAdapter import BaseAdapter
from hypercore_client.core.config import SessionConfig, load_session_config
from hypercore_client.core.credentials import (
    CredentialProvider,
    Credentials,
    StaticCredentialProvider,
)

StatusTuple = tuple[bool, str]

__all__ = [
    "BaseAdapter",
    "CredentialProvider",
    "Credentials",
    "SessionConfig",
    "StaticCredentialProvider",
    "StatusTuple",
    "load_session_config",
]
