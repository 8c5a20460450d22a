import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from loguru import logger

from hypercore_client.core.constants.base import (
    DEFAULT_HTTP_TIMEOUT,
    MAINNET_API_URL,
    TESTNET_API_URL,
)
from hypercore_client.core.credentials import Credentials

_CONFIG_ENV_KEYS = ("HYPERCORE_CONFIG_PATH", "HYPERCORE_CONFIG")
_DEFAULT_CONFIG_FILENAME = "config.json"
_SECTION = "hypercore"

_KNOWN_HOSTS = frozenset(
    urlparse(url).hostname for url in (MAINNET_API_URL, TESTNET_API_URL)
)

DEFAULT_SUBSCRIPTIONS: tuple[str, ...] = (
    "allMids",
    "l2Book",
    "trades",
    "candle",
    "bbo",
    "activeAssetData",
    "activeAssetCtx",
    "activeSpotAssetCtx",
    "userEvents",
    "userFills",
    "orderUpdates",
    "userFundings",
    "userNonFundingLedgerUpdates",
    "webData2",
)


def _find_project_root(start: Path) -> Path | None:
    cur = start.resolve()
    for parent in [cur, *cur.parents]:
        if (parent / "pyproject.toml").exists():
            return parent
    return None


def _project_root() -> Path | None:
    return _find_project_root(Path.cwd()) or _find_project_root(Path(__file__).parent)


def resolve_config_path(path: str | Path | None = None) -> Path:
    if path is not None:
        return Path(path).expanduser()

    env_path = next(
        (os.getenv(k, "").strip() for k in _CONFIG_ENV_KEYS if os.getenv(k)), ""
    )
    if env_path:
        p = Path(env_path).expanduser()
        if p.is_absolute():
            return p
        root = _project_root()
        return (root / p) if root else p

    root = _project_root()
    return (root / _DEFAULT_CONFIG_FILENAME) if root else Path(_DEFAULT_CONFIG_FILENAME)


def load_config_json(
    path: str | Path | None = None, *, require_exists: bool = False
) -> dict[str, Any]:
    cfg_path = resolve_config_path(path)
    if not cfg_path.exists():
        if require_exists:
            raise FileNotFoundError(f"Config file not found: {cfg_path}")
        return {}
    try:
        return json.loads(cfg_path.read_text())
    except (OSError, ValueError):
        return {}


def _str(value: Any) -> str:
    return str(value).strip() if value is not None else ""


@dataclass
class SessionConfig:
    """Per-session settings handed to every component that needs them.

    Nothing here is global: two sessions built from different configs
    (say mainnet and testnet) can live in the same process.
    """

    api_url: str = MAINNET_API_URL
    ws_url: str = ""
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    asset_cache_max_age: float | None = None
    expires_after: int | None = None
    vault_address: str | None = None
    account_address: str | None = None
    default_subscriptions: list[str] = field(
        default_factory=lambda: list(DEFAULT_SUBSCRIPTIONS)
    )
    credentials: Credentials | None = None
    mainnet: bool | None = None

    def __post_init__(self) -> None:
        self.api_url = self.api_url.rstrip("/")
        if not self.ws_url:
            self.ws_url = "ws" + self.api_url[len("http") :] + "/ws"
        host = urlparse(self.api_url).hostname
        if self.mainnet is None and host not in _KNOWN_HOSTS and self.is_mainnet:
            logger.warning(
                f"Custom API host {host!r} has no 'testnet' in its URL; signing for mainnet"
            )

    @property
    def is_mainnet(self) -> bool:
        if self.mainnet is not None:
            return self.mainnet
        return "testnet" not in self.api_url.lower()

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "SessionConfig":
        section = config.get(_SECTION) or {}
        wallet = section.get("wallet") or {}

        credentials = None
        secret = _str(wallet.get("private_key_hex") or wallet.get("private_key"))
        if secret:
            credentials = Credentials(
                secret=secret,
                key=_str(wallet.get("address")),
                client_id=_str(wallet.get("account_address")),
                sub_account=_str(wallet.get("sub_account")),
            )

        kwargs: dict[str, Any] = {"credentials": credentials}
        for key in ("api_url", "ws_url", "vault_address", "account_address"):
            if value := _str(section.get(key)):
                kwargs[key] = value
        if (timeout := section.get("http_timeout")) is not None:
            kwargs["http_timeout"] = float(timeout)
        if (max_age := section.get("asset_cache_max_age")) is not None:
            kwargs["asset_cache_max_age"] = float(max_age)
        if (expires := section.get("expires_after")) is not None:
            kwargs["expires_after"] = int(expires)
        if (subs := section.get("default_subscriptions")) is not None:
            kwargs["default_subscriptions"] = [str(s) for s in subs]
        if (mainnet := section.get("mainnet")) is not None:
            kwargs["mainnet"] = bool(mainnet)
        return cls(**kwargs)


def load_session_config(
    path: str | Path | None = None, *, require_exists: bool = False
) -> SessionConfig:
    """Load the ``hypercore`` section of the config file into a SessionConfig."""
    return SessionConfig.from_config(
        load_config_json(path, require_exists=require_exists)
    )
