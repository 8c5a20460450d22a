from __future__ import annotations

import json
from pathlib import Path

import pytest

import hypercore_client.core.config as config
from hypercore_client.core.constants.base import (
    MAINNET_API_URL,
    MAINNET_WS_URL,
    TESTNET_API_URL,
    TESTNET_WS_URL,
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("HYPERCORE_CONFIG_PATH", raising=False)
    monkeypatch.delenv("HYPERCORE_CONFIG", raising=False)


def test_resolve_config_path_defaults_to_repo_root(
    clean_env: None, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.chdir(tmp_path)

    repo_root = Path(__file__).resolve().parents[2]
    assert config.resolve_config_path() == repo_root / "config.json"


def test_resolve_config_path_env_relative_is_repo_relative(
    clean_env: None, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv("HYPERCORE_CONFIG_PATH", "config.testnet.json")
    monkeypatch.chdir(tmp_path)

    repo_root = Path(__file__).resolve().parents[2]
    assert config.resolve_config_path() == repo_root / "config.testnet.json"


def test_resolve_config_path_env_absolute(
    clean_env: None, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    target = tmp_path / "custom.json"
    monkeypatch.setenv("HYPERCORE_CONFIG", str(target))
    assert config.resolve_config_path() == target


def test_load_config_json_missing_file(clean_env: None, tmp_path: Path) -> None:
    missing = tmp_path / "nope.json"
    assert config.load_config_json(missing) == {}
    with pytest.raises(FileNotFoundError):
        config.load_config_json(missing, require_exists=True)


def test_load_config_json_invalid_json_is_empty(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{not json")
    assert config.load_config_json(path) == {}


def test_load_session_config_reads_hypercore_section(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "hypercore": {
                    "api_url": TESTNET_API_URL + "/",
                    "http_timeout": 5,
                    "asset_cache_max_age": 300,
                    "expires_after": 1700000000000,
                    "vault_address": "0xVault",
                    "default_subscriptions": ["allMids"],
                    "wallet": {
                        "private_key_hex": " 0xabc ",
                        "address": "0xKey",
                        "account_address": "0xAccount",
                        "sub_account": "0xSub",
                    },
                }
            }
        )
    )

    session = config.load_session_config(path)

    assert session.api_url == TESTNET_API_URL
    assert session.ws_url == TESTNET_WS_URL
    assert session.is_mainnet is False
    assert session.http_timeout == 5.0
    assert session.asset_cache_max_age == 300.0
    assert session.expires_after == 1700000000000
    assert session.vault_address == "0xVault"
    assert session.default_subscriptions == ["allMids"]
    assert session.credentials.secret == "0xabc"
    assert session.credentials.client_id == "0xAccount"
    assert session.credentials.sub_account == "0xSub"


def test_session_config_defaults() -> None:
    session = config.SessionConfig.from_config({})
    assert session.api_url == MAINNET_API_URL
    assert session.ws_url == MAINNET_WS_URL
    assert session.is_mainnet is True
    assert session.credentials is None
    assert "webData2" in session.default_subscriptions


def test_explicit_network_override() -> None:
    session = config.SessionConfig(api_url="https://node.example.test", mainnet=False)
    assert session.is_mainnet is False

    session = config.SessionConfig.from_config(
        {"hypercore": {"api_url": "https://my-testnet-proxy.example", "mainnet": True}}
    )
    assert session.is_mainnet is True


def test_testnet_substring_detection() -> None:
    assert config.SessionConfig(api_url="https://TESTNET.proxy.example").is_mainnet is False
    assert config.SessionConfig(api_url="https://proxy.example").is_mainnet is True
