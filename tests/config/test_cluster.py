from __future__ import annotations

from pathlib import Path

import pytest

from stakesync.config import ConfigurationError, env_or_default, get_cluster_config
from stakesync.config.cluster import (
    COMMITMENT_ENV,
    DEFAULT_RPC_URL,
    KEYPAIR_ENV,
    RPC_URL_ENV,
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (RPC_URL_ENV, KEYPAIR_ENV, COMMITMENT_ENV):
        monkeypatch.delenv(name, raising=False)


def test_env_or_default_treats_blank_as_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STAKESYNC_EXAMPLE", "   ")

    assert env_or_default("STAKESYNC_EXAMPLE", "fallback") == "fallback"

    monkeypatch.setenv("STAKESYNC_EXAMPLE", " value ")

    assert env_or_default("STAKESYNC_EXAMPLE", "fallback") == "value"


def test_defaults_without_environment() -> None:
    config = get_cluster_config()

    assert config.rpc_url == DEFAULT_RPC_URL
    assert config.commitment == "confirmed"
    assert config.keypair_path == Path("~/.config/solana/id.json").expanduser()
    assert config.resilience.base_url == DEFAULT_RPC_URL


def test_environment_overrides_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(RPC_URL_ENV, "https://rpc.example")
    monkeypatch.setenv(COMMITMENT_ENV, "finalized")

    config = get_cluster_config()

    assert config.rpc_url == "https://rpc.example"
    assert config.commitment == "finalized"
    assert config.resilience.base_url == "https://rpc.example"


def test_explicit_arguments_win(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(RPC_URL_ENV, "https://rpc.example")

    config = get_cluster_config(rpc_url="http://localhost:8899", keypair_path="/tmp/id.json")

    assert config.rpc_url == "http://localhost:8899"
    assert config.keypair_path == Path("/tmp/id.json")


def test_unknown_commitment_is_rejected() -> None:
    with pytest.raises(ConfigurationError, match="Unsupported commitment"):
        get_cluster_config(commitment="recent")
