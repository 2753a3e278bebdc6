"""Tests for the landgit.config module."""

from pathlib import Path

import pytest

from landgit.config import (
    DEFAULT_FREE_TIER_BYTES,
    DEFAULT_GATEWAY_URL,
    DEFAULT_LEDGER_URL,
    RemoteConfig,
    load_config,
    working_dir_for_git_dir,
)


def _getter(values: dict[str, str]):
    return lambda key: values.get(key)


class TestLoadConfig:
    """Tests for loading the configuration."""

    def test_defaults(self):
        config = load_config(getter=_getter({}), environ={})
        assert config == RemoteConfig()
        assert config.ledger_url == DEFAULT_LEDGER_URL
        assert config.gateway_url == DEFAULT_GATEWAY_URL
        assert config.free_tier_bytes == DEFAULT_FREE_TIER_BYTES
        assert config.keyfile is None
        assert config.telemetry_url is None

    def test_git_config_values(self):
        getter = _getter(
            {
                "proland.keyfile": "/keys/wallet.json",
                "proland.thresholdCost": "0.25",
                "proland.gatewayUrl": "https://gateway.example/",
                "proland.freeTierBytes": "0",
            }
        )
        config = load_config(getter=getter, environ={})
        assert config.keyfile == Path("/keys/wallet.json")
        assert config.threshold_cost == 0.25
        assert config.gateway_url == "https://gateway.example"
        assert config.free_tier_bytes == 0

    def test_environment_overrides_git_config(self):
        """Verify that environment variables win over git config."""
        getter = _getter({"proland.ledgerUrl": "https://from-git"})
        environ = {"PROLAND_LEDGER_URL": "https://from-env", "PROLAND_TELEMETRY_URL": "https://t"}
        config = load_config(getter=getter, environ=environ)
        assert config.ledger_url == "https://from-env"
        assert config.telemetry_url == "https://t"

    def test_keyfile_expands_user(self, monkeypatch):
        monkeypatch.setenv("HOME", "/home/alice")
        config = load_config(getter=_getter({}), environ={"PROLAND_KEYFILE": "~/wallet.json"})
        assert config.keyfile == Path("/home/alice/wallet.json")

    def test_legacy_keys(self):
        getter = _getter(
            {
                "protocol.land.keyfile": "/keys/old.json",
                "protocol.land.thresholdCost": "0.5",
            }
        )
        config = load_config(getter=getter, environ={})
        assert config.keyfile == Path("/keys/old.json")
        assert config.threshold_cost == 0.5

    def test_proland_keys_win_over_legacy_keys(self):
        getter = _getter(
            {
                "proland.keyfile": "/keys/wallet.json",
                "protocol.land.keyfile": "/keys/old.json",
            }
        )
        config = load_config(getter=getter, environ={})
        assert config.keyfile == Path("/keys/wallet.json")

    @pytest.mark.parametrize(
        "key,value",
        [("proland.thresholdCost", "cheap"), ("proland.freeTierBytes", "1.5")],
    )
    def test_invalid_numbers(self, key, value):
        with pytest.raises(ValueError, match=key):
            load_config(getter=_getter({key: value}), environ={})


def test_working_dir_for_git_dir():
    assert working_dir_for_git_dir("/repo/.git") == Path("/repo/.git/.protocol.land")
