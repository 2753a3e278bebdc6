"""Module containing the landgit configuration.

Settings are read from git config so they can be set per repository or
globally (`git config --global proland.keyfile ...`). Each key can be
overridden by an environment variable, which is handy in CI.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from . import vcs

# Name of the scratch directory we create inside $GIT_DIR
WORKING_DIR_NAME: Final[str] = ".protocol.land"

# Name of the directory reserved for the ledger client's own cache
LEDGER_CACHE_DIR_NAME: Final[str] = "cache"

DEFAULT_LEDGER_URL: Final[str] = "https://ledger.protocol.land"
DEFAULT_GATEWAY_URL: Final[str] = "https://arweave.net"
DEFAULT_BUNDLER_URL: Final[str] = "https://node2.bundlr.network"
DEFAULT_FREE_TIER_BYTES: Final[int] = 100 * 1024

# git config key -> environment variable
_KEYS: Final[dict[str, str]] = {
    "proland.keyfile": "PROLAND_KEYFILE",
    "proland.thresholdCost": "PROLAND_THRESHOLD_COST",
    "proland.ledgerUrl": "PROLAND_LEDGER_URL",
    "proland.gatewayUrl": "PROLAND_GATEWAY_URL",
    "proland.bundlerUrl": "PROLAND_BUNDLER_URL",
    "proland.freeTierBytes": "PROLAND_FREE_TIER_BYTES",
    "proland.telemetryUrl": "PROLAND_TELEMETRY_URL",
}

# Keys read by earlier releases of the helper, consulted when the
# proland.* key is unset
_LEGACY_KEYS: Final[dict[str, str]] = {
    "proland.keyfile": "protocol.land.keyfile",
    "proland.thresholdCost": "protocol.land.thresholdCost",
}


@dataclass(frozen=True, kw_only=True)
class RemoteConfig:
    """
    Configuration of the remote helper.

    Attributes:
        keyfile: path to the wallet JWK file, if any.
        threshold_cost: cost (in native units) below which we upload
            without asking for consent, if any.
        ledger_url: base URL of the ledger gateway.
        gateway_url: base URL of the blob gateway (downloads, pricing).
        bundler_url: base URL of the subsidized bundling service.
        free_tier_bytes: size up to which the bundler uploads for free.
        telemetry_url: where to send usage events; None disables them.
    """

    keyfile: Path | None = None
    threshold_cost: float | None = None
    ledger_url: str = DEFAULT_LEDGER_URL
    gateway_url: str = DEFAULT_GATEWAY_URL
    bundler_url: str = DEFAULT_BUNDLER_URL
    free_tier_bytes: int = DEFAULT_FREE_TIER_BYTES
    telemetry_url: str | None = None


def load_config(
    *,
    getter: Callable[[str], str | None] = vcs.config_get,
    environ: Mapping[str, str] | None = None,
) -> RemoteConfig:
    """
    Build a RemoteConfig from the environment and git config.

    Raises:
        ValueError: if a numeric setting cannot be parsed.
    """
    env = os.environ if environ is None else environ
    values: dict[str, str] = {}
    for key, envvar in _KEYS.items():
        value = env.get(envvar) or getter(key)
        if not value and key in _LEGACY_KEYS:
            value = getter(_LEGACY_KEYS[key])
        if value:
            values[key] = value

    keyfile = values.get("proland.keyfile")
    threshold = values.get("proland.thresholdCost")
    free_tier = _parse_number(values.get("proland.freeTierBytes"), "proland.freeTierBytes", int)
    return RemoteConfig(
        keyfile=Path(keyfile).expanduser() if keyfile else None,
        threshold_cost=_parse_number(threshold, "proland.thresholdCost", float),
        ledger_url=values.get("proland.ledgerUrl", DEFAULT_LEDGER_URL).rstrip("/"),
        gateway_url=values.get("proland.gatewayUrl", DEFAULT_GATEWAY_URL).rstrip("/"),
        bundler_url=values.get("proland.bundlerUrl", DEFAULT_BUNDLER_URL).rstrip("/"),
        free_tier_bytes=DEFAULT_FREE_TIER_BYTES if free_tier is None else free_tier,
        telemetry_url=values.get("proland.telemetryUrl"),
    )


def _parse_number(value, key, kind):
    if value is None:
        return None
    try:
        return kind(value)
    except ValueError as exc:
        raise ValueError(f"invalid value for {key}: {value!r}") from exc


def working_dir_for_git_dir(git_dir: str | Path) -> Path:
    """Return the scratch directory used for the remote inside $GIT_DIR."""
    return Path(git_dir) / WORKING_DIR_NAME
