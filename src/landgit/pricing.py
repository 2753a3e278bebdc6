"""Cost estimation for uploading snapshot archives."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Final

import requests

log = logging.getLogger("landgit/pricing")

WINSTON_PER_NATIVE: Final[int] = 10**12

DEFAULT_FIAT_PRICE_URL: Final[str] = (
    "https://api.coingecko.com/api/v3/simple/price?ids=arweave&vs_currencies=usd"
)

_SIZES: Final[tuple[str, ...]] = ("Bytes", "KB", "MB", "GB", "TB", "PB", "EB", "ZB", "YB")


@dataclass(frozen=True, kw_only=True)
class CostEstimate:
    """
    Estimated cost of uploading an archive.

    Cost fields are None when the pricing services are unreachable.
    """

    human_size: str
    cost_native: float | None
    cost_fiat: float | None

    def describe(self) -> str:
        """Return a short human readable description."""
        if self.cost_native is None:
            return f"{self.human_size} (cost unknown)"
        text = f"{self.human_size} (~{self.cost_native:.5g} AR"
        if self.cost_fiat is not None:
            text += f", ~${self.cost_fiat:.5g}"
        return text + ")"


def format_bytes(size: int) -> str:
    """Format a size in bytes using 1024 steps (e.g., 1536 -> '1.5 KB')."""
    if size <= 0:
        return "0 Bytes"
    index = 0
    while size >= 1024 ** (index + 1) and index < len(_SIZES) - 1:
        index += 1
    value = round(size / 1024**index, 2)
    return f"{value:g} {_SIZES[index]}"


class Pricing:
    """Estimate upload costs using the gateway price endpoint."""

    def __init__(
        self,
        gateway_url: str,
        *,
        fiat_price_url: str = DEFAULT_FIAT_PRICE_URL,
        session: requests.Session | None = None,
        timeout: float = 15.0,
    ) -> None:
        self.gateway_url = gateway_url.rstrip("/")
        self.fiat_price_url = fiat_price_url
        self.session = session or requests.Session()
        self.timeout = timeout

    def winston_for_bytes(self, size: int) -> int:
        resp = self.session.get(f"{self.gateway_url}/price/{size}", timeout=self.timeout)
        resp.raise_for_status()
        return int(resp.text.strip())

    def fiat_per_native(self) -> float:
        resp = self.session.get(self.fiat_price_url, timeout=self.timeout)
        resp.raise_for_status()
        return float(resp.json()["arweave"]["usd"])

    def estimate(self, size: int) -> CostEstimate:
        """Return the estimated cost for size bytes; never raises on network errors."""
        human = format_bytes(size)
        try:
            native = self.winston_for_bytes(size) / WINSTON_PER_NATIVE
        except (requests.RequestException, ValueError) as exc:
            log.warning("cannot estimate upload cost: %s", exc)
            return CostEstimate(human_size=human, cost_native=None, cost_fiat=None)
        try:
            fiat = native * self.fiat_per_native()
        except (requests.RequestException, ValueError, KeyError) as exc:
            log.debug("cannot fetch fiat price: %s", exc)
            fiat = None
        return CostEstimate(human_size=human, cost_native=native, cost_fiat=fiat)
