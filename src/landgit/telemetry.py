"""Best-effort usage telemetry.

Telemetry must never change the outcome of a fetch or a push, therefore
every failure is logged at debug level and otherwise ignored.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import requests

if TYPE_CHECKING:
    from .wallet import Wallet

log = logging.getLogger("landgit/telemetry")

PLATFORM = "landgit/git-remote-helper"


class Telemetry:
    """Send usage events to url, or do nothing when url is None."""

    def __init__(
        self,
        url: str | None,
        *,
        wallet: Wallet | None = None,
        session: requests.Session | None = None,
        timeout: float = 5.0,
    ) -> None:
        self.url = url
        self.wallet = wallet
        self.session = session
        self.timeout = timeout

    def track(self, category: str, action: str, label: str, data: dict[str, Any]) -> None:
        if not self.url:
            return
        event = {
            "category": category,
            "action": action,
            "label": label,
            "platform": PLATFORM,
            "user_id": self.wallet.address if self.wallet else None,
            **data,
        }
        try:
            session = self.session or requests.Session()
            session.post(self.url, json=event, timeout=self.timeout)
        except Exception as exc:
            log.debug("telemetry event %s/%s dropped: %s", category, action, exc)

    def repository_updated(self, data: dict[str, Any]) -> None:
        self.track("Repository", "Add files to repo", "Add files", data)

    def repository_cloned(self, data: dict[str, Any]) -> None:
        self.track("Repository", "Clone a repo", "Clone repo", data)
