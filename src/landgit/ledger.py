"""Ledger (metadata) client adapter.

The ledger holds the canonical metadata of each repository, including
the id of the latest snapshot archive. We only read descriptors and
propose snapshot id updates; the ledger contract itself is external.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

import requests
from dacite import from_dict

if TYPE_CHECKING:
    from .wallet import Wallet

log = logging.getLogger("landgit/ledger")

_UUID_RE = re.compile(
    r"^(?:[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}"
    r"|00000000-0000-0000-0000-000000000000)$",
    re.IGNORECASE,
)


@dataclass(frozen=True, kw_only=True)
class RepositoryDescriptor:
    """Remote-side metadata record for one repository."""

    id: str
    name: str
    snapshot_id: str
    owner: str
    description: str = ""
    contributors: list[str] = field(default_factory=list)
    fork: bool = False
    fork_of: str | None = None


def descriptor_from_ledger(data: dict) -> RepositoryDescriptor:
    """
    Convert a ledger record into a RepositoryDescriptor.

    The ledger calls the snapshot id `dataTxId` and the fork parent `parent`.

    Raises:
        dacite.DaciteError: if the record misses fields or has wrong types.
    """
    renamed = {
        "id": data.get("id"),
        "name": data.get("name"),
        "snapshot_id": data.get("dataTxId"),
        "owner": data.get("owner"),
        "description": data.get("description") or "",
        "contributors": data.get("contributors") or [],
        "fork": bool(data.get("fork")),
        "fork_of": data.get("parent"),
    }
    return from_dict(RepositoryDescriptor, renamed)


def is_valid_uuid(value: str) -> bool:
    """Return whether value is a repository UUID."""
    return _UUID_RE.match(value) is not None


def repo_id_from_url(url: str) -> str:
    """Strip the scheme from a remote URL (e.g., `proland://ID` -> `ID`)."""
    return re.sub(r"^.*://", "", url)


class MetadataClient(Protocol):
    """
    Contract fulfilled by the ledger collaborator.

    Methods:
        resolve: return the descriptor for a repository id (a UUID or
            an `owner/name` pair) or None when it does not exist.
        publish: record a new snapshot id for the repository and return
            the accepted repository id. Must raise on failure.
    """

    def resolve(self, repo_id: str) -> RepositoryDescriptor | None: ...

    def publish(self, repo_id: str, snapshot_id: str) -> str: ...


class HTTPMetadataClient:
    """
    MetadataClient talking JSON to a ledger gateway.

    Endpoints:

        GET  {base}/repos/{id}
        GET  {base}/repos/by-name/{owner}/{name}
        POST {base}/repos/{id}/snapshot   {"snapshotId": ..., "address": ...}
    """

    def __init__(
        self,
        base_url: str,
        *,
        wallet: Wallet | None = None,
        session: requests.Session | None = None,
        timeout: float = 60.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.wallet = wallet
        self.session = session or requests.Session()
        self.timeout = timeout

    def resolve(self, repo_id: str) -> RepositoryDescriptor | None:
        if is_valid_uuid(repo_id):
            url = f"{self.base_url}/repos/{repo_id}"
        else:
            owner, _, name = repo_id.partition("/")
            if not owner or not name:
                log.warning("invalid repository id: %s", repo_id)
                return None
            url = f"{self.base_url}/repos/by-name/{owner}/{name}"

        log.debug("resolving %s... start", repo_id)
        resp = self.session.get(url, timeout=self.timeout)
        if resp.status_code == 404:
            log.debug("resolving %s... not found", repo_id)
            return None
        resp.raise_for_status()
        result = resp.json().get("result")
        if not result:
            return None
        log.debug("resolving %s... ok", repo_id)
        return descriptor_from_ledger(result)

    def publish(self, repo_id: str, snapshot_id: str) -> str:
        if not repo_id or not snapshot_id:
            raise ValueError("publishing requires both a repository id and a snapshot id")
        if self.wallet is None:
            raise ValueError("publishing requires a wallet")
        resp = self.session.post(
            f"{self.base_url}/repos/{repo_id}/snapshot",
            json={"snapshotId": snapshot_id, "address": self.wallet.address},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json().get("id", repo_id)
