"""Blob transfer adapter.

Snapshot archives live in a content-addressed blob network. Uploads go
through an ordered list of providers (cheapest first) where each one is
attempted only if the previous one failed. Downloads go through the
gateway.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

import requests
from tqdm import tqdm

from .exceptions import UploadError

if TYPE_CHECKING:
    from .wallet import Wallet

log = logging.getLogger("landgit/blobs")


@dataclass(frozen=True)
class Tag:
    """A name/value pair attached to an uploaded blob."""

    name: str
    value: str


class BlobProvider(Protocol):
    """
    A single way of uploading a blob.

    Attributes:
        name: short name used in logs.
        free_tier_bytes: uploads up to this size cost the operator
            nothing; None means every upload is paid.

    Methods:
        upload_once: upload the buffer and return the blob id. Raises
            on failure; must not retry on its own.
    """

    name: str
    free_tier_bytes: int | None

    def upload_once(self, buffer: bytes, tags: list[Tag]) -> str: ...


def requires_payment(provider: BlobProvider, size: int) -> bool:
    """Return whether uploading size bytes through provider costs money."""
    return provider.free_tier_bytes is None or size > provider.free_tier_bytes


class UploadChain:
    """Try providers in order until one of them succeeds."""

    def __init__(self, providers: list[BlobProvider]) -> None:
        self.providers = list(providers)

    def requires_payment(self, size: int) -> bool:
        """Return whether no provider would take size bytes for free."""
        return all(requires_payment(p, size) for p in self.providers)

    def upload(self, buffer: bytes, tags: list[Tag]) -> tuple[str, str]:
        """
        Upload buffer and return (provider name, blob id).

        Each provider is attempted at most once.

        Raises:
            UploadError: carrying all provider errors, if every provider failed.
        """
        errors: list[tuple[str, Exception]] = []
        for provider in self.providers:
            log.info("uploading %d bytes via %s... start", len(buffer), provider.name)
            try:
                blob_id = provider.upload_once(buffer, tags)
            except Exception as exc:
                log.warning("uploading via %s... failure: %s", provider.name, exc)
                errors.append((provider.name, exc))
                continue
            log.info("uploading via %s... ok (%s)", provider.name, blob_id)
            return provider.name, blob_id
        raise UploadError(errors)


class _ProgressReader:
    """Wraps a bytes buffer to update a tqdm progress bar on each read."""

    def __init__(self, buffer: bytes, pbar: tqdm) -> None:
        self._buffer = memoryview(buffer)
        self._offset = 0
        self._pbar = pbar

    def __len__(self) -> int:
        return len(self._buffer)

    def read(self, size: int = -1) -> bytes:
        if size < 0:
            size = len(self._buffer) - self._offset
        chunk = self._buffer[self._offset : self._offset + size].tobytes()
        self._offset += len(chunk)
        if chunk:
            self._pbar.update(len(chunk))
        return chunk


def _tag_headers(tags: list[Tag]) -> dict[str, str]:
    headers = {"Content-Type": "application/octet-stream"}
    for tag in tags:
        headers[f"X-Tag-{tag.name}"] = tag.value
    return headers


class _HTTPProvider:
    """Provider posting the raw buffer to `{base_url}/tx` and reading back the id."""

    name = "http"
    free_tier_bytes: int | None = None

    def __init__(
        self,
        base_url: str,
        *,
        wallet: Wallet | None,
        session: requests.Session | None = None,
        timeout: float = 300.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.wallet = wallet
        self.session = session or requests.Session()
        self.timeout = timeout

    def upload_once(self, buffer: bytes, tags: list[Tag]) -> str:
        if self.wallet is None:
            raise ValueError(f"[{self.name}] no wallet supplied")
        headers = _tag_headers(tags)
        headers["X-Owner-Address"] = self.wallet.address
        with tqdm(
            total=len(buffer),
            unit="B",
            unit_scale=True,
            unit_divisor=1024,
            desc=self.name,
            file=sys.stderr,
            leave=False,
        ) as pbar:
            resp = self.session.post(
                f"{self.base_url}/tx",
                data=_ProgressReader(buffer, pbar),
                headers=headers,
                timeout=self.timeout,
            )
        if resp.status_code >= 400:
            raise RuntimeError(
                f"[{self.name}] posting blob failed: {resp.status_code} - {resp.reason}"
            )
        blob_id = resp.json().get("id")
        if not blob_id:
            raise RuntimeError(f"[{self.name}] response did not contain a blob id")
        return blob_id


class BundlerProvider(_HTTPProvider):
    """Subsidized bundling service: free up to free_tier_bytes."""

    name = "bundler"

    def __init__(self, base_url: str, *, free_tier_bytes: int | None, **kwargs) -> None:
        super().__init__(base_url, **kwargs)
        self.free_tier_bytes = free_tier_bytes


class GatewayProvider(_HTTPProvider):
    """Direct, always paid, upload through the gateway."""

    name = "gateway"


class BlobDownloader:
    """Download blobs from the gateway by id."""

    def __init__(
        self,
        gateway_url: str,
        *,
        session: requests.Session | None = None,
        timeout: float = 300.0,
    ) -> None:
        self.gateway_url = gateway_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def download(self, blob_id: str) -> bytes | None:
        """
        Return the blob content, or None when the gateway does not have it.

        Raises:
            requests.RequestException: on transport errors.
        """
        log.info("fetching %s... start", blob_id)
        resp = self.session.get(f"{self.gateway_url}/{blob_id}", stream=True, timeout=self.timeout)
        if resp.status_code == 404:
            log.warning("fetching %s... not found", blob_id)
            return None
        resp.raise_for_status()

        total = resp.headers.get("Content-Length")
        total = int(total) if total is not None else None
        chunks: list[bytes] = []
        with tqdm(
            total=total,
            unit="B",
            unit_scale=True,
            unit_divisor=1024,
            desc=blob_id[:12],
            file=sys.stderr,
            leave=False,
        ) as pbar:
            for chunk in resp.iter_content(chunk_size=8192):
                chunks.append(chunk)
                pbar.update(len(chunk))
        log.info("fetching %s... ok", blob_id)
        return b"".join(chunks)
