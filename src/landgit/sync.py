"""Synchronization between the local cache and the ledger-backed remote.

Fetch side (`download_repo`): resolve the repository descriptor, reuse
the cached bare repository if it is fresh, otherwise download the
snapshot archive, unpack it, clone it as a bare repository and promote
it to cache entry.

Push side (`upload_repo`): called once git has pushed new objects into
the cached bare repository. The entry is marked dirty, packed, uploaded
through the provider chain and the new snapshot id is published to the
ledger. The dirty marker is cleared only once the local entry matches
what the ledger points to.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from tempfile import TemporaryDirectory

from rich.console import Console
from rich.prompt import Confirm

from . import archive, vcs
from .blobs import BlobDownloader, Tag, UploadChain
from .cache import DIRTY_MARKER_FILENAME, CacheStore
from .config import WORKING_DIR_NAME
from .exceptions import (
    CloneError,
    DownloadError,
    PublishError,
    RepositoryNotFoundError,
    UnpackError,
    UploadError,
)
from .ledger import MetadataClient, RepositoryDescriptor
from .pricing import CostEstimate, Pricing
from .wallet import Wallet

log = logging.getLogger("landgit/sync")

ConsentFunc = Callable[[RepositoryDescriptor, CostEstimate], "bool | None"]


class PushState(str, Enum):
    """State of the cache entry during one push."""

    CLEAN = "clean"
    DIRTY = "dirty"
    PUBLISHED = "published"
    UNPUBLISHED_FAILED = "unpublished_failed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True, kw_only=True)
class UploadOutcome:
    """
    Result of one push.

    Attributes:
        state: final state (PUBLISHED, CANCELLED, FAILED or UNPUBLISHED_FAILED).
        snapshot_id: the new snapshot id when the push was published.
        blob_id: the uploaded blob id, if the upload itself succeeded.
        error: the error that made the push fail, if any.
    """

    state: PushState
    snapshot_id: str | None = None
    blob_id: str | None = None
    error: Exception | None = None

    @property
    def success(self) -> bool:
        return self.state == PushState.PUBLISHED

    @property
    def cancelled(self) -> bool:
        return self.state == PushState.CANCELLED


def ask_on_terminal(descriptor: RepositoryDescriptor, estimate: CostEstimate) -> bool | None:
    """
    Ask the operator whether to proceed with a paid upload.

    Standard input is the remote-helper protocol channel, so we read
    the answer from the controlling terminal. Returns None when there
    is no terminal, meaning that we proceed without asking.
    """
    try:
        tty = open("/dev/tty")  # noqa: SIM115
    except OSError:
        log.info("no terminal available: uploading without asking for consent")
        return None
    with tty:
        return Confirm.ask(
            f"Upload '{descriptor.name}' snapshot of {estimate.describe()}?",
            console=Console(stderr=True),
            default=True,
            stream=tty,
        )


def snapshot_tags(descriptor: RepositoryDescriptor, wallet: Wallet | None) -> list[Tag]:
    """Return the tags attached to an uploaded snapshot archive."""
    return [
        Tag("App-Name", "Protocol.Land"),
        Tag("Content-Type", "application/zip"),
        Tag("Creator", wallet.address if wallet else ""),
        Tag("Title", descriptor.name),
        Tag("Description", descriptor.description),
        Tag("Type", "repo-update"),
    ]


class SyncOrchestrator:
    """Fetch and push flows composing the cache, the archive codec and the adapters."""

    def __init__(
        self,
        *,
        store: CacheStore,
        ledger: MetadataClient,
        downloader: BlobDownloader,
        uploads: UploadChain,
        pricing: Pricing,
        wallet: Wallet | None = None,
        consent: ConsentFunc = ask_on_terminal,
        threshold_cost: float | None = None,
        clone: Callable[[Path, Path], None] = vcs.clone_bare,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.downloader = downloader
        self.uploads = uploads
        self.pricing = pricing
        self.wallet = wallet
        self.consent = consent
        self.threshold_cost = threshold_cost
        self.clone = clone

    # Fetch side

    def resolve(self, repo_id: str) -> RepositoryDescriptor:
        """
        Return the descriptor for repo_id.

        Raises:
            RepositoryNotFoundError: if the ledger does not know the repository
                or cannot be queried.
        """
        try:
            descriptor = self.ledger.resolve(repo_id)
        except Exception as exc:
            log.warning("resolving %s... failure: %s", repo_id, exc)
            descriptor = None
        if descriptor is None:
            raise RepositoryNotFoundError(repo_id)
        return descriptor

    def download_repo(self, repo_id: str) -> RepositoryDescriptor:
        """
        Make sure the cache holds a fresh bare repository for repo_id.

        On return, `store.entry_path(descriptor.snapshot_id)` is a fresh
        cache entry.

        Raises:
            RepositoryNotFoundError: if the repository does not exist remotely.
            DownloadError: if the snapshot archive cannot be downloaded.
            UnpackError: if the snapshot archive is corrupt.
            CloneError: if git cannot create the bare repository.
        """
        log.info("getting latest repo '%s' into '%s'...", repo_id, self.store.working_dir)
        descriptor = self.resolve(repo_id)
        snapshot_id = descriptor.snapshot_id

        if self.store.is_fresh(snapshot_id):
            log.info("using cached repo in '%s'", self.store.entry_path(snapshot_id))
            return descriptor

        if self.store.exists(snapshot_id):
            log.warning("discarding cached repo %s: a previous sync was interrupted", snapshot_id)
            self.store.prune()

        buffer = self._download(snapshot_id)
        self._materialize(descriptor, buffer)
        self.store.prune(keep={snapshot_id})
        return descriptor

    def _download(self, snapshot_id: str) -> bytes:
        log.info("downloading snapshot %s...", snapshot_id)
        try:
            buffer = self.downloader.download(snapshot_id)
        except Exception as exc:
            raise DownloadError(f"failed to fetch snapshot {snapshot_id}: {exc}") from exc
        if buffer is None:
            raise DownloadError(f"snapshot {snapshot_id} not found")
        return buffer

    def _materialize(self, descriptor: RepositoryDescriptor, buffer: bytes) -> None:
        # Everything is built inside a scratch directory and renamed into
        # place at the end so a failure never leaves a cache entry behind.
        dest = self.store.entry_path(descriptor.snapshot_id)
        with TemporaryDirectory(dir=self.store.working_dir, prefix=".unpack-") as tmp:
            staging = Path(tmp) / "tree"
            staging.mkdir()
            log.info("unpacking downloaded repo...")
            if not archive.unpack(buffer, staging):
                raise UnpackError(f"cannot unpack snapshot {descriptor.snapshot_id}")

            tree = locate_tree(staging, descriptor)
            bare = Path(tmp) / "bare"
            log.info("preparing bare repository...")
            self.clone(tree, bare)
            try:
                os.replace(bare, dest)
            except OSError as exc:
                if self.store.is_fresh(descriptor.snapshot_id):
                    log.info("cache entry %s created concurrently", descriptor.snapshot_id)
                    return
                raise CloneError(f"cannot create cache entry {dest}: {exc}") from exc

    # Push side

    def upload_repo(self, source: Path, descriptor: RepositoryDescriptor) -> UploadOutcome:
        """
        Upload the repository at source as the new snapshot of descriptor.

        Never raises for upload or publish failures: the outcome tells
        whether the push was published, cancelled by the operator or failed.
        """
        snapshot_id = descriptor.snapshot_id
        self.store.mark_dirty(snapshot_id)

        log.info("packing repo...")
        ignore = {WORKING_DIR_NAME, DIRTY_MARKER_FILENAME} | archive.load_ignore_list(source)
        try:
            buffer = archive.pack(source, ignore, prefix=descriptor.id)
        except OSError as exc:
            log.error("packing repo... failure: %s", exc)
            return self._conclude(descriptor, UploadOutcome(state=PushState.FAILED, error=exc))

        estimate = self.pricing.estimate(len(buffer))
        log.info("snapshot size: %s", estimate.describe())

        if self._needs_consent(len(buffer), estimate):
            if self.consent(descriptor, estimate) is False:
                log.info("upload cancelled")
                return self._conclude(descriptor, UploadOutcome(state=PushState.CANCELLED))

        try:
            provider, blob_id = self.uploads.upload(buffer, snapshot_tags(descriptor, self.wallet))
        except UploadError as exc:
            log.error("%s", exc)
            return self._conclude(descriptor, UploadOutcome(state=PushState.FAILED, error=exc))
        log.info("posted snapshot via %s: %s", provider, blob_id)

        try:
            accepted = self.ledger.publish(descriptor.id, blob_id)
            if accepted != descriptor.id:
                raise PublishError(
                    f"ledger accepted repository {accepted!r} instead of {descriptor.id!r}",
                    blob_id=blob_id,
                )
        except Exception as exc:
            log.critical(
                "snapshot %s was uploaded but the ledger was not updated: %s",
                blob_id,
                exc,
            )
            error = exc
            if not isinstance(exc, PublishError):
                error = PublishError(str(exc), blob_id=blob_id)
            return self._conclude(
                descriptor,
                UploadOutcome(state=PushState.UNPUBLISHED_FAILED, blob_id=blob_id, error=error),
            )

        return self._conclude(
            descriptor,
            UploadOutcome(state=PushState.PUBLISHED, snapshot_id=blob_id, blob_id=blob_id),
        )

    def _needs_consent(self, size: int, estimate: CostEstimate) -> bool:
        if not self.uploads.requires_payment(size):
            return False
        if (
            self.threshold_cost is not None
            and estimate.cost_native is not None
            and estimate.cost_native <= self.threshold_cost
        ):
            return False
        return True

    def _conclude(self, descriptor: RepositoryDescriptor, outcome: UploadOutcome) -> UploadOutcome:
        old = descriptor.snapshot_id
        if outcome.success and outcome.snapshot_id is not None:
            new = outcome.snapshot_id
            # The entry is exactly what we uploaded, so it represents the new snapshot.
            self.store.promote(old, new)
            self.store.prune(keep={new})
            self.store.clear_dirty(new)
            return outcome
        # The entry holds objects the ledger does not know about: keep it
        # marked dirty so the next fetch rebuilds it from the ledger.
        self.store.prune(keep={old})
        return outcome


def locate_tree(staging: Path, descriptor: RepositoryDescriptor) -> Path:
    """
    Return the repository root inside an unpacked snapshot.

    Archives store the repository under a directory named by the
    repository id. The first snapshot of a fork still carries the
    parent's id, in which case we rename it to the fork's own id.
    """
    root = staging / descriptor.id
    if root.is_dir():
        return root
    if descriptor.fork_of and (staging / descriptor.fork_of).is_dir():
        log.info("renaming fork parent tree %s to %s", descriptor.fork_of, descriptor.id)
        (staging / descriptor.fork_of).rename(root)
        return root
    if descriptor.name and (staging / descriptor.name).is_dir():
        return staging / descriptor.name
    if (staging / "HEAD").is_file() or (staging / ".git").exists():
        return staging
    children = [child for child in staging.iterdir() if child.is_dir()]
    if len(children) == 1:
        return children[0]
    raise UnpackError(f"cannot find the repository inside snapshot {descriptor.snapshot_id}")
