"""Shared pytest fixtures for landgit tests."""

from __future__ import annotations

import io
import shutil
import zipfile
from pathlib import Path

import pytest

from landgit.blobs import UploadChain
from landgit.cache import CacheStore
from landgit.ledger import RepositoryDescriptor
from landgit.pricing import CostEstimate
from landgit.sync import SyncOrchestrator

REPO_ID = "6ace6247-d267-463d-b5bd-7e50d98c3693"
PARENT_ID = "0b1b2c3d-0000-4000-8000-000000000001"
OWNER = "owner-address"


class FakeLedger:
    """In-memory MetadataClient recording every call."""

    def __init__(self, descriptors: dict[str, RepositoryDescriptor] | None = None):
        self.descriptors = dict(descriptors or {})
        self.resolve_calls: list[str] = []
        self.publish_calls: list[tuple[str, str]] = []
        self.publish_error: Exception | None = None

    def resolve(self, repo_id: str) -> RepositoryDescriptor | None:
        self.resolve_calls.append(repo_id)
        return self.descriptors.get(repo_id)

    def publish(self, repo_id: str, snapshot_id: str) -> str:
        self.publish_calls.append((repo_id, snapshot_id))
        if self.publish_error is not None:
            raise self.publish_error
        return repo_id


class FakeDownloader:
    """In-memory BlobDownloader recording every call."""

    def __init__(self, blobs: dict[str, bytes] | None = None):
        self.blobs = dict(blobs or {})
        self.calls: list[str] = []

    def download(self, blob_id: str) -> bytes | None:
        self.calls.append(blob_id)
        return self.blobs.get(blob_id)


class FakeProvider:
    """BlobProvider returning a fixed id or raising."""

    def __init__(self, name: str, *, blob_id: str = "", fail: bool = False, free_tier_bytes=None):
        self.name = name
        self.blob_id = blob_id or f"blob-from-{name}"
        self.fail = fail
        self.free_tier_bytes = free_tier_bytes
        self.calls: list[int] = []

    def upload_once(self, buffer, tags):
        self.calls.append(len(buffer))
        if self.fail:
            raise RuntimeError(f"{self.name} is down")
        return self.blob_id


class FakePricing:
    """Pricing returning a fixed estimate."""

    def __init__(self, cost_native: float | None = 0.5):
        self.cost_native = cost_native
        self.calls: list[int] = []

    def estimate(self, size: int) -> CostEstimate:
        self.calls.append(size)
        return CostEstimate(
            human_size=f"{size} Bytes", cost_native=self.cost_native, cost_fiat=None
        )


class FakeClone:
    """Replacement for git clone --bare copying the tree and recording calls."""

    def __init__(self):
        self.calls: list[tuple[Path, Path]] = []

    def __call__(self, source: Path, dest: Path) -> None:
        self.calls.append((source, dest))
        shutil.copytree(source, dest)


def make_descriptor(**overrides) -> RepositoryDescriptor:
    values = {
        "id": REPO_ID,
        "name": "hello",
        "description": "hello world",
        "owner": OWNER,
        "contributors": [],
        "snapshot_id": "snapshot-1",
    }
    values.update(overrides)
    return RepositoryDescriptor(**values)


def make_snapshot(files: dict[str, bytes]) -> bytes:
    """Return a zip archive containing files (archive name -> content)."""
    out = io.BytesIO()
    with zipfile.ZipFile(out, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return out.getvalue()


@pytest.fixture
def working_dir(tmp_path: Path) -> Path:
    path = tmp_path / ".git" / ".protocol.land"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def store(working_dir: Path) -> CacheStore:
    return CacheStore(working_dir, reserved=frozenset({"cache"}))


@pytest.fixture
def descriptor() -> RepositoryDescriptor:
    return make_descriptor()


@pytest.fixture
def snapshot_archive() -> bytes:
    return make_snapshot({f"{REPO_ID}/HEAD": b"ref: refs/heads/main\n"})


@pytest.fixture
def ledger(descriptor: RepositoryDescriptor) -> FakeLedger:
    return FakeLedger({descriptor.id: descriptor})


@pytest.fixture
def downloader(descriptor: RepositoryDescriptor, snapshot_archive: bytes) -> FakeDownloader:
    return FakeDownloader({descriptor.snapshot_id: snapshot_archive})


@pytest.fixture
def clone() -> FakeClone:
    return FakeClone()


@pytest.fixture
def providers() -> list[FakeProvider]:
    return [FakeProvider("bundler", blob_id="snapshot-2", free_tier_bytes=1 << 30)]


@pytest.fixture
def pricing() -> FakePricing:
    return FakePricing()


@pytest.fixture
def consent_answers() -> list:
    """Answers given by the fake consent prompt, consumed in order."""
    return []


@pytest.fixture
def orchestrator(
    store, ledger, downloader, providers, pricing, clone, consent_answers
) -> SyncOrchestrator:
    def consent(descriptor, estimate):
        return consent_answers.pop(0) if consent_answers else None

    return SyncOrchestrator(
        store=store,
        ledger=ledger,
        downloader=downloader,
        uploads=UploadChain(providers),
        pricing=pricing,
        consent=consent,
        clone=clone,
    )


@pytest.fixture
def fakes():
    """Expose the fake collaborator classes to test modules."""

    class Fakes:
        Ledger = FakeLedger
        Downloader = FakeDownloader
        Provider = FakeProvider
        Pricing = FakePricing
        Clone = FakeClone

    Fakes.make_descriptor = staticmethod(make_descriptor)
    Fakes.make_snapshot = staticmethod(make_snapshot)
    Fakes.REPO_ID = REPO_ID
    Fakes.PARENT_ID = PARENT_ID
    Fakes.OWNER = OWNER
    return Fakes
