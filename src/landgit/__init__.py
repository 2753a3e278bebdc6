"""landgit: use ledger-backed repositories as ordinary git remotes.

The snapshot of each repository is stored as an archive in a
content-addressed blob network, while the ledger records which
snapshot is the current one. This package implements the git remote
helper that keeps a local cache of bare repositories in sync with it.
"""

from importlib.metadata import PackageNotFoundError, version

from .bridge import Bridge
from .cache import CacheStore
from .ledger import RepositoryDescriptor
from .sync import PushState, SyncOrchestrator, UploadOutcome

try:
    __version__ = version("landgit")
except PackageNotFoundError:  # pragma: no cover - running from a source tree
    __version__ = "0.0.0"

__all__ = [
    "Bridge",
    "CacheStore",
    "PushState",
    "RepositoryDescriptor",
    "SyncOrchestrator",
    "UploadOutcome",
    "__version__",
]
