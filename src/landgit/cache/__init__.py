"""
Local cache of bare repositories keyed by snapshot id.

The layout of the working directory of a remote is:

    $GIT_DIR/.protocol.land/
        cache/              ledger client cache (never pruned)
        <snapshot-id>/      bare repository for that snapshot
            .dirty          present while the entry must not be trusted
"""

from .store import (
    DIRTY_MARKER_FILENAME,
    CacheEntryInfo,
    CacheStore,
    ensure_working_directory,
)

__all__ = [
    "DIRTY_MARKER_FILENAME",
    "CacheEntryInfo",
    "CacheStore",
    "ensure_working_directory",
]
