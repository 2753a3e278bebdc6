"""Module to manage the on-disk cache of bare repositories.

The working directory of a remote contains one directory per snapshot
id (a bare repository, also called a cache entry) plus the directory
reserved for the ledger client's own cache.

A cache entry is trustworthy only if it exists and does not contain the
dirty marker file. The marker is written before an upload starts and is
removed only once the entry is known to match the ledger again, so a
crash in between forces the next run to rebuild the entry.
"""

from __future__ import annotations

import errno
import logging
import os
import shutil
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from ..exceptions import WorkingDirectoryError

DIRTY_MARKER_FILENAME: Final[str] = ".dirty"

log = logging.getLogger("landgit/cache")


def ensure_working_directory(path: Path) -> Path:
    """
    Create the working directory if needed and return it.

    Raises:
        WorkingDirectoryError: if the path is not a usable directory afterwards.
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise WorkingDirectoryError(f"failed to create the directory {path}: {exc}") from exc
    if not path.is_dir() or not os.access(path, os.R_OK | os.W_OK | os.X_OK):
        raise WorkingDirectoryError(f"failed to create the directory {path}")
    return path


def entry_path(working_dir: Path, snapshot_id: str) -> Path:
    """Return the path of the cache entry for snapshot_id."""
    if not snapshot_id or "/" in snapshot_id or snapshot_id in (".", ".."):
        raise ValueError(f"invalid snapshot id: {snapshot_id!r}")
    return working_dir / snapshot_id


def _marker_path(working_dir: Path, snapshot_id: str) -> Path:
    return entry_path(working_dir, snapshot_id) / DIRTY_MARKER_FILENAME


def entry_exists(working_dir: Path, snapshot_id: str) -> bool:
    """Return whether a directory exists for snapshot_id (dirty or not)."""
    return entry_path(working_dir, snapshot_id).is_dir()


def is_dirty(working_dir: Path, snapshot_id: str) -> bool:
    """Return whether the dirty marker is present for snapshot_id."""
    return _marker_path(working_dir, snapshot_id).exists()


def is_fresh(working_dir: Path, snapshot_id: str) -> bool:
    """Return True iff the cache entry exists and is not marked dirty."""
    return entry_exists(working_dir, snapshot_id) and not is_dirty(working_dir, snapshot_id)


def mark_dirty(working_dir: Path, snapshot_id: str) -> bool:
    """
    Create the dirty marker for snapshot_id and return whether it exists.

    The marker is flushed to disk before returning. Failures are logged.
    """
    marker = _marker_path(working_dir, snapshot_id)
    try:
        fd = os.open(marker, os.O_WRONLY | os.O_CREAT, 0o644)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
    except OSError as exc:
        log.warning("marking %s dirty... failure: %s", snapshot_id, exc)
        return False
    log.debug("marking %s dirty... ok", snapshot_id)
    return True


def clear_dirty(working_dir: Path, snapshot_id: str) -> None:
    """Remove the dirty marker for snapshot_id, if any. Failures are logged."""
    marker = _marker_path(working_dir, snapshot_id)
    try:
        marker.unlink()
    except FileNotFoundError:
        return
    except OSError as exc:
        if exc.errno != errno.ENOTDIR:
            log.warning("clearing dirty marker of %s... failure: %s", snapshot_id, exc)
        return
    log.debug("clearing dirty marker of %s... ok", snapshot_id)


def prune(working_dir: Path, keep: Iterable[str]) -> list[str]:
    """
    Remove every top-level directory of working_dir not named in keep.

    Best effort: failures are logged and the directory is left behind.
    Returns the names of the directories we removed.
    """
    keep_set = set(keep)
    removed: list[str] = []
    try:
        children = sorted(working_dir.iterdir())
    except OSError as exc:
        log.warning("pruning %s... failure: %s", working_dir, exc)
        return removed
    for child in children:
        if child.name in keep_set or child.is_symlink() or not child.is_dir():
            continue
        try:
            shutil.rmtree(child)
        except OSError as exc:
            log.warning("pruning %s... failure: %s", child, exc)
            continue
        removed.append(child.name)
    if removed:
        log.debug("pruned %s", ", ".join(removed))
    return removed


def promote(working_dir: Path, old_snapshot_id: str, new_snapshot_id: str) -> bool:
    """
    Rename the entry for old_snapshot_id so it becomes the entry for new_snapshot_id.

    The dirty marker, if present, moves along with the entry. Returns
    whether the rename happened; failures are logged.
    """
    src = entry_path(working_dir, old_snapshot_id)
    dst = entry_path(working_dir, new_snapshot_id)
    if src == dst:
        return True
    if dst.exists():
        log.warning("cannot promote %s: %s already exists", old_snapshot_id, dst)
        return False
    try:
        os.replace(src, dst)
    except OSError as exc:
        log.warning("promoting %s to %s... failure: %s", old_snapshot_id, new_snapshot_id, exc)
        return False
    return True


@dataclass(frozen=True, kw_only=True)
class CacheEntryInfo:
    """Summary of one directory found in the working directory."""

    name: str
    dirty: bool
    size: int


@dataclass(frozen=True)
class CacheStore:
    """
    Cache operations bound to the working directory of one remote.

    Attributes:
        working_dir: the remote-specific scratch directory.
        reserved: names of sibling directories that are never pruned.
    """

    working_dir: Path
    reserved: frozenset[str] = frozenset()

    def ensure(self) -> Path:
        return ensure_working_directory(self.working_dir)

    def entry_path(self, snapshot_id: str) -> Path:
        return entry_path(self.working_dir, snapshot_id)

    def exists(self, snapshot_id: str) -> bool:
        return entry_exists(self.working_dir, snapshot_id)

    def is_dirty(self, snapshot_id: str) -> bool:
        return is_dirty(self.working_dir, snapshot_id)

    def is_fresh(self, snapshot_id: str) -> bool:
        return is_fresh(self.working_dir, snapshot_id)

    def mark_dirty(self, snapshot_id: str) -> bool:
        return mark_dirty(self.working_dir, snapshot_id)

    def clear_dirty(self, snapshot_id: str) -> None:
        clear_dirty(self.working_dir, snapshot_id)

    def prune(self, keep: Iterable[str] = ()) -> list[str]:
        """Prune every directory except keep and the reserved ones."""
        return prune(self.working_dir, set(keep) | self.reserved)

    def promote(self, old_snapshot_id: str, new_snapshot_id: str) -> bool:
        return promote(self.working_dir, old_snapshot_id, new_snapshot_id)

    def list_entries(self) -> list[CacheEntryInfo]:
        """Return the cache entries (reserved directories excluded)."""
        if not self.working_dir.is_dir():
            return []
        result: list[CacheEntryInfo] = []
        for child in sorted(self.working_dir.iterdir()):
            if child.name in self.reserved or not child.is_dir():
                continue
            size = sum(p.stat().st_size for p in child.rglob("*") if p.is_file())
            result.append(
                CacheEntryInfo(name=child.name, dirty=self.is_dirty(child.name), size=size)
            )
        return result
