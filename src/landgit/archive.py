"""Pack a directory tree into a zip buffer and unpack it back."""

from __future__ import annotations

import io
import logging
import os
import zipfile
from collections.abc import Iterable, Iterator
from pathlib import Path

log = logging.getLogger("landgit/archive")


def load_ignore_list(root: Path) -> set[str]:
    """
    Return the names listed in root/.gitignore (comments and blanks skipped).

    Entries are matched against file and directory names at any depth.
    """
    gitignore = root / ".gitignore"
    if not gitignore.is_file():
        return set()
    names: set[str] = set()
    for line in gitignore.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            names.add(line.strip("/"))
    return names


def _walk(root: Path, ignore: set[str]) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in ignore)
        for name in sorted(filenames):
            if name not in ignore:
                yield Path(dirpath) / name


def pack(root: Path, ignore: Iterable[str] = (), *, prefix: str = "") -> bytes:
    """
    Pack every file under root into a zip archive and return its bytes.

    Arguments:
        root: directory to pack.
        ignore: file or directory names to skip at any depth.
        prefix: optional top-level directory name for the archive members.
    """
    ignore_set = set(ignore)
    out = io.BytesIO()
    count = 0
    with zipfile.ZipFile(out, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for path in _walk(root, ignore_set):
            rel = path.relative_to(root).as_posix()
            arcname = f"{prefix}/{rel}" if prefix else rel
            zf.write(path, arcname)
            count += 1
    log.debug("packed %d files from %s", count, root)
    return out.getvalue()


def unpack(buffer: bytes, dest: Path) -> bool:
    """
    Unpack a zip buffer into dest and return whether it succeeded.

    Members escaping dest (absolute paths or `..` components) make the
    whole archive invalid. On failure, dest may contain partial output:
    callers unpack into a scratch directory they can discard.
    """
    dest_root = dest.resolve()
    try:
        with zipfile.ZipFile(io.BytesIO(buffer)) as zf:
            for info in zf.infolist():
                target = (dest_root / info.filename).resolve()
                if target != dest_root and dest_root not in target.parents:
                    raise ValueError(f"archive member escapes destination: {info.filename}")
            zf.extractall(dest_root)
    except (zipfile.BadZipFile, ValueError, OSError) as exc:
        log.warning("unpacking archive... failure: %s", exc)
        return False
    return True
