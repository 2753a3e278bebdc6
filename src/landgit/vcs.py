"""Helpers invoking the git binary as a subprocess."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from .exceptions import CloneError

log = logging.getLogger("landgit/vcs")

GIT_EXECUTABLE = "git"


def config_get(key: str, *, cwd: str | Path | None = None) -> str | None:
    """Return the value of a git config key or None when it is not set."""
    try:
        proc = subprocess.run(
            [GIT_EXECUTABLE, "config", "--get", key],
            capture_output=True,
            text=True,
            cwd=cwd,
            check=False,
        )
    except OSError as exc:
        log.debug("cannot run git config --get %s: %s", key, exc)
        return None
    if proc.returncode != 0:
        return None
    value = proc.stdout.strip()
    return value or None


def clone_bare(source: Path, dest: Path) -> None:
    """
    Create a bare repository at dest by cloning the repository at source.

    The output of git goes to stderr because stdout belongs to the
    remote-helper protocol.

    Raises:
        CloneError: if git is missing or exits with a nonzero status.
    """
    argv = [GIT_EXECUTABLE, "clone", "--bare", "--quiet", str(source), str(dest)]
    log.debug("running %s", " ".join(argv))
    try:
        proc = subprocess.run(
            argv,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            check=False,
        )
    except OSError as exc:
        raise CloneError(f"cannot run {GIT_EXECUTABLE}: {exc}") from exc
    if proc.returncode != 0:
        stderr = proc.stderr.decode(errors="replace").strip()
        raise CloneError(f"git clone --bare exited with {proc.returncode}: {stderr}")


def spawn_transport(command: str, bare_path: Path) -> subprocess.Popen:
    """Spawn a transport subcommand (e.g., git-upload-pack) with piped stdio."""
    log.debug("spawning %s %s", command, bare_path)
    return subprocess.Popen(
        [command, str(bare_path)],
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        bufsize=0,
    )
