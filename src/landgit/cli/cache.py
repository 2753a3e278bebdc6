"""Cache command group."""

import os
from pathlib import Path

from ..config import working_dir_for_git_dir
from . import cli


@cli.group()
def cache() -> None:
    """Manage the local cache of bare repositories."""


def working_dir_or_default(working_dir: str | None) -> Path:
    """
    Return working_dir as a Path if given. Otherwise return the working
    directory inside $GIT_DIR, defaulting to `./.git` like git.
    """
    if working_dir is not None:
        return Path(working_dir)
    return working_dir_for_git_dir(os.environ.get("GIT_DIR") or Path.cwd() / ".git")
