"""
The landgit command.

git-remote-proland does the actual work behind `git clone` and `git push`
for proland:// remotes. This command inspects and cleans what it leaves
behind in $GIT_DIR/.protocol.land.
"""

from importlib.metadata import version

import click

_PACKAGE_NAME = "landgit"

_GUIDE = """\
git talks to proland:// remotes through git-remote-proland, so there is
nothing to run for clone, fetch or push. Use landgit to look after the
snapshots cached in $GIT_DIR/.protocol.land:

  landgit cache status    list cached snapshots, D marks dirty ones
  landgit cache clear     remove every cached snapshot

Use "landgit <command> --help" for help on a specific command."""


def _get_version() -> str:
    """Return the installed package version string."""
    return version(_PACKAGE_NAME)


@click.group(
    context_settings={"help_option_names": ["-h", "--help"]},
    epilog="Run `landgit help` for an overview.",
)
@click.version_option(message="%(version)s", package_name=_PACKAGE_NAME)
def cli() -> None:
    """
    Maintenance tool for proland:// remotes.

    The cache commands default to the repository found through $GIT_DIR,
    or ./.git when it is unset; pass -d to point them elsewhere.
    """


@cli.command()
def help() -> None:
    """Explain how landgit relates to git-remote-proland."""
    click.echo(_GUIDE)


@cli.command("version")
def version_cmd() -> None:
    """Print the version number."""
    click.echo(_get_version())


# Subcommands register themselves on cli
from . import cache as _cache  # noqa: E402, F401
from . import cache_clear as _cache_clear  # noqa: E402, F401
from . import cache_status as _cache_status  # noqa: E402, F401
