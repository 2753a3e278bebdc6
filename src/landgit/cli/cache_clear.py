"""Cache clear command."""

import click

from .cache import cache, working_dir_or_default
from .main import build_store


@cache.command()
@click.option(
    "-d",
    "--dir",
    "working_dir",
    default=None,
    help="Working directory (default: .git/.protocol.land)",
)
def clear(working_dir: str | None) -> None:
    """Remove every cached snapshot.

    The next fetch or push downloads the latest snapshot again.
    """
    store = build_store(working_dir_or_default(working_dir))
    if not store.working_dir.is_dir():
        click.echo("Nothing to clear.")
        return
    removed = store.prune()
    click.echo(f"Removed {len(removed)} cached snapshot(s).")
