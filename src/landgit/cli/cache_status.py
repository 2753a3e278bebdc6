"""Cache status command."""

import click
from rich.console import Console

from ..pricing import format_bytes
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
def status(working_dir: str | None) -> None:
    """Show the cached snapshots.

    Each snapshot id is prefixed with a status letter:

    \b
      ' '  clean (safe to serve)
      'D'  dirty (will be rebuilt on the next fetch)
    """
    store = build_store(working_dir_or_default(working_dir))
    console = Console()
    for entry in store.list_entries():
        char, color = ("D", "yellow") if entry.dirty else (" ", "green")
        console.print(f"[{color}]{char}[/] {entry.name} [dim]{format_bytes(entry.size)}[/]")
