"""plp CLI: Typer application root.

Entry point for the ``plp`` console script.
"""
from __future__ import annotations

import typer

from plp.cli.commands import backup, seed, token
from plp.cli.commands.sync import run_sync as _sync_logic

cli = typer.Typer(
    name="plp",
    help="PLP CMS administration tools.",
    no_args_is_help=True,
)

cli.add_typer(token.app, name="token", help="Issue an admin bearer token.")
cli.add_typer(backup.app, name="backup", help="Take timestamped backups of all content.")
cli.add_typer(seed.app, name="seed", help="Fill empty collections with sample items.")


# sync takes positional arguments followed by options, so it is a plain
# Command: a Typer sub-app (Click Group) would stop parsing options after
# the first positional.
@cli.command("sync", help="Reconcile a local JSON snapshot with a server collection.")
def _sync_cmd(
    collection: str = typer.Argument(..., help="Collection name (faculty, benefits, ...)."),
    file: str = typer.Argument(..., help="JSON file holding the working snapshot (a list of items)."),
    url: str = typer.Option("http://localhost:10010", "--url", help="Server base URL."),
    token: str | None = typer.Option(
        None, "--token", envvar="PLP_TOKEN", help="Admin bearer token (or set PLP_TOKEN)."
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Show the planned changes without calling the server's write API."
    ),
) -> None:
    _sync_logic(collection=collection, file=file, url=url, token=token, dry_run=dry_run)


if __name__ == "__main__":
    cli()
