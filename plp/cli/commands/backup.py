"""plp backup: copy every content type into a timestamped backup key."""
from __future__ import annotations

import logging
import pathlib

import typer

from plp.cli.errors import ExitCode
from plp.config import settings
from plp.storage import FileStorage, ResilientContentStore

logger = logging.getLogger(__name__)

app = typer.Typer()


@app.callback(invoke_without_command=True)
def backup(
    ctx: typer.Context,
    data_dir: str | None = typer.Option(
        None,
        "--data-dir",
        help="Content store directory. Defaults to PLP_DATA_DIR.",
    ),
) -> None:
    """Back up all content types that currently have a value.

    Types with nothing stored are listed as skipped.
    """
    root = pathlib.Path(data_dir or settings.data_dir)
    if not root.is_dir():
        typer.echo(f"❌ Data directory not found: {root}")
        raise typer.Exit(code=int(ExitCode.USER_ERROR))

    store = ResilientContentStore(FileStorage(root), repair_on_fallback=False)
    results = store.create_all_backups()

    created = 0
    for content_type, key in results.items():
        if key is None:
            typer.echo(f"  {content_type:<16} skipped (no content)")
        else:
            created += 1
            typer.echo(f"  {content_type:<16} -> {key}")
    typer.echo(f"✅ {created} backup(s) written to {root}")
