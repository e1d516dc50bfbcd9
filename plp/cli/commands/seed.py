"""plp seed: fill empty collections with sample items."""
from __future__ import annotations

import asyncio
import logging

import typer

from plp.db.database import open_session
from plp.cli.errors import ExitCode
from plp.services.seed import seed_collections

logger = logging.getLogger(__name__)

app = typer.Typer()


async def _seed_async(database_url: str | None) -> dict[str, int]:
    async with open_session(database_url, create_schema=True) as session:
        return await seed_collections(session)


@app.callback(invoke_without_command=True)
def seed(
    ctx: typer.Context,
    database_url: str | None = typer.Option(
        None,
        "--database-url",
        help="Database URL. Defaults to PLP_DATABASE_URL.",
    ),
) -> None:
    """Insert sample items into every collection that has none yet."""
    try:
        inserted = asyncio.run(_seed_async(database_url))
    except Exception as exc:
        typer.echo(f"❌ plp seed failed: {exc}")
        logger.error("❌ plp seed unexpected error: %s", exc, exc_info=True)
        raise typer.Exit(code=int(ExitCode.INTERNAL_ERROR))

    for name, count in inserted.items():
        typer.echo(f"  {name:<16} +{count}")
    typer.echo(f"✅ Seeded {sum(inserted.values())} item(s)")
