"""plp sync: reconcile a local JSON snapshot against a server collection.

The file holds the working snapshot: a JSON list of item documents. Items
with an ``id`` are existing server items, items without one are new. The
server's current items are fetched as the original snapshot, the change set
is applied through the HTTP API (delete -> create -> update), and the ids
assigned to created items are written back into the file so the next run
sees them as existing.

Exit codes: 0 when every operation succeeded (or there was nothing to do),
1 for bad input, 3 when the server rejected some or all operations.
"""
from __future__ import annotations

import asyncio
import json
import logging
import pathlib

import httpx
import typer

from plp.catalog import CollectionNotFoundError, get_collection
from plp.cli.errors import ExitCode
from plp.config import settings
from plp.reconcile import (
    ChangeSetReconciler,
    ItemBackendError,
    ReconciliationResult,
    SnapshotValidationError,
    snapshot_from_documents,
    snapshot_to_documents,
)
from plp.services.item_client import ItemApiClient

logger = logging.getLogger(__name__)


def _load_working(path: pathlib.Path) -> list[dict[str, object]]:
    if not path.is_file():
        typer.echo(f"❌ File not found: {path}")
        raise typer.Exit(code=int(ExitCode.USER_ERROR))
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        typer.echo(f"❌ {path} is not valid JSON: {exc}")
        raise typer.Exit(code=int(ExitCode.USER_ERROR))
    if not isinstance(data, list) or not all(isinstance(d, dict) for d in data):
        typer.echo(f"❌ {path} must contain a JSON list of objects")
        raise typer.Exit(code=int(ExitCode.USER_ERROR))
    return data


def _report(result: ReconciliationResult) -> None:
    typer.echo(
        f"  created {result.created}, updated {result.updated}, deleted {result.deleted}"
        f" ({len(result.failures)} failed)"
    )
    for failure in result.failures:
        label = failure.item.identity or failure.item.fields.get(
            get_collection(result.collection).required_field
        )
        typer.echo(f"  ❌ {failure.operation} {label}: {failure.error}")
    for item in result.unresolved:
        typer.echo(
            f"  ⚠️  created but id not written back (ambiguous): "
            f"{item.natural_key(get_collection(result.collection).natural_key)}"
        )


async def _sync_async(
    *,
    collection: str,
    path: pathlib.Path,
    url: str,
    token: str | None,
    dry_run: bool,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ReconciliationResult | None:
    """Run the sync; returns ``None`` for a dry run.

    Raises :class:`typer.Exit` on user errors so the callback surfaces clean
    messages instead of tracebacks.
    """
    try:
        spec = get_collection(collection)
    except CollectionNotFoundError as exc:
        typer.echo(f"❌ {exc}")
        raise typer.Exit(code=int(ExitCode.USER_ERROR))

    working = snapshot_from_documents(_load_working(path))
    reconciler = ChangeSetReconciler(spec, max_concurrency=settings.reconcile_max_concurrency)

    async with ItemApiClient(url, token=token, transport=transport) as api:
        original = snapshot_from_documents(await api.list_items(spec.name, include_inactive=True))
        try:
            change_set = reconciler.compute(original, working)
        except SnapshotValidationError as exc:
            typer.echo(f"❌ {exc}")
            raise typer.Exit(code=int(ExitCode.USER_ERROR))

        planned = change_set.summary()
        typer.echo(
            f"🔄 {spec.name}: {planned['created']} to create, "
            f"{planned['updated']} to update, {planned['deleted']} to delete"
        )
        if dry_run:
            return None
        result = await reconciler.apply(change_set, api, working)

    if result.created_items:
        path.write_text(
            json.dumps(snapshot_to_documents(working), ensure_ascii=False, indent=2) + "\n",
            encoding="utf-8",
        )
        logger.info(f"Wrote {len(result.created_items)} assigned id(s) back to {path}")
    return result


def run_sync(
    *,
    collection: str,
    file: str,
    url: str,
    token: str | None,
    dry_run: bool,
) -> None:
    """Entry point called by the ``plp sync`` command."""
    path = pathlib.Path(file)
    try:
        result = asyncio.run(
            _sync_async(collection=collection, path=path, url=url, token=token, dry_run=dry_run)
        )
    except typer.Exit:
        raise
    except ItemBackendError as exc:
        typer.echo(f"❌ Server error: {exc}")
        code = ExitCode.USER_ERROR if exc.status_code in (401, 403, 404) else ExitCode.INTERNAL_ERROR
        raise typer.Exit(code=int(code))
    except Exception as exc:
        typer.echo(f"❌ plp sync failed: {exc}")
        logger.error("❌ plp sync unexpected error: %s", exc, exc_info=True)
        raise typer.Exit(code=int(ExitCode.INTERNAL_ERROR))

    if result is None:
        typer.echo("Dry run: nothing sent.")
        return
    _report(result)
    if not result.ok:
        raise typer.Exit(code=int(ExitCode.INTERNAL_ERROR))
    typer.echo(f"✅ {collection}: {result.status.value}")
