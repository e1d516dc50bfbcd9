"""Item-collection endpoints (faculty, benefits, professors, ...).

Listing is public and returns active items ordered by ``order``; admins may
pass ``?all=true`` to include inactive ones. Every write needs an admin
token. ``POST /collections/{name}/sync`` runs the change-set reconciler
server-side so a client can submit a whole edited snapshot in one call.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from plp.auth import TokenClaims, optional_admin, require_admin
from plp.catalog import CollectionNotFoundError, get_collection
from plp.db import get_db
from plp.models.collections import (
    BatchCreateRequest,
    BatchCreateResponse,
    CollectionListResponse,
    ItemDeleteResponse,
    SyncFailure,
    SyncRequest,
    SyncResponse,
)
from plp.reconcile import (
    ChangeSetReconciler,
    SnapshotValidationError,
    snapshot_from_documents,
    snapshot_to_documents,
)
from plp.services import collections as collection_service
from plp.services.collections import ItemNotFoundError, ItemValidationError, SqlItemBackend

router = APIRouter()
logger = logging.getLogger(__name__)


def _not_found(exc: CollectionNotFoundError | ItemNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


def _invalid(exc: ItemValidationError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"error": str(exc), "missing": list(exc.missing)},
    )


@router.get(
    "/collections/{name}",
    response_model=CollectionListResponse,
    response_model_by_alias=True,
)
async def list_collection(
    name: str,
    include_all: bool = Query(default=False, alias="all"),
    admin: TokenClaims | None = Depends(optional_admin),
    db: AsyncSession = Depends(get_db),
) -> CollectionListResponse:
    """Items of a collection; inactive ones only for admins asking ``?all=true``."""
    try:
        records = await collection_service.list_items(
            db, name, include_inactive=include_all and admin is not None
        )
    except CollectionNotFoundError as exc:
        raise _not_found(exc)
    items = [r.to_document() for r in records]
    return CollectionListResponse(collection=name, items=items, count=len(items))


@router.get("/collections/{name}/{item_id}")
async def get_collection_item(
    name: str,
    item_id: str,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    try:
        record = await collection_service.get_item(db, name, item_id)
    except (CollectionNotFoundError, ItemNotFoundError) as exc:
        raise _not_found(exc)
    return record.to_document()


@router.post("/collections/{name}", status_code=status.HTTP_201_CREATED)
async def create_collection_item(
    name: str,
    document: dict[str, Any] = Body(...),
    claims: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Create one item; the response carries the assigned ``id``."""
    try:
        record = await collection_service.create_item(db, name, document)
    except CollectionNotFoundError as exc:
        raise _not_found(exc)
    except ItemValidationError as exc:
        raise _invalid(exc)
    return record.to_document()


@router.post(
    "/collections/{name}/batch",
    status_code=status.HTTP_201_CREATED,
    response_model=BatchCreateResponse,
    response_model_by_alias=True,
)
async def batch_create_collection_items(
    name: str,
    body: BatchCreateRequest,
    claims: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> BatchCreateResponse:
    """Create several items at once; nothing is inserted if any item is invalid."""
    try:
        records = await collection_service.create_items(db, name, body.items)
    except CollectionNotFoundError as exc:
        raise _not_found(exc)
    except ItemValidationError as exc:
        raise _invalid(exc)
    created = [r.to_document() for r in records]
    return BatchCreateResponse(collection=name, created=created, count=len(created))


@router.put("/collections/{name}/{item_id}")
async def update_collection_item(
    name: str,
    item_id: str,
    document: dict[str, Any] = Body(...),
    claims: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Replace an item's fields."""
    try:
        record = await collection_service.update_item(db, name, item_id, document)
    except (CollectionNotFoundError, ItemNotFoundError) as exc:
        raise _not_found(exc)
    except ItemValidationError as exc:
        raise _invalid(exc)
    return record.to_document()


@router.delete(
    "/collections/{name}/{item_id}",
    response_model=ItemDeleteResponse,
    response_model_by_alias=True,
)
async def delete_collection_item(
    name: str,
    item_id: str,
    claims: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> ItemDeleteResponse:
    try:
        await collection_service.delete_item(db, name, item_id)
    except (CollectionNotFoundError, ItemNotFoundError) as exc:
        raise _not_found(exc)
    return ItemDeleteResponse(id=item_id)


@router.post(
    "/collections/{name}/sync",
    response_model=SyncResponse,
    response_model_by_alias=True,
)
async def sync_collection(
    name: str,
    body: SyncRequest,
    claims: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> SyncResponse:
    """
    Reconcile a submitted working snapshot against the stored collection.

    Deletes, then creates, then updates; a failing item is reported and the
    rest proceed. The response echoes the working snapshot with the ids
    assigned to newly created items.

    Raises:
        HTTPException 404: Unknown collection
        HTTPException 422: A snapshot repeats an id
    """
    try:
        spec = get_collection(name)
    except CollectionNotFoundError as exc:
        raise _not_found(exc)

    if body.original is None:
        stored = await collection_service.list_items(db, spec.name, include_inactive=True)
        original = snapshot_from_documents(r.to_document() for r in stored)
    else:
        original = snapshot_from_documents(body.original)
    working = snapshot_from_documents(body.working)

    # One AsyncSession cannot serve concurrent operations.
    reconciler = ChangeSetReconciler(spec, max_concurrency=1)
    try:
        change_set = reconciler.compute(original, working)
    except SnapshotValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"error": str(exc), "ids": list(exc.identities)},
        )

    if body.dry_run:
        return SyncResponse(
            collection=spec.name,
            status="dry_run",
            attempted=0,
            created=0,
            updated=0,
            deleted=0,
            working=snapshot_to_documents(working),
            planned=change_set.summary(),
        )

    result = await reconciler.apply(change_set, SqlItemBackend(db), working)
    logger.info(
        f"Sync of {spec.name} by {claims.get('sub', 'admin')}: {result.status.value} "
        f"(+{result.created} ~{result.updated} -{result.deleted}, {len(result.failures)} failed)"
    )
    return SyncResponse(
        collection=spec.name,
        status=result.status.value,
        attempted=result.attempted,
        created=result.created,
        updated=result.updated,
        deleted=result.deleted,
        failures=[
            SyncFailure(
                operation=f.operation,
                id=f.item.identity,
                item=f.item.to_document(),
                error=f.error,
                error_type=f.error_type,
            )
            for f in result.failures
        ],
        unresolved=snapshot_to_documents(result.unresolved),
        working=snapshot_to_documents(working),
        planned=change_set.summary(),
    )
