"""Page content endpoints (greeting, schedule, footer, ...).

Reads are public. Writes, deletes and backups need an admin token.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from plp.auth import TokenClaims, require_admin
from plp.db import get_db
from plp.models.content import (
    BackupListResponse,
    BackupResponse,
    ContentDeleteResponse,
    ContentResponse,
    ContentSaveResponse,
    ContentTypeInfo,
    ContentTypesResponse,
)
from plp.services import content as content_service
from plp.storage import (
    ContentValidationError,
    ResilientContentStore,
    UnknownContentTypeError,
    get_content_store,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def _unknown_type(exc: UnknownContentTypeError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"error": "Unknown content type", "contentType": exc.content_type},
    )


@router.get("/content/types", response_model=ContentTypesResponse, response_model_by_alias=True)
async def list_content_types(
    store: ResilientContentStore = Depends(get_content_store),
) -> ContentTypesResponse:
    """Every content type with the storage keys it is mirrored under, in read priority."""
    return ContentTypesResponse(
        types=[
            ContentTypeInfo(content_type=t, keys=list(store.key_set(t).keys))
            for t in store.content_types()
        ]
    )


@router.get("/content")
async def get_all_content(
    db: AsyncSession = Depends(get_db),
    store: ResilientContentStore = Depends(get_content_store),
) -> dict[str, Any]:
    """All content payloads keyed by type (``{}`` for types never saved)."""
    return await content_service.get_all_content(db, store)


@router.post("/content/backup", response_model=BackupResponse, response_model_by_alias=True)
async def backup_all_content(
    claims: TokenClaims = Depends(require_admin),
    store: ResilientContentStore = Depends(get_content_store),
) -> BackupResponse:
    """Timestamped backup of every content type that has a value."""
    backups = store.create_all_backups()
    logger.info(f"Backups requested by {claims.get('sub', 'admin')}: {sum(1 for v in backups.values() if v)} created")
    return BackupResponse(backups=backups)


@router.get("/content/{content_type}", response_model=ContentResponse, response_model_by_alias=True)
async def get_content(
    content_type: str,
    db: AsyncSession = Depends(get_db),
    store: ResilientContentStore = Depends(get_content_store),
) -> ContentResponse:
    """One content payload; ``source`` tells which storage layer answered."""
    try:
        found = await content_service.get_content(db, store, content_type)
    except UnknownContentTypeError as exc:
        raise _unknown_type(exc)
    return ContentResponse(
        content_type=content_type,
        data=found.data,
        source=found.source,
        updated_at=found.updated_at.isoformat() if found.updated_at else None,
    )


@router.post(
    "/content/{content_type}",
    response_model=ContentSaveResponse,
    response_model_by_alias=True,
)
async def save_content(
    content_type: str,
    payload: Any = Body(...),
    claims: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    store: ResilientContentStore = Depends(get_content_store),
) -> ContentSaveResponse:
    """
    Replace a content payload.

    Raises:
        HTTPException 400: Payload fails validation for its content type
        HTTPException 404: Unknown content type
        HTTPException 503: No storage layer accepted the write
    """
    try:
        outcome = await content_service.save_content(db, store, content_type, payload)
    except UnknownContentTypeError as exc:
        raise _unknown_type(exc)
    except ContentValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except content_service.ContentPersistenceError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))

    report = outcome.report
    return ContentSaveResponse(
        success=True,
        content_type=content_type,
        stored_in=outcome.stored_in,
        keys_written=list(report.written) if report else [],
        keys_failed=[key for key, _ in report.failed] if report else [],
        message=f"{content_type} saved",
    )


@router.delete(
    "/content/{content_type}",
    response_model=ContentDeleteResponse,
    response_model_by_alias=True,
)
async def delete_content(
    content_type: str,
    claims: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    store: ResilientContentStore = Depends(get_content_store),
) -> ContentDeleteResponse:
    """Remove a content type from the database and every store key."""
    try:
        store.key_set(content_type)
    except UnknownContentTypeError as exc:
        raise _unknown_type(exc)
    removed_keys, removed_document = await content_service.delete_content(db, store, content_type)
    return ContentDeleteResponse(
        success=True,
        content_type=content_type,
        removed_keys=removed_keys,
        removed_document=removed_document,
    )


@router.post(
    "/content/{content_type}/backup",
    response_model=BackupResponse,
    response_model_by_alias=True,
)
async def backup_content(
    content_type: str,
    claims: TokenClaims = Depends(require_admin),
    store: ResilientContentStore = Depends(get_content_store),
) -> BackupResponse:
    """Timestamped backup of one content type; ``null`` when it has no value."""
    try:
        key = store.create_backup(content_type)
    except UnknownContentTypeError as exc:
        raise _unknown_type(exc)
    return BackupResponse(backups={content_type: key})


@router.get(
    "/content/{content_type}/backups",
    response_model=BackupListResponse,
    response_model_by_alias=True,
)
async def list_content_backups(
    content_type: str,
    claims: TokenClaims = Depends(require_admin),
    store: ResilientContentStore = Depends(get_content_store),
) -> BackupListResponse:
    try:
        backups = store.list_backups(content_type)
    except UnknownContentTypeError as exc:
        raise _unknown_type(exc)
    return BackupListResponse(content_type=content_type, backups=backups)
