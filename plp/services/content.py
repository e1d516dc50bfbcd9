"""Page content persistence: database document + resilient file mirror.

Saves go to both layers: the resilient store first (it never raises on a
storage failure, it reports), then the ``content_documents`` row. A save
succeeds when at least one layer accepted it. Reads prefer the database and
fall back to the store when the row is missing or the database errors, so a
database write that fails after the store took the payload drops the old row
rather than leave it shadowing the newer value.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from plp.db.models import ContentDocument, utc_now
from plp.storage import ContentChanged, ResilientContentStore, WriteReport

logger = logging.getLogger(__name__)


class ContentPersistenceError(Exception):
    """Neither the database nor any store key accepted a save."""

    def __init__(self, content_type: str) -> None:
        super().__init__(f"{content_type!r} could not be saved to any storage layer")
        self.content_type = content_type


@dataclass
class ContentRead:
    content_type: str
    data: Any
    source: str
    updated_at: datetime | None = None


@dataclass
class ContentSave:
    content_type: str
    stored_in: list[str] = field(default_factory=list)
    report: WriteReport | None = None


async def _load_document(session: AsyncSession, content_type: str) -> ContentDocument | None:
    result = await session.execute(
        select(ContentDocument).where(ContentDocument.content_type == content_type)
    )
    return result.scalar_one_or_none()


async def _drop_stale_document(session: AsyncSession, content_type: str) -> None:
    """Remove the row a failed save left behind so reads reach the newer store value."""
    try:
        async with session.begin_nested():
            await session.execute(
                delete(ContentDocument).where(ContentDocument.content_type == content_type)
            )
        logger.warning(f"⚠️ Dropped stale database row for {content_type!r}; serving file store")
    except SQLAlchemyError as exc:
        logger.error(f"❌ Stale row for {content_type!r} could not be removed: {exc}")


async def get_content(
    session: AsyncSession,
    store: ResilientContentStore,
    content_type: str,
) -> ContentRead:
    """Read one content type; ``source`` says which layer answered.

    Raises:
        UnknownContentTypeError: no key set for *content_type*.
    """
    store.key_set(content_type)
    try:
        doc = await _load_document(session, content_type)
    except SQLAlchemyError as exc:
        logger.error(f"❌ Database read of {content_type!r} failed, using file store: {exc}")
        doc = None
    if doc is not None:
        return ContentRead(content_type, doc.data, "database", doc.updated_at)

    data = store.read(content_type, None)
    if data is not None:
        return ContentRead(content_type, data, "store")
    return ContentRead(content_type, {}, "empty")


async def get_all_content(
    session: AsyncSession,
    store: ResilientContentStore,
) -> dict[str, Any]:
    """Every known content type mapped to its payload (``{}`` when empty)."""
    return {t: (await get_content(session, store, t)).data for t in store.content_types()}


async def save_content(
    session: AsyncSession,
    store: ResilientContentStore,
    content_type: str,
    payload: Any,
) -> ContentSave:
    """Validate, then persist *payload* to the file mirror and the database.

    Raises:
        UnknownContentTypeError: no key set for *content_type*.
        ContentValidationError: the payload is malformed.
        ContentPersistenceError: no layer accepted the write.
    """
    store.validate(content_type, payload)
    outcome = ContentSave(content_type=content_type)

    outcome.report = store.write(content_type, payload)
    if outcome.report.ok:
        outcome.stored_in.append("store")

    try:
        async with session.begin_nested():
            doc = await _load_document(session, content_type)
            if doc is None:
                session.add(ContentDocument(content_type=content_type, data=payload))
            else:
                doc.data = payload
                doc.updated_at = utc_now()
        outcome.stored_in.append("database")
    except SQLAlchemyError as exc:
        logger.error(f"❌ Database write of {content_type!r} failed: {exc}")
        if outcome.stored_in:
            await _drop_stale_document(session, content_type)

    if not outcome.stored_in:
        raise ContentPersistenceError(content_type)
    if "store" not in outcome.stored_in and store.broadcaster is not None:
        # The store only announces writes it accepted itself.
        store.broadcaster.publish(ContentChanged(content_type=content_type))
    logger.info(f"✅ Saved {content_type!r} to {', '.join(outcome.stored_in)}")
    return outcome


async def delete_content(
    session: AsyncSession,
    store: ResilientContentStore,
    content_type: str,
) -> tuple[int, bool]:
    """Remove *content_type* from both layers; returns (keys removed, row removed)."""
    removed_keys = store.delete(content_type)
    doc = await _load_document(session, content_type)
    if doc is not None:
        await session.delete(doc)
        await session.flush()
    if store.broadcaster is not None and (removed_keys or doc is not None):
        store.broadcaster.publish(ContentChanged(content_type=content_type))
    logger.info(f"{content_type!r} deleted ({removed_keys} key(s), row={doc is not None})")
    return removed_keys, doc is not None
