"""Collection item persistence: single point of DB access for collection_items.

Route handlers, the sync endpoint and the seed command go through these
functions; nothing else queries the table. Documents on the wire look like
``{"id": ..., "order": ..., "isActive": ..., **fields}``; ``order`` and
``isActive`` are promoted to columns and the rest is stored verbatim.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from plp.catalog import CollectionSpec, get_collection
from plp.db.models import CollectionItemRecord
from plp.reconcile import ItemBackendError
from plp.reconcile.items import IDENTITY_KEYS, ORDER_KEY, SERVER_MANAGED_KEYS

logger = logging.getLogger(__name__)

ACTIVE_KEY = "isActive"
_COLUMN_KEYS = frozenset(IDENTITY_KEYS) | {ORDER_KEY, ACTIVE_KEY} | SERVER_MANAGED_KEYS


class ItemValidationError(ValueError):
    """The document is missing a field its collection requires."""

    def __init__(self, collection: str, missing: Iterable[str]) -> None:
        self.collection = collection
        self.missing = tuple(missing)
        super().__init__(f"{collection}: required field(s) missing: {', '.join(self.missing)}")


class ItemNotFoundError(LookupError):
    """No item with that id in that collection."""

    def __init__(self, collection: str, item_id: str) -> None:
        self.collection = collection
        self.item_id = item_id
        super().__init__(f"{collection}: item {item_id!r} not found")


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def _validate(spec: CollectionSpec, fields: Mapping[str, Any]) -> None:
    missing = [name for name in spec.create_requires if _is_missing(fields.get(name))]
    if missing:
        raise ItemValidationError(spec.name, missing)


def _split_document(document: Mapping[str, Any]) -> tuple[dict[str, Any], int | None, bool | None]:
    """Separate column-backed keys from the free-form fields."""
    fields = {k: v for k, v in document.items() if k not in _COLUMN_KEYS}
    order: int | None = None
    raw_order = document.get(ORDER_KEY)
    if raw_order is not None:
        try:
            order = int(raw_order)
        except (TypeError, ValueError):
            order = None
    raw_active = document.get(ACTIVE_KEY)
    is_active = bool(raw_active) if raw_active is not None else None
    return fields, order, is_active


async def list_items(
    session: AsyncSession,
    collection: str,
    *,
    include_inactive: bool = False,
) -> list[CollectionItemRecord]:
    """Items of *collection* sorted by ``order`` (creation time breaks ties).

    Raises:
        CollectionNotFoundError: unknown collection.
    """
    spec = get_collection(collection)
    stmt = select(CollectionItemRecord).where(CollectionItemRecord.collection == spec.name)
    if not include_inactive:
        stmt = stmt.where(CollectionItemRecord.is_active.is_(True))
    stmt = stmt.order_by(CollectionItemRecord.order, CollectionItemRecord.created_at)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_item(session: AsyncSession, collection: str, item_id: str) -> CollectionItemRecord:
    """Raises ``ItemNotFoundError`` when the id is unknown in *collection*."""
    spec = get_collection(collection)
    result = await session.execute(
        select(CollectionItemRecord).where(
            CollectionItemRecord.collection == spec.name,
            CollectionItemRecord.id == item_id,
        )
    )
    record = result.scalar_one_or_none()
    if record is None:
        raise ItemNotFoundError(spec.name, item_id)
    return record


async def create_item(
    session: AsyncSession,
    collection: str,
    document: Mapping[str, Any],
) -> CollectionItemRecord:
    """Insert one item; any id in *document* is ignored (the server assigns it).

    Raises:
        CollectionNotFoundError: unknown collection.
        ItemValidationError: a field the collection requires is blank.
    """
    spec = get_collection(collection)
    fields, order, is_active = _split_document(document)
    _validate(spec, fields)
    record = CollectionItemRecord(
        collection=spec.name,
        fields=fields,
        order=order if order is not None else 0,
        is_active=is_active if is_active is not None else True,
    )
    session.add(record)
    await session.flush()
    logger.info(f"✅ {spec.name}: created item {record.id}")
    return record


async def create_items(
    session: AsyncSession,
    collection: str,
    documents: Iterable[Mapping[str, Any]],
) -> list[CollectionItemRecord]:
    """Insert several items; validation runs for all before any insert."""
    spec = get_collection(collection)
    split = [_split_document(doc) for doc in documents]
    for fields, _, _ in split:
        _validate(spec, fields)
    records = [
        CollectionItemRecord(
            collection=spec.name,
            fields=fields,
            order=order if order is not None else index,
            is_active=is_active if is_active is not None else True,
        )
        for index, (fields, order, is_active) in enumerate(split)
    ]
    session.add_all(records)
    await session.flush()
    logger.info(f"✅ {spec.name}: created {len(records)} item(s) in batch")
    return records


async def update_item(
    session: AsyncSession,
    collection: str,
    item_id: str,
    document: Mapping[str, Any],
) -> CollectionItemRecord:
    """Replace an item's fields; ``order``/``isActive`` change only when given.

    Raises:
        ItemNotFoundError: the id is unknown in *collection*.
        ItemValidationError: a field the collection requires is blank.
    """
    spec = get_collection(collection)
    fields, order, is_active = _split_document(document)
    _validate(spec, fields)
    record = await get_item(session, spec.name, item_id)
    # Assign a new dict so the JSON column is flagged dirty.
    record.fields = fields
    if order is not None:
        record.order = order
    if is_active is not None:
        record.is_active = is_active
    await session.flush()
    logger.info(f"{spec.name}: updated item {item_id}")
    return record


async def delete_item(session: AsyncSession, collection: str, item_id: str) -> None:
    """Raises ``ItemNotFoundError`` when the id is unknown in *collection*."""
    record = await get_item(session, collection, item_id)
    await session.delete(record)
    await session.flush()
    logger.info(f"{record.collection}: deleted item {item_id}")


class SqlItemBackend:
    """Per-item CRUD over the local database, for server-side reconciliation.

    Each operation runs in its own SAVEPOINT so one failing item does not
    poison the surrounding transaction. A single ``AsyncSession`` must not
    be used concurrently: run the reconciler with ``max_concurrency=1``.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_item(self, collection: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        try:
            async with self.session.begin_nested():
                record = await create_item(self.session, collection, fields)
        except ItemValidationError as exc:
            raise ItemBackendError(str(exc), status_code=400) from exc
        return record.to_document()

    async def update_item(
        self, collection: str, identity: str, fields: Mapping[str, Any]
    ) -> dict[str, Any]:
        try:
            async with self.session.begin_nested():
                record = await update_item(self.session, collection, identity, fields)
        except ItemValidationError as exc:
            raise ItemBackendError(str(exc), status_code=400) from exc
        except ItemNotFoundError as exc:
            raise ItemBackendError(str(exc), status_code=404) from exc
        return record.to_document()

    async def delete_item(self, collection: str, identity: str) -> None:
        try:
            async with self.session.begin_nested():
                await delete_item(self.session, collection, identity)
        except ItemNotFoundError as exc:
            raise ItemBackendError(str(exc), status_code=404) from exc
