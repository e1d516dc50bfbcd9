"""Tests for collection persistence and the SQL item backend (plp/services/collections.py)."""
from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from plp.catalog import CollectionNotFoundError, get_collection
from plp.reconcile import ChangeSetReconciler, CollectionItem, ItemBackendError, SaveStatus
from plp.services import collections as svc
from plp.services.collections import ItemNotFoundError, ItemValidationError, SqlItemBackend
from plp.services.seed import SAMPLE_ITEMS, seed_collections


@pytest.mark.anyio
async def test_create_splits_columns_from_fields(db_session: AsyncSession) -> None:
    record = await svc.create_item(
        db_session,
        "faculty",
        {"id": "client-id", "name": "Kim", "term": "1", "order": 3, "isActive": False, "createdAt": "x"},
    )
    assert record.id != "client-id"
    assert record.fields == {"name": "Kim", "term": "1"}
    assert record.order == 3
    assert record.is_active is False

    doc = record.to_document()
    assert doc["id"] == record.id
    assert doc["name"] == "Kim"
    assert doc["order"] == 3
    assert doc["isActive"] is False


@pytest.mark.anyio
async def test_create_requires_collection_fields(db_session: AsyncSession) -> None:
    with pytest.raises(ItemValidationError) as exc_info:
        await svc.create_item(db_session, "professors", {"sectionTitle": "운영 교수진"})
    assert exc_info.value.missing == ("professors",)


@pytest.mark.anyio
async def test_blank_string_counts_as_missing(db_session: AsyncSession) -> None:
    with pytest.raises(ItemValidationError):
        await svc.create_item(db_session, "faculty", {"name": "   "})


@pytest.mark.anyio
async def test_unknown_collection(db_session: AsyncSession) -> None:
    with pytest.raises(CollectionNotFoundError):
        await svc.list_items(db_session, "unicorns")


@pytest.mark.anyio
async def test_list_filters_inactive_and_sorts_by_order(db_session: AsyncSession) -> None:
    await svc.create_item(db_session, "benefits", {"title": "B", "description": "d", "order": 2})
    await svc.create_item(db_session, "benefits", {"title": "A", "description": "d", "order": 1})
    await svc.create_item(
        db_session, "benefits", {"title": "Hidden", "description": "d", "order": 0, "isActive": False}
    )
    await svc.create_item(db_session, "objectives", {"title": "Other", "description": "d"})

    active = await svc.list_items(db_session, "benefits")
    assert [r.fields["title"] for r in active] == ["A", "B"]

    everything = await svc.list_items(db_session, "benefits", include_inactive=True)
    assert [r.fields["title"] for r in everything] == ["Hidden", "A", "B"]


@pytest.mark.anyio
async def test_update_replaces_fields_and_keeps_unset_columns(db_session: AsyncSession) -> None:
    record = await svc.create_item(
        db_session, "faculty", {"name": "Kim", "bio": "old", "order": 4, "isActive": False}
    )
    updated = await svc.update_item(db_session, "faculty", record.id, {"name": "Kim"})
    assert updated.fields == {"name": "Kim"}
    assert updated.order == 4
    assert updated.is_active is False


@pytest.mark.anyio
async def test_get_update_delete_unknown_id(db_session: AsyncSession) -> None:
    with pytest.raises(ItemNotFoundError):
        await svc.get_item(db_session, "faculty", "missing")
    with pytest.raises(ItemNotFoundError):
        await svc.update_item(db_session, "faculty", "missing", {"name": "x"})
    with pytest.raises(ItemNotFoundError):
        await svc.delete_item(db_session, "faculty", "missing")


@pytest.mark.anyio
async def test_item_ids_are_scoped_to_collection(db_session: AsyncSession) -> None:
    record = await svc.create_item(db_session, "faculty", {"name": "Kim"})
    with pytest.raises(ItemNotFoundError):
        await svc.get_item(db_session, "graduates", record.id)


@pytest.mark.anyio
async def test_batch_validates_everything_first(db_session: AsyncSession) -> None:
    with pytest.raises(ItemValidationError):
        await svc.create_items(
            db_session, "graduates", [{"name": "Kim", "term": "1"}, {"name": "Lee"}]
        )
    assert await svc.list_items(db_session, "graduates") == []


@pytest.mark.anyio
async def test_batch_default_order_follows_position(db_session: AsyncSession) -> None:
    records = await svc.create_items(
        db_session, "graduates", [{"name": "Kim", "term": "1"}, {"name": "Lee", "term": "1"}]
    )
    assert [r.order for r in records] == [0, 1]


@pytest.mark.anyio
async def test_sql_backend_maps_errors(db_session: AsyncSession) -> None:
    backend = SqlItemBackend(db_session)
    with pytest.raises(ItemBackendError) as invalid:
        await backend.create_item("faculty", {"bio": "no name"})
    assert invalid.value.status_code == 400
    with pytest.raises(ItemBackendError) as missing:
        await backend.delete_item("faculty", "missing")
    assert missing.value.status_code == 404


@pytest.mark.anyio
async def test_reconcile_against_database(db_session: AsyncSession) -> None:
    spec = get_collection("faculty")
    kim = await svc.create_item(db_session, "faculty", {"name": "Kim", "term": "1", "order": 0})
    park = await svc.create_item(db_session, "faculty", {"name": "Park", "term": "1", "order": 1})
    original = [CollectionItem.from_document(r.to_document()) for r in (kim, park)]

    working = [
        CollectionItem.from_document(kim.to_document()),
        CollectionItem(fields={"name": "Lee", "term": "1", "isActive": True}, order=2),
    ]
    working[0].order = 5

    reconciler = ChangeSetReconciler(spec, max_concurrency=1)
    result = await reconciler.reconcile(original, working, SqlItemBackend(db_session))

    assert result.status is SaveStatus.SUCCESS
    assert (result.created, result.updated, result.deleted) == (1, 1, 1)
    stored = await svc.list_items(db_session, "faculty", include_inactive=True)
    assert [(r.fields["name"], r.order) for r in stored] == [("Lee", 2), ("Kim", 5)]
    assert working[1].identity == stored[0].id


@pytest.mark.anyio
async def test_failed_item_does_not_roll_back_siblings(db_session: AsyncSession) -> None:
    spec = get_collection("faculty")
    ghost = CollectionItem(fields={"name": "Ghost"}, identity="not-in-db")
    working = [CollectionItem(fields={"name": "Real"}, order=0)]

    reconciler = ChangeSetReconciler(spec, max_concurrency=1)
    result = await reconciler.reconcile([ghost], working, SqlItemBackend(db_session))

    assert result.status is SaveStatus.PARTIAL
    assert result.failures[0].operation == "delete"
    assert [r.fields["name"] for r in await svc.list_items(db_session, "faculty")] == ["Real"]


@pytest.mark.anyio
async def test_seed_only_fills_empty_collections(db_session: AsyncSession) -> None:
    await svc.create_item(db_session, "notices", {"title": "Existing", "content": "x"})

    inserted = await seed_collections(db_session)

    assert inserted["notices"] == 0
    assert inserted["benefits"] == len(SAMPLE_ITEMS["benefits"])
    again = await seed_collections(db_session)
    assert sum(again.values()) == 0
