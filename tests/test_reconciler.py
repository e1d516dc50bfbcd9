"""Tests for ChangeSetReconciler.apply (plp/reconcile/reconciler.py)."""
from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

import pytest

from plp.catalog import CollectionSpec
from plp.reconcile import (
    ChangeSet,
    ChangeSetReconciler,
    CollectionItem,
    ItemBackendError,
    SaveStatus,
)

SPEC = CollectionSpec(name="people", required_field="name", natural_key=("name", "term"))


def item(identity: str | None = None, order: int = 0, **fields: object) -> CollectionItem:
    return CollectionItem(fields=dict(fields), identity=identity, order=order)


class RecordingBackend:
    """In-memory item backend that records every call in order."""

    def __init__(self, fail_names: set[str] | None = None, fail_ids: set[str] | None = None) -> None:
        self.calls: list[tuple[str, str]] = []
        self.fail_names = fail_names or set()
        self.fail_ids = fail_ids or set()
        self._next = 0

    async def create_item(self, collection: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        await asyncio.sleep(0)
        self.calls.append(("create", str(fields.get("name"))))
        if fields.get("name") in self.fail_names:
            raise ItemBackendError("boom", status_code=500)
        self._next += 1
        return {"id": f"new-{self._next}", **fields}

    async def update_item(
        self, collection: str, identity: str, fields: Mapping[str, Any]
    ) -> dict[str, Any]:
        await asyncio.sleep(0)
        self.calls.append(("update", identity))
        if identity in self.fail_ids:
            raise ItemBackendError("update refused", status_code=400)
        return {"id": identity, **fields}

    async def delete_item(self, collection: str, identity: str) -> None:
        await asyncio.sleep(0)
        self.calls.append(("delete", identity))
        if identity in self.fail_ids:
            raise ItemBackendError("gone", status_code=404)


@pytest.mark.anyio
async def test_empty_change_set_makes_no_calls() -> None:
    backend = RecordingBackend()
    snapshot = [item("a", 0, name="Kim")]
    result = await ChangeSetReconciler(SPEC).reconcile(snapshot, snapshot, backend)
    assert backend.calls == []
    assert result.status is SaveStatus.NO_CHANGES
    assert result.ok


@pytest.mark.anyio
async def test_phase_order_delete_before_create_before_update() -> None:
    backend = RecordingBackend()
    original = [item("old", 0, name="Kim", term="1"), item("keep", 1, name="Park", term="1")]
    working = [item("keep", 0, name="Park", term="1"), item(None, 1, name="Kim", term="1")]

    result = await ChangeSetReconciler(SPEC).reconcile(original, working, backend)

    assert [op for op, _ in backend.calls] == ["delete", "create", "update"]
    assert backend.calls[0] == ("delete", "old")
    assert result.status is SaveStatus.SUCCESS
    assert (result.created, result.updated, result.deleted) == (1, 1, 1)


@pytest.mark.anyio
async def test_phases_do_not_interleave_under_concurrency() -> None:
    backend = RecordingBackend()
    original = [item(f"d{i}", i, name=f"Del{i}") for i in range(3)]
    original += [item(f"u{i}", 10 + i, name=f"Up{i}") for i in range(3)]
    working = [item(f"u{i}", 20 + i, name=f"Up{i}") for i in range(3)]
    working += [item(None, 30 + i, name=f"New{i}") for i in range(3)]

    await ChangeSetReconciler(SPEC, max_concurrency=3).reconcile(original, working, backend)

    ops = [op for op, _ in backend.calls]
    assert ops == ["delete"] * 3 + ["create"] * 3 + ["update"] * 3


@pytest.mark.anyio
async def test_partial_failure_isolation() -> None:
    backend = RecordingBackend(fail_names={"Lee"})
    working = [
        item(None, 0, name="Kim", term="1"),
        item(None, 1, name="Lee", term="1"),
        item(None, 2, name="Choi", term="1"),
    ]

    result = await ChangeSetReconciler(SPEC).reconcile([], working, backend)

    assert len(result.failures) == 1
    failure = result.failures[0]
    assert failure.operation == "create"
    assert failure.item.fields["name"] == "Lee"
    assert failure.error_type == "ItemBackendError"
    assert result.created == 2
    assert result.status is SaveStatus.PARTIAL
    assert working[0].identity is not None
    assert working[1].identity is None
    assert working[2].identity is not None
    assert working[0].identity != working[2].identity


@pytest.mark.anyio
async def test_all_failures_is_failed_status() -> None:
    backend = RecordingBackend(fail_ids={"a", "b"})
    original = [item("a", 0, name="A"), item("b", 1, name="B")]
    result = await ChangeSetReconciler(SPEC).reconcile(original, [], backend)
    assert result.status is SaveStatus.FAILED
    assert not result.ok
    assert result.deleted == 0


@pytest.mark.anyio
async def test_failed_delete_does_not_block_create() -> None:
    backend = RecordingBackend(fail_ids={"a"})
    original = [item("a", 0, name="A")]
    working = [item(None, 0, name="B")]
    result = await ChangeSetReconciler(SPEC).reconcile(original, working, backend)
    assert result.status is SaveStatus.PARTIAL
    assert working[0].identity == "new-1"


@pytest.mark.anyio
async def test_identity_written_back_by_natural_key_not_position() -> None:
    class ReversingBackend(RecordingBackend):
        """Completes the first create last."""

        async def create_item(self, collection: str, fields: Mapping[str, Any]) -> dict[str, Any]:
            if fields["name"] == "First":
                await asyncio.sleep(0.01)
            return {"id": f"id-{fields['name']}", **fields}

    working = [item(None, 0, name="First", term="1"), item(None, 1, name="Second", term="1")]
    await ChangeSetReconciler(SPEC, max_concurrency=2).reconcile([], working, ReversingBackend())
    assert working[0].identity == "id-First"
    assert working[1].identity == "id-Second"


@pytest.mark.anyio
async def test_ambiguous_natural_key_is_unresolved() -> None:
    backend = RecordingBackend()
    working = [item(None, 0, name="Kim", term="1"), item(None, 1, name="Kim", term="1")]

    result = await ChangeSetReconciler(SPEC).reconcile([], working, backend)

    assert result.created == 2
    assert len(result.unresolved) == 2
    assert all(i.identity is None for i in working)


@pytest.mark.anyio
async def test_missing_identity_in_response_is_a_failure() -> None:
    class NoIdBackend(RecordingBackend):
        async def create_item(self, collection: str, fields: Mapping[str, Any]) -> dict[str, Any]:
            return dict(fields)

    working = [item(None, 0, name="Kim")]
    result = await ChangeSetReconciler(SPEC).reconcile([], working, NoIdBackend())
    assert len(result.failures) == 1
    assert working[0].identity is None


@pytest.mark.anyio
async def test_create_payload_carries_order_and_no_identity() -> None:
    seen: list[dict[str, Any]] = []

    class CapturingBackend(RecordingBackend):
        async def create_item(self, collection: str, fields: Mapping[str, Any]) -> dict[str, Any]:
            seen.append(dict(fields))
            return {"_id": "m1", **fields}

    working = [item(None, 7, name="Kim", term="2")]
    await ChangeSetReconciler(SPEC).reconcile([], working, CapturingBackend())
    assert seen == [{"name": "Kim", "term": "2", "order": 7}]
    # ``_id`` is accepted as the identity key too.
    assert working[0].identity == "m1"


@pytest.mark.anyio
async def test_apply_with_explicit_change_set() -> None:
    backend = RecordingBackend()
    target = item("a", 0, name="A")
    result = await ChangeSetReconciler(SPEC).apply(ChangeSet(updated=(target,)), backend, [target])
    assert backend.calls == [("update", "a")]
    assert result.updated_items == [target]


def test_max_concurrency_must_be_positive() -> None:
    with pytest.raises(ValueError):
        ChangeSetReconciler(SPEC, max_concurrency=0)
