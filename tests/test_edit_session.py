"""Tests for EditSession (plp/reconcile/session.py): save, retry, snapshot isolation."""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import pytest

from plp.catalog import CollectionSpec
from plp.reconcile import CollectionItem, EditSession, ItemBackendError, SaveStatus

SPEC = CollectionSpec(name="people", required_field="name", natural_key=("name",))


class FlakyBackend:
    """Fails creates for names in ``fail_names`` until cleared."""

    def __init__(self) -> None:
        self.fail_names: set[str] = set()
        self.calls: list[tuple[str, str]] = []
        self._next = 0

    async def create_item(self, collection: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        self.calls.append(("create", str(fields["name"])))
        if fields["name"] in self.fail_names:
            raise ItemBackendError("temporarily unavailable", status_code=503)
        self._next += 1
        return {"id": f"id{self._next}", **fields}

    async def update_item(
        self, collection: str, identity: str, fields: Mapping[str, Any]
    ) -> dict[str, Any]:
        self.calls.append(("update", identity))
        return {"id": identity, **fields}

    async def delete_item(self, collection: str, identity: str) -> None:
        self.calls.append(("delete", identity))


def test_load_accepts_documents_and_separates_snapshots() -> None:
    session = EditSession(SPEC)
    session.load([{"id": "a1", "name": "Kim", "order": 0, "createdAt": "2025-01-01"}])

    assert session.original[0].identity == "a1"
    assert "createdAt" not in session.working[0].fields
    session.working[0].fields["name"] = "Kim Jr."
    assert session.original[0].fields["name"] == "Kim"


@pytest.mark.anyio
async def test_successful_save_advances_original() -> None:
    backend = FlakyBackend()
    session = EditSession(SPEC)
    session.load([CollectionItem(fields={"name": "Kim"}, identity="a1")])
    session.working.append(CollectionItem(fields={"name": "Lee"}, order=1))

    result = await session.save(backend)

    assert result.status is SaveStatus.SUCCESS
    assert session.pending_changes().is_empty
    assert {i.identity for i in session.original} == {"a1", "id1"}


@pytest.mark.anyio
async def test_retry_reissues_only_failed_operations() -> None:
    backend = FlakyBackend()
    backend.fail_names = {"Lee"}
    session = EditSession(SPEC)
    session.load([])
    session.working.extend([
        CollectionItem(fields={"name": "Kim"}, order=0),
        CollectionItem(fields={"name": "Lee"}, order=1),
    ])

    first = await session.save(backend)
    assert first.status is SaveStatus.PARTIAL
    assert session.working[1].identity is None
    # Edits survive the failure.
    assert [i.fields["name"] for i in session.working] == ["Kim", "Lee"]

    backend.fail_names = set()
    backend.calls.clear()
    second = await session.save(backend)

    assert second.status is SaveStatus.SUCCESS
    assert backend.calls == [("create", "Lee")]
    assert session.pending_changes().is_empty


@pytest.mark.anyio
async def test_save_with_no_changes_calls_nothing() -> None:
    backend = FlakyBackend()
    session = EditSession(SPEC)
    session.load([{"id": "a1", "name": "Kim"}])
    result = await session.save(backend)
    assert result.status is SaveStatus.NO_CHANGES
    assert backend.calls == []


@pytest.mark.anyio
async def test_ambiguous_creates_stay_pending_and_warn(caplog: pytest.LogCaptureFixture) -> None:
    backend = FlakyBackend()
    session = EditSession(SPEC)
    session.load([])
    session.working.extend([
        CollectionItem(fields={"name": "Kim"}, order=0),
        CollectionItem(fields={"name": "Kim"}, order=1),
    ])

    with caplog.at_level("WARNING"):
        result = await session.save(backend)

    assert len(result.unresolved) == 2
    assert all(i.identity is None for i in session.working)
    assert "will be created again" in caplog.text
    # Without identities the same items are still pending creation.
    assert len(session.pending_changes().created) == 2
