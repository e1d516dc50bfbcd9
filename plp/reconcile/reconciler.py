"""Apply a change set against a per-item CRUD backend.

Phases run in a fixed order and each settles before the next starts:

    delete  ->  create  ->  update

Deleting first avoids transient natural-key clashes when an item is removed
and re-added under the same name; creating before updating means every new
item has its identity before anything else touches the collection.

Within a phase item operations are independent and may run concurrently
(bounded by ``max_concurrency``). A failing item never cancels its
siblings: the error is recorded in the result and the batch continues.

Identity write-back after a create is an explicit natural-key lookup in the
working snapshot, never positional. When two identity-less working items
share a natural key the lookup is ambiguous; the identity is not guessed and
the item is reported in ``unresolved`` instead.
"""
from __future__ import annotations

import asyncio
import logging
from collections import Counter
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Protocol

from plp.catalog import CollectionSpec
from plp.contracts import JSONValue
from plp.reconcile.changeset import ChangeSet, compute_change_set, validate_snapshot
from plp.reconcile.items import IDENTITY_KEYS, CollectionItem

logger = logging.getLogger(__name__)

Operation = Literal["delete", "create", "update"]


class ItemBackendError(Exception):
    """Raised by a backend when a single item operation fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ItemBackend(Protocol):
    """Per-item CRUD surface of an item collection."""

    async def create_item(
        self, collection: str, fields: Mapping[str, JSONValue]
    ) -> dict[str, Any]: ...

    async def update_item(
        self, collection: str, identity: str, fields: Mapping[str, JSONValue]
    ) -> dict[str, Any]: ...

    async def delete_item(self, collection: str, identity: str) -> None: ...


class SaveStatus(str, Enum):
    """Aggregate outcome shown to the editor after a save."""

    NO_CHANGES = "no_changes"
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass(frozen=True)
class ItemFailure:
    """One item whose backend operation raised."""

    operation: Operation
    item: CollectionItem
    error: str
    error_type: str = "Exception"


@dataclass
class ReconciliationResult:
    """Per-item outcome of :meth:`ChangeSetReconciler.apply`."""

    collection: str
    attempted: int = 0
    created: int = 0
    updated: int = 0
    deleted: int = 0
    failures: list[ItemFailure] = field(default_factory=list)
    unresolved: list[CollectionItem] = field(default_factory=list)
    created_items: list[CollectionItem] = field(default_factory=list)
    updated_items: list[CollectionItem] = field(default_factory=list)
    deleted_items: list[CollectionItem] = field(default_factory=list)

    @property
    def status(self) -> SaveStatus:
        if self.attempted == 0:
            return SaveStatus.NO_CHANGES
        if not self.failures:
            return SaveStatus.SUCCESS
        if len(self.failures) >= self.attempted:
            return SaveStatus.FAILED
        return SaveStatus.PARTIAL

    @property
    def ok(self) -> bool:
        return self.status in (SaveStatus.NO_CHANGES, SaveStatus.SUCCESS)


def _identity_from(document: Mapping[str, Any]) -> str | None:
    for key in IDENTITY_KEYS:
        raw = document.get(key)
        if raw is not None and str(raw).strip():
            return str(raw)
    return None


class ChangeSetReconciler:
    """Compute and apply change sets for one collection."""

    def __init__(self, spec: CollectionSpec, max_concurrency: int = 4) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.spec = spec
        self.max_concurrency = max_concurrency

    def compute(
        self,
        original: Sequence[CollectionItem],
        working: Sequence[CollectionItem],
    ) -> ChangeSet:
        """Validate both snapshots, then diff them.

        Raises:
            SnapshotValidationError: a snapshot repeats an identity.
        """
        validate_snapshot(original, label=f"{self.spec.name} original")
        validate_snapshot(working, label=f"{self.spec.name} working")
        return compute_change_set(original, working, self.spec)

    async def apply(
        self,
        change_set: ChangeSet,
        backend: ItemBackend,
        working: list[CollectionItem],
    ) -> ReconciliationResult:
        """Issue the backend calls for *change_set*, writing identities into *working*."""
        name = self.spec.name
        result = ReconciliationResult(collection=name)
        if change_set.is_empty:
            logger.debug(f"{name}: no changes to apply")
            return result

        result.attempted = change_set.total
        logger.info(
            f"🔄 Reconciling {name}: +{len(change_set.created)} "
            f"~{len(change_set.updated)} -{len(change_set.deleted)}"
        )
        semaphore = asyncio.Semaphore(self.max_concurrency)

        # Phase 1: delete
        async def _delete(item: CollectionItem) -> None:
            assert item.identity is not None
            await backend.delete_item(name, item.identity)

        for item, _, exc in await self._run_phase(semaphore, "delete", change_set.deleted, _delete):
            if exc is None:
                result.deleted += 1
                result.deleted_items.append(item)
            else:
                result.failures.append(self._failure("delete", item, exc))

        # Phase 2: create (natural keys captured before the calls go out)
        keys = {id(item): item.natural_key(self.spec.natural_key) for item in change_set.created}
        key_counts = Counter(
            i.natural_key(self.spec.natural_key)
            for i in working
            if i.identity is None and not i.is_blank(self.spec.required_field)
        )

        async def _create(item: CollectionItem) -> dict[str, Any]:
            return await backend.create_item(name, item.to_fields())

        outcomes = await self._run_phase(semaphore, "create", change_set.created, _create)
        for item, document, exc in outcomes:
            if exc is not None:
                result.failures.append(self._failure("create", item, exc))
                continue
            identity = _identity_from(document or {})
            if identity is None:
                result.failures.append(self._failure(
                    "create", item, ItemBackendError("backend returned no identity"),
                ))
                continue
            result.created += 1
            key = keys[id(item)]
            if key_counts[key] > 1:
                logger.warning(
                    f"⚠️ {name}: {key_counts[key]} new items share natural key {key!r}; "
                    f"identity {identity} not written back"
                )
                result.unresolved.append(item)
                continue
            target = self._find_by_natural_key(working, key)
            if target is None:
                logger.warning(f"⚠️ {name}: created item {key!r} no longer in working snapshot")
                result.unresolved.append(item)
                continue
            target.identity = identity
            result.created_items.append(target)

        # Phase 3: update
        async def _update(item: CollectionItem) -> dict[str, Any]:
            assert item.identity is not None
            return await backend.update_item(name, item.identity, item.to_fields())

        for item, _, exc in await self._run_phase(semaphore, "update", change_set.updated, _update):
            if exc is None:
                result.updated += 1
                result.updated_items.append(item)
            else:
                result.failures.append(self._failure("update", item, exc))

        if result.failures:
            logger.warning(
                f"⚠️ {name}: {len(result.failures)}/{result.attempted} operation(s) failed "
                f"(status={result.status.value})"
            )
        else:
            logger.info(f"✅ {name}: reconciled {result.attempted} operation(s)")
        return result

    async def reconcile(
        self,
        original: Sequence[CollectionItem],
        working: list[CollectionItem],
        backend: ItemBackend,
    ) -> ReconciliationResult:
        """``compute`` then ``apply`` in one call."""
        return await self.apply(self.compute(original, working), backend, working)

    async def _run_phase(
        self,
        semaphore: asyncio.Semaphore,
        operation: Operation,
        items: Sequence[CollectionItem],
        call: Callable[[CollectionItem], Awaitable[Any]],
    ) -> list[tuple[CollectionItem, Any, Exception | None]]:
        """Run *call* for every item; results keep the input order."""

        async def _guarded(item: CollectionItem) -> tuple[CollectionItem, Any, Exception | None]:
            async with semaphore:
                try:
                    return item, await call(item), None
                except Exception as exc:
                    logger.warning(
                        f"{self.spec.name}: {operation} failed for "
                        f"{item.identity or item.natural_key(self.spec.natural_key)!r}: {exc}"
                    )
                    return item, None, exc

        if not items:
            return []
        return list(await asyncio.gather(*(_guarded(i) for i in items)))

    def _find_by_natural_key(
        self, working: Sequence[CollectionItem], key: tuple[JSONValue, ...]
    ) -> CollectionItem | None:
        for candidate in working:
            if candidate.identity is None and candidate.natural_key(self.spec.natural_key) == key:
                return candidate
        return None

    @staticmethod
    def _failure(operation: Operation, item: CollectionItem, exc: Exception) -> ItemFailure:
        return ItemFailure(
            operation=operation,
            item=item,
            error=str(exc) or exc.__class__.__name__,
            error_type=exc.__class__.__name__,
        )
