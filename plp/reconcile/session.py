"""Edit session: the original/working snapshot pair behind one editor."""
from __future__ import annotations

import copy
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from plp.catalog import CollectionSpec
from plp.reconcile.changeset import ChangeSet
from plp.reconcile.items import CollectionItem, Snapshot, clone_snapshot
from plp.reconcile.reconciler import ChangeSetReconciler, ItemBackend, ReconciliationResult

logger = logging.getLogger(__name__)


class EditSession:
    """Holds ``original`` (last persisted) and ``working`` (being edited).

    ``working`` is a plain list the editing surface mutates freely.
    ``original`` only moves forward after a save, and only by what the
    backend actually accepted, so a retry after a partial failure re-issues
    exactly the operations that failed. Edits in ``working`` are never
    discarded.

    Items reported in ``result.unresolved`` were created on the backend but
    keep no identity here, because their natural key matched more than one
    new item. The next ``save`` creates them again. Callers should reload
    the collection after such a save; ``save`` logs a warning when it happens.
    """

    def __init__(self, spec: CollectionSpec, max_concurrency: int = 4) -> None:
        self.spec = spec
        self.reconciler = ChangeSetReconciler(spec, max_concurrency=max_concurrency)
        self._original: Snapshot = []
        self.working: Snapshot = []

    @property
    def original(self) -> tuple[CollectionItem, ...]:
        return tuple(self._original)

    def load(self, items: Iterable[CollectionItem | Mapping[str, Any]]) -> None:
        """Capture a freshly loaded collection as both original and working."""
        self.working = [
            i if isinstance(i, CollectionItem) else CollectionItem.from_document(i)
            for i in items
        ]
        self._original = clone_snapshot(self.working)

    def pending_changes(self) -> ChangeSet:
        return self.reconciler.compute(self._original, self.working)

    async def save(self, backend: ItemBackend) -> ReconciliationResult:
        """Reconcile working against original through *backend*.

        Raises:
            SnapshotValidationError: before any backend call, when a snapshot
                repeats an identity.
        """
        change_set = self.pending_changes()
        result = await self.reconciler.apply(change_set, backend, self.working)
        self._advance(result)
        if result.unresolved:
            logger.warning(
                f"⚠️ {self.spec.name}: {len(result.unresolved)} created item(s) have no identity "
                f"locally and will be created again on the next save; reload the collection"
            )
        return result

    def _advance(self, result: ReconciliationResult) -> None:
        if not result.failures:
            self._original = clone_snapshot(self.working)
            return

        deleted = {i.identity for i in result.deleted_items}
        updated = {i.identity: i for i in result.updated_items}
        advanced: Snapshot = []
        for item in self._original:
            if item.identity in deleted:
                continue
            if item.identity in updated:
                advanced.append(copy.deepcopy(updated[item.identity]))
            else:
                advanced.append(item)
        advanced.extend(copy.deepcopy(i) for i in result.created_items)
        self._original = advanced
        logger.info(
            f"{self.spec.name}: kept {len(result.failures)} failed change(s) pending for retry"
        )
