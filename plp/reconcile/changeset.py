"""Change-set computation: 'git status' for an edited collection.

Compares the last persisted snapshot (``original``) against the edited one
(``working``) and produces the create / update / delete lists a backend that
only speaks per-item CRUD needs in order to converge.

Pure data: no side effects, no mutations, no backend calls.

Rules:
  - Items whose required display field is blank are drafts. They are
    filtered out of both snapshots before comparison and never appear in
    any output list.
  - No identity -> ``created``.
  - Identity in ``original`` but not in the filtered ``working`` -> ``deleted``.
  - Identity in both with any field or ``order`` different by value -> ``updated``.
  - ``created`` / ``updated`` follow working order; ``deleted`` follows
    original order.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from plp.catalog import CollectionSpec
from plp.reconcile.items import CollectionItem

logger = logging.getLogger(__name__)


class SnapshotValidationError(ValueError):
    """Raised when a snapshot breaks an invariant; no backend call is attempted."""

    def __init__(self, message: str, identities: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.identities = tuple(identities)


@dataclass(frozen=True)
class ChangeSet:
    """Disjoint create / update / delete lists for one save attempt.

    ``created`` and ``updated`` hold the live working items (not copies) so
    identities assigned on creation land in the caller's snapshot.
    """

    created: tuple[CollectionItem, ...] = ()
    updated: tuple[CollectionItem, ...] = ()
    deleted: tuple[CollectionItem, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.created or self.updated or self.deleted)

    @property
    def total(self) -> int:
        return len(self.created) + len(self.updated) + len(self.deleted)

    def summary(self) -> dict[str, int]:
        return {
            "created": len(self.created),
            "updated": len(self.updated),
            "deleted": len(self.deleted),
        }


def validate_snapshot(snapshot: Sequence[CollectionItem], *, label: str = "snapshot") -> None:
    """Reject snapshots that carry the same identity twice."""
    seen: set[str] = set()
    duplicates: list[str] = []
    for item in snapshot:
        if item.identity is None:
            continue
        if item.identity in seen and item.identity not in duplicates:
            duplicates.append(item.identity)
        seen.add(item.identity)
    if duplicates:
        raise SnapshotValidationError(
            f"{label} contains duplicate identities: {', '.join(duplicates)}",
            identities=duplicates,
        )


def _differs(before: CollectionItem, after: CollectionItem) -> bool:
    return before.order != after.order or before.fields != after.fields


def compute_change_set(
    original: Sequence[CollectionItem],
    working: Sequence[CollectionItem],
    spec: CollectionSpec,
) -> ChangeSet:
    """Diff *original* against *working* for the collection described by *spec*."""
    required = spec.required_field
    kept_original = [i for i in original if not i.is_blank(required)]
    kept_working = [i for i in working if not i.is_blank(required)]

    drafts = (len(original) - len(kept_original)) + (len(working) - len(kept_working))
    if drafts:
        logger.debug(f"{spec.name}: ignoring {drafts} draft item(s) with blank {required!r}")

    before_by_id = {i.identity: i for i in kept_original if i.identity is not None}
    working_ids = {i.identity for i in kept_working if i.identity is not None}

    created: list[CollectionItem] = []
    updated: list[CollectionItem] = []
    for item in kept_working:
        if item.identity is None:
            created.append(item)
            continue
        before = before_by_id.get(item.identity)
        if before is not None and _differs(before, item):
            updated.append(item)
        # Identity unknown to ``original``: the item exists server-side but
        # this session never saw it, so there is nothing to diff against.

    deleted = [
        i for i in kept_original
        if i.identity is not None and i.identity not in working_ids
    ]

    return ChangeSet(created=tuple(created), updated=tuple(updated), deleted=tuple(deleted))
