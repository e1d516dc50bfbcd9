"""Collection items and snapshots.

A snapshot is a plain ordered ``list[CollectionItem]``. Items convert to
and from the wire documents the API speaks (``{"id": ..., "order": ...,
**fields}``); server-managed bookkeeping such as timestamps is dropped on
the way in so it never shows up as an edit.
"""
from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from plp.contracts import JSONValue

IDENTITY_KEYS: tuple[str, ...] = ("id", "_id")
ORDER_KEY = "order"
SERVER_MANAGED_KEYS: frozenset[str] = frozenset({"createdAt", "updatedAt", "__v"})

Snapshot = list["CollectionItem"]


@dataclass
class CollectionItem:
    """One editable entry of a collection (a faculty member, a benefit, ...)."""

    fields: dict[str, JSONValue] = field(default_factory=dict)
    identity: str | None = None
    order: int = 0

    def is_blank(self, field_name: str) -> bool:
        """True when *field_name* is missing or only whitespace."""
        value = self.fields.get(field_name)
        if value is None:
            return True
        if isinstance(value, str):
            return value.strip() == ""
        return False

    def natural_key(self, names: Iterable[str]) -> tuple[JSONValue, ...]:
        """Values of the natural-key fields, strings stripped."""
        key: list[JSONValue] = []
        for name in names:
            value = self.fields.get(name)
            key.append(value.strip() if isinstance(value, str) else value)
        return tuple(key)

    def to_fields(self) -> dict[str, JSONValue]:
        """Payload sent to the backend: the fields plus ``order``."""
        payload = copy.deepcopy(self.fields)
        payload[ORDER_KEY] = self.order
        return payload

    def to_document(self) -> dict[str, JSONValue]:
        doc: dict[str, JSONValue] = {}
        if self.identity is not None:
            doc["id"] = self.identity
        doc.update(self.to_fields())
        return doc

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> CollectionItem:
        """Build an item from a wire document (``id``/``_id`` + ``order`` + fields)."""
        identity: str | None = None
        for key in IDENTITY_KEYS:
            raw = doc.get(key)
            if raw is not None and str(raw).strip():
                identity = str(raw)
                break
        raw_order = doc.get(ORDER_KEY, 0)
        try:
            order = int(raw_order) if raw_order is not None else 0
        except (TypeError, ValueError):
            order = 0
        fields = {
            k: copy.deepcopy(v)
            for k, v in doc.items()
            if k not in IDENTITY_KEYS and k != ORDER_KEY and k not in SERVER_MANAGED_KEYS
        }
        return cls(fields=fields, identity=identity, order=order)


def snapshot_from_documents(docs: Iterable[Mapping[str, Any]]) -> Snapshot:
    return [CollectionItem.from_document(d) for d in docs]


def snapshot_to_documents(snapshot: Iterable[CollectionItem]) -> list[dict[str, JSONValue]]:
    return [item.to_document() for item in snapshot]


def clone_snapshot(snapshot: Iterable[CollectionItem]) -> Snapshot:
    """Deep copy, so later edits to one side never leak into the other."""
    return [copy.deepcopy(item) for item in snapshot]
