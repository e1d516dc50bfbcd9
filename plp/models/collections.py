"""Wire models for the item-collection endpoints.

Item bodies are free-form documents (each collection has its own fields),
so they travel as plain dicts; only the envelopes are modelled.
"""
from __future__ import annotations

from typing import Any

from pydantic import Field

from plp.models.base import CamelModel


class CollectionListResponse(CamelModel):
    collection: str
    items: list[dict[str, Any]]
    count: int


class BatchCreateRequest(CamelModel):
    items: list[dict[str, Any]] = Field(..., min_length=1, max_length=500)


class BatchCreateResponse(CamelModel):
    collection: str
    created: list[dict[str, Any]]
    count: int


class ItemDeleteResponse(CamelModel):
    success: bool = True
    id: str


class SyncRequest(CamelModel):
    """Snapshot pair for a server-side reconciliation.

    When ``original`` is omitted the collection's current stored items are
    used as the baseline.
    """

    working: list[dict[str, Any]]
    original: list[dict[str, Any]] | None = None
    dry_run: bool = False


class SyncFailure(CamelModel):
    operation: str
    id: str | None = None
    item: dict[str, Any]
    error: str
    error_type: str


class SyncResponse(CamelModel):
    """Reconciliation outcome plus the working snapshot with assigned ids."""

    collection: str
    status: str
    attempted: int
    created: int
    updated: int
    deleted: int
    failures: list[SyncFailure] = Field(default_factory=list)
    unresolved: list[dict[str, Any]] = Field(default_factory=list)
    working: list[dict[str, Any]]
    planned: dict[str, int] = Field(default_factory=dict)
