"""Wire models for the page-content endpoints."""
from __future__ import annotations

from typing import Any

from pydantic import Field

from plp.models.base import CamelModel


class ContentTypeInfo(CamelModel):
    """One content type and the storage keys it is mirrored under."""

    content_type: str
    keys: list[str]


class ContentTypesResponse(CamelModel):
    types: list[ContentTypeInfo]


class ContentResponse(CamelModel):
    """A content payload and where it was read from."""

    content_type: str
    data: Any = None
    source: str = Field(
        ...,
        description="'database', 'store' (file mirror fallback) or 'empty'",
    )
    updated_at: str | None = None


class ContentSaveResponse(CamelModel):
    """Outcome of saving a content payload.

    ``stored_in`` lists the persistence layers that accepted the write; the
    save succeeds when at least one did.
    """

    success: bool
    content_type: str
    stored_in: list[str]
    keys_written: list[str] = Field(default_factory=list)
    keys_failed: list[str] = Field(default_factory=list)
    message: str = ""


class ContentDeleteResponse(CamelModel):
    success: bool
    content_type: str
    removed_keys: int
    removed_document: bool


class BackupResponse(CamelModel):
    """Timestamped backup keys created, by content type (``None``: nothing to back up)."""

    backups: dict[str, str | None]


class BackupListResponse(CamelModel):
    content_type: str
    backups: list[str]
