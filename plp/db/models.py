"""
SQLAlchemy ORM models for PLP CMS.

Tables:
- content_documents: one JSON document per content type (greeting, footer, ...)
- collection_items: items of the editable collections (faculty, benefits, ...)
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Boolean, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from plp.db.database import Base


def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


class ContentDocument(Base):
    """
    A whole content payload keyed by its content type.

    Saving replaces ``data`` wholesale; there is no version column, so two
    editors saving the same type concurrently resolve as last write wins.
    """
    __tablename__ = "content_documents"

    content_type: Mapped[str] = mapped_column(String(64), primary_key=True)
    data: Mapped[Any] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        onupdate=utc_now,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<ContentDocument {self.content_type}>"


class CollectionItemRecord(Base):
    """
    One item of an editable collection.

    ``fields`` holds the page-owned attributes verbatim (name, biography,
    imageUrl, ...). ``order`` and ``is_active`` are promoted to columns
    because public listings filter and sort on them.
    """
    __tablename__ = "collection_items"
    __table_args__ = (
        Index("ix_collection_items_collection_order", "collection", "order"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=generate_uuid,
    )
    collection: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    fields: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        onupdate=utc_now,
        nullable=False,
    )

    def to_document(self) -> dict[str, Any]:
        """Wire shape: ``id`` + fields + ``order``/``isActive`` + timestamps."""
        doc: dict[str, Any] = {"id": self.id}
        doc.update(self.fields or {})
        doc["order"] = self.order
        doc["isActive"] = self.is_active
        doc["createdAt"] = self.created_at.isoformat() if self.created_at else None
        doc["updatedAt"] = self.updated_at.isoformat() if self.updated_at else None
        return doc

    def __repr__(self) -> str:
        return f"<CollectionItemRecord {self.collection}/{self.id} order={self.order}>"
