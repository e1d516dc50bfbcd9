"""
Database module for PLP CMS.

Provides async SQLAlchemy support with PostgreSQL and SQLite.
"""
from __future__ import annotations

from plp.db.database import (
    get_db,
    init_db,
    close_db,
    open_session,
)
from plp.db.models import CollectionItemRecord, ContentDocument

__all__ = [
    "get_db",
    "init_db",
    "close_db",
    "open_session",
    "CollectionItemRecord",
    "ContentDocument",
]
