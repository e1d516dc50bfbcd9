"""Health check endpoints."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from plp.config import settings
from plp.db import get_db

router = APIRouter()


def _data_dir_writable() -> bool:
    path = Path(settings.data_dir)
    return path.is_dir() and os.access(path, os.W_OK)


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Basic health check."""
    return {
        "status": "ok",
        "service": settings.app_name,
        "version": settings.app_version,
    }


@router.get("/health/full")
async def full_health_check(db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    """
    Full health check including dependencies.

    Reports:
    - database: a trivial query round-trips
    - file store: the data directory exists and is writable
    """
    try:
        await db.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError:
        db_ok = False
    store_ok = _data_dir_writable()

    return {
        # The file mirror alone keeps content readable, so only the DB degrades.
        "status": "ok" if db_ok else "degraded",
        "service": settings.app_name,
        "version": settings.app_version,
        "dependencies": {
            "database": {"status": "ok" if db_ok else "unavailable"},
            "fileStore": {
                "status": "ok" if store_ok else "unavailable",
                "path": str(settings.data_dir),
            },
        },
    }
