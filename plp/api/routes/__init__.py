"""API route modules."""
from __future__ import annotations

from plp.api.routes import auth, collections, content, events, health

__all__ = ["auth", "collections", "content", "events", "health"]
