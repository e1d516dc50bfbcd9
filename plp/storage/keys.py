"""Content type -> storage key table.

Each logical content type is backed by several physical keys, listed in read
priority order. Writes go to every key; reads take the first usable one.
Keep all key names here so the fallback chain can be audited in one place.
"""
from __future__ import annotations

from dataclasses import dataclass


BACKUP_SUFFIXES: tuple[str, ...] = ("_backup1", "_backup2")


class UnknownContentTypeError(KeyError):
    """Raised for a content type that has no key set."""

    def __init__(self, content_type: str) -> None:
        super().__init__(content_type)
        self.content_type = content_type

    def __str__(self) -> str:
        return f"Unknown content type: {self.content_type!r}"


@dataclass(frozen=True)
class ContentKeySet:
    """Ordered physical keys for one content type (first = highest priority)."""

    content_type: str
    keys: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.keys:
            raise ValueError(f"{self.content_type}: a key set needs at least one key")
        if len(set(self.keys)) != len(self.keys):
            raise ValueError(f"{self.content_type}: duplicate keys in key set")

    @property
    def primary(self) -> str:
        return self.keys[0]


def _redundant(content_type: str) -> ContentKeySet:
    return ContentKeySet(
        content_type=content_type,
        keys=(content_type, *(f"{content_type}{s}" for s in BACKUP_SUFFIXES)),
    )


CONTENT_TYPES: tuple[str, ...] = (
    "greeting",
    "schedule",
    "recommendations",
    "faculty",
    "alumni",
    "gallery",
    "footer",
    "admission",
    "objectives",
    "benefits",
    "professors",
)

CONTENT_KEY_SETS: dict[str, ContentKeySet] = {t: _redundant(t) for t in CONTENT_TYPES}


def get_key_set(
    content_type: str, table: dict[str, ContentKeySet] | None = None
) -> ContentKeySet:
    """Look up *content_type* in *table* (defaults to :data:`CONTENT_KEY_SETS`)."""
    try:
        return (table if table is not None else CONTENT_KEY_SETS)[content_type]
    except KeyError:
        raise UnknownContentTypeError(content_type) from None
