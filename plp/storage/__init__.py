"""Redundant content persistence over key/value storage media."""
from plp.config import settings
from plp.storage.content_store import ContentValidationError, ResilientContentStore, WriteReport
from plp.storage.events import (
    ContentChanged,
    ContentEventBroadcaster,
    get_content_broadcaster,
    reset_content_broadcaster,
)
from plp.storage.keys import (
    CONTENT_KEY_SETS,
    CONTENT_TYPES,
    ContentKeySet,
    UnknownContentTypeError,
    get_key_set,
)
from plp.storage.kv import (
    FileStorage,
    KeyValueStorage,
    MemoryStorage,
    StorageError,
    StorageQuotaExceeded,
)


def get_content_store() -> ResilientContentStore:
    """File-backed store under ``settings.data_dir`` wired to the process broadcaster.

    Built per call: the store holds no state beyond its configuration.
    """
    return ResilientContentStore(
        FileStorage(settings.data_dir),
        broadcaster=get_content_broadcaster(),
        repair_on_fallback=settings.content_repair_on_fallback,
    )


__all__ = [
    "CONTENT_KEY_SETS",
    "CONTENT_TYPES",
    "ContentChanged",
    "ContentEventBroadcaster",
    "ContentKeySet",
    "ContentValidationError",
    "FileStorage",
    "KeyValueStorage",
    "MemoryStorage",
    "ResilientContentStore",
    "StorageError",
    "StorageQuotaExceeded",
    "UnknownContentTypeError",
    "WriteReport",
    "get_content_broadcaster",
    "get_content_store",
    "get_key_set",
    "reset_content_broadcaster",
]
