"""Synchronous key/value storage media.

Both media store already-serialized strings; parsing is the content store's
job. ``FileStorage`` keeps one ``<key>.json`` file per key under a data
directory. ``MemoryStorage`` is process-local and can be capacity bounded,
which is how quota exhaustion is exercised.
"""
from __future__ import annotations

import errno
import logging
import os
import pathlib
import re
import tempfile
from typing import Protocol

logger = logging.getLogger(__name__)

_KEY_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.\-]*$")


class StorageError(Exception):
    """A storage medium could not complete a get/set/delete."""

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class StorageQuotaExceeded(StorageError):
    """The medium is full."""


class KeyValueStorage(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> bool: ...

    def keys(self) -> list[str]: ...


def check_key(key: str) -> str:
    """Reject keys that could escape the data directory."""
    if not _KEY_RE.match(key) or ".." in key:
        raise StorageError(f"Invalid storage key: {key!r}", key=key)
    return key


class MemoryStorage:
    """In-process storage, optionally bounded to ``capacity_bytes`` (UTF-8)."""

    def __init__(self, capacity_bytes: int | None = None) -> None:
        self.capacity_bytes = capacity_bytes
        self._data: dict[str, str] = {}

    def _used_bytes(self, excluding: str | None = None) -> int:
        return sum(len(v.encode("utf-8")) for k, v in self._data.items() if k != excluding)

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        check_key(key)
        if self.capacity_bytes is not None:
            needed = self._used_bytes(excluding=key) + len(value.encode("utf-8"))
            if needed > self.capacity_bytes:
                raise StorageQuotaExceeded(
                    f"Quota exceeded writing {key!r} ({needed} > {self.capacity_bytes} bytes)",
                    key=key,
                )
        self._data[key] = value

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def keys(self) -> list[str]:
        return sorted(self._data)


class FileStorage:
    """One JSON file per key under ``root``."""

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self.root = pathlib.Path(root)

    def path_for(self, key: str) -> pathlib.Path:
        return self.root / f"{check_key(key)}.json"

    def get(self, key: str) -> str | None:
        path = self.path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"Could not read {path}: {exc}", key=key) from exc

    def set(self, key: str, value: str) -> None:
        path = self.path_for(key)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            # Write-then-rename so a crash never leaves a half-written file.
            fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(value)
                os.replace(tmp_name, path)
            except BaseException:
                pathlib.Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            if exc.errno == errno.ENOSPC:
                raise StorageQuotaExceeded(f"No space left writing {path}", key=key) from exc
            raise StorageError(f"Could not write {path}: {exc}", key=key) from exc
        logger.debug(f"Saved {key!r} to {path} ({len(value)} chars)")

    def delete(self, key: str) -> bool:
        path = self.path_for(key)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageError(f"Could not delete {path}: {exc}", key=key) from exc

    def keys(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(p.stem for p in self.root.glob("*.json") if p.is_file())
