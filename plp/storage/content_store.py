"""Resilient content store.

Persists a named content payload under every key of its key set and reads
it back first-match-wins:

  write(type, payload)
    serialize once -> set() on each key in order -> a failing key is logged
    and skipped -> publish ContentChanged(type) if any key took the write

  read(type, default)
    for each key in priority order: get -> skip missing/blank -> parse ->
    corrupt values are logged and skipped -> first parsed value wins.
    Nothing usable -> ``default`` (returned as-is).

There is no cache: every read goes to the storage medium. Concurrent
writers are not coordinated; the last write wins per key.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from plp.storage.events import ContentChanged, ContentEventBroadcaster
from plp.storage.keys import CONTENT_KEY_SETS, ContentKeySet, get_key_set
from plp.storage.kv import KeyValueStorage

logger = logging.getLogger(__name__)


class ContentValidationError(ValueError):
    """Payload does not have the shape its content type requires."""

    def __init__(self, content_type: str, message: str) -> None:
        super().__init__(f"{content_type}: {message}")
        self.content_type = content_type


# Content types whose payload must carry a list under a given key.
_LIST_FIELDS: dict[str, str] = {
    "schedule": "events",
    "recommendations": "items",
    "faculty": "members",
    "alumni": "members",
    "gallery": "images",
}


@dataclass
class WriteReport:
    """Which keys accepted a write and which refused it."""

    content_type: str
    written: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """At least one key holds the payload."""
        return bool(self.written)

    @property
    def complete(self) -> bool:
        return self.ok and not self.failed


class ResilientContentStore:
    """Redundant multi-key persistence over a :class:`KeyValueStorage`."""

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        key_sets: Mapping[str, ContentKeySet] | None = None,
        broadcaster: ContentEventBroadcaster | None = None,
        repair_on_fallback: bool = True,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.storage = storage
        self.key_sets = dict(key_sets if key_sets is not None else CONTENT_KEY_SETS)
        self.broadcaster = broadcaster
        self.repair_on_fallback = repair_on_fallback
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def content_types(self) -> list[str]:
        return list(self.key_sets)

    def key_set(self, content_type: str) -> ContentKeySet:
        return get_key_set(content_type, self.key_sets)

    # ------------------------------------------------------------------
    # write / read
    # ------------------------------------------------------------------

    def write(self, content_type: str, payload: Any) -> WriteReport:
        """Store *payload* under every key of *content_type*'s key set.

        Raises:
            UnknownContentTypeError: no key set for *content_type*.
            ContentValidationError: *payload* is not JSON-serializable.
        """
        key_set = self.key_set(content_type)
        serialized = self._serialize(content_type, payload)
        report = WriteReport(content_type=content_type)

        for key in key_set.keys:
            try:
                self.storage.set(key, serialized)
                report.written.append(key)
            except Exception as exc:
                logger.error(f"❌ Could not write {content_type!r} to key {key!r}: {exc}")
                report.failed.append((key, str(exc)))

        if not report.ok:
            logger.error(f"❌ {content_type!r} was not persisted to any key")
            return report
        if report.failed:
            logger.warning(
                f"⚠️ {content_type!r} saved to {len(report.written)}/{len(key_set.keys)} keys"
            )
        if self.broadcaster is not None:
            self.broadcaster.publish(ContentChanged(content_type=content_type))
        return report

    def read(self, content_type: str, default: Any = None) -> Any:
        """Return the first usable value for *content_type*, else *default*.

        Raises:
            UnknownContentTypeError: no key set for *content_type*.
        """
        key_set = self.key_set(content_type)
        unusable: list[str] = []

        for key in key_set.keys:
            try:
                raw = self.storage.get(key)
            except Exception as exc:
                logger.error(f"❌ Could not read key {key!r}: {exc}")
                unusable.append(key)
                continue
            if raw is None or not raw.strip():
                unusable.append(key)
                continue
            try:
                value = json.loads(raw)
            except ValueError as exc:
                logger.error(f"❌ Corrupt value under key {key!r}, trying next key: {exc}")
                unusable.append(key)
                continue
            if value is None:
                unusable.append(key)
                continue

            if unusable:
                logger.info(f"Recovered {content_type!r} from fallback key {key!r}")
                if self.repair_on_fallback:
                    self._repair(unusable, raw)
            return value

        return default

    def read_all(self, default_factory: Callable[[], Any] = dict) -> dict[str, Any]:
        return {t: self.read(t, default_factory()) for t in self.key_sets}

    def delete(self, content_type: str) -> int:
        """Remove every key of *content_type*; returns how many existed."""
        removed = 0
        for key in self.key_set(content_type).keys:
            try:
                removed += int(self.storage.delete(key))
            except Exception as exc:
                logger.error(f"❌ Could not delete key {key!r}: {exc}")
        return removed

    # ------------------------------------------------------------------
    # validation
    # ------------------------------------------------------------------

    def validate(self, content_type: str, payload: Any) -> None:
        """Check the minimum shape the public pages rely on.

        Raises:
            UnknownContentTypeError: no key set for *content_type*.
            ContentValidationError: the payload is malformed.
        """
        self.key_set(content_type)
        if not isinstance(payload, (dict, list)):
            raise ContentValidationError(content_type, "payload must be an object")
        if content_type == "greeting":
            if not isinstance(payload, dict) or not payload.get("title") or not payload.get("content"):
                raise ContentValidationError(content_type, "title and content are required")
            return
        list_field = _LIST_FIELDS.get(content_type)
        if list_field is not None:
            if not isinstance(payload, dict) or not isinstance(payload.get(list_field), list):
                raise ContentValidationError(content_type, f"{list_field!r} must be a list")

    # ------------------------------------------------------------------
    # backups
    # ------------------------------------------------------------------

    def backup_prefix(self, content_type: str) -> str:
        return f"{content_type}_backup_"

    def create_backup(self, content_type: str) -> str | None:
        """Copy the current value into a timestamped key; ``None`` if nothing to copy."""
        value = self.read(content_type, None)
        if value is None:
            logger.info(f"Nothing to back up for {content_type!r}")
            return None
        stamp = self._clock().strftime("%Y%m%dT%H%M%S%fZ")
        key = f"{self.backup_prefix(content_type)}{stamp}"
        try:
            self.storage.set(key, self._serialize(content_type, value))
        except Exception as exc:
            logger.error(f"❌ Backup of {content_type!r} failed: {exc}")
            return None
        logger.info(f"✅ Backed up {content_type!r} to {key!r}")
        return key

    def create_all_backups(self) -> dict[str, str | None]:
        return {t: self.create_backup(t) for t in self.key_sets}

    def list_backups(self, content_type: str) -> list[str]:
        prefix = self.backup_prefix(self.key_set(content_type).content_type)
        return sorted(k for k in self.storage.keys() if k.startswith(prefix))

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------

    @staticmethod
    def _serialize(content_type: str, payload: Any) -> str:
        try:
            return json.dumps(payload, ensure_ascii=False, indent=2)
        except (TypeError, ValueError) as exc:
            raise ContentValidationError(content_type, f"payload is not JSON-serializable: {exc}") from exc

    def _repair(self, keys: list[str], raw: str) -> None:
        for key in keys:
            try:
                self.storage.set(key, raw)
                logger.info(f"Repaired key {key!r}")
            except Exception as exc:
                logger.warning(f"⚠️ Could not repair key {key!r}: {exc}")
