"""
Content-changed broadcaster.

Fan-out of ``ContentChanged`` events to in-process subscribers. The content
store publishes after every write; page components (and the SSE endpoint)
subscribe and decide for themselves whether to reload.

Architecture:
    ResilientContentStore.write -> publish(event) -> ContentEventBroadcaster -> queues

Subscribers get a bounded ``asyncio.Queue``; a full queue drops the event
for that subscriber only. ``None`` is the end-of-stream sentinel.
"""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContentChanged:
    """A content type was (re)written."""

    content_type: str
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_wire(self) -> dict[str, str]:
        return {"type": "contentChanged", "contentType": self.content_type, "at": self.at.isoformat()}

    def to_sse(self) -> str:
        """One server-sent event frame."""
        return f"event: contentChanged\ndata: {json.dumps(self.to_wire())}\n\n"


class ContentEventBroadcaster:
    """Delivers ``ContentChanged`` events to every current subscriber.

    A subscriber may filter on a set of content types; ``None`` means all.
    """

    def __init__(self, queue_size: int = 64) -> None:
        self._queue_size = queue_size
        self._subscribers: list[tuple[asyncio.Queue[ContentChanged | None], frozenset[str] | None]] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: ContentChanged) -> int:
        """Push *event* to matching subscribers; returns how many received it."""
        delivered = 0
        for queue, types in self._subscribers:
            if types is not None and event.content_type not in types:
                continue
            try:
                queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning(f"Content event queue full, dropping {event.content_type!r}")
        logger.debug(
            f"Published contentChanged({event.content_type}) to "
            f"{delivered}/{len(self._subscribers)} subscribers"
        )
        return delivered

    def subscribe(
        self, content_types: set[str] | frozenset[str] | None = None
    ) -> asyncio.Queue[ContentChanged | None]:
        queue: asyncio.Queue[ContentChanged | None] = asyncio.Queue(maxsize=self._queue_size)
        types = frozenset(content_types) if content_types else None
        self._subscribers.append((queue, types))
        return queue

    def unsubscribe(self, queue: asyncio.Queue[ContentChanged | None]) -> None:
        self._subscribers = [(q, t) for q, t in self._subscribers if q is not queue]

    def close(self) -> None:
        """Signal end-of-stream to all subscribers, then drop them."""
        for queue, _ in self._subscribers:
            try:
                queue.put_nowait(None)
            except asyncio.QueueFull:
                pass
        self._subscribers = []


_broadcaster: ContentEventBroadcaster | None = None


def get_content_broadcaster() -> ContentEventBroadcaster:
    """Process-wide broadcaster singleton."""
    global _broadcaster
    if _broadcaster is None:
        _broadcaster = ContentEventBroadcaster()
    return _broadcaster


def reset_content_broadcaster() -> None:
    """Drop the singleton (tests)."""
    global _broadcaster
    if _broadcaster is not None:
        _broadcaster.close()
    _broadcaster = None
