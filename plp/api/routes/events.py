"""GET /content/events: server-sent stream of content-changed notifications."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, Query
from fastapi.responses import StreamingResponse

from plp.storage import ContentChanged, ContentEventBroadcaster, get_content_broadcaster

router = APIRouter()
logger = logging.getLogger(__name__)

HEARTBEAT_SECONDS = 30.0


def _sse_headers() -> dict[str, str]:
    """Standard SSE response headers."""
    return {
        "Cache-Control": "no-cache",
        "Connection": "keep-alive",
        "X-Accel-Buffering": "no",
    }


async def content_event_stream(
    broadcaster: ContentEventBroadcaster,
    queue: asyncio.Queue[ContentChanged | None],
    heartbeat_seconds: float = HEARTBEAT_SECONDS,
) -> AsyncIterator[str]:
    """Yield SSE frames from *queue* until the broadcaster closes it."""
    try:
        while True:
            try:
                event = await asyncio.wait_for(queue.get(), timeout=heartbeat_seconds)
            except asyncio.TimeoutError:
                yield "event: heartbeat\ndata: {}\n\n"
                continue
            if event is None:
                break
            yield event.to_sse()
    finally:
        broadcaster.unsubscribe(queue)


@router.get("/content/events")
async def stream_content_events(
    types: str | None = Query(
        default=None,
        description="Comma-separated content types to watch; all when omitted",
    ),
) -> StreamingResponse:
    """
    Stream ``contentChanged`` events as SSE.

    Public pages subscribe and reload the affected section when one arrives.
    """
    wanted = {t.strip() for t in types.split(",") if t.strip()} if types else None
    broadcaster = get_content_broadcaster()
    queue = broadcaster.subscribe(wanted)
    logger.debug(f"SSE subscriber joined (types={sorted(wanted) if wanted else 'all'})")
    return StreamingResponse(
        content_event_stream(broadcaster, queue),
        media_type="text/event-stream",
        headers=_sse_headers(),
    )
