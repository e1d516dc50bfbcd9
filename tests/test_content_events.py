"""Tests for the content-changed broadcaster and its SSE stream."""
from __future__ import annotations

import json

import pytest

from plp.api.routes.events import content_event_stream
from plp.storage import ContentChanged, ContentEventBroadcaster


@pytest.mark.anyio
async def test_publish_reaches_all_subscribers() -> None:
    broadcaster = ContentEventBroadcaster()
    q1 = broadcaster.subscribe()
    q2 = broadcaster.subscribe()
    assert broadcaster.publish(ContentChanged("greeting")) == 2
    assert q1.get_nowait().content_type == "greeting"
    assert q2.get_nowait().content_type == "greeting"


@pytest.mark.anyio
async def test_filtered_subscriber_only_gets_its_types() -> None:
    broadcaster = ContentEventBroadcaster()
    queue = broadcaster.subscribe({"footer"})
    assert broadcaster.publish(ContentChanged("greeting")) == 0
    broadcaster.publish(ContentChanged("footer"))
    assert queue.qsize() == 1


@pytest.mark.anyio
async def test_full_queue_drops_for_that_subscriber_only() -> None:
    broadcaster = ContentEventBroadcaster(queue_size=1)
    slow = broadcaster.subscribe()
    broadcaster.publish(ContentChanged("a"))
    fast = broadcaster.subscribe()
    assert broadcaster.publish(ContentChanged("b")) == 1
    assert slow.qsize() == 1
    assert fast.get_nowait().content_type == "b"


@pytest.mark.anyio
async def test_unsubscribe_and_close() -> None:
    broadcaster = ContentEventBroadcaster()
    queue = broadcaster.subscribe()
    broadcaster.unsubscribe(queue)
    assert broadcaster.subscriber_count == 0
    other = broadcaster.subscribe()
    broadcaster.close()
    assert other.get_nowait() is None
    assert broadcaster.subscriber_count == 0


def test_wire_format() -> None:
    event = ContentChanged("schedule")
    frame = event.to_sse()
    assert frame.startswith("event: contentChanged\ndata: ")
    assert frame.endswith("\n\n")
    payload = json.loads(frame.split("data: ", 1)[1])
    assert payload["type"] == "contentChanged"
    assert payload["contentType"] == "schedule"


@pytest.mark.anyio
async def test_stream_yields_frames_until_closed() -> None:
    broadcaster = ContentEventBroadcaster()
    queue = broadcaster.subscribe()
    broadcaster.publish(ContentChanged("greeting"))
    broadcaster.publish(ContentChanged("footer"))
    broadcaster.close()

    frames = [frame async for frame in content_event_stream(broadcaster, queue)]

    assert len(frames) == 2
    assert '"contentType": "greeting"' in frames[0]
    assert '"contentType": "footer"' in frames[1]


@pytest.mark.anyio
async def test_stream_sends_heartbeat_when_idle() -> None:
    broadcaster = ContentEventBroadcaster()
    queue = broadcaster.subscribe()
    stream = content_event_stream(broadcaster, queue, heartbeat_seconds=0.01)

    first = await stream.__anext__()
    await stream.aclose()

    assert first.startswith("event: heartbeat")
    assert broadcaster.subscriber_count == 0
