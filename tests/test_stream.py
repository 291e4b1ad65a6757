"""Tests for the Server-Sent Events reading stream."""

from __future__ import annotations

import asyncio
import json
from typing import List

from app.stream import format_sse_event, generate_reading_stream
from services.notifier import ReadingEvent, ReadingNotifier


class FakeRequest:
    def __init__(self, disconnect_after: int | None = None) -> None:
        self._checks = 0
        self._disconnect_after = disconnect_after

    async def is_disconnected(self) -> bool:
        self._checks += 1
        return self._disconnect_after is not None and self._checks > self._disconnect_after


def test_format_sse_event_frames_json_payload() -> None:
    frame = format_sse_event("reading", {"value": 120.0}, "7")

    assert frame == 'id: 7\nevent: reading\ndata: {"value": 120.0}\n\n'


def test_format_sse_event_without_id() -> None:
    assert format_sse_event("reading", {}).startswith("event: reading\n")


def test_stream_yields_events_until_notifier_closes() -> None:
    async def scenario() -> List[str]:
        notifier = ReadingNotifier()
        subscription = notifier.subscribe()
        stream = generate_reading_stream(FakeRequest(), notifier, subscription, 5)

        frames = [await stream.__anext__()]
        notifier.notify(ReadingEvent("reading", {"id": "r-1", "value": 99.0}))
        frames.append(await stream.__anext__())
        notifier.close()
        frames.extend([frame async for frame in stream])

        assert notifier.subscriber_count == 0
        return frames

    frames = asyncio.run(scenario())

    assert frames[0] == ": connected\n\n"
    assert len(frames) == 2
    lines = frames[1].splitlines()
    assert lines[0] == "id: 1"
    assert lines[1] == "event: reading"
    assert json.loads(lines[2].removeprefix("data: ")) == {"id": "r-1", "value": 99.0}


def test_stream_sends_heartbeat_when_idle() -> None:
    async def scenario() -> str:
        notifier = ReadingNotifier()
        subscription = notifier.subscribe()
        stream = generate_reading_stream(FakeRequest(), notifier, subscription, 0.01)
        await stream.__anext__()
        frame = await stream.__anext__()
        await stream.aclose()
        assert notifier.subscriber_count == 0
        return frame

    assert asyncio.run(scenario()) == ": heartbeat\n\n"


def test_stream_stops_and_unsubscribes_on_disconnect() -> None:
    async def scenario() -> List[str]:
        notifier = ReadingNotifier()
        subscription = notifier.subscribe()
        notifier.notify(ReadingEvent("reading", {"id": "r-1"}))
        notifier.notify(ReadingEvent("reading", {"id": "r-2"}))
        frames = [
            frame
            async for frame in generate_reading_stream(
                FakeRequest(disconnect_after=1), notifier, subscription, 5
            )
        ]
        assert notifier.subscriber_count == 0
        return frames

    frames = asyncio.run(scenario())

    assert frames[0] == ": connected\n\n"
    assert len(frames) == 2
    assert '"r-1"' in frames[1]


def test_stream_only_forwards_owner_events() -> None:
    owner = "0b8f5a0e-7a43-4c0e-9d0d-2f6d1c9b1a01"

    async def scenario() -> List[str]:
        notifier = ReadingNotifier()
        subscription = notifier.subscribe(owner)
        notifier.notify(ReadingEvent("reading", {"id": "other"}, owner_id=None))
        notifier.notify(ReadingEvent("reading", {"id": "mine"}, owner_id=owner))
        notifier.close()
        return [
            frame
            async for frame in generate_reading_stream(FakeRequest(), notifier, subscription, 5)
        ]

    frames = asyncio.run(scenario())

    assert len(frames) == 2
    assert '"mine"' in frames[1]
