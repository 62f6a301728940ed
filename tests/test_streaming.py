"""Tests for streaming.py - SSE framing, the event channel and the writer task."""

import asyncio
import json

from conftest import FakeAdapter, make_pipeline, make_source

from media_search.presentation.api.streaming import (
    EventChannel,
    pump_events,
    sse_frame,
    stop_writer,
)


class TestSseFrame:
    def test_format(self):
        frame = sse_frame({"type": "start", "totalSources": 2})
        assert frame.startswith("data: ")
        assert frame.endswith("\n\n")
        assert json.loads(frame[len("data: "):]) == {"type": "start", "totalSources": 2}

    def test_keeps_unicode(self):
        assert "电影A" in sse_frame({"title": "电影A"})


class TestEventChannel:
    async def test_drains_then_stops(self):
        channel = EventChannel()
        assert await channel.send({"n": 1})
        assert await channel.send({"n": 2})
        channel.close()
        assert [p async for p in channel] == [{"n": 1}, {"n": 2}]

    async def test_send_after_close(self):
        channel = EventChannel()
        channel.close()
        channel.close()
        assert channel.closed
        assert await channel.send({"n": 1}) is False
        assert [p async for p in channel] == []


class TestWriter:
    async def test_pumps_pipeline_events(self, plain_user):
        adapter = FakeAdapter({"a": [{"title": "A"}]})
        channel = EventChannel()
        stream = make_pipeline([make_source("a")], adapter).stream(plain_user, "kw")

        await pump_events(stream, channel)

        assert channel.closed
        assert [p["type"] async for p in channel] == ["start", "source_result", "complete"]

    async def test_closed_channel_stops_writer(self, plain_user):
        adapter = FakeAdapter(delays={"stuck": 10.0})
        channel = EventChannel()
        stream = make_pipeline([make_source("stuck")], adapter).stream(plain_user, "kw")
        writer = asyncio.create_task(pump_events(stream, channel))

        first = await anext(aiter(channel))
        assert first["type"] == "start"

        channel.close()
        await stop_writer(writer)

        assert writer.done()
        assert adapter.cancelled == ["stuck"]
