"""
Server-Sent Events plumbing for the streaming search endpoint.

One writer task per session pulls StreamEvents from the pipeline and pushes
their payloads into an EventChannel. The HTTP response generator drains the
channel and writes ``data: <json>\\n\\n`` frames.

When the client goes away the generator closes the channel and cancels the
writer. Cancelling the writer closes the pipeline generator, which cancels
every upstream query still in flight.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator
from contextlib import aclosing
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from media_search.application.search import StreamEvent

logger = logging.getLogger(__name__)

SSE_MEDIA_TYPE = "text/event-stream"
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

_CLOSED = object()


def sse_frame(payload: dict[str, Any]) -> str:
    """Format one payload as an SSE ``data:`` frame."""
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


class EventChannel:
    """
    Closable single-consumer channel of payloads.

    ``send`` after ``close`` is a no-op that returns False. Iteration drains
    what was sent before ``close`` and then stops.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, payload: dict[str, Any]) -> bool:
        if self._closed:
            return False
        await self._queue.put(payload)
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> EventChannel:
        return self

    async def __anext__(self) -> dict[str, Any]:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


async def pump_events(events: AsyncGenerator[StreamEvent, None], channel: EventChannel) -> None:
    """Writer task: forward pipeline events until the stream ends or the channel closes."""
    try:
        async with aclosing(events) as stream:
            async for event in stream:
                if not await channel.send(event.to_payload()):
                    logger.debug("Channel closed, dropping remaining events")
                    break
    finally:
        channel.close()


async def stop_writer(writer: asyncio.Task[None]) -> None:
    """Cancel the writer task if still running and wait for it to unwind."""
    if not writer.done():
        writer.cancel()
    results = await asyncio.gather(writer, return_exceptions=True)
    error = results[0]
    if isinstance(error, Exception):
        logger.error(f"Stream writer failed: {error}")
