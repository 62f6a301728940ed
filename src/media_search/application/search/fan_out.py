"""
FanOutCoordinator - Concurrent dispatch of one keyword to many sources.

Each source gets its own task. A failing or slow source only ever affects its
own outcome: exceptions (timeouts included) are logged and become an outcome
with zero items and an error message. Nothing raised by an adapter reaches
the caller.

Two consumption modes:
    gather()       - wait for every source to settle (batch responses)
    as_completed() - yield outcomes in completion order (streaming responses)

No cross-source deduplication is performed.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncGenerator, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from media_search.domain.entities import RawResultItem, SourceDescriptor
    from media_search.domain.ports import SourceAdapter

logger = logging.getLogger(__name__)


@dataclass
class SourceOutcome:
    """How one source settled."""

    source: SourceDescriptor
    items: list[RawResultItem] = field(default_factory=list)
    error: str | None = None
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def key(self) -> str:
        return self.source.key


class FanOutCoordinator:
    """Dispatches one query per source and isolates per-source failures."""

    def __init__(self, adapter: SourceAdapter) -> None:
        self._adapter = adapter

    async def _query_source(self, source: SourceDescriptor, keyword: str) -> SourceOutcome:
        """Run one adapter call. Never raises except on cancellation."""
        start_time = time.perf_counter()
        try:
            items = await self._adapter.search(source, keyword)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            logger.warning(f"Source '{source.key}' failed after {elapsed_ms:.0f}ms: {e!r}")
            return SourceOutcome(source=source, error=str(e) or type(e).__name__, elapsed_ms=elapsed_ms)

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        items = list(items or [])
        logger.debug(f"Source '{source.key}' returned {len(items)} items in {elapsed_ms:.0f}ms")
        return SourceOutcome(source=source, items=items, elapsed_ms=elapsed_ms)

    async def gather(self, sources: Sequence[SourceDescriptor], keyword: str) -> list[SourceOutcome]:
        """Query every source and return once all have settled."""
        if not sources:
            return []
        return list(await asyncio.gather(*(self._query_source(s, keyword) for s in sources)))

    async def as_completed(
        self,
        sources: Sequence[SourceDescriptor],
        keyword: str,
    ) -> AsyncGenerator[SourceOutcome, None]:
        """
        Yield one outcome per source, first finished first.

        Closing the iterator early cancels the sources still pending; their
        results are discarded.
        """
        if not sources:
            return

        tasks = [
            asyncio.create_task(self._query_source(s, keyword), name=f"source:{s.key}")
            for s in sources
        ]
        try:
            for next_done in asyncio.as_completed(tasks):
                yield await next_done
        finally:
            pending = [t for t in tasks if not t.done()]
            for task in pending:
                task.cancel()
            if pending:
                logger.debug(f"Fan-out closed early, cancelled {len(pending)} pending sources")
                await asyncio.gather(*pending, return_exceptions=True)
