"""
Media Search - Multi-source video search aggregation.

Fans a keyword out to every upstream source a user may query, classifies
each hit into a content type with a confidence, applies the per-session
content policy and returns the results as one batch or as an SSE stream.

Usage:
    from media_search.container import create_container

    container = create_container()
    outcome = await container.pipeline().run_batch(principal, "电影A")

    for result in outcome.results:
        print(f"{result.type.value} {result.confidence:.1f} {result.title}")

Features:
    - Concurrent fan-out with per-source failure isolation
    - Content type inference (API field, type name, title, episode count)
    - Group-based content policy with blocked terms
    - Batch, single-source and streaming delivery
"""

from .application.search import (
    BatchOutcome,
    FanOutCoordinator,
    SearchPipeline,
    StreamEvent,
    StreamEventType,
)
from .domain.entities import (
    ClassifiedResult,
    ContentType,
    Principal,
    RawResultItem,
    SourceDescriptor,
)

__version__ = "0.1.0"

__all__ = [
    # Pipeline
    "SearchPipeline",
    "FanOutCoordinator",
    "BatchOutcome",
    "StreamEvent",
    "StreamEventType",
    # Entities
    "ClassifiedResult",
    "ContentType",
    "Principal",
    "RawResultItem",
    "SourceDescriptor",
]
