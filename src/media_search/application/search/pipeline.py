"""
SearchPipeline - Registry → Fan-out → Classify → Policy → Filter.

One pipeline, two presentations:
    run_batch() - settle every source, then return one list
    stream()    - yield a start event, one source_result event per source in
                  completion order, then complete (or error)

Both paths send every source batch through _process(), the only place where
classification and filtering happen. The policy decision is made once per
session before any source is dispatched.

Example:
    >>> pipeline = SearchPipeline(registry, policy_config, FanOutCoordinator(adapter))
    >>> outcome = await pipeline.run_batch(principal, "电影A")
    >>> outcome.total
    1
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, Sequence
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from media_search.shared.exceptions import (
    ConfigurationError,
    MediaSearchError,
    PolicyError,
    validate_keyword,
)

from .content_policy import evaluate_policy, filter_results
from .session import AggregationSession, SessionState
from .type_classifier import classify_batch

if TYPE_CHECKING:
    from media_search.domain.entities import ClassifiedResult, Principal, SourceDescriptor
    from media_search.domain.ports import PolicyConfig, SourceRegistry

    from .fan_out import FanOutCoordinator, SourceOutcome

logger = logging.getLogger(__name__)

NO_SOURCES_MESSAGE = "no sources"
STREAM_ERROR_MESSAGE = "search failed"


# =============================================================================
# Results
# =============================================================================


@dataclass
class BatchOutcome:
    """Final result of a batch search."""

    results: list[ClassifiedResult]
    session: AggregationSession
    message: str | None = None
    source: SourceDescriptor | None = None

    @property
    def total(self) -> int:
        return len(self.results)

    def to_dict(self, *, include_debug: bool = False) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "results": [r.to_dict() for r in self.results],
            "total": self.total,
        }
        if self.message:
            payload["message"] = self.message
        if self.source is not None:
            payload["source"] = self.source.label
        if include_debug:
            payload["debug"] = self.session.diagnostics()
        return payload


class StreamEventType(str, Enum):
    """Discriminator of streamed payloads."""

    START = "start"
    SOURCE_RESULT = "source_result"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class StreamEvent:
    """One streamed payload."""

    type: StreamEventType
    data: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.type.value, **self.data}


def select_source(
    sources: Sequence[SourceDescriptor],
    source_key: str | None,
) -> SourceDescriptor | None:
    """Pick a source by key or name, else the first permitted one."""
    if not sources:
        return None
    if source_key:
        for source in sources:
            if source.key == source_key or source.name == source_key:
                return source
        logger.info(f"Requested source {source_key!r} not permitted, using {sources[0].key!r}")
    return sources[0]


# =============================================================================
# Pipeline
# =============================================================================


class SearchPipeline:
    """Runs one search session against the permitted sources."""

    def __init__(
        self,
        registry: SourceRegistry,
        policy_config: PolicyConfig,
        coordinator: FanOutCoordinator,
    ) -> None:
        self._registry = registry
        self._policy_config = policy_config
        self._coordinator = coordinator

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    async def _resolve_sources(self, principal: Principal) -> list[SourceDescriptor]:
        try:
            sources = await self._registry.sources_for(principal.username)
        except MediaSearchError:
            raise
        except Exception as e:
            raise ConfigurationError(f"Source registry unavailable: {e}") from e
        return [s for s in sources if s.enabled]

    async def _decide_policy(self, session: AggregationSession) -> None:
        """Fetch the policy snapshot and make the session's single decision."""
        try:
            snapshot = await self._policy_config.snapshot()
        except PolicyError:
            raise
        except Exception as e:
            raise PolicyError(f"Policy configuration unavailable: {e}") from e
        session.set_policy(evaluate_policy(session.principal, snapshot), snapshot)

    def _process(self, session: AggregationSession, outcome: SourceOutcome) -> list[ClassifiedResult]:
        """Classify and filter one settled source batch."""
        progress = session.settle(outcome)
        if session.decision is None:
            raise PolicyError("No policy decision for session")

        session.advance(SessionState.CLASSIFYING)
        classified = classify_batch(outcome.items)

        session.advance(SessionState.FILTERING)
        kept = filter_results(classified, session.decision, session.blocked_terms)

        progress.kept_count = len(kept)
        session.results.extend(kept)
        session.advance(SessionState.AGGREGATING)
        return kept

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def run_batch(
        self,
        principal: Principal,
        keyword: str | None,
        *,
        source_key: str | None = None,
        single_source: bool = False,
    ) -> BatchOutcome:
        """
        Settle every permitted source and return the filtered, classified list.

        With ``single_source`` only one source is queried: the one named by
        ``source_key`` if permitted, otherwise the first permitted source.

        Raises:
            InvalidKeywordError: missing or blank keyword
            PolicyError: policy configuration unavailable
            ConfigurationError: source registry unavailable
        """
        keyword = validate_keyword(keyword)
        session = AggregationSession(principal=principal, keyword=keyword)

        sources = await self._resolve_sources(principal)
        selected: SourceDescriptor | None = None
        if single_source:
            selected = select_source(sources, source_key)
            sources = [selected] if selected else []

        if not sources:
            logger.info(f"[{session.session_id}] No permitted sources for {principal.username!r}")
            session.dispatch([])
            session.advance(SessionState.AGGREGATING)
            session.advance(SessionState.COMPLETE)
            return BatchOutcome(results=[], session=session, message=NO_SOURCES_MESSAGE)

        try:
            await self._decide_policy(session)
        except MediaSearchError as e:
            session.fail(str(e))
            raise

        session.dispatch(sources)
        outcomes = await self._coordinator.gather(sources, keyword)
        session.advance(SessionState.AGGREGATING)

        for outcome in outcomes:
            self._process(session, outcome)

        session.advance(SessionState.COMPLETE)
        logger.info(
            f"[{session.session_id}] Batch search {keyword!r}: {len(session.results)} results from "
            f"{session.completed_sources}/{len(sources)} sources ({session.failed_sources} failed)"
        )
        return BatchOutcome(results=list(session.results), session=session, source=selected)

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def stream(self, principal: Principal, keyword: str | None) -> AsyncGenerator[StreamEvent, None]:
        """
        Yield start, then one source_result per source as it settles, then
        complete. A pipeline-wide fault yields a single error event instead
        of complete and ends the stream.

        The keyword is validated before the first event; an invalid keyword
        raises InvalidKeywordError from the first ``__anext__``.
        """
        keyword = validate_keyword(keyword)
        session = AggregationSession(principal=principal, keyword=keyword)

        try:
            sources = await self._resolve_sources(principal)
            yield StreamEvent(StreamEventType.START, {"totalSources": len(sources)})

            if sources:
                await self._decide_policy(session)
            session.dispatch(sources)
            session.advance(SessionState.AGGREGATING)

            async with aclosing(self._coordinator.as_completed(sources, keyword)) as outcomes:
                async for outcome in outcomes:
                    kept = self._process(session, outcome)
                    yield StreamEvent(
                        StreamEventType.SOURCE_RESULT,
                        {
                            "source": outcome.key,
                            "sourceName": outcome.source.label,
                            "status": "done" if outcome.ok else "failed",
                            "results": [r.to_dict() for r in kept],
                            "count": len(kept),
                        },
                    )

            session.advance(SessionState.COMPLETE)
        except MediaSearchError as e:
            session.fail(str(e))
            yield StreamEvent(StreamEventType.ERROR, e.to_dict())
            return
        except Exception as e:
            logger.exception(f"[{session.session_id}] Stream pipeline fault: {e}")
            session.fail(str(e))
            yield StreamEvent(StreamEventType.ERROR, {"error": STREAM_ERROR_MESSAGE})
            return

        logger.info(
            f"[{session.session_id}] Stream search {keyword!r}: {len(session.results)} results from "
            f"{session.completed_sources}/{len(sources)} sources ({session.failed_sources} failed)"
        )
        yield StreamEvent(
            StreamEventType.COMPLETE,
            {
                "completedSources": session.completed_sources,
                "failedSources": session.failed_sources,
                "results": [r.to_dict() for r in session.results],
                "total": len(session.results),
            },
        )
