"""
AggregationSession - Per-query state.

A session is created when a request starts and dropped when the response
completes or the stream closes. It tracks the pipeline state machine, the
state of each source, the single policy decision, and the accumulated
results. Nothing in it is shared across requests.

State machine:
    INIT → DISPATCHING → AGGREGATING → CLASSIFYING → FILTERING → COMPLETE
    (any state) → FAILED

Per source:
    PENDING → DONE | FAILED
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from .type_classifier import inference_quality, type_statistics

if TYPE_CHECKING:
    from media_search.domain.entities import (
        ClassifiedResult,
        PolicyDecision,
        PolicySnapshot,
        Principal,
        SourceDescriptor,
    )

    from .fan_out import SourceOutcome

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Pipeline states."""

    INIT = "init"
    DISPATCHING = "dispatching"
    AGGREGATING = "aggregating"
    CLASSIFYING = "classifying"
    FILTERING = "filtering"
    COMPLETE = "complete"
    FAILED = "failed"


class SourceState(Enum):
    """Per-source states."""

    PENDING = "pending"
    DONE = "done"
    FAILED = "failed"


# Allowed forward transitions; FAILED is reachable from anywhere.
_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.INIT: frozenset({SessionState.DISPATCHING}),
    SessionState.DISPATCHING: frozenset({SessionState.AGGREGATING}),
    # streaming sessions cycle through classify/filter once per source batch
    SessionState.AGGREGATING: frozenset({SessionState.CLASSIFYING, SessionState.COMPLETE}),
    SessionState.CLASSIFYING: frozenset({SessionState.FILTERING}),
    SessionState.FILTERING: frozenset({SessionState.AGGREGATING, SessionState.COMPLETE}),
    SessionState.COMPLETE: frozenset(),
    SessionState.FAILED: frozenset(),
}


@dataclass
class SourceProgress:
    """Book-keeping for one source inside a session."""

    source: SourceDescriptor
    state: SourceState = SourceState.PENDING
    raw_count: int = 0
    kept_count: int = 0
    error: str | None = None
    elapsed_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.source.label,
            "status": self.state.value,
            "raw": self.raw_count,
            "kept": self.kept_count,
            "elapsed_ms": round(self.elapsed_ms, 1),
        }
        if self.error:
            result["error"] = self.error
        return result


@dataclass
class AggregationSession:
    """Ephemeral state of one search."""

    principal: Principal
    keyword: str
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    state: SessionState = SessionState.INIT
    sources: dict[str, SourceProgress] = field(default_factory=dict)
    decision: PolicyDecision | None = None
    blocked_terms: tuple[str, ...] = ()
    results: list[ClassifiedResult] = field(default_factory=list)
    error: str | None = None
    _started: float = field(default_factory=time.perf_counter, init=False, repr=False)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def advance(self, new_state: SessionState) -> None:
        """Move to ``new_state``; raises on an illegal transition."""
        if new_state is SessionState.FAILED:
            self.state = new_state
            return
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal session transition {self.state.value} -> {new_state.value}")
        self.state = new_state

    def fail(self, message: str) -> None:
        self.error = message
        self.advance(SessionState.FAILED)
        logger.error(f"[{self.session_id}] Session failed: {message}")

    @property
    def is_terminal(self) -> bool:
        return self.state in (SessionState.COMPLETE, SessionState.FAILED)

    # ------------------------------------------------------------------
    # Policy
    # ------------------------------------------------------------------

    def set_policy(self, decision: PolicyDecision, snapshot: PolicySnapshot) -> None:
        """Record the session's single policy decision."""
        if self.decision is not None:
            raise RuntimeError("Policy decision already made for this session")
        self.decision = decision
        self.blocked_terms = snapshot.blocked_terms
        logger.debug(f"[{self.session_id}] Policy: applies={decision.applies} ({decision.reason})")

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def dispatch(self, sources: list[SourceDescriptor]) -> None:
        self.sources = {s.key: SourceProgress(source=s) for s in sources}
        self.advance(SessionState.DISPATCHING)

    def settle(self, outcome: SourceOutcome) -> SourceProgress:
        """Record a settled source."""
        progress = self.sources.get(outcome.key)
        if progress is None:
            progress = self.sources[outcome.key] = SourceProgress(source=outcome.source)
        progress.state = SourceState.DONE if outcome.ok else SourceState.FAILED
        progress.raw_count = len(outcome.items)
        progress.error = outcome.error
        progress.elapsed_ms = outcome.elapsed_ms
        return progress

    @property
    def completed_sources(self) -> int:
        return sum(1 for p in self.sources.values() if p.state is SourceState.DONE)

    @property
    def failed_sources(self) -> int:
        return sum(1 for p in self.sources.values() if p.state is SourceState.FAILED)

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self._started) * 1000

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def diagnostics(self) -> dict[str, Any]:
        """Per-source counts, filter rationale and classification quality."""
        return {
            "session_id": self.session_id,
            "state": self.state.value,
            "sources": {key: progress.to_dict() for key, progress in self.sources.items()},
            "completed_sources": self.completed_sources,
            "failed_sources": self.failed_sources,
            "filter": self.decision.to_dict() if self.decision else None,
            "types": type_statistics(self.results),
            "confidence": inference_quality(self.results),
            "elapsed_ms": round(self.elapsed_ms, 1),
        }
