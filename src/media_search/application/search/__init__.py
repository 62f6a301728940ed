"""
Search application services.

- fan_out: concurrent per-source dispatch with failure isolation
- type_classifier: content type inference with confidence
- content_policy: per-session policy decision and result filter
- session: per-query state machine and diagnostics
- pipeline: batch and streaming search over the shared steps
"""

from .content_policy import evaluate_policy, filter_results, is_blocked
from .fan_out import FanOutCoordinator, SourceOutcome
from .pipeline import (
    NO_SOURCES_MESSAGE,
    BatchOutcome,
    SearchPipeline,
    StreamEvent,
    StreamEventType,
    select_source,
)
from .session import AggregationSession, SessionState, SourceState
from .type_classifier import (
    classify,
    classify_batch,
    classify_safely,
    inference_quality,
    type_statistics,
)

__all__ = [
    # Fan-out
    "FanOutCoordinator",
    "SourceOutcome",
    # Classification
    "classify",
    "classify_safely",
    "classify_batch",
    "type_statistics",
    "inference_quality",
    # Policy
    "evaluate_policy",
    "filter_results",
    "is_blocked",
    # Session
    "AggregationSession",
    "SessionState",
    "SourceState",
    # Pipeline
    "SearchPipeline",
    "BatchOutcome",
    "StreamEvent",
    "StreamEventType",
    "NO_SOURCES_MESSAGE",
    "select_source",
]
