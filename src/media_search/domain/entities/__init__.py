"""
Domain Entities

Core business objects for media search aggregation.
"""

from __future__ import annotations

from .access import (
    PolicyDecision,
    PolicySnapshot,
    Principal,
    Role,
    SourceDescriptor,
    normalize_terms,
)
from .media import (
    ClassifiedResult,
    ConfidenceOrigin,
    ContentType,
    RawResultItem,
)

__all__ = [
    # Media entities
    "RawResultItem",
    "ClassifiedResult",
    "ContentType",
    "ConfidenceOrigin",
    # Access entities
    "Principal",
    "Role",
    "SourceDescriptor",
    "PolicySnapshot",
    "PolicyDecision",
    "normalize_terms",
]
