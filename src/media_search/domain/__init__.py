"""
Domain Layer - Core Business Objects

Contains:
- entities: principals, sources, result items, policy inputs
- ports: collaborator protocols the application layer depends on
"""

from .entities import (
    ClassifiedResult,
    ConfidenceOrigin,
    ContentType,
    PolicyDecision,
    PolicySnapshot,
    Principal,
    RawResultItem,
    Role,
    SourceDescriptor,
)
from .ports import Authenticator, PolicyConfig, SourceAdapter, SourceRegistry

__all__ = [
    "ClassifiedResult",
    "ConfidenceOrigin",
    "ContentType",
    "PolicyDecision",
    "PolicySnapshot",
    "Principal",
    "RawResultItem",
    "Role",
    "SourceDescriptor",
    "Authenticator",
    "PolicyConfig",
    "SourceAdapter",
    "SourceRegistry",
]
