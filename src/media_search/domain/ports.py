"""
Collaborator ports.

The pipeline only talks to these protocols. Concrete implementations live in
the infrastructure layer; tests substitute fakes.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .entities import PolicySnapshot, Principal, RawResultItem, SourceDescriptor


@runtime_checkable
class Authenticator(Protocol):
    """Resolves request headers to a principal or raises AuthenticationError."""

    def authenticate(self, headers: Mapping[str, str]) -> Principal: ...


@runtime_checkable
class SourceRegistry(Protocol):
    """Ordered, already entitlement-filtered sources for a user."""

    async def sources_for(self, username: str) -> list[SourceDescriptor]: ...


@runtime_checkable
class PolicyConfig(Protocol):
    """Content policy inputs. Raises PolicyError when unavailable."""

    async def snapshot(self) -> PolicySnapshot: ...


@runtime_checkable
class SourceAdapter(Protocol):
    """Queries one source. Raises on any failure, including timeouts."""

    async def search(self, source: SourceDescriptor, keyword: str) -> list[RawResultItem]: ...
