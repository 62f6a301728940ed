"""
Domain Entities: Principal, SourceDescriptor, PolicySnapshot, PolicyDecision

Who is searching, which sources they may query, and the content policy
inputs that apply to them.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType


class Role(str, Enum):
    """Principal role."""

    OWNER = "owner"
    ADMIN = "admin"
    USER = "user"


@dataclass(frozen=True)
class Principal:
    """The authenticated actor issuing a search."""

    username: str
    role: Role = Role.USER
    groups: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_owner(self) -> bool:
        return self.role is Role.OWNER


@dataclass(frozen=True)
class SourceDescriptor:
    """One upstream content index."""

    key: str
    name: str
    api: str
    enabled: bool = True
    detail: str | None = None

    @property
    def label(self) -> str:
        return self.name or self.key


def normalize_terms(terms: Iterable[str]) -> tuple[str, ...]:
    """Lower-case and de-duplicate terms, keeping first-seen order; blank terms are dropped."""
    seen: dict[str, None] = {}
    for term in terms:
        if not isinstance(term, str):
            continue
        cleaned = term.lower()
        if cleaned.strip():
            seen.setdefault(cleaned, None)
    return tuple(seen)


@dataclass(frozen=True)
class PolicySnapshot:
    """
    Read-only content policy inputs, fetched once per session.

    ``group_policies`` maps group name to "filtering enabled for this group".
    """

    global_filter_disabled: bool = False
    group_policies: Mapping[str, bool] = field(default_factory=dict)
    blocked_terms: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "group_policies", MappingProxyType(dict(self.group_policies)))
        object.__setattr__(self, "blocked_terms", normalize_terms(self.blocked_terms))


@dataclass(frozen=True)
class PolicyDecision:
    """Whether content filtering applies to a session, and why."""

    applies: bool
    reason: str

    def to_dict(self) -> dict[str, object]:
        return {"applies": self.applies, "reason": self.reason}
