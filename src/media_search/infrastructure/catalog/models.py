"""
Catalog - Site configuration parsed from YAML.

File layout::

    site:
      disable_content_filter: false   # global switch
      blocked_terms: [测试, ...]
    sources:
      - key: site_a
        name: Site A
        api: https://a.example.com/api.php/provide/vod
        enabled: true
    groups:
      - name: VIP
        content_filter: true          # filtering enabled for this group
        sources: [site_a]             # optional source grant
    users:
      - username: alice
        role: owner                   # owner | admin | user
        groups: [VIP]
        sources: [site_a]             # optional, overrides group grants
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from media_search.domain.entities import (
    PolicySnapshot,
    Principal,
    Role,
    SourceDescriptor,
    normalize_terms,
)
from media_search.shared.exceptions import ConfigurationError, ErrorContext


@dataclass(frozen=True)
class GroupEntry:
    name: str
    content_filter: bool = False
    sources: tuple[str, ...] | None = None


@dataclass(frozen=True)
class UserEntry:
    username: str
    role: Role = Role.USER
    groups: tuple[str, ...] = ()
    sources: tuple[str, ...] | None = None
    disabled: bool = False

    def to_principal(self) -> Principal:
        return Principal(username=self.username, role=self.role, groups=frozenset(self.groups))


@dataclass(frozen=True)
class Catalog:
    """Immutable view of one catalog revision."""

    sources: tuple[SourceDescriptor, ...] = ()
    groups: Mapping[str, GroupEntry] = field(default_factory=dict)
    users: Mapping[str, UserEntry] = field(default_factory=dict)
    disable_content_filter: bool = False
    blocked_terms: tuple[str, ...] = ()

    def user(self, username: str) -> UserEntry | None:
        return self.users.get(username)

    def policy_snapshot(self) -> PolicySnapshot:
        return PolicySnapshot(
            global_filter_disabled=self.disable_content_filter,
            group_policies={name: group.content_filter for name, group in self.groups.items()},
            blocked_terms=self.blocked_terms,
        )

    def sources_for(self, username: str) -> list[SourceDescriptor]:
        """
        Enabled sources the user may query, in catalog order.

        A user-level grant wins; otherwise the union of group grants; with
        no grant at all every enabled source is permitted. Unknown and
        disabled users get nothing.
        """
        user = self.users.get(username)
        if user is None or user.disabled:
            return []

        allowed: set[str] | None = None
        if user.sources is not None:
            allowed = set(user.sources)
        else:
            for group_name in user.groups:
                group = self.groups.get(group_name)
                if group is not None and group.sources is not None:
                    allowed = (allowed or set()) | set(group.sources)

        return [s for s in self.sources if s.enabled and (allowed is None or s.key in allowed)]


# =============================================================================
# Parsing
# =============================================================================


def _str_tuple(value: Any, field_name: str) -> tuple[str, ...] | None:
    if value is None:
        return None
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, list):
        raise ConfigurationError(f"'{field_name}' must be a list of strings")
    return tuple(str(v) for v in value)


def _parse_role(value: Any, username: str) -> Role:
    try:
        return Role(str(value or Role.USER.value).lower())
    except ValueError:
        raise ConfigurationError(
            f"Unknown role {value!r} for user {username!r}",
            context=ErrorContext(operation="parse_catalog", input_value=value),
        ) from None


def parse_catalog(data: Mapping[str, Any] | None) -> Catalog:
    """Validate raw YAML data and build a Catalog."""
    data = data or {}
    if not isinstance(data, Mapping):
        raise ConfigurationError("Catalog root must be a mapping")

    site = data.get("site") or {}

    sources: list[SourceDescriptor] = []
    seen_keys: set[str] = set()
    for raw in data.get("sources") or []:
        if not isinstance(raw, Mapping) or not raw.get("key") or not raw.get("api"):
            raise ConfigurationError(f"Source entries need 'key' and 'api': {raw!r}")
        key = str(raw["key"])
        if key in seen_keys:
            raise ConfigurationError(f"Duplicate source key: {key!r}")
        seen_keys.add(key)
        sources.append(
            SourceDescriptor(
                key=key,
                name=str(raw.get("name") or key),
                api=str(raw["api"]),
                enabled=not raw.get("disabled", False) and bool(raw.get("enabled", True)),
                detail=raw.get("detail"),
            )
        )

    groups: dict[str, GroupEntry] = {}
    for raw in data.get("groups") or []:
        if not isinstance(raw, Mapping) or not raw.get("name"):
            raise ConfigurationError(f"Group entries need 'name': {raw!r}")
        name = str(raw["name"])
        groups[name] = GroupEntry(
            name=name,
            content_filter=raw.get("content_filter") is True,
            sources=_str_tuple(raw.get("sources"), "sources"),
        )

    users: dict[str, UserEntry] = {}
    for raw in data.get("users") or []:
        if not isinstance(raw, Mapping) or not raw.get("username"):
            raise ConfigurationError(f"User entries need 'username': {raw!r}")
        username = str(raw["username"])
        users[username] = UserEntry(
            username=username,
            role=_parse_role(raw.get("role"), username),
            groups=_str_tuple(raw.get("groups"), "groups") or (),
            sources=_str_tuple(raw.get("sources"), "sources"),
            disabled=bool(raw.get("disabled", False)),
        )

    return Catalog(
        sources=tuple(sources),
        groups=groups,
        users=users,
        disable_content_filter=bool(site.get("disable_content_filter", False)),
        blocked_terms=normalize_terms(site.get("blocked_terms") or []),
    )
