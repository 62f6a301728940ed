"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import pytest
import yaml

from media_search.application.search import FanOutCoordinator, SearchPipeline
from media_search.domain.entities import (
    PolicySnapshot,
    Principal,
    RawResultItem,
    Role,
    SourceDescriptor,
)

# ============================================================
# Fakes for the collaborator ports
# ============================================================


class FakeAdapter:
    """SourceAdapter returning canned items, raising canned errors, with optional delays."""

    def __init__(
        self,
        responses: Mapping[str, Sequence[dict[str, Any]] | BaseException] | None = None,
        delays: Mapping[str, float] | None = None,
    ) -> None:
        self.responses = dict(responses or {})
        self.delays = dict(delays or {})
        self.calls: list[tuple[str, str]] = []
        self.cancelled: list[str] = []

    async def search(self, source: SourceDescriptor, keyword: str) -> list[RawResultItem]:
        self.calls.append((source.key, keyword))
        try:
            delay = self.delays.get(source.key, 0.0)
            if delay:
                await asyncio.sleep(delay)
        except asyncio.CancelledError:
            self.cancelled.append(source.key)
            raise
        response = self.responses.get(source.key, [])
        if isinstance(response, BaseException):
            raise response
        return [
            RawResultItem.from_dict(record, source=source.key, source_name=source.name)
            for record in response
        ]


class FakeRegistry:
    """SourceRegistry with a fixed source list."""

    def __init__(self, sources: Sequence[SourceDescriptor] = (), error: Exception | None = None) -> None:
        self.sources = list(sources)
        self.error = error
        self.requested: list[str] = []

    async def sources_for(self, username: str) -> list[SourceDescriptor]:
        self.requested.append(username)
        if self.error is not None:
            raise self.error
        return list(self.sources)


class FakePolicyConfig:
    """PolicyConfig with a fixed snapshot."""

    def __init__(self, snapshot: PolicySnapshot | None = None, error: Exception | None = None) -> None:
        self._snapshot = snapshot or PolicySnapshot()
        self.error = error
        self.calls = 0

    async def snapshot(self) -> PolicySnapshot:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self._snapshot


def make_source(key: str, name: str | None = None, enabled: bool = True) -> SourceDescriptor:
    return SourceDescriptor(
        key=key,
        name=name or key.upper(),
        api=f"https://{key}.example.com/api.php/provide/vod",
        enabled=enabled,
    )


def make_pipeline(
    sources: Sequence[SourceDescriptor] = (),
    adapter: FakeAdapter | None = None,
    snapshot: PolicySnapshot | None = None,
    policy_error: Exception | None = None,
    registry_error: Exception | None = None,
) -> SearchPipeline:
    return SearchPipeline(
        registry=FakeRegistry(sources, error=registry_error),
        policy_config=FakePolicyConfig(snapshot, error=policy_error),
        coordinator=FanOutCoordinator(adapter or FakeAdapter()),
    )


# ============================================================
# Principals
# ============================================================


@pytest.fixture
def owner():
    return Principal(username="admin", role=Role.OWNER, groups=frozenset({"VIP"}))


@pytest.fixture
def vip_user():
    return Principal(username="alice", role=Role.USER, groups=frozenset({"VIP"}))


@pytest.fixture
def plain_user():
    return Principal(username="bob", role=Role.USER)


# ============================================================
# Policy snapshots
# ============================================================


@pytest.fixture
def filtering_snapshot():
    """VIP group filters the term 测试."""
    return PolicySnapshot(group_policies={"VIP": True}, blocked_terms=("测试",))


# ============================================================
# Catalog files
# ============================================================


@pytest.fixture
def catalog_data():
    return {
        "site": {"disable_content_filter": False, "blocked_terms": ["测试", " 福利 "]},
        "sources": [
            {"key": "site_a", "name": "Site A", "api": "https://a.example.com/api"},
            {"key": "site_b", "name": "Site B", "api": "https://b.example.com/api"},
            {"key": "site_c", "name": "Site C", "api": "https://c.example.com/api", "disabled": True},
        ],
        "groups": [
            {"name": "VIP", "content_filter": True},
            {"name": "partners", "sources": ["site_b"]},
        ],
        "users": [
            {"username": "admin", "role": "owner"},
            {"username": "alice", "groups": ["VIP"]},
            {"username": "bob", "groups": ["partners"]},
            {"username": "carol", "sources": ["site_a"]},
            {"username": "mallory", "disabled": True},
        ],
    }


@pytest.fixture
def catalog_file(tmp_path: Path, catalog_data):
    path = tmp_path / "catalog.yaml"
    path.write_text(yaml.safe_dump(catalog_data, allow_unicode=True), encoding="utf-8")
    return path
