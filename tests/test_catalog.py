"""Tests for the YAML catalog - parsing, entitlements, reload and collaborators."""

import os

import pytest
import yaml

from media_search.domain.entities import Role
from media_search.infrastructure.catalog import (
    CatalogAuthenticator,
    CatalogPolicyConfig,
    CatalogSourceRegistry,
    CatalogStore,
    parse_catalog,
)
from media_search.shared.exceptions import (
    AuthenticationError,
    ConfigurationError,
    PolicyError,
)


def bump_mtime(path, seconds=10):
    stat = path.stat()
    os.utime(path, (stat.st_atime + seconds, stat.st_mtime + seconds))


class TestParseCatalog:
    def test_parses_fixture(self, catalog_data):
        catalog = parse_catalog(catalog_data)
        assert [s.key for s in catalog.sources] == ["site_a", "site_b", "site_c"]
        assert catalog.sources[2].enabled is False
        assert catalog.users["admin"].role is Role.OWNER
        assert catalog.groups["VIP"].content_filter is True
        assert catalog.blocked_terms == ("测试", " 福利 ")

    def test_empty(self):
        catalog = parse_catalog(None)
        assert catalog.sources == ()
        assert catalog.policy_snapshot().group_policies == {}

    @pytest.mark.parametrize(
        "data",
        [
            ["not", "a", "mapping"],
            {"sources": [{"key": "a"}]},
            {"sources": [{"key": "a", "api": "x"}, {"key": "a", "api": "y"}]},
            {"groups": [{"content_filter": True}]},
            {"users": [{"username": "u", "role": "superuser"}]},
            {"users": [{"username": "u", "groups": 5}]},
        ],
    )
    def test_invalid(self, data):
        with pytest.raises(ConfigurationError):
            parse_catalog(data)

    def test_content_filter_must_be_true(self):
        catalog = parse_catalog({"groups": [{"name": "g", "content_filter": "yes"}]})
        assert catalog.groups["g"].content_filter is False

    def test_policy_snapshot(self, catalog_data):
        snapshot = parse_catalog(catalog_data).policy_snapshot()
        assert snapshot.global_filter_disabled is False
        assert snapshot.group_policies == {"VIP": True, "partners": False}


class TestSourcesFor:
    @pytest.mark.parametrize(
        "username, expected",
        [
            ("admin", ["site_a", "site_b"]),
            ("alice", ["site_a", "site_b"]),
            ("bob", ["site_b"]),
            ("carol", ["site_a"]),
            ("mallory", []),
            ("nobody", []),
        ],
    )
    def test_entitlements(self, catalog_data, username, expected):
        catalog = parse_catalog(catalog_data)
        assert [s.key for s in catalog.sources_for(username)] == expected


class TestCatalogStore:
    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            CatalogStore(tmp_path / "missing.yaml").load()

    def test_no_path_is_empty(self):
        assert CatalogStore(None).load().sources == ()

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("sources: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            CatalogStore(path).load()

    def test_cached_until_modified(self, catalog_file, catalog_data):
        store = CatalogStore(catalog_file)
        first = store.load()
        assert store.load() is first

        catalog_data["sources"].append({"key": "site_d", "api": "https://d.example.com/api"})
        catalog_file.write_text(yaml.safe_dump(catalog_data, allow_unicode=True), encoding="utf-8")
        bump_mtime(catalog_file)

        reloaded = store.load()
        assert reloaded is not first
        assert [s.key for s in reloaded.sources][-1] == "site_d"

    def test_keeps_last_revision_when_file_disappears(self, catalog_file):
        store = CatalogStore(catalog_file)
        first = store.load()
        catalog_file.unlink()
        assert store.load() is first

    async def test_aload(self, catalog_file):
        catalog = await CatalogStore(catalog_file).aload()
        assert len(catalog.sources) == 3


class TestCollaborators:
    def test_authenticate(self, catalog_file):
        auth = CatalogAuthenticator(CatalogStore(catalog_file))
        principal = auth.authenticate({"X-User": "alice"})
        assert principal.username == "alice"
        assert principal.groups == frozenset({"VIP"})
        assert principal.role is Role.USER

    @pytest.mark.parametrize("headers", [{}, {"x-user": "  "}, {"x-user": "nobody"}, {"x-user": "mallory"}])
    def test_authenticate_rejects(self, catalog_file, headers):
        auth = CatalogAuthenticator(CatalogStore(catalog_file))
        with pytest.raises(AuthenticationError):
            auth.authenticate(headers)

    async def test_registry(self, catalog_file):
        registry = CatalogSourceRegistry(CatalogStore(catalog_file))
        assert [s.key for s in await registry.sources_for("bob")] == ["site_b"]
        assert len(registry.all_sources()) == 3

    async def test_policy_config(self, catalog_file):
        snapshot = await CatalogPolicyConfig(CatalogStore(catalog_file)).snapshot()
        assert snapshot.group_policies["VIP"] is True
        assert snapshot.blocked_terms == ("测试", " 福利 ")

    async def test_policy_config_failure_is_policy_error(self, tmp_path):
        with pytest.raises(PolicyError):
            await CatalogPolicyConfig(CatalogStore(tmp_path / "missing.yaml")).snapshot()
