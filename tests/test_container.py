"""Tests for container.py - environment settings and provider wiring."""

from dependency_injector import providers

from conftest import FakeAdapter

from media_search.application.search import SearchPipeline
from media_search.container import (
    DEFAULT_PORT,
    DEFAULT_SOURCE_TIMEOUT,
    ApplicationContainer,
    create_container,
    settings_from_env,
)
from media_search.infrastructure.sources import CmsSourceAdapter


class TestSettingsFromEnv:
    def test_defaults(self):
        settings = settings_from_env({})
        assert settings["port"] == DEFAULT_PORT
        assert settings["source_timeout"] == DEFAULT_SOURCE_TIMEOUT
        assert settings["log_level"] == "INFO"

    def test_overrides(self):
        settings = settings_from_env(
            {
                "MEDIA_SEARCH_CATALOG": "/etc/media/catalog.yaml",
                "MEDIA_SEARCH_SOURCE_TIMEOUT": "3.5",
                "MEDIA_SEARCH_SOURCE_RATE": "2",
                "MEDIA_SEARCH_PORT": "9000",
                "MEDIA_SEARCH_LOG_LEVEL": "debug",
            }
        )
        assert settings["catalog_path"] == "/etc/media/catalog.yaml"
        assert settings["source_timeout"] == 3.5
        assert settings["source_rate"] == 2.0
        assert settings["port"] == 9000
        assert settings["log_level"] == "DEBUG"


class TestContainer:
    def test_singletons_share_catalog_store(self, catalog_file):
        container = create_container({"catalog_path": str(catalog_file)})
        assert container.catalog_store() is container.catalog_store()
        assert container.authenticator()._store is container.source_registry()._store

    async def test_default_adapter(self, catalog_file):
        container = create_container({"catalog_path": str(catalog_file), "source_timeout": 2.0})
        adapter = container.source_adapter()
        assert isinstance(adapter, CmsSourceAdapter)
        await adapter.close()

    async def test_override_adapter(self, catalog_file, vip_user):
        container = ApplicationContainer()
        container.config.from_dict({"catalog_path": str(catalog_file)})
        fake = FakeAdapter({"site_a": [{"title": "电影A"}]})
        container.source_adapter.override(providers.Object(fake))

        pipeline = container.pipeline()
        assert isinstance(pipeline, SearchPipeline)

        outcome = await pipeline.run_batch(vip_user, "电影A")
        assert [r.title for r in outcome.results] == ["电影A"]
        assert {key for key, _ in fake.calls} == {"site_a", "site_b"}
