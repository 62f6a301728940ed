"""
Application DI Container (dependency-injector).

Centralizes service creation and lifecycle management.

Usage::

    from media_search.container import ApplicationContainer

    container = ApplicationContainer()
    container.config.from_dict({
        "catalog_path": "~/.media-search/catalog.yaml",
        "source_timeout": 8.0,
        "source_rate": 5.0,
    })

    pipeline = container.pipeline()

    # In tests - override any provider:
    container.source_adapter.override(providers.Object(fake_adapter))
"""

from __future__ import annotations

import logging
import os
from typing import Any

from dependency_injector import containers, providers

from media_search.application.search import FanOutCoordinator, SearchPipeline
from media_search.infrastructure.catalog import (
    CatalogAuthenticator,
    CatalogPolicyConfig,
    CatalogSourceRegistry,
    CatalogStore,
)

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_CATALOG_PATH = os.path.expanduser("~/.media-search/catalog.yaml")
DEFAULT_SOURCE_TIMEOUT = 8.0
DEFAULT_SOURCE_RATE = 5.0
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080
DEFAULT_LOG_LEVEL = "INFO"


def _create_source_adapter(timeout: float | None, rate: float | None) -> object:
    """Lazy factory for CmsSourceAdapter (avoids importing httpx at wiring time)."""
    from media_search.infrastructure.sources import CmsSourceAdapter

    return CmsSourceAdapter(
        timeout=float(timeout or DEFAULT_SOURCE_TIMEOUT),
        rate=float(rate or DEFAULT_SOURCE_RATE),
    )


def settings_from_env(environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Read container settings from ``MEDIA_SEARCH_*`` environment variables."""
    env = os.environ if environ is None else environ
    return {
        "catalog_path": env.get("MEDIA_SEARCH_CATALOG", DEFAULT_CATALOG_PATH),
        "source_timeout": float(env.get("MEDIA_SEARCH_SOURCE_TIMEOUT", DEFAULT_SOURCE_TIMEOUT)),
        "source_rate": float(env.get("MEDIA_SEARCH_SOURCE_RATE", DEFAULT_SOURCE_RATE)),
        "host": env.get("MEDIA_SEARCH_HOST", DEFAULT_HOST),
        "port": int(env.get("MEDIA_SEARCH_PORT", DEFAULT_PORT)),
        "log_level": env.get("MEDIA_SEARCH_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
    }


class ApplicationContainer(containers.DeclarativeContainer):
    """Central DI container for the media search service.

    - ``catalog_store``: YAML catalog, shared by the three collaborators below
    - ``authenticator`` / ``source_registry`` / ``policy_config``: catalog-backed ports
    - ``source_adapter``: upstream provider client
    - ``pipeline``: batch and streaming search
    """

    config = providers.Configuration()

    catalog_store = providers.Singleton(CatalogStore, path=config.catalog_path)

    authenticator = providers.Singleton(CatalogAuthenticator, store=catalog_store)
    source_registry = providers.Singleton(CatalogSourceRegistry, store=catalog_store)
    policy_config = providers.Singleton(CatalogPolicyConfig, store=catalog_store)

    source_adapter = providers.Singleton(
        _create_source_adapter,
        timeout=config.source_timeout,
        rate=config.source_rate,
    )

    coordinator = providers.Singleton(FanOutCoordinator, adapter=source_adapter)

    pipeline = providers.Singleton(
        SearchPipeline,
        registry=source_registry,
        policy_config=policy_config,
        coordinator=coordinator,
    )


def create_container(settings: dict[str, Any] | None = None) -> ApplicationContainer:
    """Build a container configured from ``settings`` or the environment."""
    container = ApplicationContainer()
    container.config.from_dict(settings if settings is not None else settings_from_env())
    logger.debug(f"Container configured with catalog {container.config.catalog_path()}")
    return container


__all__ = [
    "ApplicationContainer",
    "create_container",
    "settings_from_env",
]
