"""
CatalogStore - YAML-backed configuration collaborator.

Reads the catalog file with ``yaml.safe_load`` and re-reads it whenever its
modification time changes, so edits made by an admin tool take effect on the
next request without a restart. Each request gets an immutable Catalog
revision; nothing mutates a revision after it is built.

The three collaborator adapters below all read from one store:
- CatalogAuthenticator  → Authenticator
- CatalogSourceRegistry → SourceRegistry
- CatalogPolicyConfig   → PolicyConfig
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from pathlib import Path

import yaml

from media_search.domain.entities import PolicySnapshot, Principal, SourceDescriptor
from media_search.shared.exceptions import (
    AuthenticationError,
    ConfigurationError,
    ErrorContext,
    PolicyError,
)

from .models import Catalog, parse_catalog

logger = logging.getLogger(__name__)

USER_HEADER = "x-user"


class CatalogStore:
    """Loads and caches the catalog file.

    Args:
        path: YAML catalog path. ``None`` means an empty catalog.
    """

    def __init__(self, path: str | Path | None) -> None:
        self._path = Path(path).expanduser() if path else None
        self._catalog: Catalog | None = None
        self._mtime: float | None = None

    @property
    def path(self) -> Path | None:
        return self._path

    def _read(self) -> Catalog:
        assert self._path is not None
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(
                f"Cannot read catalog {self._path}: {e}",
                context=ErrorContext(operation="load_catalog", input_value=str(self._path)),
            ) from e
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in catalog {self._path}: {exc}") from exc
        return parse_catalog(data)

    def load(self) -> Catalog:
        """Return the current catalog, re-reading the file if it changed."""
        if self._path is None:
            if self._catalog is None:
                self._catalog = Catalog()
            return self._catalog

        try:
            mtime = self._path.stat().st_mtime
        except OSError as e:
            if self._catalog is not None:
                logger.warning(f"Catalog {self._path} unavailable, keeping last revision: {e}")
                return self._catalog
            raise ConfigurationError(f"Catalog not found: {self._path}") from e

        if self._catalog is None or mtime != self._mtime:
            catalog = self._read()
            if self._catalog is not None:
                logger.info(f"Catalog reloaded from {self._path}")
            self._catalog, self._mtime = catalog, mtime
        return self._catalog

    async def aload(self) -> Catalog:
        return await asyncio.to_thread(self.load)


class CatalogAuthenticator:
    """Resolves the ``X-User`` header against catalog users."""

    def __init__(self, store: CatalogStore, header: str = USER_HEADER) -> None:
        self._store = store
        self._header = header.lower()

    def authenticate(self, headers: Mapping[str, str]) -> Principal:
        username = next(
            (value.strip() for name, value in headers.items() if name.lower() == self._header),
            "",
        )
        if not username:
            raise AuthenticationError()
        user = self._store.load().user(username)
        if user is None or user.disabled:
            logger.info(f"Rejected unknown or disabled user {username!r}")
            raise AuthenticationError()
        return user.to_principal()


class CatalogSourceRegistry:
    """Permitted sources per user, in catalog order."""

    def __init__(self, store: CatalogStore) -> None:
        self._store = store

    async def sources_for(self, username: str) -> list[SourceDescriptor]:
        catalog = await self._store.aload()
        return catalog.sources_for(username)

    def all_sources(self) -> list[SourceDescriptor]:
        return list(self._store.load().sources)


class CatalogPolicyConfig:
    """Policy snapshot from the site section of the catalog."""

    def __init__(self, store: CatalogStore) -> None:
        self._store = store

    async def snapshot(self) -> PolicySnapshot:
        try:
            catalog = await self._store.aload()
        except ConfigurationError as e:
            raise PolicyError(f"Policy configuration unavailable: {e}") from e
        return catalog.policy_snapshot()
