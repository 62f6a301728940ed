"""
Catalog - YAML-backed sources, users, groups and content policy.
"""

from .models import Catalog, GroupEntry, UserEntry, parse_catalog
from .store import (
    CatalogAuthenticator,
    CatalogPolicyConfig,
    CatalogSourceRegistry,
    CatalogStore,
)

__all__ = [
    "Catalog",
    "GroupEntry",
    "UserEntry",
    "parse_catalog",
    "CatalogStore",
    "CatalogAuthenticator",
    "CatalogSourceRegistry",
    "CatalogPolicyConfig",
]
