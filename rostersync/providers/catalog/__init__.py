"""Upstream and published catalog providers."""

from rostersync.providers.catalog.snapshot_provider import SnapshotCatalogProvider
from rostersync.providers.catalog.spotify_provider import SpotifyCatalogProvider
from rostersync.providers.catalog.wordpress_catalog_provider import WordPressCatalogProvider

__all__ = ["SnapshotCatalogProvider", "SpotifyCatalogProvider", "WordPressCatalogProvider"]
