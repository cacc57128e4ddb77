"""Abstract base classes for the two sides of the catalog diff.

The *upstream* catalog is the roster that should be published (a Spotify
playlist); the *published* catalog is what the WordPress site already
serves.  The orchestrator treats both as black boxes returning a snapshot.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from rostersync.models.artist import ArtistCandidate, PublishedArtist
from rostersync.utils.identity import IdentityResolver


# Concrete implementations: SpotifyCatalogProvider, SnapshotCatalogProvider
# Located in: rostersync/providers/catalog/
class IUpstreamCatalogProvider(ABC):
    """Contract for the roster the published catalog must mirror."""

    @abstractmethod
    async def fetch_candidates(self) -> list[ArtistCandidate]:
        """Return every upstream artist, in upstream order.

        Returns
        -------
        list[ArtistCandidate]
            May contain the same artist more than once; the orchestrator
            de-duplicates by canonical identity (first occurrence wins).

        Raises
        ------
        rostersync.utils.errors.RateLimitError
            If the provider's quota stays exhausted after retries.
        rostersync.utils.errors.TransientNetworkError
            If the provider stays unreachable after retries.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"spotify"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials / source data are configured."""


# Concrete implementation: WordPressCatalogProvider (rostersync/providers/catalog/)
class IPublishedCatalogProvider(ABC):
    """Contract for the catalog that is already published."""

    @abstractmethod
    async def fetch_published(self) -> list[PublishedArtist]:
        """Return one entry per published locale page.

        Returns
        -------
        list[PublishedArtist]
            ``canonical_identity`` may be left blank; it is computed from
            ``name`` when missing.

        Raises
        ------
        rostersync.utils.errors.TransientNetworkError
            If the catalog cannot be reached.  An unreachable catalog is
            never reported as an empty one.
        """

    async def find_by_identity(
        self, identity: str, resolver: IdentityResolver | None = None
    ) -> list[PublishedArtist]:
        """Return the published pages of one artist.

        Used for the per-artist re-check just before publishing.  The
        default scans a full :meth:`fetch_published` and compares names
        under *resolver* (the default ampersand policy when omitted);
        providers with a cheaper lookup override it.
        """
        if not identity:
            return []
        resolver = resolver or IdentityResolver()
        return [entry for entry in await self.fetch_published() if resolver.normalize(entry.name) == identity]

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"wordpress"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the catalog endpoint is configured."""
