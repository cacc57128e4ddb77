"""Abstract base class for publishing bilingual artist pages."""

from __future__ import annotations

from abc import ABC, abstractmethod

from rostersync.models.artist import ArtistCandidate
from rostersync.models.content import GeneratedContent, PageRef


# Concrete implementation: WordPressPublisher (rostersync/providers/wordpress/)
class IPublisher(ABC):
    """Contract for creating the locale page pair of one artist."""

    @abstractmethod
    async def publish(
        self,
        candidate: ArtistCandidate,
        content: GeneratedContent,
        media_id: int | None,
        social_links: dict[str, str],
        locales: list[str] | None = None,
    ) -> dict[str, PageRef]:
        """Create one page per locale and link them as translations.

        Parameters
        ----------
        candidate:
            The artist being published; its canonical identity becomes the
            page slug.
        content:
            Per-locale descriptions.
        media_id:
            Featured image id, or ``None``.
        social_links:
            platform -> URL; empty values are not published.
        locales:
            Restrict publishing to these locales (e.g. to finish a pair
            that was only partially created).  All configured locales when
            ``None``.

        Returns
        -------
        dict[str, PageRef]
            The created page per locale.

        Raises
        ------
        rostersync.utils.errors.PartialPublishError
            If some locales were created and others were not.  Created
            pages are left in place.
        rostersync.utils.errors.PublishError
            If nothing could be created.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for logs and error reports."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the publishing endpoint is configured."""
