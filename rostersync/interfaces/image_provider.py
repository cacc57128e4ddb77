"""Abstract base class for artist image acquisition."""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: WordPressImageProvider (rostersync/providers/wordpress/)
class IImageProvider(ABC):
    """Contract for getting an artist photo into the publishing system's media library."""

    @abstractmethod
    async def transfer(self, image_ref: str, artist_name: str) -> int | None:
        """Copy the image at *image_ref* into the media library.

        Returns
        -------
        int or None
            The new media id, or ``None`` if the transfer did not succeed.
        """

    @abstractmethod
    async def find_existing(self, artist_name: str) -> int | None:
        """Return the id of a media item already uploaded for the artist, if any."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for logs and error reports."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the media endpoint is configured."""
