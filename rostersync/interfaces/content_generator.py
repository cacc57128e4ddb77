"""Abstract base class for bilingual artist description generation."""

from __future__ import annotations

from abc import ABC, abstractmethod

from rostersync.models.artist import ArtistCandidate
from rostersync.models.content import GeneratedContent


# Concrete implementation: LLMContentGenerator (rostersync/services/)
class IContentGenerator(ABC):
    """Contract for producing per-locale page descriptions."""

    @abstractmethod
    async def generate(self, candidate: ArtistCandidate, research_text: str) -> GeneratedContent:
        """Generate the description for every configured locale.

        Parameters
        ----------
        candidate:
            The artist to describe.
        research_text:
            Human-readable research summary (or the degraded fallback
            description) the generator must stay faithful to.

        Returns
        -------
        GeneratedContent
            One :class:`LocaleContent` per configured locale.

        Raises
        ------
        rostersync.utils.errors.ContentGenerationError
            If any locale could not be produced.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for logs and error reports."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the generation backend is configured."""
