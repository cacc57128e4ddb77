"""Abstract base class for research synthesis.

Turns raw web-search results into a structured :class:`ResearchResult`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from rostersync.interfaces.web_search_provider import SearchResult
from rostersync.models.artist import ArtistCandidate
from rostersync.models.research import ResearchResult


# Concrete implementation: LLMResearchSynthesizer (rostersync/services/)
class ISynthesisProvider(ABC):
    """Contract for structuring raw search results about one artist."""

    @abstractmethod
    async def synthesize(
        self,
        candidate: ArtistCandidate,
        raw_results: list[SearchResult],
    ) -> ResearchResult | None:
        """Structure *raw_results* into a research result.

        Parameters
        ----------
        candidate:
            The artist being researched.
        raw_results:
            Web search results gathered for the artist.

        Returns
        -------
        ResearchResult or None
            ``None`` when the results contain nothing usable.

        Raises
        ------
        rostersync.utils.errors.ParseError
            If the synthesis backend answered with malformed output.
        rostersync.utils.errors.LLMError
            If the synthesis backend call failed.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for logs and error reports."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the synthesis backend is configured."""
