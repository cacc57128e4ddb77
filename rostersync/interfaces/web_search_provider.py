"""Abstract base class for web-search service providers.

Defines the contract for general-purpose web searches used during artist
research.  Implementations wrap Brave Search and DuckDuckGo; the research
service tries them in priority order.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class SearchResult:
    """A single web-search result.

    Attributes
    ----------
    title:
        The page title as returned by the search engine.
    url:
        The URL of the result page.
    description:
        Text excerpt from the result, empty when the engine gives none.
    """

    title: str
    url: str
    description: str = ""


# Concrete implementations: BraveSearchProvider, DuckDuckGoSearchProvider
# Located in: rostersync/providers/search/
class IWebSearchProvider(ABC):
    """Contract for web-search services used during artist research."""

    @abstractmethod
    async def search(self, query: str, num_results: int = 10) -> list[SearchResult]:
        """Execute a web search and return the top results.

        Parameters
        ----------
        query:
            The search query string.
        num_results:
            Maximum number of results to return.

        Returns
        -------
        list[SearchResult]
            Zero or more results ordered by relevance.  An empty list means
            "nothing found".

        Raises
        ------
        rostersync.utils.errors.ResearchError
            If the search API call fails.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"brave"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured (keys present)."""
