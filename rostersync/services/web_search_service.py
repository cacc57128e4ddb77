"""Web search with provider fallback, used for artist research and social links.

Providers are tried in priority order (Brave, then DuckDuckGo).  A provider
that raises is logged and skipped; the next one answers instead.  Responses
are cached for the process lifetime so the social-link lookups and a retry
of the same artist do not repeat queries.

:meth:`WebSearchService.research_artist` runs the configured research
queries (biography, labels, performances) strictly one after another with
a throttle between them: Brave's free tier allows one request per second.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog

from rostersync.interfaces.cache_provider import ICacheProvider
from rostersync.interfaces.web_search_provider import IWebSearchProvider, SearchResult
from rostersync.models.artist import ArtistCandidate
from rostersync.utils.errors import ResearchError, RosterSyncError
from rostersync.utils.rate_limiter import Throttle

_DEFAULT_QUERIES = [
    "{name} DJ producer {genre} biography nationality origin",
    "{name} {genre} record labels releases discography",
    "{name} festivals performances achievements collaborations",
]
_DEFAULT_GENRE = "electronic music"
_CACHE_TTL_SECONDS = 3600


@dataclass(frozen=True)
class ArtistSearchResults:
    """Raw research results for one artist, grouped by query.

    Attributes
    ----------
    sections:
        ``(query, results)`` pairs in query order.
    """

    sections: list[tuple[str, list[SearchResult]]] = field(default_factory=list)

    def all_results(self) -> list[SearchResult]:
        """Every result once (first occurrence of each URL), in query order."""
        seen: set[str] = set()
        merged: list[SearchResult] = []
        for _query, results in self.sections:
            for result in results:
                if result.url in seen:
                    continue
                seen.add(result.url)
                merged.append(result)
        return merged


class WebSearchService:
    """Fallback-aware, cached, throttled web search.

    Parameters
    ----------
    providers:
        Search providers in priority order; unavailable ones are skipped.
    throttle:
        Pause between consecutive research queries.
    cache:
        Optional response cache.
    queries:
        Research query templates with ``{name}`` and ``{genre}``.
    results_per_query:
        Results requested per research query.
    """

    def __init__(
        self,
        providers: list[IWebSearchProvider],
        throttle: Throttle | None = None,
        cache: ICacheProvider | None = None,
        queries: list[str] | None = None,
        results_per_query: int = 5,
    ) -> None:
        self._providers = providers
        self._throttle = throttle or Throttle(0)
        self._cache = cache
        self._queries = queries or list(_DEFAULT_QUERIES)
        self._results_per_query = results_per_query
        self._logger: structlog.BoundLogger = structlog.get_logger(logger_name=__name__)

    def is_available(self) -> bool:
        return any(provider.is_available() for provider in self._providers)

    async def search(self, query: str, num_results: int = 5) -> list[SearchResult]:
        """Run *query* on the first provider that answers.

        Raises
        ------
        ResearchError
            If every available provider failed.
        """
        cache_key = f"web_search:{num_results}:{query}"
        cached = await self._cache_get(cache_key)
        if cached is not None:
            return cached

        errors: list[str] = []
        for provider in self._providers:
            if not provider.is_available():
                continue
            try:
                results = await provider.search(query, num_results=num_results)
            except RosterSyncError as exc:
                errors.append(str(exc))
                self._logger.warning(
                    "search_provider_failed",
                    provider=provider.get_provider_name(),
                    query=query,
                    error=str(exc),
                )
                continue
            await self._cache_set(cache_key, results)
            return results

        raise ResearchError(
            message=f"All search providers failed for '{query}': {'; '.join(errors) or 'none available'}",
        )

    async def research_artist(self, candidate: ArtistCandidate) -> ArtistSearchResults:
        """Run every research query for *candidate*, sequentially.

        A query that fails on every provider is logged and contributes no
        results.

        Raises
        ------
        ResearchError
            If every query failed.
        """
        genre = " ".join(candidate.genres[:2]) or _DEFAULT_GENRE
        sections: list[tuple[str, list[SearchResult]]] = []
        failures = 0

        for template in self._queries:
            query = template.format(name=candidate.display_name, genre=genre)
            await self._throttle.wait()
            try:
                results = await self.search(query, self._results_per_query)
            except ResearchError as exc:
                failures += 1
                self._logger.warning("research_query_failed", artist=candidate.display_name, error=str(exc))
                results = []
            sections.append((query, results))

        if self._queries and failures == len(self._queries):
            raise ResearchError(message=f"Every research query failed for {candidate.display_name}")

        found = ArtistSearchResults(sections=sections)
        self._logger.info(
            "artist_web_research",
            artist=candidate.display_name,
            queries=len(sections),
            results=len(found.all_results()),
        )
        return found

    # -- Cache helpers ---------------------------------------------------------
    # A cache failure only costs a repeated query, so it is logged and ignored.

    async def _cache_get(self, key: str) -> Any | None:
        if self._cache is None:
            return None
        try:
            return await self._cache.get(key)
        except Exception as exc:  # noqa: BLE001
            self._logger.debug("cache_read_failed", key=key, error=str(exc))
            return None

    async def _cache_set(self, key: str, value: Any) -> None:
        if self._cache is None:
            return
        try:
            await self._cache.set(key, value, ttl=_CACHE_TTL_SECONDS)
        except Exception as exc:  # noqa: BLE001
            self._logger.debug("cache_write_failed", key=key, error=str(exc))
