"""DuckDuckGo web-search provider implementing IWebSearchProvider.

Keyless fallback behind Brave.  The synchronous ``DDGS`` client is run in
``asyncio.to_thread``.  DuckDuckGo rate-limits aggressively and without
notice, so library failures are logged and reported as "no results"
rather than aborting the artist's research.
"""

from __future__ import annotations

import asyncio

import structlog
from duckduckgo_search import DDGS

from rostersync.interfaces.web_search_provider import IWebSearchProvider, SearchResult

logger = structlog.get_logger(logger_name=__name__)


class DuckDuckGoSearchProvider(IWebSearchProvider):
    """DuckDuckGo web-search provider (no API key, always available)."""

    async def search(self, query: str, num_results: int = 10) -> list[SearchResult]:
        try:
            raw_results = await asyncio.to_thread(self._sync_search, query, num_results)
        except Exception as exc:  # noqa: BLE001
            logger.warning("duckduckgo_search_failed", query=query, error=str(exc))
            return []

        results = [
            SearchResult(
                title=item.get("title", ""),
                url=item.get("href", item.get("url", "")),
                description=item.get("body") or "",
            )
            for item in raw_results or []
        ]
        logger.debug("duckduckgo_search_complete", query=query, result_count=len(results))
        return results

    @staticmethod
    def _sync_search(query: str, max_results: int) -> list[dict]:
        """Run the synchronous DDGS search (called via to_thread)."""
        with DDGS() as ddgs:
            return list(ddgs.text(query, max_results=max_results))

    def get_provider_name(self) -> str:
        return "duckduckgo"

    def is_available(self) -> bool:
        return True
