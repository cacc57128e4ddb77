"""Brave Search API provider implementing IWebSearchProvider.

Preferred search backend for artist research.  Brave issues small monthly
quotas per key, so the provider carries every configured key in a
:class:`~rostersync.utils.rate_limiter.RateLimiter` pool: a rejected key
(401/403/quota) rotates to the next one, a 429 waits out ``Retry-After``.
"""

from __future__ import annotations

import httpx
import structlog

from rostersync.interfaces.web_search_provider import IWebSearchProvider, SearchResult
from rostersync.utils.errors import ResearchError, RosterSyncError
from rostersync.utils.rate_limiter import RateLimiter, RetryPolicy

logger = structlog.get_logger(logger_name=__name__)

_BRAVE_SEARCH_URL = "https://api.search.brave.com/res/v1/web/search"
# Brave caps ``count`` at 20 per request.
_MAX_COUNT = 20


class BraveSearchProvider(IWebSearchProvider):
    """Web search via the Brave Search REST API.

    Parameters
    ----------
    http_client:
        Shared ``httpx.AsyncClient``.
    api_keys:
        Subscription tokens in priority order.  An empty list makes the
        provider unavailable.
    retry_policy:
        Backoff parameters for 429 / transport failures.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_keys: list[str],
        retry_policy: RetryPolicy | None = None,
        limiter: RateLimiter[str] | None = None,
    ) -> None:
        self._http = http_client
        self._api_keys = [key for key in api_keys if key]
        self._limiter: RateLimiter[str] | None = limiter
        if self._limiter is None and self._api_keys:
            self._limiter = RateLimiter(
                retry_policy or RetryPolicy(),
                self._api_keys,
                provider_name=self.get_provider_name(),
            )

    async def search(self, query: str, num_results: int = 10) -> list[SearchResult]:
        if self._limiter is None:
            raise ResearchError(
                message="No Brave API key configured",
                provider_name=self.get_provider_name(),
            )

        params = {"q": query, "count": min(num_results, _MAX_COUNT)}

        async def _request(api_key: str) -> httpx.Response:
            return await self._http.get(
                _BRAVE_SEARCH_URL,
                params=params,
                headers={
                    "Accept": "application/json",
                    "X-Subscription-Token": api_key,
                },
            )

        try:
            response = await self._limiter.call(_request)
            payload = response.json()
        except RosterSyncError as exc:
            raise ResearchError(
                message=f"Brave search failed: {exc.message}",
                provider_name=self.get_provider_name(),
            ) from exc
        except ValueError as exc:
            raise ResearchError(
                message=f"Brave returned invalid JSON: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not isinstance(payload, dict):
            raise ResearchError(
                message=f"Brave returned an unexpected payload: {type(payload).__name__}",
                provider_name=self.get_provider_name(),
            )
        web = payload.get("web")
        items = web.get("results") if isinstance(web, dict) else None
        items = [item for item in items or [] if isinstance(item, dict)]
        results = [
            SearchResult(
                title=item.get("title", ""),
                url=item.get("url", ""),
                description=item.get("description", ""),
            )
            for item in items[:num_results]
            if item.get("url")
        ]
        logger.debug("brave_search_complete", query=query, result_count=len(results))
        return results

    def get_provider_name(self) -> str:
        return "brave"

    def is_available(self) -> bool:
        return bool(self._api_keys)
