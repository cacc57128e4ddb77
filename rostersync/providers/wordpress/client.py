"""Thin async client for the WordPress site hosting the artist catalog.

Two families of endpoints are used:

- Core REST routes under ``/wp-json/wp/v2`` (list/create/update artist
  posts, search the media library).
- The site's custom ``/wp-json/dd-api/v1`` routes (upload an image from a
  URL, set a featured image, write ACF fields), authenticated with the
  ``X-API-Key`` header.

Every mutating call returns a :data:`~rostersync.models.tool_result.ToolResult`
parsed by :func:`parse_tool_result`; callers never inspect raw responses.
Transport failures and 429s are retried by the shared
:class:`~rostersync.utils.rate_limiter.RateLimiter`; anything it gives up
on propagates as a domain error.
"""

from __future__ import annotations

import json
import re
from typing import Any

import httpx
import structlog

from rostersync.models.tool_result import ErrorResult, IdResult, TextResult, ToolResult
from rostersync.utils.errors import ParseError, ProviderUnavailableError
from rostersync.utils.rate_limiter import RateLimiter, RetryPolicy

logger = structlog.get_logger(logger_name=__name__)

_REST_PREFIX = "/wp-json/wp/v2"
_CUSTOM_PREFIX = "/wp-json/dd-api/v1"

# Plain-text confirmations from WordPress tooling, e.g. "Term 290 created"
# or "Post created ID 8031".
_TERM_ID_RE = re.compile(r"Term\s+(\d+)", re.IGNORECASE)
_POST_ID_RE = re.compile(r"ID\s+(\d+)", re.IGNORECASE)

# Error statuses are parsed into ErrorResult instead of rotating the
# (single) API key; 429 stays with the rate limiter.
_PASSTHROUGH_STATUSES = frozenset(range(400, 600)) - {429}


def parse_tool_text(text: str) -> ToolResult:
    """Parse a plain-text WordPress answer into a :data:`ToolResult`."""
    for pattern in (_TERM_ID_RE, _POST_ID_RE):
        match = pattern.search(text)
        if match:
            return IdResult(id=int(match.group(1)))
    return TextResult(text=text)


def parse_tool_result(response: httpx.Response) -> ToolResult:
    """Convert any WordPress response into exactly one ToolResult variant.

    - HTTP errors and ``{"success": false}`` envelopes become
      :class:`ErrorResult`.
    - JSON objects with ``id`` / ``ID`` / ``term_id`` become
      :class:`IdResult` carrying the full object as ``data``.
    - A bare JSON integer is an id.
    - Anything else is parsed as text (``"Post created ID 8031"`` still
      yields an id).
    """
    status = response.status_code
    try:
        payload: Any = response.json()
    except ValueError:
        payload = None

    if status >= 400:
        message = response.text or f"HTTP {status}"
        if isinstance(payload, dict):
            message = str(payload.get("message") or payload.get("error") or message)
        return ErrorResult(message=message, status_code=status)

    if isinstance(payload, dict):
        if payload.get("success") is False:
            return ErrorResult(
                message=str(payload.get("message") or payload.get("error") or "Request failed"),
                status_code=status,
            )
        for key in ("id", "ID", "term_id"):
            value = payload.get(key)
            if isinstance(value, int) or (isinstance(value, str) and value.isdigit()):
                return IdResult(id=int(value), data=payload)
        return TextResult(text=json.dumps(payload))

    if isinstance(payload, bool):
        return TextResult(text=str(payload).lower())
    if isinstance(payload, int):
        return IdResult(id=payload)
    if isinstance(payload, str):
        return parse_tool_text(payload)
    if payload is not None:
        return TextResult(text=json.dumps(payload))
    return parse_tool_text(response.text)


class WordPressClient:
    """Low-level WordPress REST client.

    Parameters
    ----------
    http_client:
        Shared ``httpx.AsyncClient``.
    base_url:
        Site root, e.g. ``https://example.com`` (no trailing slash needed).
    api_key:
        Key for the custom ``dd-api`` routes and authenticated writes.
    post_type:
        REST base of the artist custom post type.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        api_key: str,
        post_type: str = "artist",
        retry_policy: RetryPolicy | None = None,
        limiter: RateLimiter[str] | None = None,
    ) -> None:
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._post_type = post_type
        self._limiter: RateLimiter[str] = limiter or RateLimiter(
            retry_policy or RetryPolicy(),
            [api_key or "anonymous"],
            provider_name="wordpress",
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def is_configured(self) -> bool:
        return bool(self._base_url and self._api_key)

    # ------------------------------------------------------------------
    # Request plumbing
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        url = f"{self._base_url}{path}"

        async def _send(api_key: str) -> httpx.Response:
            return await self._http.request(
                method,
                url,
                params=params,
                json=json_body,
                headers={"X-API-Key": api_key, "Accept": "application/json"},
            )

        return await self._limiter.call(_send, accept_statuses=_PASSTHROUGH_STATUSES)

    async def _call(self, method: str, path: str, **kwargs: Any) -> ToolResult:
        response = await self._request(method, path, **kwargs)
        result = parse_tool_result(response)
        if isinstance(result, ErrorResult):
            logger.warning(
                "wordpress_call_failed",
                method=method,
                path=path,
                status=result.status_code,
                error=result.message,
            )
        return result

    # ------------------------------------------------------------------
    # Artist posts
    # ------------------------------------------------------------------

    async def list_posts(self, page: int = 1, per_page: int = 100) -> list[dict[str, Any]]:
        """Return one page of published artist posts (empty past the last page).

        Raises
        ------
        ParseError
            If the listing is not a JSON array.
        ProviderUnavailableError
            If the site answers with a server or auth error.
        """
        response = await self._request(
            "GET",
            f"{_REST_PREFIX}/{self._post_type}",
            params={"per_page": per_page, "page": page, "status": "publish"},
        )
        # WordPress answers 400 rest_post_invalid_page_number past the end.
        if response.status_code == 400:
            return []
        if response.status_code >= 400:
            raise ProviderUnavailableError(
                message=f"Artist listing failed with HTTP {response.status_code}",
                provider_name="wordpress",
                status_code=response.status_code,
            )
        try:
            posts = response.json()
        except ValueError as exc:
            raise ParseError(message="Artist listing is not JSON", provider_name="wordpress") from exc
        if not isinstance(posts, list):
            raise ParseError(message="Artist listing is not a JSON array", provider_name="wordpress")
        return posts

    async def find_posts_by_slug(self, slug: str) -> list[dict[str, Any]]:
        """Return published artist posts whose slug is exactly *slug*."""
        response = await self._request(
            "GET",
            f"{_REST_PREFIX}/{self._post_type}",
            params={"slug": slug, "status": "publish", "per_page": 100},
        )
        if response.status_code >= 400:
            raise ProviderUnavailableError(
                message=f"Slug lookup failed with HTTP {response.status_code}",
                provider_name="wordpress",
                status_code=response.status_code,
            )
        posts = response.json()
        return posts if isinstance(posts, list) else []

    async def create_post(self, payload: dict[str, Any]) -> ToolResult:
        return await self._call("POST", f"{_REST_PREFIX}/{self._post_type}", json_body=payload)

    async def update_post(self, post_id: int, payload: dict[str, Any]) -> ToolResult:
        return await self._call(
            "POST", f"{_REST_PREFIX}/{self._post_type}/{post_id}", json_body=payload
        )

    # ------------------------------------------------------------------
    # Custom dd-api routes
    # ------------------------------------------------------------------

    async def set_featured_image(self, post_id: int, media_id: int) -> ToolResult:
        return await self._call(
            "POST",
            f"{_CUSTOM_PREFIX}/set-featured-image",
            json_body={"post_id": post_id, "media_id": media_id},
        )

    async def update_acf(self, post_id: int, fields: dict[str, Any]) -> ToolResult:
        return await self._call(
            "POST",
            f"{_CUSTOM_PREFIX}/update-acf",
            json_body={"post_id": post_id, "fields": fields},
        )

    async def upload_image(self, url: str, title: str, alt_text: str) -> ToolResult:
        """Have the site download *url* into its media library."""
        return await self._call(
            "POST",
            f"{_CUSTOM_PREFIX}/upload-image",
            json_body={"url": url, "title": title, "alt_text": alt_text},
        )

    # ------------------------------------------------------------------
    # Media library
    # ------------------------------------------------------------------

    async def search_media(self, search: str, per_page: int = 10) -> list[dict[str, Any]]:
        """Search the media library; an error answer counts as no match."""
        response = await self._request(
            "GET",
            f"{_REST_PREFIX}/media",
            params={"search": search, "per_page": per_page},
        )
        if response.status_code >= 400:
            logger.warning("wordpress_media_search_failed", status=response.status_code)
            return []
        try:
            items = response.json()
        except ValueError:
            return []
        return items if isinstance(items, list) else []
