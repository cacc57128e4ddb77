"""Published-catalog provider reading artist posts from the WordPress REST API.

Each artist exists once per locale (Polylang), so the listing returns two
posts per artist; the ``lang`` field tells them apart.  Titles come back
HTML-escaped (``&amp;``, ``&#8217;``) and are unescaped before any
identity comparison.
"""

from __future__ import annotations

import html
from typing import Any

import structlog

from rostersync.interfaces.catalog_provider import IPublishedCatalogProvider
from rostersync.models.artist import PublishedArtist
from rostersync.providers.wordpress.client import WordPressClient
from rostersync.utils.identity import IdentityResolver
from rostersync.utils.rate_limiter import Throttle

logger = structlog.get_logger(logger_name=__name__)


class WordPressCatalogProvider(IPublishedCatalogProvider):
    """Paginates ``/wp-json/wp/v2/artist`` into :class:`PublishedArtist` entries.

    Parameters
    ----------
    client:
        Configured WordPress client.
    page_throttle:
        Pause between listing pages.  The host is small; large pages are
        heavy on it.
    per_page:
        Page size (WordPress caps it at 100).
    """

    def __init__(
        self,
        client: WordPressClient,
        page_throttle: Throttle | None = None,
        per_page: int = 100,
    ) -> None:
        self._client = client
        self._throttle = page_throttle or Throttle(0)
        self._per_page = per_page

    async def fetch_published(self) -> list[PublishedArtist]:
        entries: list[PublishedArtist] = []
        page = 1
        while True:
            await self._throttle.wait()
            posts = await self._client.list_posts(page=page, per_page=self._per_page)
            entries.extend(_post_to_published(post) for post in posts)
            logger.debug("wordpress_catalog_page", page=page, posts=len(posts))
            if len(posts) < self._per_page:
                break
            page += 1

        logger.info("wordpress_catalog_fetched", pages=page, entries=len(entries))
        return entries

    async def find_by_identity(
        self, identity: str, resolver: IdentityResolver | None = None  # noqa: ARG002
    ) -> list[PublishedArtist]:
        """Look the artist up by slug instead of listing the whole catalog.

        Page slugs are the canonical identity the page was published under,
        so *resolver* is not needed here.
        """
        if not identity:
            return []
        posts = await self._client.find_posts_by_slug(identity)
        return [_post_to_published(post) for post in posts]

    def get_provider_name(self) -> str:
        return "wordpress"

    def is_available(self) -> bool:
        return self._client.is_configured()


def _post_to_published(post: dict[str, Any]) -> PublishedArtist:
    title = post.get("title")
    if isinstance(title, dict):
        title = title.get("rendered", "")
    return PublishedArtist(
        name=html.unescape(title or ""),
        locale=post.get("lang") or "en",
        page_id=post.get("id"),
        slug=post.get("slug", ""),
    )
