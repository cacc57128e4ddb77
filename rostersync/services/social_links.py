"""Social profile discovery for artist pages.

One targeted web search per platform (``"<artist> DJ producer
soundcloud"``), run sequentially with a configurable pause.  A result URL
only counts when the platform's validator accepts it as a *profile* page
(not a track, post, reel, share dialog ...); the validator also returns
the canonical profile URL.  Platforms without a match map to ``""``.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from urllib.parse import urlparse

import structlog

from rostersync.services.web_search_service import WebSearchService
from rostersync.utils.errors import RosterSyncError
from rostersync.utils.rate_limiter import Throttle

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_PLATFORMS = ["soundcloud", "instagram", "facebook", "twitter"]

_SOUNDCLOUD_RESERVED = frozenset({"discover", "search", "stream", "you", "pages", "tags", "charts", "upload"})
_INSTAGRAM_RESERVED = frozenset({"p", "reel", "reels", "explore", "stories", "tv", "accounts"})
_FACEBOOK_RESERVED = frozenset(
    {"sharer", "sharer.php", "share", "events", "groups", "watch", "photo.php", "story.php", "pages", "hashtag"}
)
_TWITTER_RESERVED = frozenset({"i", "intent", "search", "hashtag", "home", "share", "explore"})

_HANDLE_RE = re.compile(r"^[A-Za-z0-9._-]+$")


def _path_segments(url: str, hosts: tuple[str, ...]) -> list[str] | None:
    """Return the URL's path segments when its host is one of *hosts*."""
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return None
    host = (parsed.hostname or "").lower()
    if not any(host == h or host.endswith("." + h) for h in hosts):
        return None
    return [segment for segment in parsed.path.split("/") if segment]


def soundcloud_profile(url: str) -> str | None:
    """``https://soundcloud.com/<user>`` for a SoundCloud profile URL."""
    segments = _path_segments(url, ("soundcloud.com",))
    if not segments or len(segments) > 1:
        # /<user>/tracks, /<user>/sets/<set>, /<user>/<track> are not profiles.
        return None
    user = segments[0]
    if user.lower() in _SOUNDCLOUD_RESERVED or not _HANDLE_RE.match(user):
        return None
    return f"https://soundcloud.com/{user}"


def instagram_profile(url: str) -> str | None:
    """``https://www.instagram.com/<user>/`` for an Instagram profile URL."""
    segments = _path_segments(url, ("instagram.com",))
    if not segments:
        return None
    user = segments[0]
    if user.lower() in _INSTAGRAM_RESERVED or not _HANDLE_RE.match(user):
        return None
    return f"https://www.instagram.com/{user}/"


def facebook_profile(url: str) -> str | None:
    segments = _path_segments(url, ("facebook.com", "fb.com"))
    if not segments:
        return None
    page = segments[0]
    if page.lower() in _FACEBOOK_RESERVED or not _HANDLE_RE.match(page):
        return None
    return f"https://www.facebook.com/{page}"


def twitter_profile(url: str) -> str | None:
    segments = _path_segments(url, ("twitter.com", "x.com"))
    if not segments:
        return None
    if len(segments) > 1 and segments[1].lower() == "status":
        return None
    handle = segments[0]
    if handle.lower() in _TWITTER_RESERVED or not _HANDLE_RE.match(handle):
        return None
    return f"https://x.com/{handle}"


PROFILE_VALIDATORS: dict[str, Callable[[str], str | None]] = {
    "soundcloud": soundcloud_profile,
    "instagram": instagram_profile,
    "facebook": facebook_profile,
    "twitter": twitter_profile,
}

# Search keyword per platform.
_QUERY_KEYWORDS = {"twitter": "twitter x"}


class SocialLinksService:
    """Finds profile URLs for an artist on each configured platform.

    Parameters
    ----------
    web_search:
        Search service used for the per-platform queries.
    platforms:
        Platforms to look up, in order.  Unknown names are ignored.
    throttle:
        Pause between consecutive platform lookups.
    """

    def __init__(
        self,
        web_search: WebSearchService,
        platforms: list[str] | None = None,
        throttle: Throttle | None = None,
        results_per_query: int = 5,
    ) -> None:
        self._web_search = web_search
        self._platforms = [p for p in (platforms or DEFAULT_PLATFORMS) if p in PROFILE_VALIDATORS]
        self._throttle = throttle or Throttle(0)
        self._results_per_query = results_per_query

    @property
    def platforms(self) -> list[str]:
        return list(self._platforms)

    async def find_links(self, artist_name: str, known: dict[str, str] | None = None) -> dict[str, str]:
        """Return ``{platform: profile_url or ""}`` for every platform.

        Parameters
        ----------
        artist_name:
            Display name used in the search queries.
        known:
            Links already found during research; a valid known link skips
            that platform's search.
        """
        known = known or {}
        links: dict[str, str] = {}

        for platform in self._platforms:
            validate = PROFILE_VALIDATORS[platform]
            known_url = validate(known.get(platform) or "") if known.get(platform) else None
            if known_url:
                links[platform] = known_url
                continue

            await self._throttle.wait()
            keyword = _QUERY_KEYWORDS.get(platform, platform)
            query = f"{artist_name} DJ producer {keyword}"
            try:
                results = await self._web_search.search(query, self._results_per_query)
            except RosterSyncError as exc:
                logger.warning("social_lookup_failed", artist=artist_name, platform=platform, error=str(exc))
                links[platform] = ""
                continue

            links[platform] = next(
                (profile for profile in (validate(r.url) for r in results) if profile),
                "",
            )

        logger.info(
            "social_links_found",
            artist=artist_name,
            found=sorted(p for p, url in links.items() if url),
        )
        return links
