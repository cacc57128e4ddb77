"""WordPress media-library adapter implementing IImageProvider.

The site's ``dd-api/v1/upload-image`` route downloads the Spotify image
server-side, so no image bytes pass through this process.
"""

from __future__ import annotations

import structlog

from rostersync.interfaces.image_provider import IImageProvider
from rostersync.models.tool_result import IdResult
from rostersync.providers.wordpress.client import WordPressClient
from rostersync.utils.identity import same_identity

logger = structlog.get_logger(logger_name=__name__)


class WordPressImageProvider(IImageProvider):
    """Uploads artist photos to, and finds them in, the WordPress media library."""

    def __init__(self, client: WordPressClient) -> None:
        self._client = client

    async def transfer(self, image_ref: str, artist_name: str) -> int | None:
        if not image_ref:
            return None
        result = await self._client.upload_image(image_ref, title=artist_name, alt_text=artist_name)
        if isinstance(result, IdResult):
            logger.info("image_uploaded", artist=artist_name, media_id=result.id)
            return result.id
        logger.warning("image_upload_no_id", artist=artist_name, result=result.kind)
        return None

    async def find_existing(self, artist_name: str) -> int | None:
        """Return the first media item titled after the artist.

        Search hits whose title or alt text is not the same identity as
        *artist_name* are ignored; the library search is a loose full-text
        match.
        """
        for item in await self._client.search_media(artist_name):
            title = item.get("title")
            if isinstance(title, dict):
                title = title.get("rendered", "")
            candidates = (title or "", item.get("alt_text") or "")
            if any(same_identity(artist_name, text) for text in candidates):
                media_id = item.get("id")
                if isinstance(media_id, int):
                    logger.info("image_found_existing", artist=artist_name, media_id=media_id)
                    return media_id
        return None

    def get_provider_name(self) -> str:
        return "wordpress_media"

    def is_available(self) -> bool:
        return self._client.is_configured()
