"""Creates the bilingual artist page pair in WordPress.

For each configured locale, in order:

1. create the ``artist`` post with its Polylang ``lang``, meta fields and
   Yoast SEO fields;
2. force the slug to the canonical identity when WordPress de-duplicated
   it (``-2`` suffix);

then, once every locale exists:

3. link the pages as translations of each other (Polylang ``translations``
   field);
4. set the featured image and write the ACF fields (photo, social links).

Steps 3 and 4 are cosmetic: a failure is logged and the pages stay.  A
locale that could not be created stops the sequence and raises
:class:`PartialPublishError` naming what exists and what is missing;
created pages are never deleted.  WordPress is called with a configurable
pause between steps.
"""

from __future__ import annotations

from typing import Any

import structlog

from rostersync.interfaces.publisher import IPublisher
from rostersync.models.artist import ArtistCandidate
from rostersync.models.content import GeneratedContent, LocaleContent, PageRef
from rostersync.models.tool_result import ErrorResult, IdResult, ToolResult
from rostersync.providers.wordpress.client import WordPressClient
from rostersync.utils.errors import PartialPublishError, PublishError, RosterSyncError
from rostersync.utils.rate_limiter import Throttle

logger = structlog.get_logger(logger_name=__name__)

# Genre tags shown on the artist card.
_MAX_TAGS = 3


class WordPressPublisher(IPublisher):
    """IPublisher backed by :class:`WordPressClient`.

    Parameters
    ----------
    client:
        Configured WordPress client.
    locales:
        ``{locale: {"url_prefix": ..., "role_label": ...}}`` from
        ``publishing.locales`` in the YAML config.  Insertion order is the
        creation order.
    throttle:
        Pause between consecutive WordPress writes.
    """

    def __init__(
        self,
        client: WordPressClient,
        locales: dict[str, dict[str, str]],
        throttle: Throttle | None = None,
    ) -> None:
        self._client = client
        self._locales = dict(locales)
        self._throttle = throttle or Throttle(0)

    @property
    def locales(self) -> list[str]:
        return list(self._locales)

    async def publish(
        self,
        candidate: ArtistCandidate,
        content: GeneratedContent,
        media_id: int | None,
        social_links: dict[str, str],
        locales: list[str] | None = None,
    ) -> dict[str, PageRef]:
        targets = list(locales) if locales else self.locales
        unknown = [loc for loc in targets if loc not in self._locales]
        if unknown:
            raise PublishError(
                message=f"Unknown locale(s): {', '.join(unknown)}",
                provider_name=self.get_provider_name(),
            )

        slug = candidate.canonical_identity
        created: dict[str, PageRef] = {}
        failure: str | None = None

        for locale in targets:
            locale_content = content.for_locale(locale)
            if locale_content is None:
                failure = f"No generated content for locale '{locale}'"
                break
            try:
                page_id = await self._create_page(candidate, locale, locale_content, social_links)
            except RosterSyncError as exc:
                failure = f"{locale}: {exc}"
                break
            created[locale] = PageRef(locale=locale, page_id=page_id, url=self._page_url(locale, slug))
            logger.info("artist_page_created", artist=candidate.display_name, locale=locale, page_id=page_id)

        missing = [loc for loc in targets if loc not in created]
        if missing:
            logger.error(
                "artist_publish_incomplete",
                artist=candidate.display_name,
                created=sorted(created),
                missing=missing,
                error=failure,
            )
            if not created:
                raise PublishError(
                    message=failure or "Nothing was published",
                    provider_name=self.get_provider_name(),
                )
            raise PartialPublishError(
                message=f"Created {', '.join(created)} but not {', '.join(missing)}: {failure}",
                provider_name=self.get_provider_name(),
                created={loc: ref.page_id for loc, ref in created.items()},
                missing=missing,
            )

        if len(created) > 1:
            await self._link_translations(candidate, created)
        await self._attach_media_and_fields(candidate, created, media_id, social_links)
        return created

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _create_page(
        self,
        candidate: ArtistCandidate,
        locale: str,
        locale_content: LocaleContent,
        social_links: dict[str, str],
    ) -> int:
        await self._throttle.wait()
        slug = candidate.canonical_identity
        result = await self._client.create_post(
            {
                "title": candidate.display_name,
                "slug": slug,
                "status": "publish",
                "lang": locale,
                "meta": self._build_meta(candidate, locale, locale_content, social_links),
            }
        )
        page_id = self._require_id(result, f"create {locale} page")

        if isinstance(result, IdResult) and result.data.get("slug", slug) != slug:
            await self._throttle.wait()
            forced = await self._client.update_post(page_id, {"slug": slug})
            if isinstance(forced, ErrorResult):
                logger.warning("slug_force_failed", page_id=page_id, slug=slug, error=forced.message)
        return page_id

    async def _link_translations(self, candidate: ArtistCandidate, created: dict[str, PageRef]) -> None:
        translations = {loc: ref.page_id for loc, ref in created.items()}
        for ref in created.values():
            await self._throttle.wait()
            result = await self._client.update_post(ref.page_id, {"translations": translations})
            if isinstance(result, ErrorResult):
                logger.warning(
                    "translation_link_failed",
                    artist=candidate.display_name,
                    page_id=ref.page_id,
                    error=result.message,
                )

    async def _attach_media_and_fields(
        self,
        candidate: ArtistCandidate,
        created: dict[str, PageRef],
        media_id: int | None,
        social_links: dict[str, str],
    ) -> None:
        acf_fields = _acf_fields(media_id, social_links)
        for ref in created.values():
            if media_id is not None:
                await self._throttle.wait()
                result = await self._client.set_featured_image(ref.page_id, media_id)
                if isinstance(result, ErrorResult):
                    logger.warning(
                        "featured_image_failed",
                        artist=candidate.display_name,
                        page_id=ref.page_id,
                        error=result.message,
                    )
            if acf_fields:
                await self._throttle.wait()
                result = await self._client.update_acf(ref.page_id, acf_fields)
                if isinstance(result, ErrorResult):
                    logger.warning(
                        "acf_update_failed",
                        artist=candidate.display_name,
                        page_id=ref.page_id,
                        error=result.message,
                    )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _build_meta(
        self,
        candidate: ArtistCandidate,
        locale: str,
        locale_content: LocaleContent,
        social_links: dict[str, str],
    ) -> dict[str, Any]:
        role = locale_content.role_label or self._locales[locale].get("role_label", "")
        instagram = social_links.get("instagram", "")
        meta: dict[str, Any] = {
            "title": candidate.display_name,
            "role": role,
            "description": locale_content.body,
            "spotify_link": candidate.external_url,
            "soundcloud_link": social_links.get("soundcloud", ""),
            "instagram_link": instagram,
            "instagram": instagram,
            "facebook_link": social_links.get("facebook", ""),
            "twitter_link": social_links.get("twitter", ""),
            "_yoast_wpseo_title": "%%title%%",
            "_yoast_wpseo_focuskw": candidate.display_name,
            "_yoast_wpseo_metadesc": locale_content.summary,
        }
        for index, genre in enumerate(candidate.genres[:_MAX_TAGS], start=1):
            meta[f"tag{index}"] = genre
        return meta

    def _page_url(self, locale: str, slug: str) -> str:
        prefix = self._locales[locale].get("url_prefix", "").strip("/")
        path = f"{prefix}/{slug}" if prefix else slug
        return f"{self._client.base_url}/{path}/"

    def _require_id(self, result: ToolResult, action: str) -> int:
        if isinstance(result, IdResult):
            return result.id
        detail = result.message if isinstance(result, ErrorResult) else result.text
        raise PublishError(
            message=f"Could not {action}: {detail}",
            provider_name=self.get_provider_name(),
        )

    def get_provider_name(self) -> str:
        return "wordpress"

    def is_available(self) -> bool:
        return self._client.is_configured()


def _acf_fields(media_id: int | None, social_links: dict[str, str]) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    if media_id is not None:
        fields["photo"] = media_id
    if social_links.get("soundcloud"):
        fields["soundcloud_link"] = social_links["soundcloud"]
    if social_links.get("instagram"):
        fields["instagram_link"] = social_links["instagram"]
        fields["instagram"] = social_links["instagram"]
    return fields
