"""Generated page content and publish results."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class LocaleContent(BaseModel):
    """Description payload for one locale of an artist page."""

    model_config = ConfigDict(frozen=True)

    body: str
    # Short meta description (SEO excerpt).
    summary: str = ""
    role_label: str = ""


class GeneratedContent(BaseModel):
    """Bilingual description payloads keyed by locale code."""

    model_config = ConfigDict(frozen=True)

    locales: dict[str, LocaleContent] = Field(default_factory=dict)

    def for_locale(self, locale: str) -> LocaleContent | None:
        return self.locales.get(locale)


class PageRef(BaseModel):
    """A page created in the published catalog."""

    model_config = ConfigDict(frozen=True)

    locale: str
    page_id: int
    url: str
