"""Artist models for both sides of the sync diff.

``ArtistCandidate`` is what the upstream roster (Spotify playlist) says
should exist; ``PublishedArtist`` is one locale page that already exists in
the WordPress catalog.  Both carry a ``canonical_identity`` so the diff is a
set comparison on slugs.  When a provider leaves it blank the model fills
it from the display name with the default slug rule; the orchestrator
re-derives it with the configured :class:`IdentityResolver`.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

from rostersync.utils.identity import normalize


class ArtistCandidate(BaseModel):
    """An artist present upstream, not yet confirmed in the published catalog.

    Immutable once fetched within a run.
    """

    model_config = ConfigDict(frozen=True)

    source_id: str
    display_name: str
    genres: list[str] = Field(default_factory=list)
    popularity: int = Field(default=0, ge=0, le=100)
    image_ref: str | None = None
    # Public profile URL on the source platform, published on the page.
    external_url: str = ""
    canonical_identity: str = ""

    @model_validator(mode="after")
    def _fill_identity(self) -> ArtistCandidate:
        if not self.canonical_identity:
            # Frozen model: bypass __setattr__ during validation only.
            object.__setattr__(self, "canonical_identity", normalize(self.display_name))
        return self

    @property
    def is_resolvable(self) -> bool:
        return bool(self.canonical_identity)


class PublishedArtist(BaseModel):
    """One locale page of an artist already in the published catalog."""

    model_config = ConfigDict(frozen=True)

    name: str
    locale: str = "en"
    canonical_identity: str = ""
    page_id: int | None = None
    slug: str = ""

    @model_validator(mode="after")
    def _fill_identity(self) -> PublishedArtist:
        if not self.canonical_identity:
            object.__setattr__(self, "canonical_identity", normalize(self.name))
        return self
