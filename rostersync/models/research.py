"""Research result model.

A :class:`ResearchResult` is the structured biography synthesized from web
search results for one artist, cached in the research queue store by
canonical identity and reused by every later run.  It never expires; stale
data is dropped with ``ResearchQueue.invalidate_result``.

``labels`` and ``collaborations`` are sets in meaning: they are stored as
de-duplicated lists that keep first-seen order so the generated text is
stable between runs.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rostersync.utils.text_quality import dedupe


class ResearchResult(BaseModel):
    """Structured research data for one artist."""

    model_config = ConfigDict(frozen=True)

    canonical_identity: str
    nationality: str | None = None
    origin: str | None = None
    labels: list[str] = Field(default_factory=list)
    style: str | None = None
    collaborations: list[str] = Field(default_factory=list)
    achievements: list[str] = Field(default_factory=list)
    festivals: list[str] = Field(default_factory=list)
    bio: str | None = None
    # platform -> profile URL; only URLs actually seen in search results.
    social_links: dict[str, str] = Field(default_factory=dict)
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )

    @field_validator("labels", "collaborations")
    @classmethod
    def _as_ordered_set(cls, value: list[str]) -> list[str]:
        return dedupe(value)

    @field_validator("achievements", "festivals")
    @classmethod
    def _drop_blank(cls, value: list[str]) -> list[str]:
        return [item.strip() for item in value if isinstance(item, str) and item.strip()]

    @field_validator("social_links")
    @classmethod
    def _drop_empty_links(cls, value: dict[str, str]) -> dict[str, str]:
        return {platform: url for platform, url in value.items() if url}

    def is_empty(self) -> bool:
        """Return ``True`` when no field carries any researched information."""
        return not any(
            (
                self.nationality,
                self.origin,
                self.labels,
                self.style,
                self.collaborations,
                self.achievements,
                self.festivals,
                self.bio,
            )
        )
