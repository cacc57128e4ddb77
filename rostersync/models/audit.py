"""Duplicate audit report models (read-only findings, nothing is deleted)."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from rostersync.models.artist import PublishedArtist


class DuplicateGroup(BaseModel):
    """More than one published page for the same identity and locale."""

    model_config = ConfigDict(frozen=True)

    canonical_identity: str
    locale: str
    pages: list[PublishedArtist]

    @property
    def keep_page_id(self) -> int | None:
        """The oldest page (lowest id), the one a cleanup would keep."""
        ids = [page.page_id for page in self.pages if page.page_id is not None]
        return min(ids) if ids else None

    @property
    def extra_page_ids(self) -> list[int]:
        keep = self.keep_page_id
        return sorted(page.page_id for page in self.pages if page.page_id is not None and page.page_id != keep)


class NearDuplicate(BaseModel):
    """Two distinct identities similar enough to be the same artist."""

    model_config = ConfigDict(frozen=True)

    identity: str
    other: str
    score: float


class DuplicateAuditReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_pages: int = 0
    total_identities: int = 0
    duplicates: list[DuplicateGroup] = Field(default_factory=list)
    near_duplicates: list[NearDuplicate] = Field(default_factory=list)
    unresolvable: list[str] = Field(default_factory=list)
