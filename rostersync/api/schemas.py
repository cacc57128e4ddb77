"""Pydantic request/response schemas for the rostersync API.

Request schemas end with "Request", response schemas with "Response".
Domain models (``SyncStatus``, ``SyncLockInfo``, ``QueueStats``) are
embedded as-is rather than copied field by field.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from rostersync.models.queue import QueueStats
from rostersync.models.sync import SyncLockInfo, SyncStatus


class SyncRequest(BaseModel):
    """Options for a sync run."""

    max_artists: int | None = Field(default=None, ge=1, description="Process at most N missing artists")
    use_cached_upstream_snapshot: bool = Field(
        default=False, description="Read the roster from the last Spotify snapshot"
    )


class SyncStartedResponse(BaseModel):
    """Returned when a sync run has been accepted."""

    request_id: str
    status: str = "started"
    message: str


class SyncStatusResponse(BaseModel):
    """Last run snapshot plus the live lock and progress state."""

    is_running: bool
    status: SyncStatus
    lock: SyncLockInfo | None = None
    progress: dict[str, Any] | None = None


class MissingArtist(BaseModel):
    """An upstream artist with no published page."""

    name: str
    canonical_identity: str
    genres: list[str] = Field(default_factory=list)
    popularity: int = 0


class MissingArtistsResponse(BaseModel):
    """Result of the roster diff."""

    count: int
    missing: list[MissingArtist] = Field(default_factory=list)
    already_published: int = 0
    unresolvable: list[str] = Field(default_factory=list)
    upstream_total: int = 0
    published_total: int = 0


class PrepareResearchResponse(BaseModel):
    """Result of seeding the research queue."""

    added: int
    missing: int
    stats: QueueStats


class ResearchStatusResponse(BaseModel):
    """Research queue counters and the names still pending."""

    stats: QueueStats
    pending: list[str] = Field(default_factory=list)


class LockStatusResponse(BaseModel):
    """Current sync lock record."""

    locked: bool
    lock: SyncLockInfo | None = None


class ForceReleaseResponse(BaseModel):
    """Result of an operator force-release."""

    released: bool
    previous: SyncLockInfo | None = None


class HealthResponse(BaseModel):
    """Health check response with provider availability."""

    status: str
    version: str
    providers: dict[str, bool]
    missing_config: list[str] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
