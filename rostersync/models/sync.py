"""Sync run models: lock record, run report, status snapshot.

All models are frozen.  The orchestrator builds a fresh
:class:`SyncRunReport` per run and publishes a new :class:`SyncStatus`
snapshot to the status store; nothing downstream mutates either.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from rostersync.models.artist import ArtistCandidate
from rostersync.models.queue import QueueStats


class RunPhase(str, Enum):  # noqa: UP042
    """Phases of one sync run.

    IDLE → LOCKED → DIFFING → PROCESSING_ARTISTS → REPORTING → IDLE
    """

    IDLE = "IDLE"
    LOCKED = "LOCKED"
    DIFFING = "DIFFING"
    PROCESSING_ARTISTS = "PROCESSING_ARTISTS"
    REPORTING = "REPORTING"


class ArtistStage(str, Enum):  # noqa: UP042
    """Per-artist pipeline stages, in execution order."""

    RECHECK = "recheck"
    RESEARCH = "research"
    SOCIAL = "social"
    CONTENT = "content"
    IMAGE = "image"
    PUBLISH = "publish"


class SyncState(str, Enum):  # noqa: UP042
    """Externally visible status of the last run."""

    NEVER_RUN = "never_run"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


class SyncLockInfo(BaseModel):
    """The single run-guard record."""

    model_config = ConfigDict(frozen=True)

    acquired_at: datetime
    owner_pid: int
    owner_id: str
    request_id: str
    max_age_seconds: float
    metadata: dict[str, Any] = Field(default_factory=dict)

    def age_seconds(self, now: datetime) -> float:
        return (now - self.acquired_at).total_seconds()


class FailedArtist(BaseModel):
    """An artist whose pipeline failed, with the failing stage and reason."""

    model_config = ConfigDict(frozen=True)

    name: str
    error: str
    stage: ArtistStage


class SyncRunReport(BaseModel):
    """Outcome of one run.  ``success + failed + skipped`` covers every candidate."""

    model_config = ConfigDict(frozen=True)

    request_id: str = ""
    success: list[str] = Field(default_factory=list)
    failed: list[FailedArtist] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    duration_seconds: float = 0.0
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )
    finished_at: datetime | None = None

    @property
    def attempted(self) -> int:
        """Artists that entered the per-artist pipeline."""
        return len(self.success) + len(self.failed)


class SyncStatus(BaseModel):
    """Status snapshot ``{last_run, status, report}`` served to operators."""

    model_config = ConfigDict(frozen=True)

    last_run: datetime | None = None
    status: SyncState = SyncState.NEVER_RUN
    report: SyncRunReport | None = None
    error: str | None = None


class DiffResult(BaseModel):
    """Upstream candidates split against the published catalog."""

    model_config = ConfigDict(frozen=True)

    missing: list[ArtistCandidate] = Field(default_factory=list)
    already_published: list[ArtistCandidate] = Field(default_factory=list)
    unresolvable: list[str] = Field(default_factory=list)
    upstream_total: int = 0
    published_total: int = 0


class PopulateResult(BaseModel):
    """Result of seeding the research queue without running the pipeline."""

    model_config = ConfigDict(frozen=True)

    added: int
    missing: int
    stats: QueueStats
