"""Research queue models.

A :class:`QueueEntry` tracks one artist that needs (or had) web research,
keyed by canonical identity.  Its ``status`` follows a one-way state
machine::

    pending ──mark_processing──> processing ──mark_completed──> completed
                                           └──mark_failed─────> failed

Nothing leaves ``completed`` or ``failed`` automatically; resetting a
failed entry to ``pending`` is an explicit operator action.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class QueueStatus(str, Enum):  # noqa: UP042
    """Lifecycle states of a research queue entry."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# Legal edges of the state machine, source -> allowed targets.
QUEUE_TRANSITIONS: dict[QueueStatus, frozenset[QueueStatus]] = {
    QueueStatus.PENDING: frozenset({QueueStatus.PROCESSING}),
    QueueStatus.PROCESSING: frozenset({QueueStatus.COMPLETED, QueueStatus.FAILED}),
    QueueStatus.COMPLETED: frozenset(),
    QueueStatus.FAILED: frozenset(),
}


class QueueEntry(BaseModel):
    """One artist awaiting or having completed web research."""

    model_config = ConfigDict(frozen=True)

    canonical_identity: str
    display_name: str
    genres: list[str] = Field(default_factory=list)
    popularity: int = 0
    added_at: datetime
    status: QueueStatus = QueueStatus.PENDING
    processing_at: datetime | None = None
    completed_at: datetime | None = None
    failed_at: datetime | None = None
    error: str | None = None


class QueueStats(BaseModel):
    """Counts per queue status plus the number of cached research results."""

    model_config = ConfigDict(frozen=True)

    total: int = 0
    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    total_researched: int = 0
