"""Domain models for rostersync.

All models are frozen Pydantic v2 models; updates go through
``model_copy(update={...})``.

- **artist** -- ArtistCandidate (upstream) and PublishedArtist (catalog).
- **audit** -- duplicate audit findings over the published catalog.
- **queue** -- QueueEntry / QueueStatus state machine and QueueStats.
- **research** -- ResearchResult, the cached structured biography.
- **content** -- GeneratedContent per locale and PageRef publish results.
- **sync** -- lock record, run report, status snapshot, diff result.
- **tool_result** -- tagged IdResult / TextResult / ErrorResult variants
  for publishing-system responses.
"""

from rostersync.models.artist import ArtistCandidate, PublishedArtist
from rostersync.models.audit import DuplicateAuditReport, DuplicateGroup, NearDuplicate
from rostersync.models.content import GeneratedContent, LocaleContent, PageRef
from rostersync.models.queue import QUEUE_TRANSITIONS, QueueEntry, QueueStats, QueueStatus
from rostersync.models.research import ResearchResult
from rostersync.models.sync import (
    ArtistStage,
    DiffResult,
    FailedArtist,
    PopulateResult,
    RunPhase,
    SyncLockInfo,
    SyncRunReport,
    SyncState,
    SyncStatus,
)
from rostersync.models.tool_result import ErrorResult, IdResult, TextResult, ToolResult

__all__ = [
    "QUEUE_TRANSITIONS",
    "ArtistCandidate",
    "ArtistStage",
    "DiffResult",
    "DuplicateAuditReport",
    "DuplicateGroup",
    "ErrorResult",
    "FailedArtist",
    "GeneratedContent",
    "IdResult",
    "LocaleContent",
    "NearDuplicate",
    "PageRef",
    "PopulateResult",
    "PublishedArtist",
    "QueueEntry",
    "QueueStats",
    "QueueStatus",
    "ResearchResult",
    "RunPhase",
    "SyncLockInfo",
    "SyncRunReport",
    "SyncState",
    "SyncStatus",
    "TextResult",
    "ToolResult",
]
