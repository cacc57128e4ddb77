"""Sync run orchestration: the orchestrator, progress tracking and status store."""

from rostersync.pipeline.orchestrator import SyncOrchestrator
from rostersync.pipeline.progress_tracker import ProgressTracker
from rostersync.pipeline.status_store import StatusStore

__all__ = [
    "ProgressTracker",
    "StatusStore",
    "SyncOrchestrator",
]
