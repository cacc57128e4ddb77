"""Sync-run progress tracking with callback-based listener notification.

The orchestrator reports every phase change and every finished artist to
the tracker, which keeps the latest snapshot per run and forwards it to
registered listeners (the API's status endpoint reads the snapshot; the
CLI registers a listener that prints progress lines).

    SyncOrchestrator ──update()──→ ProgressTracker ──callback()──→ CLI printer
                                                 ──→ (any other listener)

Listeners are keyed by ``request_id`` or registered globally with
``"*"``.  A listener that raises is logged and skipped so a broken
consumer never stalls a run.  Both sync and async callbacks are accepted.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from rostersync.models.sync import RunPhase
from rostersync.utils.logging import get_logger

ALL_RUNS = "*"


@dataclass
class _RunProgress:
    """Internal, mutable snapshot of one run's progress."""

    phase: RunPhase = RunPhase.IDLE
    done: int = 0
    total: int = 0
    message: str = ""


class ProgressTracker:
    """Tracks and broadcasts sync-run progress via callbacks."""

    def __init__(self) -> None:
        self._runs: dict[str, _RunProgress] = {}
        self._listeners: dict[str, list[Callable]] = {}
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def update(
        self,
        request_id: str,
        phase: RunPhase,
        message: str = "",
        done: int | None = None,
        total: int | None = None,
    ) -> None:
        """Record a progress update and notify listeners.

        Parameters
        ----------
        request_id:
            The run being updated.
        phase:
            Current run phase.
        message:
            Human-readable status, e.g. the artist just processed.
        done, total:
            Artists processed so far / to process.  Omitted values keep
            their previous value.
        """
        previous = self._runs.get(request_id, _RunProgress())
        snapshot = _RunProgress(
            phase=phase,
            done=previous.done if done is None else done,
            total=previous.total if total is None else total,
            message=message,
        )
        self._runs[request_id] = snapshot

        self._logger.debug(
            "progress_update",
            request_id=request_id,
            phase=phase.value,
            done=snapshot.done,
            total=snapshot.total,
            message=message,
        )
        await self._notify_listeners(request_id, snapshot)

    def register_listener(self, request_id: str, callback: Callable) -> None:
        """Register ``callback(request_id, phase, done, total, message)``.

        Use :data:`ALL_RUNS` to receive updates for every run.
        """
        listeners = self._listeners.setdefault(request_id, [])
        if callback not in listeners:
            listeners.append(callback)

    def unregister_listener(self, request_id: str, callback: Callable) -> None:
        listeners = self._listeners.get(request_id, [])
        if callback in listeners:
            listeners.remove(callback)

    def get_status(self, request_id: str) -> dict:
        """Return ``{phase, done, total, message}`` for a run (zeroed when unknown)."""
        snapshot = self._runs.get(request_id, _RunProgress())
        return {
            "phase": snapshot.phase.value,
            "done": snapshot.done,
            "total": snapshot.total,
            "message": snapshot.message,
        }

    def forget(self, request_id: str) -> None:
        """Drop a finished run's snapshot and listeners."""
        self._runs.pop(request_id, None)
        self._listeners.pop(request_id, None)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _notify_listeners(self, request_id: str, snapshot: _RunProgress) -> None:
        listeners = [*self._listeners.get(request_id, []), *self._listeners.get(ALL_RUNS, [])]
        for callback in listeners:
            try:
                result = callback(request_id, snapshot.phase, snapshot.done, snapshot.total, snapshot.message)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:  # noqa: BLE001
                self._logger.warning(
                    "listener_callback_error",
                    request_id=request_id,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )
