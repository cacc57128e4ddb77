"""FastAPI routes for triggering and observing artist sync runs.

Service dependencies are resolved from ``app.state`` (populated at startup
by ``main.build_components``) via ``Depends`` with the ``Annotated``
pattern, so tests can mount the router on a bare app with mocked state.

# ─── API ROUTE MAP ────────────────────────────────────────────────────
#
# Endpoint                                  Method  Description
# ─────────────────────────────────────────────────────────────────────
# /api/v1/artists/sync                      POST    Start a run (202; 409 if locked)
# /api/v1/artists/status                    GET     Last run snapshot + live progress
# /api/v1/artists/missing                   GET     Upstream artists with no page
# /api/v1/artists/prepare-research          POST    Seed the research queue
# /api/v1/artists/research-status           GET     Research queue counters
# /api/v1/artists/lock                      GET     Current lock record
# /api/v1/artists/lock/force-release        POST    Operator lock override
# /api/v1/artists/health                    GET     Provider availability
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import uuid
from typing import Annotated

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status

from rostersync import __version__
from rostersync.api.schemas import (
    ErrorResponse,
    ForceReleaseResponse,
    HealthResponse,
    LockStatusResponse,
    MissingArtist,
    MissingArtistsResponse,
    PrepareResearchResponse,
    ResearchStatusResponse,
    SyncRequest,
    SyncStartedResponse,
    SyncStatusResponse,
)
from rostersync.pipeline.orchestrator import SyncOrchestrator
from rostersync.pipeline.progress_tracker import ProgressTracker
from rostersync.services.research_queue import ResearchQueue
from rostersync.services.sync_lock import SyncLock
from rostersync.utils.errors import ConfigurationError, RosterSyncError
from rostersync.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _get_orchestrator(request: Request) -> SyncOrchestrator:
    """Return the sync orchestrator from application state."""
    return request.app.state.orchestrator


def _get_sync_lock(request: Request) -> SyncLock:
    """Return the sync lock from application state."""
    return request.app.state.sync_lock


def _get_research_queue(request: Request) -> ResearchQueue:
    """Return the research queue from application state."""
    return request.app.state.research_queue


def _get_progress_tracker(request: Request) -> ProgressTracker:
    """Return the progress tracker from application state."""
    return request.app.state.progress_tracker


OrchestratorDep = Annotated[SyncOrchestrator, Depends(_get_orchestrator)]
LockDep = Annotated[SyncLock, Depends(_get_sync_lock)]
QueueDep = Annotated[ResearchQueue, Depends(_get_research_queue)]
TrackerDep = Annotated[ProgressTracker, Depends(_get_progress_tracker)]


# ---------------------------------------------------------------------------
# Background execution
# ---------------------------------------------------------------------------


async def _run_sync(orchestrator: SyncOrchestrator, body: SyncRequest, request_id: str) -> None:
    """Execute one sync run after the 202 response has been sent.

    Errors are logged; the run's outcome is also published to the status
    store by the orchestrator itself.
    """
    try:
        report = await orchestrator.run(
            max_artists=body.max_artists,
            use_cached_upstream_snapshot=body.use_cached_upstream_snapshot,
            metadata={"trigger": "api"},
            request_id=request_id,
        )
        _logger.info(
            "background_sync_complete",
            request_id=request_id,
            success=len(report.success),
            failed=len(report.failed),
            skipped=len(report.skipped),
        )
    except RosterSyncError as exc:
        _logger.error(
            "background_sync_failed",
            request_id=request_id,
            error_type=type(exc).__name__,
            error=str(exc),
        )
    finally:
        orchestrator.progress_tracker.forget(request_id)


# ---------------------------------------------------------------------------
# Sync runs
# ---------------------------------------------------------------------------


@router.post(
    "/artists/sync",
    response_model=SyncStartedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={409: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    summary="Start an artist sync run",
)
async def start_sync(
    background_tasks: BackgroundTasks,
    orchestrator: OrchestratorDep,
    sync_lock: LockDep,
    body: SyncRequest | None = None,
) -> SyncStartedResponse:
    """Accept a sync run and execute it in the background."""
    body = body or SyncRequest()
    try:
        orchestrator.check_ready(body.use_cached_upstream_snapshot)
    except ConfigurationError as exc:
        raise HTTPException(status_code=503, detail=exc.message) from exc

    holder = await sync_lock.info()
    if holder is not None:
        raise HTTPException(
            status_code=409,
            detail=f"Sync run {holder.request_id} is already in progress",
        )

    request_id = uuid.uuid4().hex
    background_tasks.add_task(_run_sync, orchestrator, body, request_id)
    _logger.info(
        "sync_run_accepted",
        request_id=request_id,
        max_artists=body.max_artists,
        use_cached_upstream_snapshot=body.use_cached_upstream_snapshot,
    )
    return SyncStartedResponse(
        request_id=request_id,
        message="Sync run started. Poll /api/v1/artists/status for progress.",
    )


@router.get(
    "/artists/status",
    response_model=SyncStatusResponse,
    summary="Last sync run status",
)
async def get_sync_status(
    orchestrator: OrchestratorDep,
    sync_lock: LockDep,
    tracker: TrackerDep,
) -> SyncStatusResponse:
    """Return the last published status snapshot plus live lock/progress."""
    snapshot = await orchestrator.status()
    holder = await sync_lock.info()
    progress = tracker.get_status(holder.request_id) if holder is not None else None
    return SyncStatusResponse(
        is_running=holder is not None,
        status=snapshot,
        lock=holder,
        progress=progress,
    )


@router.get(
    "/artists/missing",
    response_model=MissingArtistsResponse,
    summary="Upstream artists without a published page",
)
async def get_missing_artists(
    orchestrator: OrchestratorDep,
    use_cached: Annotated[bool, Query(description="Use the cached Spotify snapshot")] = False,
) -> MissingArtistsResponse:
    diff = await orchestrator.find_missing(use_cached_upstream_snapshot=use_cached)
    return MissingArtistsResponse(
        count=len(diff.missing),
        missing=[
            MissingArtist(
                name=candidate.display_name,
                canonical_identity=candidate.canonical_identity,
                genres=candidate.genres,
                popularity=candidate.popularity,
            )
            for candidate in diff.missing
        ],
        already_published=len(diff.already_published),
        unresolvable=diff.unresolvable,
        upstream_total=diff.upstream_total,
        published_total=diff.published_total,
    )


# ---------------------------------------------------------------------------
# Research queue
# ---------------------------------------------------------------------------


@router.post(
    "/artists/prepare-research",
    response_model=PrepareResearchResponse,
    summary="Queue every missing artist for research",
)
async def prepare_research(
    orchestrator: OrchestratorDep,
    use_cached: Annotated[bool, Query(description="Use the cached Spotify snapshot")] = False,
) -> PrepareResearchResponse:
    result = await orchestrator.populate_queue_only(use_cached_upstream_snapshot=use_cached)
    return PrepareResearchResponse(added=result.added, missing=result.missing, stats=result.stats)


@router.get(
    "/artists/research-status",
    response_model=ResearchStatusResponse,
    summary="Research queue counters",
)
async def get_research_status(queue: QueueDep) -> ResearchStatusResponse:
    stats = await queue.stats()
    pending = await queue.list_pending()
    return ResearchStatusResponse(stats=stats, pending=[entry.display_name for entry in pending])


# ---------------------------------------------------------------------------
# Lock
# ---------------------------------------------------------------------------


@router.get(
    "/artists/lock",
    response_model=LockStatusResponse,
    summary="Current sync lock",
)
async def get_lock(sync_lock: LockDep) -> LockStatusResponse:
    holder = await sync_lock.info()
    return LockStatusResponse(locked=holder is not None, lock=holder)


@router.post(
    "/artists/lock/force-release",
    response_model=ForceReleaseResponse,
    summary="Force-release the sync lock",
)
async def force_release_lock(sync_lock: LockDep) -> ForceReleaseResponse:
    """Drop the lock whoever holds it.  The holder's run is not stopped."""
    previous = await sync_lock.force_release()
    return ForceReleaseResponse(released=previous is not None, previous=previous)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get(
    "/artists/health",
    response_model=HealthResponse,
    summary="Sync health check",
)
async def health_check(request: Request) -> HealthResponse:
    """Return version, provider availability and missing configuration."""
    providers: dict[str, bool] = {}
    if hasattr(request.app.state, "provider_registry"):
        providers = dict(request.app.state.provider_registry)

    missing_config: list[str] = []
    app_settings = getattr(request.app.state, "settings", None)
    if app_settings is not None:
        missing_config = app_settings.missing_sync_requirements()

    # The snapshot only exists after a first live fetch.
    required = {name: ok for name, ok in providers.items() if name != "spotify_snapshot"}
    healthy = not missing_config and all(required.values())
    return HealthResponse(
        status="healthy" if healthy else "degraded",
        version=__version__,
        providers=providers,
        missing_config=missing_config,
    )
