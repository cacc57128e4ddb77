"""Central orchestrator for artist roster synchronization.

One run compares the upstream roster (Spotify playlist) with the
published catalog (WordPress) and creates the bilingual page pair for
every artist that is missing::

    IDLE → LOCKED → DIFFING → PROCESSING_ARTISTS → REPORTING → IDLE

Artists are processed strictly one after another.  Upstream quotas are
shared, and a sequential loop cannot create the same page twice.  Each
artist walks the stage pipeline::

    recheck → research → social → content → image → publish

A failure in any stage is recorded against that artist (with the stage
name) and the loop moves on.  Only run-level problems abort a run:
missing configuration, a held lock, or a research queue state-machine
violation.  The sync lock is released in a ``finally`` block whatever
happens, and the final :class:`SyncStatus` snapshot is published to the
status store before it is.

All collaborators are injected; the orchestrator never builds them.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from typing import Any

import structlog

from rostersync.interfaces.catalog_provider import IPublishedCatalogProvider, IUpstreamCatalogProvider
from rostersync.interfaces.content_generator import IContentGenerator
from rostersync.interfaces.image_provider import IImageProvider
from rostersync.interfaces.publisher import IPublisher
from rostersync.interfaces.synthesis_provider import ISynthesisProvider
from rostersync.models.artist import ArtistCandidate
from rostersync.models.queue import QueueStatus
from rostersync.models.research import ResearchResult
from rostersync.models.sync import (
    ArtistStage,
    DiffResult,
    FailedArtist,
    PopulateResult,
    RunPhase,
    SyncRunReport,
    SyncState,
    SyncStatus,
)
from rostersync.pipeline.progress_tracker import ProgressTracker
from rostersync.pipeline.status_store import StatusStore
from rostersync.services.research_formatter import build_fallback_description, format_research_text
from rostersync.services.research_queue import ResearchQueue
from rostersync.services.social_links import SocialLinksService
from rostersync.services.sync_lock import SyncLock
from rostersync.services.web_search_service import WebSearchService
from rostersync.utils.errors import (
    ConfigurationError,
    ConflictError,
    DuplicateRaceError,
    InvalidTransitionError,
    ResearchError,
)
from rostersync.utils.identity import IdentityResolver
from rostersync.utils.logging import bind_run_context, clear_run_context, get_logger
from rostersync.utils.rate_limiter import SleepFn, Throttle


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class SyncOrchestrator:
    """Runs the roster diff and the per-artist publishing pipeline.

    Parameters
    ----------
    upstream:
        Live upstream roster (Spotify).
    published:
        Published catalog, used for the diff and the per-artist re-check.
    queue:
        Research queue and research result cache.
    lock:
        Cross-process run guard.
    web_search:
        Web research queries.
    synthesizer:
        Turns raw search results into a :class:`ResearchResult`.
    social_links:
        Per-platform profile lookup.
    content_generator:
        Bilingual description generation.
    image_provider:
        Featured image transfer / lookup.
    publisher:
        Creates the locale page pair.
    status_store:
        Receives every new :class:`SyncStatus` snapshot.
    progress_tracker:
        Optional progress broadcaster.
    snapshot_upstream:
        Cached roster used when a run asks for the upstream snapshot.
    resolver:
        Identity rule used on both sides of the diff.
    excluded_artists:
        Upstream names never published (label accounts, compilations).
    artist_delay_seconds:
        Minimum pause between two artists.
    """

    def __init__(
        self,
        upstream: IUpstreamCatalogProvider,
        published: IPublishedCatalogProvider,
        queue: ResearchQueue,
        lock: SyncLock,
        web_search: WebSearchService,
        synthesizer: ISynthesisProvider,
        social_links: SocialLinksService,
        content_generator: IContentGenerator,
        image_provider: IImageProvider,
        publisher: IPublisher,
        status_store: StatusStore,
        progress_tracker: ProgressTracker | None = None,
        snapshot_upstream: IUpstreamCatalogProvider | None = None,
        resolver: IdentityResolver | None = None,
        excluded_artists: Iterable[str] = (),
        artist_delay_seconds: float = 2.0,
        sleep: SleepFn = asyncio.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._upstream = upstream
        self._published = published
        self._queue = queue
        self._lock = lock
        self._web_search = web_search
        self._synthesizer = synthesizer
        self._social_links = social_links
        self._content_generator = content_generator
        self._image_provider = image_provider
        self._publisher = publisher
        self._status_store = status_store
        self._progress = progress_tracker or ProgressTracker()
        self._snapshot_upstream = snapshot_upstream
        self._resolver = resolver or IdentityResolver()
        self._excluded = {self._resolver.normalize(name) for name in excluded_artists} - {""}
        self._artist_delay = artist_delay_seconds
        self._sleep = sleep
        self._clock = clock
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def progress_tracker(self) -> ProgressTracker:
        return self._progress

    # ------------------------------------------------------------------
    # Full run
    # ------------------------------------------------------------------

    async def run(
        self,
        max_artists: int | None = None,
        use_cached_upstream_snapshot: bool = False,
        metadata: dict[str, Any] | None = None,
        request_id: str | None = None,
    ) -> SyncRunReport:
        """Synchronize the published catalog with the upstream roster.

        Parameters
        ----------
        max_artists:
            Process at most this many missing artists, in upstream order.
        use_cached_upstream_snapshot:
            Read the roster from the last Spotify snapshot instead of the
            live API.
        metadata:
            Stored in the lock record (e.g. who triggered the run).
        request_id:
            Run identifier; generated when omitted.

        Returns
        -------
        SyncRunReport
            ``success``, ``failed`` and ``skipped`` cover every resolvable,
            de-duplicated upstream artist considered by the run.

        Raises
        ------
        ConfigurationError
            If a required collaborator is not configured.
        ConflictError
            If another run holds the sync lock.
        InvalidTransitionError
            If the research queue state machine is violated.
        ValueError
            If *max_artists* is negative.
        """
        if max_artists is not None and max_artists < 0:
            raise ValueError(f"max_artists must be zero or positive, got {max_artists}")
        request_id = request_id or uuid.uuid4().hex
        self.check_ready(use_cached_upstream_snapshot)

        if not await self._lock.acquire(request_id, metadata=metadata):
            holder = await self._lock.info()
            holder_id = holder.request_id if holder else "unknown"
            raise ConflictError(message=f"Sync run {holder_id} is already in progress")

        bind_run_context(request_id)
        started_at = self._clock()
        started = time.monotonic()
        success: list[str] = []
        failed: list[FailedArtist] = []
        skipped: list[str] = []

        def build_report() -> SyncRunReport:
            return SyncRunReport(
                request_id=request_id,
                success=list(success),
                failed=list(failed),
                skipped=list(skipped),
                duration_seconds=round(time.monotonic() - started, 3),
                started_at=started_at,
                finished_at=self._clock(),
            )

        status = SyncStatus(last_run=started_at, status=SyncState.RUNNING)
        try:
            await self._status_store.save(status)
            await self._progress.update(request_id, RunPhase.LOCKED, "Sync lock acquired")
            self._logger.info(
                "sync_run_started",
                max_artists=max_artists,
                use_cached_upstream_snapshot=use_cached_upstream_snapshot,
            )

            # -- Diff --
            await self._progress.update(request_id, RunPhase.DIFFING, "Comparing rosters")
            diff = await self._diff(use_cached_upstream_snapshot)
            skipped.extend(candidate.display_name for candidate in diff.already_published)
            todo = diff.missing[:max_artists] if max_artists is not None else diff.missing

            # -- Per-artist pipeline --
            await self._progress.update(
                request_id,
                RunPhase.PROCESSING_ARTISTS,
                f"{len(todo)} artists to publish",
                done=0,
                total=len(todo),
            )
            throttle = Throttle(self._artist_delay, sleep=self._sleep)
            for index, candidate in enumerate(todo, start=1):
                await throttle.wait()
                try:
                    failure = await self._process_artist(candidate)
                except DuplicateRaceError:
                    skipped.append(candidate.display_name)
                    message = f"Skipped {candidate.display_name}"
                else:
                    if failure is None:
                        success.append(candidate.display_name)
                        message = f"Published {candidate.display_name}"
                    else:
                        failed.append(failure)
                        message = f"Failed {candidate.display_name} ({failure.stage.value})"
                await self._progress.update(
                    request_id, RunPhase.PROCESSING_ARTISTS, message, done=index
                )

            # -- Report --
            await self._progress.update(request_id, RunPhase.REPORTING, "Writing report")
            report = build_report()
            status = SyncStatus(last_run=started_at, status=SyncState.COMPLETED, report=report)
            self._logger.info(
                "sync_run_complete",
                success=len(report.success),
                failed=len(report.failed),
                skipped=len(report.skipped),
                duration_s=report.duration_seconds,
            )
            return report
        except BaseException as exc:
            # Includes cancellation: a RUNNING status must not outlive the lock.
            status = SyncStatus(
                last_run=started_at,
                status=SyncState.ERROR,
                report=build_report(),
                error=str(exc) or type(exc).__name__,
            )
            self._logger.error("sync_run_failed", error=str(exc), error_type=type(exc).__name__)
            raise
        finally:
            try:
                await self._status_store.save(status)
            finally:
                await self._lock.release(request_id)
                await self._progress.update(request_id, RunPhase.IDLE, "Sync lock released")
                clear_run_context()

    # ------------------------------------------------------------------
    # Diff-only entry points
    # ------------------------------------------------------------------

    async def find_missing(self, use_cached_upstream_snapshot: bool = False) -> DiffResult:
        """Return the upstream artists that have no published page."""
        return await self._diff(use_cached_upstream_snapshot)

    async def populate_queue_only(self, use_cached_upstream_snapshot: bool = False) -> PopulateResult:
        """Seed the research queue with every missing artist; publish nothing.

        Lets research run out-of-band ahead of a full sync.  Already queued
        artists are left untouched.
        """
        diff = await self._diff(use_cached_upstream_snapshot)
        added = await self._queue.enqueue_many(diff.missing)
        stats = await self._queue.stats()
        self._logger.info("research_queue_populated", added=added, missing=len(diff.missing))
        return PopulateResult(added=added, missing=len(diff.missing), stats=stats)

    async def status(self) -> SyncStatus:
        """Return the last published status snapshot."""
        return await self._status_store.load()

    # ------------------------------------------------------------------
    # Preflight / diff
    # ------------------------------------------------------------------

    def check_ready(self, use_cached_upstream_snapshot: bool = False) -> None:
        """Raise :class:`ConfigurationError` unless every required collaborator is configured."""
        upstream = self._select_upstream(use_cached_upstream_snapshot)
        required = (upstream, self._published, self._content_generator, self._publisher)
        unavailable = [c.get_provider_name() for c in required if not c.is_available()]
        if unavailable:
            raise ConfigurationError(
                message=f"Sync collaborators not configured: {', '.join(unavailable)}"
            )

    def _select_upstream(self, use_cached_upstream_snapshot: bool) -> IUpstreamCatalogProvider:
        if not use_cached_upstream_snapshot:
            return self._upstream
        if self._snapshot_upstream is None:
            raise ConfigurationError(message="No upstream snapshot provider configured")
        return self._snapshot_upstream

    async def _diff(self, use_cached_upstream_snapshot: bool) -> DiffResult:
        upstream = self._select_upstream(use_cached_upstream_snapshot)
        candidates = await upstream.fetch_candidates()
        published = await self._published.fetch_published()

        published_ids = {self._resolver.normalize(entry.name) for entry in published} - {""}

        missing: list[ArtistCandidate] = []
        already_published: list[ArtistCandidate] = []
        unresolvable: list[str] = []
        seen: set[str] = set()
        for candidate in candidates:
            identity = self._resolver.normalize(candidate.display_name)
            if not identity:
                unresolvable.append(candidate.display_name)
                continue
            if identity in self._excluded:
                self._logger.debug("excluded_artist_ignored", artist=candidate.display_name)
                continue
            if identity in seen:
                self._logger.debug("duplicate_upstream_artist", artist=candidate.display_name, identity=identity)
                continue
            seen.add(identity)

            candidate = candidate.model_copy(update={"canonical_identity": identity})
            if identity in published_ids:
                already_published.append(candidate)
            else:
                missing.append(candidate)

        if unresolvable:
            self._logger.warning("unresolvable_artist_names", names=unresolvable)
        self._logger.info(
            "roster_diff_complete",
            upstream=len(candidates),
            published=len(published),
            missing=len(missing),
            already_published=len(already_published),
            unresolvable=len(unresolvable),
        )
        return DiffResult(
            missing=missing,
            already_published=already_published,
            unresolvable=unresolvable,
            upstream_total=len(candidates),
            published_total=len(published),
        )

    # ------------------------------------------------------------------
    # Per-artist pipeline
    # ------------------------------------------------------------------

    async def _process_artist(self, candidate: ArtistCandidate) -> FailedArtist | None:
        """Run every stage for one artist.

        Returns ``None`` on success, a :class:`FailedArtist` otherwise.
        ``DuplicateRaceError`` from the re-check propagates so the caller
        records the artist as skipped.
        """
        name = candidate.display_name
        stage = ArtistStage.RECHECK
        log = self._logger.bind(artist=name, identity=candidate.canonical_identity)
        try:
            await self._recheck(candidate)

            stage = ArtistStage.RESEARCH
            research_text, research = await self._research(candidate)

            stage = ArtistStage.SOCIAL
            known_links = research.social_links if research else {}
            social_links = await self._social_links.find_links(name, known=known_links)

            stage = ArtistStage.CONTENT
            content = await self._content_generator.generate(candidate, research_text)

            stage = ArtistStage.IMAGE
            media_id = await self._acquire_image(candidate)

            stage = ArtistStage.PUBLISH
            pages = await self._publisher.publish(candidate, content, media_id, social_links)
        except DuplicateRaceError:
            log.info("artist_already_published_skipping")
            raise
        except InvalidTransitionError:
            raise
        except Exception as exc:  # noqa: BLE001
            log.warning("artist_failed", stage=stage.value, error=str(exc), error_type=type(exc).__name__)
            return FailedArtist(name=name, error=str(exc) or type(exc).__name__, stage=stage)

        log.info("artist_published", pages={locale: ref.page_id for locale, ref in pages.items()})
        return None

    async def _recheck(self, candidate: ArtistCandidate) -> None:
        matches = await self._published.find_by_identity(
            candidate.canonical_identity, resolver=self._resolver
        )
        if matches:
            raise DuplicateRaceError(
                message=f"{candidate.display_name} was published after the diff",
                provider_name=self._published.get_provider_name(),
            )

    async def _research(self, candidate: ArtistCandidate) -> tuple[str, ResearchResult | None]:
        """Return the research text for the content prompt and the result used.

        The cached result wins.  Otherwise research runs and is saved; on
        failure the queue entry is marked failed and the degraded
        description is returned.  An entry that failed in an earlier run
        stays failed until an operator resets it.
        """
        identity = candidate.canonical_identity
        cached = await self._queue.get_result(identity)
        if cached is not None:
            self._logger.debug("research_cache_hit", identity=identity)
            return format_research_text(cached), cached

        entry = await self._queue.get_entry(identity)
        if entry is None:
            await self._queue.enqueue(candidate)
            entry = await self._queue.get_entry(identity)
        if entry is not None and entry.status == QueueStatus.FAILED:
            self._logger.info("research_previously_failed_using_fallback", identity=identity, error=entry.error)
            return build_fallback_description(candidate), None
        if entry is not None and entry.status == QueueStatus.PENDING:
            await self._queue.mark_processing(identity)

        try:
            results = await self._web_search.research_artist(candidate)
            result = await self._synthesizer.synthesize(candidate, results.all_results())
            if result is None:
                raise ResearchError(
                    message=f"No research information found for {candidate.display_name}",
                    provider_name=self._synthesizer.get_provider_name(),
                )
        except InvalidTransitionError:
            raise
        except Exception as exc:  # noqa: BLE001
            self._logger.warning(
                "research_failed_using_fallback",
                identity=identity,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            if entry is not None and entry.status != QueueStatus.COMPLETED:
                await self._queue.mark_failed(identity, str(exc) or type(exc).__name__)
            return build_fallback_description(candidate), None

        await self._queue.save_result(identity, result.model_copy(update={"canonical_identity": identity}))
        return format_research_text(result), result

    async def _acquire_image(self, candidate: ArtistCandidate) -> int | None:
        """Transfer the roster image, else reuse an existing one.  Never raises."""
        name = candidate.display_name
        if candidate.image_ref:
            try:
                media_id = await self._image_provider.transfer(candidate.image_ref, name)
            except Exception as exc:  # noqa: BLE001
                self._logger.warning("image_transfer_failed", artist=name, error=str(exc))
                media_id = None
            if media_id is not None:
                return media_id

        try:
            media_id = await self._image_provider.find_existing(name)
        except Exception as exc:  # noqa: BLE001
            self._logger.warning("image_lookup_failed", artist=name, error=str(exc))
            return None
        if media_id is None:
            self._logger.info("no_image_available", artist=name)
        return media_id
