"""Unit tests for SyncOrchestrator.

Real SQLite stores (queue, lock, status) under ``tmp_path``; every
external collaborator is a mock.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from rostersync.interfaces.catalog_provider import IPublishedCatalogProvider, IUpstreamCatalogProvider
from rostersync.interfaces.web_search_provider import SearchResult
from rostersync.models.artist import PublishedArtist
from rostersync.models.queue import QueueStatus
from rostersync.models.sync import ArtistStage, RunPhase, SyncState
from rostersync.pipeline.orchestrator import SyncOrchestrator
from rostersync.pipeline.progress_tracker import ALL_RUNS, ProgressTracker
from rostersync.pipeline.status_store import StatusStore
from rostersync.services.research_queue import ResearchQueue
from rostersync.services.social_links import SocialLinksService
from rostersync.services.sync_lock import SyncLock
from rostersync.services.web_search_service import ArtistSearchResults, WebSearchService
from rostersync.utils.errors import (
    ConfigurationError,
    ConflictError,
    ContentGenerationError,
    InvalidTransitionError,
    PartialPublishError,
    ResearchError,
)
from rostersync.utils.identity import IdentityResolver
from tests.conftest import make_candidate, make_published, make_research, no_sleep


@pytest.fixture
def web_search() -> MagicMock:
    service = MagicMock(spec=WebSearchService)
    service.research_artist = AsyncMock(
        return_value=ArtistSearchResults(
            sections=[("bio", [SearchResult(title="Bio", url="https://example.com/bio", description="From Paris.")])]
        )
    )
    return service


@pytest.fixture
def social_links() -> MagicMock:
    service = MagicMock(spec=SocialLinksService)
    service.find_links = AsyncMock(return_value={"soundcloud": "https://soundcloud.com/artist", "instagram": ""})
    return service


@pytest.fixture
def build(
    mock_upstream: MagicMock,
    mock_published: MagicMock,
    queue: ResearchQueue,
    sync_lock: SyncLock,
    status_store: StatusStore,
    web_search: MagicMock,
    mock_synthesizer: MagicMock,
    social_links: MagicMock,
    mock_content_generator: MagicMock,
    mock_image_provider: MagicMock,
    mock_publisher: MagicMock,
):
    """Factory for an orchestrator wired to the shared fixtures."""

    def _build(**overrides) -> SyncOrchestrator:  # noqa: ANN003
        kwargs = {
            "upstream": mock_upstream,
            "published": mock_published,
            "queue": queue,
            "lock": sync_lock,
            "web_search": web_search,
            "synthesizer": mock_synthesizer,
            "social_links": social_links,
            "content_generator": mock_content_generator,
            "image_provider": mock_image_provider,
            "publisher": mock_publisher,
            "status_store": status_store,
            "artist_delay_seconds": 0,
            "sleep": no_sleep,
        }
        kwargs.update(overrides)
        return SyncOrchestrator(**kwargs)

    return _build


class _LateCatalog(IPublishedCatalogProvider):
    """Empty for the diff; *appears_later* is published by the time of the re-check."""

    def __init__(self, appears_later: list[PublishedArtist]) -> None:
        self._appears_later = appears_later
        self.calls = 0

    async def fetch_published(self) -> list[PublishedArtist]:
        self.calls += 1
        return [] if self.calls == 1 else list(self._appears_later)

    def get_provider_name(self) -> str:
        return "memory"

    def is_available(self) -> bool:
        return True


def _published_names(mock_publisher: MagicMock) -> list[str]:
    return [call.args[0].display_name for call in mock_publisher.publish.await_args_list]


# ======================================================================
# Full runs
# ======================================================================


class TestRun:
    @pytest.mark.asyncio
    async def test_publishes_missing_and_skips_published(
        self,
        build,
        mock_upstream: MagicMock,
        mock_published: MagicMock,
        mock_publisher: MagicMock,
        queue: ResearchQueue,
        sync_lock: SyncLock,
        status_store: StatusStore,
    ) -> None:
        mock_upstream.fetch_candidates.return_value = [
            make_candidate("Justice"),
            make_candidate("Kavinsky"),
            make_candidate("Breakbot"),
        ]
        mock_published.fetch_published.return_value = [make_published("Kavinsky", page_id=10)]

        report = await build().run()

        assert report.success == ["Justice", "Breakbot"]
        assert report.skipped == ["Kavinsky"]
        assert report.failed == []
        assert report.attempted == 2
        assert _published_names(mock_publisher) == ["Justice", "Breakbot"]

        assert await sync_lock.is_locked() is False
        status = await status_store.load()
        assert status.status == SyncState.COMPLETED
        assert status.report is not None
        assert status.report.success == ["Justice", "Breakbot"]

        entry = await queue.get_entry("justice")
        assert entry is not None
        assert entry.status == QueueStatus.COMPLETED
        assert await queue.get_result("breakbot") is not None

    @pytest.mark.asyncio
    async def test_passes_generated_content_image_and_links_to_publisher(
        self,
        build,
        mock_upstream: MagicMock,
        mock_publisher: MagicMock,
        mock_image_provider: MagicMock,
    ) -> None:
        mock_upstream.fetch_candidates.return_value = [make_candidate("Justice", image_ref="https://i.scdn.co/x")]

        await build().run()

        candidate, content, media_id, links = mock_publisher.publish.await_args.args
        assert candidate.canonical_identity == "justice"
        assert set(content.locales) == {"en", "fr"}
        assert media_id == 501
        assert links["soundcloud"] == "https://soundcloud.com/artist"
        mock_image_provider.transfer.assert_awaited_once_with("https://i.scdn.co/x", "Justice")

    @pytest.mark.asyncio
    async def test_failure_is_isolated_to_one_artist(
        self,
        build,
        mock_upstream: MagicMock,
        mock_content_generator: MagicMock,
        mock_publisher: MagicMock,
    ) -> None:
        mock_upstream.fetch_candidates.return_value = [
            make_candidate("Justice"),
            make_candidate("Kavinsky"),
            make_candidate("Breakbot"),
        ]
        original = mock_content_generator.generate.side_effect

        async def _generate(candidate, text):  # noqa: ANN001, ANN202
            if candidate.display_name == "Kavinsky":
                raise ContentGenerationError(message="model refused", provider_name="anthropic")
            return original(candidate, text)

        mock_content_generator.generate.side_effect = _generate

        report = await build().run()

        assert report.success == ["Justice", "Breakbot"]
        assert len(report.failed) == 1
        failure = report.failed[0]
        assert failure.name == "Kavinsky"
        assert failure.stage == ArtistStage.CONTENT
        assert "model refused" in failure.error
        assert _published_names(mock_publisher) == ["Justice", "Breakbot"]

    @pytest.mark.asyncio
    async def test_partial_publish_is_a_publish_failure(
        self, build, mock_upstream: MagicMock, mock_publisher: MagicMock
    ) -> None:
        mock_upstream.fetch_candidates.return_value = [make_candidate("Justice")]
        mock_publisher.publish.side_effect = PartialPublishError(created={"en": 11}, missing=["fr"])

        report = await build().run()

        assert report.success == []
        assert report.failed[0].stage == ArtistStage.PUBLISH

    @pytest.mark.asyncio
    async def test_upstream_duplicates_processed_once(
        self, build, mock_upstream: MagicMock, mock_publisher: MagicMock
    ) -> None:
        mock_upstream.fetch_candidates.return_value = [
            make_candidate("Rhi'N'B"),
            make_candidate("Rhi N B"),
            make_candidate("RhiNB"),
        ]

        report = await build().run()

        assert report.success == ["Rhi'N'B"]
        assert report.skipped == []
        assert mock_publisher.publish.await_count == 1

    @pytest.mark.asyncio
    async def test_published_during_run_is_skipped(
        self,
        build,
        mock_upstream: MagicMock,
        mock_published: MagicMock,
        mock_publisher: MagicMock,
    ) -> None:
        mock_upstream.fetch_candidates.return_value = [make_candidate("Justice"), make_candidate("Breakbot")]

        async def _find(identity: str, resolver=None):  # noqa: ANN001, ANN202
            return [make_published("Justice", page_id=99)] if identity == "justice" else []

        mock_published.find_by_identity.side_effect = _find

        report = await build().run()

        assert report.skipped == ["Justice"]
        assert report.success == ["Breakbot"]
        assert _published_names(mock_publisher) == ["Breakbot"]

    @pytest.mark.asyncio
    async def test_max_artists_limits_processing(
        self, build, mock_upstream: MagicMock, mock_publisher: MagicMock
    ) -> None:
        mock_upstream.fetch_candidates.return_value = [
            make_candidate("Justice"),
            make_candidate("Kavinsky"),
            make_candidate("Breakbot"),
        ]

        report = await build().run(max_artists=1)

        assert report.success == ["Justice"]
        assert mock_publisher.publish.await_count == 1

    @pytest.mark.asyncio
    async def test_negative_max_artists_is_rejected(
        self, build, mock_upstream: MagicMock, mock_publisher: MagicMock, sync_lock: SyncLock
    ) -> None:
        mock_upstream.fetch_candidates.return_value = [make_candidate("Justice"), make_candidate("Breakbot")]

        with pytest.raises(ValueError, match="max_artists"):
            await build().run(max_artists=-1)

        mock_upstream.fetch_candidates.assert_not_awaited()
        mock_publisher.publish.assert_not_awaited()
        assert await sync_lock.is_locked() is False

    @pytest.mark.asyncio
    async def test_zero_max_artists_publishes_nothing(
        self, build, mock_upstream: MagicMock, mock_publisher: MagicMock
    ) -> None:
        mock_upstream.fetch_candidates.return_value = [make_candidate("Justice")]

        report = await build().run(max_artists=0)

        assert report.success == []
        mock_publisher.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_recheck_uses_configured_ampersand_policy(
        self, build, mock_upstream: MagicMock, mock_publisher: MagicMock
    ) -> None:
        mock_upstream.fetch_candidates.return_value = [make_candidate("Chase & Status")]
        catalog = _LateCatalog(appears_later=[make_published("Chase & Status", page_id=41)])

        report = await build(published=catalog, resolver=IdentityResolver("and")).run()

        assert report.skipped == ["Chase & Status"]
        assert report.success == []
        mock_publisher.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unresolvable_and_excluded_names_are_ignored(
        self, build, mock_upstream: MagicMock, mock_publisher: MagicMock
    ) -> None:
        mock_upstream.fetch_candidates.return_value = [
            make_candidate("!!!"),
            make_candidate("Label Showcase"),
            make_candidate("Justice"),
        ]

        report = await build(excluded_artists=["label showcase"]).run()

        assert report.success == ["Justice"]
        assert report.skipped == []
        assert _published_names(mock_publisher) == ["Justice"]

    @pytest.mark.asyncio
    async def test_waits_between_artists(self, build, mock_upstream: MagicMock) -> None:
        mock_upstream.fetch_candidates.return_value = [make_candidate("Justice"), make_candidate("Breakbot")]
        sleeps: list[float] = []

        async def _sleep(seconds: float) -> None:
            sleeps.append(seconds)

        await build(artist_delay_seconds=2.0, sleep=_sleep).run()

        assert len(sleeps) == 1
        assert 0 < sleeps[0] <= 2.0

    @pytest.mark.asyncio
    async def test_progress_phases(self, build, mock_upstream: MagicMock) -> None:
        mock_upstream.fetch_candidates.return_value = [make_candidate("Justice")]
        tracker = ProgressTracker()
        phases: list[RunPhase] = []
        tracker.register_listener(ALL_RUNS, lambda _rid, phase, *_rest: phases.append(phase))

        await build(progress_tracker=tracker).run(request_id="run-1")

        assert phases[0] == RunPhase.LOCKED
        assert phases[1] == RunPhase.DIFFING
        assert RunPhase.PROCESSING_ARTISTS in phases
        assert phases[-2:] == [RunPhase.REPORTING, RunPhase.IDLE]
        assert tracker.get_status("run-1")["done"] == 1


# ======================================================================
# Run-level failures
# ======================================================================


class TestRunAborts:
    @pytest.mark.asyncio
    async def test_conflict_when_lock_held(
        self, build, sync_lock: SyncLock, mock_upstream: MagicMock, mock_publisher: MagicMock
    ) -> None:
        await sync_lock.acquire("other-run")

        with pytest.raises(ConflictError, match="other-run"):
            await build().run()

        mock_upstream.fetch_candidates.assert_not_awaited()
        mock_publisher.publish.assert_not_awaited()
        info = await sync_lock.info()
        assert info is not None
        assert info.request_id == "other-run"

    @pytest.mark.asyncio
    async def test_missing_configuration_aborts_before_locking(
        self, build, mock_publisher: MagicMock, sync_lock: SyncLock
    ) -> None:
        mock_publisher.is_available.return_value = False

        with pytest.raises(ConfigurationError, match="wordpress"):
            await build().run()

        assert await sync_lock.is_locked() is False

    @pytest.mark.asyncio
    async def test_cancelled_run_records_error_status(
        self,
        build,
        mock_upstream: MagicMock,
        mock_content_generator: MagicMock,
        sync_lock: SyncLock,
        status_store: StatusStore,
    ) -> None:
        mock_upstream.fetch_candidates.return_value = [make_candidate("Justice"), make_candidate("Breakbot")]
        mock_content_generator.generate.side_effect = asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await build().run()

        assert await sync_lock.is_locked() is False
        status = await status_store.load()
        assert status.status == SyncState.ERROR
        assert status.error == "CancelledError"
        assert status.report is not None
        assert status.report.success == []

    @pytest.mark.asyncio
    async def test_invalid_transition_aborts_and_releases_lock(
        self,
        build,
        mock_upstream: MagicMock,
        queue: ResearchQueue,
        sync_lock: SyncLock,
        status_store: StatusStore,
    ) -> None:
        mock_upstream.fetch_candidates.return_value = [make_candidate("Justice"), make_candidate("Breakbot")]
        queue.save_result = AsyncMock(side_effect=InvalidTransitionError(message="illegal edge"))

        with pytest.raises(InvalidTransitionError):
            await build().run()

        assert await sync_lock.is_locked() is False
        status = await status_store.load()
        assert status.status == SyncState.ERROR
        assert status.error == "illegal edge"
        assert status.report is not None
        assert status.report.success == []

    @pytest.mark.asyncio
    async def test_upstream_failure_records_error_status(
        self, build, mock_upstream: MagicMock, sync_lock: SyncLock, status_store: StatusStore
    ) -> None:
        mock_upstream.fetch_candidates.side_effect = ResearchError(message="spotify down")

        with pytest.raises(ResearchError):
            await build().run()

        assert await sync_lock.is_locked() is False
        assert (await status_store.load()).status == SyncState.ERROR


# ======================================================================
# Research stage
# ======================================================================


class TestResearch:
    @pytest.mark.asyncio
    async def test_cached_result_skips_web_research(
        self,
        build,
        mock_upstream: MagicMock,
        queue: ResearchQueue,
        web_search: MagicMock,
        mock_content_generator: MagicMock,
    ) -> None:
        mock_upstream.fetch_candidates.return_value = [make_candidate("Justice")]
        await queue.save_result("justice", make_research("justice", style="French touch"))

        await build().run()

        web_search.research_artist.assert_not_awaited()
        _, research_text = mock_content_generator.generate.await_args.args
        assert "Musical Style: French touch" in research_text

    @pytest.mark.asyncio
    async def test_research_failure_uses_fallback_and_still_publishes(
        self,
        build,
        mock_upstream: MagicMock,
        queue: ResearchQueue,
        web_search: MagicMock,
        mock_content_generator: MagicMock,
    ) -> None:
        mock_upstream.fetch_candidates.return_value = [make_candidate("Justice", genres=["electro"])]
        web_search.research_artist.side_effect = ResearchError(message="all providers down")

        report = await build().run()

        assert report.success == ["Justice"]
        _, research_text = mock_content_generator.generate.await_args.args
        assert "electro" in research_text
        entry = await queue.get_entry("justice")
        assert entry is not None
        assert entry.status == QueueStatus.FAILED
        assert "all providers down" in (entry.error or "")

    @pytest.mark.asyncio
    async def test_unexpected_research_error_uses_fallback(
        self,
        build,
        mock_upstream: MagicMock,
        queue: ResearchQueue,
        web_search: MagicMock,
        mock_content_generator: MagicMock,
    ) -> None:
        mock_upstream.fetch_candidates.return_value = [make_candidate("Justice", genres=["electro"])]
        web_search.research_artist.side_effect = AttributeError("'list' object has no attribute 'get'")

        report = await build().run()

        assert report.success == ["Justice"]
        assert report.failed == []
        _, research_text = mock_content_generator.generate.await_args.args
        assert "electro" in research_text
        entry = await queue.get_entry("justice")
        assert entry is not None
        assert entry.status == QueueStatus.FAILED
        assert "no attribute" in (entry.error or "")

    @pytest.mark.asyncio
    async def test_empty_synthesis_counts_as_research_failure(
        self, build, mock_upstream: MagicMock, queue: ResearchQueue, mock_synthesizer: MagicMock
    ) -> None:
        mock_upstream.fetch_candidates.return_value = [make_candidate("Justice")]
        mock_synthesizer.synthesize.side_effect = None
        mock_synthesizer.synthesize.return_value = None

        report = await build().run()

        assert report.success == ["Justice"]
        entry = await queue.get_entry("justice")
        assert entry is not None
        assert entry.status == QueueStatus.FAILED
        assert await queue.get_result("justice") is None

    @pytest.mark.asyncio
    async def test_previously_failed_entry_is_not_retried(
        self, build, mock_upstream: MagicMock, queue: ResearchQueue, web_search: MagicMock
    ) -> None:
        candidate = make_candidate("Justice")
        mock_upstream.fetch_candidates.return_value = [candidate]
        await queue.enqueue(candidate)
        await queue.mark_processing("justice")
        await queue.mark_failed("justice", "earlier failure")

        report = await build().run()

        assert report.success == ["Justice"]
        web_search.research_artist.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_entry_left_processing_is_researched_again(
        self, build, mock_upstream: MagicMock, queue: ResearchQueue, web_search: MagicMock
    ) -> None:
        candidate = make_candidate("Justice")
        mock_upstream.fetch_candidates.return_value = [candidate]
        await queue.enqueue(candidate)
        await queue.mark_processing("justice")

        await build().run()

        web_search.research_artist.assert_awaited_once()
        entry = await queue.get_entry("justice")
        assert entry is not None
        assert entry.status == QueueStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_known_social_links_are_forwarded(
        self,
        build,
        mock_upstream: MagicMock,
        queue: ResearchQueue,
        social_links: MagicMock,
    ) -> None:
        mock_upstream.fetch_candidates.return_value = [make_candidate("Justice")]
        await queue.save_result(
            "justice", make_research("justice", social_links={"instagram": "https://www.instagram.com/etjusticepourtous/"})
        )

        await build().run()

        social_links.find_links.assert_awaited_once_with(
            "Justice", known={"instagram": "https://www.instagram.com/etjusticepourtous/"}
        )


# ======================================================================
# Image stage
# ======================================================================


class TestImage:
    @pytest.mark.asyncio
    async def test_transfer_failure_falls_back_to_existing(
        self,
        build,
        mock_upstream: MagicMock,
        mock_image_provider: MagicMock,
        mock_publisher: MagicMock,
    ) -> None:
        mock_upstream.fetch_candidates.return_value = [make_candidate("Justice", image_ref="https://i.scdn.co/x")]
        mock_image_provider.transfer.side_effect = RuntimeError("CDN timeout")
        mock_image_provider.find_existing.return_value = 77

        report = await build().run()

        assert report.success == ["Justice"]
        assert mock_publisher.publish.await_args.args[2] == 77

    @pytest.mark.asyncio
    async def test_no_image_is_not_fatal(
        self,
        build,
        mock_upstream: MagicMock,
        mock_image_provider: MagicMock,
        mock_publisher: MagicMock,
    ) -> None:
        mock_upstream.fetch_candidates.return_value = [make_candidate("Justice")]
        mock_image_provider.find_existing.side_effect = RuntimeError("media search down")

        report = await build().run()

        assert report.success == ["Justice"]
        mock_image_provider.transfer.assert_not_awaited()
        assert mock_publisher.publish.await_args.args[2] is None


# ======================================================================
# Diff-only entry points
# ======================================================================


class TestDiffEntryPoints:
    @pytest.mark.asyncio
    async def test_find_missing(self, build, mock_upstream: MagicMock, mock_published: MagicMock) -> None:
        mock_upstream.fetch_candidates.return_value = [
            make_candidate("Justice"),
            make_candidate("Röyksopp"),
            make_candidate("!!!"),
        ]
        mock_published.fetch_published.return_value = [
            make_published("Royksopp", locale="en", page_id=1),
            make_published("Royksopp", locale="fr", page_id=2),
        ]

        diff = await build().find_missing()

        assert [c.canonical_identity for c in diff.missing] == ["justice"]
        assert [c.display_name for c in diff.already_published] == ["Röyksopp"]
        assert diff.unresolvable == ["!!!"]
        assert diff.upstream_total == 3
        assert diff.published_total == 2

    @pytest.mark.asyncio
    async def test_ampersand_policy_applies_to_both_sides(
        self, build, mock_upstream: MagicMock, mock_published: MagicMock
    ) -> None:
        mock_upstream.fetch_candidates.return_value = [make_candidate("Simon & Garfunkel")]
        mock_published.fetch_published.return_value = [make_published("Simon and Garfunkel")]

        assert (await build(resolver=IdentityResolver("and")).find_missing()).missing == []
        assert len((await build(resolver=IdentityResolver("dash")).find_missing()).missing) == 1

    @pytest.mark.asyncio
    async def test_populate_queue_only(
        self,
        build,
        mock_upstream: MagicMock,
        queue: ResearchQueue,
        sync_lock: SyncLock,
        mock_publisher: MagicMock,
    ) -> None:
        mock_upstream.fetch_candidates.return_value = [make_candidate("Justice"), make_candidate("Breakbot")]
        await queue.enqueue(make_candidate("Justice"))
        await sync_lock.acquire("someone-else")

        result = await build().populate_queue_only()

        assert result.added == 1
        assert result.missing == 2
        assert result.stats.pending == 2
        mock_publisher.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cached_snapshot_requires_provider(self, build) -> None:
        with pytest.raises(ConfigurationError):
            await build().find_missing(use_cached_upstream_snapshot=True)

    @pytest.mark.asyncio
    async def test_cached_snapshot_is_used(self, build, mock_upstream: MagicMock) -> None:
        snapshot = MagicMock(spec=IUpstreamCatalogProvider)
        snapshot.fetch_candidates = AsyncMock(return_value=[make_candidate("Justice")])
        snapshot.get_provider_name.return_value = "spotify_snapshot"
        snapshot.is_available.return_value = True

        report = await build(snapshot_upstream=snapshot).run(use_cached_upstream_snapshot=True)

        assert report.success == ["Justice"]
        mock_upstream.fetch_candidates.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_status_defaults_to_never_run(self, build) -> None:
        assert (await build().status()).status == SyncState.NEVER_RUN
