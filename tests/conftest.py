"""Shared pytest fixtures for the rostersync test suite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from rostersync.config.settings import Settings
from rostersync.interfaces.catalog_provider import IPublishedCatalogProvider, IUpstreamCatalogProvider
from rostersync.interfaces.content_generator import IContentGenerator
from rostersync.interfaces.image_provider import IImageProvider
from rostersync.interfaces.llm_provider import ILLMProvider
from rostersync.interfaces.publisher import IPublisher
from rostersync.interfaces.synthesis_provider import ISynthesisProvider
from rostersync.interfaces.web_search_provider import IWebSearchProvider, SearchResult
from rostersync.models.artist import ArtistCandidate, PublishedArtist
from rostersync.models.content import GeneratedContent, LocaleContent, PageRef
from rostersync.models.research import ResearchResult
from rostersync.pipeline.status_store import StatusStore
from rostersync.services.research_queue import ResearchQueue
from rostersync.services.sync_lock import SyncLock

# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_candidate(name: str, **overrides: Any) -> ArtistCandidate:
    """Build an upstream candidate with sensible defaults."""
    defaults: dict[str, Any] = {
        "source_id": f"sp-{name.lower().replace(' ', '-')}",
        "display_name": name,
        "genres": ["techno"],
        "popularity": 40,
        "external_url": f"https://open.spotify.com/artist/{name.lower().replace(' ', '')}",
    }
    defaults.update(overrides)
    return ArtistCandidate(**defaults)


def make_published(name: str, locale: str = "en", page_id: int | None = None) -> PublishedArtist:
    return PublishedArtist(name=name, locale=locale, page_id=page_id)


def make_content(name: str = "Artist") -> GeneratedContent:
    return GeneratedContent(
        locales={
            "en": LocaleContent(body=f"<p>{name} is a DJ.</p>", summary=f"{name}, DJ", role_label="DJ"),
            "fr": LocaleContent(body=f"<p>{name} est DJ.</p>", summary=f"{name}, DJ", role_label="DJ"),
        }
    )


def make_research(identity: str, **overrides: Any) -> ResearchResult:
    defaults: dict[str, Any] = {
        "canonical_identity": identity,
        "nationality": "French",
        "origin": "Paris, France",
        "labels": ["Ed Banger"],
        "style": "filtered house",
        "bio": "A producer from Paris.",
    }
    defaults.update(overrides)
    return ResearchResult(**defaults)


class FakeClock:
    """Manually advanced UTC clock for stores that take a ``clock``."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)  # noqa: UP017

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


async def no_sleep(_seconds: float) -> None:
    return None


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Fully configured settings with every store under *tmp_path*."""
    return Settings(
        _env_file=None,
        anthropic_api_key="sk-ant-test",
        spotify_client_id="client-1",
        spotify_client_secret="secret-1",
        spotify_playlist_id="playlist-1",
        brave_api_key="brave-1",
        wordpress_url="https://catalog.example.com",
        wordpress_api_key="wp-key",
        research_queue_db_path=str(tmp_path / "queue.db"),
        sync_lock_db_path=str(tmp_path / "lock.db"),
        status_db_path=str(tmp_path / "status.db"),
        spotify_snapshot_path=str(tmp_path / "snapshot.json"),
        artist_delay_seconds=0,
        search_delay_seconds=0,
        social_lookup_delay_seconds=0,
        spotify_call_delay_seconds=0,
        wordpress_page_delay_seconds=0,
        publish_step_delay_seconds=0,
    )


# ---------------------------------------------------------------------------
# SQLite-backed stores
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def queue(tmp_path: Path, clock: FakeClock) -> ResearchQueue:
    store = ResearchQueue(db_path=tmp_path / "queue.db", clock=clock)
    await store.initialize()
    return store


@pytest_asyncio.fixture
async def sync_lock(tmp_path: Path, clock: FakeClock) -> SyncLock:
    lock = SyncLock(db_path=tmp_path / "lock.db", max_age_seconds=600, clock=clock)
    await lock.initialize()
    return lock


@pytest_asyncio.fixture
async def status_store(tmp_path: Path) -> StatusStore:
    store = StatusStore(db_path=tmp_path / "status.db")
    await store.initialize()
    return store


# ---------------------------------------------------------------------------
# Mock collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_upstream() -> MagicMock:
    upstream = MagicMock(spec=IUpstreamCatalogProvider)
    upstream.fetch_candidates = AsyncMock(return_value=[])
    upstream.get_provider_name.return_value = "spotify"
    upstream.is_available.return_value = True
    return upstream


@pytest.fixture
def mock_published() -> MagicMock:
    published = MagicMock(spec=IPublishedCatalogProvider)
    published.fetch_published = AsyncMock(return_value=[])
    published.find_by_identity = AsyncMock(return_value=[])
    published.get_provider_name.return_value = "wordpress"
    published.is_available.return_value = True
    return published


@pytest.fixture
def mock_synthesizer() -> MagicMock:
    synthesizer = MagicMock(spec=ISynthesisProvider)
    synthesizer.synthesize = AsyncMock(side_effect=lambda candidate, _results: make_research(candidate.canonical_identity))
    synthesizer.get_provider_name.return_value = "llm_synthesis:mock"
    synthesizer.is_available.return_value = True
    return synthesizer


@pytest.fixture
def mock_content_generator() -> MagicMock:
    generator = MagicMock(spec=IContentGenerator)
    generator.generate = AsyncMock(side_effect=lambda candidate, _text: make_content(candidate.display_name))
    generator.get_provider_name.return_value = "llm_content:mock"
    generator.is_available.return_value = True
    return generator


@pytest.fixture
def mock_image_provider() -> MagicMock:
    images = MagicMock(spec=IImageProvider)
    images.transfer = AsyncMock(return_value=501)
    images.find_existing = AsyncMock(return_value=None)
    images.get_provider_name.return_value = "wordpress_media"
    images.is_available.return_value = True
    return images


@pytest.fixture
def mock_publisher() -> MagicMock:
    publisher = MagicMock(spec=IPublisher)
    counter = {"next": 1000}

    async def _publish(candidate, content, media_id, social_links):  # noqa: ANN001, ANN202
        pages = {}
        for locale in ("en", "fr"):
            counter["next"] += 1
            pages[locale] = PageRef(
                locale=locale,
                page_id=counter["next"],
                url=f"https://catalog.example.com/{locale}/{candidate.canonical_identity}",
            )
        return pages

    publisher.publish = AsyncMock(side_effect=_publish)
    publisher.get_provider_name.return_value = "wordpress"
    publisher.is_available.return_value = True
    return publisher


@pytest.fixture
def mock_search_provider() -> MagicMock:
    provider = MagicMock(spec=IWebSearchProvider)
    provider.search = AsyncMock(
        return_value=[
            SearchResult(
                title="Artist biography",
                url="https://example.com/bio",
                description="A producer from Paris signed to Ed Banger.",
            )
        ]
    )
    provider.get_provider_name.return_value = "brave"
    provider.is_available.return_value = True
    return provider


@pytest.fixture
def mock_llm() -> MagicMock:
    llm = MagicMock(spec=ILLMProvider)
    llm.complete = AsyncMock(return_value="{}")
    llm.get_provider_name.return_value = "mock-llm"
    llm.is_available.return_value = True
    llm.validate_credentials = AsyncMock(return_value=True)
    return llm
