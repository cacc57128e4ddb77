"""Tests for component assembly and configuration loading."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from rostersync.bootstrap import build_components, initialize_stores
from rostersync.config.loader import load_config
from rostersync.config.settings import Settings
from rostersync.pipeline.orchestrator import SyncOrchestrator
from rostersync.services.research_queue import ResearchQueue
from rostersync.services.sync_lock import SyncLock


class TestLoadConfig:
    def test_reads_yaml_and_applies_env_overrides(self, settings: Settings, project_root: Path) -> None:
        config = load_config(str(project_root / "config" / "config.yaml"), settings=settings)
        assert list(config["publishing"]["locales"]) == ["en", "fr"]
        assert config["sync"]["artist_delay_seconds"] == 0
        assert config["rate_limit"]["max_retries"] == settings.rate_limit_max_retries

    def test_missing_file_uses_default_locales(self, settings: Settings, tmp_path: Path) -> None:
        config = load_config(str(tmp_path / "absent.yaml"), settings=settings)
        assert config["publishing"]["locales"]["fr"]["url_prefix"] == "fr/artistes"


class TestSettings:
    def test_credentials_skip_incomplete_pairs(self, settings: Settings) -> None:
        configured = settings.model_copy(update={"spotify_client_id_2": "client-2", "spotify_client_secret_2": ""})
        assert configured.get_spotify_credentials() == [("client-1", "secret-1")]

    def test_brave_keys_in_priority_order(self, settings: Settings) -> None:
        assert settings.model_copy(update={"brave_api_key_2": "brave-2"}).get_brave_api_keys() == [
            "brave-1",
            "brave-2",
        ]

    def test_missing_requirements(self, settings: Settings) -> None:
        assert settings.missing_sync_requirements() == []
        bare = settings.model_copy(update={"spotify_playlist_id": "", "anthropic_api_key": ""})
        assert bare.missing_sync_requirements() == ["SPOTIFY_PLAYLIST_ID", "ANTHROPIC_API_KEY"]


class TestBuildComponents:
    @pytest.mark.asyncio
    async def test_wires_every_component(self, settings: Settings, project_root: Path) -> None:
        config = load_config(str(project_root / "config" / "config.yaml"), settings=settings)
        async with httpx.AsyncClient() as http_client:
            components = build_components(settings, config, http_client=http_client)
            await initialize_stores(components)

            assert components["http_client"] is http_client
            assert isinstance(components["orchestrator"], SyncOrchestrator)
            assert isinstance(components["research_queue"], ResearchQueue)
            assert isinstance(components["sync_lock"], SyncLock)
            assert components["orchestrator"].progress_tracker is components["progress_tracker"]
            components["orchestrator"].check_ready()

            assert components["provider_registry"] == {
                "spotify": True,
                "spotify_snapshot": False,
                "wordpress": True,
                "llm": True,
                "search": True,
            }
            assert Path(settings.research_queue_db_path).exists()
            assert Path(settings.sync_lock_db_path).exists()
            assert await components["sync_lock"].is_locked() is False

    @pytest.mark.asyncio
    async def test_unconfigured_providers_reported(self, settings: Settings) -> None:
        bare = settings.model_copy(
            update={"spotify_client_id": "", "wordpress_url": "", "anthropic_api_key": "", "brave_api_key": ""}
        )
        async with httpx.AsyncClient() as http_client:
            components = build_components(bare, {}, http_client=http_client)

        registry = components["provider_registry"]
        assert registry["spotify"] is False
        assert registry["wordpress"] is False
        assert registry["llm"] is False
        # DuckDuckGo needs no key.
        assert registry["search"] is True
