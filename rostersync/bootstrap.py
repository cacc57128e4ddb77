"""Object-graph assembly shared by the API server and the CLI.

:func:`build_components` constructs every provider and service from
``Settings`` and the YAML config, so a sync started from cron and one
started over HTTP run exactly the same collaborators.
"""

from __future__ import annotations

from typing import Any

import httpx

from rostersync.config.settings import Settings
from rostersync.interfaces.web_search_provider import IWebSearchProvider
from rostersync.pipeline.orchestrator import SyncOrchestrator
from rostersync.pipeline.progress_tracker import ProgressTracker
from rostersync.pipeline.status_store import StatusStore
from rostersync.providers.cache.memory_cache import MemoryCacheProvider
from rostersync.providers.catalog.snapshot_provider import SnapshotCatalogProvider
from rostersync.providers.catalog.spotify_provider import SpotifyCatalogProvider
from rostersync.providers.catalog.wordpress_catalog_provider import WordPressCatalogProvider
from rostersync.providers.llm.anthropic_provider import AnthropicLLMProvider
from rostersync.providers.search.brave_provider import BraveSearchProvider
from rostersync.providers.search.duckduckgo_provider import DuckDuckGoSearchProvider
from rostersync.providers.wordpress.client import WordPressClient
from rostersync.providers.wordpress.image_provider import WordPressImageProvider
from rostersync.providers.wordpress.publisher import WordPressPublisher
from rostersync.services.content_generator import LLMContentGenerator
from rostersync.services.duplicate_audit import DuplicateAuditService
from rostersync.services.research_queue import ResearchQueue
from rostersync.services.research_synthesizer import LLMResearchSynthesizer
from rostersync.services.social_links import SocialLinksService
from rostersync.services.sync_lock import SyncLock
from rostersync.services.web_search_service import WebSearchService
from rostersync.utils.identity import IdentityResolver
from rostersync.utils.rate_limiter import RetryPolicy, Throttle


def build_components(
    app_settings: Settings,
    app_config: dict[str, Any],
    http_client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    """Construct every provider and service instance.

    Parameters
    ----------
    app_settings:
        Credentials, storage paths and delays.
    app_config:
        Resolved configuration from :func:`load_config`.
    http_client:
        Shared HTTP client; a new one is created when omitted.  The caller
        owns it and must close it.

    Returns
    -------
    dict
        Named components, stored on ``app.state`` by the API and used
        directly by the CLI.
    """
    http_client = http_client or httpx.AsyncClient(timeout=30.0)
    retry_policy = RetryPolicy(
        max_retries=app_settings.rate_limit_max_retries,
        base_backoff_seconds=app_settings.rate_limit_base_backoff_seconds,
    )
    resolver = IdentityResolver(ampersand=app_settings.identity_ampersand)

    publishing_cfg = app_config.get("publishing", {})
    research_cfg = app_config.get("research", {})
    content_cfg = app_config.get("content", {})
    locales: dict[str, dict[str, str]] = publishing_cfg.get("locales", {})

    # -- Upstream roster --
    spotify = SpotifyCatalogProvider(
        http_client=http_client,
        credentials=app_settings.get_spotify_credentials(),
        playlist_id=app_settings.spotify_playlist_id,
        snapshot_path=app_settings.spotify_snapshot_path,
        throttle=Throttle(app_settings.spotify_call_delay_seconds),
        retry_policy=retry_policy,
    )
    snapshot = SnapshotCatalogProvider(snapshot_path=app_settings.spotify_snapshot_path)

    # -- Published catalog --
    wordpress = WordPressClient(
        http_client=http_client,
        base_url=app_settings.wordpress_url,
        api_key=app_settings.wordpress_api_key,
        post_type=publishing_cfg.get("post_type", "artist"),
        retry_policy=retry_policy,
    )
    catalog = WordPressCatalogProvider(
        client=wordpress,
        page_throttle=Throttle(app_settings.wordpress_page_delay_seconds),
    )
    publisher = WordPressPublisher(
        client=wordpress,
        locales=locales,
        throttle=Throttle(app_settings.publish_step_delay_seconds),
    )
    image_provider = WordPressImageProvider(client=wordpress)

    # -- Research --
    search_providers: list[IWebSearchProvider] = []
    if app_settings.get_brave_api_keys():
        search_providers.append(
            BraveSearchProvider(
                http_client=http_client,
                api_keys=app_settings.get_brave_api_keys(),
                retry_policy=retry_policy,
            )
        )
    search_providers.append(DuckDuckGoSearchProvider())

    cache = MemoryCacheProvider()
    web_search = WebSearchService(
        providers=search_providers,
        throttle=Throttle(app_settings.search_delay_seconds),
        cache=cache,
        queries=research_cfg.get("queries"),
        results_per_query=research_cfg.get("results_per_query", 5),
    )
    social_links = SocialLinksService(
        web_search=web_search,
        platforms=app_config.get("social", {}).get("platforms"),
        throttle=Throttle(app_settings.social_lookup_delay_seconds),
    )

    llm = AnthropicLLMProvider(settings=app_settings)
    synthesizer = LLMResearchSynthesizer(llm=llm)
    content_generator = LLMContentGenerator(
        llm=llm,
        locales=locales,
        label_name=content_cfg.get("label_name", "the label"),
        max_tokens=content_cfg.get("max_tokens", 2500),
    )

    # -- Stores --
    research_queue = ResearchQueue(db_path=app_settings.research_queue_db_path)
    sync_lock = SyncLock(
        db_path=app_settings.sync_lock_db_path,
        max_age_seconds=app_settings.lock_max_age_seconds,
    )
    status_store = StatusStore(db_path=app_settings.status_db_path)
    progress_tracker = ProgressTracker()

    orchestrator = SyncOrchestrator(
        upstream=spotify,
        published=catalog,
        queue=research_queue,
        lock=sync_lock,
        web_search=web_search,
        synthesizer=synthesizer,
        social_links=social_links,
        content_generator=content_generator,
        image_provider=image_provider,
        publisher=publisher,
        status_store=status_store,
        progress_tracker=progress_tracker,
        snapshot_upstream=snapshot,
        resolver=resolver,
        excluded_artists=app_config.get("upstream", {}).get("excluded_artists") or [],
        artist_delay_seconds=app_settings.artist_delay_seconds,
    )
    duplicate_audit = DuplicateAuditService(
        published=catalog,
        resolver=resolver,
        near_duplicate_threshold=app_config.get("audit", {}).get("near_duplicate_threshold", 0.9),
    )

    # -- Provider registry for /health --
    provider_registry: dict[str, bool] = {
        "spotify": spotify.is_available(),
        "spotify_snapshot": snapshot.is_available(),
        "wordpress": catalog.is_available(),
        "llm": llm.is_available(),
        "search": web_search.is_available(),
    }

    return {
        "settings": app_settings,
        "http_client": http_client,
        "orchestrator": orchestrator,
        "research_queue": research_queue,
        "sync_lock": sync_lock,
        "status_store": status_store,
        "progress_tracker": progress_tracker,
        "duplicate_audit": duplicate_audit,
        "provider_registry": provider_registry,
    }


async def initialize_stores(components: dict[str, Any]) -> None:
    """Create the SQLite tables used by the queue, the lock and the status store."""
    await components["research_queue"].initialize()
    await components["sync_lock"].initialize()
    await components["status_store"].initialize()


