"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# Values are read from two sources (in priority order):
#
#   1. **Environment variables**, e.g. SPOTIFY_CLIENT_ID=abc123
#   2. **.env file**: key=value lines in the project root .env file
#
# Field ``spotify_client_id`` maps to env var ``SPOTIFY_CLIENT_ID``.
# Empty string = "not configured".  Providers report themselves
# unavailable and the orchestrator refuses to start a run.
#
# Quota-limited providers accept a second credential set
# (``*_2`` fields); both are pooled and rotated by the RateLimiter.
# ──────────────────────────────────────────────────────────────────────
"""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """rostersync application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === LLM ===
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"

    # === Spotify (upstream roster) ===
    spotify_client_id: str = ""
    spotify_client_secret: str = ""
    spotify_client_id_2: str = ""
    spotify_client_secret_2: str = ""
    spotify_playlist_id: str = ""

    # === Web Search ===
    brave_api_key: str = ""
    brave_api_key_2: str = ""

    # === WordPress (published catalog) ===
    wordpress_url: str = ""
    wordpress_api_key: str = ""

    # === Storage ===
    research_queue_db_path: str = "data/research_queue.db"
    sync_lock_db_path: str = "data/sync_lock.db"
    status_db_path: str = "data/sync_status.db"
    spotify_snapshot_path: str = "data/spotify_snapshot.json"

    # === Sync policy ===
    lock_max_age_seconds: float = 3600.0
    rate_limit_max_retries: int = 3
    rate_limit_base_backoff_seconds: float = 1.0
    identity_ampersand: Literal["dash", "and"] = "dash"

    # === Delays (seconds) ===
    artist_delay_seconds: float = 2.0
    search_delay_seconds: float = 1.5
    social_lookup_delay_seconds: float = 3.0
    spotify_call_delay_seconds: float = 3.0
    wordpress_page_delay_seconds: float = 5.0
    publish_step_delay_seconds: float = 2.0

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    def get_spotify_credentials(self) -> list[tuple[str, str]]:
        """Return every complete ``(client_id, client_secret)`` pair."""
        pairs = [
            (self.spotify_client_id, self.spotify_client_secret),
            (self.spotify_client_id_2, self.spotify_client_secret_2),
        ]
        return [(cid, secret) for cid, secret in pairs if cid and secret]

    def get_brave_api_keys(self) -> list[str]:
        """Return the configured Brave Search API keys, primary first."""
        return [key for key in (self.brave_api_key, self.brave_api_key_2) if key]

    def missing_sync_requirements(self) -> list[str]:
        """Return the env var names a full sync run needs but lacks."""
        missing: list[str] = []
        if not self.get_spotify_credentials():
            missing.append("SPOTIFY_CLIENT_ID/SPOTIFY_CLIENT_SECRET")
        if not self.spotify_playlist_id:
            missing.append("SPOTIFY_PLAYLIST_ID")
        if not self.wordpress_url:
            missing.append("WORDPRESS_URL")
        if not self.wordpress_api_key:
            missing.append("WORDPRESS_API_KEY")
        if not self.anthropic_api_key:
            missing.append("ANTHROPIC_API_KEY")
        return missing
