"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY ──────────────────────────────────────────
#
# Configuration is loaded in layers (later layers override earlier):
#
#   1. config/config.yaml  static structure checked into the repo
#                            (publishing locales, search query templates,
#                            social platforms)
#   2. .env file           local credentials (not committed)
#   3. Environment vars    set by the deployment / cron host
#
# Structured data that does not fit a flat env var (the locale table,
# query templates) lives only in YAML.  Scalars that operators tune per
# environment (delays, lock age) come from Settings and win on overlap.
# ──────────────────────────────────────────────────────────────────────
"""

from pathlib import Path
from typing import Any

import yaml

from rostersync.config.settings import Settings

_DEFAULT_LOCALES: dict[str, dict[str, str]] = {
    "en": {"url_prefix": "artists", "role_label": "DJ & Producer"},
    "fr": {"url_prefix": "fr/artistes", "role_label": "DJ & Producteur"},
}


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict[str, Any]:
    """Load YAML config and merge with environment-based Settings.

    Environment variables (via Settings) override YAML values where keys overlap.

    Args:
        path: Path to the YAML configuration file.
        settings: Settings to merge; a fresh ``Settings()`` when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    yaml_config.setdefault("publishing", {}).setdefault("locales", _DEFAULT_LOCALES)

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "sync": {
            "lock_max_age_seconds": settings.lock_max_age_seconds,
            "artist_delay_seconds": settings.artist_delay_seconds,
            "identity_ampersand": settings.identity_ampersand,
        },
        "rate_limit": {
            "max_retries": settings.rate_limit_max_retries,
            "base_backoff_seconds": settings.rate_limit_base_backoff_seconds,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
