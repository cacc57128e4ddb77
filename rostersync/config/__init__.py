"""Configuration module: exports Settings and load_config."""

from rostersync.config.loader import load_config
from rostersync.config.settings import Settings

__all__ = ["Settings", "load_config"]
