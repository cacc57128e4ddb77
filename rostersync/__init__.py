"""rostersync: keeps a WordPress artist catalog in sync with a Spotify roster."""

__version__ = "0.1.0"
