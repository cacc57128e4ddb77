"""Upstream catalog provider backed by the last Spotify snapshot file.

Lets operators re-run a sync without spending Spotify quota: the snapshot
is whatever :class:`SpotifyCatalogProvider` wrote after its last
successful fetch.
"""

from __future__ import annotations

import json
from pathlib import Path

import structlog
from pydantic import ValidationError

from rostersync.interfaces.catalog_provider import IUpstreamCatalogProvider
from rostersync.models.artist import ArtistCandidate
from rostersync.utils.errors import ConfigurationError, ParseError

logger = structlog.get_logger(logger_name=__name__)


class SnapshotCatalogProvider(IUpstreamCatalogProvider):
    """Reads :class:`ArtistCandidate` entries from a JSON snapshot."""

    def __init__(self, snapshot_path: str | Path) -> None:
        self._path = Path(snapshot_path)

    async def fetch_candidates(self) -> list[ArtistCandidate]:
        if not self._path.exists():
            raise ConfigurationError(
                message=f"No upstream snapshot at {self._path}; run a live sync first",
                provider_name=self.get_provider_name(),
            )
        try:
            document = json.loads(self._path.read_text(encoding="utf-8"))
            artists = document["artists"] if isinstance(document, dict) else document
            candidates = [ArtistCandidate.model_validate(item) for item in artists]
        except (ValueError, KeyError, TypeError, ValidationError) as exc:
            raise ParseError(
                message=f"Unreadable upstream snapshot {self._path}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("snapshot_loaded", path=str(self._path), artists=len(candidates))
        return candidates

    def get_provider_name(self) -> str:
        return "spotify_snapshot"

    def is_available(self) -> bool:
        return self._path.exists()
