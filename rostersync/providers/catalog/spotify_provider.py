"""Upstream catalog provider reading the label roster from a Spotify playlist.

Every artist credited on a playlist track (main and featured) is a roster
candidate.  Flow:

1. Client-credentials token per credential pair (cached until expiry).
2. Page through ``/v1/playlists/{id}/tracks`` collecting artist ids in
   order of first appearance.
3. Fetch artist details in batches via ``/v1/artists?ids=`` (genres,
   popularity, images, profile URL).
4. Write the candidates to the snapshot file read by
   :class:`~rostersync.providers.catalog.snapshot_provider.SnapshotCatalogProvider`.

All calls go through one :class:`RateLimiter` over the credential pool and
one :class:`Throttle` between consecutive API calls.
"""

from __future__ import annotations

import json
import os
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import httpx
import structlog

from rostersync.interfaces.catalog_provider import IUpstreamCatalogProvider
from rostersync.models.artist import ArtistCandidate
from rostersync.utils.errors import ConfigurationError, ParseError
from rostersync.utils.rate_limiter import RateLimiter, RetryPolicy, Throttle

logger = structlog.get_logger(logger_name=__name__)

_TOKEN_URL = "https://accounts.spotify.com/api/token"
_API_BASE = "https://api.spotify.com/v1"

# Batch size for /v1/artists?ids=
_ARTIST_BATCH_SIZE = 20
# Refresh tokens this many seconds before Spotify expires them.
_TOKEN_EXPIRY_MARGIN = 60

Credential = tuple[str, str]


class SpotifyCatalogProvider(IUpstreamCatalogProvider):
    """Reads roster candidates from a Spotify playlist.

    Parameters
    ----------
    http_client:
        Shared ``httpx.AsyncClient``.
    credentials:
        ``(client_id, client_secret)`` pairs, primary first.
    playlist_id:
        The roster playlist.
    snapshot_path:
        Where the fetched candidates are written after a successful fetch.
    throttle:
        Pause between consecutive Spotify API calls.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        credentials: list[Credential],
        playlist_id: str,
        snapshot_path: str | Path,
        throttle: Throttle | None = None,
        retry_policy: RetryPolicy | None = None,
        limiter: RateLimiter[Credential] | None = None,
    ) -> None:
        self._http = http_client
        self._credentials = list(credentials)
        self._playlist_id = playlist_id
        self._snapshot_path = Path(snapshot_path)
        self._throttle = throttle or Throttle(0)
        self._limiter: RateLimiter[Credential] | None = limiter
        if self._limiter is None and self._credentials:
            self._limiter = RateLimiter(
                retry_policy or RetryPolicy(),
                self._credentials,
                provider_name=self.get_provider_name(),
            )
        # client_id -> (access_token, monotonic expiry)
        self._tokens: dict[str, tuple[str, float]] = {}

    # ------------------------------------------------------------------
    # IUpstreamCatalogProvider implementation
    # ------------------------------------------------------------------

    async def fetch_candidates(self) -> list[ArtistCandidate]:
        if self._limiter is None or not self._playlist_id:
            raise ConfigurationError(
                message="Spotify credentials or playlist id missing",
                provider_name=self.get_provider_name(),
            )

        artist_ids = await self._fetch_playlist_artist_ids()
        logger.info("spotify_playlist_read", playlist_id=self._playlist_id, artists=len(artist_ids))

        candidates: list[ArtistCandidate] = []
        for start in range(0, len(artist_ids), _ARTIST_BATCH_SIZE):
            batch = artist_ids[start : start + _ARTIST_BATCH_SIZE]
            candidates.extend(await self._fetch_artist_batch(batch))
            logger.debug(
                "spotify_artist_batch",
                processed=min(start + _ARTIST_BATCH_SIZE, len(artist_ids)),
                total=len(artist_ids),
            )

        self._write_snapshot(candidates)
        return candidates

    def get_provider_name(self) -> str:
        return "spotify"

    def is_available(self) -> bool:
        return bool(self._credentials and self._playlist_id)

    # ------------------------------------------------------------------
    # Spotify calls
    # ------------------------------------------------------------------

    async def _get(self, url: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Authorized GET through the rate limiter; returns the JSON body."""
        assert self._limiter is not None

        async def _send(credential: Credential) -> httpx.Response:
            # A 401 drops the cached token; one retry with a fresh token before the limiter sees it.
            for _ in range(2):
                token_or_failure = await self._access_token(credential)
                if isinstance(token_or_failure, httpx.Response):
                    # Let the limiter rotate away from a credential Spotify refuses.
                    return token_or_failure
                response = await self._http.get(
                    url,
                    params=params,
                    headers={"Authorization": f"Bearer {token_or_failure}"},
                )
                if response.status_code != 401:
                    return response
                self._tokens.pop(credential[0], None)
            return response

        await self._throttle.wait()
        response = await self._limiter.call(_send)
        try:
            payload = response.json()
        except ValueError as exc:
            raise ParseError(
                message=f"Spotify returned invalid JSON for {url}",
                provider_name=self.get_provider_name(),
            ) from exc
        if not isinstance(payload, dict):
            raise ParseError(
                message=f"Spotify returned an unexpected payload for {url}",
                provider_name=self.get_provider_name(),
            )
        return payload

    async def _access_token(self, credential: Credential) -> str | httpx.Response:
        """Return a cached or fresh token, or the failed token response."""
        client_id, client_secret = credential
        cached = self._tokens.get(client_id)
        if cached is not None and cached[1] > time.monotonic():
            return cached[0]

        response = await self._http.post(
            _TOKEN_URL,
            data={"grant_type": "client_credentials"},
            auth=(client_id, client_secret),
        )
        if response.status_code != 200:
            logger.warning("spotify_token_failed", status=response.status_code)
            return response

        try:
            payload = response.json()
        except ValueError as exc:
            raise ParseError(
                message="Spotify token endpoint returned invalid JSON",
                provider_name=self.get_provider_name(),
            ) from exc
        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise ParseError(
                message="Spotify token response has no access_token",
                provider_name=self.get_provider_name(),
            )
        expires_in = int(payload.get("expires_in", 3600))
        self._tokens[client_id] = (token, time.monotonic() + expires_in - _TOKEN_EXPIRY_MARGIN)
        return token

    async def _fetch_playlist_artist_ids(self) -> list[str]:
        seen: set[str] = set()
        artist_ids: list[str] = []
        url: str | None = f"{_API_BASE}/playlists/{self._playlist_id}/tracks"
        params: dict[str, Any] | None = {"limit": 100, "fields": "items(track(artists(id,name))),next"}

        while url:
            page = await self._get(url, params)
            for item in page.get("items") or []:
                track = (item or {}).get("track") or {}
                for artist in track.get("artists") or []:
                    artist_id = artist.get("id")
                    if artist_id and artist_id not in seen:
                        seen.add(artist_id)
                        artist_ids.append(artist_id)
            # ``next`` is a full URL that already carries the query string.
            url = page.get("next")
            params = None
        return artist_ids

    async def _fetch_artist_batch(self, artist_ids: list[str]) -> list[ArtistCandidate]:
        payload = await self._get(f"{_API_BASE}/artists", {"ids": ",".join(artist_ids)})
        candidates: list[ArtistCandidate] = []
        for artist in payload.get("artists") or []:
            if not artist or not artist.get("name"):
                continue
            images = artist.get("images") or []
            candidates.append(
                ArtistCandidate(
                    source_id=artist["id"],
                    display_name=artist["name"],
                    genres=artist.get("genres") or [],
                    popularity=artist.get("popularity") or 0,
                    image_ref=images[0].get("url") if images else None,
                    external_url=(artist.get("external_urls") or {}).get("spotify", ""),
                )
            )
        return candidates

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def _write_snapshot(self, candidates: list[ArtistCandidate]) -> None:
        """Atomically replace the snapshot file with *candidates*."""
        self._snapshot_path.parent.mkdir(parents=True, exist_ok=True)
        document = {
            "fetched_at": datetime.now(tz=timezone.utc).isoformat(),  # noqa: UP017
            "playlist_id": self._playlist_id,
            "artists": [candidate.model_dump(mode="json") for candidate in candidates],
        }
        tmp_path = self._snapshot_path.with_suffix(self._snapshot_path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp_path, self._snapshot_path)
        logger.info("spotify_snapshot_written", path=str(self._snapshot_path), artists=len(candidates))
