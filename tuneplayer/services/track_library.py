from __future__ import annotations

import logging
from typing import Any, Optional

from tuneplayer.config import AUDIO_BASE_URL, USER_ID
from tuneplayer.models.enum_utils import normalize_source
from tuneplayer.models.enums import PlaybackSource
from tuneplayer.models.track import Track
from tuneplayer.services.backend_api import BackendApi, BackendError

logger = logging.getLogger(__name__)


class TrackLibrary:
    """
    Fetches and caches the two playable collections.
    Lists are fetched once per source and kept for the life of the instance;
    a failed fetch yields an empty list and is not cached.
    """

    def __init__(
        self,
        api: BackendApi,
        *,
        audio_base_url: str = AUDIO_BASE_URL,
        user_id: Optional[str] = USER_ID or None,
    ):
        self.api = api
        self.audio_base_url = audio_base_url
        self.user_id = user_id
        self._cache: dict[PlaybackSource, list[Track]] = {}

    def cached(self, source) -> Optional[list[Track]]:
        src = normalize_source(source)
        return self._cache.get(src) if src else None

    def invalidate(self, source=None) -> None:
        if source is None:
            self._cache.clear()
            return
        src = normalize_source(source)
        if src:
            self._cache.pop(src, None)

    async def load(self, source) -> list[Track]:
        src = normalize_source(source)
        if src is None:
            logger.warning("Unknown track source %r, nothing loaded", source)
            return []

        if src in self._cache:
            return self._cache[src]

        try:
            records = await self._fetch(src)
        except BackendError as exc:
            logger.warning("Could not load %s tracks: %s", src.value, exc)
            return []

        tracks = self._parse(records, src)
        self._cache[src] = tracks
        logger.info("Loaded %d %s tracks", len(tracks), src.value)
        return tracks

    async def _fetch(self, source: PlaybackSource) -> Any:
        if source is PlaybackSource.ALL:
            return await self.api.get_json("/tracks")
        if self.user_id:
            return await self.api.get_json("/liked-songs", params={"userId": self.user_id})
        return await self.api.get_json("/users/me/liked-songs")

    def _parse(self, records: Any, source: PlaybackSource) -> list[Track]:
        if isinstance(records, dict):
            # some endpoints wrap the list: {"tracks": [...]} / {"data": [...]}
            records = records.get("tracks") or records.get("data") or []
        if not isinstance(records, list):
            logger.warning("Unexpected %s payload type %s", source.value, type(records).__name__)
            return []

        tracks: list[Track] = []
        for record in records:
            if not isinstance(record, dict):
                continue
            try:
                tracks.append(Track.from_api(record, self.audio_base_url))
            except ValueError as exc:
                logger.warning("Skipping %s track: %s", source.value, exc)
        return tracks
