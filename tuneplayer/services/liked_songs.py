from __future__ import annotations

import logging
from typing import Optional

from tuneplayer.config import LIKE_TIMEOUT_SECONDS, USER_ID
from tuneplayer.models.enums import PlaybackSource
from tuneplayer.models.track import Track
from tuneplayer.services.backend_api import BackendApi, BackendError
from tuneplayer.services.track_library import TrackLibrary

logger = logging.getLogger(__name__)


class LikeSyncError(Exception):
    """The like/unlike could not be confirmed by the backend (local change reverted)."""


class LikedSongs:
    """Owns the set of liked track ids for the signed-in user."""

    def __init__(
        self,
        api: BackendApi,
        *,
        user_id: Optional[str] = USER_ID or None,
        library: Optional[TrackLibrary] = None,
    ):
        self.api = api
        self.user_id = user_id
        self.library = library
        self._liked: set[str] = set()

    @staticmethod
    def _key(track_id) -> str:
        return str(track_id)

    @property
    def count(self) -> int:
        return len(self._liked)

    def is_liked(self, track_id) -> bool:
        return self._key(track_id) in self._liked

    async def refresh(self, *, keep_on_error: bool = False) -> set[str]:
        """Reload liked ids from the backend; a failure leaves an empty set unless keep_on_error."""
        if not self.user_id:
            self._liked = set()
            return self._liked
        try:
            records = await self.api.get_json("/liked-songs", params={"userId": self.user_id})
        except BackendError as exc:
            logger.warning("Error loading liked songs: %s", exc)
            if not keep_on_error:
                self._liked = set()
            return self._liked

        if isinstance(records, dict):
            records = records.get("tracks") or records.get("data") or []
        self._liked = {
            self._key(r["id"]) for r in records or [] if isinstance(r, dict) and r.get("id") is not None
        }
        logger.info("Loaded %d liked songs", len(self._liked))
        return self._liked

    async def toggle(self, track: Track) -> bool:
        """
        Optimistically flip the liked flag, then confirm with the backend.
        Returns the new flag; raises LikeSyncError after reverting on failure.
        """
        if not self.user_id:
            raise LikeSyncError("User must be logged in to like songs")

        key = self._key(track.id)
        original = set(self._liked)
        was_liked = key in self._liked
        if was_liked:
            self._liked.discard(key)
        else:
            self._liked.add(key)

        if track.is_external:
            endpoint = f"/external-tracks/{track.id}/like"
        else:
            endpoint = f"/tracks/{track.id}/like"

        body: dict = {"userId": self.user_id}
        if track.is_external:
            # the backend may not know this track yet
            body["trackData"] = track.to_dict()

        try:
            # the endpoint flips the flag, so a retried POST could undo it
            await self.api.post_json(endpoint, body, timeout=LIKE_TIMEOUT_SECONDS, retry=False)
        except BackendError as exc:
            self._liked = original
            logger.warning("Failed to sync like status for %s: %s", key, exc)
            raise LikeSyncError(str(exc)) from exc

        logger.info("%s track %s", "Unliked" if was_liked else "Liked", key)
        if self.library is not None:
            self.library.invalidate(PlaybackSource.LIKED)
        await self.refresh(keep_on_error=True)
        return self.is_liked(key)
