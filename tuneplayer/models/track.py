# tuneplayer/models/track.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import quote, urljoin

from tuneplayer.config.playback import estimate_duration


def _first(record: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = record.get(key)
        if value not in (None, ""):
            return value
    return None


def _artist_name(record: dict[str, Any]) -> str:
    artist = record.get("artist")
    if isinstance(artist, dict):
        artist = artist.get("name") or artist.get("artist_name")
    if not artist:
        artist = record.get("artist_name")
    if not artist and isinstance(record.get("user"), dict):
        # third-party catalogs report the uploader as the artist
        artist = record["user"].get("name")
    return str(artist) if artist else "Unknown Artist"


def _absolute(url: str, audio_base_url: str) -> str:
    if url.startswith(("http://", "https://", "data:", "blob:")):
        return url
    return urljoin(audio_base_url.rstrip("/") + "/", url.lstrip("/"))


@dataclass(frozen=True)
class Track:
    id: int | str
    title: str
    artist: str
    album: str
    duration: float
    audio_url: str
    artwork_url: Optional[str] = None
    play_count: Optional[int] = None
    filename: Optional[str] = None

    @property
    def key(self) -> str:
        """Identifier persisted as the "current track" value."""
        return self.filename or str(self.id)

    @property
    def is_external(self) -> bool:
        return isinstance(self.id, str) and not self.id.strip().isdigit()

    @classmethod
    def from_api(cls, record: dict[str, Any], audio_base_url: str) -> "Track":
        track_id = _first(record, "id", "track_id", "trackId")
        if track_id is None:
            raise ValueError("track record has no id")

        filename = _first(record, "filename", "file")
        url = _first(record, "audioUrl", "audio_url", "src", "stream_url", "url")
        if url:
            audio_url = _absolute(str(url), audio_base_url)
        elif filename:
            audio_url = f"{audio_base_url.rstrip('/')}/tracks/{quote(str(filename))}"
        else:
            raise ValueError(f"track {track_id!r} has no playable source")

        artwork = _first(record, "artwork", "artworkUrl", "artwork_url", "coverImage", "image")
        if isinstance(artwork, dict):
            # {"150x150": url, "480x480": url, ...}
            artwork = next(iter(artwork.values()), None)

        play_count = _first(record, "playCount", "play_count", "plays")
        try:
            play_count = int(play_count) if play_count is not None else None
        except (TypeError, ValueError):
            play_count = None

        return cls(
            id=track_id,
            title=str(_first(record, "title", "name") or "Untitled"),
            artist=_artist_name(record),
            album=str(_first(record, "album", "album_name") or ""),
            duration=estimate_duration(record.get("duration")),
            audio_url=audio_url,
            artwork_url=str(artwork) if artwork else None,
            play_count=play_count,
            filename=str(filename) if filename else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "artist": self.artist,
            "album": self.album,
            "duration": self.duration,
            "audioUrl": self.audio_url,
            "artwork": self.artwork_url,
            "playCount": self.play_count,
            "filename": self.filename,
        }
