from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, UTC
from typing import Mapping, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from tuneplayer.config.playback import DEFAULT_VOLUME, clamp_volume
from tuneplayer.models.dbmodels import PlayerStateEntry
from tuneplayer.models.enum_utils import normalize_repeat, normalize_source
from tuneplayer.models.enums import PlaybackSource
from tuneplayer.state.playback_state import PlaybackState

logger = logging.getLogger(__name__)

# Storage keys, one scalar or small JSON payload each
KEY_INDEX = "currentTrackIndex"
KEY_PLAYING = "isPlaying"
KEY_VOLUME = "volume"
KEY_SHUFFLE = "isShuffleOn"
KEY_REPEAT = "repeatMode"
KEY_QUEUE = "shuffleQueue"
KEY_SOURCE = "playbackSource"
KEY_TRACK = "currentTrack"
KEY_TIME = "currentTime"

STORAGE_KEYS = (
    KEY_INDEX, KEY_PLAYING, KEY_VOLUME, KEY_SHUFFLE, KEY_REPEAT,
    KEY_QUEUE, KEY_SOURCE, KEY_TRACK, KEY_TIME,
)


class StateStore(ABC):
    """Flat key -> string store shared by every player instance."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]: ...

    @abstractmethod
    def set_many(self, values: Mapping[str, str]) -> None: ...

    @abstractmethod
    def remove(self, key: str) -> None: ...

    def set(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def read_all(self) -> dict[str, str]:
        out = {}
        for key in STORAGE_KEYS:
            value = self.get(key)
            if value is not None:
                out[key] = value
        return out


class MemoryStateStore(StateStore):
    def __init__(self, initial: Mapping[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_many(self, values: Mapping[str, str]) -> None:
        self._data.update(values)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class SqlStateStore(StateStore):
    """Persists entries in the player_state_entry table."""

    def __init__(self, engine: Engine | None = None):
        if engine is None:
            from tuneplayer.database import engine as default_engine
            engine = default_engine
        self._engine = engine

    def get(self, key: str) -> Optional[str]:
        with Session(self._engine) as session:
            row = session.get(PlayerStateEntry, key)
            return row.value if row else None

    def read_all(self) -> dict[str, str]:
        with Session(self._engine) as session:
            rows = session.exec(
                select(PlayerStateEntry).where(PlayerStateEntry.key.in_(STORAGE_KEYS))
            ).all()
            return {row.key: row.value for row in rows}

    def set_many(self, values: Mapping[str, str]) -> None:
        now = datetime.now(UTC)
        with Session(self._engine) as session:
            for key, value in values.items():
                row = session.get(PlayerStateEntry, key)
                if row is None:
                    row = PlayerStateEntry(key=key, value=value, updated_at=now)
                else:
                    row.value = value
                    row.updated_at = now
                session.add(row)
            session.commit()

    def remove(self, key: str) -> None:
        with Session(self._engine) as session:
            row = session.get(PlayerStateEntry, key)
            if row is not None:
                session.delete(row)
                session.commit()


# ─────────────────────────────────────────────
# PlaybackState <-> storage entries
# ─────────────────────────────────────────────
def dump_state(state: PlaybackState) -> dict[str, str]:
    entries = {
        KEY_INDEX: str(state.current_index),
        KEY_PLAYING: json.dumps(state.is_playing),
        KEY_VOLUME: repr(float(state.volume)),
        KEY_SHUFFLE: json.dumps(state.shuffle),
        KEY_REPEAT: state.repeat.value,
        KEY_QUEUE: json.dumps(list(state.shuffle_queue)),
        KEY_SOURCE: state.source.value,
        KEY_TIME: repr(float(state.current_time)),
    }
    # an empty key means "nothing loaded yet"
    entries[KEY_TRACK] = state.current_track_key or ""
    return entries


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in ("true", "1", "yes", "on")


def load_state(entries: Mapping[str, str]) -> PlaybackState:
    """
    Build a PlaybackState from stored entries.
    Missing keys keep their defaults; garbled ones are logged and ignored.
    """
    state = PlaybackState()

    raw = entries.get(KEY_INDEX)
    if raw is not None:
        try:
            state.current_index = max(0, int(raw))
        except ValueError:
            logger.warning("Ignoring stored %s=%r", KEY_INDEX, raw)

    raw = entries.get(KEY_PLAYING)
    if raw is not None:
        state.is_playing = _parse_bool(raw)

    raw = entries.get(KEY_VOLUME)
    if raw is not None:
        try:
            state.volume = clamp_volume(float(raw))
        except ValueError:
            logger.warning("Ignoring stored %s=%r", KEY_VOLUME, raw)
            state.volume = DEFAULT_VOLUME

    raw = entries.get(KEY_SHUFFLE)
    if raw is not None:
        state.shuffle = _parse_bool(raw)

    raw = entries.get(KEY_REPEAT)
    if raw is not None:
        state.repeat = normalize_repeat(raw)

    raw = entries.get(KEY_QUEUE)
    if raw:
        try:
            queue = json.loads(raw)
            if isinstance(queue, list) and all(isinstance(i, int) for i in queue):
                state.shuffle_queue = queue
            else:
                logger.warning("Ignoring stored %s=%r", KEY_QUEUE, raw)
        except ValueError:
            logger.warning("Ignoring stored %s=%r", KEY_QUEUE, raw)

    raw = entries.get(KEY_SOURCE)
    if raw is not None:
        state.source = normalize_source(raw) or PlaybackSource.ALL

    state.current_track_key = entries.get(KEY_TRACK) or None

    raw = entries.get(KEY_TIME)
    if raw is not None:
        try:
            state.current_time = max(0.0, float(raw))
        except ValueError:
            logger.warning("Ignoring stored %s=%r", KEY_TIME, raw)

    return state
