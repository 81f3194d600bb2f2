# tuneplayer/models/enums.py
from __future__ import annotations
from enum import Enum

# --- Which collection drives playback ---
class PlaybackSource(str, Enum):
    ALL   = "all"
    LIKED = "liked"

# --- Repeat behaviour (only NONE / ONE change what plays next) ---
class RepeatMode(str, Enum):
    NONE = "none"
    ONE  = "one"
    ALL  = "all"

# --- Coarse transport state derived from PlaybackState ---
class PlayerStatus(str, Enum):
    STOPPED = "stopped"
    PLAYING = "playing"
    PAUSED  = "paused"

# --- Why the audio layer could not (keep) playing ---
class FailureReason(str, Enum):
    ABORTED          = "aborted"
    NETWORK          = "network"
    DECODE           = "decode"
    UNSUPPORTED      = "unsupported"
    AUTOPLAY_BLOCKED = "autoplay-blocked"

# --- Broadcast channel message kinds ---
class MessageType(str, Enum):
    STATE = "state"
    HELLO = "hello"

# --- Observable controller events ---
class PlayerEvent(str, Enum):
    TRACK_CHANGED          = "track_changed"
    PLAYBACK_STATE_CHANGED = "playback_state_changed"
    VOLUME_CHANGED         = "volume_changed"
    SHUFFLE_CHANGED        = "shuffle_changed"
    REPEAT_CHANGED         = "repeat_changed"
    SOURCE_CHANGED         = "source_changed"
    TIME_UPDATED           = "time_updated"
    FAILURE                = "failure"
    LIKE_CHANGED           = "like_changed"
    TRACKS_LOADED          = "tracks_loaded"

# Order toggle_repeat() walks through
REPEAT_CYCLE: tuple[RepeatMode, ...] = (RepeatMode.NONE, RepeatMode.ALL, RepeatMode.ONE)

__all__ = [
    "PlaybackSource",
    "RepeatMode",
    "PlayerStatus",
    "FailureReason",
    "MessageType",
    "PlayerEvent",
    "REPEAT_CYCLE",
]
