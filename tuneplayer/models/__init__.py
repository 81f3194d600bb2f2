# tuneplayer/models/__init__.py

# Keep enums here (no ORM loading), safe to import early.
from .enums import (
    PlaybackSource, RepeatMode, PlayerStatus, FailureReason,
    MessageType, PlayerEvent, REPEAT_CYCLE,
)
from .track import Track

# Re-export the ORM model so callers can do: from tuneplayer.models import PlayerStateEntry
from .dbmodels import PlayerStateEntry

__all__ = [
    # enums
    "PlaybackSource", "RepeatMode", "PlayerStatus", "FailureReason",
    "MessageType", "PlayerEvent", "REPEAT_CYCLE",
    # in-memory data
    "Track",
    # persistence
    "PlayerStateEntry",
]
