from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Optional

from tuneplayer.config.playback import DEFAULT_VOLUME
from tuneplayer.models.enums import (
    FailureReason,
    PlaybackSource,
    PlayerStatus,
    RepeatMode,
)


@dataclass
class PlaybackState:
    # Core flags
    is_playing: bool = False
    volume: float = DEFAULT_VOLUME

    # Position within the active list
    current_index: int = 0
    current_track_key: Optional[str] = None
    current_time: float = 0.0

    # Queue behaviour
    shuffle: bool = False
    repeat: RepeatMode = RepeatMode.NONE
    source: PlaybackSource = PlaybackSource.ALL
    shuffle_queue: list[int] = field(default_factory=list)

    # Last transport failure (cleared once playback starts again)
    last_failure: Optional[FailureReason] = None

    # Timing
    last_action_ts: float = field(default_factory=time.time)

    @property
    def status(self) -> PlayerStatus:
        if self.is_playing:
            return PlayerStatus.PLAYING
        if self.current_track_key is None:
            return PlayerStatus.STOPPED
        return PlayerStatus.PAUSED

    def touch(self) -> None:
        self.last_action_ts = time.time()

    def snapshot(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "is_playing": self.is_playing,
            "volume": self.volume,
            "current_index": self.current_index,
            "current_track_key": self.current_track_key,
            "current_time": self.current_time,
            "shuffle": self.shuffle,
            "repeat": self.repeat.value,
            "source": self.source.value,
            "shuffle_queue": list(self.shuffle_queue),
            "last_failure": self.last_failure.value if self.last_failure else None,
            "last_action_ts": self.last_action_ts,
        }
