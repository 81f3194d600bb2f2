from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from tuneplayer.config.playback import clamp_volume
from tuneplayer.models.enums import FailureReason

logger = logging.getLogger(__name__)


class PlaybackFailure(Exception):
    """Raised by an AudioOutput when playback cannot start or continue."""

    def __init__(self, reason: FailureReason, message: str = ""):
        super().__init__(message or reason.value)
        self.reason = reason


class AudioOutput(ABC):
    """
    The single audio handle a controller drives.

    play() resolves once playback has actually started, which may be well
    after load() when the source still has to buffer. It raises
    PlaybackFailure instead of resolving when it can't start (blocked
    autoplay, a source swapped out underneath it, a decode error...).
    """

    # Callback slots wired by the controller
    on_ended: Optional[Callable[[], None]] = None
    # receives a FailureReason or a raw media error name
    on_error: Optional[Callable[[Any], None]] = None

    @property
    @abstractmethod
    def src(self) -> Optional[str]: ...

    @property
    @abstractmethod
    def ready(self) -> bool: ...

    @property
    @abstractmethod
    def paused(self) -> bool: ...

    @property
    @abstractmethod
    def duration(self) -> Optional[float]: ...

    @property
    @abstractmethod
    def current_time(self) -> float: ...

    @current_time.setter
    @abstractmethod
    def current_time(self, seconds: float) -> None: ...

    @property
    @abstractmethod
    def volume(self) -> float: ...

    @volume.setter
    @abstractmethod
    def volume(self, value: float) -> None: ...

    @abstractmethod
    def load(self, url: str, duration: Optional[float] = None) -> None: ...

    @abstractmethod
    async def play(self) -> None: ...

    @abstractmethod
    def pause(self) -> None: ...

    def update(self) -> None:
        """Advance any internal clock; default outputs are push-driven."""

    def _emit_ended(self) -> None:
        if self.on_ended is not None:
            self.on_ended()

    def _emit_error(self, reason) -> None:
        if self.on_error is not None:
            self.on_error(reason)


class SimulatedAudioOutput(AudioOutput):
    """
    Headless, clock-driven output: nothing is decoded, time just passes.
    Lets the controller run as a service (and in tests) with the same
    ready/ended/error life cycle a real element has.
    """

    def __init__(
        self,
        *,
        autoplay_allowed: bool = True,
        clock: Callable[[], float] = time.monotonic,
        buffer_seconds: float = 0.0,
    ):
        self._clock = clock
        self._buffer_seconds = max(0.0, buffer_seconds)
        self._src: Optional[str] = None
        self._duration: Optional[float] = None
        self._volume: float = 1.0
        self._paused: bool = True
        self._offset: float = 0.0
        self._started_at: Optional[float] = None
        self._autoplay_allowed = autoplay_allowed
        self._ready = asyncio.Event()
        self._generation = 0

    # ----------------------------
    # Properties
    # ----------------------------

    @property
    def src(self) -> Optional[str]:
        return self._src

    @property
    def ready(self) -> bool:
        return self._src is not None and self._ready.is_set()

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def duration(self) -> Optional[float]:
        return self._duration

    @property
    def current_time(self) -> float:
        if self._paused or self._started_at is None:
            return self._offset
        elapsed = self._offset + (self._clock() - self._started_at)
        if self._duration is not None:
            return min(elapsed, self._duration)
        return elapsed

    @current_time.setter
    def current_time(self, seconds: float) -> None:
        seconds = max(0.0, float(seconds))
        if self._duration is not None:
            seconds = min(seconds, self._duration)
        self._offset = seconds
        if not self._paused:
            self._started_at = self._clock()

    @property
    def volume(self) -> float:
        return self._volume

    @volume.setter
    def volume(self, value: float) -> None:
        self._volume = clamp_volume(value)

    # ----------------------------
    # Transport
    # ----------------------------

    def load(self, url: str, duration: Optional[float] = None) -> None:
        self.pause()
        self._generation += 1
        self._src = url
        self._duration = duration
        self._offset = 0.0
        self._started_at = None
        self._ready.clear()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._ready.set()
        else:
            # "buffering": ready once the loop comes back round (or after buffer_seconds)
            loop.call_later(self._buffer_seconds, self._mark_ready, self._generation)
        logger.debug("Simulated source loaded: %s (%.1fs)", url, duration or 0.0)

    async def play(self) -> None:
        if self._src is None:
            raise PlaybackFailure(FailureReason.UNSUPPORTED, "no source loaded")
        if not self._autoplay_allowed:
            raise PlaybackFailure(FailureReason.AUTOPLAY_BLOCKED, "user gesture required")

        generation = self._generation
        await self._ready.wait()
        if generation != self._generation:
            raise PlaybackFailure(FailureReason.ABORTED, "source changed before playback started")

        if self._paused:
            self._paused = False
            self._started_at = self._clock()

    def _mark_ready(self, generation: int) -> None:
        if generation == self._generation:
            self._ready.set()

    def pause(self) -> None:
        if not self._paused:
            self._offset = self.current_time
        self._paused = True
        self._started_at = None

    def allow_autoplay(self) -> None:
        """Equivalent of the first user gesture on the page."""
        self._autoplay_allowed = True

    def fail(self, reason) -> None:
        """Report a transport failure, the way a media element fires 'error'."""
        self.pause()
        self._emit_error(reason)

    def update(self) -> None:
        if self._paused or self._duration is None:
            return
        if self.current_time >= self._duration:
            self._offset = self._duration
            self._paused = True
            self._started_at = None
            self._emit_ended()
