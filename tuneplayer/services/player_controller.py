"""
PlaybackController: the single authority over what is playing, from which
list, and what plays next.

Transport starts are asynchronous and may be rejected by the audio layer.
Every load_track / play / pause takes a fresh transport token; when a
pending play() settles with a token that is no longer current, its outcome
is dropped instead of being applied to the (newer) state.
"""
from __future__ import annotations

import asyncio
import logging
import math
import random
from typing import Any, Coroutine, Optional

from tuneplayer.config.playback import (
    RESTART_THRESHOLD_SECONDS,
    SYNC_TOLERANCE_SECONDS,
    DEFAULT_VOLUME,
    clamp_volume,
)
from tuneplayer.models.enum_utils import normalize_failure, normalize_repeat, normalize_source
from tuneplayer.models.enums import (
    REPEAT_CYCLE,
    FailureReason,
    MessageType,
    PlaybackSource,
    PlayerEvent,
    RepeatMode,
)
from tuneplayer.models.track import Track
from tuneplayer.services.audio_output import AudioOutput, PlaybackFailure
from tuneplayer.services.events import EventBus
from tuneplayer.services.liked_songs import LikedSongs, LikeSyncError
from tuneplayer.services.playback_ordering import (
    generate_shuffle_queue,
    next_sequential_index,
    next_shuffle_index,
    previous_sequential_index,
    previous_shuffle_index,
)
from tuneplayer.services.state_store import StateStore, dump_state, load_state
from tuneplayer.services.sync_channel import BroadcastChannel, ChannelMessage
from tuneplayer.services.track_library import TrackLibrary
from tuneplayer.state.playback_state import PlaybackState

logger = logging.getLogger(__name__)


def _is_permutation(queue: Any, length: int) -> bool:
    if not isinstance(queue, list):
        return False
    if not all(isinstance(i, int) and not isinstance(i, bool) for i in queue):
        return False
    return sorted(queue) == list(range(length))


def _find(tracks: list[Track], key: Optional[str]) -> Optional[int]:
    if key is None:
        return None
    for i, track in enumerate(tracks):
        if track.key == key:
            return i
    # callers may also name a track by its backend id
    for i, track in enumerate(tracks):
        if str(track.id) == key:
            return i
    return None


class PlaybackController:
    def __init__(
        self,
        audio: AudioOutput,
        library: TrackLibrary,
        store: StateStore,
        *,
        channel: Optional[BroadcastChannel] = None,
        liked: Optional[LikedSongs] = None,
        events: Optional[EventBus] = None,
        rng: Optional[random.Random] = None,
    ):
        self._audio = audio
        self._library = library
        self._store = store
        self._channel = channel
        self._liked = liked
        self.events = events or EventBus()
        self._rng = rng or random.Random()

        self._state = PlaybackState()
        self._tracks: list[Track] = []
        self._transport_token = 0
        # >0 while restoring or applying remote state; overlapping applies nest
        self._quiet_depth = 0
        self._volume_before_mute: Optional[float] = None
        self._tasks: set[asyncio.Task] = set()

        self._audio.volume = self._state.volume
        self._audio.on_ended = self._on_audio_ended
        self._audio.on_error = self._on_audio_error

        self._unsubscribe_channel = None
        if channel is not None:
            self._unsubscribe_channel = channel.subscribe(self._on_channel_message)

    # ─────────────────────────────────────────────
    # Read-only views
    # ─────────────────────────────────────────────
    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def tracks(self) -> list[Track]:
        return list(self._tracks)

    @property
    def audio(self) -> AudioOutput:
        return self._audio

    @property
    def liked(self) -> Optional[LikedSongs]:
        return self._liked

    @property
    def current_track(self) -> Optional[Track]:
        if self._state.current_track_key is None:
            return None
        idx = self._state.current_index
        if 0 <= idx < len(self._tracks):
            return self._tracks[idx]
        return None

    def snapshot(self) -> dict[str, Any]:
        track = self.current_track
        snap = self._state.snapshot()
        snap["current_time"] = self._elapsed()
        snap["track"] = track.to_dict() if track else None
        snap["duration"] = self._duration()
        snap["track_count"] = len(self._tracks)
        snap["liked"] = bool(track and self._liked and self._liked.is_liked(track.id))
        return snap

    # ─────────────────────────────────────────────
    # Lists
    # ─────────────────────────────────────────────
    async def load_tracks(self, source=None) -> list[Track]:
        """Fetch (or reuse) the list for `source`; defaults to the active source."""
        src = self._state.source if source is None else normalize_source(source)
        if src is None:
            logger.warning("load_tracks: invalid source %r ignored", source)
            return []

        tracks = await self._library.load(src)
        if src is self._state.source:
            self._replace_active(tracks)
        self.events.emit(PlayerEvent.TRACKS_LOADED, {"source": src.value, "count": len(tracks)})
        return tracks

    async def set_playback_source(self, source) -> bool:
        src = normalize_source(source)
        if src is None:
            logger.warning("set_playback_source: invalid source %r, keeping %s",
                           source, self._state.source.value)
            return False

        tracks = await self._library.load(src)
        if src is PlaybackSource.LIKED and not tracks:
            logger.warning("Liked list is empty, falling back to all tracks")
            src = PlaybackSource.ALL
            tracks = await self._library.load(src)

        current = self.current_track
        self._state.source = src
        self._replace_active(tracks, regenerate=False)

        new_index = self._index_of(current.key) if current else None
        if new_index is not None:
            self._state.current_index = new_index
        elif tracks:
            await self.load_track(0)
        else:
            self._state.current_index = 0

        if self._state.shuffle:
            self._regenerate_queue()

        logger.info("Playback source → %s (%d tracks)", src.value, len(tracks))
        self._persist()
        self.events.emit(PlayerEvent.SOURCE_CHANGED, {"source": src.value, "count": len(tracks)})
        return True

    # ─────────────────────────────────────────────
    # Transport
    # ─────────────────────────────────────────────
    async def load_track(self, index: int, autoplay: bool = False) -> bool:
        if not self._tracks:
            await self.load_tracks()

        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(self._tracks):
            logger.warning("load_track: index %r out of range (0..%d)", index, len(self._tracks) - 1)
            return False

        track = self._tracks[index]
        st = self._state

        if self._audio.src == track.audio_url and self._audio.ready:
            st.current_index = index
            st.current_track_key = track.key
            if autoplay and not st.is_playing:
                return await self.play()
            return True

        was_playing = st.is_playing
        self._supersede()
        self._audio.pause()
        self._audio.load(track.audio_url, duration=track.duration)
        self._audio.volume = st.volume

        st.current_index = index
        st.current_track_key = track.key
        st.current_time = 0.0
        st.last_failure = None
        logger.info("Loading track #%d: %s - %s", index, track.artist, track.title)

        self._persist()
        self.events.emit(PlayerEvent.TRACK_CHANGED, {"track": track.to_dict(), "index": index})
        self.events.emit(PlayerEvent.TIME_UPDATED, {"current_time": 0.0, "duration": track.duration})

        if autoplay or was_playing:
            return await self.play()
        return True

    async def play(self) -> bool:
        if self._audio.src is None:
            if not self._tracks:
                await self.load_tracks()
            if not self._tracks:
                logger.warning("play: nothing to play")
                return False
            index = min(max(self._state.current_index, 0), len(self._tracks) - 1)
            if not await self.load_track(index):
                return False

        token = self._supersede()
        try:
            await self._audio.play()
        except PlaybackFailure as exc:
            if token != self._transport_token:
                logger.debug("Ignoring rejection of superseded play(): %s", exc.reason.value)
                return False
            self._fail(exc.reason, str(exc))
            return False

        if token != self._transport_token:
            logger.debug("Ignoring superseded play() that resolved late")
            return False

        st = self._state
        changed = not st.is_playing
        st.is_playing = True
        st.last_failure = None
        self._persist()
        if changed:
            self.events.emit(PlayerEvent.PLAYBACK_STATE_CHANGED, {"is_playing": True})
        return True

    def pause(self) -> None:
        self._supersede()
        self._audio.pause()
        st = self._state
        changed = st.is_playing
        st.is_playing = False
        st.current_time = self._elapsed()
        self._persist()
        if changed:
            self.events.emit(PlayerEvent.PLAYBACK_STATE_CHANGED, {"is_playing": False})

    async def toggle_play_pause(self) -> bool:
        if self._state.is_playing:
            self.pause()
        else:
            await self.play()
        return self._state.is_playing

    async def play_track(self, track, queue=None) -> bool:
        """
        Play `track` (a Track, an API record, or a track id / key).

        With `queue` (e.g. a playlist's tracks) that list becomes the active
        list until the next source switch or list reload.
        """
        key = self._track_key(track)
        if queue is not None:
            tracks = self._coerce_tracks(queue)
            index = _find(tracks, key)
            if index is None:
                logger.warning("play_track: %r is not in the given queue", track)
                return False
            self._replace_active(tracks, regenerate=False)
            self.events.emit(PlayerEvent.TRACKS_LOADED,
                             {"source": "queue", "count": len(tracks)})
        else:
            if not self._tracks:
                await self.load_tracks()
            index = self._index_of(key)
            if index is None:
                logger.warning("play_track: %r is not in the active list", track)
                return False

        ok = await self.load_track(index, autoplay=True)
        if self._state.shuffle:
            self._regenerate_queue()
            self._persist()
            self.events.emit(PlayerEvent.SHUFFLE_CHANGED,
                             {"shuffle": True, "queue": list(self._state.shuffle_queue)})
        return ok

    async def play_next(self) -> bool:
        n = await self._ensure_tracks()
        if n == 0:
            logger.warning("play_next: no tracks in %s", self._state.source.value)
            return False

        st = self._state
        if st.shuffle:
            nxt, st.shuffle_queue = next_shuffle_index(st.shuffle_queue, st.current_index, n, self._rng)
        else:
            nxt = next_sequential_index(st.current_index, n)

        if nxt == st.current_index and self.current_track is not None:
            return await self._restart_current()
        return await self.load_track(nxt, autoplay=True)

    async def play_previous(self) -> bool:
        if self.current_track is not None and self._elapsed() > RESTART_THRESHOLD_SECONDS:
            return await self._restart_current()

        n = await self._ensure_tracks()
        if n == 0:
            logger.warning("play_previous: no tracks in %s", self._state.source.value)
            return False

        st = self._state
        if st.shuffle:
            prv, st.shuffle_queue = previous_shuffle_index(st.shuffle_queue, st.current_index, n, self._rng)
        else:
            prv = previous_sequential_index(st.current_index, n)

        if prv == st.current_index and self.current_track is not None:
            return await self._restart_current()
        return await self.load_track(prv, autoplay=True)

    async def handle_track_ended(self) -> bool:
        if self._state.repeat is RepeatMode.ONE:
            return await self._restart_current()
        return await self.play_next()

    def seek(self, seconds: float) -> bool:
        try:
            secs = float(seconds)
        except (TypeError, ValueError):
            logger.warning("seek: invalid position %r", seconds)
            return False
        if math.isnan(secs):
            logger.warning("seek: invalid position %r", seconds)
            return False

        duration = self._duration()
        secs = max(0.0, min(secs, duration) if duration else secs)
        if self._audio.src is not None:
            self._audio.current_time = secs
        self._state.current_time = secs
        self._persist()
        self.events.emit(PlayerEvent.TIME_UPDATED, {"current_time": secs, "duration": duration})
        return True

    def set_volume(self, value: float) -> float:
        try:
            raw = float(value)
        except (TypeError, ValueError):
            logger.warning("set_volume: invalid value %r", value)
            return self._state.volume
        if math.isnan(raw):
            logger.warning("set_volume: invalid value %r", value)
            return self._state.volume

        volume = clamp_volume(raw)
        self._audio.volume = volume
        self._state.volume = volume
        self._persist()
        self.events.emit(PlayerEvent.VOLUME_CHANGED, {"volume": volume})
        return volume

    def toggle_mute(self) -> bool:
        """Mute, or restore the volume from before muting. Returns True when muted."""
        if self._state.volume > 0:
            self._volume_before_mute = self._state.volume
            self.set_volume(0.0)
        else:
            self.set_volume(self._volume_before_mute or DEFAULT_VOLUME)
        return self._state.volume == 0

    # ─────────────────────────────────────────────
    # Queue modes
    # ─────────────────────────────────────────────
    def toggle_shuffle(self) -> bool:
        st = self._state
        st.shuffle = not st.shuffle
        if st.shuffle:
            if st.repeat is not RepeatMode.NONE:
                st.repeat = RepeatMode.NONE
                self.events.emit(PlayerEvent.REPEAT_CHANGED, {"repeat": st.repeat.value})
            self._regenerate_queue()
        else:
            st.shuffle_queue = []

        logger.info("Shuffle %s", "on" if st.shuffle else "off")
        self._persist()
        self.events.emit(PlayerEvent.SHUFFLE_CHANGED,
                         {"shuffle": st.shuffle, "queue": list(st.shuffle_queue)})
        return st.shuffle

    def toggle_repeat(self) -> RepeatMode:
        st = self._state
        pos = REPEAT_CYCLE.index(st.repeat)
        st.repeat = REPEAT_CYCLE[(pos + 1) % len(REPEAT_CYCLE)]

        if st.repeat is not RepeatMode.NONE and st.shuffle:
            st.shuffle = False
            st.shuffle_queue = []
            self.events.emit(PlayerEvent.SHUFFLE_CHANGED, {"shuffle": False, "queue": []})

        logger.info("Repeat → %s", st.repeat.value)
        self._persist()
        self.events.emit(PlayerEvent.REPEAT_CHANGED, {"repeat": st.repeat.value})
        return st.repeat

    # ─────────────────────────────────────────────
    # Likes (owned by LikedSongs; this is a call-through)
    # ─────────────────────────────────────────────
    async def toggle_like(self) -> Optional[bool]:
        track = self.current_track
        if track is None:
            logger.warning("toggle_like: no current track")
            return None
        if self._liked is None:
            logger.warning("toggle_like: liked songs are not available")
            return None

        try:
            liked = await self._liked.toggle(track)
        except LikeSyncError as exc:
            self.events.emit(PlayerEvent.LIKE_CHANGED, {
                "track_id": track.id,
                "liked": self._liked.is_liked(track.id),
                "error": str(exc),
            })
            return None

        self.events.emit(PlayerEvent.LIKE_CHANGED, {"track_id": track.id, "liked": liked})
        return liked

    # ─────────────────────────────────────────────
    # Persistence / life cycle
    # ─────────────────────────────────────────────
    async def initialize(self) -> None:
        """Restore persisted state (or defaults) and reload the restored track."""
        # peers keep their position until they've answered our announce()
        self._quiet_depth += 1
        try:
            await self._restore()
        finally:
            self._quiet_depth -= 1

    async def _restore(self) -> None:
        restored = load_state(self._store.read_all())
        st = self._state
        st.volume = restored.volume
        st.shuffle = restored.shuffle
        st.repeat = restored.repeat
        st.source = restored.source
        st.shuffle_queue = list(restored.shuffle_queue)
        st.current_index = restored.current_index
        self._audio.volume = st.volume

        tracks = await self._library.load(st.source)
        if st.source is PlaybackSource.LIKED and not tracks:
            logger.warning("Restored liked source is empty, falling back to all tracks")
            st.source = PlaybackSource.ALL
            tracks = await self._library.load(st.source)
        self._replace_active(tracks, regenerate=False)
        self.events.emit(PlayerEvent.TRACKS_LOADED, {"source": st.source.value, "count": len(tracks)})

        if not tracks:
            logger.info("No tracks available; player starts empty")
            return

        index = restored.current_index
        same_track = False
        if restored.current_track_key:
            found = self._index_of(restored.current_track_key)
            if found is not None:
                index, same_track = found, True
        if not 0 <= index < len(tracks):
            index = 0

        if st.shuffle and not _is_permutation(st.shuffle_queue, len(tracks)):
            st.shuffle_queue = generate_shuffle_queue(len(tracks), index, self._rng)

        await self.load_track(index)
        if same_track and restored.current_time:
            self.seek(restored.current_time)

        logger.info("Restored player: %s #%d at %.1fs (%s)", st.source.value, index,
                    st.current_time, "resuming" if restored.is_playing else "paused")
        if restored.is_playing:
            await self.play()

    def save_state(self, broadcast: bool = True) -> None:
        """Write everything, including the live position (page-hide / shutdown)."""
        self._state.current_time = self._elapsed()
        self._persist(broadcast=broadcast)

    def tick(self) -> None:
        """Pull the live position from the audio output into state."""
        if self._audio.src is None:
            return
        self._state.current_time = self._elapsed()
        self.events.emit(PlayerEvent.TIME_UPDATED, {
            "current_time": self._state.current_time,
            "duration": self._duration(),
        })

    async def close(self) -> None:
        if self._unsubscribe_channel is not None:
            self._unsubscribe_channel()
            self._unsubscribe_channel = None
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

    # ─────────────────────────────────────────────
    # Cross-instance sync
    # ─────────────────────────────────────────────
    def announce(self) -> None:
        """Ask other instances for their state (sent once at start-up)."""
        if self._channel is not None:
            self._channel.post(MessageType.HELLO)

    async def apply_remote_state(self, payload: dict[str, Any]) -> bool:
        """
        Reconcile with another instance's state.
        Returns True when the local track or position was resynced.
        """
        st = self._state
        self._quiet_depth += 1
        try:
            src = normalize_source(payload.get("source"))
            if src is not None and src is not st.source:
                await self.set_playback_source(src)

            try:
                volume = clamp_volume(float(payload.get("volume", st.volume)))
            except (TypeError, ValueError):
                volume = st.volume
            if volume != st.volume:
                st.volume = volume
                self._audio.volume = volume
                self.events.emit(PlayerEvent.VOLUME_CHANGED, {"volume": volume})

            shuffle = bool(payload.get("shuffle", st.shuffle))
            repeat = normalize_repeat(payload.get("repeat", st.repeat))
            queue = payload.get("shuffle_queue")
            if _is_permutation(queue, len(self._tracks)):
                st.shuffle_queue = list(queue)
            elif queue:
                logger.info("Ignoring remote shuffle queue %r", queue)
            if shuffle != st.shuffle:
                st.shuffle = shuffle
                if shuffle and not st.shuffle_queue:
                    self._regenerate_queue()
                self.events.emit(PlayerEvent.SHUFFLE_CHANGED,
                                 {"shuffle": shuffle, "queue": list(st.shuffle_queue)})
            if repeat is not st.repeat:
                st.repeat = repeat
                self.events.emit(PlayerEvent.REPEAT_CHANGED, {"repeat": repeat.value})

            resynced = False
            remote_key = payload.get("current_track_key")
            try:
                remote_time = max(0.0, float(payload.get("current_time") or 0.0))
            except (TypeError, ValueError):
                remote_time = 0.0

            if remote_key and remote_key != st.current_track_key:
                index = self._index_of(remote_key)
                if index is None:
                    logger.info("Remote track %s is not in the %s list", remote_key, st.source.value)
                elif await self.load_track(index):
                    self.seek(remote_time)
                    resynced = True
            elif remote_key and abs(remote_time - self._elapsed()) > SYNC_TOLERANCE_SECONDS:
                self.seek(remote_time)
                resynced = True

            self._persist()
            return resynced
        finally:
            self._quiet_depth -= 1

    def _on_channel_message(self, message: ChannelMessage) -> None:
        if message.type is MessageType.HELLO:
            if self._channel is not None:
                self._channel.post(MessageType.STATE, self._sync_payload())
        elif message.type is MessageType.STATE:
            self._spawn(self.apply_remote_state(message.payload))

    def _sync_payload(self) -> dict[str, Any]:
        payload = self._state.snapshot()
        payload["current_time"] = self._elapsed()
        return payload

    # ─────────────────────────────────────────────
    # Audio callbacks
    # ─────────────────────────────────────────────
    def _on_audio_ended(self) -> None:
        self._spawn(self.handle_track_ended())

    def _on_audio_error(self, reason) -> None:
        failure = normalize_failure(reason)
        if failure is None:
            logger.warning("Unrecognised transport error %r, treating as decode failure", reason)
            failure = FailureReason.DECODE
        self._supersede()
        self._fail(failure, "transport error")

    # ─────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────
    def _supersede(self) -> int:
        self._transport_token += 1
        return self._transport_token

    def _fail(self, reason: FailureReason, message: str) -> None:
        st = self._state
        was_playing = st.is_playing
        st.is_playing = False
        st.last_failure = reason
        st.current_time = self._elapsed()

        if reason is FailureReason.AUTOPLAY_BLOCKED:
            logger.info("Playback needs a user gesture first (autoplay blocked)")
        else:
            logger.warning("Playback failed (%s): %s", reason.value, message)

        self._persist()
        self.events.emit(PlayerEvent.FAILURE, {
            "reason": reason.value,
            "message": message,
            "track_key": st.current_track_key,
        })
        if was_playing:
            self.events.emit(PlayerEvent.PLAYBACK_STATE_CHANGED, {"is_playing": False})

    async def _restart_current(self) -> bool:
        self.seek(0.0)
        if self._state.is_playing and not self._audio.paused:
            return True
        return await self.play()

    async def _ensure_tracks(self) -> int:
        if not self._tracks:
            await self.load_tracks()
        return len(self._tracks)

    def _replace_active(self, tracks: list[Track], regenerate: bool = True) -> None:
        changed = [t.key for t in tracks] != [t.key for t in self._tracks]
        self._tracks = list(tracks)
        if changed and regenerate and self._state.shuffle:
            self._regenerate_queue()

    def _regenerate_queue(self) -> None:
        st = self._state
        current = st.current_index if self.current_track is not None else None
        st.shuffle_queue = generate_shuffle_queue(len(self._tracks), current, self._rng)

    def _coerce_tracks(self, items) -> list[Track]:
        tracks: list[Track] = []
        for item in items:
            if isinstance(item, Track):
                tracks.append(item)
            elif isinstance(item, dict):
                try:
                    tracks.append(Track.from_api(item, self._library.audio_base_url))
                except ValueError as exc:
                    logger.warning("Skipping queued track: %s", exc)
        return tracks

    def _track_key(self, track) -> Optional[str]:
        if isinstance(track, Track):
            return track.key
        if isinstance(track, dict):
            try:
                return Track.from_api(track, self._library.audio_base_url).key
            except ValueError:
                return None
        if track is None or isinstance(track, bool):
            return None
        return str(track)

    def _index_of(self, key: Optional[str]) -> Optional[int]:
        return _find(self._tracks, key)

    def _elapsed(self) -> float:
        if self._audio.src is not None:
            return float(self._audio.current_time)
        return self._state.current_time

    def _duration(self) -> Optional[float]:
        if self._audio.duration:
            return float(self._audio.duration)
        track = self.current_track
        return track.duration if track else None

    def _persist(self, broadcast: bool = True) -> None:
        st = self._state
        st.touch()
        try:
            self._store.set_many(dump_state(st))
        except Exception:
            logger.exception("Failed to persist player state")

        if broadcast and self._channel is not None and self._quiet_depth == 0:
            self._channel.post(MessageType.STATE, self._sync_payload())

    def _spawn(self, coro: Coroutine) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.warning("No running event loop; dropped %s", getattr(coro, "__qualname__", coro))
            return
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._reap)

    def _reap(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background player task failed", exc_info=exc)
