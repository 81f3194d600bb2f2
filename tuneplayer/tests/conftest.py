import asyncio
import random
from typing import Optional

import pytest

from tuneplayer.models.enums import FailureReason
from tuneplayer.services.audio_output import AudioOutput, PlaybackFailure
from tuneplayer.services.backend_api import BackendApi
from tuneplayer.services.liked_songs import LikedSongs
from tuneplayer.services.player_controller import PlaybackController
from tuneplayer.services.state_store import MemoryStateStore
from tuneplayer.services.track_library import TrackLibrary


def make_records(count: int, start_id: int = 1):
    return [
        {
            "id": start_id + i,
            "title": f"Song {chr(65 + i)}",
            "artist": "Test Artist",
            "album": "Test Album",
            "duration": 200,
            "filename": f"song_{start_id + i}.mp3",
        }
        for i in range(count)
    ]


class FakeApi(BackendApi):
    """BackendApi answering from a route table instead of the network."""

    def __init__(self, routes: Optional[dict] = None):
        super().__init__("http://test/api", token=None, max_retries=0)
        self.routes = routes or {}
        self.calls = []

    def _answer(self, key):
        value = self.routes.get(key)
        if isinstance(value, Exception):
            raise value
        return [] if value is None else value

    async def get_json(self, path, params=None, *, timeout=None):
        self.calls.append(("GET", path, params))
        return self._answer(path)

    async def post_json(self, path, body=None, *, timeout=None, retry=False):
        self.calls.append(("POST", path, body))
        return self._answer(("POST", path))


class FakeAudioOutput(AudioOutput):
    """
    Controllable audio handle.
    manual=True: every play() waits on a future the test resolves.
    reject_with: every play() fails with that reason.
    """

    def __init__(self, *, manual: bool = False):
        self.manual = manual
        self.reject_with: Optional[FailureReason] = None
        self.pending: list[asyncio.Future] = []
        self.loads: list[str] = []
        self._src = None
        self._ready = False
        self._paused = True
        self._time = 0.0
        self._duration = None
        self._volume = 1.0

    @property
    def src(self):
        return self._src

    @property
    def ready(self):
        return self._ready

    @property
    def paused(self):
        return self._paused

    @property
    def duration(self):
        return self._duration

    @property
    def current_time(self):
        return self._time

    @current_time.setter
    def current_time(self, seconds):
        self._time = seconds

    @property
    def volume(self):
        return self._volume

    @volume.setter
    def volume(self, value):
        self._volume = value

    def load(self, url, duration=None):
        self.loads.append(url)
        self._src = url
        self._duration = duration
        self._time = 0.0
        self._paused = True
        self._ready = True

    async def play(self):
        if self.reject_with is not None:
            raise PlaybackFailure(self.reject_with)
        if self.manual:
            fut = asyncio.get_running_loop().create_future()
            self.pending.append(fut)
            await fut
        self._paused = False

    def pause(self):
        self._paused = True

    def finish(self):
        """Play to the end of the source."""
        self._time = self._duration or 0.0
        self._paused = True
        self._emit_ended()


async def settle(rounds: int = 5):
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def api():
    return FakeApi({
        "/tracks": make_records(3),
        "/liked-songs": [],
    })


@pytest.fixture
def audio():
    return FakeAudioOutput()


@pytest.fixture
def store():
    return MemoryStateStore()


@pytest.fixture
def library(api):
    return TrackLibrary(api, audio_base_url="http://test", user_id="7")


@pytest.fixture
def liked(api, library):
    return LikedSongs(api, user_id="7", library=library)


@pytest.fixture
def controller(audio, library, store, liked):
    return PlaybackController(audio, library, store, liked=liked, rng=random.Random(42))
