import asyncio
import random

import pytest

from conftest import FakeApi, FakeAudioOutput, make_records, settle
from tuneplayer.models.enums import MessageType
from tuneplayer.services.player_controller import PlaybackController
from tuneplayer.services.state_store import MemoryStateStore
from tuneplayer.services.sync_channel import ChannelHub
from tuneplayer.services.track_library import TrackLibrary


def _instance(hub, api, name="tuneplayer"):
    channel = hub.open(name)
    library = TrackLibrary(api, audio_base_url="http://test", user_id="7")
    controller = PlaybackController(
        FakeAudioOutput(), library, MemoryStateStore(),
        channel=channel, rng=random.Random(3),
    )
    return controller


@pytest.fixture
def hub():
    return ChannelHub()


@pytest.fixture
def sync_api():
    return FakeApi({"/tracks": make_records(3)})


# =====================================================
# CHANNEL DELIVERY
# =====================================================

def test_post_reaches_every_member_except_sender(hub):
    a = hub.open("tuneplayer", "a")
    b = hub.open("tuneplayer", "b")
    elsewhere = hub.open("another", "c")
    got_a, got_b, got_c = [], [], []
    a.subscribe(got_a.append)
    b.subscribe(got_b.append)
    elsewhere.subscribe(got_c.append)

    assert a.post(MessageType.STATE, {"volume": 0.5}) == 1

    assert got_a == []
    assert got_c == []
    assert got_b[0].sender == "a"
    assert got_b[0].type is MessageType.STATE
    assert got_b[0].payload == {"volume": 0.5}


def test_closed_channel_neither_sends_nor_receives(hub):
    a = hub.open("tuneplayer", "a")
    b = hub.open("tuneplayer", "b")
    got_b = []
    b.subscribe(got_b.append)

    b.close()

    assert b.closed is True
    assert a.post(MessageType.HELLO) == 0
    assert b.post(MessageType.HELLO) == 0
    assert got_b == []


def test_unsubscribe_and_crashing_handler(hub):
    a = hub.open("tuneplayer", "a")
    b = hub.open("tuneplayer", "b")
    seen, dropped = [], []
    b.subscribe(lambda _: 1 / 0)
    b.subscribe(seen.append)
    unsubscribe = b.subscribe(dropped.append)
    unsubscribe()

    a.post(MessageType.HELLO)

    assert len(seen) == 1
    assert dropped == []


# =====================================================
# CONTROLLER SYNC
# =====================================================

@pytest.mark.asyncio
async def test_track_change_propagates_without_starting_playback(hub, sync_api):
    a = _instance(hub, sync_api)
    b = _instance(hub, sync_api)
    await b.load_tracks()

    await a.load_track(2, autoplay=True)
    await settle()

    assert b.state.current_index == 2
    assert b.current_track.title == "Song C"
    assert b.audio.src == "http://test/tracks/song_3.mp3"
    assert b.state.is_playing is False


@pytest.mark.asyncio
async def test_queue_modes_propagate(hub, sync_api):
    a = _instance(hub, sync_api)
    b = _instance(hub, sync_api)
    await a.load_track(0)
    await b.load_tracks()
    await settle()

    a.toggle_shuffle()
    a.set_volume(0.25)
    await settle()

    assert b.state.shuffle is True
    assert b.state.shuffle_queue == a.state.shuffle_queue
    assert b.state.volume == 0.25
    assert b.audio.volume == 0.25


@pytest.mark.asyncio
async def test_position_inside_tolerance_is_left_alone(sync_api):
    b = _instance(ChannelHub(), sync_api)
    await b.load_track(0)
    b.audio.current_time = 10.0

    resynced = await b.apply_remote_state({
        "source": "all",
        "current_track_key": "song_1.mp3",
        "current_time": 12.0,
    })

    assert resynced is False
    assert b.audio.current_time == 10.0


@pytest.mark.asyncio
async def test_position_beyond_tolerance_is_resynced(sync_api):
    b = _instance(ChannelHub(), sync_api)
    await b.load_track(0)
    b.audio.current_time = 10.0

    resynced = await b.apply_remote_state({
        "source": "all",
        "current_track_key": "song_1.mp3",
        "current_time": 15.0,
    })

    assert resynced is True
    assert b.audio.current_time == 15.0


@pytest.mark.asyncio
async def test_unknown_remote_track_is_ignored(sync_api):
    b = _instance(ChannelHub(), sync_api)
    await b.load_track(1)

    resynced = await b.apply_remote_state({"current_track_key": "nope.mp3", "current_time": 40})

    assert resynced is False
    assert b.state.current_index == 1


@pytest.mark.asyncio
async def test_applying_remote_state_does_not_echo(hub, sync_api):
    b = _instance(hub, sync_api)
    listener = hub.open("tuneplayer", "listener")
    received = []
    listener.subscribe(received.append)
    await b.load_tracks()

    await b.apply_remote_state({"current_track_key": "song_2.mp3", "current_time": 5})

    assert b.state.current_index == 1
    assert received == []


@pytest.mark.asyncio
async def test_hello_is_answered_with_state(hub, sync_api):
    a = _instance(hub, sync_api)
    # joined before b, so it sees the hello before b's reply
    listener = hub.open("tuneplayer", "listener")
    b = _instance(hub, sync_api)
    received = []
    listener.subscribe(received.append)
    await b.load_track(1)
    await a.load_tracks()
    received.clear()

    a.announce()
    await settle()

    assert [m.type for m in received] == [MessageType.HELLO, MessageType.STATE]
    assert received[1].sender == b._channel.member_id
    assert a.state.current_index == 1


@pytest.mark.asyncio
async def test_overlapping_remote_updates_stay_quiet(hub, sync_api):
    audio = FakeAudioOutput(manual=True)
    channel = hub.open("tuneplayer", "b")
    b = PlaybackController(
        audio,
        TrackLibrary(sync_api, audio_base_url="http://test", user_id="7"),
        MemoryStateStore(),
        channel=channel,
        rng=random.Random(3),
    )
    await b.load_tracks()
    starting = asyncio.create_task(b.load_track(0, autoplay=True))
    await settle()
    audio.pending[0].set_result(None)
    assert await starting is True

    peer = hub.open("tuneplayer", "a")
    echoed = []
    peer.subscribe(echoed.append)

    # what load_track(autoplay=True) on a peer sends: one post on load, one on play
    remote = {"source": "all", "current_track_key": "song_2.mp3", "current_time": 0.0}
    peer.post(MessageType.STATE, remote)
    peer.post(MessageType.STATE, remote)
    await settle()
    assert b.state.current_track_key == "song_2.mp3"

    for fut in audio.pending:
        if not fut.done():
            fut.set_result(None)
    await settle()

    assert b.state.is_playing is True
    assert echoed == []


@pytest.mark.asyncio
async def test_malformed_remote_queue_is_ignored(sync_api):
    b = _instance(ChannelHub(), sync_api)
    await b.load_track(1)

    resynced = await b.apply_remote_state({"shuffle": True, "shuffle_queue": [0, "1", 2]})

    assert resynced is False
    assert b.state.shuffle is True
    assert sorted(b.state.shuffle_queue) == [0, 1, 2]
    assert b.state.shuffle_queue[0] == 1
