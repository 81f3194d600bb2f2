import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

from tuneplayer.database import init_db
from tuneplayer.models.enums import PlaybackSource, RepeatMode
from tuneplayer.services.state_store import (
    MemoryStateStore,
    SqlStateStore,
    dump_state,
    load_state,
)
from tuneplayer.state.playback_state import PlaybackState


@pytest.fixture
def sql_store():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    return SqlStateStore(engine)


@pytest.fixture(params=["memory", "sql"])
def any_store(request, sql_store):
    return MemoryStateStore() if request.param == "memory" else sql_store


def test_store_set_get_remove(any_store):
    assert any_store.get("volume") is None

    any_store.set("volume", "0.5")
    any_store.set_many({"volume": "0.7", "repeatMode": "one"})

    assert any_store.get("volume") == "0.7"
    assert any_store.read_all() == {"volume": "0.7", "repeatMode": "one"}

    any_store.remove("volume")
    any_store.remove("volume")
    assert any_store.get("volume") is None


def test_read_all_only_returns_player_keys(any_store):
    any_store.set_many({"isShuffleOn": "true", "somethingElse": "x"})

    assert any_store.read_all() == {"isShuffleOn": "true"}


def test_dump_then_load_keeps_every_field():
    state = PlaybackState(
        is_playing=True,
        volume=0.35,
        current_index=4,
        current_track_key="song_5.mp3",
        current_time=61.5,
        shuffle=True,
        repeat=RepeatMode.NONE,
        source=PlaybackSource.LIKED,
        shuffle_queue=[4, 0, 2, 1, 3],
    )

    entries = dump_state(state)
    assert entries["isPlaying"] == "true"
    assert entries["shuffleQueue"] == "[4, 0, 2, 1, 3]"
    assert entries["playbackSource"] == "liked"

    restored = load_state(entries)
    assert restored.snapshot() | {"last_action_ts": 0} == state.snapshot() | {"last_action_ts": 0}


def test_nothing_loaded_is_stored_as_empty_track():
    entries = dump_state(PlaybackState())

    assert entries["currentTrack"] == ""
    assert load_state(entries).current_track_key is None


def test_missing_entries_mean_defaults():
    state = load_state({})

    assert state.volume == 1.0
    assert state.current_index == 0
    assert state.repeat is RepeatMode.NONE
    assert state.source is PlaybackSource.ALL
    assert state.is_playing is False


def test_garbled_entries_are_ignored():
    state = load_state({
        "currentTrackIndex": "two",
        "volume": "very loud",
        "isShuffleOn": "maybe",
        "repeatMode": "forever",
        "shuffleQueue": '["a", "b"]',
        "playbackSource": "radio",
        "currentTime": "soon",
    })

    assert state.current_index == 0
    assert state.volume == 1.0
    assert state.shuffle is False
    assert state.repeat is RepeatMode.NONE
    assert state.shuffle_queue == []
    assert state.source is PlaybackSource.ALL
    assert state.current_time == 0.0


def test_out_of_range_values_are_clamped():
    state = load_state({"volume": "7", "currentTrackIndex": "-3", "currentTime": "-1"})

    assert state.volume == 1.0
    assert state.current_index == 0
    assert state.current_time == 0.0


def test_sql_store_round_trips_a_player_state(sql_store):
    state = PlaybackState(volume=0.6, current_index=2, current_track_key="song_3.mp3",
                          repeat=RepeatMode.ONE)

    sql_store.set_many(dump_state(state))
    restored = load_state(sql_store.read_all())

    assert restored.volume == 0.6
    assert restored.current_index == 2
    assert restored.current_track_key == "song_3.mp3"
    assert restored.repeat is RepeatMode.ONE
