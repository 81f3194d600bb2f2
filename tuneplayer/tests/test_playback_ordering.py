import random

from tuneplayer.services.playback_ordering import (
    generate_shuffle_queue,
    next_sequential_index,
    next_shuffle_index,
    previous_sequential_index,
    previous_shuffle_index,
)


def test_shuffle_queue_pins_current_first():
    rng = random.Random(1)
    for current in range(6):
        queue = generate_shuffle_queue(6, current, rng)
        assert queue[0] == current
        assert sorted(queue) == list(range(6))


def test_shuffle_queue_without_current_is_a_permutation():
    queue = generate_shuffle_queue(5, None, random.Random(3))
    assert sorted(queue) == list(range(5))
    assert generate_shuffle_queue(0, 0) == []


def test_sequential_next_wraps_back_to_start():
    for length in (1, 2, 5):
        for start in range(length):
            idx = start
            for _ in range(length):
                idx = next_sequential_index(idx, length)
            assert idx == start


def test_sequential_previous_wraps_to_end():
    assert previous_sequential_index(0, 4) == 3
    assert previous_sequential_index(2, 4) == 1


def test_shuffle_next_walks_queue_then_regenerates():
    nxt, queue = next_shuffle_index([0, 1], 0, 2, random.Random(0))
    assert (nxt, queue) == (1, [0, 1])

    # 1 is the last entry: a new queue starts at 1, only 0 can follow
    nxt, queue = next_shuffle_index(queue, 1, 2, random.Random(0))
    assert queue == [1, 0]
    assert nxt == 0


def test_shuffle_next_on_single_track_replays_it():
    nxt, queue = next_shuffle_index([0], 0, 1)
    assert nxt == 0
    assert queue == [0]


def test_shuffle_next_regenerates_stale_queue():
    # queue was built for a longer list
    nxt, queue = next_shuffle_index([4, 3, 2, 1, 0], 1, 3, random.Random(5))
    assert queue[0] == 1
    assert sorted(queue) == [0, 1, 2]
    assert nxt == queue[1]


def test_shuffle_previous_steps_back_and_wraps():
    assert previous_shuffle_index([2, 0, 1], 0, 3)[0] == 2
    assert previous_shuffle_index([2, 0, 1], 2, 3)[0] == 1
