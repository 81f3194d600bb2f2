import random
from typing import Optional, Sequence


def generate_shuffle_queue(
    length: int,
    current: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> list[int]:
    """
    Random permutation of range(length).
    The current index (when valid) is pinned to position 0 so switching
    into shuffle never interrupts what is playing.
    """
    if length <= 0:
        return []

    rng = rng or random
    rest = [i for i in range(length) if i != current]
    rng.shuffle(rest)

    if current is not None and 0 <= current < length:
        return [current, *rest]
    return rest


def next_sequential_index(current: int, length: int) -> int:
    # Loop-by-default: the end of the list wraps to the start.
    return (current + 1) % length


def previous_sequential_index(current: int, length: int) -> int:
    return (current - 1 + length) % length


def next_shuffle_index(
    queue: Sequence[int],
    current: int,
    length: int,
    rng: Optional[random.Random] = None,
) -> tuple[int, list[int]]:
    """
    Pick the entry after `current` in the shuffle queue.
    When `current` is the last entry (or missing) the queue is regenerated
    with `current` pinned first, and its second entry is taken.
    Returns (next_index, queue_in_effect).
    """
    queue = list(queue)
    if len(queue) == length and current in queue:
        pos = queue.index(current)
        if pos < len(queue) - 1:
            return queue[pos + 1], queue

    queue = generate_shuffle_queue(length, current, rng)
    if len(queue) == 1:
        return queue[0], queue
    return queue[1], queue


def previous_shuffle_index(
    queue: Sequence[int],
    current: int,
    length: int,
    rng: Optional[random.Random] = None,
) -> tuple[int, list[int]]:
    """Mirror of next_shuffle_index: the entry before `current`, wrapping to the last."""
    queue = list(queue)
    if len(queue) != length or current not in queue:
        queue = generate_shuffle_queue(length, current, rng)

    pos = queue.index(current) if current in queue else 0
    return queue[pos - 1], queue
