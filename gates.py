"""
Low-level waiting primitives shared by both throttle gates.

A gate queue is a ``collections.deque`` of ``asyncio.Future`` waiters. Each
waiter is appended by ``queue_pause`` and resolved exactly once by
``queue_shift``. ``duration_pause`` is the window timer.
"""

import asyncio
import math
from collections import deque

from config import InvalidArgumentError


async def queue_pause(queue: deque | None = None) -> None:
    """Append a waiter to `queue` and wait until another task shifts it."""
    if not isinstance(queue, deque):
        raise InvalidArgumentError(f"queue must be a deque, got {type(queue).__name__}")
    waiter = asyncio.get_running_loop().create_future()
    queue.append(waiter)
    await waiter


def queue_shift(queue: deque) -> bool:
    """Wake the oldest waiter in `queue`.

    Returns True if a waiter was woken, False if the queue held no live
    waiters. Raises TypeError for anything that is not a deque.
    """
    if not isinstance(queue, deque):
        raise TypeError(f"queue must be a deque, got {type(queue).__name__}")
    while queue:
        waiter = queue.popleft()
        # cancelled callers leave their future behind
        if not waiter.done():
            waiter.set_result(None)
            return True
    return False


async def duration_pause(duration=None) -> None:
    """Sleep for `duration` milliseconds.

    Missing or non-numeric durations count as zero, which still yields to the
    event loop once.
    """
    if isinstance(duration, bool) or not isinstance(duration, (int, float)) or math.isnan(duration):
        duration = 0
    await asyncio.sleep(max(duration, 0) / 1000)
