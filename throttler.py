"""
Admission controller for async callables.

Throttler wraps a coroutine function so that at most `concurrent` calls are in
flight at once and at most `max` calls are admitted per rolling `duration`
milliseconds. Callers waiting on either gate are admitted in arrival order.
The wrapped function's result or exception reaches the caller unchanged.
"""

import asyncio
import inspect
import logging
import types
from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

from config import ConfigurationError, InvalidArgumentError, ThrottleOptions
from gates import duration_pause, queue_pause, queue_shift

logger = logging.getLogger(__name__)


@dataclass
class GateCounts:
    """Slots currently held on each gate."""
    concurrent: int = 0
    window: int = 0


@dataclass
class GateQueues:
    """FIFO waiters for each gate."""
    concurrent: deque = field(default_factory=deque)
    window: deque = field(default_factory=deque)


def _coerce_options(opts) -> ThrottleOptions:
    if opts is None:
        return ThrottleOptions()
    if isinstance(opts, ThrottleOptions):
        return opts.validate()
    if isinstance(opts, Mapping):
        return ThrottleOptions.from_mapping(opts).validate()
    raise ConfigurationError(f"options must be a ThrottleOptions or a mapping, got {type(opts).__name__}")


class Throttler:
    """Concurrency and rate-window gate around one async callable.

    Usage::

        throttler = Throttler(fetch, {"concurrent": 4, "duration": 1000, "max": 10})
        result = await throttler.fn(url)

    Admission checks the window gate first, then the concurrency gate. A call
    releases its concurrency slot as soon as it settles and its window slot
    once both `duration` ms have passed and the call has settled.
    """

    def __init__(
        self,
        async_fn: Callable,
        opts: ThrottleOptions | Mapping | None = None,
        ctx: object | None = None,
    ):
        if async_fn is None:
            raise InvalidArgumentError("missing function argument")
        if not callable(async_fn):
            raise InvalidArgumentError("first argument must be a function")
        options = _coerce_options(opts)

        self.async_fn = types.MethodType(async_fn, ctx) if ctx is not None else async_fn
        self.ctx = ctx
        self.concurrent = options.concurrent
        self.duration = options.duration
        self.max = options.max
        self.count = GateCounts()
        self.queue = GateQueues()
        self.pending: set[asyncio.Task] = set()

    def __repr__(self) -> str:
        return (f"Throttler(concurrent={self.concurrent}, duration={self.duration}, max={self.max}, "
                f"count={self.count})")

    async def fn(self, *args, **kwargs):
        """Call the wrapped function once both gates admit it."""
        await self.pause()
        call = asyncio.ensure_future(self._invoke(*args, **kwargs))
        release = asyncio.create_task(self.shift(call))
        self.pending.add(release)
        release.add_done_callback(self.pending.discard)
        return await call

    async def _invoke(self, *args, **kwargs):
        result = self.async_fn(*args, **kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def pause(self) -> 'Throttler':
        """Wait for a window slot, then for a concurrency slot.

        A waiter woken by shift() inherits the releasing call's slot, so the
        counter is only incremented when no wait was needed.
        """
        count, queue = self.count, self.queue

        if count.window >= self.max:
            logger.debug(f"Window full ({count.window}/{self.max}), queueing behind {len(queue.window)}")
            await queue_pause(queue.window)
        else:
            count.window += 1

        if self.concurrent is not None and count.concurrent >= self.concurrent:
            logger.debug(f"Concurrency full ({count.concurrent}/{self.concurrent}), "
                         f"queueing behind {len(queue.concurrent)}")
            await queue_pause(queue.concurrent)
        else:
            count.concurrent += 1

        return self

    async def shift(self, call: asyncio.Future) -> 'Throttler':
        """Release both slots held by `call`.

        The window slot is held until `duration` ms have passed and `call`
        has settled, whichever is later.
        """
        await asyncio.gather(
            duration_pause(self.duration),
            self._release_concurrent(call),
        )
        if not queue_shift(self.queue.window):
            self.count.window -= 1
        return self

    async def _release_concurrent(self, call: asyncio.Future) -> None:
        # outcome is delivered to the caller by fn(); only settlement matters here
        await asyncio.wait([call])
        if not queue_shift(self.queue.concurrent):
            self.count.concurrent -= 1

    async def drain(self) -> None:
        """Wait until every admitted call has released both of its slots."""
        while self.pending:
            await asyncio.gather(*list(self.pending))


def throttlify(
    async_fn: Callable,
    opts: ThrottleOptions | Mapping | None = None,
    ctx: object | None = None,
) -> Callable:
    """Build a Throttler and return its bound `fn`."""
    throttler = Throttler(async_fn, opts, ctx)
    return throttler.fn
