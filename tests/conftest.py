"""Shared fixtures for throttlify tests."""

import asyncio
import sys
import time
from pathlib import Path

import pytest

# Add project root to path so we can import modules directly
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))


class AsyncFunctionStub:
    """Async callable that records when each call started and finished.

    Times are time.monotonic() values. `in_flight` tracks calls currently
    sleeping so tests can assert on peak concurrency.
    """

    def __init__(self, data="foo", delay=250, err=None):
        self.data = data
        self.delay = delay
        self.err = err
        self.args: list[tuple] = []
        self.starts: list[float] = []
        self.finishes: list[float] = []
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def call_count(self) -> int:
        return len(self.starts)

    async def __call__(self, *args):
        self.args.append(args)
        self.starts.append(time.monotonic())
        if self.err:
            raise self.err
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay / 1000)
        finally:
            self.in_flight -= 1
        self.finishes.append(time.monotonic())
        return self.data


@pytest.fixture
def async_fn():
    """Stub operation: returns 'foo' after 50 ms."""
    return AsyncFunctionStub(data="foo", delay=50)


@pytest.fixture
def opts():
    return {"duration": 200, "max": 10}


@pytest.fixture
def tmp_config_path(tmp_path):
    """Provide a temporary path for config files."""
    return tmp_path / "config.toml"
