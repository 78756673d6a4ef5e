"""
Throttled HTTP client: sends GET requests through a Throttler.

Provides ThrottledHTTPClient (async context manager) for firing a batch of
requests at an endpoint without exceeding its concurrency or rate limits.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

import aiohttp

from config import ThrottleOptions
from progress_display import ThrottleProgress
from throttler import Throttler

logger = logging.getLogger(__name__)


@dataclass
class RequestRecord:
    """Outcome of one throttled request. Times are seconds from batch start."""
    index: int
    status: int | None = None
    body: object = None
    error: str = ""
    started: float = 0.0
    finished: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.error and self.status is not None and self.status < 400


@dataclass
class FetchResult:
    """Container for results of a batch fetch."""
    records: list[RequestRecord] = field(default_factory=list)
    error_count: int = 0
    elapsed_seconds: float = 0.0

    @property
    def status_counts(self) -> dict[int | None, int]:
        counts: dict[int | None, int] = {}
        for record in self.records:
            counts[record.status] = counts.get(record.status, 0) + 1
        return counts


class ThrottledHTTPClient:
    """Sends GET requests through a Throttler.

    Use as an async context manager to ensure the session is properly closed::

        async with ThrottledHTTPClient(ThrottleOptions(max=2, duration=1000)) as client:
            result = await client.fetch_many(url, count=8)
    """

    def __init__(
        self,
        options: ThrottleOptions | None = None,
        timeout: float = 10.0,
        user_agent: str = "throttlify/0.1.0",
    ):
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._headers = {
            'accept': 'application/json',
            'User-Agent': user_agent,
        }
        self._session: aiohttp.ClientSession | None = None
        self.throttler = Throttler(self._request, options)

    async def __aenter__(self) -> 'ThrottledHTTPClient':
        self._session = aiohttp.ClientSession(headers=self._headers, timeout=self._timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    async def _request(self, url: str, on_admit: Callable[[], None] | None = None) -> tuple[int, object]:
        if on_admit is not None:
            on_admit()
        if self._session is None:
            raise RuntimeError("client not started; use `async with ThrottledHTTPClient(...)`")
        async with self._session.get(url) as response:
            try:
                body = await response.json(content_type=None)
            except ValueError:
                body = await response.text()
            return response.status, body

    async def get(self, url: str) -> tuple[int, object]:
        """GET `url` once admitted by the throttle. Returns (status, body)."""
        return await self.throttler.fn(url)

    async def fetch_many(
        self,
        url: str,
        count: int,
        progress: ThrottleProgress | None = None,
    ) -> FetchResult:
        """Fire `count` throttled GETs at `url` concurrently.

        Args:
            url: Endpoint to request
            count: Number of requests to send
            progress: Optional ThrottleProgress for live display

        Returns:
            FetchResult with one record per request, in submission order
        """
        start = time.monotonic()
        result = FetchResult(records=[RequestRecord(index=i) for i in range(count)])
        task_id = progress.add_task("Requests", total=count) if progress else None

        logger.info(f"Sending {count} requests to {url} "
                    f"(max={self.throttler.max} per {self.throttler.duration}ms, "
                    f"concurrent={self.throttler.concurrent})")

        async def send(record: RequestRecord) -> None:
            def admitted() -> None:
                record.started = time.monotonic() - start

            try:
                record.status, record.body = await self.throttler.fn(url, admitted)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                record.error = str(e) or type(e).__name__
                result.error_count += 1
                logger.error(f"Request {record.index} failed: {record.error}")
            record.finished = time.monotonic() - start
            if progress and task_id is not None:
                progress.advance(task_id)

        await asyncio.gather(*(send(record) for record in result.records))

        result.elapsed_seconds = time.monotonic() - start
        logger.info(f"Batch complete: {count} requests, {result.error_count} errors, "
                    f"statuses {result.status_counts}, {result.elapsed_seconds:.1f}s")
        return result
