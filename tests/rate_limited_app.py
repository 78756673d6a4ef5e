"""aiohttp app that enforces its own rate limit, used as an integration target."""

import time
from collections import deque

from aiohttp import web

ERROR_MESSAGE = "rate limit exceeded"


def make_app(max_requests: int, duration_ms: float, error_message: str = ERROR_MESSAGE) -> web.Application:
    """Build an app allowing `max_requests` per sliding `duration_ms` window.

    Accepted requests answer {"count": n}; rejected ones answer 429 with
    {"message": error_message}.
    """
    app = web.Application()
    hits: deque[float] = deque()
    served = 0

    async def handler(request: web.Request) -> web.Response:
        nonlocal served
        now = time.monotonic()
        while hits and now - hits[0] >= duration_ms / 1000:
            hits.popleft()
        if len(hits) >= max_requests:
            return web.json_response({"message": error_message}, status=429)
        hits.append(now)
        served += 1
        return web.json_response({"count": served})

    app.router.add_get("/", handler)
    return app
