"""
Request queue for rate-limited HTTP APIs.
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

T = TypeVar("T")


class RequestQueue:
    """
    Serializes calls and spaces their start times.

    Callers are served in arrival order; each call starts at least
    `interval` seconds after the previous one started.
    """

    def __init__(self, interval: float):
        self.interval = interval
        self._lock = asyncio.Lock()
        self._last_start: Optional[float] = None

    async def run(self, request: Callable[[], Awaitable[T]]) -> T:
        """Run `request` once its turn comes."""
        async with self._lock:
            loop = asyncio.get_running_loop()
            if self._last_start is not None:
                wait = self._last_start + self.interval - loop.time()
                if wait > 0:
                    await asyncio.sleep(wait)
            self._last_start = loop.time()
            return await request()
