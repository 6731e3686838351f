"""
Per-source minimum-interval gate.

Each upstream source has its own lock and its own "next allowed" instant, so
pacing one source never delays another. The clock and the sleep coroutine
are injectable: tests pass a fake clock and a recording sleep instead of
waiting in real time.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class IntervalGate:
    """Async gate enforcing a minimum gap between requests to the same source.

    Usage:
        gate = IntervalGate({"rss": 500, "newsapi": 1000})
        await gate.wait("newsapi")   # returns immediately the first time
        await gate.wait("newsapi")   # sleeps until 1000ms after the previous call
    """

    def __init__(
        self,
        intervals_ms: Optional[Dict[str, int]] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._intervals_ms: Dict[str, int] = dict(intervals_ms or {})
        self._clock = clock
        self._sleep = sleep
        self._last: Dict[str, float] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def set_interval(self, source_tag: str, min_interval_ms: int):
        self._intervals_ms[source_tag] = max(0, int(min_interval_ms))

    def interval_seconds(self, source_tag: str) -> float:
        return self._intervals_ms.get(source_tag, 0) / 1000.0

    def _get_lock(self, source_tag: str) -> asyncio.Lock:
        # Lazily created so each lock binds to the loop that first uses it
        if source_tag not in self._locks:
            self._locks[source_tag] = asyncio.Lock()
        return self._locks[source_tag]

    async def wait(self, source_tag: str) -> float:
        """Block until `source_tag` may issue a request. Returns seconds waited."""
        async with self._get_lock(source_tag):
            now = self._clock()
            last = self._last.get(source_tag)
            waited = 0.0
            if last is not None:
                next_allowed = last + self.interval_seconds(source_tag)
                if now < next_allowed:
                    waited = next_allowed - now
                    logger.debug(f"[{source_tag}] rate gate: waiting {waited * 1000:.0f}ms")
                    await self._sleep(waited)
                    now = next_allowed
            self._last[source_tag] = now
            return waited
