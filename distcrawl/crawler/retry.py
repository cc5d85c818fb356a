"""
Deferred re-enqueue of requests that were told to come back later.

One timer task drains a min-heap of ``(fire_time, seq, request)`` entries;
each fired entry costs a single ``enqueue`` call, so many thousands of
pending retries need no more than that one task.
"""
from __future__ import annotations

import asyncio
import heapq
import itertools
import time
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from distcrawl.crawler.models import CrawlRequest, utcnow
from distcrawl.logger import get_logger
from distcrawl.queue.base import UrlQueue

__all__ = ["RetryScheduler"]

log = get_logger("retry")

_Entry = Tuple[datetime, int, CrawlRequest]


class RetryScheduler:
    """Turns RETRY_LATER decisions into time-delayed enqueues."""

    def __init__(self, queue: UrlQueue, clock: Callable[[], datetime] = utcnow) -> None:
        self._queue = queue
        self._clock = clock
        self._heap: List[_Entry] = []
        self._seq = itertools.count()
        self._wakeup = asyncio.Event()
        self._task: Optional[asyncio.Task[None]] = None
        self._closing = False
        self.fired = 0
        self.dropped = 0
        self.last_fired: Optional[float] = None

    def __len__(self) -> int:
        return len(self._heap)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._closing = False
        self._task = asyncio.create_task(self._run(), name="retry-scheduler")

    async def schedule_retry(self, request: CrawlRequest, retry_at: datetime) -> CrawlRequest:
        """
        Recycle *request* with ``retry_count + 1`` and ``scheduled_for = retry_at``.

        Past or present *retry_at* enqueues right away; otherwise the request
        is parked on the timer heap. Returns the recycled request.
        """
        retried = request.with_retry(retry_at)
        if retry_at <= self._clock():
            await self._enqueue(retried)
            return retried
        self._push(retry_at, retried)
        log.debug("Retry #%d for %s scheduled at %s", retried.retry_count, retried.url, retry_at.isoformat())
        return retried

    async def defer(self, request: CrawlRequest) -> None:
        """Hold a not-yet-ready request until ``scheduled_for``, unchanged."""
        if request.scheduled_for is None or request.scheduled_for <= self._clock():
            await self._enqueue(request)
            return
        self._push(request.scheduled_for, request)

    def _push(self, fire_at: datetime, request: CrawlRequest) -> None:
        heapq.heappush(self._heap, (fire_at, next(self._seq), request))
        self._wakeup.set()
        if not self.running:
            self.start()

    async def _enqueue(self, request: CrawlRequest) -> None:
        try:
            await self._queue.enqueue(request)
            self.fired += 1
            self.last_fired = time.monotonic()
        except Exception as exc:
            self.dropped += 1
            log.warning("Dropping retry for %s, enqueue failed: %s", request.url, exc)

    async def _run(self) -> None:
        while True:
            self._wakeup.clear()
            now = self._clock()
            while self._heap and self._heap[0][0] <= now:
                _, _, request = heapq.heappop(self._heap)
                await self._enqueue(request)
            if not self._heap:
                if self._closing:
                    return
                await self._wakeup.wait()
                continue
            delay = (self._heap[0][0] - now).total_seconds()
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=max(delay, 0.0))
            except asyncio.TimeoutError:
                pass

    async def drain(self) -> None:
        """Wait until every pending retry has fired, then stop the timer task."""
        self._closing = True
        self._wakeup.set()
        if self._task is not None:
            await self._task

    async def close(self) -> None:
        """Stop the timer task now; retries still on the heap are discarded."""
        self._closing = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        if self._heap:
            log.info("Discarding %d pending retries", len(self._heap))
            self.dropped += len(self._heap)
            self._heap.clear()
