"""In-process frontier with poll/commit/redelivery semantics."""
from __future__ import annotations

import asyncio
from collections import deque
from typing import Deque, List

from distcrawl.crawler.models import CrawlRequest
from distcrawl.logger import get_logger
from distcrawl.queue.base import QueueError

__all__ = ["InMemoryUrlQueue"]

log = get_logger("queue")


class InMemoryUrlQueue:
    """
    FIFO frontier for a single process.

    Behaves like one partition of a log: polled requests move to an
    uncommitted set until :meth:`commit_batch`; :meth:`rewind` returns them to
    the head of the queue, which is what a consumer restart looks like.
    """

    def __init__(self, max_batch_size: int = 50) -> None:
        if max_batch_size < 1:
            raise ValueError("max_batch_size must be >= 1")
        self.max_batch_size = max_batch_size
        self._pending: Deque[CrawlRequest] = deque()
        self._uncommitted: List[CrawlRequest] = []
        self._available = asyncio.Condition()
        self._closed = False
        self.enqueued = 0
        self.committed = 0

    async def enqueue(self, request: CrawlRequest) -> None:
        if self._closed:
            raise QueueError("queue is closed")
        async with self._available:
            self._pending.append(request)
            self.enqueued += 1
            self._available.notify()

    async def poll_batch(self, timeout: float) -> List[CrawlRequest]:
        if self._closed:
            raise QueueError("queue is closed")
        async with self._available:
            if not self._pending:
                try:
                    await asyncio.wait_for(
                        self._available.wait_for(lambda: bool(self._pending) or self._closed),
                        timeout=timeout,
                    )
                except asyncio.TimeoutError:
                    return []
            batch: List[CrawlRequest] = []
            while self._pending and len(batch) < self.max_batch_size:
                batch.append(self._pending.popleft())
            self._uncommitted.extend(batch)
            return batch

    async def commit_batch(self) -> None:
        if self._closed:
            raise QueueError("queue is closed")
        self.committed += len(self._uncommitted)
        self._uncommitted.clear()

    def rewind(self) -> int:
        """Put uncommitted requests back at the head, in their original order."""
        count = len(self._uncommitted)
        self._pending.extendleft(reversed(self._uncommitted))
        self._uncommitted.clear()
        if count:
            log.info("Redelivering %d uncommitted requests", count)
        return count

    def pending(self) -> int:
        return len(self._pending)

    def uncommitted(self) -> int:
        return len(self._uncommitted)

    async def close(self) -> None:
        self._closed = True
        async with self._available:
            self._available.notify_all()
