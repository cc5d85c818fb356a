"""Contract between the crawler core and the frontier transport."""
from __future__ import annotations

from typing import List, Protocol, runtime_checkable

from distcrawl.crawler.models import CrawlRequest


class QueueError(Exception):
    """The transport could not enqueue, poll or commit."""


@runtime_checkable
class UrlQueue(Protocol):
    """
    Durable frontier.

    ``poll_batch`` hands out zero or more requests and never blocks longer
    than *timeout* seconds. ``commit_batch`` acknowledges every request polled
    so far and not yet committed. Requests polled but never committed are
    delivered again after a consumer restart.

    The consumer side (poll/commit) is not safe for concurrent use; callers
    must serialize it.
    """

    async def enqueue(self, request: CrawlRequest) -> None: ...

    async def poll_batch(self, timeout: float) -> List[CrawlRequest]: ...

    async def commit_batch(self) -> None: ...

    async def close(self) -> None: ...
