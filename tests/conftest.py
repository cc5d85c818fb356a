from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Union

import pytest

from distcrawl.config import CrawlerConfig
from distcrawl.crawler.fetcher import FetchError, FetchResult
from distcrawl.queue.memory import InMemoryUrlQueue
from distcrawl.storage.memory import InMemoryStorage

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock for politeness and retry tests."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class StubFetcher:
    """
    Stands in for distcrawl.crawler.fetcher.Fetcher.

    *pages* maps URL -> HTML string / bytes / FetchResult / exception.
    Unknown URLs raise FetchError 404.
    """

    def __init__(self, pages: Dict[str, Union[str, bytes, FetchResult, Exception]] | None = None) -> None:
        self.pages = dict(pages or {})
        self.calls: List[str] = []
        self.timeouts: List[float] = []

    async def fetch(self, url: str, timeout: float) -> FetchResult:
        self.calls.append(url)
        self.timeouts.append(timeout)
        page = self.pages.get(url)
        if page is None:
            raise FetchError(url, "HTTP 404", status=404)
        if isinstance(page, Exception):
            raise page
        if isinstance(page, FetchResult):
            return page
        body = page.encode("utf-8") if isinstance(page, str) else page
        return FetchResult(url=url, status=200, headers={"Content-Type": "text/html; charset=utf-8"}, body=body)

    async def close(self) -> None:
        pass


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def make_config():
    """Factory returning a CrawlerConfig with fast, test-friendly defaults."""

    def _make(**overrides) -> CrawlerConfig:
        values = dict(
            max_depth=2,
            max_concurrent_requests=4,
            batch_worker_divisor=2,
            crawl_delay=0,
            max_retry_attempts=3,
            respect_robots_txt=False,
            user_agent="TestAgent/1.0",
            poll_timeout=0.05,
            max_batch_size=10,
            fetch_timeout=2.0,
            robots_timeout=1.0,
            error_backoff=0.01,
        )
        values.update(overrides)
        return CrawlerConfig(**values)

    return _make


@pytest.fixture()
def queue() -> InMemoryUrlQueue:
    return InMemoryUrlQueue(max_batch_size=10)


@pytest.fixture()
def storage() -> InMemoryStorage:
    return InMemoryStorage()
