"""distcrawl.service: control facade used by the CLI and embedding applications."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Iterable, List, Optional, Tuple
from urllib.parse import urlsplit

from distcrawl.config import CrawlerConfig
from distcrawl.crawler.fetcher import Fetcher
from distcrawl.crawler.models import CrawlRequest, PageMetadata
from distcrawl.crawler.orchestrator import BatchOrchestrator, CrawlerStateError
from distcrawl.logger import logger
from distcrawl.queue.base import UrlQueue
from distcrawl.queue.memory import InMemoryUrlQueue
from distcrawl.storage.base import StorageService
from distcrawl.storage.filesystem import FileSystemStorage
from distcrawl.storage.memory import InMemoryStorage

__all__ = ["CrawlerService", "CrawlerStats", "CrawlerStateError"]


@dataclass(frozen=True, slots=True)
class CrawlerStats:
    """Snapshot of the crawler's state and effective settings."""

    is_running: bool
    uptime: timedelta
    max_depth: int
    max_concurrent_requests: int
    crawl_delay: timedelta
    respect_robots_txt: bool
    user_agent: str
    configured_seed_urls: int
    seed_urls: Tuple[str, ...]
    pages_stored: int
    pending_retries: int


def _check_url(url: str) -> str:
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ValueError(f"Invalid URL format: {url!r}")
    return url


class CrawlerService:
    """Facade for the CLI and tests: wires queue, storage and fetcher into one orchestrator."""

    def __init__(
        self,
        config: CrawlerConfig,
        queue: Optional[UrlQueue] = None,
        storage: Optional[StorageService] = None,
        fetcher: Optional[Fetcher] = None,
    ) -> None:
        self.config = config
        self.queue = queue or InMemoryUrlQueue(max_batch_size=config.max_batch_size)
        if storage is None:
            storage = FileSystemStorage(config.storage_dir) if config.storage_dir else InMemoryStorage()
        self.storage = storage
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or Fetcher(config.user_agent)
        self.orchestrator = BatchOrchestrator(config, self.queue, self.storage, self.fetcher)
        self._started_at = time.monotonic()

    async def __aenter__(self) -> CrawlerService:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def is_running(self) -> bool:
        return self.orchestrator.is_running

    async def start(self) -> None:
        await self.orchestrator.start()

    async def stop(self) -> None:
        await self.orchestrator.stop()

    async def close(self) -> None:
        await self.orchestrator.close()
        if self._owns_fetcher:
            await self.fetcher.close()

    async def add_seed_url(self, url: str) -> CrawlRequest:
        request = CrawlRequest.seed(_check_url(url))
        await self.queue.enqueue(request)
        logger.info("Seed URL added: %s", url)
        return request

    async def add_seed_urls(self, urls: Iterable[str]) -> List[CrawlRequest]:
        checked = [_check_url(u) for u in urls]
        return list(await asyncio.gather(*(self.add_seed_url(u) for u in checked)))

    async def stats(self) -> CrawlerStats:
        retries = self.orchestrator.retries
        return CrawlerStats(
            is_running=self.is_running,
            uptime=timedelta(seconds=time.monotonic() - self._started_at),
            max_depth=self.config.max_depth,
            max_concurrent_requests=self.config.max_concurrent_requests,
            crawl_delay=self.config.crawl_delay,
            respect_robots_txt=self.config.respect_robots_txt,
            user_agent=self.config.user_agent,
            configured_seed_urls=len(set(self.config.seed_urls)),
            seed_urls=tuple(sorted(set(self.config.seed_urls))),
            pages_stored=await self.storage.page_count(),
            pending_retries=len(retries) if retries is not None else 0,
        )

    async def list_pages(self, limit: int = 50, offset: int = 0) -> List[PageMetadata]:
        return await self.storage.list_pages(limit, offset)

    async def search_pages(self, term: Optional[str], limit: int = 50) -> List[PageMetadata]:
        if term is None or not term.strip():
            return await self.list_pages(limit, 0)
        return await self.storage.search_pages(term.strip(), limit)

    async def page_count(self) -> int:
        return await self.storage.page_count()

    async def run_until_idle(self, idle_timeout: float = 5.0, check_interval: float = 0.1) -> CrawlerStats:
        """Start, crawl until nothing happened for *idle_timeout* seconds, stop."""
        if not self.is_running:
            await self.start()
        try:
            while self.orchestrator.idle_for() < idle_timeout:
                await asyncio.sleep(check_interval)
        finally:
            await self.stop()
        return await self.stats()
