"""
Fetch-and-discover pipeline run for every admitted request.

Steps, strictly in order: mark the host visited, fetch, hash the body, stop on
a known hash, extract and filter links, store the page, enqueue the links.
A failing step is logged and ends processing of that request only; earlier
steps are not undone.
"""
from __future__ import annotations

import enum
import hashlib
from dataclasses import dataclass
from typing import List, Optional, Set

from distcrawl.config import CrawlerConfig
from distcrawl.crawler.decision import host_of, passes_link_filters
from distcrawl.crawler.fetcher import FetchError, Fetcher, FetchResult
from distcrawl.crawler.link_extractor import extract_links
from distcrawl.crawler.models import CrawlRequest, PageContent, utcnow
from distcrawl.crawler.politeness import PolitenessTracker
from distcrawl.logger import get_logger
from distcrawl.queue.base import UrlQueue
from distcrawl.storage.base import StorageService

__all__ = ["content_hash", "PipelineOutcome", "PipelineStats", "FetchPipeline"]

log = get_logger("pipeline")

_HTML_TYPES = ("", "text/html", "application/xhtml+xml")


def content_hash(body: bytes) -> str:
    """Hex SHA-256 of *body*."""
    return hashlib.sha256(body).hexdigest()


class PipelineOutcome(enum.Enum):
    STORED = "stored"
    DUPLICATE = "duplicate"
    FAILED = "failed"


@dataclass(slots=True)
class PipelineStats:
    processed: int = 0
    stored: int = 0
    duplicates: int = 0
    failures: int = 0
    links_enqueued: int = 0
    enqueue_failures: int = 0


class FetchPipeline:
    def __init__(
        self,
        config: CrawlerConfig,
        fetcher: Fetcher,
        storage: StorageService,
        queue: UrlQueue,
        politeness: PolitenessTracker,
    ) -> None:
        self.config = config
        self.fetcher = fetcher
        self.storage = storage
        self.queue = queue
        self.politeness = politeness
        self.stats = PipelineStats()
        self._claimed: Set[str] = set()

    async def process(self, request: CrawlRequest) -> PipelineOutcome:
        self.stats.processed += 1
        try:
            host = host_of(request.url)
        except ValueError as exc:
            log.warning("Cannot process %s: %s", request.url, exc)
            return self._failed()
        self.politeness.record_visit_start(host)

        try:
            result = await self.fetcher.fetch(request.url, timeout=self.config.fetch_timeout)
        except FetchError as exc:
            log.warning("Fetch failed: %s", exc)
            return self._failed()

        digest = content_hash(result.body)

        try:
            known = await self.storage.exists(digest)
        except Exception as exc:
            log.warning("Dedup check failed for %s: %s", request.url, exc)
            return self._failed()
        # no await between the exists() answer and claiming the hash
        if known or digest in self._claimed:
            self.stats.duplicates += 1
            log.debug("Skipping duplicate content: %s (%s)", request.url, digest[:12])
            return PipelineOutcome.DUPLICATE
        self._claimed.add(digest)
        try:
            links = await self._store(request, result, digest)
        finally:
            self._claimed.discard(digest)
        if links is None:
            return self._failed()
        self.stats.stored += 1

        follow = sorted(link for link in links if passes_link_filters(link, self.config))
        enqueued = await self._enqueue_children(request, follow)
        log.info("Crawled %s (depth %d): %d links, %d enqueued", request.url, request.depth, len(links), enqueued)
        return PipelineOutcome.STORED

    async def _store(self, request: CrawlRequest, result: FetchResult, digest: str) -> Optional[Set[str]]:
        """Extract links and store the page; None if either step failed."""
        try:
            links = self._discover(result.body, result.content_type, request.url)
        except Exception as exc:
            log.warning("Link extraction failed for %s: %s", request.url, exc)
            return None

        page = PageContent(
            url=request.url,
            content_hash=digest,
            content=result.body,
            fetch_time=utcnow(),
            http_status=result.status,
            headers=dict(result.headers),
            links=frozenset(links),
            metadata={"depth": str(request.depth)},
        )
        try:
            await self.storage.store(page)
        except Exception as exc:
            log.warning("Storing %s failed: %s", request.url, exc)
            return None
        return links

    @staticmethod
    def _discover(body: bytes, content_type: str, base_url: str) -> Set[str]:
        if content_type not in _HTML_TYPES:
            return set()
        return extract_links(body, base_url)

    async def _enqueue_children(self, request: CrawlRequest, links: List[str]) -> int:
        count = 0
        for link in links:
            try:
                await self.queue.enqueue(request.child(link))
            except Exception as exc:
                self.stats.enqueue_failures += 1
                log.warning("Could not enqueue %s (from %s): %s", link, request.url, exc)
                continue
            count += 1
        self.stats.links_enqueued += count
        return count

    def _failed(self) -> PipelineOutcome:
        self.stats.failures += 1
        return PipelineOutcome.FAILED

