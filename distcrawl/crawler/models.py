"""
Data models for the DistCrawl crawler.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, FrozenSet, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class CrawlRequest:
    """A unit of crawl work: a URL plus where it came from and when it may run."""

    url: str
    depth: int = 0
    parent_url: Optional[str] = None
    discovered_at: datetime = field(default_factory=utcnow)
    priority: int = 1
    retry_count: int = 0
    scheduled_for: Optional[datetime] = None

    @classmethod
    def seed(cls, url: str) -> CrawlRequest:
        return cls(url=url, depth=0)

    def child(self, url: str) -> CrawlRequest:
        """Request for a link discovered on this page."""
        return CrawlRequest(url=url, depth=self.depth + 1, parent_url=self.url)

    def with_retry(self, retry_at: datetime) -> CrawlRequest:
        """Same request, recycled once more and deferred until *retry_at*."""
        return replace(self, retry_count=self.retry_count + 1, scheduled_for=retry_at)

    def is_ready(self, now: Optional[datetime] = None) -> bool:
        if self.scheduled_for is None:
            return True
        return (now or utcnow()) >= self.scheduled_for


@dataclass(frozen=True, slots=True)
class PageMetadata:
    """Everything stored about a page except its body."""

    url: str
    content_hash: str
    fetch_time: datetime
    http_status: int
    headers: Dict[str, str] = field(default_factory=dict)
    links: FrozenSet[str] = frozenset()
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class PageContent:
    """A fetched page: raw body plus metadata. Deduplicated by ``content_hash``."""

    url: str
    content_hash: str
    content: bytes
    fetch_time: datetime
    http_status: int
    headers: Dict[str, str] = field(default_factory=dict)
    links: FrozenSet[str] = frozenset()
    metadata: Dict[str, str] = field(default_factory=dict)

    def describe(self) -> PageMetadata:
        return PageMetadata(
            url=self.url,
            content_hash=self.content_hash,
            fetch_time=self.fetch_time,
            http_status=self.http_status,
            headers=dict(self.headers),
            links=self.links,
            metadata=dict(self.metadata),
        )
