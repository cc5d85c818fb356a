"""
Admission decisions: may a dequeued request be crawled now, later, or never.

A decision is one of three immutable variants. Only :class:`RetryLater`
carries a timestamp, so a "crawl at time T" or "reject until T" value cannot
be built. :func:`decide` evaluates the checks in a fixed order and stops at
the first one that fails:

1. depth limit
2. retry budget
3. allowed domains (full match on the host)
4. exclude patterns (full match on the URL)
5. politeness delay for the host
6. robots.txt

Any exception raised while evaluating becomes a :class:`Reject` carrying the
exception message.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union
from urllib.parse import urlsplit

from distcrawl.config import CrawlerConfig
from distcrawl.crawler.models import CrawlRequest, utcnow
from distcrawl.crawler.politeness import PolitenessTracker
from distcrawl.crawler.robots import RobotsCache
from distcrawl.logger import get_logger

__all__ = [
    "CrawlAction",
    "Crawl",
    "RetryLater",
    "Reject",
    "Decision",
    "decide",
    "host_of",
    "passes_link_filters",
]

log = get_logger("decision")


class CrawlAction(enum.Enum):
    CRAWL = "crawl"
    RETRY_LATER = "retry_later"
    REJECT = "reject"


@dataclass(frozen=True, slots=True)
class Crawl:
    reason: str = "admitted"

    @property
    def action(self) -> CrawlAction:
        return CrawlAction.CRAWL


@dataclass(frozen=True, slots=True)
class RetryLater:
    reason: str
    retry_at: datetime

    @property
    def action(self) -> CrawlAction:
        return CrawlAction.RETRY_LATER


@dataclass(frozen=True, slots=True)
class Reject:
    reason: str

    @property
    def action(self) -> CrawlAction:
        return CrawlAction.REJECT


Decision = Union[Crawl, RetryLater, Reject]


def host_of(url: str) -> str:
    """Lower-cased host of *url*; ValueError if it has none."""
    host = urlsplit(url).hostname
    if not host:
        raise ValueError(f"malformed URL, no host: {url!r}")
    return host


def passes_link_filters(url: str, config: CrawlerConfig) -> bool:
    """Domain allow-list and exclude patterns only; used for discovered links."""
    try:
        host = host_of(url)
    except ValueError:
        return False
    return config.host_allowed(host) and not config.url_excluded(url)


async def decide(
    request: CrawlRequest,
    config: CrawlerConfig,
    politeness: PolitenessTracker,
    robots: Optional[RobotsCache],
    now: Optional[datetime] = None,
) -> Decision:
    """Admission check for *request*. Never raises."""
    try:
        return await _evaluate(request, config, politeness, robots, now or utcnow())
    except Exception as exc:
        log.debug("Admission check failed for %s: %s", request.url, exc)
        return Reject(str(exc) or type(exc).__name__)


async def _evaluate(
    request: CrawlRequest,
    config: CrawlerConfig,
    politeness: PolitenessTracker,
    robots: Optional[RobotsCache],
    now: datetime,
) -> Decision:
    if request.depth > config.max_depth:
        return Reject(f"depth {request.depth} exceeds max {config.max_depth}")

    if request.retry_count > config.max_retry_attempts:
        return Reject(f"exceeded max retry attempts ({config.max_retry_attempts})")

    host = host_of(request.url)

    if not config.host_allowed(host):
        return Reject(f"domain {host} not in allowed domains")

    if config.url_excluded(request.url):
        return Reject("URL matches an exclude pattern")

    # robots.txt is loaded before the politeness check so that no await
    # separates that check from the caller recording the visit; the
    # politeness outcome still takes precedence.
    rules = None
    if config.respect_robots_txt and robots is not None:
        rules = await robots.rules_for(request.url)

    last = politeness.last_visit(host)
    if last is not None and now - last < config.crawl_delay:
        if config.enable_delay_retry:
            return RetryLater(f"crawl delay not satisfied for {host}", last + config.crawl_delay)
        return Reject(f"crawl delay not satisfied for {host}")

    if rules is not None and not rules.is_allowed(request.url):
        return Reject("robots.txt disallows")

    return Crawl()
