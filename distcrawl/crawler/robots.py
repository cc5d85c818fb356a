"""
robots.txt rules and the per-origin cache the admission check consults.
"""
from __future__ import annotations

import asyncio
from typing import Dict, List, Sequence
from urllib.parse import urlsplit

from distcrawl.crawler.fetcher import FetchError, Fetcher
from distcrawl.logger import get_logger

__all__ = ["RobotsRules", "RobotsCache"]

log = get_logger("robots")


class RobotsRules:
    """
    Disallow paths declared for the wildcard user-agent.

    Only ``User-agent: *`` groups count; Allow, Crawl-delay, Sitemap and
    everything else is ignored. A URL is allowed iff no disallowed path occurs
    anywhere in it (substring test on the full URL, not a path-prefix test).
    """

    def __init__(self, disallowed: Sequence[str] = ()) -> None:
        self.disallowed: List[str] = list(disallowed)

    @classmethod
    def parse(cls, text: str) -> RobotsRules:
        disallowed: List[str] = []
        relevant = False
        for raw in text.splitlines():
            line = raw.strip()
            if not line:
                continue
            key, sep, val = line.partition(":")
            if not sep:
                continue
            key = key.strip().lower()
            val = val.strip()
            if key == "user-agent":
                relevant = val == "*"
            elif key == "disallow" and relevant and val:
                disallowed.append(val)
        return cls(disallowed)

    @classmethod
    def allow_all(cls) -> RobotsRules:
        return cls()

    def is_allowed(self, url: str) -> bool:
        return not any(path in url for path in self.disallowed)

    def __repr__(self) -> str:
        return f"RobotsRules({self.disallowed!r})"


class RobotsCache:
    """
    Memoizes RobotsRules per origin (``scheme://host[:port]``) for the cache's lifetime.

    Concurrent misses for the same origin share one fetch; different origins
    never wait on each other. Fetch or parse failures cache an empty rule set.
    """

    def __init__(self, fetcher: Fetcher, timeout: float) -> None:
        self._fetcher = fetcher
        self._timeout = timeout
        self._rules: Dict[str, asyncio.Task[RobotsRules]] = {}

    @staticmethod
    def _origin(url: str) -> str:
        parts = urlsplit(url)
        if not parts.scheme or not parts.netloc:
            raise ValueError(f"not an absolute URL: {url!r}")
        return f"{parts.scheme}://{parts.netloc}"

    async def rules_for(self, url: str) -> RobotsRules:
        origin = self._origin(url)
        task = self._rules.get(origin)
        if task is None:
            task = asyncio.ensure_future(self._load(origin))
            self._rules[origin] = task
        return await asyncio.shield(task)

    async def is_allowed(self, url: str) -> bool:
        rules = await self.rules_for(url)
        return rules.is_allowed(url)

    async def _load(self, origin: str) -> RobotsRules:
        robots_url = f"{origin}/robots.txt"
        try:
            result = await self._fetcher.fetch(robots_url, timeout=self._timeout)
            rules = RobotsRules.parse(result.text())
        except FetchError as exc:
            log.warning("robots.txt unavailable for %s, allowing all: %s", origin, exc)
            return RobotsRules.allow_all()
        except Exception as exc:
            log.warning("Failed to read robots.txt for %s, allowing all: %s", origin, exc)
            return RobotsRules.allow_all()
        log.debug("robots.txt %s -> %d disallowed paths", robots_url, len(rules.disallowed))
        return rules

    def cached(self, url: str) -> bool:
        task = self._rules.get(self._origin(url))
        return task is not None and task.done()

    def __len__(self) -> int:
        return len(self._rules)
