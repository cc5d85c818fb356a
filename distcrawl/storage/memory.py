"""Dictionary-backed storage, used by tests and single-process runs."""
from __future__ import annotations

from typing import Dict, List, Optional, Set

from distcrawl.crawler.models import PageContent, PageMetadata

__all__ = ["InMemoryStorage"]


class InMemoryStorage:
    def __init__(self) -> None:
        self._pages: Dict[str, PageContent] = {}
        self._hashes: Set[str] = set()
        self.store_calls = 0

    async def store(self, page: PageContent) -> None:
        self.store_calls += 1
        # dicts keep insertion order; re-storing a URL moves it to the end
        self._pages.pop(page.url, None)
        self._pages[page.url] = page
        self._hashes.add(page.content_hash)

    async def exists(self, content_hash: str) -> bool:
        return content_hash in self._hashes

    async def retrieve(self, url: str) -> Optional[PageContent]:
        return self._pages.get(url)

    async def list_pages(self, limit: int = 50, offset: int = 0) -> List[PageMetadata]:
        pages = list(self._pages.values())[offset:offset + limit]
        return [p.describe() for p in pages]

    async def search_pages(self, term: str, limit: int = 50) -> List[PageMetadata]:
        needle = term.lower()
        found = [p.describe() for p in self._pages.values() if needle in p.url.lower()]
        return found[:limit]

    async def page_count(self) -> int:
        return len(self._pages)
