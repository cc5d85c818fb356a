"""Contract between the crawler core and page storage."""
from __future__ import annotations

from typing import List, Optional, Protocol, runtime_checkable

from distcrawl.crawler.models import PageContent, PageMetadata


class StorageError(Exception):
    """The backend failed to store or read a page."""


@runtime_checkable
class StorageService(Protocol):
    """
    Content blobs plus a metadata index.

    The crawler core only uses ``store``, ``exists`` and ``retrieve``; the
    listing helpers serve the control surface.
    """

    async def store(self, page: PageContent) -> None: ...

    async def exists(self, content_hash: str) -> bool: ...

    async def retrieve(self, url: str) -> Optional[PageContent]: ...

    async def list_pages(self, limit: int = 50, offset: int = 0) -> List[PageMetadata]: ...

    async def search_pages(self, term: str, limit: int = 50) -> List[PageMetadata]: ...

    async def page_count(self) -> int: ...
