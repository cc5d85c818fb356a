"""
Directory-backed storage: content blobs keyed by hash plus a JSON-lines index.

Layout under *root*::

    content/ab/ab12…ef      raw page bodies, one file per distinct hash
    pages.jsonl            one metadata record per stored page, append-only

The index is replayed on open; a later record for the same URL wins.
"""
from __future__ import annotations

import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Union

from distcrawl.crawler.models import PageContent, PageMetadata
from distcrawl.logger import get_logger
from distcrawl.storage.base import StorageError

__all__ = ["FileSystemStorage"]

log = get_logger("storage")

_INDEX = "pages.jsonl"


def _to_record(meta: PageMetadata) -> Dict[str, Any]:
    return {
        "url": meta.url,
        "content_hash": meta.content_hash,
        "fetch_time": meta.fetch_time.isoformat(),
        "http_status": meta.http_status,
        "headers": meta.headers,
        "links": sorted(meta.links),
        "metadata": meta.metadata,
    }


def _from_record(data: Dict[str, Any]) -> PageMetadata:
    return PageMetadata(
        url=data["url"],
        content_hash=data["content_hash"],
        fetch_time=datetime.fromisoformat(data["fetch_time"]),
        http_status=int(data["http_status"]),
        headers=dict(data.get("headers") or {}),
        links=frozenset(data.get("links") or ()),
        metadata=dict(data.get("metadata") or {}),
    )


class FileSystemStorage:
    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root).expanduser()
        self.root.mkdir(parents=True, exist_ok=True)
        (self.root / "content").mkdir(exist_ok=True)
        self._index_path = self.root / _INDEX
        self._lock = asyncio.Lock()
        self._pages: Dict[str, PageMetadata] = {}
        self._hashes: Set[str] = set()
        self._load_index()

    def _load_index(self) -> None:
        if not self._index_path.exists():
            return
        with self._index_path.open("r", encoding="utf-8") as fh:
            for lineno, line in enumerate(fh, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    meta = _from_record(json.loads(line))
                except (ValueError, KeyError, TypeError) as exc:
                    log.warning("Skipping corrupt index line %d in %s: %s", lineno, self._index_path, exc)
                    continue
                self._pages.pop(meta.url, None)
                self._pages[meta.url] = meta
                self._hashes.add(meta.content_hash)
        log.info("Loaded %d pages from %s", len(self._pages), self._index_path)

    def _blob_path(self, content_hash: str) -> Path:
        return self.root / "content" / content_hash[:2] / content_hash

    def _write(self, page: PageContent, record: str) -> None:
        blob = self._blob_path(page.content_hash)
        blob.parent.mkdir(parents=True, exist_ok=True)
        if not blob.exists():
            blob.write_bytes(page.content)
        with self._index_path.open("a", encoding="utf-8") as fh:
            fh.write(record + "\n")

    async def store(self, page: PageContent) -> None:
        meta = page.describe()
        record = json.dumps(_to_record(meta), ensure_ascii=False)
        async with self._lock:
            try:
                await asyncio.to_thread(self._write, page, record)
            except OSError as exc:
                raise StorageError(f"cannot store {page.url}: {exc}") from exc
            self._pages.pop(meta.url, None)
            self._pages[meta.url] = meta
            self._hashes.add(meta.content_hash)

    async def exists(self, content_hash: str) -> bool:
        return content_hash in self._hashes

    async def retrieve(self, url: str) -> Optional[PageContent]:
        meta = self._pages.get(url)
        if meta is None:
            return None
        try:
            body = await asyncio.to_thread(self._blob_path(meta.content_hash).read_bytes)
        except OSError as exc:
            raise StorageError(f"content for {url} missing: {exc}") from exc
        return PageContent(
            url=meta.url,
            content_hash=meta.content_hash,
            content=body,
            fetch_time=meta.fetch_time,
            http_status=meta.http_status,
            headers=dict(meta.headers),
            links=meta.links,
            metadata=dict(meta.metadata),
        )

    async def list_pages(self, limit: int = 50, offset: int = 0) -> List[PageMetadata]:
        return list(self._pages.values())[offset:offset + limit]

    async def search_pages(self, term: str, limit: int = 50) -> List[PageMetadata]:
        needle = term.lower()
        return [m for m in self._pages.values() if needle in m.url.lower()][:limit]

    async def page_count(self) -> int:
        return len(self._pages)
