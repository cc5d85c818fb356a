"""
Link extraction for fetched pages.
"""
from __future__ import annotations

from typing import Set, Union
from urllib.parse import urldefrag, urljoin, urlparse

from bs4 import BeautifulSoup
from bs4.element import Tag

__all__ = ["extract_links"]


def extract_links(html: Union[str, bytes], base_url: str) -> Set[str]:
    """
    Return every anchor href of *html* resolved against *base_url*.

    Empty hrefs, fragments and non-HTTP(S) schemes (mailto:, javascript:,
    tel:, ...) are dropped. Links to any host are kept; filtering by domain
    happens in the crawler.
    """
    soup = BeautifulSoup(html, "html.parser")
    links: Set[str] = set()
    for tag in soup.find_all("a", href=True):
        if not isinstance(tag, Tag):
            continue
        href_val = tag.get("href")
        if not isinstance(href_val, str):
            continue
        raw = href_val.strip()
        if not raw:
            continue
        absolute, _ = urldefrag(urljoin(base_url, raw))
        parsed = urlparse(absolute)
        if parsed.scheme in ("http", "https") and parsed.netloc:
            links.add(absolute)
    return links
