"""
JSON report of crawled pages.

Serializes PageMetadata records (never page bodies) to a file.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List

from distcrawl.crawler.models import PageMetadata


def page_records(pages: Iterable[PageMetadata]) -> List[Dict[str, Any]]:
    """Plain JSON-ready dicts for *pages*."""
    return [
        {
            "url": p.url,
            "content_hash": p.content_hash,
            "fetch_time": p.fetch_time.isoformat(),
            "http_status": p.http_status,
            "depth": int(p.metadata.get("depth", 0)),
            "links": sorted(p.links),
        }
        for p in pages
    ]


def render_json(pages: Iterable[PageMetadata], output_path: Path | str, *, pretty: bool = True) -> Path:
    """
    Save *pages* as a JSON array at *output_path*.

    :param pages: stored page metadata
    :param output_path: path of the JSON file
    :return: Path of the written file

    Example:
    ```python
    from distcrawl.report.json_report import render_json
    report_path = render_json(await storage.list_pages(100), 'reports/pages.json')
    ```
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    with output.open('w', encoding='utf-8') as f:
        json.dump(page_records(pages), f, ensure_ascii=False, indent=2 if pretty else None)

    return output
