"""
Loading and validation of the DistCrawl crawler configuration.
Pydantic describes the schema and validates the data.
"""
from __future__ import annotations

import errno
import json
import os
from datetime import timedelta
from pathlib import Path
from typing import Any, List, Optional, Pattern, Union

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
)

__all__ = ["CrawlerConfig", "load_config"]


class CrawlerConfig(BaseModel):
    """Configuration for one crawler process."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    max_depth: int = Field(10, ge=0, description="Maximum distance from a seed URL.")
    max_concurrent_requests: int = Field(100, ge=1, description="Upper bound used to size the worker pool.")
    batch_worker_divisor: int = Field(10, ge=1, description="Worker loops = max_concurrent_requests // divisor.")
    crawl_delay: timedelta = Field(timedelta(seconds=1), description="Minimum delay between fetches to one host.")
    max_retry_attempts: int = Field(3, ge=0, description="How many times a request may be recycled.")
    enable_delay_retry: bool = Field(True, description="Re-schedule instead of dropping on politeness delay.")
    allowed_domain_patterns: List[Pattern[str]] = Field(
        default_factory=list, description="Regexes matched against the full host. Empty allows all."
    )
    exclude_patterns: List[Pattern[str]] = Field(
        default_factory=list, description="Regexes matched against the full URL."
    )
    seed_urls: List[str] = Field(default_factory=list, description="URLs enqueued at depth 0 on start.")
    respect_robots_txt: bool = Field(True, description="Consult robots.txt before crawling.")
    user_agent: str = Field("DistributedCrawler/1.0", min_length=1, description="User-Agent header.")
    poll_timeout: float = Field(1.0, gt=0, description="Batch poll wait (seconds).")
    max_batch_size: int = Field(50, ge=1, description="Largest batch handed out by the queue.")
    fetch_timeout: float = Field(30.0, gt=0, description="Page fetch timeout (seconds).")
    robots_timeout: float = Field(10.0, gt=0, description="robots.txt fetch timeout (seconds).")
    error_backoff: float = Field(1.0, ge=0, description="Sleep after a poll/commit failure (seconds).")
    storage_dir: Optional[Path] = Field(None, description="Directory for file storage; in-memory if unset.")

    @field_validator("crawl_delay")
    def _non_negative_delay(cls, v: timedelta) -> timedelta:
        if v < timedelta(0):
            raise ValueError("crawl_delay must be >= 0")
        return v

    @field_serializer("allowed_domain_patterns", "exclude_patterns")
    def _patterns_as_text(self, patterns: List[Pattern[str]]) -> List[str]:
        return [p.pattern for p in patterns]

    @field_serializer("crawl_delay")
    def _delay_as_seconds(self, delay: timedelta) -> float:
        return delay.total_seconds()

    @property
    def worker_count(self) -> int:
        return max(1, self.max_concurrent_requests // self.batch_worker_divisor)

    def host_allowed(self, host: str) -> bool:
        """True if *host* fully matches an allowed pattern (or none are configured)."""
        if not self.allowed_domain_patterns:
            return True
        return any(p.fullmatch(host) for p in self.allowed_domain_patterns)

    def url_excluded(self, url: str) -> bool:
        """True if *url* fully matches any exclude pattern."""
        return any(p.fullmatch(url) for p in self.exclude_patterns)


_DEFAULT_CFG = Path("configs/default.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of YAML must be a mapping, got {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of JSON must be a mapping, got {type(data).__name__}")
    return data


def load_config(path: Union[str, Path, None]) -> CrawlerConfig:
    """
    Read YAML or JSON and return a validated CrawlerConfig.
    Raises FileNotFoundError when the file does not exist.
    """
    if path is None:
        if not _DEFAULT_CFG.exists():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(_DEFAULT_CFG))
        path_obj = _DEFAULT_CFG
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Unsupported config format: {suffix}")

    return CrawlerConfig(**data)
