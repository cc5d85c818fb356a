"""Per-host record of when the last fetch started."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from distcrawl.crawler.models import utcnow


class PolitenessTracker:
    """
    Maps host -> start time of the most recent fetch.

    All workers run on one event loop and none of the methods await, so plain
    dict reads and overwrites are atomic with respect to each other and hosts
    never serialize behind one another.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock
        self._last_visit: Dict[str, datetime] = {}

    def record_visit_start(self, host: str, timestamp: Optional[datetime] = None) -> None:
        self._last_visit[host] = timestamp or self._clock()

    def last_visit(self, host: str) -> Optional[datetime]:
        return self._last_visit.get(host)

    def time_since_last_visit(self, host: str) -> Optional[timedelta]:
        last = self._last_visit.get(host)
        if last is None:
            return None
        return self._clock() - last

    def __len__(self) -> int:
        return len(self._last_visit)
