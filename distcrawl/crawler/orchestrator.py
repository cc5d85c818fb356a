"""
Batch worker orchestrator.

A single poll task owns the queue's consumer side: it polls up to one batch
per worker, hands each to the worker pool, waits until every handed-out batch
is finished and only then commits. Workers fan a batch out into one task per
request and wait for all of them. A crash before the commit means the whole
round is delivered again (at-least-once).

    STOPPED --start()--> RUNNING --stop()--> STOPPED

``stop()`` is cooperative: the poll task checks the flag before each round
and in-flight batches run to completion. Pending retries keep firing until
:meth:`BatchOrchestrator.close`.
"""
from __future__ import annotations

import asyncio
import enum
import time
from dataclasses import dataclass, field
from typing import List, Optional

from distcrawl.config import CrawlerConfig
from distcrawl.crawler.decision import Crawl, Decision, RetryLater, decide
from distcrawl.crawler.fetcher import Fetcher
from distcrawl.crawler.models import CrawlRequest
from distcrawl.crawler.pipeline import FetchPipeline
from distcrawl.crawler.politeness import PolitenessTracker
from distcrawl.crawler.retry import RetryScheduler
from distcrawl.crawler.robots import RobotsCache
from distcrawl.logger import get_logger
from distcrawl.queue.base import UrlQueue
from distcrawl.storage.base import StorageService

__all__ = ["CrawlerStateError", "OrchestratorState", "OrchestratorStats", "BatchOrchestrator"]

log = get_logger("orchestrator")


class CrawlerStateError(RuntimeError):
    """Operation not valid in the orchestrator's current state."""


class OrchestratorState(enum.Enum):
    STOPPED = "stopped"
    RUNNING = "running"


@dataclass(slots=True)
class OrchestratorStats:
    batches: int = 0
    commits: int = 0
    requests: int = 0
    crawled: int = 0
    retried: int = 0
    rejected: int = 0
    deferred: int = 0
    errors: int = 0


@dataclass(slots=True)
class _Batch:
    requests: List[CrawlRequest]
    done: asyncio.Future = field(default_factory=lambda: asyncio.get_running_loop().create_future())


class BatchOrchestrator:
    def __init__(
        self,
        config: CrawlerConfig,
        queue: UrlQueue,
        storage: StorageService,
        fetcher: Fetcher,
    ) -> None:
        self.config = config
        self.queue = queue
        self.storage = storage
        self.fetcher = fetcher
        self.state = OrchestratorState.STOPPED
        self.stats = OrchestratorStats()
        self.politeness: Optional[PolitenessTracker] = None
        self.robots: Optional[RobotsCache] = None
        self.retries: Optional[RetryScheduler] = None
        self.pipeline: Optional[FetchPipeline] = None
        self._running = False
        self._batches: Optional[asyncio.Queue[Optional[_Batch]]] = None
        self._poller: Optional[asyncio.Task[None]] = None
        self._workers: List[asyncio.Task[None]] = []
        self._in_flight = 0
        self.last_activity = time.monotonic()

    @property
    def worker_count(self) -> int:
        return self.config.worker_count

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def is_running(self) -> bool:
        return self.state is OrchestratorState.RUNNING

    async def start(self) -> None:
        if self.is_running:
            raise CrawlerStateError("crawler is already running")
        if self.retries is not None:
            await self.retries.close()
        self.politeness = PolitenessTracker()
        self.robots = RobotsCache(self.fetcher, timeout=self.config.robots_timeout)
        self.retries = RetryScheduler(self.queue)
        self.pipeline = FetchPipeline(self.config, self.fetcher, self.storage, self.queue, self.politeness)
        self.retries.start()

        for url in self.config.seed_urls:
            try:
                await self.queue.enqueue(CrawlRequest.seed(url))
            except Exception as exc:
                log.warning("Could not enqueue seed %s: %s", url, exc)

        self._running = True
        self.state = OrchestratorState.RUNNING
        self._batches = asyncio.Queue(maxsize=self.worker_count)
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"batch-worker-{i}") for i in range(self.worker_count)
        ]
        self._poller = asyncio.create_task(self._poll_loop(), name="batch-poller")
        self.last_activity = time.monotonic()
        log.info(
            "Crawler started: %d seeds, %d batch workers", len(self.config.seed_urls), self.worker_count
        )

    async def stop(self) -> None:
        """Stop taking new batches and wait for the in-flight round to finish."""
        if not self.is_running:
            return
        self._running = False
        if self._poller is not None:
            await self._poller
        if self._batches is not None:
            for _ in self._workers:
                await self._batches.put(None)
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self._poller = None
        self.state = OrchestratorState.STOPPED
        log.info("Crawler stopped: %s", self.stats)

    async def close(self) -> None:
        await self.stop()
        if self.retries is not None:
            await self.retries.close()

    def idle_for(self) -> float:
        """Seconds since the last batch was polled or finished or a retry fired, 0 while work is pending."""
        last = self.last_activity
        if self.retries is not None:
            if len(self.retries):
                return 0.0
            if self.retries.last_fired is not None:
                last = max(last, self.retries.last_fired)
        if self._in_flight:
            return 0.0
        return time.monotonic() - last

    # ------------------------------------------------------------------ #
    # Poll actor                                                         #
    # ------------------------------------------------------------------ #

    async def _poll_loop(self) -> None:
        assert self._batches is not None
        while self._running:
            try:
                round_ = await self._poll_round()
            except Exception:
                log.exception("Polling failed, backing off %.1fs", self.config.error_backoff)
                await asyncio.sleep(self.config.error_backoff)
                continue
            if not round_:
                continue
            await asyncio.wait([b.done for b in round_])
            self.last_activity = time.monotonic()
            try:
                await self.queue.commit_batch()
                self.stats.commits += 1
            except Exception:
                log.exception("Commit failed, batch will be redelivered")
                await asyncio.sleep(self.config.error_backoff)

    async def _poll_round(self) -> List[_Batch]:
        """Poll up to one batch per worker; only the first poll waits."""
        assert self._batches is not None
        handed: List[_Batch] = []
        timeout = self.config.poll_timeout
        while len(handed) < self.worker_count:
            try:
                requests = await self.queue.poll_batch(timeout)
            except Exception:
                if not handed:
                    raise
                log.exception("Polling failed mid-round, committing what was handed out")
                break
            if not requests:
                break
            batch = _Batch(requests)
            self._in_flight += len(requests)
            self.last_activity = time.monotonic()
            await self._batches.put(batch)
            handed.append(batch)
            timeout = 0
        return handed

    # ------------------------------------------------------------------ #
    # Workers                                                            #
    # ------------------------------------------------------------------ #

    async def _worker(self, index: int) -> None:
        assert self._batches is not None
        while True:
            batch = await self._batches.get()
            if batch is None:
                return
            try:
                await self.process_batch(batch.requests)
            finally:
                self._in_flight -= len(batch.requests)
                if not batch.done.done():
                    batch.done.set_result(None)

    async def process_batch(self, requests: List[CrawlRequest]) -> None:
        """Dispatch every request concurrently and wait for all of them."""
        self.stats.batches += 1
        results = await asyncio.gather(*(self.dispatch(r) for r in requests), return_exceptions=True)
        for request, result in zip(requests, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                self.stats.errors += 1
                log.error("Processing %s failed: %r", request.url, result, exc_info=result)

    async def dispatch(self, request: CrawlRequest) -> Optional[Decision]:
        """Admit one request and route it. Returns the decision, None if deferred."""
        if self.politeness is None or self.pipeline is None or self.retries is None:
            raise CrawlerStateError("crawler was never started")
        self.stats.requests += 1

        # A not-ready request waits on the in-process retry heap and is
        # re-enqueued once scheduled_for arrives. The polled copy is committed
        # with this round, so a crash before then loses it.
        if not request.is_ready():
            self.stats.deferred += 1
            await self.retries.defer(request)
            return None

        decision = await decide(request, self.config, self.politeness, self.robots)
        # nothing may await between the politeness check in decide() and the
        # pipeline recording the visit
        if isinstance(decision, Crawl):
            self.stats.crawled += 1
            await self.pipeline.process(request)
        elif isinstance(decision, RetryLater):
            self.stats.retried += 1
            log.debug("Retry later %s: %s", request.url, decision.reason)
            await self.retries.schedule_retry(request, decision.retry_at)
        else:
            self.stats.rejected += 1
            log.debug("Rejected %s: %s", request.url, decision.reason)
        return decision
