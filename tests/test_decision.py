"""Admission decisions: check order, short-circuiting and never raising."""
from __future__ import annotations

from datetime import timedelta

import pytest

from distcrawl.crawler.decision import Crawl, CrawlAction, Reject, RetryLater, decide, passes_link_filters
from distcrawl.crawler.models import CrawlRequest
from distcrawl.crawler.politeness import PolitenessTracker
from distcrawl.crawler.robots import RobotsCache

from tests.conftest import StubFetcher


@pytest.fixture()
def politeness(clock) -> PolitenessTracker:
    return PolitenessTracker(clock=clock)


@pytest.mark.asyncio()
@pytest.mark.parametrize("depth,retries", [(3, 0), (10, 0), (3, 99)])
async def test_depth_over_max_always_rejects(make_config, politeness, clock, depth, retries):
    cfg = make_config(max_depth=2)
    req = CrawlRequest("https://a.test/", depth=depth, retry_count=retries)
    decision = await decide(req, cfg, politeness, None, now=clock())
    assert isinstance(decision, Reject)
    assert "depth" in decision.reason


@pytest.mark.asyncio()
async def test_depth_equal_to_max_is_allowed(make_config, politeness, clock):
    cfg = make_config(max_depth=2)
    decision = await decide(CrawlRequest("https://a.test/", depth=2), cfg, politeness, None, now=clock())
    assert isinstance(decision, Crawl)
    assert decision.action is CrawlAction.CRAWL


@pytest.mark.asyncio()
@pytest.mark.parametrize("retries", [4, 5, 100])
async def test_retry_budget_exhausted_rejects(make_config, politeness, clock, retries):
    cfg = make_config(max_retry_attempts=3)
    req = CrawlRequest("https://a.test/", retry_count=retries)
    decision = await decide(req, cfg, politeness, None, now=clock())
    assert isinstance(decision, Reject)
    assert "retry" in decision.reason


@pytest.mark.asyncio()
async def test_retry_count_at_budget_is_allowed(make_config, politeness, clock):
    cfg = make_config(max_retry_attempts=3)
    decision = await decide(CrawlRequest("https://a.test/", retry_count=3), cfg, politeness, None, now=clock())
    assert isinstance(decision, Crawl)


@pytest.mark.asyncio()
@pytest.mark.parametrize("url", ["https://a.test/", "https://b.example/x", "http://localhost:8080/"])
async def test_empty_allow_list_allows_every_domain(make_config, politeness, clock, url):
    decision = await decide(CrawlRequest(url), make_config(), politeness, None, now=clock())
    assert isinstance(decision, Crawl)


@pytest.mark.asyncio()
@pytest.mark.parametrize(
    "url,allowed",
    [
        ("https://a.test/x", True),
        ("https://b.test/y", False),
        ("https://a.test.evil/", False),
        ("https://docs.c.test/", True),
        ("https://c.test/", False),
    ],
)
async def test_allow_list_full_match_on_host(make_config, politeness, clock, url, allowed):
    cfg = make_config(allowed_domain_patterns=[r"a\.test$", r".*\.c\.test"])
    decision = await decide(CrawlRequest(url), cfg, politeness, None, now=clock())
    assert isinstance(decision, Crawl) is allowed
    if not allowed:
        assert "allowed domains" in decision.reason


@pytest.mark.asyncio()
async def test_exclude_pattern_rejects(make_config, politeness, clock):
    cfg = make_config(exclude_patterns=[r".*\.pdf"])
    rejected = await decide(CrawlRequest("https://a.test/report.pdf"), cfg, politeness, None, now=clock())
    admitted = await decide(CrawlRequest("https://a.test/report.html"), cfg, politeness, None, now=clock())
    assert isinstance(rejected, Reject)
    assert "exclude" in rejected.reason
    assert isinstance(admitted, Crawl)


@pytest.mark.asyncio()
async def test_politeness_retry_later(make_config, politeness, clock):
    cfg = make_config(crawl_delay=1, enable_delay_retry=True)
    politeness.record_visit_start("a.test")
    clock.advance(0.25)
    decision = await decide(CrawlRequest("https://a.test/next"), cfg, politeness, None, now=clock())
    assert isinstance(decision, RetryLater)
    assert decision.action is CrawlAction.RETRY_LATER
    assert "a.test" in decision.reason
    remaining = timedelta(seconds=0.75)
    assert decision.retry_at >= clock() + remaining
    assert decision.retry_at == politeness.last_visit("a.test") + timedelta(seconds=1)


@pytest.mark.asyncio()
async def test_politeness_reject_without_delay_retry(make_config, politeness, clock):
    cfg = make_config(crawl_delay=1, enable_delay_retry=False)
    politeness.record_visit_start("a.test")
    decision = await decide(CrawlRequest("https://a.test/next"), cfg, politeness, None, now=clock())
    assert isinstance(decision, Reject)
    assert "crawl delay" in decision.reason


@pytest.mark.asyncio()
async def test_politeness_satisfied_after_delay(make_config, politeness, clock):
    cfg = make_config(crawl_delay=1)
    politeness.record_visit_start("a.test")
    clock.advance(1.0)
    decision = await decide(CrawlRequest("https://a.test/next"), cfg, politeness, None, now=clock())
    assert isinstance(decision, Crawl)


@pytest.mark.asyncio()
async def test_politeness_is_per_host(make_config, politeness, clock):
    cfg = make_config(crawl_delay=10)
    politeness.record_visit_start("a.test")
    decision = await decide(CrawlRequest("https://b.test/"), cfg, politeness, None, now=clock())
    assert isinstance(decision, Crawl)


@pytest.mark.asyncio()
async def test_robots_disallow_and_allow(make_config, politeness, clock):
    fetcher = StubFetcher({"https://a.test/robots.txt": "User-agent: *\nDisallow: /private/\n"})
    robots = RobotsCache(fetcher, timeout=1.0)
    cfg = make_config(respect_robots_txt=True)

    blocked = await decide(CrawlRequest("https://a.test/private/page"), cfg, politeness, robots, now=clock())
    allowed = await decide(CrawlRequest("https://a.test/public/page"), cfg, politeness, robots, now=clock())

    assert isinstance(blocked, Reject)
    assert "robots" in blocked.reason
    assert isinstance(allowed, Crawl)
    assert fetcher.calls == ["https://a.test/robots.txt"]


@pytest.mark.asyncio()
async def test_robots_ignored_when_disabled(make_config, politeness, clock):
    fetcher = StubFetcher({"https://a.test/robots.txt": "User-agent: *\nDisallow: /\n"})
    robots = RobotsCache(fetcher, timeout=1.0)
    cfg = make_config(respect_robots_txt=False)
    decision = await decide(CrawlRequest("https://a.test/page"), cfg, politeness, robots, now=clock())
    assert isinstance(decision, Crawl)
    assert fetcher.calls == []


@pytest.mark.asyncio()
async def test_politeness_outranks_robots(make_config, politeness, clock):
    fetcher = StubFetcher({"https://a.test/robots.txt": "User-agent: *\nDisallow: /private/\n"})
    robots = RobotsCache(fetcher, timeout=1.0)
    cfg = make_config(respect_robots_txt=True, crawl_delay=5)
    politeness.record_visit_start("a.test")
    decision = await decide(CrawlRequest("https://a.test/private/x"), cfg, politeness, robots, now=clock())
    assert isinstance(decision, RetryLater)


@pytest.mark.asyncio()
async def test_depth_checked_before_domain(make_config, politeness, clock):
    cfg = make_config(max_depth=0, allowed_domain_patterns=[r"a\.test"])
    decision = await decide(CrawlRequest("https://b.test/", depth=1), cfg, politeness, None, now=clock())
    assert isinstance(decision, Reject)
    assert "depth" in decision.reason


@pytest.mark.asyncio()
@pytest.mark.parametrize("url", ["not a url", "/relative/path", "mailto:someone@a.test", ""])
async def test_malformed_url_becomes_reject(make_config, politeness, clock, url):
    decision = await decide(CrawlRequest(url), make_config(), politeness, None, now=clock())
    assert isinstance(decision, Reject)
    assert decision.reason


@pytest.mark.asyncio()
async def test_unexpected_error_becomes_reject(make_config, politeness, clock):
    class BrokenRobots:
        async def rules_for(self, url):
            raise RuntimeError("cache exploded")

    cfg = make_config(respect_robots_txt=True)
    decision = await decide(CrawlRequest("https://a.test/"), cfg, politeness, BrokenRobots(), now=clock())
    assert decision == Reject("cache exploded")


def test_retry_at_only_on_retry_later():
    assert not hasattr(Crawl(), "retry_at")
    assert not hasattr(Reject("x"), "retry_at")


def test_link_filters_skip_politeness_and_robots(make_config):
    cfg = make_config(allowed_domain_patterns=[r"a\.test"], exclude_patterns=[r".*/logout"])
    assert passes_link_filters("https://a.test/page", cfg)
    assert not passes_link_filters("https://a.test/logout", cfg)
    assert not passes_link_filters("https://b.test/page", cfg)
    assert not passes_link_filters("nonsense", cfg)
