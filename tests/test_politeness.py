from datetime import timedelta

from distcrawl.crawler.politeness import PolitenessTracker

from tests.conftest import T0


def test_unvisited_host_has_no_history(clock):
    tracker = PolitenessTracker(clock=clock)
    assert tracker.last_visit("a.test") is None
    assert tracker.time_since_last_visit("a.test") is None
    assert len(tracker) == 0


def test_time_since_last_visit_follows_clock(clock):
    tracker = PolitenessTracker(clock=clock)
    tracker.record_visit_start("a.test")
    assert tracker.time_since_last_visit("a.test") == timedelta(0)

    clock.advance(2.5)
    assert tracker.time_since_last_visit("a.test") == timedelta(seconds=2.5)
    assert tracker.time_since_last_visit("b.test") is None


def test_latest_visit_start_wins(clock):
    tracker = PolitenessTracker(clock=clock)
    tracker.record_visit_start("a.test")
    clock.advance(3)
    tracker.record_visit_start("a.test")
    clock.advance(1)

    assert tracker.last_visit("a.test") == T0 + timedelta(seconds=3)
    assert tracker.time_since_last_visit("a.test") == timedelta(seconds=1)
    assert len(tracker) == 1


def test_explicit_timestamp(clock):
    tracker = PolitenessTracker(clock=clock)
    tracker.record_visit_start("a.test", timestamp=T0 - timedelta(seconds=10))
    assert tracker.time_since_last_visit("a.test") == timedelta(seconds=10)
