"""Tests for the per-source interval gate and the source health tracker."""

import asyncio

from newsdesk.tools.rate_limit import IntervalGate
from newsdesk.tools.source_health import SourceHealthTracker


class FakeMonotonic:
    def __init__(self):
        self.t = 100.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.t

    async def sleep(self, seconds: float):
        self.sleeps.append(round(seconds, 6))
        self.t += seconds


class TestIntervalGate:
    def test_first_call_does_not_wait(self):
        clock = FakeMonotonic()
        gate = IntervalGate({"newsapi": 1000}, clock=clock, sleep=clock.sleep)

        waited = asyncio.run(gate.wait("newsapi"))

        assert waited == 0.0
        assert clock.sleeps == []

    def test_back_to_back_calls_are_spaced(self):
        clock = FakeMonotonic()
        gate = IntervalGate({"newsapi": 1000}, clock=clock, sleep=clock.sleep)

        async def run():
            await gate.wait("newsapi")
            clock.t += 0.25
            await gate.wait("newsapi")
            await gate.wait("newsapi")

        asyncio.run(run())
        assert clock.sleeps == [0.75, 1.0]

    def test_sources_are_independent(self):
        clock = FakeMonotonic()
        gate = IntervalGate({"newsapi": 1000, "rss": 500}, clock=clock, sleep=clock.sleep)

        async def run():
            await gate.wait("newsapi")
            await gate.wait("rss")

        asyncio.run(run())
        assert clock.sleeps == []

    def test_concurrent_waiters_are_serialized(self):
        clock = FakeMonotonic()
        gate = IntervalGate(clock=clock, sleep=clock.sleep)
        gate.set_interval("rss", 500)

        async def run():
            return await asyncio.gather(*[gate.wait("rss") for _ in range(3)])

        waits = asyncio.run(run())
        assert sorted(waits) == [0.0, 0.5, 0.5]
        assert clock.t == 101.0

    def test_unknown_source_has_no_interval(self):
        gate = IntervalGate()
        assert gate.interval_seconds("anything") == 0.0


class TestSourceHealthTracker:
    def test_degrades_then_breaks(self):
        tracker = SourceHealthTracker(broken_threshold=3)
        tracker.record_failure("newsapi", "HTTP 500")
        assert tracker.status("newsapi") == "degraded"
        tracker.record_failure("newsapi", "HTTP 500")
        tracker.record_failure("newsapi", "HTTP 500")
        assert tracker.status("newsapi") == "broken"

    def test_success_resets(self):
        tracker = SourceHealthTracker()
        tracker.record_failure("rss", "timeout")
        tracker.record_success("rss", article_count=12)

        report = tracker.status_report()["rss"]
        assert report["status"] == "healthy"
        assert report["failure_count"] == 0
        assert report["total_fetches"] == 2
        assert report["total_failures"] == 1
        assert report["last_article_count"] == 12
        assert report["last_error"] == "timeout"

    def test_unknown_source_is_healthy(self):
        assert SourceHealthTracker().status("mediastack") == "healthy"
