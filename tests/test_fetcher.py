"""Tests for the fetch orchestrator: staleness, isolation, merge, failure."""

import asyncio
import threading
from datetime import timedelta

import pytest
from sqlalchemy.exc import SQLAlchemyError

from newsdesk.news.fetcher import AllSourcesFailedError, FetchOrchestrator
from newsdesk.schemas import FetchParams
from newsdesk.sources.registry import AdapterRegistry
from newsdesk.tools.article_cache import ArticleCache
from newsdesk.tools.rate_limit import IntervalGate

from conftest import FakeAdapter, FakeClock, failing_adapter, raw_record


async def _no_sleep(seconds: float):
    return None


def build(cache, settings, *adapters, clock=None):
    clock = clock or FakeClock()
    orchestrator = FetchOrchestrator(
        AdapterRegistry(adapters),
        cache,
        settings=settings,
        gate=IntervalGate(sleep=_no_sleep),
        clock=clock,
    )
    return orchestrator, clock


def run(orchestrator, **params):
    return asyncio.run(orchestrator.fetch(FetchParams(**params)))


class TestFetch:
    def test_first_call_fetches_and_second_is_cache_hit(self, cache, settings):
        rss = FakeAdapter("rss", records=[raw_record(i, "BBC News") for i in range(1, 4)])
        orchestrator, clock = build(cache, settings, rss)

        first = run(orchestrator)
        assert first.cache_hit is False
        assert first.fetched_sources == ["rss"]
        assert first.saved_count == 3
        assert len(first.articles) == 3

        clock.advance(minutes=10)
        second = run(orchestrator)
        assert second.cache_hit is True
        assert len(rss.calls) == 1
        assert {a.id for a in second.articles} == {a.id for a in first.articles}

    def test_stale_source_is_refetched(self, cache, settings):
        rss = FakeAdapter("rss", records=[raw_record(1)])
        orchestrator, clock = build(cache, settings, rss)

        run(orchestrator)
        clock.advance(minutes=31)
        result = run(orchestrator)

        assert len(rss.calls) == 2
        assert result.cache_hit is False
        assert result.duplicate_count == 1
        assert len(result.articles) == 1

    def test_force_refresh_ignores_freshness(self, cache, settings):
        rss = FakeAdapter("rss", records=[raw_record(1)])
        orchestrator, _ = build(cache, settings, rss)

        run(orchestrator)
        asyncio.run(orchestrator.refresh_all())
        assert len(rss.calls) == 2

    def test_one_failing_source_does_not_fail_the_request(self, cache, settings):
        orchestrator, _ = build(
            cache, settings,
            FakeAdapter("rss", records=[raw_record(i, "BBC News") for i in range(1, 3)]),
            failing_adapter("newsapi"),
            FakeAdapter("mediastack", records=[raw_record(i, "Fox News") for i in range(10, 12)]),
        )

        result = run(orchestrator)

        assert set(result.errors) == {"newsapi"}
        assert "HTTP 500" in result.errors["newsapi"]
        assert sorted(result.fetched_sources) == ["mediastack", "rss"]
        assert len(result.articles) == 4
        assert orchestrator.health.status("newsapi") == "degraded"
        assert cache.get_fetch_state("newsapi") is None

    def test_all_sources_failing_raises(self, cache, settings):
        orchestrator, _ = build(cache, settings, failing_adapter("rss"), failing_adapter("newsapi"))

        with pytest.raises(AllSourcesFailedError) as exc:
            run(orchestrator)
        assert set(exc.value.errors) == {"rss", "newsapi"}

    def test_failure_with_fresh_cache_returns_cached(self, cache, settings):
        rss = FakeAdapter("rss", records=[raw_record(1, "BBC News")])
        newsapi = FakeAdapter("newsapi", records=[raw_record(2, "CNN")])
        orchestrator, clock = build(cache, settings, rss, newsapi)
        run(orchestrator)

        # rss goes stale after 30 minutes and now fails, newsapi stays fresh for 2 hours
        clock.advance(minutes=45)
        rss.error = RuntimeError("connection reset")
        result = run(orchestrator)

        assert set(result.errors) == {"rss"}
        assert "RuntimeError" in result.errors["rss"]
        assert [a.source_name for a in result.articles] == ["CNN"]

    def test_failed_fetch_does_not_advance_fetch_clock(self, cache, settings):
        rss = FakeAdapter("rss", records=[raw_record(1)])
        orchestrator, clock = build(cache, settings, rss)
        run(orchestrator)
        first_fetch = cache.get_fetch_state("rss")["last_fetched_at"]

        clock.advance(minutes=40)
        rss.error = RuntimeError("boom")
        with pytest.raises(AllSourcesFailedError):
            run(orchestrator)

        assert cache.get_fetch_state("rss")["last_fetched_at"] == first_fetch
        assert cache.is_stale("rss", 0.5, now=clock())

    def test_unavailable_adapter_is_skipped(self, cache, settings):
        orchestrator, _ = build(
            cache, settings,
            FakeAdapter("rss", records=[raw_record(1)]),
            FakeAdapter("newsapi", records=[raw_record(2)], available=False),
        )

        result = run(orchestrator)

        assert result.skipped_sources == ["newsapi"]
        assert result.errors == {}
        assert orchestrator.registry.get("newsapi").calls == []

    def test_unknown_source_is_reported(self, cache, settings):
        orchestrator, _ = build(cache, settings, FakeAdapter("rss", records=[raw_record(1)]))

        result = run(orchestrator, sources=["rss", "bogus"])

        assert result.errors == {"bogus": "unknown source"}
        assert len(result.articles) == 1

    def test_non_list_payload_is_an_error(self, cache, settings):
        bad = FakeAdapter("newsapi")

        async def _dict_payload(params):
            return {"articles": []}

        bad.fetch_articles = _dict_payload
        orchestrator, _ = build(cache, settings, FakeAdapter("rss", records=[raw_record(1)]), bad)

        result = run(orchestrator)
        assert "malformed payload" in result.errors["newsapi"]

    def test_timeout_is_isolated(self, cache, settings):
        slow = FakeAdapter("newsapi")

        async def _hang(params):
            await asyncio.sleep(5)
            return []

        slow.fetch_articles = _hang
        fast_settings = settings.model_copy(update={"fetch_timeout_seconds": 0.05})
        orchestrator, _ = build(cache, fast_settings, FakeAdapter("rss", records=[raw_record(1)]), slow)

        result = run(orchestrator)
        assert result.errors["newsapi"].startswith("timeout")
        assert len(result.articles) == 1

    def test_cross_source_duplicates_are_collapsed(self, cache, settings):
        shared = raw_record(1, "Reuters")
        syndicated = dict(shared, url="https://mirror.example/reuters-1")
        orchestrator, _ = build(
            cache, settings,
            FakeAdapter("rss", records=[shared]),
            FakeAdapter("newsapi", records=[syndicated, raw_record(2, "CNN")]),
        )

        result = run(orchestrator)

        assert len(result.articles) == 2
        assert result.duplicate_count == 1
        assert result.saved_count == 2

    def test_malformed_records_are_dropped(self, cache, settings):
        records = [raw_record(1), {"title": "", "url": "https://x.example/bad"}, {"url": "https://x.example/no-title"}]
        orchestrator, _ = build(cache, settings, FakeAdapter("rss", records=records))

        result = run(orchestrator)
        assert result.dropped_count == 2
        assert len(result.articles) == 1

    def test_limit_and_newest_first(self, cache, settings):
        orchestrator, _ = build(cache, settings, FakeAdapter("rss", records=[raw_record(i) for i in range(1, 11)]))

        result = run(orchestrator, limit=4)

        assert len(result.articles) == 4
        published = [a.published_at for a in result.articles]
        assert published == sorted(published, reverse=True)
        assert result.saved_count == 10

    def test_source_filter_applies_to_fresh_articles(self, cache, settings):
        orchestrator, _ = build(
            cache, settings,
            FakeAdapter("rss", records=[raw_record(1, "BBC News"), raw_record(2, "Fox News")]),
        )

        result = run(orchestrator, source="bbc")
        assert [a.source_name for a in result.articles] == ["BBC News"]

    def test_wrappers_pass_parameters(self, cache, settings):
        rss = FakeAdapter("rss", records=[])
        orchestrator, _ = build(cache, settings, rss)

        asyncio.run(orchestrator.search_articles("election"))
        asyncio.run(orchestrator.get_articles_by_category("politics", FetchParams(force_refresh=True)))

        assert rss.calls[0].keywords == "election"
        assert rss.calls[1].category == "politics"

    def test_gate_is_configured_from_adapter(self, cache, settings):
        orchestrator, _ = build(cache, settings, FakeAdapter("rss", records=[], min_interval_ms=500))
        run(orchestrator)
        assert orchestrator.gate.interval_seconds("rss") == 0.5

    def test_cache_hit_honours_lookback(self, cache, settings):
        old = raw_record(1, publishedAt=(FakeClock().now - timedelta(days=10)).isoformat())
        orchestrator, clock = build(cache, settings, FakeAdapter("rss", records=[old, raw_record(2)]))
        run(orchestrator)

        clock.advance(minutes=5)
        result = run(orchestrator)
        assert result.cache_hit is True
        assert len(result.articles) == 1


class FailingRowCache(ArticleCache):
    """Store whose inserts fail for the given URLs."""

    def __init__(self, db, failing_urls):
        super().__init__(db)
        self.failing_urls = set(failing_urls)

    def _to_row(self, article, identity):
        if article.url in self.failing_urls:
            raise SQLAlchemyError("disk I/O error")
        return super()._to_row(article, identity)


class ThreadRecordingCache(ArticleCache):
    """Store that records which threads ran its SQL."""

    def __init__(self, db):
        super().__init__(db)
        self.threads = set()

    def is_stale(self, *args, **kwargs):
        self.threads.add(threading.get_ident())
        return super().is_stale(*args, **kwargs)

    def save_batch(self, articles):
        self.threads.add(threading.get_ident())
        return super().save_batch(articles)

    def query(self, q=None):
        self.threads.add(threading.get_ident())
        return super().query(q)


class OrderedAdapter(FakeAdapter):
    def __init__(self, tag, events, **kwargs):
        super().__init__(tag, **kwargs)
        self.events = events

    async def fetch_articles(self, params):
        self.events.append(tag_fetched(self.source_tag))
        return await super().fetch_articles(params)


def tag_fetched(tag):
    return f"{tag}-fetched"


class TestScheduling:
    def test_gated_source_does_not_hold_a_fetch_slot(self, cache, settings):
        events = []

        async def recording_sleep(seconds):
            events.append("rss-wait-start")
            await asyncio.sleep(0.05)
            events.append("rss-wait-end")

        gate = IntervalGate(clock=lambda: 0.0, sleep=recording_sleep)
        rss = OrderedAdapter("rss", events, records=[raw_record(1)], min_interval_ms=1000)
        newsapi = OrderedAdapter("newsapi", events, records=[raw_record(2, "CNN")])
        orchestrator = FetchOrchestrator(
            AdapterRegistry([rss, newsapi]),
            cache,
            settings=settings.model_copy(update={"max_concurrent_fetches": 1}),
            gate=gate,
            clock=FakeClock(),
        )

        async def scenario():
            # rss already fetched "just now", so its next call must wait out the interval
            gate.set_interval("rss", 1000)
            await gate.wait("rss")
            return await orchestrator.fetch(FetchParams())

        result = asyncio.run(scenario())

        assert sorted(result.fetched_sources) == ["newsapi", "rss"]
        assert events.index(tag_fetched("newsapi")) < events.index("rss-wait-end")
        assert events.index("rss-wait-end") < events.index(tag_fetched("rss"))

    def test_store_calls_run_off_the_event_loop_thread(self, db, settings):
        cache = ThreadRecordingCache(db)
        orchestrator, clock = build(cache, settings, FakeAdapter("rss", records=[raw_record(1)]))

        run(orchestrator)
        clock.advance(minutes=5)
        assert run(orchestrator).cache_hit is True

        assert cache.threads
        assert threading.get_ident() not in cache.threads


class TestSaveFailures:
    def test_save_errors_keep_the_source_stale(self, db, settings):
        bad = raw_record(2, "CNN")
        cache = FailingRowCache(db, failing_urls=[bad["url"]])
        rss = FakeAdapter("rss", records=[raw_record(1, "BBC News")])
        newsapi = FakeAdapter("newsapi", records=[bad])
        orchestrator, clock = build(cache, settings, rss, newsapi)

        first = run(orchestrator)

        assert first.saved_count == 1
        assert first.save_error_count == 1
        assert first.fetched_sources == ["rss"]
        assert cache.get_fetch_state("rss") is not None
        assert cache.get_fetch_state("newsapi") is None

        # Once the store recovers, only the source with lost records is refetched
        cache.failing_urls.clear()
        clock.advance(minutes=10)
        second = run(orchestrator)

        assert len(rss.calls) == 1
        assert len(newsapi.calls) == 2
        assert second.fetched_sources == ["newsapi"]
        assert second.saved_count == 1
        assert cache.get_fetch_state("newsapi")["article_count"] == 1
