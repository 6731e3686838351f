"""Tests for the HTTP surface, against an app wired to scripted adapters."""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from newsdesk.main import create_app
from newsdesk.sources.registry import AdapterRegistry

from conftest import FakeAdapter, failing_adapter


def story_records():
    now = datetime.now(timezone.utc).isoformat()
    return [
        {"title": "City Council Approves Budget", "url": "https://cnn.example/budget",
         "publishedAt": now, "source": {"name": "CNN"}, "socialScore": 5},
        {"title": "city council approves budget plan", "url": "https://fox.example/budget",
         "publishedAt": now, "source": {"name": "Fox News"}, "bias_score": 0.6},
        {"title": "Rare bird spotted in city park", "url": "https://local.example/bird",
         "publishedAt": now, "source": {"name": "Local Gazette"}},
    ]


@pytest.fixture
def rss():
    return FakeAdapter("rss", records=story_records())


@pytest.fixture
def client(settings, rss):
    app = create_app(settings=settings, registry=AdapterRegistry([rss]))
    with TestClient(app) as test_client:
        yield test_client


class TestArticlesAPI:
    def test_root(self, client):
        assert client.get("/").json()["service"] == "newsdesk"

    def test_list_then_cache_hit(self, client, rss):
        first = client.get("/articles")
        assert first.status_code == 200
        body = first.json()
        assert body["count"] == 3
        assert body["cache_hit"] is False
        assert body["fetched_sources"] == ["rss"]

        second = client.get("/articles").json()
        assert second["cache_hit"] is True
        assert second["count"] == 3
        assert len(rss.calls) == 1

    def test_get_article_by_id(self, client):
        article = client.get("/articles").json()["articles"][0]

        found = client.get(f"/articles/{article['id']}")
        assert found.status_code == 200
        assert found.json()["url"] == article["url"]
        assert client.get("/articles/not-a-real-id").status_code == 404

    def test_search_and_source_filters(self, client):
        client.get("/articles")

        search = client.get("/articles/search", params={"q": "bird"}).json()
        assert [a["source_name"] for a in search["articles"]] == ["Local Gazette"]

        by_source = client.get("/articles/source/fox").json()
        assert [a["source_name"] for a in by_source["articles"]] == ["Fox News"]

    def test_category_route(self, client, rss):
        first = client.get("/articles/category/general")
        assert first.status_code == 200
        assert first.json()["count"] == 3
        assert rss.calls[0].category == "general"

        cached = client.get("/articles/category/general").json()
        assert cached["cache_hit"] is True
        assert {a["category"] for a in cached["articles"]} == {"general"}
        assert client.get("/articles/category/sports").json()["count"] == 0

    def test_trending_and_bias(self, client):
        client.get("/articles")

        trending = client.get("/articles/trending").json()
        assert trending["articles"][0]["source_name"] == "CNN"

        right = client.get("/articles/bias", params={"min_bias": 0.5, "max_bias": 1.0}).json()
        assert [a["source_name"] for a in right["articles"]] == ["Fox News"]

    def test_limit_validation(self, client):
        assert client.get("/articles", params={"limit": 0}).status_code == 422


class TestStoriesAPI:
    def test_clusters_same_event(self, client):
        body = client.get("/stories").json()

        assert body["article_count"] == 3
        assert body["count"] == 1
        story = body["stories"][0]
        assert sorted(story["sources"]) == ["CNN", "Fox News"]
        assert story["bias_distribution"] == {"left": 50, "center": 0, "right": 50}
        assert story["is_blindspot"] is False

    def test_blindspots_only(self, client):
        assert client.get("/stories", params={"blindspots_only": True}).json()["count"] == 0


class TestFailures:
    def test_all_sources_failing_is_502(self, settings):
        app = create_app(settings=settings, registry=AdapterRegistry([failing_adapter("rss")]))
        with TestClient(app) as client:
            response = client.get("/articles")
            assert response.status_code == 502
            assert "rss" in response.json()["detail"]["errors"]

            assert client.get("/stories").status_code == 502

    def test_unknown_source_is_reported_not_fatal(self, client):
        body = client.get("/articles", params={"sources": "rss,bogus"}).json()
        assert body["errors"] == {"bogus": "unknown source"}
        assert body["count"] == 3


class TestHealthAndCache:
    def test_health_reports_sources(self, client):
        client.get("/articles")
        body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["sources"]["rss"]["available"] is True
        assert body["sources"]["rss"]["fetch_state"]["article_count"] == 3
        assert body["source_health"]["rss"]["status"] == "healthy"

    def test_cache_stats_and_sources(self, client):
        client.get("/articles")

        stats = client.get("/cache/stats").json()
        assert stats["count"] == 3
        assert stats["by_api_source"] == {"rss": 3}

        sources = client.get("/cache/sources").json()
        assert sources["count"] == 3
        assert {s["name"] for s in sources["sources"]} == {"CNN", "Fox News", "Local Gazette"}


class TestCLI:
    def test_parse_args(self):
        from newsdesk.main import parse_args

        args = parse_args(["--sources", "rss,newsapi", "--refresh", "--limit", "20"])
        assert args.sources == "rss,newsapi"
        assert args.refresh is True
        assert args.limit == 20
        assert args.server is False
