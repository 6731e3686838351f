"""Shared fixtures: in-memory store, article factory, scripted adapters, fixed clock."""

import itertools
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from newsdesk.config import Settings
from newsdesk.database import Database
from newsdesk.news.canonical import article_id
from newsdesk.schemas import Article, FetchParams
from newsdesk.sources.base import AdapterError, SourceAdapter
from newsdesk.tools.article_cache import ArticleCache

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

_counter = itertools.count(1)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite://",
        newsapi_key="",
        newsapi_ai_key="",
        mediastack_api_key="",
        source_max_age_hours='{"rss":0.5,"newsapi":2,"newsapi-ai":2,"mediastack":4}',
    )


@pytest.fixture
def db(settings):
    database = Database(settings.database_url)
    database.create_tables()
    yield database
    database.dispose()


@pytest.fixture
def cache(db) -> ArticleCache:
    return ArticleCache(db)


def make_article(
    title: Optional[str] = None,
    url: Optional[str] = None,
    source_name: str = "Test Outlet",
    published_at: datetime = NOW,
    summary: str = "",
    content: Optional[str] = None,
    api_source: str = "rss",
    **kwargs,
) -> Article:
    n = next(_counter)
    title = title if title is not None else f"Headline number {n}"
    url = url or f"https://example.com/{n}"
    return Article(
        id=kwargs.pop("id", None) or article_id(title, url, published_at.isoformat()),
        title=title,
        summary=summary,
        content=content,
        url=url,
        source_name=source_name,
        published_at=published_at,
        fetched_at=kwargs.pop("fetched_at", NOW),
        api_source=api_source,
        **kwargs,
    )


@pytest.fixture
def article_factory():
    return make_article


def raw_record(n: int, source: str = "Wire Service", **overrides) -> Dict[str, Any]:
    record = {
        "title": f"Distinct story {n} about topic {n * 7}",
        "url": f"https://news.example.org/{source.lower().replace(' ', '-')}/{n}",
        "description": f"Summary text {n} with unique body {n * 13}",
        "publishedAt": (NOW - timedelta(minutes=n)).isoformat(),
        "source": {"name": source},
    }
    record.update(overrides)
    return record


class FakeAdapter(SourceAdapter):
    """Scripted adapter: returns canned records or raises, and counts calls."""

    def __init__(
        self,
        tag: str,
        records: Optional[List[Dict[str, Any]]] = None,
        error: Optional[Exception] = None,
        available: bool = True,
        min_interval_ms: int = 0,
        settings: Optional[Settings] = None,
    ):
        super().__init__(settings=settings or Settings(database_url="sqlite://"))
        self.source_tag = tag
        self.min_interval_ms = min_interval_ms
        self.records = records or []
        self.error = error
        self.available = available
        self.calls: List[FetchParams] = []

    def is_available(self) -> bool:
        return self.available

    async def fetch_articles(self, params: FetchParams) -> List[Dict[str, Any]]:
        self.calls.append(params)
        if self.error is not None:
            raise self.error
        return list(self.records)


def failing_adapter(tag: str, message: str = "HTTP 500: upstream down") -> FakeAdapter:
    return FakeAdapter(tag, error=AdapterError(tag, message, status_code=500))


class FakeClock:
    """Mutable UTC clock for the orchestrator."""

    def __init__(self, start: datetime = NOW):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta):
        self.now += timedelta(**delta)
