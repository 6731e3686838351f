"""Tests for canonicalization and identity hashing."""

from datetime import datetime, timezone

import pytest

from newsdesk.news.canonical import (
    MalformedRecordError,
    article_id,
    canonicalize,
    canonicalize_batch,
    clean_html,
    compute_identity,
    normalize_text,
    parse_published,
    text_hash,
)

from conftest import NOW, make_article


class TestNormalization:
    def test_punctuation_case_and_whitespace_are_ignored(self):
        assert text_hash("Breaking: Markets  Rally!") == text_hash("breaking markets rally")
        assert normalize_text("  Hello,\tWorld!! ") == "hello world"

    def test_different_words_hash_differently(self):
        assert text_hash("markets rally") != text_hash("markets fall")

    def test_empty_text_has_no_hash(self):
        assert text_hash("") is None
        assert text_hash("?!... ---") is None
        assert text_hash(None) is None

    def test_identity_uses_summary_when_content_missing(self):
        a = make_article(summary="Same body text", content=None)
        b = make_article(summary="Other summary", content="same body, text")
        assert compute_identity(a).content_hash == compute_identity(b).content_hash

    def test_identity_without_body(self):
        identity = compute_identity(make_article(summary="", content=None))
        assert identity.content_hash is None
        assert identity.title_hash is not None


class TestArticleId:
    def test_deterministic(self):
        assert article_id("T", "https://a", "2024-01-01") == article_id("T", "https://a", "2024-01-01")
        assert len(article_id("T", "https://a")) == 16

    def test_depends_on_each_field(self):
        base = article_id("T", "https://a", "x")
        assert article_id("U", "https://a", "x") != base
        assert article_id("T", "https://b", "x") != base
        assert article_id("T", "https://a", "y") != base


class TestCanonicalize:
    def test_newsapi_shape(self):
        raw = {
            "title": "Senate passes bill",
            "url": "https://news.example/senate",
            "description": "The Senate voted today.",
            "publishedAt": "2024-05-31T10:00:00Z",
            "urlToImage": "https://img.example/1.jpg",
            "source": {"id": None, "name": "Example News"},
            "author": "Jane Reporter",
        }
        article = canonicalize(raw, "newsapi", now=NOW)

        assert article.title == "Senate passes bill"
        assert article.summary == "The Senate voted today."
        assert article.source_name == "Example News"
        assert article.image_url == "https://img.example/1.jpg"
        assert article.published_at == datetime(2024, 5, 31, 10, 0, tzinfo=timezone.utc)
        assert article.fetched_at == NOW
        assert article.api_source == "newsapi"
        assert article.author == "Jane Reporter"

    def test_event_registry_shape(self):
        raw = {
            "title": "Storm hits coast",
            "url": "https://er.example/storm",
            "body": "<p>A powerful storm &amp; heavy rain.</p>",
            "dateTime": "2024-05-31T08:30:00Z",
            "source": {"title": "Coastal Times", "uri": "coastaltimes.example"},
            "categories": [{"uri": "news/Environment", "label": "news/Environment"}],
            "socialScore": 42,
            "sentiment": -0.3,
        }
        article = canonicalize(raw, "newsapi-ai", now=NOW)

        assert article.content == "A powerful storm & heavy rain."
        assert article.summary == "A powerful storm & heavy rain."
        assert article.source_name == "Coastal Times"
        assert article.source_url == "coastaltimes.example"
        assert article.category == "environment"
        assert article.social_score == 42
        assert article.sentiment == -0.3

    def test_defaults_for_missing_optional_fields(self):
        article = canonicalize({"title": "Only a title", "link": "https://x.example/1"}, "rss", now=NOW)

        assert article.author == "Unknown"
        assert article.category == "general"
        assert article.summary == ""
        assert article.content is None
        assert article.bias_score is None
        assert article.source_name == "rss"
        assert article.published_at == NOW

    def test_missing_timestamp_keeps_id_stable(self):
        raw = {"title": "Undated", "url": "https://x.example/undated"}
        first = canonicalize(raw, "rss", now=NOW)
        second = canonicalize(raw, "rss", now=datetime(2030, 1, 1, tzinfo=timezone.utc))
        assert first.id == second.id

    def test_long_content_summary_is_truncated(self):
        body = "word " * 100
        article = canonicalize({"title": "T", "url": "https://x.example/t", "content": body}, "rss", now=NOW)
        assert article.summary.endswith("...")
        assert len(article.summary) == 203

    @pytest.mark.parametrize("raw", [
        {"url": "https://x.example/no-title"},
        {"title": "   ", "url": "https://x.example/blank"},
        {"title": "No url"},
    ])
    def test_malformed_records_raise(self, raw):
        with pytest.raises(MalformedRecordError):
            canonicalize(raw, "rss", now=NOW)

    def test_non_mapping_raises(self):
        with pytest.raises(MalformedRecordError):
            canonicalize(["not", "a", "dict"], "rss", now=NOW)

    def test_batch_drops_malformed(self):
        records = [
            {"title": "Good one", "url": "https://x.example/1"},
            {"title": "", "url": "https://x.example/2"},
            {"title": "Good two", "url": "https://x.example/3"},
        ]
        articles, dropped = canonicalize_batch(records, "rss", now=NOW)
        assert [a.title for a in articles] == ["Good one", "Good two"]
        assert dropped == 1


class TestFieldHelpers:
    def test_clean_html(self):
        assert clean_html("<p>Hello <b>world</b></p><script>x()</script>") == "Hello world"
        assert clean_html(None) == ""

    @pytest.mark.parametrize("value", [
        "2024-05-31T10:00:00Z",
        "2024-05-31T10:00:00+00:00",
        "Fri, 31 May 2024 10:00:00 GMT",
        "Fri, 31 May 2024 12:00:00 +0200",
    ])
    def test_parse_published_formats(self, value):
        assert parse_published(value) == datetime(2024, 5, 31, 10, 0, tzinfo=timezone.utc)

    def test_parse_published_unparseable(self):
        assert parse_published("yesterday-ish") is None
        assert parse_published("") is None
        assert parse_published(12345) is None
