"""
Configuration management for the newsdesk ingestion pipeline.

Settings are loaded from environment variables (and an optional .env file).
Upstream API keys live here; a missing key makes the matching adapter
report itself unavailable instead of failing at fetch time.
"""

import json
import logging
from functools import lru_cache
from typing import Dict

from pydantic_settings import BaseSettings
from pydantic import Field

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── Upstream feeds ──
    newsapi_key: str = Field(default="", alias="NEWSAPI_KEY")
    newsapi_base_url: str = Field(default="https://newsapi.org/v2", alias="NEWSAPI_BASE_URL")
    newsapi_ai_key: str = Field(default="", alias="NEWSAPI_AI_KEY")
    newsapi_ai_base_url: str = Field(default="https://eventregistry.org/api/v1", alias="NEWSAPI_AI_BASE_URL")
    mediastack_api_key: str = Field(default="", alias="MEDIASTACK_API_KEY")
    mediastack_base_url: str = Field(default="https://api.mediastack.com/v1", alias="MEDIASTACK_BASE_URL")

    # ── Fetch orchestration ──
    # Per-source hard timeout. httpx has its own timeout, this bounds the whole
    # adapter call (an RSS adapter reads many feeds).
    fetch_timeout_seconds: float = Field(default=15.0, alias="FETCH_TIMEOUT_SECONDS")
    http_timeout_seconds: float = Field(default=12.0, alias="HTTP_TIMEOUT_SECONDS")
    max_concurrent_fetches: int = Field(default=6, alias="MAX_CONCURRENT_FETCHES")
    default_limit: int = Field(default=50, alias="DEFAULT_LIMIT")

    # Cache freshness per upstream source tag, in hours (JSON string, override via env).
    # Fast-moving RSS refreshes every 30 minutes, syndicated APIs every 2-4 hours.
    source_max_age_hours: str = Field(
        default='{"rss":0.5,"newsapi":2,"newsapi-ai":2,"mediastack":4}',
        alias="SOURCE_MAX_AGE_HOURS",
    )
    default_max_age_hours: float = Field(default=1.0, alias="DEFAULT_MAX_AGE_HOURS")

    # Cached reads without an explicit date_from look back this many days.
    cache_lookback_days: int = Field(default=7, alias="CACHE_LOOKBACK_DAYS")
    cache_retention_days: int = Field(default=30, alias="CACHE_RETENTION_DAYS")

    # ── Story clustering ──
    similarity_threshold: float = Field(default=0.6, alias="SIMILARITY_THRESHOLD")

    # RSS: max entries read from a single feed
    rss_max_per_feed: int = Field(default=25, alias="RSS_MAX_PER_FEED")

    # ── Database ──
    database_url: str = Field(default="sqlite:///./data/articles.db", alias="DATABASE_URL")

    # ── API ──
    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=8000, alias="API_PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
        populate_by_name = True

    def get_max_age_map(self) -> Dict[str, float]:
        """Parse SOURCE_MAX_AGE_HOURS. Falls back to an empty map on bad JSON."""
        try:
            raw = json.loads(self.source_max_age_hours)
            return {str(k): float(v) for k, v in raw.items()}
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Invalid SOURCE_MAX_AGE_HOURS ({e}), using defaults")
            return {}

    def get_max_age_hours(self, source_tag: str) -> float:
        return self.get_max_age_map().get(source_tag, self.default_max_age_hours)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# ══════════════════════════════════════════════════════════════════════════════
# RSS FEEDS - Free, unlimited outlets read by the RSS adapter
# ══════════════════════════════════════════════════════════════════════════════
#
# bias_score: -1.0 (left) .. 1.0 (right), credibility_score: 0.0 .. 1.0.
# These are the outlet's static values, stamped on every RSS record. Records
# from the paid APIs leave them null until AI analysis fills them in.

RSS_FEEDS = {
    "cnn": {
        "id": "cnn",
        "name": "CNN",
        "url": "https://www.cnn.com",
        "rss_url": "http://rss.cnn.com/rss/edition.rss",
        "category": "general",
        "country": "us",
        "language": "en",
        "bias_score": -0.2,
        "credibility_score": 0.8,
        "priority": "high",
    },
    "bbc": {
        "id": "bbc",
        "name": "BBC News",
        "url": "https://www.bbc.co.uk/news",
        "rss_url": "http://feeds.bbci.co.uk/news/rss.xml",
        "category": "general",
        "country": "gb",
        "language": "en",
        "bias_score": 0.0,
        "credibility_score": 0.9,
        "priority": "high",
    },
    "reuters": {
        "id": "reuters",
        "name": "Reuters",
        "url": "https://www.reuters.com",
        "rss_url": "https://feeds.reuters.com/reuters/topNews",
        "category": "general",
        "country": "us",
        "language": "en",
        "bias_score": 0.0,
        "credibility_score": 0.9,
        "priority": "high",
    },
    "ap_news": {
        "id": "ap_news",
        "name": "Associated Press",
        "url": "https://apnews.com",
        "rss_url": "https://feeds.apnews.com/rss/apf-topnews",
        "category": "general",
        "country": "us",
        "language": "en",
        "bias_score": 0.0,
        "credibility_score": 0.9,
        "priority": "high",
    },
    "npr": {
        "id": "npr",
        "name": "NPR",
        "url": "https://www.npr.org",
        "rss_url": "https://feeds.npr.org/1001/rss.xml",
        "category": "general",
        "country": "us",
        "language": "en",
        "bias_score": -0.1,
        "credibility_score": 0.85,
        "priority": "high",
    },
    "fox_news": {
        "id": "fox_news",
        "name": "Fox News",
        "url": "https://www.foxnews.com",
        "rss_url": "http://feeds.foxnews.com/foxnews/latest",
        "category": "general",
        "country": "us",
        "language": "en",
        "bias_score": 0.4,
        "credibility_score": 0.6,
        "priority": "high",
    },
    "wsj": {
        "id": "wsj",
        "name": "Wall Street Journal",
        "url": "https://www.wsj.com",
        "rss_url": "https://feeds.a.dj.com/rss/RSSWorldNews.xml",
        "category": "business",
        "country": "us",
        "language": "en",
        "bias_score": 0.2,
        "credibility_score": 0.85,
        "priority": "high",
    },
    "guardian": {
        "id": "guardian",
        "name": "The Guardian",
        "url": "https://www.theguardian.com",
        "rss_url": "https://www.theguardian.com/world/rss",
        "category": "general",
        "country": "gb",
        "language": "en",
        "bias_score": -0.3,
        "credibility_score": 0.8,
        "priority": "high",
    },
    "nyt": {
        "id": "nyt",
        "name": "New York Times",
        "url": "https://www.nytimes.com",
        "rss_url": "https://rss.nytimes.com/services/xml/rss/nyt/HomePage.xml",
        "category": "general",
        "country": "us",
        "language": "en",
        "bias_score": -0.2,
        "credibility_score": 0.85,
        "priority": "high",
    },
    "washington_post": {
        "id": "washington_post",
        "name": "Washington Post",
        "url": "https://www.washingtonpost.com",
        "rss_url": "http://feeds.washingtonpost.com/rss/national",
        "category": "general",
        "country": "us",
        "language": "en",
        "bias_score": -0.2,
        "credibility_score": 0.8,
        "priority": "high",
    },
    "al_jazeera": {
        "id": "al_jazeera",
        "name": "Al Jazeera",
        "url": "https://www.aljazeera.com",
        "rss_url": "https://www.aljazeera.com/xml/rss/all.xml",
        "category": "general",
        "country": "qa",
        "language": "en",
        "bias_score": -0.1,
        "credibility_score": 0.75,
        "priority": "medium",
    },
    "dw": {
        "id": "dw",
        "name": "Deutsche Welle",
        "url": "https://www.dw.com",
        "rss_url": "https://rss.dw.com/rdf/rss-en-all",
        "category": "general",
        "country": "de",
        "language": "en",
        "bias_score": 0.0,
        "credibility_score": 0.8,
        "priority": "medium",
    },
    "france24": {
        "id": "france24",
        "name": "France 24",
        "url": "https://www.france24.com",
        "rss_url": "https://www.france24.com/en/rss",
        "category": "general",
        "country": "fr",
        "language": "en",
        "bias_score": 0.0,
        "credibility_score": 0.8,
        "priority": "medium",
    },
    "techcrunch": {
        "id": "techcrunch",
        "name": "TechCrunch",
        "url": "https://techcrunch.com",
        "rss_url": "https://techcrunch.com/feed/",
        "category": "technology",
        "country": "us",
        "language": "en",
        "bias_score": 0.0,
        "credibility_score": 0.8,
        "priority": "medium",
    },
    "ars_technica": {
        "id": "ars_technica",
        "name": "Ars Technica",
        "url": "https://arstechnica.com",
        "rss_url": "http://feeds.arstechnica.com/arstechnica/index",
        "category": "technology",
        "country": "us",
        "language": "en",
        "bias_score": 0.0,
        "credibility_score": 0.85,
        "priority": "medium",
    },
    "bloomberg": {
        "id": "bloomberg",
        "name": "Bloomberg",
        "url": "https://www.bloomberg.com",
        "rss_url": "https://feeds.bloomberg.com/politics/news.rss",
        "category": "business",
        "country": "us",
        "language": "en",
        "bias_score": 0.1,
        "credibility_score": 0.85,
        "priority": "medium",
    },
}

# Feeds read when the caller does not narrow by category
DEFAULT_RSS_FEEDS = [fid for fid, cfg in RSS_FEEDS.items() if cfg["priority"] == "high"]
