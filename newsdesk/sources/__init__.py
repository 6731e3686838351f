"""
Upstream feed adapters.

Modules:
- base: SourceAdapter contract + AdapterError
- rss: Outlet RSS feeds (httpx + feedparser, langdetect language filter)
- newsapi: NewsAPI.org (/everything, /top-headlines)
- newsapi_ai: NewsAPI.ai / Event Registry (article/getArticles)
- mediastack: MediaStack (/news)
- registry: AdapterRegistry (source tag → adapter)
"""

from newsdesk.sources.base import AdapterError, SourceAdapter
from newsdesk.sources.mediastack import MediaStackAdapter
from newsdesk.sources.newsapi import NewsAPIAdapter
from newsdesk.sources.newsapi_ai import NewsApiAiAdapter
from newsdesk.sources.rss import RSSAdapter
from newsdesk.sources.registry import AdapterRegistry, default_registry

__all__ = [
    "AdapterError",
    "SourceAdapter",
    "RSSAdapter",
    "NewsAPIAdapter",
    "NewsApiAiAdapter",
    "MediaStackAdapter",
    "AdapterRegistry",
    "default_registry",
]
