"""
RSS adapter: reads the configured outlet feeds concurrently.

Each outlet entry in RSS_FEEDS carries its name, homepage, category, country,
language and static bias/credibility scores; those are stamped on every
record read from that feed.

FILTERING (all applied here, before canonicalization):
  - category:  only feeds of that category ("general"/"all" = default feed set)
  - countries: comma-separated ISO codes, feeds from other countries skipped
  - keywords:  comma-separated terms, entry kept if any term is a substring
               of its title or summary (case-insensitive)
  - language:  langdetect on title + summary; text too short to detect passes

Failure contract: individual feed failures are logged and skipped. Only when
every selected feed fails does the adapter raise AdapterError.
"""

import asyncio
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import feedparser
import httpx
from langdetect import detect, LangDetectException
from langdetect import DetectorFactory

from newsdesk.config import DEFAULT_RSS_FEEDS, RSS_FEEDS
from newsdesk.schemas import FetchParams, SourceTag
from newsdesk.sources.base import AdapterError, SourceAdapter

DetectorFactory.seed = 0  # Deterministic language detection

logger = logging.getLogger(__name__)

MAX_CONCURRENT_FEEDS = 6


class RSSAdapter(SourceAdapter):
    source_tag = SourceTag.RSS.value
    min_interval_ms = 500

    # Browser-like User-Agent, some feeds reject the default httpx one
    _USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36"

    def __init__(
        self,
        settings=None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        feeds: Optional[Dict[str, Dict[str, Any]]] = None,
        default_feed_ids: Optional[List[str]] = None,
    ):
        super().__init__(settings=settings, transport=transport)
        self.feeds = feeds if feeds is not None else RSS_FEEDS
        if default_feed_ids is not None:
            self.default_feed_ids = default_feed_ids
        elif feeds is None:
            self.default_feed_ids = DEFAULT_RSS_FEEDS
        else:
            self.default_feed_ids = list(self.feeds)

    @staticmethod
    def _is_target_language(text: str, target_lang: str = "en") -> bool:
        """True if langdetect agrees with target_lang, or the text is too short to tell (< 20 chars)."""
        if not text or len(text.strip()) < 20:
            return True
        try:
            return detect(text[:500]) == target_lang
        except LangDetectException:
            return True

    def select_feeds(self, params: FetchParams) -> List[Dict[str, Any]]:
        category = (params.category or "").lower()
        if category and category not in ("general", "all"):
            selected = [f for f in self.feeds.values() if f.get("category") == category]
        else:
            selected = [self.feeds[fid] for fid in self.default_feed_ids if fid in self.feeds]

        if params.countries:
            wanted = {c.strip().lower() for c in params.countries.split(",") if c.strip()}
            selected = [f for f in selected if f.get("country", "").lower() in wanted]
        return selected

    async def fetch_articles(self, params: FetchParams) -> List[Dict[str, Any]]:
        feeds = self.select_feeds(params)
        if not feeds:
            logger.info(f"RSS: no feeds match category={params.category!r} countries={params.countries!r}")
            return []

        semaphore = asyncio.Semaphore(MAX_CONCURRENT_FEEDS)

        async def _fetch_limited(client: httpx.AsyncClient, feed: Dict[str, Any]):
            async with semaphore:
                return await self._fetch_feed(client, feed)

        async with self._client() as client:
            results = await asyncio.gather(
                *[_fetch_limited(client, feed) for feed in feeds],
                return_exceptions=True,
            )

        records: List[Dict[str, Any]] = []
        failures = []
        for feed, result in zip(feeds, results):
            if isinstance(result, Exception):
                failures.append(f"{feed['name']}: {result}")
                logger.warning(f"RSS feed failed [{feed['name']}]: {result}")
            else:
                records.extend(result)

        if len(failures) == len(feeds):
            raise AdapterError(self.source_tag, f"all {len(feeds)} feeds failed ({failures[0]})")

        filtered = [r for r in records if self._matches(r, params)]
        logger.info(
            f"RSS: {len(filtered)} articles from {len(feeds) - len(failures)}/{len(feeds)} feeds "
            f"({len(records) - len(filtered)} filtered out)"
        )
        return filtered

    async def _fetch_feed(self, client: httpx.AsyncClient, feed: Dict[str, Any]) -> List[Dict[str, Any]]:
        response = await client.get(feed["rss_url"], headers={"User-Agent": self._USER_AGENT})
        response.raise_for_status()

        parsed = feedparser.parse(response.text)
        if parsed.bozo and not parsed.entries:
            raise ValueError(f"unparseable feed: {parsed.get('bozo_exception')}")

        return [
            self._entry_to_record(entry, feed)
            for entry in parsed.entries[: self.settings.rss_max_per_feed]
        ]

    @staticmethod
    def _entry_published(entry) -> Optional[str]:
        for key in ("published_parsed", "updated_parsed"):
            parsed = entry.get(key)
            if parsed:
                try:
                    return datetime(*parsed[:6], tzinfo=timezone.utc).isoformat()
                except (TypeError, ValueError):
                    continue
        return entry.get("published") or entry.get("updated")

    @staticmethod
    def _entry_image(entry) -> Optional[str]:
        for key in ("media_content", "media_thumbnail"):
            media = entry.get(key)
            if media and isinstance(media, list) and media[0].get("url"):
                return media[0]["url"]
        for link in entry.get("links", []):
            if link.get("rel") == "enclosure" and str(link.get("type", "")).startswith("image"):
                return link.get("href")
        return None

    def _entry_to_record(self, entry, feed: Dict[str, Any]) -> Dict[str, Any]:
        content = None
        if entry.get("content"):
            content = entry["content"][0].get("value")
        return {
            "title": entry.get("title", ""),
            "link": entry.get("link", ""),
            "summary": entry.get("summary", "") or entry.get("description", ""),
            "content": content,
            "author": entry.get("author", ""),
            "published": self._entry_published(entry),
            "image_url": self._entry_image(entry),
            "source_name": feed["name"],
            "source_url": feed.get("url", ""),
            "category": feed.get("category", "general"),
            "bias_score": feed.get("bias_score"),
            "credibility_score": feed.get("credibility_score"),
            "language": feed.get("language", "en"),
        }

    def _matches(self, record: Dict[str, Any], params: FetchParams) -> bool:
        text = f"{record.get('title', '')} {record.get('summary', '')}"
        if params.keywords:
            terms = [t.strip().lower() for t in params.keywords.split(",") if t.strip()]
            lowered = text.lower()
            if terms and not any(t in lowered for t in terms):
                return False
        if params.language and record.get("language", params.language) == params.language:
            plain = re.sub(r"<[^>]+>", " ", text)
            if not self._is_target_language(plain, params.language):
                logger.debug(f"Filtered non-{params.language} article: {record.get('title', '')[:60]}")
                return False
        elif params.language:
            return False
        return True
