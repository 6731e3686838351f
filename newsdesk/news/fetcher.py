"""
Fetch orchestrator: decides which sources to refresh and merges the results.

FLOW (one call to fetch()):
  1. Resolve requested source tags (default: every registered adapter).
     Unknown tags → errors map. Unconfigured adapters → skipped silently.
  2. Staleness check per tag against that source's max age.
  3. Nothing stale (and no force_refresh) → answer from the cache, no network.
  4. One task per stale source: IntervalGate.wait(tag), then the adapter
     call under a per-source timeout and a shared concurrency slot. Each task
     catches its own failure.
  5. After every task settled: canonicalize → in-batch dedup → save_batch →
     mark_fetched for each source that succeeded. The fetch clock of a source
     only advances after its records were committed, and not at all when any
     of its records failed to save.
  6. Fresh survivors + cached articles of the non-stale requested sources,
     deduplicated, newest first, capped at limit.

Store calls are synchronous SQL and run in worker threads (asyncio.to_thread).

Only when every attempted source failed and none was fresh does fetch()
raise AllSourcesFailedError. Anything less is a best-effort FetchResult with
the per-source errors attached.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from newsdesk.config import Settings, get_settings
from newsdesk.news.canonical import canonicalize_batch
from newsdesk.news.dedup import MemoryDedupIndex
from newsdesk.schemas import Article, FetchParams, FetchResult
from newsdesk.sources.base import AdapterError, SourceAdapter
from newsdesk.sources.registry import AdapterRegistry
from newsdesk.tools.article_cache import ArticleCache
from newsdesk.tools.rate_limit import IntervalGate
from newsdesk.tools.source_health import SourceHealthTracker

logger = logging.getLogger(__name__)


class AllSourcesFailedError(Exception):
    """Every attempted source failed and no requested source had fresh cache."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        detail = "; ".join(f"{tag}: {msg}" for tag, msg in self.errors.items())
        super().__init__(f"All requested sources failed ({detail})")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FetchOrchestrator:
    """Multi-source fetcher with per-source staleness, pacing and error isolation.

    Usage:
        orchestrator = FetchOrchestrator(default_registry(), ArticleCache(db))
        result = await orchestrator.fetch(FetchParams(keywords="election"))
        result.articles, result.errors
    """

    def __init__(
        self,
        registry: AdapterRegistry,
        cache: ArticleCache,
        settings: Optional[Settings] = None,
        gate: Optional[IntervalGate] = None,
        health: Optional[SourceHealthTracker] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.registry = registry
        self.cache = cache
        self.settings = settings or get_settings()
        self.gate = gate or IntervalGate()
        self.health = health or SourceHealthTracker()
        self._now = clock

    # ── Main entry point ──

    async def fetch(self, params: Optional[FetchParams] = None) -> FetchResult:
        params = params or FetchParams()
        now = self._now()
        result = FetchResult()

        adapters = self._resolve_adapters(params, result)
        # Store calls are blocking SQL; keep them off the event loop.
        stale, fresh = await asyncio.to_thread(self._split_by_staleness, list(adapters), params, now)

        if not stale:
            result.cache_hit = True
            result.articles = await asyncio.to_thread(self._cached_articles, params, fresh, now)
            logger.info(f"Cache hit for {fresh or 'no sources'}: {len(result.articles)} articles")
            return result

        logger.info(f"Fetching {len(stale)} stale sources: {stale} (fresh: {fresh})")
        outcomes = await self._fetch_sources({tag: adapters[tag] for tag in stale}, params)

        succeeded: Dict[str, List[Dict[str, Any]]] = {}
        for tag, records, error in outcomes:
            if error is None:
                succeeded[tag] = records
                self.health.record_success(tag, len(records))
            else:
                result.errors[tag] = error
                self.health.record_failure(tag, error)
                logger.warning(f"[{tag}] fetch failed: {error}")

        if not succeeded and not fresh:
            raise AllSourcesFailedError(result.errors)

        survivors = self._canonicalize_and_dedup(succeeded, now, result)

        failed_saves: Dict[str, int] = {}
        if survivors:
            saved = await asyncio.to_thread(self.cache.save_batch, survivors)
            result.saved_count = saved.saved_count
            result.duplicate_count += saved.duplicate_count
            result.save_error_count = saved.error_count
            for article, outcome in zip(survivors, saved.results):
                if outcome.reason == "error":
                    failed_saves[article.api_source] = failed_saves.get(article.api_source, 0) + 1

        for tag, records in succeeded.items():
            if tag in failed_saves:
                # Leave the source stale so the next call retries the lost records
                logger.warning(f"[{tag}] {failed_saves[tag]} records failed to save, fetch state not advanced")
                continue
            await asyncio.to_thread(
                self.cache.mark_fetched, tag, self.settings.get_max_age_hours(tag), len(records), at=now,
            )
            result.fetched_sources.append(tag)

        cached = await asyncio.to_thread(self._cached_articles, params, fresh, now) if fresh else []
        matching = [a for a in survivors if self._matches_local_filters(a, params)]
        result.articles = self._merge(matching, cached, params.limit)

        logger.info(
            f"Fetch complete: {len(result.articles)} articles returned, "
            f"{result.saved_count} saved, {result.duplicate_count} duplicates, "
            f"{result.dropped_count} malformed, {result.save_error_count} save errors, "
            f"{len(result.errors)} source errors"
        )
        return result

    # ── Convenience wrappers ──

    async def get_articles(self, params: Optional[FetchParams] = None) -> List[Article]:
        return (await self.fetch(params)).articles

    async def search_articles(self, term: str, params: Optional[FetchParams] = None) -> List[Article]:
        params = (params or FetchParams()).model_copy(update={"keywords": term})
        return await self.get_articles(params)

    async def get_articles_by_category(self, category: str, params: Optional[FetchParams] = None) -> List[Article]:
        params = (params or FetchParams()).model_copy(update={"category": category})
        return await self.get_articles(params)

    async def get_articles_by_source(self, source_name: str, params: Optional[FetchParams] = None) -> List[Article]:
        params = (params or FetchParams()).model_copy(update={"source": source_name})
        return await self.get_articles(params)

    async def refresh_all(self, params: Optional[FetchParams] = None) -> FetchResult:
        """Fetch every requested source regardless of cache age."""
        params = (params or FetchParams()).model_copy(update={"force_refresh": True})
        return await self.fetch(params)

    # ── Steps ──

    def _resolve_adapters(self, params: FetchParams, result: FetchResult) -> Dict[str, SourceAdapter]:
        requested = params.sources or self.registry.tags()
        adapters: Dict[str, SourceAdapter] = {}
        for tag in dict.fromkeys(requested):
            adapter = self.registry.get(tag)
            if adapter is None:
                result.errors[tag] = "unknown source"
                logger.warning(f"Requested unknown source '{tag}'")
            elif not adapter.is_available():
                result.skipped_sources.append(tag)
                logger.debug(f"Source '{tag}' not configured, skipping")
            else:
                adapters[tag] = adapter
        return adapters

    def _split_by_staleness(
        self, tags: List[str], params: FetchParams, now: datetime,
    ) -> Tuple[List[str], List[str]]:
        stale: List[str] = []
        fresh: List[str] = []
        for tag in tags:
            max_age = self.settings.get_max_age_hours(tag)
            if params.force_refresh or self.cache.is_stale(tag, max_age, now=now):
                stale.append(tag)
            else:
                fresh.append(tag)
        return stale, fresh

    async def _fetch_sources(
        self,
        adapters: Dict[str, SourceAdapter],
        params: FetchParams,
    ) -> List[Tuple[str, List[Dict[str, Any]], Optional[str]]]:
        """Run one task per source. Returns (tag, records, error) per source, in input order."""
        semaphore = asyncio.Semaphore(self.settings.max_concurrent_fetches)
        timeout = self.settings.fetch_timeout_seconds

        async def _fetch_one(tag: str, adapter: SourceAdapter):
            # Pace outside the semaphore: a source sitting out its own interval
            # must not hold a slot another source could use.
            self.gate.set_interval(tag, adapter.min_interval_ms)
            await self.gate.wait(tag)
            async with semaphore:
                try:
                    records = await asyncio.wait_for(adapter.fetch_articles(params), timeout=timeout)
                except asyncio.TimeoutError:
                    return tag, [], f"timeout after {timeout:.0f}s"
                except AdapterError as e:
                    return tag, [], str(e)
                except Exception as e:
                    return tag, [], f"{type(e).__name__}: {e}"

                if not isinstance(records, list):
                    return tag, [], f"malformed payload: adapter returned {type(records).__name__}"
                return tag, records, None

        return list(await asyncio.gather(*[_fetch_one(tag, a) for tag, a in adapters.items()]))

    def _canonicalize_and_dedup(
        self,
        records_by_source: Dict[str, List[Dict[str, Any]]],
        now: datetime,
        result: FetchResult,
    ) -> List[Article]:
        index = MemoryDedupIndex()
        survivors: List[Article] = []
        for tag, records in records_by_source.items():
            articles, dropped = canonicalize_batch(records, tag, now=now)
            result.dropped_count += dropped
            for article in articles:
                if index.add_if_new(article).is_duplicate:
                    result.duplicate_count += 1
                else:
                    survivors.append(article)
        return survivors

    def _cached_articles(self, params: FetchParams, source_tags: List[str], now: datetime) -> List[Article]:
        if not source_tags:
            return []
        query = params.to_query(api_source=source_tags)
        if query.date_from is None:
            query.date_from = now - timedelta(days=self.settings.cache_lookback_days)
        return self.cache.query(query)

    @staticmethod
    def _matches_local_filters(article: Article, params: FetchParams) -> bool:
        """Outlet and date filters. Keywords and category were already sent upstream."""
        if params.source and params.source.lower() not in article.source_name.lower():
            return False
        if params.date_from and article.published_at < params.date_from:
            return False
        if params.date_to and article.published_at > params.date_to:
            return False
        return True

    @staticmethod
    def _merge(fresh: List[Article], cached: List[Article], limit: int) -> List[Article]:
        index = MemoryDedupIndex()
        merged = [a for a in fresh + cached if not index.add_if_new(a).is_duplicate]
        merged.sort(key=lambda a: a.published_at, reverse=True)
        return merged[:limit]
