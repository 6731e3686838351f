"""
Persistent article cache on top of the SQL store.

Holds canonical articles keyed by id, the per-source fetch state that drives
refresh decisions, and per-outlet statistics. Every write goes through one
process-wide writer lock; the unique index on url catches races between
processes.

Usage:
    cache = ArticleCache(Database("sqlite://"))
    cache.db.create_tables()
    result = cache.save_batch(articles)               # one transaction
    if cache.is_stale("rss", max_age_hours=0.5):
        ...                                           # refresh the feed
    cache.mark_fetched("rss", 0.5, result.saved_count)
"""

import json
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from newsdesk.database import ArticleModel, Database, OutletModel, SourceFetchStateModel
from newsdesk.news.canonical import compute_identity
from newsdesk.news.dedup import StoreDedupIndex
from newsdesk.schemas import (
    Article, ArticleIdentity, ArticleQuery, BatchSaveResult, SaveResult, as_utc,
)

logger = logging.getLogger(__name__)

TRENDING_WINDOW_HOURS = 24


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _naive(dt: datetime) -> datetime:
    """Stored form: naive UTC."""
    return as_utc(dt).replace(tzinfo=None)


def _like(term: str) -> str:
    return f"%{term}%"


class ArticleCache:
    """SQL-backed cache for canonical articles and per-source fetch state."""

    def __init__(self, db: Database):
        self.db = db
        self._write_lock = threading.Lock()

    # ── Writes ──

    def save(self, article: Article) -> SaveResult:
        """Save one article. Rejections carry the dedup criterion as reason."""
        return self.save_batch([article]).results[0]

    def save_batch(self, articles: List[Article]) -> BatchSaveResult:
        """Save a batch in one transaction, each record inside its own savepoint.

        A duplicate (by dedup check or by unique-index violation) or a failed
        insert never aborts the rest of the batch.
        """
        result = BatchSaveResult()
        if not articles:
            return result

        with self._write_lock, self.db.get_session() as session:
            index = StoreDedupIndex(session)
            for article in articles:
                identity = compute_identity(article)
                check = index.check_duplicate(article, identity)
                if check.is_duplicate:
                    result.duplicate_count += 1
                    result.results.append(SaveResult(
                        saved=False, id=article.id,
                        reason=check.matched_by, existing_id=check.existing_id,
                    ))
                    continue

                try:
                    with session.begin_nested():
                        session.add(self._to_row(article, identity))
                        self._touch_outlet(session, article)
                except IntegrityError as e:
                    result.duplicate_count += 1
                    result.results.append(SaveResult(saved=False, id=article.id, reason="url"))
                    logger.debug(f"ArticleCache: unique violation for {article.url}: {e.orig}")
                    continue
                except SQLAlchemyError as e:
                    result.error_count += 1
                    result.results.append(SaveResult(
                        saved=False, id=article.id, reason="error", error=str(e)[:300],
                    ))
                    logger.warning(f"ArticleCache: failed to save '{article.title[:60]}': {e}")
                    continue

                result.saved_count += 1
                result.results.append(SaveResult(saved=True, id=article.id))

        logger.info(
            f"ArticleCache: saved {result.saved_count}, "
            f"duplicates {result.duplicate_count}, errors {result.error_count}"
        )
        return result

    def mark_fetched(
        self,
        source_tag: str,
        max_age_hours: float,
        article_count: int,
        at: Optional[datetime] = None,
    ):
        """Record a successful fetch. Call only after the batch save committed."""
        at = _naive(at or _utcnow())
        with self._write_lock, self.db.get_session() as session:
            state = session.get(SourceFetchStateModel, source_tag)
            if state is None:
                session.add(SourceFetchStateModel(
                    source_tag=source_tag,
                    last_fetched_at=at,
                    max_age_hours=max_age_hours,
                    article_count=article_count,
                ))
            else:
                state.last_fetched_at = at
                state.max_age_hours = max_age_hours
                state.article_count = article_count

    def update_analysis(
        self,
        article_id: str,
        ai_analysis: Any,
        bias_score: Optional[float] = None,
        credibility_score: Optional[float] = None,
        sentiment: Optional[float] = None,
    ) -> bool:
        """Store an AI-analysis payload (opaque) and any scores derived from it.

        Returns False when the article is not in the cache.
        """
        with self._write_lock, self.db.get_session() as session:
            row = session.get(ArticleModel, article_id)
            if row is None:
                return False
            row.ai_analysis = json.dumps(ai_analysis) if ai_analysis is not None else None
            if bias_score is not None:
                row.bias_score = bias_score
            if credibility_score is not None:
                row.credibility_score = credibility_score
            if sentiment is not None:
                row.sentiment = sentiment
            return True

    def clean_old(self, days_to_keep: int = 30, now: Optional[datetime] = None) -> int:
        """Delete articles fetched more than `days_to_keep` days ago."""
        cutoff = _naive((now or _utcnow()) - timedelta(days=days_to_keep))
        with self._write_lock, self.db.get_session() as session:
            deleted = (
                session.query(ArticleModel)
                .filter(ArticleModel.fetched_at < cutoff)
                .delete(synchronize_session=False)
            )
        logger.info(f"ArticleCache: removed {deleted} articles older than {days_to_keep} days")
        return deleted

    def clear(self):
        """Wipe articles, fetch state and outlet stats."""
        with self._write_lock, self.db.get_session() as session:
            session.query(ArticleModel).delete()
            session.query(SourceFetchStateModel).delete()
            session.query(OutletModel).delete()
        logger.info("ArticleCache: cleared")

    # ── Staleness ──

    def is_stale(self, source_tag: str, max_age_hours: float, now: Optional[datetime] = None) -> bool:
        """True when the source was never fetched or its last fetch is older than max age."""
        now = as_utc(now or _utcnow())
        with self.db.get_session() as session:
            state = session.get(SourceFetchStateModel, source_tag)
            if state is None:
                return True
            age = now - as_utc(state.last_fetched_at)
        return age > timedelta(hours=max_age_hours)

    def get_fetch_state(self, source_tag: str) -> Optional[Dict]:
        with self.db.get_session() as session:
            state = session.get(SourceFetchStateModel, source_tag)
            if state is None:
                return None
            return {
                "source_tag": state.source_tag,
                "last_fetched_at": as_utc(state.last_fetched_at),
                "max_age_hours": state.max_age_hours,
                "article_count": state.article_count,
            }

    # ── Reads ──

    def get_article(self, article_id: str) -> Optional[Article]:
        with self.db.get_session() as session:
            row = session.get(ArticleModel, article_id)
            return self._to_article(row) if row else None

    def query(self, q: Optional[ArticleQuery] = None) -> List[Article]:
        """Filtered read, newest first."""
        q = q or ArticleQuery()
        with self.db.get_session() as session:
            query = self._apply_filters(session.query(ArticleModel), q)
            if q.keywords:
                pattern = _like(q.keywords)
                query = query.filter(or_(
                    ArticleModel.title.ilike(pattern),
                    ArticleModel.summary.ilike(pattern),
                    ArticleModel.content.ilike(pattern),
                ))
            rows = self._page(query, q).all()
            return [self._to_article(r) for r in rows]

    def search(self, term: str, q: Optional[ArticleQuery] = None) -> List[Article]:
        """Substring search over title, summary, content and outlet name."""
        q = q or ArticleQuery()
        pattern = _like(term)
        with self.db.get_session() as session:
            query = self._apply_filters(session.query(ArticleModel), q).filter(or_(
                ArticleModel.title.ilike(pattern),
                ArticleModel.summary.ilike(pattern),
                ArticleModel.content.ilike(pattern),
                ArticleModel.source_name.ilike(pattern),
            ))
            rows = self._page(query, q).all()
            return [self._to_article(r) for r in rows]

    def get_trending(self, limit: int = 20, now: Optional[datetime] = None) -> List[Article]:
        """Last 24 hours, highest social score first."""
        since = _naive((now or _utcnow()) - timedelta(hours=TRENDING_WINDOW_HOURS))
        with self.db.get_session() as session:
            rows = (
                session.query(ArticleModel)
                .filter(ArticleModel.published_at >= since)
                .order_by(ArticleModel.social_score.desc(), ArticleModel.published_at.desc())
                .limit(limit)
                .all()
            )
            return [self._to_article(r) for r in rows]

    def get_by_bias(self, min_bias: float, max_bias: float, limit: int = 50) -> List[Article]:
        """Articles whose bias score lies in [min_bias, max_bias]. Unscored rows are excluded."""
        with self.db.get_session() as session:
            rows = (
                session.query(ArticleModel)
                .filter(ArticleModel.bias_score.isnot(None))
                .filter(ArticleModel.bias_score.between(min_bias, max_bias))
                .order_by(ArticleModel.published_at.desc())
                .limit(limit)
                .all()
            )
            return [self._to_article(r) for r in rows]

    def get_sources(self) -> List[Dict]:
        """Per-outlet statistics, busiest outlet first."""
        with self.db.get_session() as session:
            rows = (
                session.query(OutletModel)
                .order_by(OutletModel.article_count.desc(), OutletModel.name)
                .all()
            )
            return [
                {
                    "name": r.name,
                    "source_url": r.source_url or "",
                    "bias_score": r.bias_score,
                    "credibility_score": r.credibility_score,
                    "api_source": r.api_source,
                    "last_fetched": as_utc(r.last_fetched).isoformat() if r.last_fetched else None,
                    "article_count": r.article_count or 0,
                }
                for r in rows
            ]

    def get_stats(self) -> Dict:
        """Return cache statistics."""
        with self.db.get_session() as session:
            count = session.query(func.count(ArticleModel.id)).scalar() or 0
            by_api_source = dict(
                session.query(ArticleModel.api_source, func.count(ArticleModel.id))
                .group_by(ArticleModel.api_source).all()
            )
            by_category = dict(
                session.query(ArticleModel.category, func.count(ArticleModel.id))
                .group_by(ArticleModel.category).all()
            )
            earliest, latest = session.query(
                func.min(ArticleModel.published_at), func.max(ArticleModel.published_at),
            ).one()
            outlet_count = session.query(func.count(OutletModel.name)).scalar() or 0
            states = session.query(SourceFetchStateModel).all()

            return {
                "count": count,
                "by_api_source": by_api_source,
                "by_category": by_category,
                "outlet_count": outlet_count,
                "date_range": (
                    (as_utc(earliest).isoformat(), as_utc(latest).isoformat())
                    if earliest and latest else None
                ),
                "fetch_state": {
                    s.source_tag: {
                        "last_fetched_at": as_utc(s.last_fetched_at).isoformat(),
                        "max_age_hours": s.max_age_hours,
                        "article_count": s.article_count,
                    }
                    for s in states
                },
            }

    # ── Query helpers ──

    @staticmethod
    def _apply_filters(query, q: ArticleQuery):
        if q.category and q.category.lower() != "all":
            query = query.filter(ArticleModel.category == q.category.lower())
        if q.source_name:
            query = query.filter(ArticleModel.source_name.ilike(_like(q.source_name)))
        if q.api_source:
            if isinstance(q.api_source, list):
                query = query.filter(ArticleModel.api_source.in_(q.api_source))
            else:
                query = query.filter(ArticleModel.api_source == q.api_source)
        if q.date_from:
            query = query.filter(ArticleModel.published_at >= _naive(q.date_from))
        if q.date_to:
            query = query.filter(ArticleModel.published_at <= _naive(q.date_to))
        return query

    @staticmethod
    def _page(query, q: ArticleQuery):
        query = query.order_by(ArticleModel.published_at.desc(), ArticleModel.id)
        if q.offset:
            query = query.offset(q.offset)
        if q.limit:
            query = query.limit(q.limit)
        return query

    # ── Serialization helpers ──

    @staticmethod
    def _touch_outlet(session, article: Article):
        outlet = session.get(OutletModel, article.source_name)
        if outlet is None:
            outlet = OutletModel(name=article.source_name, article_count=0)
            session.add(outlet)
        outlet.source_url = article.source_url or outlet.source_url
        outlet.api_source = article.api_source
        if article.bias_score is not None:
            outlet.bias_score = article.bias_score
        if article.credibility_score is not None:
            outlet.credibility_score = article.credibility_score
        outlet.last_fetched = _naive(article.fetched_at)
        outlet.article_count = (outlet.article_count or 0) + 1

    @staticmethod
    def _to_row(article: Article, identity: ArticleIdentity) -> ArticleModel:
        return ArticleModel(
            id=article.id,
            title=article.title,
            summary=article.summary,
            content=article.content,
            url=article.url,
            source_name=article.source_name,
            source_url=article.source_url,
            author=article.author,
            published_at=_naive(article.published_at),
            fetched_at=_naive(article.fetched_at),
            image_url=article.image_url,
            category=article.category,
            bias_score=article.bias_score,
            credibility_score=article.credibility_score,
            social_score=article.social_score,
            sentiment=article.sentiment,
            api_source=article.api_source,
            ai_analysis=json.dumps(article.ai_analysis) if article.ai_analysis is not None else None,
            title_hash=identity.title_hash,
            content_hash=identity.content_hash,
        )

    @staticmethod
    def _to_article(row: ArticleModel) -> Article:
        ai_analysis = None
        if row.ai_analysis:
            try:
                ai_analysis = json.loads(row.ai_analysis)
            except (json.JSONDecodeError, TypeError):
                ai_analysis = row.ai_analysis

        return Article(
            id=row.id,
            title=row.title,
            summary=row.summary or "",
            content=row.content,
            url=row.url,
            source_name=row.source_name,
            source_url=row.source_url or "",
            author=row.author or "Unknown",
            published_at=as_utc(row.published_at),
            fetched_at=as_utc(row.fetched_at),
            image_url=row.image_url,
            category=row.category or "general",
            bias_score=row.bias_score,
            credibility_score=row.credibility_score,
            social_score=row.social_score or 0,
            sentiment=row.sentiment,
            api_source=row.api_source,
            ai_analysis=ai_analysis,
        )
