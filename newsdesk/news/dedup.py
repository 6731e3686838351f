"""
Duplicate detection for canonical articles.

CHECK ORDER (short-circuits on the first match):
  1. URL:      exact URL equality (a re-fetch of the same page)
  2. TITLE:    normalized title hash (syndicated copy under another URL)
  3. CONTENT:  normalized content hash, falling back to summary

A title/content match against a record with the same id is not a duplicate:
it is the record itself. Hashes that are None (text normalized to nothing)
are never looked up, so two articles with empty bodies never collide.

Two indexes share the logic:
  - StoreDedupIndex:  SQL lookups inside the caller's session (cache writes)
  - MemoryDedupIndex: in-batch dedup before anything touches the store
"""

import logging
from typing import Dict, Optional

from sqlalchemy.orm import Session

from newsdesk.database import ArticleModel
from newsdesk.news.canonical import compute_identity
from newsdesk.schemas import Article, ArticleIdentity, DuplicateCheck, MatchReason

logger = logging.getLogger(__name__)


class DedupIndex:
    """Base class. Subclasses answer the three lookups, this class orders them."""

    def _find_by_url(self, url: str) -> Optional[str]:
        raise NotImplementedError

    def _find_by_title_hash(self, title_hash: str, exclude_id: str) -> Optional[str]:
        raise NotImplementedError

    def _find_by_content_hash(self, content_hash: str, exclude_id: str) -> Optional[str]:
        raise NotImplementedError

    def check_duplicate(
        self,
        article: Article,
        identity: Optional[ArticleIdentity] = None,
    ) -> DuplicateCheck:
        identity = identity or compute_identity(article)

        existing = self._find_by_url(identity.url)
        if existing:
            return DuplicateCheck(is_duplicate=True, matched_by=MatchReason.URL, existing_id=existing)

        if identity.title_hash:
            existing = self._find_by_title_hash(identity.title_hash, article.id)
            if existing:
                return DuplicateCheck(is_duplicate=True, matched_by=MatchReason.TITLE, existing_id=existing)

        if identity.content_hash:
            existing = self._find_by_content_hash(identity.content_hash, article.id)
            if existing:
                return DuplicateCheck(is_duplicate=True, matched_by=MatchReason.CONTENT, existing_id=existing)

        return DuplicateCheck(is_duplicate=False)


class StoreDedupIndex(DedupIndex):
    """Lookups against the articles table, inside an open session."""

    def __init__(self, session: Session):
        self.session = session

    def _first_id(self, *criteria) -> Optional[str]:
        row = self.session.query(ArticleModel.id).filter(*criteria).first()
        return row[0] if row else None

    def _find_by_url(self, url: str) -> Optional[str]:
        return self._first_id(ArticleModel.url == url)

    def _find_by_title_hash(self, title_hash: str, exclude_id: str) -> Optional[str]:
        return self._first_id(ArticleModel.title_hash == title_hash, ArticleModel.id != exclude_id)

    def _find_by_content_hash(self, content_hash: str, exclude_id: str) -> Optional[str]:
        return self._first_id(ArticleModel.content_hash == content_hash, ArticleModel.id != exclude_id)


class MemoryDedupIndex(DedupIndex):
    """In-batch index. First writer wins: register accepted articles with add()."""

    def __init__(self):
        self._by_url: Dict[str, str] = {}
        self._by_title: Dict[str, str] = {}
        self._by_content: Dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._by_url)

    def _find_by_url(self, url: str) -> Optional[str]:
        return self._by_url.get(url)

    def _find_by_title_hash(self, title_hash: str, exclude_id: str) -> Optional[str]:
        existing = self._by_title.get(title_hash)
        return existing if existing != exclude_id else None

    def _find_by_content_hash(self, content_hash: str, exclude_id: str) -> Optional[str]:
        existing = self._by_content.get(content_hash)
        return existing if existing != exclude_id else None

    def add(self, article: Article, identity: Optional[ArticleIdentity] = None):
        identity = identity or compute_identity(article)
        self._by_url.setdefault(identity.url, article.id)
        if identity.title_hash:
            self._by_title.setdefault(identity.title_hash, article.id)
        if identity.content_hash:
            self._by_content.setdefault(identity.content_hash, article.id)

    def add_if_new(self, article: Article) -> DuplicateCheck:
        """Check, and register the article when it is not a duplicate."""
        identity = compute_identity(article)
        check = self.check_duplicate(article, identity)
        if not check.is_duplicate:
            self.add(article, identity)
        return check
