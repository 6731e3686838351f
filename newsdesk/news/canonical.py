"""
Canonicalization and identity hashing for incoming article records.

Every adapter returns feed-specific dicts (NewsAPI "publishedAt", Event
Registry "dateTime"/"body", RSS "link"/"pubDate", ...). This module maps any
of them into one canonical Article and derives its identity keys.

NORMALIZATION (applied to every hashed text, never skip it):
  lower-case → non-word characters become spaces → whitespace runs collapsed
  → stripped. Text that normalizes to "" gets no hash at all, so an empty
  title or body can never act as a shared match key.

IDENTIFIER:
  sha256("{title}-{url}-{published}")[:16] where `published` is the upstream
  timestamp as given (ISO-normalized), or "" when the record had none. The
  substituted "now" publish time never enters the id: re-canonicalizing the
  same record yields the same id.
"""

import hashlib
import html
import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from newsdesk.schemas import Article, ArticleIdentity, as_utc

logger = logging.getLogger(__name__)

SUMMARY_EXCERPT_CHARS = 200

_TITLE_KEYS = ("title", "headline")
_SUMMARY_KEYS = ("summary", "description", "snippet")
_CONTENT_KEYS = ("content", "body", "content:encoded")
_URL_KEYS = ("url", "link")
_AUTHOR_KEYS = ("author", "creator", "dc:creator")
_PUBLISHED_KEYS = ("published_at", "publishedAt", "pubDate", "dateTime", "date", "published")
_IMAGE_KEYS = ("image_url", "urlToImage", "image")

_DATE_FORMATS = [
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%dT%H:%M:%S.%fZ",
    "%Y-%m-%d %H:%M:%S",
    "%a, %d %b %Y %H:%M:%S %z",
    "%a, %d %b %Y %H:%M:%S GMT",
    "%Y-%m-%d",
]


class MalformedRecordError(ValueError):
    """A raw record is missing a field the canonical Article cannot default."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Normalization + hashing ─────────────────────────────────────────────────

def normalize_text(text: Optional[str]) -> str:
    if not text:
        return ""
    lowered = text.lower()
    no_punct = re.sub(r"[^\w\s]", " ", lowered)
    return re.sub(r"\s+", " ", no_punct).strip()


def text_hash(text: Optional[str]) -> Optional[str]:
    """SHA-256 of the normalized text, or None when nothing is left to hash."""
    normalized = normalize_text(text)
    if not normalized:
        return None
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def article_id(title: str, url: str, published: str = "") -> str:
    return hashlib.sha256(f"{title}-{url}-{published}".encode("utf-8")).hexdigest()[:16]


def compute_identity(article: Article) -> ArticleIdentity:
    """Title hash, content hash (content, else summary) and the raw URL."""
    return ArticleIdentity(
        title_hash=text_hash(article.title),
        content_hash=text_hash(article.content or article.summary),
        url=article.url,
    )


# ── Field helpers ───────────────────────────────────────────────────────────

def clean_html(text: Optional[str]) -> str:
    """Strip tags (scripts and styles with their bodies) and decode entities."""
    if not text:
        return ""
    text = re.sub(r"<(script|style)[^>]*>.*?</\1>", " ", text, flags=re.IGNORECASE | re.DOTALL)
    text = re.sub(r"<[^>]+>", " ", text)
    text = html.unescape(text)
    return re.sub(r"\s+", " ", text).strip()


def parse_published(value: Any) -> Optional[datetime]:
    """Parse the timestamp shapes the upstream feeds emit. None if unparseable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if not isinstance(value, str):
        return None

    raw = value.strip()
    try:
        return as_utc(datetime.fromisoformat(raw.replace("Z", "+00:00")))
    except ValueError:
        pass
    try:
        return as_utc(parsedate_to_datetime(raw))
    except (TypeError, ValueError, IndexError):
        pass
    for fmt in _DATE_FORMATS:
        try:
            return as_utc(datetime.strptime(raw, fmt))
        except ValueError:
            continue
    return None


def _first_text(raw: Dict[str, Any], keys: Iterable[str]) -> str:
    for key in keys:
        value = raw.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def _source_fields(raw: Dict[str, Any], source_tag: str) -> Tuple[str, str]:
    """(source_name, source_url). NewsAPI nests {name}, Event Registry {title, uri}."""
    name = raw.get("source_name") if isinstance(raw.get("source_name"), str) else ""
    url = raw.get("source_url") if isinstance(raw.get("source_url"), str) else ""

    source = raw.get("source")
    if isinstance(source, dict):
        name = name or source.get("name") or source.get("title") or ""
        url = url or source.get("uri") or source.get("url") or source.get("href") or ""
    elif isinstance(source, str):
        name = name or source

    return (name.strip() or source_tag), (url or "").strip()


def _category(raw: Dict[str, Any]) -> str:
    category = raw.get("category")
    if isinstance(category, list):
        category = category[0] if category else None
    if not category:
        categories = raw.get("categories")
        if isinstance(categories, list) and categories:
            first = categories[0]
            category = first.get("label") or first.get("uri") if isinstance(first, dict) else first
    if not isinstance(category, str) or not category.strip():
        return "general"
    return category.replace("news/", "").strip().lower()


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _int_or_zero(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


# ── Canonicalizer ───────────────────────────────────────────────────────────

def canonicalize(raw: Dict[str, Any], source_tag: str, now: Optional[datetime] = None) -> Article:
    """Map one raw adapter record to a canonical Article.

    Raises MalformedRecordError when the record has no title or no URL.
    """
    if not isinstance(raw, dict):
        raise MalformedRecordError(f"expected a mapping, got {type(raw).__name__}")

    now = now or _utcnow()

    title = clean_html(_first_text(raw, _TITLE_KEYS))
    url = _first_text(raw, _URL_KEYS)
    if not title:
        raise MalformedRecordError(f"record from '{source_tag}' has no title (url={url[:80]!r})")
    if not url:
        raise MalformedRecordError(f"record from '{source_tag}' has no url (title={title[:80]!r})")

    content = clean_html(_first_text(raw, _CONTENT_KEYS))
    summary = clean_html(_first_text(raw, _SUMMARY_KEYS))
    if not summary and content:
        summary = content[:SUMMARY_EXCERPT_CHARS]
        if len(content) > SUMMARY_EXCERPT_CHARS:
            summary += "..."

    published_raw = next((raw[k] for k in _PUBLISHED_KEYS if raw.get(k)), None)
    published = parse_published(published_raw)
    if published_raw is not None and published is None:
        logger.debug(f"Unparseable publish time {published_raw!r} for '{title[:60]}', using now")
    published_key = published.isoformat() if published else ""

    source_name, source_url = _source_fields(raw, source_tag)
    image_url = _first_text(raw, _IMAGE_KEYS) or None

    return Article(
        id=article_id(title, url, published_key),
        title=title,
        summary=summary,
        content=content or None,
        url=url,
        source_name=source_name,
        source_url=source_url,
        author=_first_text(raw, _AUTHOR_KEYS) or "Unknown",
        published_at=published or now,
        fetched_at=now,
        image_url=image_url,
        category=_category(raw),
        bias_score=_optional_float(raw.get("bias_score")),
        credibility_score=_optional_float(raw.get("credibility_score")),
        social_score=_int_or_zero(raw.get("social_score", raw.get("socialScore"))),
        sentiment=_optional_float(raw.get("sentiment")),
        api_source=source_tag,
        ai_analysis=raw.get("ai_analysis"),
    )


def canonicalize_batch(
    records: Iterable[Dict[str, Any]],
    source_tag: str,
    now: Optional[datetime] = None,
) -> Tuple[List[Article], int]:
    """Canonicalize a batch, dropping malformed records with a warning.

    Returns (articles, dropped_count).
    """
    articles: List[Article] = []
    dropped = 0
    for raw in records:
        try:
            articles.append(canonicalize(raw, source_tag, now=now))
        except MalformedRecordError as e:
            dropped += 1
            logger.warning(f"[{source_tag}] Dropping malformed record: {e}")
    return articles, dropped
