"""
Article data models.

Article is the canonical, adapter-independent record used throughout the
pipeline. Field order and nullability mirror the persisted record: downstream
consumers read a null bias_score as "not yet AI-analyzed", not as zero bias.

Hierarchy: raw adapter record → Article (+ ArticleIdentity) → cache / clusters
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from .base import MatchReason


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC (SQLite drops tzinfo)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Article(BaseModel):
    """Canonical article. Built by the canonicalizer, never by hand upstream."""
    id: str
    title: str
    summary: str = ""
    content: Optional[str] = None
    url: str
    source_name: str
    source_url: str = ""
    author: str = "Unknown"
    published_at: datetime
    fetched_at: datetime = Field(default_factory=_utcnow)
    image_url: Optional[str] = None
    category: str = "general"
    bias_score: Optional[float] = None
    credibility_score: Optional[float] = None
    social_score: int = 0
    sentiment: Optional[float] = None
    api_source: str
    # Owned by the AI analysis collaborator; stored and returned untouched
    ai_analysis: Optional[Any] = None

    @field_validator("published_at", "fetched_at", mode="after")
    @classmethod
    def _ensure_utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class ArticleIdentity(BaseModel):
    """Dedup keys. A None hash means the text normalized to nothing."""
    title_hash: Optional[str] = None
    content_hash: Optional[str] = None
    url: str


class DuplicateCheck(BaseModel):
    is_duplicate: bool = False
    matched_by: Optional[MatchReason] = None
    existing_id: Optional[str] = None

    class Config:
        use_enum_values = True


class SaveResult(BaseModel):
    saved: bool
    id: Optional[str] = None
    reason: Optional[str] = None        # url | title | content | error
    existing_id: Optional[str] = None
    error: Optional[str] = None


class BatchSaveResult(BaseModel):
    saved_count: int = 0
    duplicate_count: int = 0
    error_count: int = 0
    results: List[SaveResult] = Field(default_factory=list)


class ArticleQuery(BaseModel):
    """Filters for cached reads. Results are always newest-first."""
    keywords: Optional[str] = None
    category: Optional[str] = None          # "all" disables the filter
    source_name: Optional[str] = None
    api_source: Optional[Union[str, List[str]]] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    limit: Optional[int] = Field(default=None, ge=1)
    offset: int = Field(default=0, ge=0)

    @field_validator("date_from", "date_to", mode="after")
    @classmethod
    def _ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v) if v is not None else None


class FetchParams(BaseModel):
    """Caller parameters for the fetch orchestrator (and adapter query params)."""
    keywords: Optional[str] = None
    category: Optional[str] = None
    source: Optional[str] = None            # outlet name filter on cached reads
    countries: Optional[str] = None         # comma-separated ISO codes
    language: str = "en"
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    limit: int = Field(default=50, ge=1, le=500)
    sources: Optional[List[str]] = None     # upstream source tags; None = all registered
    force_refresh: bool = False

    @field_validator("date_from", "date_to", mode="after")
    @classmethod
    def _ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v) if v is not None else None

    def to_query(self, api_source: Optional[Union[str, List[str]]] = None) -> ArticleQuery:
        return ArticleQuery(
            keywords=self.keywords,
            category=self.category,
            source_name=self.source,
            api_source=api_source,
            date_from=self.date_from,
            date_to=self.date_to,
            limit=self.limit,
        )


class FetchResult(BaseModel):
    """Outcome of one orchestrator call, with a per-source error map."""
    articles: List[Article] = Field(default_factory=list)
    errors: Dict[str, str] = Field(default_factory=dict)
    cache_hit: bool = False
    fetched_sources: List[str] = Field(default_factory=list)
    skipped_sources: List[str] = Field(default_factory=list)
    saved_count: int = 0
    duplicate_count: int = 0
    dropped_count: int = 0
    save_error_count: int = 0
