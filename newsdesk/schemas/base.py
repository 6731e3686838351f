"""
Common enums used across the pipeline.

These define the small vocabularies the components exchange: which identity
key matched during dedup, and the three political buckets an outlet can fall
into.
"""

from enum import Enum


class MatchReason(str, Enum):
    """Which identity key flagged a duplicate. Checked in this order."""
    URL = "url"
    TITLE = "title"
    CONTENT = "content"


class BiasBucket(str, Enum):
    """Outlet classification used by the blind-spot detector."""
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class SourceTag(str, Enum):
    """Upstream feeds shipped with the pipeline (adapters may register others)."""
    RSS = "rss"
    NEWSAPI = "newsapi"
    NEWSAPI_AI = "newsapi-ai"
    MEDIASTACK = "mediastack"
