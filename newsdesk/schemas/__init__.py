"""
Schemas package: data models for the newsdesk pipeline.

Models are organized by domain in submodules:
  - base.py: Common enums (MatchReason, BiasBucket, SourceTag)
  - news.py: Article, ArticleIdentity, dedup/save results, query and fetch params
  - stories.py: BiasDistribution, StoryCluster
"""

from newsdesk.schemas.base import MatchReason, BiasBucket, SourceTag

from newsdesk.schemas.news import (
    Article, ArticleIdentity, DuplicateCheck, SaveResult, BatchSaveResult,
    ArticleQuery, FetchParams, FetchResult, as_utc,
)

from newsdesk.schemas.stories import BiasDistribution, StoryCluster

__all__ = [
    # base
    "MatchReason", "BiasBucket", "SourceTag",
    # news
    "Article", "ArticleIdentity", "DuplicateCheck", "SaveResult", "BatchSaveResult",
    "ArticleQuery", "FetchParams", "FetchResult", "as_utc",
    # stories
    "BiasDistribution", "StoryCluster",
]
