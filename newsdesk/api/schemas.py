"""API response schemas -- canonical articles and story clusters for presentation clients."""

from typing import Dict, List

from pydantic import BaseModel, Field

from newsdesk.schemas import Article, StoryCluster


class ArticleListResponse(BaseModel):
    count: int
    articles: List[Article] = Field(default_factory=list)
    cache_hit: bool = False
    errors: Dict[str, str] = Field(default_factory=dict)
    fetched_sources: List[str] = Field(default_factory=list)
    skipped_sources: List[str] = Field(default_factory=list)


class StoryListResponse(BaseModel):
    count: int
    article_count: int
    stories: List[StoryCluster] = Field(default_factory=list)
    errors: Dict[str, str] = Field(default_factory=dict)
