"""
Story cluster models.

A StoryCluster is a derived view: rebuilt from a working set of articles on
every request, never persisted and never modified after the cluster builder
returns it.
"""

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field

from .news import Article


class BiasDistribution(BaseModel):
    """Percent of member articles per bucket, each rounded independently.

    The three values are not forced to sum to 100 (1/3 each rounds to 33).
    """
    left: int = 0
    center: int = 0
    right: int = 0

    def non_zero_buckets(self) -> int:
        return sum(1 for v in (self.left, self.center, self.right) if v > 0)


class StoryCluster(BaseModel):
    id: str
    representative: Article
    articles: List[Article]
    sources: List[str]                  # distinct outlet names, first-seen order
    bias_distribution: BiasDistribution
    is_blindspot: bool = False
    earliest_published: datetime
    latest_published: datetime
    categories: List[str] = Field(default_factory=list)
    relevance_score: float = 0.0

    @property
    def source_count(self) -> int:
        return len(self.sources)

    @property
    def article_count(self) -> int:
        return len(self.articles)
