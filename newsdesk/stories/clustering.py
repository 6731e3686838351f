"""
Greedy story clustering.

ALGORITHM (single pass, input order):
  for each unassigned article (the seed):
      cluster = seed + every unassigned article with similarity(seed, x) >= threshold
  keep clusters backed by >= 2 distinct outlets

Then, per surviving cluster: published range, bias distribution, blind-spot
flag, representative article, categories and a relevance score:

  relevance = 0.4 * source_count
            + 0.4 * time_proximity(latest member, now)
            + 0.2 * (non-zero bias buckets / 3)

KNOWN LIMITATIONS (accepted, not bugs):
  - Order dependent: members are compared with the seed only, so a different
    input order can split or merge clusters near the threshold.
  - A fully connected input (everything above threshold with everything)
    collapses into a single cluster.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from newsdesk.schemas import Article, StoryCluster
from newsdesk.stories.bias import BiasAggregator
from newsdesk.stories.similarity import similarity, time_proximity

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.6
MIN_SOURCES = 2

SOURCE_COUNT_WEIGHT = 0.4
RECENCY_WEIGHT = 0.4
DIVERSITY_WEIGHT = 0.2


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StoryClusterer:
    """Groups same-event articles from different outlets into StoryClusters."""

    def __init__(
        self,
        threshold: float = DEFAULT_THRESHOLD,
        aggregator: Optional[BiasAggregator] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.threshold = threshold
        self.aggregator = aggregator or BiasAggregator()
        self._now = clock

    def cluster(self, articles: List[Article], now: Optional[datetime] = None) -> List[StoryCluster]:
        now = now or self._now()
        assigned = [False] * len(articles)
        clusters: List[StoryCluster] = []

        for i, seed in enumerate(articles):
            if assigned[i]:
                continue
            assigned[i] = True
            members = [seed]

            for j in range(i + 1, len(articles)):
                if assigned[j]:
                    continue
                if similarity(seed, articles[j]) >= self.threshold:
                    members.append(articles[j])
                    assigned[j] = True

            sources = list(dict.fromkeys(a.source_name for a in members))
            if len(sources) < MIN_SOURCES:
                continue
            clusters.append(self._build(seed, members, sources, now))

        clusters.sort(key=lambda c: c.relevance_score, reverse=True)
        logger.info(f"Clustering: {len(articles)} articles → {len(clusters)} multi-source stories")
        return clusters

    def _build(self, seed: Article, members: List[Article], sources: List[str], now: datetime) -> StoryCluster:
        published = [a.published_at for a in members]
        distribution = self.aggregator.distribution(members)
        latest = max(published)

        relevance = (
            SOURCE_COUNT_WEIGHT * len(sources)
            + RECENCY_WEIGHT * time_proximity(latest, now)
            + DIVERSITY_WEIGHT * distribution.non_zero_buckets() / 3
        )

        return StoryCluster(
            id=f"story_{seed.id}",
            representative=self.aggregator.select_representative(members),
            articles=members,
            sources=sources,
            bias_distribution=distribution,
            is_blindspot=self.aggregator.is_blindspot(distribution),
            earliest_published=min(published),
            latest_published=latest,
            categories=list(dict.fromkeys(a.category for a in members)),
            relevance_score=round(relevance, 6),
        )
