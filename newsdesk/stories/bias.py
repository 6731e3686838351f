"""
Per-cluster bias distribution and blind-spot detection.

Percentages are rounded half-up per bucket and never redistributed, so a
three-way even split reads 33/33/33. A cluster is a blind spot when exactly
one bucket is non-zero: every outlet covering it shares one perspective.
"""

import math
from typing import Dict, List, Optional

from newsdesk.schemas import Article, BiasBucket, BiasDistribution
from newsdesk.stories.outlets import OutletDirectory


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class BiasAggregator:
    def __init__(self, outlets: Optional[OutletDirectory] = None):
        self.outlets = outlets or OutletDirectory()

    def classify(self, source_name: str) -> BiasBucket:
        return self.outlets.bias_bucket(source_name)

    def distribution(self, articles: List[Article]) -> BiasDistribution:
        if not articles:
            return BiasDistribution()

        counts: Dict[str, int] = {b.value: 0 for b in BiasBucket}
        for article in articles:
            counts[self.classify(article.source_name).value] += 1

        total = len(articles)
        return BiasDistribution(**{
            bucket: round_half_up(count / total * 100) for bucket, count in counts.items()
        })

    @staticmethod
    def is_blindspot(distribution: BiasDistribution) -> bool:
        return distribution.non_zero_buckets() == 1

    def select_representative(self, articles: List[Article]) -> Article:
        """Most recent article; ties go to the more credible outlet, then input order."""
        if not articles:
            raise ValueError("cannot pick a representative from an empty cluster")
        return max(
            articles,
            key=lambda a: (a.published_at, self.outlets.credibility_tier(a.source_name)),
        )
