"""
Story layer: same-event clustering across outlets.

Modules:
- entities: Regex entity + key-phrase heuristic (no NER)
- similarity: Weighted title/summary/time/entity score in [0, 1]
- clustering (StoryClusterer): Greedy single-pass clusters of >= 2 outlets
- bias (BiasAggregator): Left/center/right distribution, blind spots, representative
- outlets (OutletDirectory): Static outlet bias lists and credibility tiers
"""

from newsdesk.stories.bias import BiasAggregator
from newsdesk.stories.clustering import StoryClusterer
from newsdesk.stories.outlets import OutletDirectory
from newsdesk.stories.similarity import entity_overlap, similarity, text_similarity, time_proximity

__all__ = [
    "BiasAggregator",
    "StoryClusterer",
    "OutletDirectory",
    "similarity",
    "text_similarity",
    "time_proximity",
    "entity_overlap",
]
