"""
Static outlet lookup: political bucket and credibility tier per outlet name.

Matching is a case-insensitive substring test, so "BBC News" and
"BBC World Service" both resolve through the "BBC" entry. Outlets on no
list are center / tier 1. The tables can be replaced by injection.
"""

from typing import Dict, List, Optional

from newsdesk.schemas import BiasBucket

DEFAULT_BIAS_LISTS: Dict[str, List[str]] = {
    BiasBucket.LEFT.value: ["CNN", "MSNBC", "The Guardian", "NPR", "BBC", "Reuters"],
    BiasBucket.RIGHT.value: ["Fox News", "Wall Street Journal", "New York Post", "Daily Mail"],
}

# tier → outlets; anything unlisted is tier 1
DEFAULT_CREDIBILITY_TIERS: Dict[int, List[str]] = {
    3: ["Reuters", "Associated Press", "BBC", "NPR"],
    2: ["CNN", "Fox News", "The Guardian", "Wall Street Journal"],
}


def _contains_any(name: str, candidates: List[str]) -> bool:
    lowered = name.lower()
    return any(c.lower() in lowered for c in candidates)


class OutletDirectory:
    """Read-only classification of outlets by name."""

    def __init__(
        self,
        bias_lists: Optional[Dict[str, List[str]]] = None,
        credibility_tiers: Optional[Dict[int, List[str]]] = None,
    ):
        self.bias_lists = bias_lists if bias_lists is not None else DEFAULT_BIAS_LISTS
        self.credibility_tiers = (
            credibility_tiers if credibility_tiers is not None else DEFAULT_CREDIBILITY_TIERS
        )

    def bias_bucket(self, source_name: str) -> BiasBucket:
        # Left is checked first: an outlet on both lists counts as left
        for bucket in (BiasBucket.LEFT, BiasBucket.RIGHT):
            if _contains_any(source_name or "", self.bias_lists.get(bucket.value, [])):
                return bucket
        return BiasBucket.CENTER

    def credibility_tier(self, source_name: str) -> int:
        for tier in sorted(self.credibility_tiers, reverse=True):
            if _contains_any(source_name or "", self.credibility_tiers[tier]):
                return tier
        return 1
