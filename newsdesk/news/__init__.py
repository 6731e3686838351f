"""
News ingestion: raw feed records → canonical, deduplicated, cached articles.

Modules:
- canonical: Record canonicalization + identity hashing
- dedup: URL → title hash → content hash duplicate checks (store + in-memory)
- fetcher (FetchOrchestrator): Per-source staleness, pacing, fan-out and merge
"""

from newsdesk.news.canonical import (
    MalformedRecordError, canonicalize, canonicalize_batch, compute_identity,
    normalize_text, text_hash,
)
from newsdesk.news.dedup import MemoryDedupIndex, StoreDedupIndex

# fetcher is imported from its module (newsdesk.news.fetcher): it depends on
# newsdesk.tools.article_cache, which itself imports this package.
