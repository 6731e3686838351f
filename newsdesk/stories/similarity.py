"""
Pairwise article similarity for story clustering.

SCORE = 0.4 * title + 0.3 * summary + 0.2 * time + 0.1 * entities

  title / summary   Jaccard over normalized word sets, plus 0.1 per shared
                    key phrase (quoted text or "Capitalized Pair", > 10 chars)
                    up to +0.3, capped at 1.0. Either text empty → 0.
  time              ≤24h → 1.0, ≤48h → 0.8, ≤72h → 0.6, ≤1 week → 0.4, else 0.1
  entities          share of a's entities found in b's (case-insensitive).
                    KNOWN ASYMMETRY: the denominator is |entities(a)|, so
                    entity_overlap(a, b) != entity_overlap(b, a) in general.

The sum is clamped to [0, 1] and rounded to 6 decimals (0.4 + 0.2 compares
equal to a 0.6 threshold).
"""

from datetime import datetime
from typing import Optional

from newsdesk.news.canonical import normalize_text
from newsdesk.schemas import Article, as_utc
from newsdesk.stories.entities import extract_entities, extract_key_phrases

TITLE_WEIGHT = 0.4
SUMMARY_WEIGHT = 0.3
TIME_WEIGHT = 0.2
ENTITY_WEIGHT = 0.1

PHRASE_BONUS = 0.1
MAX_PHRASE_BONUS = 0.3
MIN_PHRASE_CHARS = 10

# (max hours apart, score), checked in order
TIME_BUCKETS = [(24, 1.0), (48, 0.8), (72, 0.6), (168, 0.4)]
TIME_FLOOR = 0.1


def _phrase_bonus(raw_a: str, raw_b: str, norm_a: str, norm_b: str) -> float:
    """Key phrases from either text that occur as whole words in both."""
    padded_a, padded_b = f" {norm_a} ", f" {norm_b} "
    seen = set()
    bonus = 0.0
    for phrase in extract_key_phrases(raw_a) + extract_key_phrases(raw_b):
        if len(phrase) <= MIN_PHRASE_CHARS:
            continue
        key = normalize_text(phrase)
        if not key or key in seen:
            continue
        seen.add(key)
        if f" {key} " in padded_a and f" {key} " in padded_b:
            bonus += PHRASE_BONUS
    return min(MAX_PHRASE_BONUS, bonus)


def text_similarity(text_a: Optional[str], text_b: Optional[str]) -> float:
    norm_a, norm_b = normalize_text(text_a), normalize_text(text_b)
    if not norm_a or not norm_b:
        return 0.0

    words_a, words_b = set(norm_a.split(" ")), set(norm_b.split(" "))
    jaccard = len(words_a & words_b) / len(words_a | words_b)
    return min(1.0, jaccard + _phrase_bonus(text_a, text_b, norm_a, norm_b))


def time_proximity(time_a: Optional[datetime], time_b: Optional[datetime]) -> float:
    if time_a is None or time_b is None:
        return 0.0
    hours_apart = abs((as_utc(time_a) - as_utc(time_b)).total_seconds()) / 3600
    for max_hours, score in TIME_BUCKETS:
        if hours_apart <= max_hours:
            return score
    return TIME_FLOOR


def _entity_text(article: Article) -> str:
    return f"{article.title} {article.summary or ''}"


def entity_overlap(a: Article, b: Article) -> float:
    entities_a = extract_entities(_entity_text(a))
    if not entities_a:
        return 0.0
    entities_b = {e.lower() for e in extract_entities(_entity_text(b))}
    shared = sum(1 for e in entities_a if e.lower() in entities_b)
    return shared / len(entities_a)


def similarity(a: Article, b: Article) -> float:
    """Bounded [0, 1] same-event score. An article compared with itself scores 1.0."""
    if a.id == b.id:
        return 1.0

    score = (
        TITLE_WEIGHT * text_similarity(a.title, b.title)
        + SUMMARY_WEIGHT * text_similarity(a.summary, b.summary)
        + TIME_WEIGHT * time_proximity(a.published_at, b.published_at)
        + ENTITY_WEIGHT * entity_overlap(a, b)
    )
    return round(min(1.0, max(0.0, score)), 6)
