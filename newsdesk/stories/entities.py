"""
Lightweight entity heuristic for story matching.

Not NER: capitalized word runs, "<Name> Inc/Corp/Agency/..." organization
patterns and "<Role> <Name>" patterns are enough to tell whether two
headlines are about the same people and organizations.
"""

import re
from typing import List

CAPITALIZED_RUN = re.compile(r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\b")

ORGANIZATION = re.compile(
    r"\b[A-Z][a-z]+\s+(?:Inc|Corp|LLC|Ltd|Company|Organization|Agency|Department)\b"
)

ROLE_NAME = re.compile(
    r"\b(?:President|CEO|Prime Minister|Senator|Representative|Governor|Mayor|Minister)\s+[A-Z][a-z]+"
)

# Quoted text and two-word capitalized phrases, used by the text-similarity bonus
QUOTED = re.compile(r'"([^"]+)"')
CAPITALIZED_PAIR = re.compile(r"[A-Z][a-z]+ [A-Z][a-z]+")


def extract_entities(text: str) -> List[str]:
    """Unique entity strings in first-seen order."""
    if not text:
        return []
    found = CAPITALIZED_RUN.findall(text) + ORGANIZATION.findall(text) + ROLE_NAME.findall(text)
    return list(dict.fromkeys(found))


def extract_key_phrases(text: str) -> List[str]:
    if not text:
        return []
    return QUOTED.findall(text) + CAPITALIZED_PAIR.findall(text)
