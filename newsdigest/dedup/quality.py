"""Quality score used to pick which of two duplicates survives.

score = length (30) + technical detail (40) + source tier (20) + recency (10)
"""

from __future__ import annotations

import math
from datetime import datetime

from ..core import age_in_days
from ..models import NewsItem
from .config import DEFAULT_TECHNICAL_VOCABULARY, TechnicalVocabulary

LENGTH_MAX = 30
LENGTH_SATURATION_CHARS = 300

TECHNICAL_MAX = 40
TECHNICAL_SATURATION_MATCHES = 20

TIER_SCORES = {1: 20, 2: 15, 3: 10}

RECENCY_MAX = 10
RECENCY_WINDOW_DAYS = 7


def count_technical_details(
    text: str,
    vocabulary: TechnicalVocabulary | None = None,
) -> int:
    """Total regex matches of the technical vocabulary in text."""
    if not text:
        return 0
    vocabulary = vocabulary or DEFAULT_TECHNICAL_VOCABULARY
    return sum(
        sum(1 for _ in pattern.finditer(text))
        for pattern in vocabulary.patterns()
    )


def _length_score(content: str) -> float:
    return min(LENGTH_MAX, len(content) / LENGTH_SATURATION_CHARS * LENGTH_MAX)


def _technical_score(content: str, vocabulary: TechnicalVocabulary | None) -> float:
    matches = count_technical_details(content, vocabulary)
    return min(TECHNICAL_MAX, matches / TECHNICAL_SATURATION_MATCHES * TECHNICAL_MAX)


def _recency_score(published_at: datetime | None, now: datetime | None) -> float:
    # No timestamp: factor skipped rather than assumed fresh
    if published_at is None:
        return 0.0
    age = age_in_days(published_at, now)
    return min(RECENCY_MAX, max(0.0, RECENCY_MAX - age / RECENCY_WINDOW_DAYS * RECENCY_MAX))


def quality_score(
    item: NewsItem,
    vocabulary: TechnicalVocabulary | None = None,
    now: datetime | None = None,
) -> int:
    """
    Composite 0-100 quality score.

    Length and technical detail are measured on `content` only.

    Args:
        item: Item to score
        vocabulary: Technical vocabulary (default: built-in table)
        now: Reference time for recency (default: current UTC time)

    Returns:
        Rounded integer score
    """
    content = item.content
    score = (
        _length_score(content)
        + _technical_score(content, vocabulary)
        + TIER_SCORES.get(item.tier, 0)
        + _recency_score(item.published_at, now)
    )
    # Half-up rounding (round() would round 12.5 to 12)
    return int(math.floor(score + 0.5))
