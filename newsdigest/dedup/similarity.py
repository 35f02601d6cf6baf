"""String similarity metrics used by the dedup cascade.

hybrid = 0.4 × levenshtein_similarity + 0.6 × cosine_similarity

Token overlap gets the larger weight so reordered or lightly rewritten
headlines still match, while unrelated token sets stay far apart.
"""

from __future__ import annotations

import math
import re
from collections import Counter

from rapidfuzz.distance import Levenshtein

LEVENSHTEIN_WEIGHT = 0.4
COSINE_WEIGHT = 0.6

# Word characters (CJK ideographs included) form tokens; everything else splits
_TOKEN_RE = re.compile(r"[\w\u4e00-\u9fa5]+")


def levenshtein_distance(s1: str, s2: str) -> int:
    """Minimum number of single-character edits (unit costs) turning s1 into s2."""
    return Levenshtein.distance(s1, s2)


def levenshtein_similarity(s1: str, s2: str) -> float:
    """
    Edit distance normalized to 0-1.

    Both empty -> 1.0, exactly one empty -> 0.0.
    """
    s1, s2 = s1 or "", s2 or ""
    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0

    max_len = max(len(s1), len(s2))
    return 1.0 - levenshtein_distance(s1, s2) / max_len


def tokenize(text: str) -> list[str]:
    """Lower-case bag-of-words tokens."""
    if not text:
        return []
    return _TOKEN_RE.findall(text.lower())


def text_to_vector(text: str) -> Counter:
    """Sparse term-frequency vector {token: count}."""
    return Counter(tokenize(text))


def _magnitude(vector: Counter) -> float:
    return math.sqrt(sum(v * v for v in vector.values()))


def cosine_similarity(text1: str, text2: str) -> float:
    """Cosine of the term-frequency vectors of two texts (0-1)."""
    if not text1 or not text2:
        return 0.0
    if text1 == text2:
        return 1.0

    vec1 = text_to_vector(text1)
    vec2 = text_to_vector(text2)

    mag1 = _magnitude(vec1)
    mag2 = _magnitude(vec2)
    if mag1 == 0 or mag2 == 0:
        return 0.0

    # Iterate the smaller vector
    if len(vec1) > len(vec2):
        vec1, vec2 = vec2, vec1
    dot = sum(count * vec2.get(token, 0) for token, count in vec1.items())

    return dot / (mag1 * mag2)


def hybrid_similarity(text1: str, text2: str) -> float:
    """Weighted blend of edit-distance and cosine similarity."""
    lev = levenshtein_similarity(text1, text2)
    cos = cosine_similarity(text1, text2)
    return LEVENSHTEIN_WEIGHT * lev + COSINE_WEIGHT * cos
