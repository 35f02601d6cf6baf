"""Duplicate-decision cascade.

Checks run cheapest / most certain first and stop at the first hit:
  1. exact title
  2. hybrid title similarity  >= title_threshold
  3. exact content MD5         (both contents non-empty)
  4. simhash Hamming distance <= hamming_threshold
  5. hybrid content similarity >= content_threshold
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field

from ..models import DuplicateStage, NewsItem
from .fingerprint import DEFAULT_HASH_BITS, MAX_HASH_BITS, hamming_distance, md5_fingerprint, simhash
from .similarity import hybrid_similarity


class DedupOptions(BaseModel):
    """Thresholds for the duplicate cascade."""

    model_config = ConfigDict(frozen=True)

    title_threshold: float = Field(default=0.8, ge=0.0, le=1.0, description="标题混合相似度阈值")
    content_threshold: float = Field(default=0.8, ge=0.0, le=1.0, description="内容混合相似度阈值")
    hamming_threshold: int = Field(default=3, ge=0, description="Simhash 最大 Hamming 距离")
    hash_bits: int = Field(default=DEFAULT_HASH_BITS, ge=1, le=MAX_HASH_BITS, description="Simhash 位数")


@dataclass(frozen=True)
class SimilarityResult:
    """Verdict of one pairwise comparison."""
    is_duplicate: bool
    stage: DuplicateStage | None = None
    score: float | None = None  # similarity, or Hamming distance for simhash

    def __bool__(self) -> bool:
        return self.is_duplicate


NOT_DUPLICATE = SimilarityResult(False)


def is_duplicate(
    item1: NewsItem,
    item2: NewsItem,
    options: DedupOptions | None = None,
) -> SimilarityResult:
    """
    Decide whether two items report the same story.

    Content stages only run when both items have a body (content, falling
    back to description); otherwise only titles are compared.
    """
    options = options or DedupOptions()

    if item1.title == item2.title:
        return SimilarityResult(True, DuplicateStage.EXACT_TITLE, 1.0)

    title_sim = hybrid_similarity(item1.title, item2.title)
    if title_sim >= options.title_threshold:
        return SimilarityResult(True, DuplicateStage.TITLE_SIMILARITY, title_sim)

    content1 = item1.body
    content2 = item2.body
    if not (content1 and content2):
        return NOT_DUPLICATE

    if md5_fingerprint(content1) == md5_fingerprint(content2):
        return SimilarityResult(True, DuplicateStage.CONTENT_HASH, 1.0)

    distance = hamming_distance(
        simhash(content1, options.hash_bits),
        simhash(content2, options.hash_bits),
    )
    if distance <= options.hamming_threshold:
        return SimilarityResult(True, DuplicateStage.SIMHASH, float(distance))

    content_sim = hybrid_similarity(content1, content2)
    if content_sim >= options.content_threshold:
        return SimilarityResult(True, DuplicateStage.CONTENT_SIMILARITY, content_sim)

    return NOT_DUPLICATE
