"""Data models for the news digest dedup step."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DuplicateReason(str, Enum):
    """Why a duplicate pair was resolved the way it was."""
    HIGHER_QUALITY = "higher_quality"   # 新条目质量更高，替换旧条目
    LOWER_QUALITY = "lower_quality"     # 旧条目保留


class DuplicateStage(str, Enum):
    """Cascade stage that classified a pair as duplicates."""
    EXACT_TITLE = "exact_title"
    TITLE_SIMILARITY = "title_similarity"
    CONTENT_HASH = "content_hash"
    SIMHASH = "simhash"
    CONTENT_SIMILARITY = "content_similarity"


class NewsItem(BaseModel):
    """
    一条资讯 - dedup 的输入单元

    Missing text fields are normalized to "" so every similarity
    primitive sees the same value.
    """

    model_config = ConfigDict(frozen=True)

    # === 核心内容 ===
    title: str
    content: str = ""           # 正文/摘要
    description: str = ""       # RSS description (content 为空时的回退)
    url: str = ""               # 原文链接 (审计用唯一标识)

    # === 溯源 ===
    tier: int = 3               # 来源层级: 1 最高, 2, 3
    source_name: str = ""

    # === 时间戳 ===
    published_at: datetime | None = None

    @field_validator("title", "content", "description", "url", "source_name", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return "" if v is None else v

    @property
    def body(self) -> str:
        """Text used for content comparison: content, else description."""
        return self.content or self.description


class DuplicateScores(BaseModel):
    """Quality scores of the two items in a duplicate pair."""

    new: int = Field(..., description="incoming item score")
    old: int = Field(..., description="previously accepted item score")


class DuplicateRecord(BaseModel):
    """One removal in the dedup audit trail."""

    kept: str
    removed: str
    reason: DuplicateReason
    scores: DuplicateScores
    stage: DuplicateStage | None = None


class DedupStats(BaseModel):
    """Aggregate statistics of one dedup run."""

    total_items: int = Field(..., ge=0)
    unique_items: int = Field(..., ge=0)
    duplicates_removed: int = Field(..., ge=0)
    deduplication_rate: float = Field(..., ge=0.0, le=100.0, description="percent")
    duration_ms: float = Field(..., ge=0.0)


class DedupOutcome(BaseModel):
    """Result of `deduplicate`: survivors, audit trail and stats."""

    unique_items: list[NewsItem]
    duplicates: list[DuplicateRecord]
    stats: DedupStats
