"""Step 3 config - load from config/dedup.yaml.

All dedup parameters can be externalized to the config file:
- thresholds: title / content similarity, simhash Hamming distance
- simhash_bits: fingerprint width (must match any existing index)
- index: fingerprint index path and retention
- technical_vocabulary: regex categories for the quality score

Built-in defaults apply when the file is absent.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Tuple

import yaml
from pydantic import ValidationError

from .detector import DedupOptions

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).resolve().parents[2] / "config"
DEDUP_CONFIG_PATH = CONFIG_DIR / "dedup.yaml"
DEFAULT_INDEX_PATH = Path("data/dedup-index.json")
DEFAULT_INDEX_MAX_AGE_DAYS = 7


@dataclass(frozen=True)
class TechnicalVocabulary:
    """
    Immutable category -> regex patterns table for technical-density scoring.

    Patterns compile with re.ASCII so `\\b` treats CJK characters as
    boundaries: "GPT" in "发布了GPT模型" counts as a whole word.
    """
    categories: Tuple[Tuple[str, Tuple[str, ...]], ...] = ()
    _compiled: Tuple[re.Pattern, ...] = field(default=(), init=False, repr=False, compare=False)

    def __post_init__(self):
        compiled = tuple(
            re.compile(p, re.IGNORECASE | re.ASCII)
            for _, patterns in self.categories
            for p in patterns
        )
        object.__setattr__(self, "_compiled", compiled)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, List[str]]) -> "TechnicalVocabulary":
        """Build from {category: [pattern, ...]} (YAML layout)."""
        return cls(tuple(
            (str(name), tuple(str(p) for p in (patterns or []) if str(p).strip()))
            for name, patterns in mapping.items()
        ))

    def patterns(self) -> Tuple[re.Pattern, ...]:
        """All compiled patterns, category order preserved."""
        return self._compiled

    def names(self) -> List[str]:
        return [name for name, _ in self.categories]


DEFAULT_TECHNICAL_VOCABULARY = TechnicalVocabulary.from_mapping({
    "ai_ml": [
        r"\b(?:API|SDK|CLI|UI|UX|ML|AI|LLM|GPT|NLP|RAG|vector|embedding|token|prompt"
        r"|model|dataset|training|inference)\b",
    ],
    "programming": [
        r"\b(?:function|class|method|parameter|variable|constant|interface|type|enum)\b",
    ],
    "performance": [
        r"\b(?:performance|optimization|latency|throughput|scalability|efficiency)\b",
    ],
    "release": [
        r"\b(?:version|release|update|changelog|feature|bugfix|patch)\b",
    ],
    "version_number": [
        r"[0-9]+(?:\.[0-9]+){1,2}",
    ],
    "inline_code": [
        r"`[^`]+`",
    ],
})


@dataclass
class DedupConfig:
    """Resolved dedup step configuration."""
    options: DedupOptions = field(default_factory=DedupOptions)
    vocabulary: TechnicalVocabulary = DEFAULT_TECHNICAL_VOCABULARY
    index_enabled: bool = True
    index_path: Path = DEFAULT_INDEX_PATH
    index_max_age_days: int = DEFAULT_INDEX_MAX_AGE_DAYS


def _load_yaml(path: Path) -> dict:
    """Load YAML mapping; missing file yields {}."""
    if not path.exists():
        logger.info(f"Dedup config not found: {path}, using defaults")
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid dedup config {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Invalid dedup config {path}: top level must be a mapping")
    return data


def _load_options(data: dict) -> DedupOptions:
    thresholds = data.get("thresholds", {}) or {}
    values: Dict[str, object] = {}
    for key, name in [
        ("title", "title_threshold"),
        ("content", "content_threshold"),
        ("hamming", "hamming_threshold"),
    ]:
        if key in thresholds:
            values[name] = thresholds[key]
    if "simhash_bits" in data:
        values["hash_bits"] = data["simhash_bits"]

    try:
        return DedupOptions(**values)
    except ValidationError as e:
        raise ValueError(f"Invalid dedup thresholds: {e}") from e


def _load_vocabulary(data: dict) -> TechnicalVocabulary:
    vocab = data.get("technical_vocabulary")
    if not vocab:
        return DEFAULT_TECHNICAL_VOCABULARY
    if not isinstance(vocab, dict):
        raise ValueError("technical_vocabulary must map category -> list of patterns")
    try:
        return TechnicalVocabulary.from_mapping(vocab)
    except re.error as e:
        raise ValueError(f"Invalid technical_vocabulary pattern: {e}") from e


def load_dedup_config(path: str | Path | None = None) -> DedupConfig:
    """
    Load dedup configuration.

    Resolution order for the file: explicit path, $DEDUP_CONFIG,
    config/dedup.yaml. $DEDUP_INDEX_PATH overrides the index path.

    Raises:
        ValueError: malformed YAML or out-of-range values
    """
    path = Path(path or os.environ.get("DEDUP_CONFIG") or DEDUP_CONFIG_PATH)
    data = _load_yaml(path)

    index_cfg = data.get("index", {}) or {}
    index_path = os.environ.get("DEDUP_INDEX_PATH") or index_cfg.get("path") or DEFAULT_INDEX_PATH
    max_age = int(index_cfg.get("max_age_days", DEFAULT_INDEX_MAX_AGE_DAYS))
    if max_age < 1:
        raise ValueError(f"index.max_age_days must be >= 1, got {max_age}")

    return DedupConfig(
        options=_load_options(data),
        vocabulary=_load_vocabulary(data),
        index_enabled=bool(index_cfg.get("enabled", True)),
        index_path=Path(index_path),
        index_max_age_days=max_age,
    )
