"""Step 3: Similarity-based deduplication."""

from .config import DEFAULT_TECHNICAL_VOCABULARY, DedupConfig, TechnicalVocabulary, load_dedup_config
from .detector import DedupOptions, SimilarityResult, is_duplicate
from .filter import deduplicate, filter_unseen, load_items, run_dedup
from .fingerprint import FingerprintMismatchError, hamming_distance, md5_fingerprint, simhash
from .index import (
    FingerprintIndex,
    IndexEntry,
    backup_index,
    cleanup_index,
    load_index,
    save_index,
    update_index,
)
from .quality import count_technical_details, quality_score
from .similarity import (
    cosine_similarity,
    hybrid_similarity,
    levenshtein_distance,
    levenshtein_similarity,
)

__all__ = [
    # Similarity
    "levenshtein_distance",
    "levenshtein_similarity",
    "cosine_similarity",
    "hybrid_similarity",
    # Fingerprints
    "md5_fingerprint",
    "simhash",
    "hamming_distance",
    "FingerprintMismatchError",
    # Quality
    "count_technical_details",
    "quality_score",
    # Cascade
    "DedupOptions",
    "SimilarityResult",
    "is_duplicate",
    # Filters
    "deduplicate",
    "filter_unseen",
    "load_items",
    "run_dedup",
    # Index
    "FingerprintIndex",
    "IndexEntry",
    "load_index",
    "update_index",
    "cleanup_index",
    "save_index",
    "backup_index",
    # Config
    "DedupConfig",
    "TechnicalVocabulary",
    "DEFAULT_TECHNICAL_VOCABULARY",
    "load_dedup_config",
]
