"""Deduplication filter: in-batch cascade dedup and cross-run index filter."""

from __future__ import annotations

import logging
import time
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from ..core import load_json, utcnow
from ..models import (
    DedupOutcome,
    DedupStats,
    DuplicateReason,
    DuplicateRecord,
    DuplicateScores,
    DuplicateStage,
    NewsItem,
)
from .config import DedupConfig, TechnicalVocabulary
from .detector import DedupOptions, SimilarityResult, is_duplicate
from .fingerprint import hamming_distance, md5_fingerprint, simhash
from .index import FingerprintIndex, cleanup_index, load_index, save_index, update_index
from .quality import quality_score

logger = logging.getLogger(__name__)


class _AcceptedItems:
    """
    Accepted-unique items keyed by a stable slot number.

    Replacing an item keeps its slot, so first-seen order survives
    in-place swaps. `title_to_slot` only holds titles of current occupants.
    """

    def __init__(
        self,
        options: DedupOptions,
        vocabulary: TechnicalVocabulary | None,
        now: datetime,
    ):
        self.options = options
        self.vocabulary = vocabulary
        self.now = now
        self.slots: dict[int, NewsItem] = {}
        self.title_to_slot: dict[str, int] = {}
        self.duplicates: list[DuplicateRecord] = []
        self._next_slot = 0
        self._scores: dict[int, int] = {}

    def score(self, item: NewsItem) -> int:
        key = id(item)
        if key not in self._scores:
            self._scores[key] = quality_score(item, self.vocabulary, self.now)
        return self._scores[key]

    def items(self) -> list[NewsItem]:
        return list(self.slots.values())

    def find_match(self, item: NewsItem) -> tuple[int | None, SimilarityResult | None]:
        """First accepted slot the item duplicates, exact-title lookup first."""
        slot = self.title_to_slot.get(item.title)
        if slot is not None:
            return slot, SimilarityResult(True, DuplicateStage.EXACT_TITLE, 1.0)

        for slot, accepted in self.slots.items():
            result = is_duplicate(item, accepted, self.options)
            if result:
                return slot, result
        return None, None

    def add(self, item: NewsItem) -> int:
        slot = self._next_slot
        self._next_slot += 1
        self.slots[slot] = item
        self.title_to_slot[item.title] = slot
        return slot

    def _replace(self, slot: int, item: NewsItem) -> None:
        old = self.slots[slot]
        if self.title_to_slot.get(old.title) == slot:
            del self.title_to_slot[old.title]
        self.slots[slot] = item
        self.title_to_slot[item.title] = slot

    def _drop(self, slot: int) -> None:
        old = self.slots.pop(slot)
        if self.title_to_slot.get(old.title) == slot:
            del self.title_to_slot[old.title]

    def _record(
        self,
        kept: NewsItem,
        removed: NewsItem,
        reason: DuplicateReason,
        new_score: int,
        old_score: int,
        stage: DuplicateStage | None,
    ) -> None:
        record = DuplicateRecord(
            kept=kept.url,
            removed=removed.url,
            reason=reason,
            scores=DuplicateScores(new=new_score, old=old_score),
            stage=stage,
        )
        self.duplicates.append(record)
        logger.debug(
            f"Duplicate ({stage.value if stage else '-'}, {reason.value}): "
            f"kept {kept.url} removed {removed.url} scores new={new_score} old={old_score}"
        )

    def resolve(self, slot: int, incoming: NewsItem, stage: DuplicateStage | None) -> bool:
        """
        Keep the better of incoming vs the slot occupant.

        Replacement requires a strictly higher score; ties keep the
        already accepted item. Returns True if incoming took the slot.
        """
        existing = self.slots[slot]
        new_score = self.score(incoming)
        old_score = self.score(existing)

        if new_score > old_score:
            self._replace(slot, incoming)
            self._record(incoming, existing, DuplicateReason.HIGHER_QUALITY, new_score, old_score, stage)
            return True

        self._record(existing, incoming, DuplicateReason.LOWER_QUALITY, new_score, old_score, stage)
        return False

    def settle(self, slot: int) -> None:
        """
        Re-check a freshly swapped-in occupant against the other slots.

        A replacement can resemble an accepted item its predecessor did not.
        Such pairs are resolved with the same score rule, ties going to the
        earlier slot, so no two accepted items remain duplicates.
        """
        occupant = self.slots[slot]
        for other_slot, other in list(self.slots.items()):
            if other_slot == slot or other_slot not in self.slots:
                continue
            result = is_duplicate(occupant, other, self.options)
            if not result:
                continue

            occ_score = self.score(occupant)
            other_score = self.score(other)
            occupant_wins = occ_score > other_score or (occ_score == other_score and slot < other_slot)

            if occupant_wins:
                self._drop(other_slot)
                self._record(occupant, other, DuplicateReason.HIGHER_QUALITY, occ_score, other_score, result.stage)
            else:
                self._drop(slot)
                self._record(other, occupant, DuplicateReason.LOWER_QUALITY, occ_score, other_score, result.stage)
                return


def deduplicate(
    items: list[NewsItem],
    options: DedupOptions | None = None,
    *,
    vocabulary: TechnicalVocabulary | None = None,
    now: datetime | None = None,
) -> DedupOutcome:
    """
    Remove duplicates within a batch.

    Each item is compared against the items accepted so far (first match
    wins). On a match the higher quality score survives in the accepted
    item's position; on a tie the accepted item stays.

    Args:
        items: Candidate items in arrival order
        options: Cascade thresholds
        vocabulary: Technical vocabulary for quality scoring
        now: Reference time for recency scoring (default: now, UTC)

    Returns:
        DedupOutcome with unique items, audit records and stats
    """
    start = time.perf_counter()
    options = options or DedupOptions()
    accepted = _AcceptedItems(options, vocabulary, now or utcnow())

    logger.info(f"Dedup start: {len(items)} items")

    for item in items:
        slot, match = accepted.find_match(item)
        if slot is None:
            accepted.add(item)
            continue

        if accepted.resolve(slot, item, match.stage):
            accepted.settle(slot)

    unique_items = accepted.items()
    duplicates = accepted.duplicates
    total = len(items)

    stats = DedupStats(
        total_items=total,
        unique_items=len(unique_items),
        duplicates_removed=len(duplicates),
        deduplication_rate=round(len(duplicates) / total * 100, 2) if total else 0.0,
        duration_ms=round((time.perf_counter() - start) * 1000, 2),
    )

    logger.info(
        f"Dedup done: kept {stats.unique_items}, removed {stats.duplicates_removed} "
        f"({stats.deduplication_rate:.2f}%) in {stats.duration_ms:.0f}ms"
    )

    return DedupOutcome(unique_items=unique_items, duplicates=duplicates, stats=stats)


def filter_unseen(
    items: list[NewsItem],
    index: FingerprintIndex,
    options: DedupOptions | None = None,
) -> tuple[list[NewsItem], list[NewsItem]]:
    """
    Filter out items already recorded in the fingerprint index.

    An item counts as seen when its url is indexed, its content MD5 matches
    an entry, or its content simhash is within the Hamming threshold of one.

    Args:
        items: Items from current run
        index: Fingerprint index from previous runs
        options: Cascade thresholds (hamming_threshold, hash_bits)

    Returns:
        Tuple of (new_items, seen_items)

    Raises:
        FingerprintMismatchError: index built with a different hash width
    """
    options = options or DedupOptions()

    content_hashes = {e.content_hash for e in index.items.values() if e.content_hash}
    fingerprints = [e.content_fingerprint for e in index.items.values() if e.content_hash]

    new_items: list[NewsItem] = []
    seen_items: list[NewsItem] = []

    for item in items:
        if _is_indexed(item, index, content_hashes, fingerprints, options):
            seen_items.append(item)
        else:
            new_items.append(item)

    logger.info(f"Cross-run filter: {len(new_items)} new, {len(seen_items)} already seen")
    return new_items, seen_items


def load_items(path: str | Path) -> tuple[list[NewsItem], int]:
    """
    Load raw items from a JSON list.

    Records failing validation (e.g. no title) are skipped and logged.

    Returns:
        Tuple of (items, invalid_count)
    """
    data = load_json(path, default=[])
    if not isinstance(data, list):
        logger.warning(f"Expected a JSON list in {path}, got {type(data).__name__}")
        return [], 0

    items: list[NewsItem] = []
    invalid = 0
    for i, record in enumerate(data):
        try:
            items.append(NewsItem.model_validate(record))
        except ValidationError as e:
            invalid += 1
            logger.warning(f"Skipping invalid item #{i} in {path}: {e.error_count()} errors")
    return items, invalid


def run_dedup(
    items: list[NewsItem],
    config: DedupConfig,
    *,
    cross_run: bool = False,
    save: bool = True,
    now: datetime | None = None,
) -> tuple[DedupOutcome, list[NewsItem]]:
    """
    Full step 3: index load, optional cross-run filter, dedup, index update.

    Args:
        items: Items from current run
        config: Resolved dedup configuration
        cross_run: Drop items already in the index before dedup
        save: Persist the updated index
        now: Reference time (default: now, UTC)

    Returns:
        Tuple of (outcome, seen_items); seen_items are those dropped by
        the cross-run filter

    Raises:
        OSError: updated index could not be written
    """
    now = now or utcnow()
    seen_items: list[NewsItem] = []

    index = None
    if config.index_enabled:
        index = cleanup_index(load_index(config.index_path), config.index_max_age_days, now)
        if cross_run:
            items, seen_items = filter_unseen(items, index, config.options)

    outcome = deduplicate(items, config.options, vocabulary=config.vocabulary, now=now)

    if index is not None and save:
        update_index(index, outcome.unique_items, config.options.hash_bits, now)
        save_index(index, config.index_path)

    return outcome, seen_items


def _is_indexed(
    item: NewsItem,
    index: FingerprintIndex,
    content_hashes: set[str],
    fingerprints: list[str],
    options: DedupOptions,
) -> bool:
    if item.url and item.url in index.items:
        return True

    body = item.body
    if not body:
        return False

    if md5_fingerprint(body) in content_hashes:
        return True

    fp = simhash(body, options.hash_bits)
    return any(hamming_distance(fp, other) <= options.hamming_threshold for other in fingerprints)
