"""Fingerprint index persisted between runs.

Layout of data/dedup-index.json:
    {
      "items": {url: {"title", "content_hash", "content_fingerprint", "added_at"}},
      "last_updated": "...",
      "count": N
    }

Reads are forgiving (absent or corrupt file -> empty index); writes replace
the whole file atomically and raise on failure.
"""

from __future__ import annotations

import logging
import shutil
from datetime import datetime, timedelta
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from ..core import ensure_aware, load_json, save_json, utcnow
from ..models import NewsItem
from .fingerprint import DEFAULT_HASH_BITS, md5_fingerprint, simhash

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".backup"


class IndexEntry(BaseModel):
    """Fingerprints of one item that survived dedup."""
    title: str = ""
    content_hash: str = ""
    content_fingerprint: str = ""
    added_at: datetime


class FingerprintIndex(BaseModel):
    """url -> IndexEntry mapping plus bookkeeping."""
    items: dict[str, IndexEntry] = Field(default_factory=dict)
    last_updated: datetime | None = None
    count: int = 0


def load_index(path: str | Path) -> FingerprintIndex:
    """Load index; missing or unreadable file yields an empty index."""
    path = Path(path)
    if not path.exists():
        logger.info(f"Dedup index not found, starting fresh: {path}")
        return FingerprintIndex()

    data = load_json(path, default=None)
    if data is None:
        return FingerprintIndex()

    try:
        index = FingerprintIndex.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Corrupt dedup index {path}, starting fresh: {e.error_count()} errors")
        return FingerprintIndex()

    logger.info(f"Loaded dedup index: {len(index.items)} entries from {path}")
    return index


def make_entry(
    item: NewsItem,
    hash_bits: int = DEFAULT_HASH_BITS,
    now: datetime | None = None,
) -> IndexEntry:
    """Fingerprint one item's body (content, else description)."""
    body = item.body
    return IndexEntry(
        title=item.title,
        content_hash=md5_fingerprint(body),
        content_fingerprint=simhash(body, hash_bits),
        added_at=now or utcnow(),
    )


def update_index(
    index: FingerprintIndex,
    items: list[NewsItem],
    hash_bits: int = DEFAULT_HASH_BITS,
    now: datetime | None = None,
) -> FingerprintIndex:
    """
    Record the unique items of a run.

    Items without a url cannot be keyed and are skipped.

    Returns:
        The same index, updated in place
    """
    now = now or utcnow()
    skipped = 0
    for item in items:
        if not item.url:
            skipped += 1
            continue
        index.items[item.url] = make_entry(item, hash_bits, now)

    if skipped:
        logger.warning(f"Skipped {skipped} items without url when updating dedup index")

    index.last_updated = now
    index.count = len(index.items)
    return index


def cleanup_index(
    index: FingerprintIndex,
    max_age_days: int = 7,
    now: datetime | None = None,
) -> FingerprintIndex:
    """Remove entries older than max_age_days."""
    cutoff = ensure_aware(now or utcnow()) - timedelta(days=max_age_days)
    before = len(index.items)
    index.items = {
        url: entry for url, entry in index.items.items()
        if ensure_aware(entry.added_at) > cutoff
    }
    index.count = len(index.items)

    removed = before - index.count
    if removed:
        logger.info(f"Removed {removed} expired dedup index entries (> {max_age_days} days)")
    return index


def save_index(index: FingerprintIndex, path: str | Path) -> None:
    """
    Persist index atomically.

    Raises:
        OSError: index could not be written
    """
    path = Path(path)
    save_json(index.model_dump(mode="json"), path, atomic=True, strict=True)
    logger.info(f"Dedup index saved: {index.count} entries -> {path}")


def backup_index(path: str | Path) -> Path | None:
    """Copy index to <name>.backup; returns backup path, None if no index."""
    path = Path(path)
    if not path.exists():
        return None
    backup = path.with_name(path.name + BACKUP_SUFFIX)
    shutil.copy2(path, backup)
    logger.info(f"Dedup index backed up: {backup}")
    return backup
