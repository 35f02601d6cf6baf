"""Run dedup module standalone - reads from step 2 output."""

import sys
from pathlib import Path

from ..core import save_json, today
from . import load_dedup_config, load_items, md5_fingerprint, quality_score, run_dedup, simhash

RAW_DIR = Path("data/filtered")
DEDUP_DIR = Path("data/deduped")


def main() -> int:
    date = sys.argv[1] if len(sys.argv) > 1 else today()
    input_file = RAW_DIR / date / "all.json"

    if not input_file.exists():
        print(f"No input file: {input_file}")
        return 1

    config = load_dedup_config()
    items, invalid = load_items(input_file)
    print(f"Loaded {len(items)} items ({invalid} invalid)")

    # Show fingerprint examples
    print(f"\nFingerprint examples:")
    for item in items[:5]:
        body = item.body
        print(
            f"  md5={md5_fingerprint(body)[:12] or '-':<12} "
            f"simhash={simhash(body, config.options.hash_bits)[:16]}... "
            f"q={quality_score(item, config.vocabulary):>3} <- {item.title[:40]}"
        )

    outcome, _ = run_dedup(items, config, save=False)
    stats = outcome.stats
    print(f"\nAfter in-batch dedup: {stats.unique_items} items (removed {stats.duplicates_removed})")

    for record in outcome.duplicates[:5]:
        print(f"  [{record.reason.value}] kept {record.kept} / removed {record.removed}")

    output_file = DEDUP_DIR / date / "all.json"
    save_json([item.model_dump(mode="json") for item in outcome.unique_items], output_file)
    print(f"\nSaved deduped to {output_file}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
