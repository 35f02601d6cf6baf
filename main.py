"""newsdigest - AI news digest, dedup step runner."""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

from newsdigest.core import save_json, today
from newsdigest.dedup import (
    DedupOptions,
    FingerprintMismatchError,
    backup_index,
    load_dedup_config,
    load_items,
    run_dedup,
)


# ─────────────────────────────────────────────────────────────
# Logging setup
# ─────────────────────────────────────────────────────────────

def setup_logging(verbose: bool = False) -> Path:
    """Configure logging to file and (optionally) console."""
    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)

    log_file = log_dir / f"{today()}.log"
    formatter = logging.Formatter(
        "%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%H:%M:%S"
    )

    # File handler (detailed)
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(formatter)
    handlers: list[logging.Handler] = [file_handler]

    if verbose:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    # Configure root logger
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        handlers=handlers,
        force=True,
    )

    return log_file


# ─────────────────────────────────────────────────────────────
# Output formatting
# ─────────────────────────────────────────────────────────────

def print_header():
    """Print run header."""
    now = datetime.now().strftime("%Y-%m-%d %H:%M")
    print()
    print("=" * 62)
    print("                 newsdigest - Dedup Step                      ")
    print(f"                     {now}                       ")
    print("=" * 62)
    print()


def print_step(step: int, total: int, name: str):
    """Print step header."""
    print(f"[Step {step}/{total}] {name}")


def print_detail(key: str, value, indent: int = 1):
    """Print a detail line."""
    prefix = "|  " * indent
    print(f"{prefix}- {key}: {value}")


def print_table(headers: list[str], rows: list[list], indent: int = 1):
    """Print a simple table."""
    prefix = "|  " * indent
    # Calculate column widths
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(str(cell)))

    header_line = "  ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
    print(f"{prefix}{header_line}")
    print(f"{prefix}{'-' * len(header_line)}")

    for row in rows:
        row_line = "  ".join(str(cell).ljust(widths[i]) for i, cell in enumerate(row))
        print(f"{prefix}{row_line}")


def print_step_end(input_count: int, output_count: int):
    """Print step summary with funnel visualization."""
    dropped = input_count - output_count
    pct = (output_count / input_count * 100) if input_count > 0 else 0
    print(f"|")
    print(f"|  {input_count} -> {output_count} ({pct:.0f}% kept, {dropped} dropped)")
    print("-" * 50)
    print()


# ─────────────────────────────────────────────────────────────
# CLI
# ─────────────────────────────────────────────────────────────

def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="newsdigest - remove duplicate and near-duplicate news items",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                                  # data/filtered/{today}/all.json
  python main.py --input items.json --no-index    # One-off batch, no history
  python main.py --cross-run                      # Also drop items seen in earlier runs
  python main.py --title-threshold 0.85 -v        # Stricter titles, console logging
"""
    )
    parser.add_argument(
        "--input",
        type=str,
        default=None,
        help="Input JSON list of items (default: data/filtered/{date}/all.json)"
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Output JSON path (default: data/deduped/{date}/all.json)"
    )
    parser.add_argument(
        "--date",
        type=str,
        default=None,
        help="Date for default input/output paths (YYYY-MM-DD, default: today)"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Dedup config YAML (default: $DEDUP_CONFIG or config/dedup.yaml)"
    )
    parser.add_argument(
        "--index",
        type=str,
        default=None,
        help="Fingerprint index path (overrides config)"
    )
    parser.add_argument(
        "--no-index",
        action="store_true",
        help="Do not read or write the fingerprint index"
    )
    parser.add_argument(
        "--cross-run",
        action="store_true",
        help="Drop items already recorded in the fingerprint index"
    )
    parser.add_argument(
        "--backup-index",
        action="store_true",
        help="Copy the index to <name>.backup before updating it"
    )
    parser.add_argument("--title-threshold", type=float, default=None)
    parser.add_argument("--content-threshold", type=float, default=None)
    parser.add_argument("--hamming-threshold", type=int, default=None)
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log to console as well (DEBUG level)"
    )
    return parser.parse_args(argv)


def _apply_overrides(config, args):
    """Fold CLI flags into the loaded config."""
    overrides = {
        name: value for name, value in [
            ("title_threshold", args.title_threshold),
            ("content_threshold", args.content_threshold),
            ("hamming_threshold", args.hamming_threshold),
        ]
        if value is not None
    }
    if overrides:
        config.options = DedupOptions(**{**config.options.model_dump(), **overrides})
    if args.index:
        config.index_path = Path(args.index)
    if args.no_index:
        config.index_enabled = False
    return config


def run(argv=None) -> int:
    """Run the dedup step; returns process exit code."""
    load_dotenv()
    args = parse_args(argv)

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)
    logger.info("=" * 60)
    logger.info("newsdigest dedup started")

    print_header()

    date_str = args.date or today()
    input_file = Path(args.input or f"data/filtered/{date_str}/all.json")
    output_file = Path(args.output or f"data/deduped/{date_str}/all.json")

    try:
        config = _apply_overrides(load_dedup_config(args.config), args)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        print(f"Invalid configuration: {e}")
        return 2

    # ─────────────────────────────────────────────────────────
    # Load
    # ─────────────────────────────────────────────────────────
    print_step(1, 2, "Load items")
    if not input_file.exists():
        print_detail("Status", f"FAILED - {input_file} not found")
        logger.error(f"Input not found: {input_file}")
        return 1

    items, invalid = load_items(input_file)
    print_detail("Source", input_file)
    print_detail("Invalid records skipped", invalid)

    tier_counts: dict[int, int] = {}
    for item in items:
        tier_counts[item.tier] = tier_counts.get(item.tier, 0) + 1
    if tier_counts:
        print_table(["Tier", "Count"], [[t, c] for t, c in sorted(tier_counts.items())])
    print_step_end(len(items) + invalid, len(items))

    # ─────────────────────────────────────────────────────────
    # Dedup
    # ─────────────────────────────────────────────────────────
    print_step(2, 2, "Dedup (title / content hash / simhash / similarity)")
    opts = config.options
    print_detail(
        "Thresholds",
        f"title={opts.title_threshold}, content={opts.content_threshold}, hamming={opts.hamming_threshold}",
    )
    print_detail("Index", config.index_path if config.index_enabled else "disabled")

    if config.index_enabled and args.backup_index:
        backup_index(config.index_path)

    try:
        outcome, seen_items = run_dedup(items, config, cross_run=args.cross_run)
    except FingerprintMismatchError as e:
        logger.error(f"Dedup index {config.index_path} uses a different simhash width: {e}")
        print(f"Index fingerprints do not match simhash_bits={config.options.hash_bits}: {e}")
        print(f"Rebuild the index: delete {config.index_path} or rerun without --cross-run")
        return 1
    except OSError as e:
        logger.error(f"Failed to write dedup index {config.index_path}: {e}")
        print(f"Failed to write dedup index: {e}")
        return 1

    stats = outcome.stats
    if args.cross_run:
        print_detail("Previously seen removed", len(seen_items))
    print_detail("In-batch duplicates removed", stats.duplicates_removed)
    print_detail("Deduplication rate", f"{stats.deduplication_rate:.2f}%")
    print_detail("Duration", f"{stats.duration_ms:.0f}ms")

    reasons: dict[str, int] = {}
    for record in outcome.duplicates:
        stage = record.stage.value if record.stage else "-"
        key = f"{stage} / {record.reason.value}"
        reasons[key] = reasons.get(key, 0) + 1
    if reasons:
        print_table(["Stage / Reason", "Count"], [[k, v] for k, v in sorted(reasons.items())])
    print_step_end(len(items), stats.unique_items)

    if not save_json(outcome.model_dump(mode="json"), output_file):
        print(f"Failed to write {output_file}")
        return 1
    print(f"Saved {stats.unique_items} items to {output_file}")
    logger.info(f"Output written: {output_file}")
    return 0


if __name__ == "__main__":
    sys.exit(run())
