#!/usr/bin/env python3
"""
CLI script to backfill trade history.

Each sync pass stores at most sync.max_items trades per group, so
catching up on a long history takes many passes. This script runs
passes back to back until the exchange returns no more trades.

Usage:
    # Catch up every configured group
    python scripts/backfill.py config/config.yaml

    # Catch up and export each group to Parquet
    python scripts/backfill.py config/config.yaml --export

    # Show stored data summary
    python scripts/backfill.py config/config.yaml --summary
"""

import argparse
import logging
import sys
from pathlib import Path

from tqdm import tqdm

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from tradesync.core import create_job, run_until_caught_up
from tradesync.sync import ConfigurationError
from tradesync.utils.config_loader import ConfigLoader

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(),
    ]
)
logger = logging.getLogger(__name__)


def backfill(job, max_passes: int) -> int:
    """
    Run passes until one fetches nothing new.

    Returns:
        Total number of trades stored
    """
    with tqdm(desc="Backfilling trades", unit=" trades", dynamic_ncols=True) as pbar:

        def progress(pass_number, result):
            pbar.update(result.total_stored)
            pbar.set_postfix_str(f"pass {pass_number}")

        return run_until_caught_up(job, max_passes, progress=progress)


def export_groups(job, export_dir: Path, compression: str) -> None:
    """Export every group to <export_dir>/<group>.parquet."""
    for group in job.groups():
        path = export_dir / f"{group.name}.parquet"
        count = job.store.export_parquet(group.name, path, compression=compression)
        logger.info(f"  {group.name}: {count:,} trades -> {path}")


def show_summary(job) -> None:
    """Show summary of every group in the store, declared or not."""
    declared = {group.name: group for group in job.groups()}

    for name in job.store.list_groups():
        state = job.store.get_group_state(name)
        group = declared.get(name)

        logger.info(f"{'='*50}")
        logger.info(f"Summary for {name}" + ("" if group else " (no longer declared)"))
        logger.info(f"{'='*50}")
        if group:
            logger.info(f"  Symbols: {', '.join(group.symbols)}")

        logger.info(f"  Status: {state.status or '-'}")
        logger.info(f"  Trades: {state.record_count:,}")
        logger.info(f"  Distinct pairs: {state.pair_count}")
        if state.last_sync:
            logger.info(f"  Last sync: {state.last_sync.isoformat()}")


def main():
    parser = argparse.ArgumentParser(
        description="Backfill Binance trade history",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "config",
        type=str,
        help="Path to configuration YAML file",
    )

    parser.add_argument(
        "--max-passes",
        type=int,
        default=1000,
        help="Upper bound on passes (default: 1000)",
    )

    parser.add_argument(
        "--export",
        action="store_true",
        help="Export each group to Parquet after backfilling",
    )

    parser.add_argument(
        "--export-dir",
        type=str,
        default=None,
        help="Export directory (default: storage.export_dir)",
    )

    parser.add_argument(
        "--summary",
        action="store_true",
        help="Show summary of stored data and exit",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config = ConfigLoader(args.config).load()

    try:
        job = create_job(config)
        job.groups()
    except ConfigurationError as e:
        logger.error(f"Invalid group declaration: {e}")
        sys.exit(1)

    if args.summary:
        show_summary(job)
        return

    try:
        total = backfill(job, args.max_passes)
        logger.info(f"Backfill complete: {total:,} new trades")
    except KeyboardInterrupt:
        logger.info("Backfill interrupted. Stored trades are kept, rerun to continue.")
        sys.exit(1)

    if args.export:
        export_dir = Path(args.export_dir) if args.export_dir else config.storage.export_dir
        export_groups(job, export_dir, config.storage.compression)


if __name__ == "__main__":
    main()
