#!/usr/bin/env python3
"""
Trade History Sync - Main Entry Point.

Usage:
    python -m tradesync.main config/config.yaml
    python -m tradesync.main config/config.yaml --once
    python -m tradesync.main config/config.yaml --dry-run

Environment:
    TRADESYNC_API_KEY: Binance API key (required)
    TRADESYNC_API_SECRET: Binance API secret (required)
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from config.settings import AppConfig
from tradesync.utils.config_loader import ConfigLoader
from tradesync.core import create_job, run_once, run_periodic
from tradesync.sync import ConfigurationError, load_groups


def setup_logging(level: str, log_file: Optional[str] = None) -> None:
    """
    Configure logging for the service.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional file path for logging
    """
    console_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    file_format = (
        "%(asctime)s [%(levelname)s] %(name)s "
        "(%(filename)s:%(lineno)d): %(message)s"
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
    console_handler.setFormatter(logging.Formatter(console_format))
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(logging.DEBUG)  # Log everything to file
        file_handler.setFormatter(logging.Formatter(file_format))
        root_logger.addHandler(file_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Incremental Binance trade history sync",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run on the configured schedule
  python -m tradesync.main config/config.yaml

  # Run one pass and exit
  python -m tradesync.main config/config.yaml --once

  # Validate configuration without syncing
  python -m tradesync.main config/config.yaml --dry-run
        """,
    )

    parser.add_argument(
        "config",
        type=str,
        help="Path to configuration YAML file",
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single sync pass and exit",
    )

    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between passes (overrides sync.sync_interval)",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate configuration and group declarations, then exit",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: from config, else INFO)",
    )

    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Log file path (default: from config)",
    )

    return parser.parse_args(argv)


def print_config_summary(config: AppConfig) -> None:
    """Print configuration summary."""
    print("\nConfiguration:")
    print(f"  Endpoint: {config.binance.rest_base_url}{config.binance.trades_endpoint}")
    print(f"  Database: {config.storage.db_path}")
    print(f"  Max items per group: {config.sync.max_items}")
    print(f"  Request delay: {config.sync.request_delay}s")
    print(f"  Interval: {config.sync.sync_interval}s")
    print(f"  Groups: {', '.join(str(g.get('name')) for g in config.groups) or '-'}")
    print()


async def main(args: argparse.Namespace, config: AppConfig) -> int:
    """
    Main async entry point.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    logger = logging.getLogger(__name__)

    try:
        job = create_job(config)
        # Fail fast on bad declarations before anything is scheduled
        job.groups()
    except ConfigurationError as e:
        logger.error(f"Invalid group declaration: {e}")
        return 1
    except ValueError as e:
        logger.error(str(e))
        return 1

    if args.once:
        result = await run_once(job)
        if result.skipped:
            logger.warning("Pass skipped, another sync holds the lock")
            return 2
        return 1 if result.failed_groups else 0

    shutdown_event = asyncio.Event()

    def request_shutdown(sig: int) -> None:
        logger.info(f"Received signal {sig}, shutting down after the current pass...")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, request_shutdown, sig)

    logger.info("Sync service running. Press Ctrl+C to stop.")
    await run_periodic(job, shutdown_event, interval=args.interval)

    logger.info("Sync service stopped normally")
    return 0


def run(argv=None) -> None:
    """Synchronous entry point."""
    args = parse_args(argv)

    try:
        config = ConfigLoader(args.config).load()
    except Exception as e:
        print(f"Error loading config: {e}")
        sys.exit(1)

    setup_logging(
        args.log_level or config.logging.level,
        args.log_file or config.logging.file_path,
    )
    logger = logging.getLogger(__name__)
    logger.info("Starting trade history sync")
    logger.info(f"Config: {args.config}")

    print_config_summary(config)

    errors = config.validate()
    if errors:
        print("Configuration errors:")
        for error in errors:
            print(f"  - {error}")
        sys.exit(1)

    if args.dry_run:
        try:
            groups = load_groups(config.groups, config.sync.default_ticker)
        except ConfigurationError as e:
            print(f"Invalid group declaration: {e}")
            sys.exit(1)
        for group in groups:
            print(f"  {group.name}: {', '.join(group.symbols)}")
        print("Dry run complete - configuration is valid")
        sys.exit(0)

    try:
        exit_code = asyncio.run(main(args, config))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        exit_code = 0

    logger.info(f"Exiting with code {exit_code}")
    sys.exit(exit_code)


if __name__ == "__main__":
    run()
