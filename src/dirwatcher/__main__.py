#!/usr/bin/env python3
"""
CLI for watching a directory and printing file events.

Usage:
    python -m dirwatcher ./incoming --glob "*.csv" --interval 5 --stable 3
    python -m dirwatcher ./incoming --persist state.json --pre-load
"""

import argparse
import logging
import signal
import sys
import time
from typing import List, Optional

from .backends import OBSERVERS
from .config import ORDERS, SORT_FIELDS
from .exceptions import ConfigurationError
from .models import Event
from .watcher import DirectoryWatcher

logger = logging.getLogger("dirwatcher")


class GracefulShutdown:
    """Handle graceful shutdown on SIGINT/SIGTERM."""

    def __init__(self):
        self.should_exit = False
        signal.signal(signal.SIGINT, self._handler)
        signal.signal(signal.SIGTERM, self._handler)

    def _handler(self, signum, frame):
        logger.info("Received shutdown signal, stopping...")
        self.should_exit = True


def print_event(event: Event) -> None:
    print(f"{event.type.value}\t{event.path}", flush=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dirwatcher",
        description="Watch a directory and print file events",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Report CSV files once they stop changing for 3 scans
  python -m dirwatcher ./incoming --glob "*.csv" --interval 5 --stable 3

  # Keep state across restarts and skip files that already exist
  python -m dirwatcher ./incoming --persist state.json --pre-load
        """,
    )
    parser.add_argument("directory", nargs="?", default=".", help="Directory to watch")
    parser.add_argument("--glob", nargs="+", default=["*"], help="Glob patterns relative to the directory")
    parser.add_argument("--ignore", nargs="+", default=[], help="Glob patterns to ignore")
    parser.add_argument("--interval", type=float, default=30.0, help="Seconds between scans")
    parser.add_argument("--stable", type=int, default=None, help="Unchanged scans before a stable event")
    parser.add_argument("--pre-load", action="store_true", help="Do not report files that already exist")
    parser.add_argument("--persist", default=None, help="File to save state in between runs")
    parser.add_argument("--scanner", choices=sorted(OBSERVERS), default=None, help="Scanner backend")
    parser.add_argument("--sort-by", choices=SORT_FIELDS, default="path", help="Order of events within a scan")
    parser.add_argument("--order-by", choices=ORDERS, default="ascending", help="Sort direction")
    parser.add_argument("--iterations", type=int, default=None, help="Stop after this many scans")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        watcher = DirectoryWatcher(
            args.directory,
            glob=args.glob,
            ignore_glob=args.ignore,
            interval=args.interval,
            stable=args.stable,
            pre_load=args.pre_load,
            persist=args.persist,
            scanner=args.scanner,
            sort_by=args.sort_by,
            order_by=args.order_by,
        )
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    watcher.add_observer(print_event)
    watcher.maximum_iterations = args.iterations

    shutdown = GracefulShutdown()

    with watcher:
        watcher.start()
        logger.info("Press Ctrl+C to stop")

        while not shutdown.should_exit and watcher.is_running:
            time.sleep(0.5)

    logger.info("Watcher stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
