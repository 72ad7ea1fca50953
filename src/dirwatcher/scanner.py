"""Periodic scanner driving a pluggable change source."""

import logging
import queue
from typing import Any, Optional

from .config import WatcherConfig
from .scan import Scan
from .threaded import Threaded

logger = logging.getLogger(__name__)


class ChangeSource:
    """
    Strategy for discovering file changes between periodic scans.

    The scanner always performs a full glob pass every interval. A change
    source may additionally push single FileStat updates through
    ``scanner.submit`` as it learns about them.

    Attributes:
        name: Backend name
        reports_removals: True when the source submits removed FileStats
            itself, so the collector must not infer removals from scans
    """
    name = "base"
    reports_removals = False

    def start(self, scanner: "Scanner") -> None:
        """Begin watching; called on the scanner thread before the first scan."""
        pass

    def stop(self) -> None:
        """Stop watching; called on the scanner thread after the last scan."""
        pass


class PollingSource(ChangeSource):
    """Detects every change by re-scanning the globs each interval."""
    name = "poll"


class Scanner(Threaded):
    """
    Produces a Scan of the watched file set every ``config.interval``
    seconds and puts it on the collection queue.

    While paused, scans are skipped and submitted updates are discarded.
    """

    def __init__(
        self,
        config: WatcherConfig,
        collection_queue: "queue.Queue",
        source: Optional[ChangeSource] = None,
    ):
        """
        Initialize the scanner.

        Args:
            config: Watcher configuration (globs and interval)
            collection_queue: Queue read by the collector
            source: Change source strategy, polling by default
        """
        super().__init__("Scanner", interval=config.interval)
        self.config = config
        self.collection_queue = collection_queue
        self.source = source or PollingSource()

    def new_scan(self) -> Scan:
        return Scan(self.config.globs, self.config.ignore_globs)

    def submit(self, item: Any) -> bool:
        """
        Put a Scan or FileStat on the collection queue.

        Args:
            item: The item to queue

        Returns:
            True if queued, False if discarded because the scanner is paused
        """
        if self.paused:
            logger.debug(f"Not queueing {item}, scanner is paused")
            return False
        self.collection_queue.put(item)
        return True

    def scan_and_queue(self) -> Scan:
        """
        Run one full scan and submit it.

        Returns:
            The scan that was run
        """
        scan = self.new_scan()
        scan.run()
        for file_stat in scan.results:
            logger.debug(f"{file_stat}")
        self.submit(scan)
        return scan

    def run(self) -> None:
        self.scan_and_queue()

    def before_starting(self) -> None:
        logger.info(f"Starting {self.source.name} scanner on {self.config.dir}")
        self.source.start(self)

    def after_stopping(self) -> None:
        self.source.stop()
        logger.info(f"Stopped {self.source.name} scanner on {self.config.dir}")
