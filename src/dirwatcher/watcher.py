"""Top-level directory watcher orchestrator."""

import dataclasses
import logging
import queue
import threading
from pathlib import Path
from typing import Any, Optional, Union

from .backends import create_source
from .collector import Collector
from .config import WatcherConfig
from .exceptions import (
    CollectorProtocolError,
    PersistenceError,
    WatcherAlreadyRunningError,
    WatcherNotRunningError,
)
from .notifier import Notifier
from .scanner import Scanner

logger = logging.getLogger(__name__)


class DirectoryWatcher:
    """
    Watches a directory and notifies observers of file changes.

    Wires the three worker loops together:

        Scanner --collection queue--> Collector --notification queue--> Notifier

    and owns their lifecycle and the optional persisted state.

    Example:
        watcher = DirectoryWatcher("/data/incoming", glob="*.csv", stable=2)
        watcher.add_observer(lambda event: print(event))
        watcher.start()
    """

    def __init__(
        self,
        directory: Union[str, Path, None] = None,
        config: Optional[WatcherConfig] = None,
        **options: Any,
    ):
        """
        Initialize the watcher.

        Args:
            directory: Directory to watch (overrides config.dir)
            config: Watcher configuration
            **options: WatcherConfig fields, used when no config is given

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        if config is None:
            if directory is not None:
                options["dir"] = directory
            config = WatcherConfig(**options)
        elif directory is not None:
            config = dataclasses.replace(config, dir=directory)
        self.config = config

        self._collection_queue: "queue.Queue" = queue.Queue()
        self._notification_queue: "queue.Queue" = queue.Queue()

        source = create_source(config.scanner)
        self._scanner = Scanner(config, self._collection_queue, source)
        self._collector = Collector(
            self._notification_queue,
            self._collection_queue,
            stable=config.stable,
            sort_by=config.sort_by,
            order_by=config.order_by,
            reconcile_removed=not source.reports_removals,
        )
        self._notifier = Notifier(self._notification_queue)

        self._lock = threading.Lock()
        self._running = False

        if config.pre_load:
            self._collector.on_scan(self._scanner.new_scan(), emit_events=False)

    def add_observer(self, observer: Any, func: str = "update") -> Any:
        """
        Register an observer called with every event.

        Args:
            observer: Object with a ``func`` method, or a plain callable
            func: Name of the method to call

        Returns:
            The observer
        """
        return self._notifier.add_observer(observer, func)

    def delete_observer(self, observer: Any) -> None:
        self._notifier.delete_observer(observer)

    def delete_observers(self) -> None:
        self._notifier.delete_observers()

    def count_observers(self) -> int:
        return self._notifier.count_observers()

    @property
    def is_running(self) -> bool:
        """Check if the watcher is started and all three loops are alive."""
        return (
            self._running
            and self._scanner.running
            and self._collector.running
            and self._notifier.running
        )

    @property
    def paused(self) -> bool:
        return self._scanner.paused

    @property
    def maximum_iterations(self) -> Optional[int]:
        return self._scanner.maximum_iterations

    @maximum_iterations.setter
    def maximum_iterations(self, value: Optional[int]) -> None:
        self._scanner.maximum_iterations = value

    @property
    def finished_iterations(self) -> bool:
        return self._scanner.finished_iterations

    @property
    def stats(self) -> dict:
        """Copy of the collector's path to FileStat table."""
        return self._collector.stats

    def start(self) -> "DirectoryWatcher":
        """
        Start watching in the background.

        Loads persisted state first, then starts the notifier, collector
        and scanner loops.

        Raises:
            WatcherAlreadyRunningError: If already running
        """
        if self._running and not self.is_running:
            # a loop exited on its own, e.g. after maximum_iterations
            self.stop()

        with self._lock:
            if self._running:
                raise WatcherAlreadyRunningError("Watcher is already running")
            self._running = True

        self._load_stats()
        self._notifier.start()
        self._collector.start()
        self._scanner.start()
        logger.info(f"Watching {self.config.dir} every {self.config.interval}s")
        return self

    def stop(self) -> "DirectoryWatcher":
        """
        Stop all loops and persist the state.

        Each loop finishes its current unit of work first. Whatever is
        still queued is then collected and delivered on the calling thread,
        so the saved state never covers an undelivered event. Calling stop
        on a stopped watcher does nothing.
        """
        with self._lock:
            if not self._running:
                return self
            self._running = False

        self._stop_loops()
        self._drain()
        self._save_stats()
        logger.info(f"Stopped watching {self.config.dir}")
        return self

    def _stop_loops(self) -> None:
        self._scanner.stop()
        self._collector.stop()
        self._notifier.stop()

    def _drain(self) -> None:
        try:
            self._collector.run()
        except CollectorProtocolError as e:
            logger.error(f"Discarding collection queue: {e}")
            _clear_queue(self._collection_queue)
        self._notifier.run()

    def pause(self) -> None:
        """Discard changes until resumed; queued events still drain."""
        self._scanner.pause()

    def resume(self) -> None:
        self._scanner.resume()

    def join(self, timeout: Optional[float] = None) -> None:
        """
        Wait for the scanner loop to exit.

        Args:
            timeout: Maximum seconds to wait

        Raises:
            WatcherNotRunningError: If the watcher was not started
        """
        if not self._running:
            raise WatcherNotRunningError("Watcher is not running")
        self._scanner.join(timeout)

    def reset(self, pre_load: bool = False) -> None:
        """
        Forget every known file.

        Pending queue items are discarded. When ``pre_load`` is set the
        state is re-seeded from a fresh scan without emitting events.

        Args:
            pre_load: Re-seed the state from the current files
        """
        with self._lock:
            was_running = self._running
            self._running = False

        if was_running:
            self._stop_loops()

        _clear_queue(self._collection_queue)
        _clear_queue(self._notification_queue)
        self._collector.reset()
        if pre_load:
            self._collector.on_scan(self._scanner.new_scan(), emit_events=False)
        self._save_stats()

        if was_running:
            self.start()

    def run_once(self) -> None:
        """
        Run one scan, collect and notify cycle on the calling thread.

        Raises:
            WatcherAlreadyRunningError: If the background loops are running
        """
        if self._scanner.running or self._collector.running or self._notifier.running:
            raise WatcherAlreadyRunningError("run_once requires a stopped watcher")

        self._scanner.scan_and_queue()
        self._collector.run()
        self._notifier.run()

    def _load_stats(self) -> None:
        """Load persisted state, continuing without it on failure."""
        persist = self.config.persist
        if persist is None:
            return

        path = Path(persist)
        if not path.exists():
            logger.debug(f"No persisted state at {path}")
            return

        try:
            with open(path, "r", encoding="utf-8") as fp:
                self._collector.load_stats(fp)
            logger.info(f"Loaded state from {path}")
        except (OSError, PersistenceError) as e:
            logger.warning(f"Unable to load state from {path}: {e}")

    def _save_stats(self) -> None:
        """Persist the state, logging a warning on failure."""
        persist = self.config.persist
        if persist is None:
            return

        path = Path(persist)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as fp:
                self._collector.dump_stats(fp)
            logger.info(f"Saved state to {path}")
        except OSError as e:
            logger.warning(f"Unable to save state to {path}: {e}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False


def _clear_queue(q: "queue.Queue") -> int:
    count = 0
    while True:
        try:
            q.get_nowait()
        except queue.Empty:
            return count
        count += 1
