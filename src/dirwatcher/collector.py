"""Turns scans and single-file updates into an ordered event stream."""

import json
import logging
import queue
from typing import IO, Dict, Iterable, List, Optional

from .exceptions import (
    CollectorProtocolError,
    PersistenceError,
    WatcherAlreadyRunningError,
)
from .models import Event, FileStat
from .scan import Scan
from .threaded import Threaded

logger = logging.getLogger(__name__)

STATS_FORMAT_VERSION = 1


class Collector(Threaded):
    """
    Single owner of the watcher's view of the file system.

    Reads Scans and FileStats from the collection queue, compares each
    path against the last known FileStat, applies the stability policy
    and puts the resulting events onto the notification queue.

    The state table and the stable counts are only touched from the
    collector loop, or by maintenance calls while the loop is stopped.
    """

    def __init__(
        self,
        notification_queue: "queue.Queue[Event]",
        collection_queue: "queue.Queue",
        stable: Optional[int] = None,
        sort_by: str = "path",
        order_by: str = "ascending",
        reconcile_removed: bool = True,
    ):
        """
        Initialize the collector.

        Args:
            notification_queue: Queue that receives emitted events
            collection_queue: Queue of Scan and FileStat items to process
            stable: Unchanged observations required for a stable event,
                or None to suppress stable events
            sort_by: FileStat field used to order a scan (path, mtime, size)
            order_by: "ascending" or "descending"
            reconcile_removed: Emit removed events for known paths missing
                from a full scan
        """
        super().__init__("Collector", interval=0.01)
        self.notification_queue = notification_queue
        self.collection_queue = collection_queue
        self.stable_threshold = stable
        self.sort_by = sort_by
        self.order_by = order_by
        self.reconcile_removed = reconcile_removed

        self._stats: Dict[str, FileStat] = {}
        self._stable_counts: Dict[str, int] = {}

    @property
    def stats(self) -> Dict[str, FileStat]:
        """Copy of the path to FileStat table."""
        return dict(self._stats)

    @property
    def stable_counts(self) -> Dict[str, int]:
        """Copy of the stability counters of armed paths."""
        return dict(self._stable_counts)

    def on_scan(self, scan: Scan, emit_events: bool = True) -> None:
        """
        Process every FileStat of a full scan.

        Paths are processed in the configured sort order. Afterwards any
        known path missing from the scan is treated as removed, unless
        removal reconciliation is disabled.

        Args:
            scan: The scan to process
            emit_events: Whether events are emitted for the scanned paths
        """
        logger.debug(f"Sorting by {self.sort_by} {self.order_by}")
        seen_paths = set()
        for file_stat in self._sorted(scan.run()):
            self.on_stat(file_stat, emit_events)
            seen_paths.add(file_stat.path)

        if self.reconcile_removed:
            self._emit_removed_events(seen_paths)

    def on_stat(self, file_stat: FileStat, emit_event: bool = True) -> None:
        """
        Process a single FileStat.

        Args:
            file_stat: The new stat for one path
            emit_event: Whether an event may be emitted for it
        """
        old_stat = self._update_stat(file_stat)
        if emit_event:
            self._emit_event_for(old_stat, file_stat)

    def run(self) -> None:
        """
        Drain the collection queue.

        Raises:
            CollectorProtocolError: If an item is neither a Scan nor a FileStat
        """
        while not self.interrupted():
            try:
                item = self.collection_queue.get_nowait()
            except queue.Empty:
                return

            if isinstance(item, Scan):
                self.on_scan(item)
            elif isinstance(item, FileStat):
                self.on_stat(item)
            else:
                raise CollectorProtocolError(f"Unknown item in the queue: {item!r}")

    def dump_stats(self, fp: IO[str]) -> None:
        """
        Write the state table to a text stream as a JSON document.

        Args:
            fp: Writable text stream
        """
        document = {
            "version": STATS_FORMAT_VERSION,
            "stats": {
                path: {"mtime": s.mtime, "size": s.size}
                for path, s in self._stats.items()
            },
        }
        json.dump(document, fp, indent=2, sort_keys=True)

    def load_stats(self, fp: IO[str]) -> None:
        """
        Replace the state table with one read from a text stream.

        Stable counts are cleared; stability has to be re-armed by a
        real change after a load.

        Args:
            fp: Readable text stream holding a document from dump_stats

        Raises:
            PersistenceError: If the document is malformed
            WatcherAlreadyRunningError: If the collector loop is running
        """
        self._ensure_stopped("load stats")
        try:
            document = json.load(fp)
            raw_stats = document["stats"]
            stats = {
                path: FileStat(path, entry.get("mtime"), entry.get("size"))
                for path, entry in raw_stats.items()
            }
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise PersistenceError(f"Malformed stats document: {e}") from e

        self._stats = stats
        self._stable_counts = {}
        logger.debug(f"Loaded {len(stats)} stats")

    def reset(self) -> None:
        """
        Forget every known path.

        Raises:
            WatcherAlreadyRunningError: If the collector loop is running
        """
        self._ensure_stopped("reset")
        self._stats.clear()
        self._stable_counts.clear()

    def _ensure_stopped(self, operation: str) -> None:
        if self.running:
            raise WatcherAlreadyRunningError(f"Cannot {operation} while the collector is running")

    def _sorted(self, stats: Iterable[FileStat]) -> List[FileStat]:
        descending = self.order_by == "descending"
        if self.sort_by == "path":
            return sorted(stats, key=lambda s: s.path, reverse=descending)

        field_name = self.sort_by
        return sorted(
            stats,
            key=lambda s: (getattr(s, field_name) is None, getattr(s, field_name) or 0, s.path),
            reverse=descending,
        )

    def _update_stat(self, new_stat: FileStat) -> Optional[FileStat]:
        """Store the new stat and return the one it replaces."""
        old_stat = self._stats.pop(new_stat.path, None)
        if not new_stat.removed:
            self._stats[new_stat.path] = new_stat
        return old_stat

    def _emit_removed_events(self, seen_paths: set) -> None:
        for existing_path in [p for p in self._stats if p not in seen_paths]:
            old_stat = self._stats.pop(existing_path)
            self._emit_event_for(old_stat, FileStat.for_removed_path(existing_path))

    def _emit_event_for(self, old_stat: Optional[FileStat], new_stat: FileStat) -> None:
        event = Event.from_stats(old_stat, new_stat)
        if self._should_emit(event):
            logger.debug(f"Emitting {event}")
            self.notification_queue.put(event)

    def _should_emit(self, event: Event) -> bool:
        """
        Apply the stability policy to a derived event.

        Added and modified events arm stability tracking for their path,
        removed events disarm it. A stable event is only emitted once the
        armed path has been seen unchanged ``stable_threshold`` times, and
        emitting it disarms the path again.
        """
        path = event.path

        if event.stable:
            if self.stable_threshold and path in self._stable_counts:
                self._stable_counts[path] += 1
                count = self._stable_counts[path]
                logger.debug(f"stable count for {path}: {count} threshold: {self.stable_threshold}")
                if count >= self.stable_threshold:
                    del self._stable_counts[path]
                    return True
            return False

        if event.removed:
            self._stable_counts.pop(path, None)
        else:
            self._stable_counts[path] = 0
        return True
