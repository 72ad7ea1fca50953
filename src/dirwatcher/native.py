"""Kernel file-change notification source using the watchdog library."""

import logging
import os
from typing import Callable, Optional, Type

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .models import FileStat
from .scan import Scan
from .scanner import ChangeSource, Scanner

logger = logging.getLogger(__name__)


class FSEventHandler(FileSystemEventHandler):
    """Handler that converts watchdog events to FileStat updates."""

    def __init__(self, callback: Callable[[FileStat], object], scan: Scan):
        """
        Initialize the handler.

        Args:
            callback: Called with each FileStat update
            scan: Scan whose patterns decide which paths are reported
        """
        super().__init__()
        self.callback = callback
        self.scan = scan

    def _path(self, raw_path) -> str:
        return os.path.abspath(os.fsdecode(raw_path))

    def _emit_stat(self, path: str) -> None:
        if not self.scan.matches(path):
            return
        file_stat = FileStat.for_path(path)
        if file_stat is not None:
            self.callback(file_stat)

    def _emit_removed(self, path: str) -> None:
        if self.scan.matches(path):
            self.callback(FileStat.for_removed_path(path))

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._emit_stat(self._path(event.src_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._emit_stat(self._path(event.src_path))

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._emit_removed(self._path(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._emit_removed(self._path(event.src_path))
        self._emit_stat(self._path(event.dest_path))


class NativeSource(ChangeSource):
    """
    Reports single-file changes as the operating system notifies them.

    A watchdog observer is scheduled recursively on the watched
    directory. Removals are reported directly, so the collector does not
    reconcile them from the periodic full scans.
    """
    reports_removals = True

    def __init__(self, observer_class: Optional[Type] = None, name: str = "native"):
        """
        Initialize the source.

        Args:
            observer_class: watchdog observer class, the platform default
                when omitted
            name: Backend name used in logs
        """
        self.observer_class = observer_class or Observer
        self.name = name
        self._observer = None

    def start(self, scanner: Scanner) -> None:
        if self._observer is not None:
            return

        handler = FSEventHandler(scanner.submit, scanner.new_scan())
        observer = self.observer_class()
        observer.schedule(handler, str(scanner.config.dir), recursive=True)
        observer.start()
        self._observer = observer
        logger.debug(f"Watching {scanner.config.dir} with {self.observer_class.__name__}")

    def stop(self) -> None:
        if self._observer is None:
            return

        observer, self._observer = self._observer, None
        observer.stop()
        observer.join(timeout=5.0)
