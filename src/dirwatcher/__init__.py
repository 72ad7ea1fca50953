"""
Directory Watcher Package

Watches a directory tree and notifies observers when files matching a set
of glob patterns are added, modified, removed, or have been unchanged for
a configured number of scans (stable).

Features:
- Glob and ignore-glob file selection
- File change events: ADDED, MODIFIED, REMOVED, STABLE
- Configurable event ordering within a scan (path, mtime, size)
- Duplicate collapsing and per-observer failure isolation
- Polling or kernel notification (watchdog) scanner backends
- Optional persisted state across restarts
"""

from .models import (
    EventType,
    Event,
    FileStat,
)

from .scan import Scan
from .config import WatcherConfig, SORT_FIELDS, ORDERS

from .exceptions import (
    WatcherError,
    ConfigurationError,
    CollectorProtocolError,
    PersistenceError,
    WatcherAlreadyRunningError,
    WatcherNotRunningError,
)

from .threaded import Threaded
from .collector import Collector
from .notifier import Notifier
from .scanner import Scanner, ChangeSource, PollingSource
from .native import NativeSource, FSEventHandler
from .backends import available_backends, create_source
from .watcher import DirectoryWatcher


__all__ = [
    # Models
    "EventType",
    "Event",
    "FileStat",
    "Scan",
    # Config
    "WatcherConfig",
    "SORT_FIELDS",
    "ORDERS",
    # Exceptions
    "WatcherError",
    "ConfigurationError",
    "CollectorProtocolError",
    "PersistenceError",
    "WatcherAlreadyRunningError",
    "WatcherNotRunningError",
    # Components
    "Threaded",
    "Collector",
    "Notifier",
    "Scanner",
    "ChangeSource",
    "PollingSource",
    "NativeSource",
    "FSEventHandler",
    "available_backends",
    "create_source",
    # Main entry point
    "DirectoryWatcher",
]

__version__ = "0.1.0"
