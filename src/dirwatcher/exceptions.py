"""Custom exceptions for the directory watcher package."""


class WatcherError(Exception):
    """Base exception for all watcher errors."""
    pass


class ConfigurationError(WatcherError, ValueError):
    """Watcher configuration was rejected at construction time."""
    pass


class CollectorProtocolError(WatcherError, TypeError):
    """An unknown item arrived on the collection queue."""
    pass


class PersistenceError(WatcherError):
    """Persisted state document is malformed."""
    pass


class WatcherAlreadyRunningError(WatcherError):
    """Watcher is already running."""
    pass


class WatcherNotRunningError(WatcherError):
    """Watcher is not running."""
    pass
