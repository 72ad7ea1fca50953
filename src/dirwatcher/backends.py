"""Registry of scanner backends and their availability."""

import importlib
import logging
from typing import Callable, Dict, Optional, Tuple

from .scanner import ChangeSource, PollingSource

logger = logging.getLogger(__name__)

DEFAULT_BACKEND = "poll"

# backend name -> (module, observer class); None means no observer needed
OBSERVERS: Dict[str, Optional[Tuple[str, str]]] = {
    "poll": None,
    "native": ("watchdog.observers", "Observer"),
    "inotify": ("watchdog.observers.inotify", "InotifyObserver"),
    "fsevents": ("watchdog.observers.fsevents", "FSEventsObserver"),
    "kqueue": ("watchdog.observers.kqueue", "KqueueObserver"),
    "windows": ("watchdog.observers.read_directory_changes", "WindowsApiObserver"),
    "polling-observer": ("watchdog.observers.polling", "PollingObserver"),
}


def _load_observer(name: str):
    module_name, class_name = OBSERVERS[name]
    module = importlib.import_module(module_name)
    return getattr(module, class_name)


def _native_factory(name: str) -> Callable[[], ChangeSource]:
    def factory() -> ChangeSource:
        from .native import NativeSource
        return NativeSource(_load_observer(name), name=name)
    return factory


BACKENDS: Dict[str, Callable[[], ChangeSource]] = {
    name: (PollingSource if target is None else _native_factory(name))
    for name, target in OBSERVERS.items()
}


def is_available(name: str) -> bool:
    """
    Check whether a backend can be used on this platform.

    Args:
        name: Backend name

    Returns:
        True if the backend is known and its observer can be imported
    """
    if name not in OBSERVERS:
        return False
    if OBSERVERS[name] is None:
        return True
    try:
        _load_observer(name)
        return True
    except Exception as e:
        logger.debug(f"Scanner backend '{name}' unavailable: {e}")
        return False


def available_backends() -> Dict[str, bool]:
    """Return backend name to availability for every known backend."""
    return {name: is_available(name) for name in OBSERVERS}


def create_source(name: Optional[str] = None) -> ChangeSource:
    """
    Create the change source for a backend.

    Unknown or unavailable backends fall back to polling.

    Args:
        name: Backend name, None for the default

    Returns:
        A new ChangeSource
    """
    name = name or DEFAULT_BACKEND
    if not is_available(name):
        logger.warning(f"Scanner backend '{name}' is not available, falling back to '{DEFAULT_BACKEND}'")
        name = DEFAULT_BACKEND
    return BACKENDS[name]()
