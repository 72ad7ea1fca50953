"""Configuration for the directory watcher package."""

import glob as glob_module
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from .exceptions import ConfigurationError

SORT_FIELDS = ("path", "mtime", "size")
ORDERS = ("ascending", "descending")


@dataclass
class WatcherConfig:
    """
    Configuration options for the directory watcher.

    Values are validated when the config is created so that a
    misconfigured watcher fails before any thread is started.

    Attributes:
        dir: Directory to watch; created if it does not exist
        glob: Glob pattern or patterns, relative to ``dir``
        ignore_glob: Glob pattern or patterns to exclude, relative to ``dir``
        interval: Seconds between scans
        stable: Number of unchanged observations before a stable event,
            or None to disable stable events
        pre_load: Seed the state from an initial scan without emitting events
        persist: File used to save state on stop and load it on start
        scanner: Name of the scanner backend (None selects polling)
        sort_by: Field used to order events within one scan
        order_by: Direction of the ordering
    """
    dir: Union[str, Path] = "."
    glob: Union[str, List[str]] = "*"
    ignore_glob: Union[str, List[str]] = field(default_factory=list)
    interval: float = 30.0
    stable: Optional[int] = None
    pre_load: bool = False
    persist: Optional[Union[str, Path]] = None
    scanner: Optional[str] = None
    sort_by: str = "path"
    order_by: str = "ascending"

    def __post_init__(self):
        self.dir = Path(self.dir).resolve()
        if self.dir.exists():
            if not self.dir.is_dir():
                raise ConfigurationError(f"'{self.dir}' is not a directory")
        else:
            self.dir.mkdir(parents=True)

        self.globs = self._join_patterns(self.glob)
        self.ignore_globs = self._join_patterns(self.ignore_glob)

        try:
            self.interval = float(self.interval)
        except (TypeError, ValueError):
            raise ConfigurationError(f"interval must be a number: {self.interval!r}")
        if self.interval <= 0:
            raise ConfigurationError("interval must be greater than zero")

        if self.stable is not None:
            try:
                self.stable = int(self.stable)
            except (TypeError, ValueError):
                raise ConfigurationError(f"stable must be an integer: {self.stable!r}")
            if self.stable <= 0:
                raise ConfigurationError("stable must be greater than zero")

        if self.persist is not None:
            self.persist = Path(self.persist)

        self.sort_by = str(self.sort_by)
        if self.sort_by not in SORT_FIELDS:
            raise ConfigurationError(
                f"sort_by must be one of {', '.join(SORT_FIELDS)}: {self.sort_by!r}"
            )
        self.order_by = str(self.order_by)
        if self.order_by not in ORDERS:
            raise ConfigurationError(
                f"order_by must be one of {', '.join(ORDERS)}: {self.order_by!r}"
            )

    def _join_patterns(self, patterns: Union[str, List[str]]) -> List[str]:
        """
        Anchor glob patterns at the watched directory.

        Args:
            patterns: A pattern or a (possibly nested) list of patterns

        Returns:
            Absolute patterns in their original order, without duplicates
        """
        if isinstance(patterns, str):
            patterns = [patterns]
        elif isinstance(patterns, (list, tuple)):
            patterns = list(_flatten(patterns))
        else:
            raise ConfigurationError(
                "expecting a glob pattern or a list of glob patterns"
            )

        base = glob_module.escape(str(self.dir))
        joined = []
        for pattern in patterns:
            if not isinstance(pattern, str):
                raise ConfigurationError(f"glob pattern must be a string: {pattern!r}")
            full = os.path.join(base, pattern)
            if full not in joined:
                joined.append(full)
        return joined

    @property
    def descending(self) -> bool:
        return self.order_by == "descending"


def _flatten(items):
    for item in items:
        if isinstance(item, (list, tuple)):
            yield from _flatten(item)
        else:
            yield item
