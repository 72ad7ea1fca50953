"""Data models for the directory watcher package."""

import logging
import os
import stat as stat_module
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Types of directory watcher events."""
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"
    STABLE = "stable"


@dataclass(frozen=True)
class FileStat:
    """
    Snapshot of a single file at one point in time.

    Equality only considers ``mtime`` and ``size``; the path is the key
    the snapshot is stored under, so two snapshots of the same path
    compare equal when the file has not changed.

    Attributes:
        path: Absolute path of the file
        mtime: Last modification time (None for the removed sentinel)
        size: Size in bytes (None for the removed sentinel)
    """
    path: str = field(compare=False)
    mtime: Optional[float]
    size: Optional[int]

    @property
    def removed(self) -> bool:
        """True when this is the sentinel for a path that no longer exists."""
        return self.mtime is None and self.size is None

    @classmethod
    def for_removed_path(cls, path: str) -> "FileStat":
        """Create the removed sentinel for a path."""
        return cls(path, None, None)

    @classmethod
    def for_path(cls, path: str) -> Optional["FileStat"]:
        """
        Stat a path on disk.

        Args:
            path: Path to the file

        Returns:
            FileStat for a regular file, or None if the path is not a
            regular file or cannot be stat'ed
        """
        try:
            st = os.stat(path)
        except FileNotFoundError:
            logger.debug(f"File vanished before stat: {path}")
            return None
        except OSError as e:
            logger.warning(f"Unable to stat {path}: {e}")
            return None

        if not stat_module.S_ISREG(st.st_mode):
            return None
        return cls(os.path.abspath(path), st.st_mtime, st.st_size)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "path": self.path,
            "mtime": self.mtime,
            "size": self.size,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FileStat":
        """Create from dictionary."""
        return cls(
            path=data["path"],
            mtime=data.get("mtime"),
            size=data.get("size"),
        )

    def __str__(self) -> str:
        if self.removed:
            return f"<FileStat path: '{self.path}' removed>"
        return f"<FileStat path: '{self.path}' mtime: {self.mtime} size: {self.size}>"


@dataclass(frozen=True)
class Event:
    """
    A classified change for one path.

    Two events are equal when their type and path match; the attached
    stat is informational only.

    Attributes:
        type: The kind of change
        path: Absolute path of the affected file
        stat: The new FileStat (None for REMOVED events)
    """
    type: EventType
    path: str
    stat: Optional[FileStat] = field(default=None, compare=False)

    @classmethod
    def from_stats(cls, old: Optional[FileStat], new: FileStat) -> "Event":
        """
        Derive the event for a path from its previous and current stat.

        Args:
            old: The last known stat, or None if the path was never seen
            new: The current stat, possibly the removed sentinel

        Returns:
            ADDED, MODIFIED or REMOVED if the stats differ, STABLE otherwise
        """
        if old != new:
            if new.removed:
                return cls(EventType.REMOVED, new.path)
            if old is None:
                return cls(EventType.ADDED, new.path, new)
            return cls(EventType.MODIFIED, new.path, new)
        return cls(EventType.STABLE, new.path, new)

    @property
    def added(self) -> bool:
        return self.type == EventType.ADDED

    @property
    def modified(self) -> bool:
        return self.type == EventType.MODIFIED

    @property
    def removed(self) -> bool:
        return self.type == EventType.REMOVED

    @property
    def stable(self) -> bool:
        return self.type == EventType.STABLE

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "type": self.type.value,
            "path": self.path,
            "stat": self.stat.to_dict() if self.stat else None,
        }

    def __str__(self) -> str:
        return f"<Event type: {self.type.value} path: '{self.path}'>"
