"""Glob-driven snapshot of the watched file set."""

import fnmatch
import glob
import logging
import os
from typing import Iterable, Iterator, List, Optional, Union

from .models import FileStat

logger = logging.getLogger(__name__)


def _is_hidden(name: str) -> bool:
    return name[:1] == "."


def _match_parts(names: List[str], parts: List[str]) -> bool:
    """Match path components against pattern components the way glob does."""
    if not parts:
        return not names

    part, rest = parts[0], parts[1:]
    if part == "**":
        # zero or more non-hidden components
        for consumed in range(len(names) + 1):
            if consumed and _is_hidden(names[consumed - 1]):
                return False
            if _match_parts(names[consumed:], rest):
                return True
        return False

    if not names:
        return False

    name = names[0]
    if glob.has_magic(part):
        if _is_hidden(name) and not _is_hidden(part):
            return False
        if not fnmatch.fnmatch(name, part):
            return False
    elif os.path.normcase(name) != os.path.normcase(part):
        return False
    return _match_parts(names[1:], rest)


def glob_match(path: str, pattern: str) -> bool:
    """
    Check whether glob.glob(pattern, recursive=True) would return a path.

    Wildcards never cross a separator, hidden names only match pattern
    components that start with a dot, and ``**`` spans any number of
    non-hidden directories. Patterns ending in a separator only match
    directories and never match here.

    Args:
        path: Absolute path
        pattern: Absolute glob pattern

    Returns:
        True if the pattern selects the path
    """
    if pattern.endswith(os.sep) or (os.altsep and pattern.endswith(os.altsep)):
        return False
    names = os.path.normpath(path).split(os.sep)
    parts = os.path.normpath(pattern).split(os.sep)
    return _match_parts(names, parts)


def _as_list(patterns: Optional[Union[str, Iterable[str]]]) -> List[str]:
    if patterns is None:
        return []
    if isinstance(patterns, str):
        return [patterns]
    return list(patterns)


class Scan:
    """
    One snapshot of every regular file matching a set of glob patterns.

    The result is the union of all include globs minus the union of all
    ignore globs. It is computed on the first call to ``run`` and
    memoized afterwards.
    """

    def __init__(
        self,
        globs: Union[str, Iterable[str]],
        ignore_globs: Optional[Union[str, Iterable[str]]] = None,
    ):
        """
        Initialize the scan.

        Args:
            globs: Glob pattern or patterns selecting files
            ignore_globs: Glob pattern or patterns excluding files
        """
        self.globs = _as_list(globs)
        self.ignore_globs = _as_list(ignore_globs)
        self._results: Optional[List[FileStat]] = None

    def run(self) -> List[FileStat]:
        """
        Expand the globs and stat every matching regular file.

        Returns:
            List of FileStat objects, one per matching path
        """
        if self._results is None:
            self._results = self._scan()
        return self._results

    @property
    def results(self) -> List[FileStat]:
        return self.run()

    def _expand(self, patterns: List[str]) -> List[str]:
        paths = []
        for pattern in patterns:
            paths.extend(glob.glob(pattern, recursive=True))
        return paths

    def _scan(self) -> List[FileStat]:
        ignored = {os.path.abspath(p) for p in self._expand(self.ignore_globs)}
        seen = set()
        results = []

        for candidate in self._expand(self.globs):
            path = os.path.abspath(candidate)
            if path in seen or path in ignored:
                continue
            seen.add(path)

            file_stat = FileStat.for_path(path)
            if file_stat is not None:
                results.append(file_stat)

        logger.debug(f"Scanned {self.globs} and found {len(results)} items")
        return results

    def matches(self, path: str) -> bool:
        """
        Check a single path against the patterns without touching the disk.

        Follows the same rules as the glob expansion in ``run``.

        Args:
            path: Absolute path to check

        Returns:
            True if an include glob matches and no ignore glob does
        """
        path = os.path.abspath(path)
        if not any(glob_match(path, pattern) for pattern in self.globs):
            return False
        return not any(glob_match(path, pattern) for pattern in self.ignore_globs)

    def __iter__(self) -> Iterator[FileStat]:
        return iter(self.run())

    def __len__(self) -> int:
        return len(self.run())
