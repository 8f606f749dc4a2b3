"""
Glob matching for build-time file selection.
"""

from __future__ import annotations

import fnmatch
import os
from typing import Iterable, Iterator, Union

PatternLike = Union[str, "GlobMatch", Iterable[Union[str, "GlobMatch"]]]


class _Matcher:
    def __init__(self, pattern: str):
        self.negate = pattern.startswith("!")
        self.pattern = pattern[1:] if self.negate else pattern

        # "**/x" also matches "x" at the top level
        self.alternatives = [self.pattern]
        if self.pattern.startswith("**/"):
            self.alternatives.append(self.pattern[3:])

    def matches(self, path: str) -> bool:
        return any(fnmatch.fnmatchcase(path, alt) for alt in self.alternatives)


class GlobMatch:
    """
    Ordered include/exclude glob list.

    Patterns are applied in order; a later match overrides an earlier one
    and a leading ``!`` turns a pattern into an exclusion. Paths are
    relative and use ``/`` separators.

    Example:
        match = GlobMatch("**/*.py", "!**/test_*.py")
        match("pkg/views.py")       # True
        match("pkg/test_views.py")  # False
    """

    def __init__(self, *patterns: PatternLike):
        self._matchers = list(self._expand(patterns))

    @classmethod
    def _expand(cls, patterns: Iterable[PatternLike]) -> Iterator[_Matcher]:
        for pattern in patterns:
            if isinstance(pattern, GlobMatch):
                yield from pattern._matchers
            elif isinstance(pattern, str):
                yield _Matcher(pattern)
            else:
                yield from cls._expand(pattern)

    @property
    def patterns(self) -> list[str]:
        return [("!" if m.negate else "") + m.pattern for m in self._matchers]

    def __call__(self, path: str) -> bool:
        path = path.replace(os.sep, "/")
        result = None
        for matcher in self._matchers:
            if result is None:
                result = matcher.negate
            if matcher.matches(path):
                result = not matcher.negate

        return bool(result)

    def __str__(self) -> str:
        return ", ".join(self.patterns)


def find(directory: str | os.PathLike[str], *patterns: PatternLike) -> list[str]:
    """
    List files below ``directory`` whose relative path matches ``patterns``.

    Returns:
        Sorted relative paths with ``/`` separators
    """
    match = GlobMatch(*patterns)
    results = []
    for folder, _, files in os.walk(directory):
        for name in files:
            rel = os.path.relpath(os.path.join(folder, name), directory).replace(os.sep, "/")
            if match(rel):
                results.append(rel)

    return sorted(results)
