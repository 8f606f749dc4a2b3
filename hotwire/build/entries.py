"""
Entry discovery and classification.

Scans a source tree for entry files, groups them by directory and kind,
and lets per-kind handlers decide what each group becomes.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Callable, Iterable, Mapping, Optional, Union

import structlog

from hotwire.utils.globs import PatternLike, find
from hotwire.virtual.registry import VirtualModuleRegistry

logger = structlog.get_logger(__name__)

ClassifyResult = Union[None, bool, str, list[str], Mapping[str, object]]
ClassifyHandler = Callable[[str, str, list[str]], ClassifyResult]

DEFAULT_PATTERNS = ["**/*-entry.py"]


def _accept(name: str, path: str, extra: list[str]) -> ClassifyResult:
    return path


@dataclass
class DiscoveredEntry:
    """Entry point registered for one classified group."""

    name: str
    id: str
    imports: Union[str, list[str]]
    kind: str = ""
    files: list[str] = field(default_factory=list)


class EntryScanner:
    """
    Turns files matching ``patterns`` into entry virtual modules.

    Files are grouped by ``<parent dir name>/<file stem>``. For each group
    the handlers registered for its kind run in order; a handler returns
    ``False`` to reject the group, ``True`` to use the first file, a path
    or list of paths to use as imports, or ``{"name", "imports"}`` to also
    rename the entry. ``None`` defers to the next handler.
    """

    def __init__(
        self,
        registry: VirtualModuleRegistry,
        source_dir: str | os.PathLike[str] = "src",
        patterns: Optional[Iterable[PatternLike]] = None,
        track: bool = True,
    ):
        self.registry = registry
        self.source_dir = os.path.abspath(source_dir)
        self.patterns = list(patterns or DEFAULT_PATTERNS)
        self.track = track
        self._handlers: dict[str, list[ClassifyHandler]] = {}

    def classify(self, kind: str, handler: Optional[ClassifyHandler] = None) -> "EntryScanner":
        """Register a handler for entry files of ``kind`` (the file stem)."""
        self._handlers.setdefault(kind, []).append(handler or _accept)
        return self

    def _groups(self) -> dict[str, list[str]]:
        groups: dict[str, list[str]] = {}
        for rel in find(self.source_dir, *self.patterns):
            path = os.path.join(self.source_dir, *rel.split("/"))
            kind = os.path.splitext(os.path.basename(path))[0]
            name = os.path.basename(os.path.dirname(path))
            groups.setdefault(f"{name}/{kind}", []).append(path)

        return groups

    def scan(self) -> list[DiscoveredEntry]:
        """Classify every group and register the accepted ones."""
        entries = []
        for key, (path, *extra) in self._groups().items():
            name, kind = key.split("/", 1)
            for handler in self._handlers.get(kind, []):
                result = handler(name, path, extra)
                if result is False:
                    break

                if result is True:
                    result = path

                if isinstance(result, (str, list)):
                    result = {"name": name, "imports": result}

                if result:
                    entry_name = str(result["name"])
                    imports = result["imports"]
                    resolution = self.registry.add_entry(entry_name, imports, self.track)
                    entries.append(
                        DiscoveredEntry(entry_name, resolution.id, imports, kind, [path, *extra])
                    )
                    logger.debug("Entry classified", name=entry_name, kind=kind, id=resolution.id)
                    break

        logger.info("Entries discovered", count=len(entries), source_dir=self.source_dir)
        return entries
