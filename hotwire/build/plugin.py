"""
HMR Build Plugin

Hook set a bundler host drives to produce hot-reloadable output: hot
wrappers for watched sources, chunk naming, content-change hashing and
per-entry manifests.
"""

from __future__ import annotations

import os
import re
import time
from pathlib import Path
from typing import Any, Iterable, Optional

import structlog

from hotwire.build.manifest import build_manifests
from hotwire.build.marker import GenerationMarker
from hotwire.build.naming import chunk_file_name, entry_file_name
from hotwire.hmr import hooks as _hooks_module
from hotwire.hmr import runtime as _runtime_module
from hotwire.utils.globs import GlobMatch, PatternLike
from hotwire.virtual.registry import BuildHost, Resolution, VirtualModuleRegistry

logger = structlog.get_logger(__name__)

# Import name application code uses to obtain its hot module context
HMR_HANDLE = "hotwire.hmr"

_VENDOR = re.compile(r"[\\/](?:site|dist)-packages[\\/]+(.*?)[\\/]")


class HmrBuildPlugin:
    """
    Build hooks for hot module replacement.

    Lifecycle per build: ``build_start`` -> ``resolve_id``/``load``/
    ``transform`` per module -> ``augment_chunk_hash`` per chunk ->
    ``render_start`` -> ``generate_bundle`` -> ``write_bundle``.
    """

    name = "hotwire-hmr"

    def __init__(
        self,
        source_dir: str | os.PathLike[str] = "src",
        registry: Optional[VirtualModuleRegistry] = None,
        patterns: Optional[Iterable[PatternLike]] = None,
    ):
        self.source_dir = os.path.abspath(source_dir)
        self.registry = registry or VirtualModuleRegistry()
        self.filter = GlobMatch(*(patterns or ["**/*"]))
        self.version = 0

        self._mtimes: dict[str, float] = {}
        self._runtime_ids = {
            os.path.abspath(_runtime_module.__file__): "sys-runtime",
            os.path.abspath(_hooks_module.__file__): "sys-hook",
        }

    def ref(self, path: str) -> Optional[str]:
        """Path of a watched source relative to the source directory."""
        path = os.path.abspath(path)
        if not path.startswith(self.source_dir + os.sep):
            return None

        rel = os.path.relpath(path, self.source_dir).replace(os.sep, "/")
        return rel if self.filter(rel) else None

    # === Build hooks ===

    def build_start(self, version: Optional[int] = None) -> int:
        """Stamp the build version and reset per-build state."""
        self.version = version if version is not None else int(time.time() * 1000)
        self.registry.clear(self.version)
        self._mtimes.clear()

        logger.info("HMR build started", version=self.version, source_dir=self.source_dir)
        return self.version

    def resolve_id(
        self,
        source: str,
        importer: Optional[str] = None,
        host: Optional[BuildHost] = None,
    ) -> Optional[Resolution]:
        if self.registry.contains(source):
            return self.registry.resolve(source, host)

        if importer is None or importer.startswith("\0"):
            return None

        ref = self.ref(importer)
        if ref is None:
            return None

        if source != HMR_HANDLE:
            if host is None:
                return None
            result = host.resolve(source, importer, skip_self=True)
            if result is None or result.external or result.id != HMR_HANDLE:
                return None

        return self.registry.add_hot(ref)

    def load(self, module_id: str) -> Optional[str]:
        if self.registry.contains(module_id):
            return self.registry.load(module_id)
        return None

    def transform(self, code: str, module_id: str) -> None:
        """Record the modification time of watched sources."""
        if self.ref(module_id) is None:
            return None

        try:
            self._mtimes[module_id] = os.stat(module_id).st_mtime * 1000
        except OSError:
            self._mtimes[module_id] = 0
        return None

    def augment_chunk_hash(self, module_ids: Iterable[str]) -> Optional[str]:
        """Newest source mtime of a chunk, so edits always change its hash."""
        mtime = max((self._mtimes.get(module_id, 0) for module_id in module_ids), default=0)
        return str(int(mtime)) if mtime > 0 else None

    def manual_chunk(self, module_id: str) -> Optional[str]:
        if module_id.startswith("\0"):
            return None

        name = self._runtime_ids.get(os.path.abspath(module_id))
        if name is not None:
            return name

        match = _VENDOR.search(module_id)
        if match is not None:
            return f"vendor-{match.group(1)}"

        return None

    def chunk_file_name(self, name: str, digest: str) -> str:
        return chunk_file_name(name, digest)

    def entry_file_name(self, name: str, digest: str) -> str:
        return entry_file_name(name, digest)

    def render_start(self, out_dir: str | os.PathLike[str]) -> GenerationMarker:
        """Mark the output as being rewritten."""
        marker = GenerationMarker(Path(out_dir) / "assets")
        marker.begin()
        return marker

    def generate_bundle(self, entries: Iterable[tuple[str, str]]) -> dict[str, str]:
        """
        Produce the manifest assets.

        Args:
            entries: ``(entry name, output file name)`` of every entry chunk

        Returns:
            Manifest source per output path
        """
        return {path: manifest.render() for path, manifest in build_manifests(entries).items()}

    def write_bundle(
        self,
        out_dir: str | os.PathLike[str],
        assets: dict[str, str],
        token: Optional[str] = None,
    ) -> str:
        """Write generated assets and publish a new generation token."""
        out_dir = Path(out_dir)
        for file_name, source in assets.items():
            path = out_dir / file_name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(source, encoding="utf-8")

        return GenerationMarker(out_dir / "assets").commit(token)

    def get_stats(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "watched_sources": len(self._mtimes),
            "registry": self.registry.get_stats(),
        }
