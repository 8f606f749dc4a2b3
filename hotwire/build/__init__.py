"""
Hotwire Build Hooks

Producer-side pieces: manifests, output naming, the generation marker,
the HMR build plugin and entry discovery.
"""

from hotwire.build.entries import DiscoveredEntry, EntryScanner
from hotwire.build.manifest import Manifest, build_manifests, write_manifest
from hotwire.build.marker import GenerationMarker
from hotwire.build.naming import (
    chunk_file_name,
    entry_file_name,
    manifest_file_name,
)
from hotwire.build.plugin import HMR_HANDLE, HmrBuildPlugin

__all__ = [
    "DiscoveredEntry",
    "EntryScanner",
    "Manifest",
    "build_manifests",
    "write_manifest",
    "GenerationMarker",
    "chunk_file_name",
    "entry_file_name",
    "manifest_file_name",
    "HMR_HANDLE",
    "HmrBuildPlugin",
]
