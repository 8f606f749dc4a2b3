"""
Hotwire HMR Runtime

Module lifecycle contexts, the versioned runtime graph and chunk loading.
"""

from hotwire.hmr.context import (
    HotModuleContext,
    ModuleState,
    PendingUpdate,
    defer,
)
from hotwire.hmr.hooks import RuntimeHooks
from hotwire.hmr.loader import ChunkLoader
from hotwire.hmr.runtime import GraphEntry, RuntimeGraph, manifest_url

__all__ = [
    "HotModuleContext",
    "ModuleState",
    "PendingUpdate",
    "defer",
    "RuntimeHooks",
    "ChunkLoader",
    "GraphEntry",
    "RuntimeGraph",
    "manifest_url",
]
