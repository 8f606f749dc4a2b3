"""
Hotwire Virtual Modules

Synthetic build-time modules keyed by structural identity.
"""

from hotwire.virtual.modules import (
    AliasModule,
    EntryModule,
    ExternalModule,
    GlobalModule,
    GlobModule,
    HotModule,
    VirtualModule,
)
from hotwire.virtual.registry import (
    BuildHost,
    Resolution,
    UnknownVirtualModuleError,
    VirtualModuleError,
    VirtualModuleRegistry,
    canonical_key,
)

__all__ = [
    # Kinds
    "AliasModule",
    "EntryModule",
    "ExternalModule",
    "GlobalModule",
    "GlobModule",
    "HotModule",
    "VirtualModule",
    # Registry
    "BuildHost",
    "Resolution",
    "UnknownVirtualModuleError",
    "VirtualModuleError",
    "VirtualModuleRegistry",
    "canonical_key",
]
