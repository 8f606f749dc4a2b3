"""
Virtual module kinds.

Plain records; source generation and resolution for every kind live in
``VirtualModuleRegistry``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class ExternalModule:
    """Shim importing a module that is not part of the build."""

    name: str
    hint: str = ""


@dataclass(frozen=True)
class GlobalModule:
    """Shim exposing an injected global."""

    name: str
    hint: str = ""


@dataclass(frozen=True)
class HotModule:
    """Handshake wrapper binding a source file to its runtime context."""

    ref: str


@dataclass(frozen=True)
class EntryModule:
    """
    Aggregate entry point.

    A single target is re-exported. With several, the first is the boot
    module and its ``boot`` callable receives one loader per remaining
    target.
    """

    hint: str
    targets: Union[str, tuple[str, ...]]
    track: bool = True


@dataclass(frozen=True)
class GlobModule:
    """Files of ``directory`` matching ``pattern``, enumerated at load time."""

    directory: str
    pattern: str


@dataclass(frozen=True)
class AliasModule:
    """Resolves as ``target`` would from ``importer``."""

    target: str
    importer: Optional[str] = None


VirtualModule = Union[
    ExternalModule,
    GlobalModule,
    HotModule,
    EntryModule,
    GlobModule,
    AliasModule,
]
