"""
Runtime Hooks

Resolution points used by generated virtual-module code. A runtime graph
owns one ``RuntimeHooks`` instance and generated code reaches it as
``__hmr_graph__.hooks``.
"""

from __future__ import annotations

import builtins
import importlib
import importlib.util
import os
import sys
from types import ModuleType
from typing import Any, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)

Hook = Callable[[str, str, Callable[[str, str], Any]], Any]


def missing_module(name: str) -> ModuleType:
    """Placeholder returned for an external module that cannot be imported."""
    module = ModuleType(name)
    module.__missing__ = True
    return module


def default_import(name: str, hint: str) -> Any:
    try:
        return importlib.import_module(name)
    except ModuleNotFoundError:
        logger.warning("External module not found", name=name, hint=hint)
        return missing_module(name)


def default_global(name: str, hint: str) -> Any:
    if name in ("global", "globalThis"):
        return builtins
    if name == "process":
        return sys
    if name == "environ":
        return os.environ
    return None


class RuntimeHooks:
    """
    Pluggable import and global resolution.

    A hook receives ``(name, hint, default)`` and may defer to ``default``.
    """

    def __init__(self, import_hook: Optional[Hook] = None, global_hook: Optional[Hook] = None):
        self.import_hook = import_hook
        self.global_hook = global_hook
        self._targets: dict[str, ModuleType] = {}

    def import_external(self, name: str, hint: str = "") -> Any:
        if self.import_hook is not None:
            return self.import_hook(name, hint, default_import)
        return default_import(name, hint)

    def resolve_global(self, name: str, hint: str = "") -> Any:
        if self.global_hook is not None:
            return self.global_hook(name, hint, default_global)
        return default_global(name, hint)

    def import_target(self, ref: str) -> ModuleType:
        """Import a module by dotted name or by source file path."""
        if not ref.endswith(".py"):
            return importlib.import_module(ref)

        path = os.path.abspath(ref)
        module = self._targets.get(path)
        if module is None:
            name = "hotwire_target_" + str(len(self._targets))
            spec = importlib.util.spec_from_file_location(name, path)
            if spec is None or spec.loader is None:
                raise ImportError(f"Cannot load {path}")
            module = importlib.util.module_from_spec(spec)
            spec.loader.exec_module(module)
            self._targets[path] = module

        return module
