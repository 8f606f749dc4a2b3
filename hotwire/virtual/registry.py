"""
Virtual Module Registry

Build-time namespace that mints synthetic modules exactly once per
structural identity and generates their source on demand.
"""

from __future__ import annotations

import itertools
import json
import os
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Protocol, Union

import structlog

from hotwire.utils.globs import find
from hotwire.virtual.modules import (
    AliasModule,
    EntryModule,
    ExternalModule,
    GlobalModule,
    GlobModule,
    HotModule,
    VirtualModule,
)

logger = structlog.get_logger(__name__)

# Shared by every registry so ids never collide across namespaces
_ids = itertools.count()

SYNTHETIC_EXPORTS = "__exports"


class VirtualModuleError(Exception):
    """Base error for virtual module handling. Aborts the build."""


class UnknownVirtualModuleError(VirtualModuleError):
    """Raised when an id (or a routed target) cannot be resolved."""

    def __init__(self, module_id: str, importer: Optional[str] = None):
        self.module_id = module_id
        self.importer = importer
        message = f"Could not resolve: {module_id!r}"
        if importer is not None:
            message += f", importer = {importer!r}"
        super().__init__(message)


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving an import to a module id."""

    id: str
    synthetic_named_exports: Optional[str] = None
    external: bool = False


class BuildHost(Protocol):
    """Resolution hook offered by the bundler driving the build."""

    def resolve(
        self,
        source: str,
        importer: Optional[str] = None,
        skip_self: bool = True,
    ) -> Optional[Resolution]:
        ...


def canonical_key(key: Any) -> str:
    """
    Serialize a structural key so that equal values compare equal.

    Raises:
        TypeError: If the key holds a value JSON cannot represent
    """
    if not isinstance(key, (list, tuple)):
        key = [key]
    return json.dumps(key, sort_keys=True, separators=(",", ":"))


def _expand(*values: Any) -> str:
    return ", ".join(repr(value) for value in values)


class VirtualModuleRegistry:
    """
    Registry of synthetic modules for one build.

    Ids look like ``"\\0ns<registry>?<n>"``; the NUL prefix keeps them from
    ever colliding with a file path.

    Example:
        registry = VirtualModuleRegistry()
        registry.clear(version)
        res = registry.add_external("requests", "app/api.py")
        source = registry.load(res.id)
    """

    def __init__(self):
        self.prefix = f"\0ns{next(_ids)}?"
        self.version = 0

        self._modules: dict[str, VirtualModule] = {}
        self._keys: dict[str, Resolution] = {}
        self._sources: dict[str, str] = {}

    # === Registration ===

    def register(self, key: Any, factory: Callable[[], VirtualModule]) -> Resolution:
        """
        Mint a module for ``key`` unless an equal key was registered already.

        Args:
            key: Structural identity; compared by value
            factory: Builds the module record, called at most once per key

        Returns:
            The same Resolution object for every equal key
        """
        canonical = canonical_key(key)
        resolution = self._keys.get(canonical)
        if resolution is not None:
            return resolution

        module = factory()
        module_id = f"{self.prefix}{next(_ids)}"
        resolution = self._resolution(module_id, module)

        self._modules[module_id] = module
        self._keys[canonical] = resolution

        logger.debug("Virtual module registered", id=module_id, kind=type(module).__name__)
        return resolution

    def add_external(self, name: str, hint: str = "") -> Resolution:
        return self.register(["external", name, hint], lambda: ExternalModule(name, hint))

    def add_global(self, name: str, hint: str = "") -> Resolution:
        return self.register(["global", name, hint], lambda: GlobalModule(name, hint))

    def add_hot(self, ref: str) -> Resolution:
        return self.register(["hmr", ref], lambda: HotModule(ref))

    def add_entry(
        self,
        hint: str,
        targets: Union[str, Iterable[str]],
        track: bool = True,
    ) -> Resolution:
        """Register an entry point. Every call mints a new module."""
        if not isinstance(targets, str):
            targets = tuple(targets)
            if not targets:
                raise VirtualModuleError(f"Entry {hint!r} has no targets")

        return self.register(
            ["entry", next(_ids)],
            lambda: EntryModule(hint, targets, track),
        )

    def add_glob(self, directory: str, pattern: str) -> Resolution:
        directory = os.path.abspath(directory)
        return self.register(["glob", directory, pattern], lambda: GlobModule(directory, pattern))

    def add_alias(self, target: str, importer: Optional[str] = None) -> Resolution:
        return self.register(["alias", target, importer], lambda: AliasModule(target, importer))

    # === Lookup ===

    def contains(self, module_id: str) -> bool:
        """True if ``module_id`` belongs to this registry's namespace."""
        return module_id.startswith(self.prefix)

    def __contains__(self, module_id: object) -> bool:
        return isinstance(module_id, str) and module_id in self._modules

    def __len__(self) -> int:
        return len(self._modules)

    def get(self, module_id: str) -> Optional[VirtualModule]:
        return self._modules.get(module_id)

    def _lookup(self, module_id: str) -> VirtualModule:
        module = self._modules.get(module_id)
        if module is None:
            raise UnknownVirtualModuleError(module_id)
        return module

    def resolve(self, module_id: str, host: Optional[BuildHost] = None) -> Resolution:
        """
        Resolve a registered id.

        Alias modules are routed through ``host``; everything else resolves
        to itself.

        Raises:
            UnknownVirtualModuleError: If the id is not registered or the
                host cannot resolve a routed target
        """
        module = self._lookup(module_id)

        route = self._route(module)
        if route is None:
            return self._resolution(module_id, module)

        target, importer = route
        if host is None:
            raise VirtualModuleError(f"Resolving {module_id!r} requires a build host")

        result = host.resolve(target, importer, skip_self=True)
        if result is None:
            raise UnknownVirtualModuleError(target, importer)

        return result

    def load(self, module_id: str) -> str:
        """Return the generated source for ``module_id``, generating it once."""
        source = self._sources.get(module_id)
        if source is None:
            source = self._generate(self._lookup(module_id))
            self._sources[module_id] = source

        return source

    def clear(self, version: Optional[int] = None) -> None:
        """
        Forget every module at the start of a build.

        Args:
            version: Build version stamped into hot wrappers (defaults to
                the current time in milliseconds)
        """
        self._modules.clear()
        self._keys.clear()
        self._sources.clear()
        self.version = version if version is not None else int(time.time() * 1000)

        logger.debug("Virtual registry cleared", prefix=self.prefix, version=self.version)

    # === Per-kind behaviour ===

    def _resolution(self, module_id: str, module: VirtualModule) -> Resolution:
        if isinstance(module, (ExternalModule, GlobModule)):
            return Resolution(module_id, synthetic_named_exports=SYNTHETIC_EXPORTS)

        if isinstance(module, EntryModule) and not isinstance(module.targets, str):
            return Resolution(module_id, synthetic_named_exports=SYNTHETIC_EXPORTS)

        return Resolution(module_id)

    def _route(self, module: VirtualModule) -> Optional[tuple[str, Optional[str]]]:
        if isinstance(module, AliasModule):
            return module.target, module.importer
        return None

    def _generate(self, module: VirtualModule) -> str:
        hooks = "__hmr_graph__.hooks"

        if isinstance(module, ExternalModule):
            return f"__exports = {hooks}.import_external({_expand(module.name, module.hint)})\n"

        if isinstance(module, GlobalModule):
            return f"default = {hooks}.resolve_global({_expand(module.name, module.hint)})\n"

        if isinstance(module, HotModule):
            return (
                f"hmr = __hmr_graph__.create({_expand(module.ref, self.version)})\n"
                "default = hmr\n"
            )

        if isinstance(module, EntryModule):
            return self._generate_entry(module, hooks)

        if isinstance(module, GlobModule):
            lines = ["__exports = {\n"]
            for rel in find(module.directory, module.pattern):
                path = os.path.join(module.directory, *rel.split("/"))
                lines.append(f"    {rel!r}: lambda: {hooks}.import_target({path!r}),\n")
            lines.append("}\n")
            return "".join(lines)

        if isinstance(module, AliasModule):
            raise VirtualModuleError(f"Alias of {module.target!r} has no source of its own")

        raise VirtualModuleError(f"Unsupported virtual module: {module!r}")

    def _generate_entry(self, module: EntryModule, hooks: str) -> str:
        lines = []
        if module.track:
            lines.append(f"__hmr_graph__.track(__hmr_url__, {module.hint + '.json'!r})\n")

        if isinstance(module.targets, str):
            lines += [
                f"__module = {hooks}.import_target({module.targets!r})\n",
                "globals().update(\n",
                "    (k, v) for k, v in vars(__module).items() if not k.startswith('_')\n",
                ")\n",
                "default = getattr(__module, 'default', None)\n",
            ]
            return "".join(lines)

        boot, *rest = module.targets
        lines += [
            f"boot = {hooks}.import_target({boot!r}).boot\n",
            "__exports = boot(\n",
        ]
        lines += [f"    lambda: {hooks}.import_target({target!r}),\n" for target in rest]
        lines.append(")\n")
        return "".join(lines)

    def get_stats(self) -> dict[str, Any]:
        """Get registry statistics."""
        kinds: dict[str, int] = {}
        for module in self._modules.values():
            kind = type(module).__name__
            kinds[kind] = kinds.get(kind, 0) + 1

        return {
            "prefix": self.prefix,
            "version": self.version,
            "modules": len(self._modules),
            "generated": len(self._sources),
            "by_kind": kinds,
        }
