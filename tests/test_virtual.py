"""
Hotwire Virtual Module Tests

Tests for the virtual module registry and the source it generates.
"""

import asyncio
import json
from pathlib import Path

import pytest

from hotwire.hmr import ModuleState, RuntimeGraph
from hotwire.virtual import (
    AliasModule,
    ExternalModule,
    Resolution,
    UnknownVirtualModuleError,
    VirtualModuleError,
    VirtualModuleRegistry,
    canonical_key,
)


@pytest.fixture
def registry():
    registry = VirtualModuleRegistry()
    registry.clear(1700000000000)
    return registry


class StubHost:
    """Build host double answering from a fixed table."""

    def __init__(self, table):
        self.table = table
        self.calls = []

    def resolve(self, source, importer=None, skip_self=True):
        self.calls.append((source, importer, skip_self))
        return self.table.get(source)


def run_source(source: str, graph: RuntimeGraph, url: str = "http://dev/assets/x.1.py") -> dict:
    namespace = {"__hmr_graph__": graph, "__hmr_url__": url}
    exec(compile(source, url, "exec"), namespace)
    return namespace


# === Registration ===


class TestRegister:
    """Test identity-keyed registration."""

    def test_equal_keys_share_resolution(self, registry):
        """Test that an equal key never mints a second module."""
        calls = []

        def factory():
            calls.append(1)
            return ExternalModule("fs")

        first = registry.register(["external", "fs"], factory)
        second = registry.register(["external", "fs"], factory)
        other = registry.register(["external", "path"], lambda: ExternalModule("path"))

        assert first is second
        assert other.id != first.id
        assert calls == [1]
        assert len(registry) == 2

    def test_ids_are_namespaced(self, registry):
        """Test the id format."""
        resolution = registry.add_global("globalThis")
        assert resolution.id.startswith("\0ns")
        assert registry.contains(resolution.id)
        assert resolution.id in registry
        assert not registry.contains("app/views.py")

    def test_registries_do_not_collide(self):
        """Test that separate registries use separate prefixes."""
        a = VirtualModuleRegistry()
        b = VirtualModuleRegistry()
        assert a.prefix != b.prefix
        assert not b.contains(a.add_hot("x.py").id)

    def test_canonical_key(self):
        """Test value equality of structural keys."""
        assert canonical_key("x") == canonical_key(["x"])
        assert canonical_key([{"b": 1, "a": 2}]) == canonical_key([{"a": 2, "b": 1}])
        assert canonical_key(["x", 1]) != canonical_key(["x", "1"])

    def test_canonical_key_rejects_opaque_values(self, registry):
        """Test that values JSON cannot represent are not coerced to strings."""
        with pytest.raises(TypeError):
            canonical_key(["glob", Path("a")])

        with pytest.raises(TypeError):
            registry.register(["external", object()], lambda: ExternalModule("x"))
        assert len(registry) == 0

    def test_entries_always_fresh(self, registry):
        """Test that every entry registration mints a module."""
        first = registry.add_entry("main", "app/main.py")
        second = registry.add_entry("main", "app/main.py")
        assert first.id != second.id

    def test_entry_without_targets(self, registry):
        """Test that an empty target list is rejected."""
        with pytest.raises(VirtualModuleError):
            registry.add_entry("main", [])

    def test_clear(self, registry):
        """Test that clear forgets modules and records the version."""
        resolution = registry.add_hot("app/views.py")
        registry.clear(42)

        assert len(registry) == 0
        assert registry.version == 42
        with pytest.raises(UnknownVirtualModuleError):
            registry.load(resolution.id)


class TestResolve:
    """Test resolution and routing."""

    def test_unknown_id(self, registry):
        """Test that unregistered ids are fatal."""
        with pytest.raises(UnknownVirtualModuleError) as exc_info:
            registry.resolve(registry.prefix + "999")
        assert isinstance(exc_info.value, VirtualModuleError)

        with pytest.raises(UnknownVirtualModuleError):
            registry.load(registry.prefix + "999")

    def test_synthetic_exports(self, registry):
        """Test which kinds expose synthetic named exports."""
        assert registry.add_external("requests").synthetic_named_exports == "__exports"
        assert registry.add_hot("app/views.py").synthetic_named_exports is None
        assert registry.add_entry("main", "app/main.py").synthetic_named_exports is None
        assert registry.add_entry("main", ["boot.py", "a.py"]).synthetic_named_exports == "__exports"

    def test_plain_resolution(self, registry):
        """Test that non-routed modules resolve to themselves."""
        resolution = registry.add_global("environ")
        assert registry.resolve(resolution.id) == resolution

    def test_alias_routes_through_host(self, registry):
        """Test that aliases resolve as their target would."""
        target = Resolution("/src/app/real.py")
        host = StubHost({"app.real": target})
        alias = registry.add_alias("app.real", "/src/app/main.py")

        assert isinstance(registry.get(alias.id), AliasModule)
        assert registry.resolve(alias.id, host) is target
        assert host.calls == [("app.real", "/src/app/main.py", True)]

    def test_alias_unresolvable(self, registry):
        """Test that a routed miss raises the fatal error."""
        alias = registry.add_alias("app.missing")

        with pytest.raises(UnknownVirtualModuleError):
            registry.resolve(alias.id, StubHost({}))

        with pytest.raises(VirtualModuleError):
            registry.resolve(alias.id)


# === Generated Source ===


class TestLoad:
    """Test generated source."""

    def test_source_cached(self, registry):
        """Test that source is generated once."""
        resolution = registry.add_external("json", "app/views.py")
        assert registry.load(resolution.id) is registry.load(resolution.id)

    def test_external_source(self, registry):
        """Test the external shim."""
        graph = RuntimeGraph()
        resolution = registry.add_external("json", "app/views.py")

        namespace = run_source(registry.load(resolution.id), graph)
        assert namespace["__exports"] is json

    def test_global_source(self, registry):
        """Test the global shim."""
        import builtins

        graph = RuntimeGraph()
        resolution = registry.add_global("globalThis", "app/views.py")

        namespace = run_source(registry.load(resolution.id), graph)
        assert namespace["default"] is builtins

    @pytest.mark.asyncio
    async def test_hot_source(self, registry):
        """Test the hot handshake wrapper."""
        graph = RuntimeGraph()
        resolution = registry.add_hot("app/views.py")

        namespace = run_source(registry.load(resolution.id), graph)
        for _ in range(5):
            await asyncio.sleep(0)

        hmr = namespace["hmr"]
        assert hmr is graph.get("app/views.py")
        assert graph.version_of("app/views.py") == 1700000000000
        assert hmr.state is ModuleState.RUNNING

    @pytest.mark.asyncio
    async def test_hot_source_stale_rerun(self, registry):
        """Test that re-running the same build gets the sentinel."""
        graph = RuntimeGraph()
        source = registry.load(registry.add_hot("app/views.py").id)

        run_source(source, graph)
        namespace = run_source(source, graph)
        assert namespace["hmr"] is graph.sentinel

    def test_single_target_entry(self, registry, tmp_path):
        """Test that a single target is re-exported and tracked."""
        target = tmp_path / "main.py"
        target.write_text("answer = 42\n_private = 1\ndefault = 'main'\n")

        graph = RuntimeGraph()
        resolution = registry.add_entry("web", str(target))
        namespace = run_source(registry.load(resolution.id), graph, "file:///out/assets/entry-web.1.py")

        assert namespace["answer"] == 42
        assert "_private" not in namespace
        assert namespace["default"] == "main"
        assert graph.urls == ("file:///out/assets/web.json",)

    def test_untracked_entry(self, registry):
        """Test that tracking can be disabled."""
        source = registry.load(registry.add_entry("web", "app/main.py", track=False).id)
        assert "track" not in source

    def test_boot_entry(self, registry, tmp_path):
        """Test that the boot module receives one loader per target."""
        boot = tmp_path / "boot.py"
        boot.write_text("def boot(*loaders):\n    return [load().name for load in loaders]\n")
        for name in ("alpha", "beta"):
            (tmp_path / f"{name}.py").write_text(f"name = {name!r}\n")

        graph = RuntimeGraph()
        resolution = registry.add_entry(
            "web",
            [str(boot), str(tmp_path / "alpha.py"), str(tmp_path / "beta.py")],
            track=False,
        )
        namespace = run_source(registry.load(resolution.id), graph)
        assert namespace["__exports"] == ["alpha", "beta"]

    def test_glob_source(self, registry, tmp_path):
        """Test that glob modules enumerate files at load time."""
        (tmp_path / "pages").mkdir()
        (tmp_path / "pages" / "home.py").write_text("title = 'home'\n")
        (tmp_path / "pages" / "notes.txt").write_text("skip")

        graph = RuntimeGraph()
        resolution = registry.add_glob(str(tmp_path), "pages/*.py")
        namespace = run_source(registry.load(resolution.id), graph)

        exports = namespace["__exports"]
        assert list(exports) == ["pages/home.py"]
        assert exports["pages/home.py"]().title == "home"

    def test_alias_has_no_source(self, registry):
        """Test that aliases only route."""
        alias = registry.add_alias("app.real")
        with pytest.raises(VirtualModuleError):
            registry.load(alias.id)

    def test_stats(self, registry):
        """Test statistics."""
        registry.add_hot("a.py")
        registry.add_hot("b.py")
        stats = registry.get_stats()
        assert stats["modules"] == 2
        assert stats["by_kind"] == {"HotModule": 2}
