"""
Hotwire Runtime Graph Tests

Tests for module versioning, manifest tracking, chunk loading and the
runtime hooks generated code relies on.
"""

import asyncio
import builtins
import json
import os
from types import ModuleType

import pytest

from hotwire.hmr import ModuleState, RuntimeGraph, RuntimeHooks, manifest_url
from hotwire.hmr.loader import ChunkLoader, module_name
from hotwire.utils.urls import path_to_url, strip_query, url_to_path


async def settle(rounds: int = 5) -> None:
    """Let scheduled callbacks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class RecordingLoader:
    """Loader double that records URLs instead of executing chunks."""

    def __init__(self, fail: int = 0):
        self.urls: list[str] = []
        self.fail = fail

    async def __call__(self, url, namespace):
        self.urls.append(url)
        if self.fail:
            self.fail -= 1
            raise OSError("unreachable")
        return ModuleType(module_name(url))


# === Module Versions ===


class TestCreate:
    """Test RuntimeGraph.create()."""

    @pytest.mark.asyncio
    async def test_fresh_module_reaches_running(self):
        """Test that a new id gets a context that becomes running."""
        graph = RuntimeGraph()
        ctx = graph.create("app.views", 1)

        assert ctx.state is ModuleState.PENDING
        assert not ctx.static

        await settle()
        assert ctx.state is ModuleState.RUNNING
        assert graph.get("app.views") is ctx
        assert graph.version_of("app.views") == 1

    @pytest.mark.asyncio
    async def test_newer_version_replaces(self):
        """Test that a newer version upgrades the old context."""
        graph = RuntimeGraph()
        old = graph.create("app.views", 1)
        await settle()

        new = graph.create("app.views", 2)
        await settle()

        assert new is not old
        assert old.state is ModuleState.UPGRADE
        assert new.state is ModuleState.RUNNING
        assert graph.version_of("app.views") == 2

    @pytest.mark.asyncio
    async def test_stale_versions_get_sentinel(self):
        """Test that equal or older versions never touch the entry."""
        graph = RuntimeGraph()
        ctx = graph.create("app.views", 5)
        await settle()

        same = graph.create("app.views", 5)
        older = graph.create("app.views", 4)
        await settle()

        assert same is graph.sentinel
        assert older is graph.sentinel
        assert same.state is ModuleState.UPGRADE
        assert graph.get("app.views") is ctx
        assert graph.version_of("app.views") == 5
        assert ctx.state is ModuleState.RUNNING

    @pytest.mark.asyncio
    async def test_keep_carries_over(self):
        """Test that kept values reach the replacement context."""
        graph = RuntimeGraph()
        old = graph.create("app.state", 1)
        await settle()

        assert old.keep({"counter": 7})
        new = graph.create("app.state", 2)

        assert new.meta == {"counter": 7}
        assert graph.sentinel.keep("ignored") is False

    @pytest.mark.asyncio
    async def test_stop_and_start_handlers(self):
        """Test the handler order across a replacement."""
        graph = RuntimeGraph()
        events = []

        old = graph.create("app.server", 1)
        old.on("start", lambda: events.append("start-1"))
        old.on("stop", lambda: events.append("stop-1"))
        await settle()

        new = graph.create("app.server", 2)
        new.on("start", lambda: events.append("start-2"))
        await settle()

        assert events == ["start-1", "stop-1", "start-2"]


# === Tracked Manifests ===


class TestManifestUrl:
    """Test manifest URL derivation."""

    def test_hashed_entry(self):
        """Test that the hash and extension become .json."""
        url = manifest_url("file:///out/assets/entry-main.3f2a1b.py")
        assert url == "file:///out/assets/entry-main.json"

    def test_query_and_fragment_dropped(self):
        """Test that query and fragment are removed."""
        url = manifest_url("http://localhost:4080/assets/entry-web.abc.mjs?v=1#top")
        assert url == "http://localhost:4080/assets/entry-web.json"

    def test_hint_reanchors(self):
        """Test that a hint resolves relative to the derived URL."""
        url = manifest_url("http://localhost:4080/assets/entry-web.abc.py", "web.json")
        assert url == "http://localhost:4080/assets/web.json"


class TestTracking:
    """Test track(), observe() and freeze()."""

    @pytest.mark.asyncio
    async def test_observer_notified_on_growth(self):
        """Test that observers run only when the tracked set grows."""
        graph = RuntimeGraph()
        calls = []

        assert graph.observe("test", lambda: calls.append(graph.urls))
        assert not graph.observe("test", lambda: None)
        await settle()
        assert calls == []

        assert graph.track("file:///out/assets/entry-main.1.py")
        await settle()
        assert calls == [("file:///out/assets/entry-main.json",)]

        assert graph.track("file:///out/assets/entry-main.2.py")
        await settle()
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_late_observer_sees_existing_urls(self):
        """Test that registration notifies when URLs already exist."""
        graph = RuntimeGraph()
        graph.track("file:///out/assets/entry-main.1.py")

        calls = []
        graph.observe("late", lambda: calls.append("late"))
        await settle()
        assert calls == ["late"]

    @pytest.mark.asyncio
    async def test_freeze(self):
        """Test that freeze notifies once and locks the set."""
        graph = RuntimeGraph()
        calls = []
        graph.observe("test", lambda: calls.append(graph.frozen))

        assert graph.freeze()
        assert not graph.freeze()
        await settle()

        assert calls == [True]
        assert graph.track("file:///out/assets/entry-main.1.py") is False
        assert graph.urls == ()


# === Chunk Loading ===


class TestLoad:
    """Test chunk loading."""

    @pytest.mark.asyncio
    async def test_url_loaded_once(self):
        """Test that repeated loads of one URL evaluate it once."""
        loader = RecordingLoader()
        graph = RuntimeGraph(loader=loader)

        graph.load("http://dev/assets/app-views.1.py")
        graph.load("http://dev/assets/app-views.1.py")
        await graph.drain()
        graph.load("http://dev/assets/app-views.1.py")
        await graph.drain()

        assert loader.urls == ["http://dev/assets/app-views.1.py"]
        assert "http://dev/assets/app-views.1.py" in graph.modules

    @pytest.mark.asyncio
    async def test_failed_load_is_retried(self):
        """Test that a failure is swallowed and the URL may load again."""
        loader = RecordingLoader(fail=1)
        graph = RuntimeGraph(loader=loader)

        graph.load("http://dev/assets/app-views.1.py")
        await graph.drain()
        assert graph.modules == {}

        graph.load("http://dev/assets/app-views.1.py")
        await graph.drain()
        assert len(loader.urls) == 2
        assert len(graph.modules) == 1

    @pytest.mark.asyncio
    async def test_chunk_reaches_graph(self, tmp_path):
        """Test that an evaluated chunk receives the graph and its URL."""
        chunk = tmp_path / "assets" / "app-views.1.py"
        chunk.parent.mkdir()
        chunk.write_text(
            "hmr = __hmr_graph__.create('app/views.py', 1)\n"
            "url = __hmr_url__\n"
        )

        graph = RuntimeGraph()
        url = path_to_url(chunk)
        graph.load(url)
        await graph.drain()
        await settle()

        module = graph.modules[url]
        assert module.url == url
        assert module.hmr is graph.get("app/views.py")
        assert module.hmr.state is ModuleState.RUNNING

    @pytest.mark.asyncio
    async def test_broken_chunk_is_logged(self, tmp_path):
        """Test that a chunk raising during evaluation is not kept."""
        chunk = tmp_path / "broken.1.py"
        chunk.write_text("raise RuntimeError('boom')\n")

        graph = RuntimeGraph()
        graph.load(path_to_url(chunk))
        await graph.drain()

        assert graph.modules == {}

    def test_stats(self):
        """Test statistics."""
        graph = RuntimeGraph()
        stats = graph.get_stats()
        assert stats["modules"] == 0
        assert stats["frozen"] is False


class TestChunkLoader:
    """Test the chunk loader."""

    def test_module_name(self):
        """Test module names derived from chunk URLs."""
        assert module_name("http://dev/assets/app-views.3f2a.py") == "hotwire_chunk_app_views_3f2a"

    def test_execute_does_not_register_module(self):
        """Test that evaluated chunks stay out of sys.modules."""
        import sys

        loader = ChunkLoader()
        module = loader.execute("value = seed * 2\n", "http://dev/assets/a.1.py", {"seed": 21})
        assert module.value == 42
        assert module.__name__ not in sys.modules

    @pytest.mark.asyncio
    async def test_unsupported_scheme(self):
        """Test that unknown URL schemes are rejected."""
        with pytest.raises(ValueError):
            await ChunkLoader().fetch("ftp://dev/assets/a.1.py")


# === Runtime Hooks ===


class TestRuntimeHooks:
    """Test import and global resolution used by generated code."""

    def test_import_external(self):
        """Test the default import."""
        assert RuntimeHooks().import_external("json") is json

    def test_missing_external(self):
        """Test the placeholder for modules that cannot be imported."""
        module = RuntimeHooks().import_external("hotwire_no_such_module", "app/views.py")
        assert module.__missing__ is True

    def test_import_hook_receives_default(self):
        """Test that a custom hook may defer to the default."""
        seen = []

        def hook(name, hint, default):
            seen.append((name, hint))
            return default(name, hint)

        hooks = RuntimeHooks(import_hook=hook)
        assert hooks.import_external("os", "app/views.py") is os
        assert seen == [("os", "app/views.py")]

    def test_resolve_global(self):
        """Test the default globals."""
        hooks = RuntimeHooks()
        assert hooks.resolve_global("globalThis") is builtins
        assert hooks.resolve_global("environ") is os.environ
        assert hooks.resolve_global("nothing") is None

    def test_import_target_by_path(self, tmp_path):
        """Test that file targets are imported once."""
        target = tmp_path / "views.py"
        target.write_text("def boot(*loaders):\n    return len(loaders)\n")

        hooks = RuntimeHooks()
        first = hooks.import_target(str(target))
        assert first.boot(1, 2) == 2
        assert hooks.import_target(str(target)) is first

    def test_graph_owns_hooks(self):
        """Test that generated code can reach the hooks through the graph."""
        hooks = RuntimeHooks()
        assert RuntimeGraph(hooks=hooks).hooks is hooks


class TestUrls:
    """Test URL helpers."""

    def test_file_url_round_trip(self, tmp_path):
        """Test path to URL and back."""
        path = tmp_path / "assets" / "main.json"
        assert url_to_path(path_to_url(path)) == os.path.normpath(str(path.resolve()))

    def test_url_to_path_rejects_http(self):
        """Test that only file URLs convert."""
        with pytest.raises(ValueError):
            url_to_path("http://dev/assets/main.json")

    def test_strip_query(self):
        """Test query and fragment removal."""
        assert strip_query("http://dev/a.json?t=1#x") == "http://dev/a.json"
