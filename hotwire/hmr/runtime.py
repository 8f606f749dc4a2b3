"""
Hot Module Runtime Graph

Authoritative table of live module ids, their current version and their
active lifecycle context. Chunks call ``create()`` while they evaluate;
entry points call ``track()`` so transports know which manifests to watch.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from types import MappingProxyType, ModuleType
from typing import Any, Callable, Mapping, Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

import structlog

from hotwire.hmr.context import HotModuleContext, ModuleState, PendingUpdate, defer
from hotwire.hmr.hooks import RuntimeHooks
from hotwire.hmr.loader import ChunkLoader

logger = structlog.get_logger(__name__)

# "<name>.<hash>.py" -> "<name>.json"; applied to the final path segment only
_ASSET_SUFFIX = re.compile(r"\..*?\.(?:py|[cm]?js)$")


@dataclass
class GraphEntry:
    """Current context and version for one module id."""

    context: HotModuleContext
    version: int
    update: PendingUpdate


def manifest_url(asset_url: str, hint: Optional[str] = None) -> str:
    """
    Derive the manifest URL that describes the entry ``asset_url`` belongs to.

    Args:
        asset_url: Absolute URL of an entry chunk
        hint: Optional manifest location relative to the derived URL
    """
    parts = urlsplit(asset_url)
    head, sep, base = parts.path.rpartition("/")
    path = head + sep + _ASSET_SUFFIX.sub(".json", base)
    url = urlunsplit((parts.scheme, parts.netloc, path, "", ""))

    if hint is not None:
        url = urljoin(url, hint)

    return url


class RuntimeGraph:
    """
    Versioned module-replacement graph.

    ``create`` is the only writer of graph entries. ``create``, ``track``,
    ``observe`` and ``freeze`` never suspend; the notifications they cause
    run on the next loop iteration.
    """

    def __init__(
        self,
        loader: Optional[Callable[..., Any]] = None,
        hooks: Optional[RuntimeHooks] = None,
    ):
        self._entries: dict[str, GraphEntry] = {}
        self._observers: dict[str, Callable[[], Any]] = {}
        self._urls: dict[str, None] = {}
        self._frozen = False

        # Shared answer for stale or duplicate deliveries
        self._sentinel = HotModuleContext(update=ModuleState.UPGRADE)

        self.hooks = hooks or RuntimeHooks()
        self._loader = loader or ChunkLoader()
        self._loads: dict[str, asyncio.Task] = {}
        self._modules: dict[str, ModuleType] = {}

    # === Module versions ===

    def create(self, module_id: str, version: int) -> HotModuleContext:
        """
        Mint the context for a freshly evaluated module.

        Returns the shared upgrade-state sentinel when ``version`` is not
        newer than the version already recorded for ``module_id``.
        """
        meta = None
        current = self._entries.get(module_id)
        if current is not None:
            if current.version >= version:
                logger.debug(
                    "Stale module version ignored",
                    module_id=module_id,
                    version=version,
                    current=current.version,
                )
                return self._sentinel

            current.context.invalidate()
            current.update.state = ModuleState.UPGRADE
            meta = current.update.meta

        update = PendingUpdate(meta=meta)
        context = HotModuleContext(module_id, meta, update)
        self._entries[module_id] = GraphEntry(context, version, update)

        update.state = ModuleState.RUNNING
        context.invalidate()

        logger.debug("Module context created", module_id=module_id, version=version)
        return context

    def get(self, module_id: str) -> Optional[HotModuleContext]:
        entry = self._entries.get(module_id)
        return entry.context if entry else None

    def version_of(self, module_id: str) -> Optional[int]:
        entry = self._entries.get(module_id)
        return entry.version if entry else None

    @property
    def sentinel(self) -> HotModuleContext:
        return self._sentinel

    # === Tracked manifests ===

    @property
    def urls(self) -> tuple[str, ...]:
        """Tracked manifest URLs in insertion order."""
        return tuple(self._urls)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _notify(self, observers: Optional[list[Callable[[], Any]]] = None) -> None:
        if self._urls or self._frozen:
            for fn in observers if observers is not None else list(self._observers.values()):
                defer(fn)

    def track(self, asset_url: str, hint: Optional[str] = None) -> bool:
        """
        Start tracking the manifest of the entry ``asset_url``.

        Returns:
            False once the tracked set has been frozen
        """
        if self._frozen:
            return False

        url = manifest_url(asset_url, hint)
        if url not in self._urls:
            self._urls[url] = None
            logger.info("Tracking manifest", url=url)
            self._notify()

        return True

    def observe(self, key: str, fn: Callable[[], Any]) -> bool:
        """
        Register ``fn`` to run whenever the tracked set changes.

        Returns:
            False if an observer is already registered under ``key``
        """
        if key in self._observers:
            return False

        self._observers[key] = fn
        self._notify([fn])
        return True

    def freeze(self) -> bool:
        """Make the tracked set immutable and notify observers a final time."""
        if self._frozen:
            return False

        self._frozen = True
        logger.debug("Tracked manifests frozen", count=len(self._urls))
        self._notify()
        return True

    # === Chunk loading ===

    @property
    def modules(self) -> Mapping[str, ModuleType]:
        """Successfully evaluated chunks by URL."""
        return MappingProxyType(self._modules)

    def load(self, url: str) -> None:
        """
        Import a chunk in the background.

        A URL is evaluated at most once; failures are logged and the URL
        becomes eligible for another attempt.
        """
        if url in self._loads:
            return

        task = asyncio.get_running_loop().create_task(self._import(url))
        self._loads[url] = task

    async def _import(self, url: str) -> None:
        namespace = {"__hmr_graph__": self, "__hmr_url__": url}
        try:
            module = await self._loader(url, namespace)
        except Exception as e:
            self._loads.pop(url, None)
            logger.warning("Chunk load failed", url=url, error=str(e))
            return

        self._modules[url] = module
        logger.info("Chunk loaded", url=url)

    async def drain(self) -> None:
        """Wait for all in-flight chunk loads to settle."""
        while True:
            pending = [task for task in self._loads.values() if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def get_stats(self) -> dict[str, Any]:
        """Get runtime graph statistics."""
        return {
            "modules": len(self._entries),
            "tracked_urls": len(self._urls),
            "observers": len(self._observers),
            "frozen": self._frozen,
            "loaded_chunks": len(self._modules),
        }
