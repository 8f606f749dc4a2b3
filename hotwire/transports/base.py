"""
Hotwire Transport Base

Abstract base class for change-notification transports.
"""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any, Coroutine, Optional
from urllib.parse import urljoin

import structlog

from hotwire.build.manifest import Manifest
from hotwire.core.config import TransportConfig
from hotwire.hmr.runtime import RuntimeGraph

logger = structlog.get_logger(__name__)


class ChangeTransport(ABC):
    """
    Abstract base class for change-notification transports.

    A transport observes a set of base addresses and, whenever the manifest
    behind one of them changes, feeds every listed chunk URL into the
    runtime graph's ``load()``:
    - Deduplication by base address (first ``start()`` wins)
    - One cancellation signal per instance, aborted by ``shutdown()``
    - Fixed-delay retry after network failures
    """

    name: str = "transport"

    def __init__(self, graph: RuntimeGraph, config: Optional[TransportConfig] = None):
        self.graph = graph
        self.config = config or TransportConfig()

        self._connected: Optional[bool] = None
        self._closed = False
        self._cancelled = asyncio.Event()
        self._tasks: set[asyncio.Task] = set()
        self._watches: set[str] = set()

    @abstractmethod
    def start(self, asset_url: str) -> bool:
        """
        Begin observing the manifest at ``asset_url``.

        Returns:
            True if the URL belongs to this transport (including when it is
            already being observed), False otherwise or after shutdown
        """
        pass

    def connect(self) -> bool:
        """Subscribe to the runtime graph's tracked manifests."""
        if self._connected is not None:
            return self._connected

        self._connected = self.graph.observe(f"connect-{self.name}", self._on_tracked_change)
        return self._connected

    def _on_tracked_change(self) -> None:
        accepted = False
        for url in self.graph.urls:
            accepted = self.start(url) or accepted

        if self.graph.frozen and not accepted:
            self.shutdown()

    def shutdown(self) -> None:
        """Abort all I/O and make the transport permanently inert."""
        if self._closed:
            return

        self._closed = True
        self._connected = False
        self._cancelled.set()

        for task in list(self._tasks):
            task.cancel()

        self._watches.clear()

        logger.info("HMR transport stopped", transport=self.name)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def watches(self) -> frozenset[str]:
        """Base addresses currently observed."""
        return frozenset(self._watches)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _backoff(self) -> None:
        """Sleep for the retry delay, or less if the transport shuts down."""
        try:
            await asyncio.wait_for(self._cancelled.wait(), timeout=self.config.retry_delay)
        except asyncio.TimeoutError:
            pass

    def _dispatch(self, data: Any, base_url: str) -> int:
        """
        Load every chunk listed in a decoded manifest.

        Returns:
            Number of chunk URLs handed to the runtime graph
        """
        manifest = Manifest.parse(data)
        if manifest is None:
            return 0

        for chunk in manifest.chunks:
            self.graph.load(urljoin(base_url, chunk))

        return len(manifest.chunks)

    def _dispatch_text(self, text: str, base_url: str) -> int:
        try:
            data = json.loads(text)
        except ValueError:
            logger.debug("Ignoring malformed manifest", transport=self.name, url=base_url)
            return 0

        return self._dispatch(data, base_url)

    def get_stats(self) -> dict[str, Any]:
        """Get transport statistics."""
        return {
            "transport": self.name,
            "connected": bool(self._connected),
            "closed": self._closed,
            "watches": sorted(self._watches),
            "tasks": len(self._tasks),
        }
