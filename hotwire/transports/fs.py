"""
Hotwire FS Transport

Watches manifests that live on the local filesystem next to the running
process. Change detection is delegated to the lock coordinator; the
manifest is re-read every time its directory's generation token moves.
"""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

import structlog

from hotwire.core.config import TransportConfig
from hotwire.hmr.runtime import RuntimeGraph
from hotwire.locking import LockCoordinator
from hotwire.transports.base import ChangeTransport
from hotwire.utils.urls import url_to_path

logger = structlog.get_logger(__name__)

# Never equal to a real token, so the first watch() catches up immediately
_CATCH_UP = "_"


def _read_manifest(path: str) -> object:
    return json.loads(Path(path).read_text(encoding="utf-8"))


class FsTransport(ChangeTransport):
    """
    Filesystem transport for ``file:`` manifests.

    Shutting the transport down also closes the lock coordinator it was
    given.
    """

    name = "fs"

    def __init__(
        self,
        graph: RuntimeGraph,
        coordinator: LockCoordinator,
        config: Optional[TransportConfig] = None,
    ):
        super().__init__(graph, config)
        self.coordinator = coordinator

        # manifest path -> True while another read pass is required
        self._pending: dict[str, bool] = {}

    def start(self, asset_url: str) -> bool:
        if self._closed:
            return False

        if urlsplit(asset_url).scheme != "file":
            return False

        path = url_to_path(asset_url)
        if path in self._watches:
            return True

        self._watches.add(path)
        self._spawn(self._watch(path, asset_url))

        logger.info("HMR transport started", transport=self.name, file=path)
        return True

    def shutdown(self) -> None:
        if self._closed:
            return

        super().shutdown()
        self._pending.clear()
        self.coordinator.close()

    async def _watch(self, path: str, url: str) -> None:
        token = _CATCH_UP
        directory = os.path.dirname(path)
        while token:
            token = await self.coordinator.watch(directory, token)
            if not token or path not in self._watches:
                continue

            if self._pending.get(path) is None:
                self._pending[path] = True
                self._spawn(self._read(path, url))

            self._pending[path] = True

    async def _read(self, path: str, url: str) -> None:
        loop = asyncio.get_running_loop()
        try:
            while self._pending.get(path) is True:
                self._pending[path] = False

                try:
                    data = await loop.run_in_executor(None, _read_manifest, path)
                except (OSError, ValueError) as e:
                    # Usually a race with the writer; the next token retries
                    logger.debug("Manifest read failed", file=path, error=str(e))
                    continue

                self._dispatch(data, url)
        finally:
            self._pending.pop(path, None)
