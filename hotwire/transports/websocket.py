"""
Hotwire WebSocket Transport

Receives manifests pushed by the dev server over a WebSocket tagged with
the ``hmr`` subprotocol.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional
from urllib.parse import urlsplit, urlunsplit

import structlog
import websockets
from websockets.exceptions import WebSocketException

from hotwire.core.config import TransportConfig
from hotwire.hmr.runtime import RuntimeGraph
from hotwire.transports.base import ChangeTransport
from hotwire.utils.urls import strip_query

logger = structlog.get_logger(__name__)


class WebSocketTransport(ChangeTransport):
    """
    Push transport for ``http:``/``https:`` manifests.

    Keeps one connection per base URL. Every ``keepalive_interval`` seconds
    a ping is sent unless one is still unanswered, in which case the
    connection is considered dead and closed. Closed or failed connections
    are reopened after the retry delay.
    """

    name = "websocket"

    def __init__(
        self,
        graph: RuntimeGraph,
        config: Optional[TransportConfig] = None,
        connector: Optional[Callable[..., Any]] = None,
    ):
        super().__init__(graph, config)
        self._connector = connector or websockets.connect

    def start(self, asset_url: str) -> bool:
        if self._closed:
            return False

        parts = urlsplit(asset_url)
        if parts.scheme not in ("http", "https"):
            return False

        base_url = strip_query(asset_url)
        ws_url = urlunsplit(("ws" + parts.scheme[4:], parts.netloc, parts.path, "", ""))
        if ws_url in self._watches:
            return True

        self._watches.add(ws_url)
        self._spawn(self._run(ws_url, base_url))

        logger.info("HMR transport started", transport=self.name, url=ws_url)
        return True

    async def _run(self, ws_url: str, base_url: str) -> None:
        while not self._cancelled.is_set():
            try:
                async with self._connector(
                    ws_url,
                    subprotocols=[self.config.ws_protocol],
                    ping_interval=None,
                ) as ws:
                    logger.debug("HMR socket connected", url=ws_url)
                    await self._receive(ws, base_url)
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                logger.debug("HMR socket failed", url=ws_url, error=str(e))

            await self._backoff()

    async def _receive(self, ws: Any, base_url: str) -> None:
        keepalive = asyncio.get_running_loop().create_task(self._keepalive(ws, base_url))
        try:
            async for message in ws:
                if isinstance(message, str):
                    self._dispatch_text(message, base_url)
        finally:
            keepalive.cancel()

    async def _keepalive(self, ws: Any, base_url: str) -> None:
        pong: Optional[asyncio.Future] = None
        while True:
            await asyncio.sleep(self.config.keepalive_interval)

            if pong is not None and not pong.done():
                logger.warning("HMR socket missed pong, closing", url=base_url)
                await ws.close()
                return

            try:
                pong = await ws.ping()
            except WebSocketException:
                return
