"""
Hotwire Client Bootstrap

Connects a runtime graph to its change-notification transports.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

import structlog

from hotwire.core.config import TransportConfig
from hotwire.hmr.runtime import RuntimeGraph
from hotwire.locking import LockCoordinator
from hotwire.transports import (
    ChangeTransport,
    FetchTransport,
    FsTransport,
    WebSocketTransport,
)

logger = structlog.get_logger(__name__)


def default_transports(
    graph: RuntimeGraph,
    coordinator: Optional[LockCoordinator] = None,
    config: Optional[TransportConfig] = None,
    websocket: bool = False,
) -> list[ChangeTransport]:
    """
    Build the standard transport set: filesystem plus one network transport.

    Args:
        graph: Runtime graph the transports feed
        coordinator: Lock coordinator for the filesystem transport
        config: Transport settings
        websocket: Use WebSocket push instead of HTTP long-poll
    """
    network: ChangeTransport
    if websocket:
        network = WebSocketTransport(graph, config)
    else:
        network = FetchTransport(graph, config)

    return [FsTransport(graph, coordinator or LockCoordinator(), config), network]


class HmrClient:
    """
    Owns the transports of one running process.

    Example:
        graph = RuntimeGraph()
        async with HmrClient(graph, default_transports(graph)):
            graph.track(entry_url)
            ...
    """

    def __init__(self, graph: RuntimeGraph, transports: Iterable[ChangeTransport]):
        self.graph = graph
        self.transports = list(transports)

    def start(self) -> int:
        """
        Connect every transport to the graph.

        Returns:
            Number of transports that accepted the connection
        """
        connected = sum(1 for transport in self.transports if transport.connect())
        logger.info("HMR client started", transports=connected)
        return connected

    def shutdown(self) -> None:
        for transport in self.transports:
            transport.shutdown()

    async def __aenter__(self) -> "HmrClient":
        self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.shutdown()
        await self.graph.drain()

    def get_stats(self) -> dict[str, Any]:
        return {
            "graph": self.graph.get_stats(),
            "transports": [transport.get_stats() for transport in self.transports],
        }
