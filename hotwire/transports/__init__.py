"""
Hotwire Transports

Interchangeable change-notification transports feeding the runtime graph.
"""

from hotwire.transports.base import ChangeTransport
from hotwire.transports.fetch import FetchTransport
from hotwire.transports.fs import FsTransport
from hotwire.transports.websocket import WebSocketTransport

__all__ = [
    # Base
    "ChangeTransport",
    # Implementations
    "FsTransport",
    "FetchTransport",
    "WebSocketTransport",
]
