"""
Hotwire Core

Configuration shared by the dev server, the transports and the CLI.
"""

from hotwire.core.config import (
    HotwireConfig,
    LogLevel,
    MonitoringConfig,
    ServerConfig,
    TransportConfig,
    get_config,
    reset_config,
    set_config,
)

__all__ = [
    "HotwireConfig",
    "LogLevel",
    "MonitoringConfig",
    "ServerConfig",
    "TransportConfig",
    "get_config",
    "reset_config",
    "set_config",
]
