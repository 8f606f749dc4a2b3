"""
Hotwire - Hot Module Replacement for Python

Swap the implementation of running modules in place:
- Module lifecycle contexts (pending -> running -> upgrade)
- Versioned runtime graph with stale-update protection
- Filesystem, HTTP long-poll and WebSocket change notification
- Build-time virtual modules and manifest emission
"""

__version__ = "1.0.0"
__author__ = "Hotwire Team"

from hotwire.core.config import HotwireConfig
from hotwire.hmr import HotModuleContext, ModuleState, RuntimeGraph
from hotwire.client import HmrClient, default_transports

__all__ = [
    "HotwireConfig",
    "HotModuleContext",
    "ModuleState",
    "RuntimeGraph",
    "HmrClient",
    "default_transports",
    "__version__",
]
