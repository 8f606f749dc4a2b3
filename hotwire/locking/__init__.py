"""
Generation-marker watching shared between the dev server and the FS transport.
"""

from hotwire.locking.coordinator import MARKER_FILE, LockCoordinator, read_token

__all__ = ["MARKER_FILE", "LockCoordinator", "read_token"]
