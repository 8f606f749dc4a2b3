"""
Hotwire development server.
"""

from hotwire.server.app import IMMUTABLE, confine, create_dev_app, wait_for_token

__all__ = ["IMMUTABLE", "confine", "create_dev_app", "wait_for_token"]
