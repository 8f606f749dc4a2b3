"""
Hotwire utilities.
"""

from hotwire.utils.globs import GlobMatch, find
from hotwire.utils.urls import path_to_url, strip_query, url_to_path

__all__ = ["GlobMatch", "find", "path_to_url", "strip_query", "url_to_path"]
