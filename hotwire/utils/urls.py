"""
URL helpers for asset and manifest locations.
"""

from __future__ import annotations

import os
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit
from urllib.request import url2pathname


def url_to_path(url: str) -> str:
    """
    Convert a ``file:`` URL to a normalized local path.

    Raises:
        ValueError: If the URL uses another scheme
    """
    parts = urlsplit(url)
    if parts.scheme != "file":
        raise ValueError(f"Not a file URL: {url}")

    path = url2pathname(parts.path)
    if parts.netloc and parts.netloc != "localhost":
        path = f"//{parts.netloc}{path}"

    return os.path.normpath(path)


def path_to_url(path: str | os.PathLike[str]) -> str:
    """Convert a local path to an absolute ``file:`` URL."""
    return Path(path).resolve().as_uri()


def strip_query(url: str) -> str:
    """Drop the query string and fragment from a URL."""
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))
