"""
Output file naming for chunks, entries and manifests.
"""

from __future__ import annotations

import re

_WORD = re.compile(r"[A-Za-z\-]+")
_SLASHES = re.compile(r"[\\/]+")


def sanitize(name: str) -> str:
    """Flatten an entry name into a single path segment."""
    return _SLASHES.sub("-", name)


def entry_file_name(name: str, digest: str) -> str:
    return f"assets/entry-{sanitize(name)}.{digest}.py"


def chunk_file_name(name: str, digest: str) -> str:
    """
    Name a shared chunk.

    Runtime (``sys-``) and third-party (``vendor-``) chunks keep their name;
    application chunks are named after the first word of their name.
    """
    if name.startswith(("sys-", "vendor-")):
        return f"assets/{name}.{digest}.py"

    match = _WORD.search(name)
    if match is not None:
        return f"assets/app-{match.group(0).lower()}.{digest}.py"

    return f"assets/gen.{digest}.py"


def manifest_file_name(name: str) -> str:
    return f"assets/{sanitize(name)}.json"
