"""
Entry Manifests

One JSON document per tracked entry point listing its current chunks.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from hotwire.build.naming import manifest_file_name


class Manifest(BaseModel):
    """``{"chunks": [...]}``; chunk entries are relative to the manifest URL."""

    model_config = ConfigDict(extra="ignore")

    chunks: list[str]

    @classmethod
    def parse(cls, data: Any) -> Optional["Manifest"]:
        """Validate decoded JSON; anything that is not a manifest yields None."""
        if not isinstance(data, dict):
            return None
        try:
            return cls.model_validate(data, strict=True)
        except ValidationError:
            return None

    def render(self) -> str:
        return json.dumps({"chunks": self.chunks}, indent=4)


def build_manifests(entries: Iterable[tuple[str, str]]) -> dict[str, Manifest]:
    """
    Group entry chunks into manifests.

    Args:
        entries: ``(entry name, output file name)`` for every entry chunk

    Returns:
        Manifest per output path (``assets/<name>.json``)
    """
    manifests: dict[str, Manifest] = {}
    for name, file_name in entries:
        path = manifest_file_name(name)
        manifest = manifests.setdefault(path, Manifest(chunks=[]))
        manifest.chunks.append(os.path.basename(file_name))

    return manifests


def write_manifest(path: str | os.PathLike[str], chunks: list[str]) -> Path:
    """Write a manifest file, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(Manifest(chunks=chunks).render(), encoding="utf-8")
    return path
