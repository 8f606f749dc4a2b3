"""
Generation marker writer.

The marker (``lock.json``) holds ``{}`` while a build is writing output
and ``{"token": "<ms timestamp>"}`` once the output is complete.
"""

from __future__ import annotations

import json
import os
import time
from pathlib import Path
from typing import Optional

import structlog

from hotwire.locking import MARKER_FILE

logger = structlog.get_logger(__name__)


class GenerationMarker:
    """Writes the generation marker of one output directory."""

    def __init__(self, directory: str | os.PathLike[str]):
        self.directory = Path(directory)
        self.path = self.directory / MARKER_FILE

    def begin(self) -> Path:
        """Mark the directory as being rebuilt."""
        self.directory.mkdir(parents=True, exist_ok=True)
        self.path.write_text("{}", encoding="utf-8")
        return self.path

    def commit(self, token: Optional[str] = None) -> str:
        """
        Publish a new generation token.

        The file is replaced atomically so readers never observe a partial
        write.

        Returns:
            The token written
        """
        if token is None:
            token = str(int(time.time() * 1000))

        self.directory.mkdir(parents=True, exist_ok=True)
        temp = self.directory / f".{MARKER_FILE}.{os.getpid()}.tmp"
        temp.write_text(json.dumps({"token": token}), encoding="utf-8")
        os.replace(temp, self.path)

        logger.info("Generation committed", directory=str(self.directory), token=token)
        return token
