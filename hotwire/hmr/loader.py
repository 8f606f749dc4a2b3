"""
Chunk Loader

Fetches build-output chunks and evaluates them into fresh module
objects, the Python counterpart of a dynamic ``import(url)``.
"""

from __future__ import annotations

import asyncio
import importlib.util
import re
from pathlib import Path
from types import ModuleType
from typing import Any, Optional
from urllib.parse import urlsplit

import httpx
import structlog

from hotwire.utils.urls import url_to_path

logger = structlog.get_logger(__name__)

_NON_IDENTIFIER = re.compile(r"\W+")


def _read_text(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


def module_name(url: str) -> str:
    """Derive a stable module name from a chunk URL."""
    base = urlsplit(url).path.rsplit("/", 1)[-1]
    stem = base[:-3] if base.endswith(".py") else base
    return "hotwire_chunk_" + _NON_IDENTIFIER.sub("_", stem).strip("_")


class ChunkLoader:
    """
    Loads chunks from ``file:`` and ``http(s):`` URLs.

    Every call produces a new module object; the module is not inserted
    into ``sys.modules`` so that successive versions of a chunk never
    shadow each other.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.http_transport = http_transport

    async def fetch(self, url: str) -> str:
        """Read the source text of a chunk."""
        scheme = urlsplit(url).scheme

        if scheme == "file":
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, _read_text, url_to_path(url))

        if scheme in ("http", "https"):
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self.http_transport,
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
                return response.text

        raise ValueError(f"Unsupported chunk URL: {url}")

    def execute(self, source: str, url: str, namespace: dict[str, Any]) -> ModuleType:
        """Evaluate chunk source into a new module seeded with ``namespace``."""
        name = module_name(url)
        origin = url_to_path(url) if url.startswith("file:") else url

        spec = importlib.util.spec_from_loader(name, loader=None, origin=origin)
        module = importlib.util.module_from_spec(spec)
        module.__file__ = origin
        module.__dict__.update(namespace)

        code = compile(source, origin, "exec")
        exec(code, module.__dict__)

        logger.debug("Chunk evaluated", module=name, url=url)
        return module

    async def __call__(self, url: str, namespace: dict[str, Any]) -> ModuleType:
        source = await self.fetch(url)
        return self.execute(source, url, namespace)
