"""
Hotwire Dev Server

FastAPI application serving build output together with the two network
change-notification endpoints:
- ``POST <url><manifest>.json?<token>``: long-poll, answered when the
  generation token moves past ``<token>``
- ``WS <url><manifest>.json`` (subprotocol ``hmr``): manifest pushed on
  every generation
- ``GET``/``HEAD``: static files, held briefly while a rebuild is running
"""

from __future__ import annotations

import asyncio
import json
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Optional

import structlog
from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import FileResponse, JSONResponse, Response

from hotwire.core.config import ServerConfig
from hotwire.locking import LockCoordinator

logger = structlog.get_logger(__name__)

IMMUTABLE = "public, max-age=31536000, immutable"


def confine(root: Path, path: str) -> Optional[Path]:
    """Resolve ``path`` below ``root``; None if it would escape."""
    target = (root / path.lstrip("/")).resolve()
    if target != root and root not in target.parents:
        return None
    return target


def _read_text(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8")
    except OSError:
        return None


async def wait_for_token(
    coordinator: LockCoordinator,
    directory: Path,
    token: str,
    timeout: float,
) -> str:
    """Wait for a token newer than ``token``; "" on timeout."""
    try:
        return await asyncio.wait_for(coordinator.watch(directory, token), timeout)
    except asyncio.TimeoutError:
        return ""


async def _drain(websocket: WebSocket) -> None:
    """Consume client frames until the socket goes away."""
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                return
    except (WebSocketDisconnect, RuntimeError):
        return


def create_dev_app(
    root: str | os.PathLike[str],
    url: Optional[str] = None,
    coordinator: Optional[LockCoordinator] = None,
    config: Optional[ServerConfig] = None,
) -> FastAPI:
    """
    Create the dev server application.

    Args:
        root: Build output directory
        url: Mount point of the output directory (defaults to ``config.url``)
        coordinator: Shared lock coordinator (closed with the app)
        config: Server settings; ``root`` and ``url`` override its fields

    Returns:
        Configured FastAPI application
    """
    overrides: dict[str, Any] = {"root": Path(root)}
    if url is not None:
        overrides["url"] = url
    config = ServerConfig.model_validate({**(config or ServerConfig()).model_dump(), **overrides})

    root_dir = config.root.resolve()
    lock_dir = root_dir / "assets"
    coordinator = coordinator or LockCoordinator()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting dev server", root=str(root_dir), url=config.url)
        yield
        coordinator.close()
        logger.info("Dev server stopped")

    app = FastAPI(
        title="Hotwire Dev Server",
        description="Build output with HMR change notification",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.coordinator = coordinator
    app.state.config = config

    route = config.url + "{path:path}"

    @app.post(route)
    async def poll(path: str, request: Request) -> Response:
        """Long-poll for the next manifest of an entry."""
        file = confine(root_dir, path)
        if file is None or file.suffix != ".json":
            raise HTTPException(status_code=404, detail="Not Found")

        token = request.url.query
        data: Any = {}

        result = await wait_for_token(coordinator, lock_dir, token, config.poll_timeout)
        if result:
            token = result
            content = await asyncio.get_running_loop().run_in_executor(None, _read_text, file)
            if content is not None:
                try:
                    data = json.loads(content)
                except ValueError:
                    data = {}

        logger.debug("Poll answered", file=str(file), token=token)
        return JSONResponse(
            data,
            headers={"Location": f"?{token}", "Connection": "close"},
        )

    @app.websocket(route)
    async def push(websocket: WebSocket, path: str) -> None:
        """Push the manifest of an entry on every generation."""
        file = confine(root_dir, path)
        protocols = websocket.scope.get("subprotocols") or []
        if file is None or config.ws_protocol not in protocols:
            await websocket.close(code=1008)
            return

        await websocket.accept(subprotocol=config.ws_protocol)
        logger.info("HMR socket connected", file=str(file))

        loop = asyncio.get_running_loop()
        disconnected = loop.create_task(_drain(websocket))
        token = ""
        try:
            while True:
                watch = loop.create_task(coordinator.watch(lock_dir, token))
                done, _ = await asyncio.wait(
                    {watch, disconnected},
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if watch not in done:
                    watch.cancel()
                    break

                token = watch.result()
                if not token:
                    await websocket.close()
                    break

                content = await loop.run_in_executor(None, _read_text, file)
                if content is not None:
                    await websocket.send_text(content)
        except (WebSocketDisconnect, OSError):
            pass
        finally:
            disconnected.cancel()
            logger.info("HMR socket disconnected", file=str(file))

    @app.api_route(route, methods=["GET", "HEAD"])
    async def static(path: str, request: Request) -> Response:
        """Serve build output once no rebuild is in progress."""
        await wait_for_token(coordinator, lock_dir, "", config.static_wait)

        file = confine(root_dir, path)
        if file is not None and file.is_dir():
            file = file / "index.html"
        if file is None or not file.is_file():
            raise HTTPException(status_code=404, detail="Not Found")

        headers = {}
        if "/assets/" in request.url.path:
            headers["Cache-Control"] = IMMUTABLE

        return FileResponse(file, headers=headers)

    return app
