"""
Hotwire Command Line Interface

Provides command-line access to the dev server, the generation marker
and a watching client.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from types import ModuleType
from typing import Any, Optional, Sequence
from urllib.parse import urlsplit

from hotwire.core.config import HotwireConfig, LogLevel, get_config


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="hotwire",
        description="Hotwire - Hot Module Replacement CLI",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Start the dev server")
    serve_parser.add_argument("--host", help="Host to bind to")
    serve_parser.add_argument("--port", type=int, help="Port to bind to")
    serve_parser.add_argument("--root", help="Build output directory")
    serve_parser.add_argument("--url", help="Mount point of the output directory")
    serve_parser.add_argument(
        "--log-level",
        choices=[level.value for level in LogLevel],
        help="Logging level",
    )

    # Stamp command
    stamp_parser = subparsers.add_parser("stamp", help="Publish a new generation token")
    stamp_parser.add_argument("dir", help="Build output directory")
    stamp_parser.add_argument("--token", help="Token to write (default: current time)")

    # Watch command
    watch_parser = subparsers.add_parser("watch", help="Follow an entry's manifest")
    watch_parser.add_argument("url", help="Entry or manifest URL, or a local path")
    watch_parser.add_argument("--websocket", action="store_true", help="Use WebSocket push")
    watch_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print chunk URLs instead of loading them",
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return

    from hotwire.main import setup_logging
    config = get_config()
    setup_logging(config.monitoring.log_level.value, config.monitoring.log_format)

    if args.command == "serve":
        from hotwire.main import run_server
        run_server(serve_config(args))

    elif args.command == "stamp":
        print(cmd_stamp(args.dir, args.token))

    elif args.command == "watch":
        try:
            asyncio.run(cmd_watch(args.url, config, args.websocket, args.dry_run))
        except KeyboardInterrupt:
            pass


def serve_config(args: argparse.Namespace) -> HotwireConfig:
    """Apply command-line overrides to the configured settings."""
    config = get_config()
    server = {
        key: value
        for key, value in (
            ("host", args.host),
            ("port", args.port),
            ("root", args.root),
            ("url", args.url),
        )
        if value is not None
    }

    update: dict[str, Any] = {}
    if server:
        update["server"] = config.server.model_validate({**config.server.model_dump(), **server})
    if args.log_level:
        update["monitoring"] = config.monitoring.model_copy(
            update={"log_level": LogLevel(args.log_level)}
        )

    return config.model_copy(update=update)


def cmd_stamp(directory: str, token: Optional[str] = None) -> str:
    """Write a fresh generation token for an output directory."""
    from hotwire.build.marker import GenerationMarker
    return GenerationMarker(Path(directory) / "assets").commit(token)


async def _print_chunk(url: str, namespace: dict[str, Any]) -> ModuleType:
    print(url)
    sys.stdout.flush()
    return ModuleType(url)


async def cmd_watch(
    url: str,
    config: HotwireConfig,
    websocket: bool = False,
    dry_run: bool = False,
) -> None:
    """Track one entry and load its chunks until interrupted."""
    from hotwire.client import HmrClient, default_transports
    from hotwire.hmr.runtime import RuntimeGraph
    from hotwire.utils.urls import path_to_url

    if not urlsplit(url).scheme:
        url = path_to_url(url)

    graph = RuntimeGraph(loader=_print_chunk if dry_run else None)
    transports = default_transports(graph, config=config.transport, websocket=websocket)

    async with HmrClient(graph, transports):
        graph.track(url)
        graph.freeze()
        await asyncio.Event().wait()


if __name__ == "__main__":
    main()
