"""
Hotwire - Hot Module Replacement for Python

Main entry point for the development server.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI

from hotwire.core.config import HotwireConfig, get_config, set_config
from hotwire.server.app import create_dev_app


# Configure structured logging
def setup_logging(log_level: str = "INFO", log_format: str = "text") -> None:
    """Configure structured logging."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if log_format == "json"
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger(__name__)


def create_app(config: Optional[HotwireConfig] = None) -> FastAPI:
    """
    Create the dev server application from configuration.

    Args:
        config: Optional configuration override

    Returns:
        Configured FastAPI application
    """
    if config:
        set_config(config)
    else:
        config = get_config()

    setup_logging(config.monitoring.log_level.value, config.monitoring.log_format)

    return create_dev_app(config.server.root, config=config.server)


def run_server(config: Optional[HotwireConfig] = None) -> None:
    """
    Run the dev server with uvicorn.

    Args:
        config: Optional configuration override
    """
    if config:
        set_config(config)
    else:
        config = get_config()

    server = config.server
    logger.info(
        "Starting Dev Server",
        url=f"http://{server.host}:{server.port}{server.url}",
        root=str(server.root.resolve()),
    )

    uvicorn.run(
        "hotwire.main:create_app",
        factory=True,
        host=server.host,
        port=server.port,
        ws_ping_interval=config.transport.keepalive_interval,
        ws_ping_timeout=config.transport.keepalive_interval,
        log_level=config.monitoring.log_level.value.lower(),
    )


if __name__ == "__main__":
    from hotwire.cli import main

    main(["serve", *sys.argv[1:]])
