"""
Hotwire Fetch Transport

HTTP long-poll transport. Each poll is ``POST <manifest>?<token>``; the
server holds the request until the generation token moves (or a timeout
passes) and answers with the manifest plus a ``Location`` header naming
the next poll URL.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import urljoin, urlsplit

import httpx
import structlog

from hotwire.core.config import TransportConfig
from hotwire.hmr.runtime import RuntimeGraph
from hotwire.transports.base import ChangeTransport
from hotwire.utils.urls import strip_query

logger = structlog.get_logger(__name__)


class FetchTransport(ChangeTransport):
    """
    Long-poll transport for ``http:``/``https:`` manifests.

    A poll loop ends on a non-2xx response or a response without
    ``Location``; a later ``start()`` for the same base begins a new loop.
    Network failures are retried after the configured delay.
    """

    name = "fetch"

    def __init__(
        self,
        graph: RuntimeGraph,
        config: Optional[TransportConfig] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(graph, config)
        self.http_transport = http_transport

    def start(self, asset_url: str) -> bool:
        if self._closed:
            return False

        if urlsplit(asset_url).scheme not in ("http", "https"):
            return False

        base_url = strip_query(asset_url)
        if base_url in self._watches:
            return True

        self._watches.add(base_url)
        self._spawn(self._poll(base_url))

        logger.info("HMR transport started", transport=self.name, url=base_url)
        return True

    async def _poll(self, base_url: str) -> None:
        fetch_url = base_url + "?"
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.request_timeout, connect=10.0),
                transport=self.http_transport,
            ) as client:
                while not self._cancelled.is_set():
                    try:
                        response = await client.post(fetch_url)
                        if not response.is_success:
                            logger.warning(
                                "HMR poll rejected",
                                url=base_url,
                                status=response.status_code,
                            )
                            break

                        data = response.json()
                    except (httpx.HTTPError, ValueError) as e:
                        logger.debug("HMR poll failed", url=base_url, error=str(e))
                        await self._backoff()
                        continue

                    self._dispatch(data, base_url)

                    location = response.headers.get("Location")
                    if location is None:
                        logger.warning("HMR poll response without Location", url=base_url)
                        break

                    fetch_url = urljoin(fetch_url, location)
        finally:
            self._watches.discard(base_url)
