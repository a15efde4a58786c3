# loadgen/transport.py
from __future__ import annotations
from typing import Protocol

import httpx

from loadgen.synth import OutboundRequest

CONNECT_TIMEOUT = 5.0


class Transport(Protocol):
    async def send(self, request: OutboundRequest) -> int:
        """Return the response status code; raise on transport failure."""
        ...


class HttpxTransport:
    """GET requests against ``base_url`` over a shared httpx.AsyncClient.

    The connection pool is sized to the admission gate so the pool itself
    never becomes a second queue.
    """

    def __init__(self, base_url: str, max_connections: int, timeout: float = 30.0,
                 transport: httpx.AsyncBaseTransport | None = None):
        limits = httpx.Limits(max_connections=max_connections,
                              max_keepalive_connections=max_connections)
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            limits=limits,
            timeout=httpx.Timeout(timeout, connect=CONNECT_TIMEOUT),
            transport=transport,
        )

    async def send(self, request: OutboundRequest) -> int:
        r = await self.client.get(request.path, headers=request.headers)
        return r.status_code

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "HttpxTransport":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()
