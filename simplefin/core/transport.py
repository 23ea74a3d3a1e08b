"""httpx-backed transport and transport ownership tracking."""

import logging
from collections.abc import Mapping

import httpx

from simplefin.core.protocols import Transport, TransportResponse
from simplefin.core.uris import redact_uri

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = httpx.Timeout(30.0, connect=10.0)


class HttpxTransport:
    """Transport that issues requests through an ``httpx.AsyncClient``.

    When no client is supplied one is created with DEFAULT_TIMEOUT, and
    ``aclose()`` closes it. A supplied client is left open for its owner.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: httpx.Timeout | float | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout if timeout is not None else DEFAULT_TIMEOUT
        )

    async def request(
        self, method: str, uri: str, headers: Mapping[str, str]
    ) -> TransportResponse:
        logger.debug("%s %s", method, redact_uri(uri))
        response = await self._client.request(method, uri, headers=dict(headers))
        logger.debug("%s %s -> %d", method, redact_uri(uri), response.status_code)
        return TransportResponse(status_code=response.status_code, body=response.text)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class TransportOwnership:
    """Record of a client's transport and whether the client must close it.

    The ownership flag is fixed at construction: a transport created by the
    client is owned, an injected one is not. ``release()`` closes an owned
    transport exactly once; an injected transport is never closed.
    """

    def __init__(self, transport: Transport | None = None) -> None:
        self._owns = transport is None
        self._transport: Transport | None = transport if transport is not None else HttpxTransport()
        self._released = False

    @property
    def owns(self) -> bool:
        return self._owns

    def get(self) -> Transport:
        """Return the transport, failing fast once it has been released."""
        if self._released or self._transport is None:
            raise RuntimeError("Transport has already been released.")
        return self._transport

    async def release(self) -> None:
        if self._released:
            return
        self._released = True
        transport, self._transport = self._transport, None
        if self._owns and transport is not None:
            await transport.aclose()
