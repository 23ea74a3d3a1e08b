"""Protocol definitions for the HTTP transport used by the clients.

The clients never talk to the network directly. They hand a fully built
request to a Transport and interpret the status code and body it returns.
Retries, timeouts, redirects and cancellation all belong to the transport.

Protocols:
    - Transport: Issues one HTTP request and returns the complete response

All implementations must:
    - Support at least GET and POST
    - Return the full body as text together with the numeric status code
    - Propagate their own failures unchanged (no wrapping into SimplefinError)
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class TransportResponse:
    """Status code and body text of a completed HTTP request."""

    status_code: int
    body: str


class Transport(Protocol):
    """Protocol for HTTP transports.

    Example:
        >>> class StaticTransport:
        ...     async def request(self, method, uri, headers):
        ...         return TransportResponse(200, '{"versions": ["1.0"]}')
        ...
        ...     async def aclose(self):
        ...         pass
        ...
        >>> client = BridgeClient(transport=StaticTransport())
    """

    async def request(
        self, method: str, uri: str, headers: Mapping[str, str]
    ) -> TransportResponse:
        """Issue a single HTTP request.

        Args:
            method: HTTP method, e.g. "GET" or "POST"
            uri: Absolute request URI, query string included
            headers: Request headers

        Returns:
            The response status code and body text
        """
        ...

    async def aclose(self) -> None:
        """Release any connections held by the transport."""
        ...
