"""Clients for the SimpleFIN Bridge and for credentialed account access.

Each client method issues exactly one HTTP request through the injected
Transport, checks the status code, and hands the body to the domain model
parsers. Nothing is cached and nothing is retried; transport failures
propagate unchanged.

Clients:
    - BridgeClient: ``/info`` and setup-token claiming
    - AccessClient: ``/accounts`` using access credentials

Example:
    >>> async with BridgeClient() as bridge:
    ...     credentials = await bridge.claim_access_credentials(setup_token)
    >>> async with AccessClient(credentials) as client:
    ...     account_set = await client.get_accounts(balances_only=True)
"""

import json
from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal
from typing import Any

from simplefin.core.credentials import AccessCredentials, SetupToken
from simplefin.core.exceptions import ApiError
from simplefin.core.models import AccountSet, BridgeInfo
from simplefin.core.protocols import Transport, TransportResponse
from simplefin.core.query import build_accounts_query
from simplefin.core.transport import TransportOwnership
from simplefin.core.uris import build_uri

DEFAULT_USER_AGENT = "simplefin-python/0.1.0"
DEFAULT_BRIDGE_ROOT_URL = "https://beta-bridge.simplefin.org/simplefin"


def build_headers(
    user_agent: str,
    accept: str = "application/json",
    authorization: str | None = None,
) -> dict[str, str]:
    """Build the standard request headers."""
    headers = {"User-Agent": user_agent, "Accept": accept}
    if authorization is not None:
        headers["Authorization"] = authorization
    return headers


def parse_json_object(
    response: TransportResponse, uri: str, error_context: str
) -> dict[str, Any]:
    """Decode a response body that must be a JSON object.

    Fractional numbers are decoded as Decimal so that monetary values never
    pass through a binary float.

    Raises:
        ApiError: If the body is not JSON or not a JSON object
    """
    try:
        decoded = json.loads(response.body, parse_float=Decimal)
    except ValueError as error:
        raise ApiError(
            uri=uri,
            status_code=response.status_code,
            response_body=response.body,
            message=f"{error_context} is not valid JSON: {error}",
            cause=error,
        ) from error

    if not isinstance(decoded, dict):
        raise ApiError(
            uri=uri,
            status_code=response.status_code,
            response_body=response.body,
            message=f"{error_context} is not valid JSON: Expected a JSON object.",
        )
    return decoded


class _ClientBase:
    """Transport ownership and async context management shared by clients."""

    def __init__(self, transport: Transport | None, user_agent: str) -> None:
        self._transport = TransportOwnership(transport)
        self.user_agent = user_agent

    async def aclose(self) -> None:
        """Release the transport if this client created it."""
        await self._transport.release()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


class BridgeClient(_ClientBase):
    """HTTP client for a SimpleFIN Bridge server.

    Args:
        root: Base URI of the bridge (defaults to the public beta bridge)
        transport: Transport to use; when omitted an HttpxTransport is
            created and closed by ``aclose()``
        user_agent: Value of the ``User-Agent`` header
    """

    def __init__(
        self,
        root: str = DEFAULT_BRIDGE_ROOT_URL,
        transport: Transport | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        super().__init__(transport, user_agent)
        self.root = root

    async def get_info(self) -> BridgeInfo:
        """Retrieve the protocol versions supported by the bridge.

        Raises:
            ApiError: On a non-200 status or a body that is not a JSON object
            DataFormatError: If the JSON does not describe bridge info
        """
        uri = build_uri(self.root, ["info"])
        response = await self._transport.get().request(
            "GET", uri, build_headers(self.user_agent)
        )
        if response.status_code != 200:
            raise ApiError(
                uri=uri,
                status_code=response.status_code,
                response_body=response.body,
                message="Failed to query bridge info.",
            )

        return BridgeInfo.from_json(parse_json_object(response, uri, "Bridge info response"))

    async def claim_access_credentials(self, setup_token: str) -> AccessCredentials:
        """Exchange a one-time setup token for durable access credentials.

        Raises:
            InvalidSetupTokenError: If the token cannot be decoded
            ApiError: On a non-200 status or an empty response body
            DataFormatError: If the returned access URL is malformed
        """
        token = SetupToken.parse(setup_token)
        response = await self._transport.get().request(
            "POST", token.claim_uri, build_headers(self.user_agent, accept="text/plain")
        )
        if response.status_code != 200:
            raise ApiError(
                uri=token.claim_uri,
                status_code=response.status_code,
                response_body=response.body,
                message="Failed to claim access URL.",
            )

        access_url = response.body.strip()
        if not access_url:
            raise ApiError(
                uri=token.claim_uri,
                status_code=response.status_code,
                response_body=response.body,
                message="Claim response did not include an access URL.",
            )
        return AccessCredentials.parse(access_url)


class AccessClient(_ClientBase):
    """Client that retrieves account data with SimpleFIN access credentials.

    Args:
        credentials: Parsed access credentials
        transport: Transport to use; when omitted an HttpxTransport is
            created and closed by ``aclose()``
        user_agent: Value of the ``User-Agent`` header
    """

    def __init__(
        self,
        credentials: AccessCredentials,
        transport: Transport | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        super().__init__(transport, user_agent)
        self.credentials = credentials

    async def get_accounts(
        self,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        include_pending: bool = False,
        account_ids: Iterable[str] | None = None,
        balances_only: bool = False,
    ) -> AccountSet:
        """Retrieve accounts and transactions.

        Args:
            start_date: Only include transactions on or after this instant
            end_date: Only include transactions before this instant
            include_pending: Ask the server to include pending transactions
            account_ids: Restrict the response to these account ids
            balances_only: Ask the server to omit transaction detail

        Raises:
            InvalidArgumentError: If start_date is after end_date (no request
                is issued)
            ApiError: On a non-200 status or a body that is not a JSON object
            DataFormatError: If the JSON does not describe an account set
        """
        query = build_accounts_query(
            start_date=start_date,
            end_date=end_date,
            include_pending=include_pending,
            account_ids=account_ids,
            balances_only=balances_only,
        )
        uri = self.credentials.endpoint_uri(["accounts"], query)

        response = await self._transport.get().request(
            "GET",
            uri,
            build_headers(
                self.user_agent,
                authorization=self.credentials.basic_auth_header_value,
            ),
        )
        if response.status_code != 200:
            raise ApiError(
                uri=uri,
                status_code=response.status_code,
                response_body=response.body,
                message="Failed to fetch accounts.",
            )

        return AccountSet.from_json(parse_json_object(response, uri, "Accounts response"))
