"""Client library for the SimpleFIN account-aggregation protocol.

Exchange a setup token for access credentials, query bridge metadata, and
retrieve accounts and transactions as an immutable, validated model.
"""

from simplefin.core.clients import (
    DEFAULT_BRIDGE_ROOT_URL,
    DEFAULT_USER_AGENT,
    AccessClient,
    BridgeClient,
)
from simplefin.core.credentials import AccessCredentials, SetupToken
from simplefin.core.exceptions import (
    ApiError,
    DataFormatError,
    InvalidArgumentError,
    InvalidSetupTokenError,
    SimplefinError,
)
from simplefin.core.filters import (
    TransactionRow,
    filter_by_organization_id,
    iter_transactions,
    unique_organizations,
)
from simplefin.core.models import (
    Account,
    AccountSet,
    BridgeInfo,
    Organization,
    Transaction,
)
from simplefin.core.protocols import Transport, TransportResponse
from simplefin.core.transport import HttpxTransport

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_BRIDGE_ROOT_URL",
    "DEFAULT_USER_AGENT",
    "AccessClient",
    "AccessCredentials",
    "Account",
    "AccountSet",
    "ApiError",
    "BridgeClient",
    "BridgeInfo",
    "DataFormatError",
    "HttpxTransport",
    "InvalidArgumentError",
    "InvalidSetupTokenError",
    "Organization",
    "SetupToken",
    "SimplefinError",
    "Transaction",
    "TransactionRow",
    "Transport",
    "TransportResponse",
    "filter_by_organization_id",
    "iter_transactions",
    "unique_organizations",
]
