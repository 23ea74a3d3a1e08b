"""Immutable domain model for SimpleFIN responses.

This module defines the entities returned by a SimpleFIN server and their
strict JSON parsers:

- BridgeInfo: Protocol versions reported by ``/info``
- Organization: Institution that owns an account
- Transaction: A posted or pending transaction
- Account: An account with its balance and transactions
- AccountSet: Root object of the ``/accounts`` response

Every ``from_json`` rejects structural violations with DataFormatError; a
single malformed field fails the whole parse. ``to_json`` is the inverse:
``Entity.from_json(entity.to_json()) == entity``.

Money is held as :class:`decimal.Decimal` and serialized as plain
positional text with its scale kept (``1E+2`` is written ``100``).
Timestamps are UTC datetimes with whole-second resolution and travel as
Unix epoch seconds.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from types import MappingProxyType
from typing import Any
from urllib.parse import urlsplit

from simplefin.core.decoding import (
    decimal_text,
    expect_list,
    expect_mapping,
    expect_string,
    optional_string,
    parse_datetime,
    parse_decimal,
)
from simplefin.core.exceptions import DataFormatError
from simplefin.core.timeutils import to_epoch_seconds


def _freeze_extra(extra: Mapping[str, Any] | None) -> Mapping[str, Any] | None:
    if extra is None:
        return None
    return MappingProxyType(dict(extra))


def _first_present(*values: str | None) -> str:
    return next(value for value in values if value is not None)


def _parse_extra(json: Mapping[str, Any], message: str) -> dict[str, Any] | None:
    value = json.get("extra")
    if value is None:
        return None
    return dict(expect_mapping(value, message, field="extra"))


def _check_uri(text: str, key: str) -> str:
    try:
        urlsplit(text).port
    except ValueError as error:
        raise DataFormatError(f'"{key}" must be a valid URI.', field=key, cause=error) from error
    return text


@dataclass(frozen=True)
class BridgeInfo:
    """Protocol versions supported by a SimpleFIN Bridge, in server order."""

    versions: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "versions", tuple(self.versions))

    @classmethod
    def from_json(cls, json: Mapping[str, Any]) -> "BridgeInfo":
        raw_versions = expect_list(
            json.get("versions"),
            'Expected "versions" to be a list in bridge info response.',
            field="versions",
        )
        versions = []
        for version in raw_versions:
            if not isinstance(version, str):
                raise DataFormatError(
                    f"Versions must be strings. Found {version!r}", field="versions"
                )
            versions.append(version)
        return cls(versions=tuple(versions))

    def to_json(self) -> dict[str, Any]:
        return {"versions": list(self.versions)}


@dataclass(frozen=True)
class Organization:
    """Institution that owns a SimpleFIN account.

    Attributes:
        sfin_url: Bridge URL for the organization
        domain: Domain name of the organization, if reported
        name: Human-friendly name, if reported
        url: Public website, if reported
        id: Provider-assigned identifier, if reported
    """

    sfin_url: str
    domain: str | None = None
    name: str | None = None
    url: str | None = None
    id: str | None = None

    @classmethod
    def from_json(cls, json: Mapping[str, Any]) -> "Organization":
        """Parse an ``org`` object.

        ``sfin-url`` is required and, like ``url`` when present, must be a
        string that parses as a URI; relative references are accepted.
        ``domain``, ``name`` and ``id`` are read leniently: a value of the
        wrong type is treated as absent.
        """
        sfin_url = _check_uri(expect_string(json, "sfin-url"), "sfin-url")

        url = json.get("url")
        if url is not None:
            if not isinstance(url, str):
                raise DataFormatError('"url" must be a string when present.', field="url")
            _check_uri(url, "url")

        return cls(
            sfin_url=sfin_url,
            domain=optional_string(json, "domain"),
            name=optional_string(json, "name"),
            url=url,
            id=optional_string(json, "id"),
        )

    def to_json(self) -> dict[str, Any]:
        json: dict[str, Any] = {}
        if self.domain is not None:
            json["domain"] = self.domain
        json["sfin-url"] = self.sfin_url
        if self.name is not None:
            json["name"] = self.name
        if self.url is not None:
            json["url"] = self.url
        if self.id is not None:
            json["id"] = self.id
        return json

    @property
    def key(self) -> str:
        """Identity used to de-duplicate organizations across accounts."""
        return _first_present(self.id, self.domain, self.sfin_url)

    @property
    def display_name(self) -> str:
        return _first_present(self.name, self.domain, self.id, self.sfin_url)


@dataclass(frozen=True)
class Transaction:
    """A single transaction within an account.

    Attributes:
        id: Transaction identifier
        posted: When the transaction posted (UTC, whole seconds)
        amount: Exact monetary amount; negative for debits
        description: Provider-supplied description
        transacted_at: When the transaction happened, if reported
        pending: Whether the transaction is still pending
        extra: Read-only provider metadata, passed through unvalidated
    """

    id: str
    posted: datetime
    amount: Decimal
    description: str
    transacted_at: datetime | None = None
    pending: bool = False
    extra: Mapping[str, Any] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "extra", _freeze_extra(self.extra))

    @classmethod
    def from_json(cls, json: Mapping[str, Any]) -> "Transaction":
        transaction_id = expect_string(json, "id")
        posted = parse_datetime(json.get("posted"), "posted")
        amount = parse_decimal(json.get("amount"), "amount")
        description = expect_string(json, "description")
        transacted_at = (
            parse_datetime(json["transacted_at"], "transacted_at")
            if "transacted_at" in json
            else None
        )

        pending_value = json.get("pending")
        if pending_value is None:
            pending = False
        elif isinstance(pending_value, bool):
            pending = pending_value
        elif isinstance(pending_value, (int, float, Decimal)):
            pending = pending_value != 0
        else:
            raise DataFormatError('"pending" must be a boolean when present.', field="pending")

        extra = _parse_extra(json, 'Transaction "extra" must be an object when present.')

        return cls(
            id=transaction_id,
            posted=posted,
            amount=amount,
            description=description,
            transacted_at=transacted_at,
            pending=pending,
            extra=extra,
        )

    def to_json(self) -> dict[str, Any]:
        json: dict[str, Any] = {
            "id": self.id,
            "posted": to_epoch_seconds(self.posted),
            "amount": decimal_text(self.amount),
            "description": self.description,
        }
        if self.transacted_at is not None:
            json["transacted_at"] = to_epoch_seconds(self.transacted_at)
        if self.pending:
            json["pending"] = True
        if self.extra is not None:
            json["extra"] = dict(self.extra)
        return json


@dataclass(frozen=True)
class Account:
    """A financial account exposed by a SimpleFIN server.

    Attributes:
        org: Organization that owns the account
        id: Account identifier assigned by the provider
        name: Human-friendly account name
        currency: ISO-4217 currency code (not validated)
        balance: Current posted balance
        balance_date: When the balance was last refreshed (UTC)
        available_balance: Provider-reported available balance, if any
        transactions: Transactions in server order
        extra: Read-only provider metadata, passed through unvalidated
    """

    org: Organization
    id: str
    name: str
    currency: str
    balance: Decimal
    balance_date: datetime
    available_balance: Decimal | None = None
    transactions: tuple[Transaction, ...] = ()
    extra: Mapping[str, Any] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "transactions", tuple(self.transactions))
        object.__setattr__(self, "extra", _freeze_extra(self.extra))

    @classmethod
    def from_json(cls, json: Mapping[str, Any]) -> "Account":
        org_field = json.get("org")
        if not isinstance(org_field, Mapping):
            raise DataFormatError('Account is missing "org" object.', field="org")

        account_id = expect_string(json, "id")
        name = expect_string(json, "name")
        currency = expect_string(json, "currency")
        balance = parse_decimal(json.get("balance"), "balance")
        available_balance = (
            parse_decimal(json["available-balance"], "available-balance")
            if "available-balance" in json
            else None
        )
        balance_date = parse_datetime(json.get("balance-date"), "balance-date")

        transactions: list[Transaction] = []
        transactions_field = json.get("transactions")
        if transactions_field is not None:
            expect_list(
                transactions_field,
                'Account "transactions" must be a list when present.',
                field="transactions",
            )
            for transaction in transactions_field:
                if not isinstance(transaction, Mapping):
                    raise DataFormatError(
                        f"Each transaction must be an object. Found {transaction!r}",
                        field="transactions",
                    )
                transactions.append(Transaction.from_json(transaction))

        extra = _parse_extra(json, '"extra" must be an object.')

        return cls(
            org=Organization.from_json(org_field),
            id=account_id,
            name=name,
            currency=currency,
            balance=balance,
            available_balance=available_balance,
            balance_date=balance_date,
            transactions=tuple(transactions),
            extra=extra,
        )

    def to_json(self) -> dict[str, Any]:
        json: dict[str, Any] = {
            "org": self.org.to_json(),
            "id": self.id,
            "name": self.name,
            "currency": self.currency,
            "balance": decimal_text(self.balance),
        }
        if self.available_balance is not None:
            json["available-balance"] = decimal_text(self.available_balance)
        json["balance-date"] = to_epoch_seconds(self.balance_date)
        if self.transactions:
            json["transactions"] = [transaction.to_json() for transaction in self.transactions]
        if self.extra is not None:
            json["extra"] = dict(self.extra)
        return json


@dataclass(frozen=True)
class AccountSet:
    """Structured response of the SimpleFIN ``/accounts`` endpoint.

    ``server_messages`` holds the wire field ``errors``. Despite the name
    these are informational notices from the bridge (sync problems, rate
    limit warnings, ...) rather than failures, and should be shown to users.
    """

    server_messages: tuple[str, ...] = ()
    accounts: tuple[Account, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "server_messages", tuple(self.server_messages))
        object.__setattr__(self, "accounts", tuple(self.accounts))

    @classmethod
    def from_json(cls, json: Mapping[str, Any]) -> "AccountSet":
        errors_field = expect_list(
            json.get("errors"),
            'Expected "errors" to be a list in account set.',
            field="errors",
        )
        server_messages = []
        for message in errors_field:
            if not isinstance(message, str):
                raise DataFormatError(
                    f'Each item in "errors" must be a string. Found {message!r}',
                    field="errors",
                )
            server_messages.append(message)

        accounts_field = expect_list(
            json.get("accounts"),
            'Expected "accounts" to be a list in account set.',
            field="accounts",
        )
        accounts = []
        for account in accounts_field:
            if not isinstance(account, Mapping):
                raise DataFormatError(
                    f"Each account must be an object. Found {account!r}",
                    field="accounts",
                )
            accounts.append(Account.from_json(account))

        return cls(server_messages=tuple(server_messages), accounts=tuple(accounts))

    def to_json(self) -> dict[str, Any]:
        return {
            "errors": list(self.server_messages),
            "accounts": [account.to_json() for account in self.accounts],
        }
