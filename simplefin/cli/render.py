"""Text, JSON and CSV rendering of accounts, organizations and transactions.

Text output is Markdown-flavoured: an optional "# Server Messages" section
followed by one "# Heading" block per record. JSON output is indented and
wrapped as ``{"server-messages": [...], "data": ...}`` only when the bridge
returned messages. CSV output is built with polars; every column is a
string column so decimal amounts keep their exact textual form, and the
server messages are joined into the first data row only.
"""

import json
from collections.abc import Iterable, Sequence
from typing import Any

import polars as pl

from simplefin.core.decoding import decimal_text
from simplefin.core.filters import TransactionRow
from simplefin.core.models import Account, Organization
from simplefin.core.timeutils import isoformat_utc

OUTPUT_FORMATS = ("text", "json", "csv")

ACCOUNT_CSV_COLUMNS = [
    "account_id",
    "account_name",
    "currency",
    "balance",
    "available_balance",
    "balance_date",
    "org_id",
    "server_messages",
]
ORGANIZATION_CSV_COLUMNS = ["id", "name", "domain", "url", "sfin_url", "server_messages"]
TRANSACTION_CSV_COLUMNS = [
    "account_id",
    "transaction_id",
    "posted",
    "amount",
    "description",
    "pending",
    "transacted_at",
    "server_messages",
]


def parse_output_format(value: str | None) -> str:
    """Normalize an output format name.

    Raises:
        ValueError: If the format is not one of OUTPUT_FORMATS
    """
    normalized = (value or "text").strip().lower()
    if normalized not in OUTPUT_FORMATS:
        raise ValueError(
            f'Unknown output format "{value}". Choose one of: {", ".join(OUTPUT_FORMATS)}.'
        )
    return normalized


def _drop_empty(json_obj: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in json_obj.items() if value is not None and value != ""}


def account_summary_json(account: Account) -> dict[str, Any]:
    available = account.available_balance if account.available_balance is not None else account.balance
    return _drop_empty({
        "id": account.id,
        "name": account.name,
        "balance": decimal_text(account.balance),
        "available-balance": decimal_text(available),
        "currency": account.currency,
        "balance-date": isoformat_utc(account.balance_date),
        "org-id": account.org.id,
    })


def organization_json(organization: Organization) -> dict[str, Any]:
    return _drop_empty({
        "id": organization.id,
        "name": organization.name,
        "domain": organization.domain,
        "url": organization.url,
        "sfin-url": organization.sfin_url,
    })


def transaction_json(row: TransactionRow) -> dict[str, Any]:
    transaction = row.transaction
    json_obj: dict[str, Any] = {
        "account-id": row.account.id,
        "transaction-id": transaction.id,
        "posted": isoformat_utc(transaction.posted),
        "amount": decimal_text(transaction.amount),
        "description": transaction.description,
        "pending": transaction.pending,
    }
    if transaction.transacted_at is not None:
        json_obj["transacted-at"] = isoformat_utc(transaction.transacted_at)
    return json_obj


def wrap_with_server_messages(data: Any, server_messages: Sequence[str]) -> Any:
    if not server_messages:
        return data
    return {"server-messages": list(server_messages), "data": data}


def to_json_text(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def _server_messages_lines(server_messages: Sequence[str]) -> list[str]:
    if not server_messages:
        return []
    return ["# Server Messages", *(f"- {message}" for message in server_messages), ""]


def _join_lines(lines: list[str]) -> str:
    return "\n".join(lines).rstrip("\n")


def _csv(columns: list[str], rows: list[list[str]], server_messages: Sequence[str]) -> str:
    """Render rows as CSV with the server messages on the first row only."""
    if rows:
        rows[0].append("; ".join(server_messages))
        for row in rows[1:]:
            row.append("")
    # empty cells are written as nulls so they come out unquoted
    cells = [[value or None for value in row] for row in rows]
    schema = {column: pl.Utf8 for column in columns}
    frame = pl.DataFrame(cells, schema=schema, orient="row") if cells else pl.DataFrame(schema=schema)
    return frame.write_csv().rstrip("\n")


def accounts_text(accounts: Iterable[Account], server_messages: Sequence[str]) -> str:
    lines = _server_messages_lines(server_messages)
    for account in accounts:
        lines.extend([
            f"# Account: {account.name}",
            f"- ID: {account.id}",
            f"- Balance: {decimal_text(account.balance)}",
            f"- Currency: {account.currency}",
            f"- Balance Date: {isoformat_utc(account.balance_date)}",
        ])
        if account.available_balance is not None:
            lines.append(f"- Available Balance: {decimal_text(account.available_balance)}")
        lines.extend([f"- Organization ID: {account.org.id or ''}", ""])
    return _join_lines(lines)


def organizations_text(organizations: Iterable[Organization], server_messages: Sequence[str]) -> str:
    lines = _server_messages_lines(server_messages)
    for org in organizations:
        lines.extend([
            f"# Organization: {org.display_name}",
            f"- ID: {org.id or ''}",
            f"- Domain: {org.domain or ''}",
            f"- URL: {org.url or ''}",
            f"- SimpleFIN URL: {org.sfin_url}",
            "",
        ])
    return _join_lines(lines)


def transactions_text(rows: Iterable[TransactionRow], server_messages: Sequence[str]) -> str:
    lines = _server_messages_lines(server_messages)
    for account, transaction in rows:
        lines.extend([
            f"# Transaction: {transaction.description}",
            f"- Account ID: {account.id}",
            f"- Transaction ID: {transaction.id}",
            f"- Amount: {decimal_text(transaction.amount)}",
            f"- Posted: {isoformat_utc(transaction.posted)}",
        ])
        if transaction.transacted_at is not None:
            lines.append(f"- Transacted At: {isoformat_utc(transaction.transacted_at)}")
        lines.extend([f"- Pending: {'yes' if transaction.pending else 'no'}", ""])
    return _join_lines(lines)


def accounts_csv(accounts: Iterable[Account], server_messages: Sequence[str]) -> str:
    rows = [
        [
            account.id,
            account.name,
            account.currency,
            decimal_text(account.balance),
            "" if account.available_balance is None else decimal_text(account.available_balance),
            isoformat_utc(account.balance_date),
            account.org.id or "",
        ]
        for account in accounts
    ]
    return _csv(ACCOUNT_CSV_COLUMNS, rows, server_messages)


def organizations_csv(organizations: Iterable[Organization], server_messages: Sequence[str]) -> str:
    rows = [
        [org.id or "", org.name or "", org.domain or "", org.url or "", org.sfin_url]
        for org in organizations
    ]
    return _csv(ORGANIZATION_CSV_COLUMNS, rows, server_messages)


def transactions_csv(rows: Iterable[TransactionRow], server_messages: Sequence[str]) -> str:
    csv_rows = [
        [
            account.id,
            transaction.id,
            isoformat_utc(transaction.posted),
            decimal_text(transaction.amount),
            transaction.description,
            "true" if transaction.pending else "false",
            "" if transaction.transacted_at is None else isoformat_utc(transaction.transacted_at),
        ]
        for account, transaction in rows
    ]
    return _csv(TRANSACTION_CSV_COLUMNS, csv_rows, server_messages)


def render_accounts(
    accounts: Sequence[Account], server_messages: Sequence[str], output_format: str
) -> str:
    if output_format == "json":
        return to_json_text(
            wrap_with_server_messages([account_summary_json(a) for a in accounts], server_messages)
        )
    if output_format == "csv":
        return accounts_csv(accounts, server_messages)
    return accounts_text(accounts, server_messages)


def render_organizations(
    organizations: Sequence[Organization], server_messages: Sequence[str], output_format: str
) -> str:
    """Render organizations; a single organization is emitted as a JSON object."""
    if output_format == "json":
        data: Any = [organization_json(org) for org in organizations]
        if len(data) == 1:
            data = data[0]
        return to_json_text(wrap_with_server_messages(data, server_messages))
    if output_format == "csv":
        return organizations_csv(organizations, server_messages)
    return organizations_text(organizations, server_messages)


def render_transactions(
    rows: Sequence[TransactionRow], server_messages: Sequence[str], output_format: str
) -> str:
    if output_format == "json":
        return to_json_text(
            wrap_with_server_messages([transaction_json(row) for row in rows], server_messages)
        )
    if output_format == "csv":
        return transactions_csv(rows, server_messages)
    return transactions_text(rows, server_messages)
