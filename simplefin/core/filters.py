"""Pure filtering and projection over account sets.

None of these functions mutate their input: filtering returns a new
AccountSet that shares the original's server messages unchanged.
"""

from collections.abc import Iterator
from typing import NamedTuple

from simplefin.core.models import Account, AccountSet, Organization, Transaction


class TransactionRow(NamedTuple):
    """A transaction together with the account it belongs to."""

    account: Account
    transaction: Transaction


def filter_by_organization_id(account_set: AccountSet, org_id: str) -> AccountSet:
    """Return a new AccountSet holding only accounts of organization ``org_id``.

    Accounts whose organization carries no id are always excluded. Server
    messages are carried through untouched.

    Example:
        >>> filtered = filter_by_organization_id(account_set, "org_123")
        >>> filtered.server_messages == account_set.server_messages
        True
    """
    return AccountSet(
        server_messages=account_set.server_messages,
        accounts=tuple(
            account
            for account in account_set.accounts
            if account.org.id is not None and account.org.id == org_id
        ),
    )


def unique_organizations(account_set: AccountSet) -> list[Organization]:
    """Collect the distinct organizations referenced by an account set.

    Organizations are identified by ``Organization.key`` (id, then domain,
    then SimpleFIN URL); the first occurrence wins. The result is sorted by
    display name.
    """
    organizations: dict[str, Organization] = {}
    for account in account_set.accounts:
        organizations.setdefault(account.org.key, account.org)
    return sorted(organizations.values(), key=lambda org: org.display_name)


def iter_transactions(account_set: AccountSet) -> Iterator[TransactionRow]:
    """Yield every transaction paired with its account, in server order."""
    for account in account_set.accounts:
        for transaction in account.transactions:
            yield TransactionRow(account, transaction)
