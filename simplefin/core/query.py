"""Query construction for the SimpleFIN ``/accounts`` endpoint.

Translates typed request intent into the wire query parameters:

- ``start-date`` / ``end-date``: Unix epoch seconds as decimal text
- ``pending``: ``1`` to include pending transactions
- ``balances-only``: ``1`` to omit transaction detail
- ``account``: repeated once per requested account id

An empty result means the request carries no query string at all.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from simplefin.core.exceptions import InvalidArgumentError
from simplefin.core.timeutils import as_utc, to_epoch_seconds


def validate_date_range(start_date: datetime | None, end_date: datetime | None) -> None:
    """Reject a range whose start falls strictly after its end.

    Raises:
        InvalidArgumentError: If both dates are given and start > end
    """
    if start_date is None or end_date is None:
        return
    if as_utc(start_date) > as_utc(end_date):
        raise InvalidArgumentError(
            "start_date must be before or equal to end_date.",
            context={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
        )


@dataclass(frozen=True)
class AccountsQuery:
    """Typed request for the ``/accounts`` endpoint.

    Example:
        >>> AccountsQuery(include_pending=True, account_ids=("acc-1", "")).to_parameters()
        {'pending': '1', 'account': ['acc-1']}
    """

    start_date: datetime | None = None
    end_date: datetime | None = None
    include_pending: bool = False
    account_ids: tuple[str, ...] = ()
    balances_only: bool = False

    def __post_init__(self) -> None:
        validate_date_range(self.start_date, self.end_date)
        object.__setattr__(self, "account_ids", tuple(self.account_ids))

    def to_parameters(self) -> dict[str, str | list[str]]:
        parameters: dict[str, str | list[str]] = {}
        if self.start_date is not None:
            parameters["start-date"] = str(to_epoch_seconds(self.start_date))
        if self.end_date is not None:
            parameters["end-date"] = str(to_epoch_seconds(self.end_date))
        if self.include_pending:
            parameters["pending"] = "1"
        if self.balances_only:
            parameters["balances-only"] = "1"
        accounts = [account_id for account_id in self.account_ids if account_id]
        if accounts:
            parameters["account"] = accounts
        return parameters


def build_accounts_query(
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    include_pending: bool = False,
    account_ids: Iterable[str] | None = None,
    balances_only: bool = False,
) -> dict[str, str | list[str]]:
    """Build the query parameters for an ``/accounts`` request.

    Raises:
        InvalidArgumentError: If ``start_date`` is after ``end_date``
    """
    return AccountsQuery(
        start_date=start_date,
        end_date=end_date,
        include_pending=include_pending,
        account_ids=tuple(account_ids or ()),
        balances_only=balances_only,
    ).to_parameters()
