"""Conversion between datetimes and Unix epoch seconds.

SimpleFIN encodes every timestamp on the wire as whole seconds since the
Unix epoch. All datetimes produced here are timezone-aware and in UTC;
naive datetimes passed in are interpreted as UTC.
"""

from datetime import datetime, timedelta, timezone

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_SECOND = timedelta(seconds=1)


def to_epoch_seconds(value: datetime) -> int:
    """Convert a datetime to whole seconds since the Unix epoch.

    The sub-second component is dropped, so the result is the start of the
    second that ``value`` falls in, whatever its UTC offset.

    Example:
        >>> to_epoch_seconds(datetime(2021, 1, 1, tzinfo=timezone.utc))
        1609459200
    """
    return (as_utc(value).replace(microsecond=0) - EPOCH) // _ONE_SECOND


def from_epoch_seconds(seconds: int) -> datetime:
    """Return the UTC datetime exactly ``seconds`` seconds after the epoch.

    Example:
        >>> from_epoch_seconds(1609459200).isoformat()
        '2021-01-01T00:00:00+00:00'
    """
    return EPOCH + timedelta(seconds=seconds)


def as_utc(value: datetime) -> datetime:
    """Return ``value`` converted to UTC, reading naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat_utc(value: datetime) -> str:
    """Render a datetime as ISO 8601 in UTC with a trailing ``Z``."""
    return as_utc(value).isoformat().replace("+00:00", "Z")
