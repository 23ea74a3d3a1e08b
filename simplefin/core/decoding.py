"""Validation primitives for loosely-typed JSON and token text.

Every primitive comes in two forms:

- ``decode_*`` returns a :class:`Decoded` result holding either the typed
  value or the error describing why the input was rejected.
- The raising form (``expect_string``, ``parse_decimal``, ...) unwraps that
  result and raises the error.

Entity parsers in :mod:`simplefin.core.models` are composed from the
raising forms. JSON bodies are expected to be decoded with
``parse_float=Decimal`` so that fractional numbers never pass through a
binary float, but plain floats are accepted as well.
"""

import base64
import binascii
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from typing import Any, Generic, TypeVar
from urllib.parse import urlsplit

from simplefin.core.exceptions import (
    DataFormatError,
    InvalidSetupTokenError,
    SimplefinError,
)
from simplefin.core.timeutils import from_epoch_seconds

T = TypeVar("T")

_WHITESPACE = re.compile(r"\s+")
_INTEGER_TEXT = re.compile(r"[+-]?\d+")
_DECIMAL_TEXT = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")


@dataclass(frozen=True)
class Decoded(Generic[T]):
    """Outcome of a single decode step.

    Exactly one of ``value`` and ``error`` is meaningful: a result is
    successful when ``error`` is None.

    Example:
        >>> result = decode_epoch_seconds("1609459200", "posted")
        >>> result.ok
        True
        >>> result.unwrap()
        1609459200
    """

    value: T | None = None
    error: SimplefinError | None = None

    @classmethod
    def success(cls, value: T) -> "Decoded[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: SimplefinError) -> "Decoded[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the decoded value or raise the recorded error."""
        if self.error is not None:
            raise self.error from self.error.cause
        return self.value  # type: ignore[return-value]


def _is_number(value: Any) -> bool:
    # bool is an int subclass but JSON booleans are never numbers here
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def decode_string(obj: Mapping[str, Any], key: str) -> Decoded[str]:
    value = obj.get(key)
    if isinstance(value, str):
        return Decoded.success(value)
    return Decoded.failure(DataFormatError(f'Expected "{key}" to be a string.', field=key))


def decode_decimal(value: Any, field_name: str) -> Decoded[Decimal]:
    """Decode a monetary value into an exact :class:`~decimal.Decimal`.

    Accepts Decimal values, finite numbers (through their canonical decimal
    text) and decimal strings. ``None`` is reported as a missing field.
    """
    if value is None:
        return Decoded.failure(
            DataFormatError(f'Field "{field_name}" is required.', field=field_name)
        )

    if isinstance(value, str):
        # Decimal() also takes underscores, padding and NaN/Infinity spellings
        if not _DECIMAL_TEXT.fullmatch(value):
            return Decoded.failure(
                DataFormatError(
                    f'"{field_name}" must be a decimal string.',
                    field=field_name,
                    value=value,
                )
            )
        try:
            parsed = Decimal(value)
        except InvalidOperation as error:
            return Decoded.failure(
                DataFormatError(
                    f'"{field_name}" must be a decimal string.',
                    field=field_name,
                    cause=error,
                    value=value,
                )
            )
    elif _is_number(value):
        # repr() is the shortest text that round-trips the float
        parsed = Decimal(repr(value)) if isinstance(value, float) else Decimal(value)
    else:
        return Decoded.failure(
            DataFormatError(
                f'"{field_name}" must be provided as a string or number.',
                field=field_name,
            )
        )

    if not parsed.is_finite():
        return Decoded.failure(
            DataFormatError(
                f'"{field_name}" must be a finite decimal value.',
                field=field_name,
                value=str(value),
            )
        )
    return Decoded.success(parsed)


def decode_epoch_seconds(value: Any, field_name: str) -> Decoded[int]:
    """Decode a Unix timestamp given as an integer, number or integer string.

    Fractional numbers are floored toward negative infinity.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return Decoded.success(value)

    if isinstance(value, Decimal) and value.is_finite():
        return Decoded.success(int(value.to_integral_value(rounding=ROUND_FLOOR)))
    if isinstance(value, float) and math.isfinite(value):
        return Decoded.success(math.floor(value))

    if isinstance(value, str):
        text = value.strip()
        if _INTEGER_TEXT.fullmatch(text):
            try:
                return Decoded.success(int(text))
            except ValueError as error:
                # int() refuses digit strings past sys.get_int_max_str_digits()
                return Decoded.failure(
                    DataFormatError(
                        f'"{field_name}" is too large to be a Unix timestamp.',
                        field=field_name,
                        cause=error,
                    )
                )
        return Decoded.failure(
            DataFormatError(
                f'"{field_name}" must be an integer Unix timestamp.',
                field=field_name,
                value=value,
            )
        )

    return Decoded.failure(
        DataFormatError(
            f'"{field_name}" must be provided as an integer Unix timestamp.',
            field=field_name,
        )
    )


def decode_datetime(value: Any, field_name: str) -> Decoded[datetime]:
    seconds = decode_epoch_seconds(value, field_name)
    if not seconds.ok:
        return Decoded.failure(seconds.error)  # type: ignore[arg-type]
    try:
        return Decoded.success(from_epoch_seconds(seconds.value))  # type: ignore[arg-type]
    except OverflowError as error:
        return Decoded.failure(
            DataFormatError(
                f'"{field_name}" is outside the supported date range.',
                field=field_name,
                cause=error,
            )
        )


def decode_uri(text: str, context: str, error_type: type[SimplefinError] = DataFormatError) -> Decoded[str]:
    """Check that ``text`` parses as a URI carrying a scheme and a host.

    The text itself is returned unchanged on success.
    """
    try:
        parts = urlsplit(text)
        # accessing .port validates it
        parts.port
    except ValueError as error:
        return Decoded.failure(error_type(f"{context} is not a valid URI.", cause=error))

    if not parts.scheme or not parts.hostname:
        return Decoded.failure(error_type(f"{context} must include a scheme and host."))
    return Decoded.success(text)


def decode_base64_with_fallback(text: str) -> Decoded[bytes]:
    """Decode standard Base64, falling back to the URL-safe alphabet.

    Whitespace is removed and missing padding is restored before decoding.
    """
    normalized = _WHITESPACE.sub("", text)
    normalized += "=" * (-len(normalized) % 4)

    try:
        return Decoded.success(base64.b64decode(normalized, validate=True))
    except (binascii.Error, ValueError):
        pass

    try:
        return Decoded.success(base64.b64decode(normalized, altchars=b"-_", validate=True))
    except (binascii.Error, ValueError) as error:
        return Decoded.failure(InvalidSetupTokenError("Token is not valid Base64.", cause=error))


def expect_string(obj: Mapping[str, Any], key: str) -> str:
    """Return ``obj[key]``, raising DataFormatError unless it is a string."""
    return decode_string(obj, key).unwrap()


def parse_decimal(value: Any, field_name: str) -> Decimal:
    """Parse a monetary value, raising DataFormatError when invalid.

    Example:
        >>> parse_decimal("-50.00", "amount")
        Decimal('-50.00')
    """
    return decode_decimal(value, field_name).unwrap()


def parse_epoch_seconds(value: Any, field_name: str) -> int:
    return decode_epoch_seconds(value, field_name).unwrap()


def parse_datetime(value: Any, field_name: str) -> datetime:
    """Parse epoch seconds into a UTC datetime."""
    return decode_datetime(value, field_name).unwrap()


def parse_and_validate_uri(text: str, context: str) -> str:
    return decode_uri(text, context).unwrap()


def decode_base64(text: str) -> bytes:
    """Raising form of :func:`decode_base64_with_fallback`."""
    return decode_base64_with_fallback(text).unwrap()


def expect_mapping(value: Any, message: str, field: str | None = None) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise DataFormatError(message, field=field)
    return value


def expect_list(value: Any, message: str, field: str | None = None) -> list[Any]:
    if not isinstance(value, list):
        raise DataFormatError(message, field=field)
    return value


def optional_string(obj: Mapping[str, Any], key: str) -> str | None:
    """Return ``obj[key]`` when it is a string, otherwise None.

    Used for the organization fields that servers are known to send with
    the wrong type; those values are dropped instead of rejected.
    """
    value = obj.get(key)
    return value if isinstance(value, str) else None


def trim_or_none(text: str | None) -> str | None:
    """Return the stripped text, or None when it is missing or blank.

    Example:
        >>> trim_or_none("  org_123 ") == "org_123"
        True
        >>> trim_or_none("   ") is None
        True
    """
    if text is None:
        return None
    trimmed = text.strip()
    return trimmed or None


def decimal_text(value: Decimal) -> str:
    """Plain positional text of a decimal, keeping its scale.

    Example:
        >>> decimal_text(Decimal("1E+2")), decimal_text(Decimal("-50.00"))
        ('100', '-50.00')
    """
    return format(value, "f")
