"""Helpers for building request URIs from a base URI.

URIs are handled as plain strings and taken apart with :mod:`urllib.parse`.
Rebuilt URIs never carry user-info, a fragment, or empty path segments.
"""

from collections.abc import Iterable, Mapping
from urllib.parse import SplitResult, quote, unquote, urlencode, urlsplit, urlunsplit

# RFC 3986 pchar minus the unreserved set, which quote() never escapes
_SEGMENT_SAFE = "!$&'()*+,;=:@"

QueryParameters = Mapping[str, str | list[str]]


def path_segments(path: str) -> list[str]:
    """Split a URI path into its decoded, non-empty segments."""
    return [unquote(segment) for segment in path.split("/") if segment]


def host_and_port(parts: SplitResult) -> str:
    """Return the netloc of ``parts`` without any user-info.

    The port is kept only when it was written explicitly.
    """
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    if parts.port is not None:
        return f"{host}:{parts.port}"
    return host


def build_uri(
    base_uri: str,
    additional_segments: Iterable[str] = (),
    query_parameters: QueryParameters | None = None,
) -> str:
    """Append path segments and an optional query string to ``base_uri``.

    Empty segments are dropped from both the base path and
    ``additional_segments``. The query string is attached only when
    ``query_parameters`` is non-empty; list values become repeated
    parameters in their original order.

    Example:
        >>> build_uri("https://api.example.com/v1/", ["users", "", "profile"], {"include": "email"})
        'https://api.example.com/v1/users/profile?include=email'
        >>> build_uri("https://api.example.com/v1", ["accounts"], {})
        'https://api.example.com/v1/accounts'
    """
    parts = urlsplit(base_uri)
    segments = path_segments(parts.path)
    segments.extend(segment for segment in additional_segments if segment)

    path = "".join(f"/{quote(segment, safe=_SEGMENT_SAFE)}" for segment in segments)
    query = urlencode(query_parameters, doseq=True) if query_parameters else ""

    return urlunsplit((parts.scheme, host_and_port(parts), path, query, ""))


def redact_uri(uri: str) -> str:
    """Return ``uri`` with any user-info removed, for logs and messages."""
    parts = urlsplit(uri)
    if "@" not in parts.netloc:
        return uri
    return urlunsplit(parts._replace(netloc=host_and_port(parts)))
