"""Custom exception classes for simplefin error handling.

This module defines the exception hierarchy for the SimpleFIN client:
- InvalidSetupTokenError: Malformed or undecodable setup tokens
- DataFormatError: Structural or type violations in wire JSON and URLs
- ApiError: Non-200 responses or undecodable response bodies
- InvalidArgumentError: Local preconditions rejected before any request

All exceptions inherit from SimplefinError for consistent error handling.
"""

from typing import Any


class SimplefinError(Exception):
    """Base exception for all simplefin errors.

    Provides a common base class for all custom exceptions raised by the
    client library, enabling catch-all error handling when needed.
    """

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception with a message, cause and context.

        Args:
            message: Human-readable error description
            cause: Optional underlying exception that triggered this error
            context: Optional dictionary of contextual information (field
                    names, URIs, status codes, etc.)
        """
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.context = context or {}

    def __str__(self) -> str:
        """Return a formatted error message with context and cause."""
        text = self.message
        if self.context:
            context_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            text = f"{text} [{context_str}]"
        if self.cause is not None:
            text = f"{text} (cause: {self.cause})"
        return text


class InvalidSetupTokenError(SimplefinError):
    """Exception raised when a setup token cannot be decoded.

    Raised for empty tokens, tokens that are neither standard nor URL-safe
    Base64, and tokens whose decoded text is not a URI with a scheme and host.
    """


class DataFormatError(SimplefinError):
    """Exception raised when external data violates the expected structure.

    Raised while parsing wire JSON, access URLs and organization URIs.

    Context typically includes:
        - field: Name of the offending field
        - value: The rejected value (never for credentials)
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        cause: BaseException | None = None,
        **extra_context: Any,
    ) -> None:
        """Initialize a data format error.

        Args:
            message: Human-readable error description
            field: Name of the field that failed to parse
            cause: Optional underlying exception
            **extra_context: Additional context information
        """
        context: dict[str, Any] = {}
        if field is not None:
            context["field"] = field
        context.update(extra_context)

        super().__init__(message, cause=cause, context=context)
        self.field = field


class ApiError(SimplefinError):
    """Exception raised when a SimpleFIN endpoint returns an unusable response.

    Covers non-200 status codes and 200 responses whose body is not a JSON
    object (or, for the claim endpoint, is empty). Carries the request URI,
    the status code and the raw body for diagnostics.
    """

    def __init__(
        self,
        uri: str,
        status_code: int | None,
        message: str | None = None,
        response_body: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        """Initialize an API error.

        Args:
            uri: URI of the request that failed (never carries credentials)
            status_code: HTTP status code, when one was received
            message: Human-readable error description
            response_body: Raw response body text, when available
            cause: Optional underlying exception
        """
        if message is None:
            message = f"SimpleFIN API error ({status_code if status_code is not None else 'unknown'})"

        context: dict[str, Any] = {"uri": uri, "status_code": status_code}
        if response_body:
            context["response_body"] = response_body

        super().__init__(message, cause=cause, context=context)
        self.uri = uri
        self.status_code = status_code
        self.response_body = response_body


class InvalidArgumentError(SimplefinError, ValueError):
    """Exception raised when a caller-supplied argument is rejected locally.

    For example a start date that falls after the end date. Raised before
    any request is issued.
    """
