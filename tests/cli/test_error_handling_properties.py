"""Property-based tests for CLI error handling.

This module tests that library errors map onto distinct exit codes and that
errors raised during a command surface on stderr, never stdout.
"""

import httpx
import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from simplefin.cli import commands
from simplefin.cli.exit_codes import ExitCode
from simplefin.core.exceptions import (
    ApiError,
    DataFormatError,
    InvalidArgumentError,
    InvalidSetupTokenError,
    SimplefinError,
)
from simplefin.core.transport import HttpxTransport

from tests.conftest import ACCESS_URL

ERROR_EXIT_CODES = [
    (InvalidSetupTokenError("Token is not valid Base64."), ExitCode.SETUP_TOKEN_ERROR),
    (DataFormatError("bad", field="amount"), ExitCode.DATA_FORMAT_ERROR),
    (ApiError(uri="https://x.example/info", status_code=500), ExitCode.API_ERROR),
    (InvalidArgumentError("start_date must be before or equal to end_date."), ExitCode.USAGE_ERROR),
    (SimplefinError("unclassified"), ExitCode.UNEXPECTED_ERROR),
]


@pytest.mark.parametrize(("error", "expected"), ERROR_EXIT_CODES)
def test_exit_code_mapping(error: SimplefinError, expected: int) -> None:
    assert commands.exit_code_for(error) == expected


def test_exit_codes_distinct() -> None:
    codes = [
        ExitCode.SUCCESS,
        ExitCode.UNEXPECTED_ERROR,
        ExitCode.DATA_FORMAT_ERROR,
        ExitCode.API_ERROR,
        ExitCode.SETUP_TOKEN_ERROR,
        ExitCode.CONFIG_ERROR,
        ExitCode.USAGE_ERROR,
    ]
    assert len(set(codes)) == len(codes)


@given(status_code=st.sampled_from([400, 401, 403, 404, 429, 500, 502, 503]))
@settings(max_examples=20, suppress_health_check=[HealthCheck.function_scoped_fixture])
def test_property_non_200_is_api_error(status_code, monkeypatch, capsys):
    """Property: any non-200 /accounts response exits with API_ERROR on stderr only."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, text="nope")

    monkeypatch.setattr(
        commands,
        "create_transport",
        lambda timeout: HttpxTransport(httpx.AsyncClient(transport=httpx.MockTransport(handler))),
    )

    assert commands.accounts(url=ACCESS_URL) == ExitCode.API_ERROR

    captured = capsys.readouterr()
    assert captured.out == ""
    assert f"status_code: {status_code}" in captured.err


def test_transport_failure_is_unexpected(monkeypatch, capsys) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    monkeypatch.setattr(
        commands,
        "create_transport",
        lambda timeout: HttpxTransport(httpx.AsyncClient(transport=httpx.MockTransport(handler))),
    )

    assert commands.info() == ExitCode.UNEXPECTED_ERROR
    assert "connection refused" in capsys.readouterr().err
