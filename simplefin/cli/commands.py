"""CLI command implementations.

This module implements the CLI commands for the simplefin tool:
- claim: Exchange a setup token for an access URL
- info: List protocol versions supported by the bridge
- accounts: List account balances
- organizations: List the organizations behind the accounts
- transactions: List transactions over a date window
- check_config: Validate configuration files

Each command is implemented as a function that returns an exit code,
enabling both direct invocation and subprocess-based testing. Network
calls run on a fresh event loop per command via ``asyncio.run``.
"""

import asyncio
import logging
import re
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Annotated, Any

from cyclopts import Parameter

from simplefin.cli.config import ConfigError, load_config, resolve_config, validate_config
from simplefin.cli.exit_codes import ExitCode
from simplefin.cli.output import ProgressIndicator, configure_logging, handle_error
from simplefin.cli.render import (
    parse_output_format,
    render_accounts,
    render_organizations,
    render_transactions,
    to_json_text,
    transactions_csv,
)
from simplefin.core.clients import AccessClient, BridgeClient
from simplefin.core.credentials import AccessCredentials
from simplefin.core.decoding import trim_or_none
from simplefin.core.exceptions import (
    ApiError,
    DataFormatError,
    InvalidArgumentError,
    InvalidSetupTokenError,
    SimplefinError,
)
from simplefin.core.filters import filter_by_organization_id, iter_transactions, unique_organizations
from simplefin.core.models import AccountSet
from simplefin.core.protocols import Transport
from simplefin.core.timeutils import from_epoch_seconds
from simplefin.core.transport import HttpxTransport

logger = logging.getLogger(__name__)

DEFAULT_TRANSACTION_WINDOW = timedelta(days=30)

_EPOCH_TEXT = re.compile(r"[+-]?\d+")

ConfigOption = Annotated[Path | None, Parameter(help="Configuration file path (JSON or YAML)")]
EnvFileOption = Annotated[Path | None, Parameter(help="Path to .env file (default ./.env)")]
VerboseOption = Annotated[bool, Parameter(help="Show detailed error information")]
LogLevelOption = Annotated[str, Parameter(help="Log level (debug, info, warning, error)")]
LogFileOption = Annotated[Path | None, Parameter(help="Log file path")]
FormatOption = Annotated[
    str | None, Parameter(name=["--format", "-f"], help="Output format (text, json, csv)")
]
UrlOption = Annotated[
    str | None, Parameter(name=["--url", "-u"], help="Access URL (overrides SIMPLEFIN_ACCESS_URL)")
]


def create_transport(timeout: float) -> Transport:
    """Create the transport used by CLI commands."""
    return HttpxTransport(timeout=timeout)


def parse_date_option(value: str | None) -> datetime | None:
    """Parse a --start-date/--end-date value.

    Accepts epoch seconds or ISO 8601. ISO values without an offset are read
    as UTC. Blank values mean "not given".

    Raises:
        ValueError: If the value is neither an integer nor ISO 8601
    """
    text = trim_or_none(value)
    if text is None:
        return None
    if _EPOCH_TEXT.fullmatch(text):
        return from_epoch_seconds(int(text))
    try:
        parsed = datetime.fromisoformat(text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text)
    except ValueError:
        raise ValueError(
            f'Unable to parse date "{text}". '
            "Use ISO-8601 (e.g. 2024-01-31T00:00:00Z) or epoch seconds."
        ) from None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def exit_code_for(error: SimplefinError) -> int:
    """Map a library error to its CLI exit code."""
    if isinstance(error, InvalidSetupTokenError):
        return ExitCode.SETUP_TOKEN_ERROR
    if isinstance(error, ApiError):
        return ExitCode.API_ERROR
    if isinstance(error, DataFormatError):
        return ExitCode.DATA_FORMAT_ERROR
    if isinstance(error, InvalidArgumentError):
        return ExitCode.USAGE_ERROR
    return ExitCode.UNEXPECTED_ERROR


def _require_access_url(cfg: dict[str, Any]) -> str | None:
    access_url = trim_or_none(cfg.get("access_url"))
    if access_url is None:
        print("No access URL provided.", file=sys.stderr)
        print("Set SIMPLEFIN_ACCESS_URL in .env or pass --url.", file=sys.stderr)
    return access_url


async def _fetch_accounts(cfg: dict[str, Any], credentials: AccessCredentials, **query: Any) -> AccountSet:
    transport = create_transport(cfg["timeout"])
    try:
        async with AccessClient(credentials, transport=transport, user_agent=cfg["user_agent"]) as client:
            account_set = await client.get_accounts(**query)
    finally:
        await transport.aclose()
    logger.info(
        "Fetched %d accounts (%d server messages)",
        len(account_set.accounts),
        len(account_set.server_messages),
    )
    return account_set


def claim(
    setup_token: Annotated[str, Parameter(help="Setup token issued by the bridge")],
    config: ConfigOption = None,
    env_file: EnvFileOption = None,
    verbose: VerboseOption = False,
    log_level: LogLevelOption = "warning",
    log_file: LogFileOption = None,
) -> int:
    """Claim an access URL using a one-time setup token.

    Prints ``SIMPLEFIN_ACCESS_URL=<url>`` on stdout so it can be appended
    straight to a `.env` file. A setup token can only be claimed once.

    Returns:
        Exit code (0 for success, 4 for a malformed token, 3 for a bridge error)

    Example:
        >>> from simplefin.cli.commands import claim
        >>>
        >>> exit_code = claim(setup_token="aHR0cHM6Ly9icmlkZ2UuZXhhbXBsZS5jb20vY2xhaW0vZGVtbw==")
    """
    try:
        configure_logging(log_level, log_file)
        cfg = resolve_config(config, env_file)
        token = trim_or_none(setup_token)
        if token is None:
            print("Missing setup token.", file=sys.stderr)
            return ExitCode.USAGE_ERROR

        async def _claim() -> AccessCredentials:
            transport = create_transport(cfg["timeout"])
            try:
                async with BridgeClient(
                    cfg["bridge_url"], transport=transport, user_agent=cfg["user_agent"]
                ) as client:
                    return await client.claim_access_credentials(token)
            finally:
                await transport.aclose()

        progress = ProgressIndicator()
        progress.start("Claiming access URL from setup token")
        credentials = asyncio.run(_claim())
        progress.success(f"SIMPLEFIN_ACCESS_URL={credentials.access_url}")
        print(
            "Redirect or copy the line above into your .env file (e.g. >> .env).",
            file=sys.stderr,
        )
        return ExitCode.SUCCESS

    except ConfigError as e:
        handle_error(e, verbose=verbose)
        return ExitCode.CONFIG_ERROR
    except SimplefinError as e:
        handle_error(e, verbose=verbose)
        return exit_code_for(e)
    except ValueError as e:
        handle_error(e, verbose=verbose)
        return ExitCode.USAGE_ERROR
    except Exception as e:
        handle_error(e, verbose=verbose)
        return ExitCode.UNEXPECTED_ERROR


def info(
    bridge: Annotated[str | None, Parameter(help="Bridge root URL (overrides SIMPLEFIN_BRIDGE_URL)")] = None,
    config: ConfigOption = None,
    env_file: EnvFileOption = None,
    verbose: VerboseOption = False,
    log_level: LogLevelOption = "warning",
    log_file: LogFileOption = None,
) -> int:
    """Show the protocol versions supported by the bridge."""
    try:
        configure_logging(log_level, log_file)
        cfg = resolve_config(config, env_file, bridge_url=trim_or_none(bridge))

        async def _info():
            transport = create_transport(cfg["timeout"])
            try:
                async with BridgeClient(
                    cfg["bridge_url"], transport=transport, user_agent=cfg["user_agent"]
                ) as client:
                    return await client.get_info()
            finally:
                await transport.aclose()

        bridge_info = asyncio.run(_info())
        if not bridge_info.versions:
            print("No protocol versions reported by the bridge.")
        else:
            print("Bridge supports the following protocol versions:")
            for version in bridge_info.versions:
                print(f"- {version}")
        return ExitCode.SUCCESS

    except ConfigError as e:
        handle_error(e, verbose=verbose)
        return ExitCode.CONFIG_ERROR
    except SimplefinError as e:
        handle_error(e, verbose=verbose)
        return exit_code_for(e)
    except ValueError as e:
        handle_error(e, verbose=verbose)
        return ExitCode.USAGE_ERROR
    except Exception as e:
        handle_error(e, verbose=verbose)
        return ExitCode.UNEXPECTED_ERROR


def accounts(
    url: UrlOption = None,
    org_id: Annotated[str | None, Parameter(name=["--org-id", "-o"], help="Only show accounts of this organization")] = None,
    output_format: FormatOption = None,
    config: ConfigOption = None,
    env_file: EnvFileOption = None,
    verbose: VerboseOption = False,
    log_level: LogLevelOption = "warning",
    log_file: LogFileOption = None,
) -> int:
    """List account balances.

    Requests balances only, optionally narrowed to one organization.

    Returns:
        Exit code (0 for success, 64 when no access URL is configured)
    """
    try:
        configure_logging(log_level, log_file)
        cfg = resolve_config(config, env_file, access_url=trim_or_none(url), output_format=output_format)
        fmt = parse_output_format(cfg["output_format"])
        access_url = _require_access_url(cfg)
        if access_url is None:
            return ExitCode.USAGE_ERROR

        credentials = AccessCredentials.parse(access_url)
        account_set = asyncio.run(_fetch_accounts(cfg, credentials, balances_only=True))

        org_filter = trim_or_none(org_id)
        if org_filter is not None:
            account_set = filter_by_organization_id(account_set, org_filter)

        if not account_set.accounts:
            if org_filter is None:
                print("No accounts returned by the bridge.")
            else:
                print(f'No accounts found for organization "{org_filter}".')
            return ExitCode.SUCCESS

        print(render_accounts(account_set.accounts, account_set.server_messages, fmt))
        return ExitCode.SUCCESS

    except ConfigError as e:
        handle_error(e, verbose=verbose)
        return ExitCode.CONFIG_ERROR
    except SimplefinError as e:
        handle_error(e, verbose=verbose)
        return exit_code_for(e)
    except ValueError as e:
        handle_error(e, verbose=verbose)
        return ExitCode.USAGE_ERROR
    except Exception as e:
        handle_error(e, verbose=verbose)
        return ExitCode.UNEXPECTED_ERROR


def organizations(
    url: UrlOption = None,
    output_format: FormatOption = None,
    config: ConfigOption = None,
    env_file: EnvFileOption = None,
    verbose: VerboseOption = False,
    log_level: LogLevelOption = "warning",
    log_file: LogFileOption = None,
) -> int:
    """List the organizations that hold the accounts.

    Organizations are de-duplicated and sorted by display name. JSON output
    is a single object when exactly one organization is returned.
    """
    try:
        configure_logging(log_level, log_file)
        cfg = resolve_config(config, env_file, access_url=trim_or_none(url), output_format=output_format)
        fmt = parse_output_format(cfg["output_format"])
        access_url = _require_access_url(cfg)
        if access_url is None:
            return ExitCode.USAGE_ERROR

        credentials = AccessCredentials.parse(access_url)
        account_set = asyncio.run(_fetch_accounts(cfg, credentials, balances_only=True))

        orgs = unique_organizations(account_set)
        if not orgs:
            print("No organizations returned by the bridge.")
            return ExitCode.SUCCESS

        print(render_organizations(orgs, account_set.server_messages, fmt))
        return ExitCode.SUCCESS

    except ConfigError as e:
        handle_error(e, verbose=verbose)
        return ExitCode.CONFIG_ERROR
    except SimplefinError as e:
        handle_error(e, verbose=verbose)
        return exit_code_for(e)
    except ValueError as e:
        handle_error(e, verbose=verbose)
        return ExitCode.USAGE_ERROR
    except Exception as e:
        handle_error(e, verbose=verbose)
        return ExitCode.UNEXPECTED_ERROR


def transactions(
    url: UrlOption = None,
    account: Annotated[str | None, Parameter(name=["--account", "-a"], help="Only fetch this account ID")] = None,
    start_date: Annotated[str | None, Parameter(help="Start date, ISO-8601 or epoch seconds (default 30 days ago)")] = None,
    end_date: Annotated[str | None, Parameter(help="End date, ISO-8601 or epoch seconds")] = None,
    pending: Annotated[bool, Parameter(help="Include pending transactions")] = False,
    output_format: FormatOption = None,
    config: ConfigOption = None,
    env_file: EnvFileOption = None,
    verbose: VerboseOption = False,
    log_level: LogLevelOption = "warning",
    log_file: LogFileOption = None,
) -> int:
    """List transactions across accounts.

    Returns:
        Exit code (0 for success, 64 for unparseable dates or an inverted
        date range)
    """
    try:
        configure_logging(log_level, log_file)
        cfg = resolve_config(config, env_file, access_url=trim_or_none(url), output_format=output_format)
        fmt = parse_output_format(cfg["output_format"])
        start = parse_date_option(start_date)
        end = parse_date_option(end_date)
        access_url = _require_access_url(cfg)
        if access_url is None:
            return ExitCode.USAGE_ERROR

        if start is None:
            start = datetime.now(timezone.utc) - DEFAULT_TRANSACTION_WINDOW
        account_id = trim_or_none(account)

        credentials = AccessCredentials.parse(access_url)
        account_set = asyncio.run(
            _fetch_accounts(
                cfg,
                credentials,
                start_date=start,
                end_date=end,
                include_pending=pending,
                account_ids=None if account_id is None else [account_id],
            )
        )

        rows = list(iter_transactions(account_set))
        if not rows:
            if fmt == "json":
                print("[]")
            elif fmt == "csv":
                print(transactions_csv([], account_set.server_messages))
            elif not account_set.accounts and account_id is not None:
                print(f'No account returned for ID "{account_id}".')
            elif not account_set.accounts:
                print("No transactions returned by the bridge.")
            else:
                print("No transactions returned.")
            return ExitCode.SUCCESS

        print(render_transactions(rows, account_set.server_messages, fmt))
        return ExitCode.SUCCESS

    except ConfigError as e:
        handle_error(e, verbose=verbose)
        return ExitCode.CONFIG_ERROR
    except SimplefinError as e:
        handle_error(e, verbose=verbose)
        return exit_code_for(e)
    except ValueError as e:
        handle_error(e, verbose=verbose)
        return ExitCode.USAGE_ERROR
    except Exception as e:
        handle_error(e, verbose=verbose)
        return ExitCode.UNEXPECTED_ERROR


def check_config(
    config_path: Annotated[Path, Parameter(help="Configuration file path")],
    show: Annotated[bool, Parameter(help="Print the validated configuration as JSON")] = False,
) -> int:
    """Validate configuration file.

    Loads and validates a configuration file, checking syntax, known keys,
    output format, timeout and the access and bridge URLs. The access URL
    is never printed.

    Returns:
        Exit code (0 for valid config, 6 for invalid config)
    """
    try:
        config = load_config(config_path)
        errors = validate_config(config)

        if errors:
            print("✗ Configuration validation failed:", file=sys.stderr)
            for error in errors:
                print(f"  {error}", file=sys.stderr)
            return ExitCode.CONFIG_ERROR

        print("✓ Configuration is valid")
        if "bridge_url" in config:
            print(f"  Bridge URL: {config['bridge_url']}")
        if "output_format" in config:
            print(f"  Output format: {config['output_format']}")
        if "timeout" in config:
            print(f"  Timeout: {config['timeout']}s")
        if "access_url" in config:
            print("  Access URL: (set)")
        if show:
            redacted = {k: ("***" if k == "access_url" else v) for k, v in config.items()}
            print(to_json_text(redacted))

        return ExitCode.SUCCESS

    except ConfigError as e:
        print("✗ Configuration error:", file=sys.stderr)
        print(f"  {e}", file=sys.stderr)
        return ExitCode.CONFIG_ERROR
    except Exception as e:
        handle_error(e, verbose=False)
        return ExitCode.UNEXPECTED_ERROR
