"""Process exit statuses returned by the simplefin commands.

Scripts that wrap the CLI can tell a bad setup token from a bridge outage
or a malformed payload by the status alone:

    0: SUCCESS - Command finished and printed its result
    1: UNEXPECTED_ERROR - Transport failure or any other unhandled exception
    2: DATA_FORMAT_ERROR - Server data or access URL could not be parsed
    3: API_ERROR - SimpleFIN endpoint returned an unusable response
    4: SETUP_TOKEN_ERROR - Setup token could not be decoded
    6: CONFIG_ERROR - Configuration file or environment error
    64: USAGE_ERROR - Invalid command-line arguments (as in sysexits.h)
"""


class ExitCode:
    """Named exit statuses for the simplefin commands.

    Example:
        >>> from simplefin.cli.commands import accounts
        >>> from simplefin.cli.exit_codes import ExitCode
        >>>
        >>> if accounts(output_format="json") == ExitCode.API_ERROR:
        ...     print("bridge rejected the access URL")
    """

    SUCCESS = 0
    UNEXPECTED_ERROR = 1

    DATA_FORMAT_ERROR = 2
    """Server response or access URL violated the expected structure."""

    API_ERROR = 3
    """Non-200 response or undecodable response body."""

    SETUP_TOKEN_ERROR = 4
    """Setup token was empty, not Base64, or not a claim URL."""

    CONFIG_ERROR = 6
    """Unreadable or invalid config file, or a missing --env-file."""

    USAGE_ERROR = 64
    """Missing access URL, unparseable date or unknown output format."""
