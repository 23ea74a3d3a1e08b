"""Cyclopts application and command routing for simplefin CLI.

This module defines the main Cyclopts application and registers all subcommands
for the simplefin command-line client.

The CLI provides the following commands:
- claim (c): Exchange a setup token for an access URL
- info (i): Show protocol versions supported by the bridge
- accounts (a): List account balances
- organizations (o): List organizations behind the accounts
- transactions (t): List transactions over a date window
- check-config: Validate configuration files
"""

from cyclopts import App

from simplefin import __version__
from simplefin.cli import commands

# Create the main application
app = App(
    name="simplefin",
    help="Command-line client for SimpleFIN bridges",
    version=__version__,
)

# Register subcommands, each with a one-letter alias
app.command(commands.claim, name=["claim", "c"])
app.command(commands.info, name=["info", "i"])
app.command(commands.accounts, name=["accounts", "a"])
app.command(commands.organizations, name=["organizations", "o"])
app.command(commands.transactions, name=["transactions", "t"])
app.command(commands.check_config, name="check-config")


def main() -> int:
    """Run the application and return its exit code."""
    exit_code = app()
    return exit_code if exit_code is not None else 0
