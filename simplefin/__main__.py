"""CLI entry point for simplefin.

Enables invocation via `python -m simplefin`.

This module imports the Cyclopts app and invokes it, exiting with the
appropriate exit code based on command execution results.
"""

import sys

from simplefin.cli.app import main

if __name__ == "__main__":
    sys.exit(main())
