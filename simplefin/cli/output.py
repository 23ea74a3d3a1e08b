"""Progress indicators, error display and logging setup for CLI operations.

This module provides:
- ProgressIndicator: TTY-aware progress indicators for network operations
- handle_error: Formatted error messages with context and optional stack traces
- configure_logging: Root logger setup from --log-level / --log-file
"""

import logging
import sys
import traceback
from pathlib import Path
from typing import TextIO

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_LEVELS = ("debug", "info", "warning", "error")


class ProgressIndicator:
    """Status line shown on stderr while a bridge request is in flight.

    Markers are suppressed unless the stream is a terminal, so piping
    `claim` into `.env` captures only the access URL line.

    Example:
        progress = ProgressIndicator()
        progress.start("Claiming access URL")
        # ... do work ...
        progress.success("SIMPLEFIN_ACCESS_URL=...")
    """

    def __init__(self, enabled: bool = True, stream: TextIO | None = None):
        """Initialize progress indicator.

        Args:
            enabled: Whether progress indicators are enabled (default True)
            stream: Output stream for progress messages (default sys.stderr)
        """
        self.stream = stream if stream is not None else sys.stderr
        # Disable if explicitly disabled or if output is redirected (not a TTY)
        self.enabled = enabled and self.stream.isatty()

    def start(self, message: str) -> None:
        if self.enabled:
            self.stream.write(f"{message}... ")
            self.stream.flush()

    def success(self, message: str) -> None:
        """Display success marker and print the message to stdout."""
        if self.enabled:
            self.stream.write("✓\n")
        print(message)

    def error(self, message: str) -> None:
        if self.enabled:
            self.stream.write("✗\n")
        print(f"Error: {message}", file=sys.stderr)


def handle_error(error: Exception, verbose: bool = False) -> None:
    """Format and display error message with context.

    Displays error messages to stderr with optional context fields from
    SimplefinError exceptions. When verbose mode is enabled, also displays
    the full stack trace.

    Args:
        error: Exception to display
        verbose: Whether to show stack trace (default False)
    """
    message = getattr(error, "message", None) or str(error)
    print(f"Error: {message}", file=sys.stderr)

    context = getattr(error, "context", None)
    if context:
        print("Context:", file=sys.stderr)
        for key, value in context.items():
            print(f"  {key}: {value}", file=sys.stderr)

    cause = getattr(error, "cause", None)
    if cause is not None:
        print(f"Cause: {cause}", file=sys.stderr)

    if verbose:
        print("\nStack trace:", file=sys.stderr)
        traceback.print_exception(error, file=sys.stderr)


def configure_logging(log_level: str = "warning", log_file: Path | None = None) -> None:
    """Configure the root logger for a CLI invocation.

    Raises:
        ValueError: If ``log_level`` is not one of LOG_LEVELS
    """
    if log_level.lower() not in LOG_LEVELS:
        raise ValueError(
            f"Unknown log level '{log_level}'. Choose one of: {', '.join(LOG_LEVELS)}."
        )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
