"""
Unified CLI Error Handling
==========================

Turns exceptions into diagnostics on stderr and process exit codes.
This is the only place in calcc where an error becomes an exit status.
"""

import logging
import sys
import traceback
from enum import IntEnum
from typing import NoReturn

import click

logger = logging.getLogger(__name__)


class ExitCode(IntEnum):
    """Exit codes for the calcc command."""
    SUCCESS = 0
    COMPILE_ERROR = 1    # Lexical or syntax error in the expression
    USAGE_ERROR = 1      # Wrong argument count
    INTERNAL_ERROR = 3   # Unexpected internal error


def handle_cli_exception(error: Exception, verbose: bool = False) -> NoReturn:
    """
    Report an exception and exit with the matching exit code.

    Compile errors print their caret diagnostic as-is. In verbose mode
    their hint follows, and internal errors print a traceback.

    Raises:
        SystemExit: Always
    """
    from calcc.errors import CalcError, UsageError
    from calcc.compiler.errors import CompileError

    if isinstance(error, CompileError):
        click.echo(str(error), err=True)
        if verbose and error.hint:
            click.echo(f"hint: {error.hint}", err=True)
        sys.exit(ExitCode.COMPILE_ERROR)

    elif isinstance(error, UsageError):
        click.echo(f"Error: {error}", err=True)
        click.echo("Usage: calcc [OPTIONS] EXPRESSION", err=True)
        sys.exit(ExitCode.USAGE_ERROR)

    elif isinstance(error, CalcError):
        # Emulator faults during --run
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.COMPILE_ERROR)

    elif isinstance(error, (FileNotFoundError, PermissionError)):
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.USAGE_ERROR)

    else:
        logger.debug("Unhandled exception", exc_info=error)
        click.echo(f"Internal error: {error}", err=True)
        if verbose:
            traceback.print_exception(type(error), error, error.__traceback__)
        sys.exit(ExitCode.INTERNAL_ERROR)
