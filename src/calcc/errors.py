"""
calcc Error Hierarchy
=====================

This module defines the base of the exception hierarchy for calcc.
All exceptions inherit from CalcError, allowing callers to catch all
calcc-related errors with a single except clause if desired.

Exception Hierarchy
-------------------
CalcError (base)
├── UsageError - wrong command-line argument count
├── CompileError (calcc.compiler.errors)
│   ├── LexicalError - character that starts no token
│   └── ExprSyntaxError - token stream that violates the grammar
└── EmulatorError (calcc.emulator.machine)
    ├── AssemblyParseError - emulated text outside the supported subset
    ├── DivideError - divide by zero or quotient overflow
    └── StackFaultError - stack underflow or depth limit exceeded

Diagnostic Format
-----------------
Errors that know where they happened render as the input line followed
by a caret under the failing offset:

    1+@2
      ^ invalid character '@'
"""

from dataclasses import dataclass


# =============================================================================
# Base Exception Class
# =============================================================================

class CalcError(Exception):
    """
    Base exception for all calcc errors.

        try:
            compile_expression("1+")
        except CalcError as e:
            print(f"Error: {e}")
    """
    pass


class UsageError(CalcError):
    """
    The command line did not supply exactly one expression.

    Carries no source position; it is detected before the pipeline runs.
    """

    def __init__(self, argument_count: int):
        self.argument_count = argument_count
        super().__init__(
            f"expected exactly one expression argument, got {argument_count}"
        )


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    A span of the input expression, used for error reporting.

    Expressions are a single line, so a location is an offset into the
    input rather than a line/column pair.

    Attributes:
        filename: Name of the input (or "<input>" for string input)
        offset: Character offset of the span start (0-indexed)
        length: Number of characters in the span (0 for end of input)
    """
    filename: str
    offset: int
    length: int = 1

    @property
    def column(self) -> int:
        """1-indexed column, for 'filename:column' style messages."""
        return self.offset + 1

    def __str__(self) -> str:
        return f"{self.filename}:{self.column}"
