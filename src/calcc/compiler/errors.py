"""
Compiler Error Hierarchy
========================

This module defines the exceptions raised by the tokenizer and parser.
All of them inherit from CompileError, which itself inherits from the
base CalcError for consistent handling across calcc.

Exception Hierarchy
-------------------
CompileError (base for all compilation errors)
├── LexicalError - input character matches no token shape
│   ├── InvalidCharacterError - unexpected character
│   └── IntegerRangeError - literal too large for a 64-bit register
└── ExprSyntaxError - token stream violates the grammar
    ├── UnexpectedTokenError - a token where none was allowed
    ├── MissingTokenError - a required token such as ')' is absent
    ├── MissingOperandError - no primary expression could be formed
    └── NestingTooDeepError - parentheses nested past the limit

Error Message Format
--------------------
When the original input is known, errors render it with a caret under
the failing offset, followed by the message:

    (1+2
        ^ expected ')'

Without the input, the format falls back to:

    <input>:5: error: expected ')'
"""

from typing import Optional

from calcc.errors import CalcError, SourceLocation


# =============================================================================
# Base Compile Exception
# =============================================================================

class CompileError(CalcError):
    """
    Base exception for all errors detected while compiling an expression.

    Attributes:
        message: The error description
        location: Where in the input the error occurred
        source: The full input expression, for the caret diagnostic
        hint: A suggestion for fixing the error (not part of the
              two-line diagnostic, shown by the CLI in verbose mode)
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        source: Optional[str] = None,
        hint: Optional[str] = None,
    ):
        self.message = message
        self.location = location
        self.source = source
        self.hint = hint
        super().__init__(self._format_message())

    @property
    def offset(self) -> Optional[int]:
        """Offset of the failure in the input, if known."""
        return self.location.offset if self.location else None

    def with_source(self, source: str) -> "CompileError":
        """
        Attach the input text after the fact.

        The tokenizer and parser always know the input, but tokens can be
        parsed without it; the compiler driver uses this to fill it in.
        """
        self.source = source
        self.args = (self._format_message(),)
        return self

    def _format_message(self) -> str:
        """
        Format the diagnostic.

            1+@2
              ^ invalid character '@'
        """
        if self.source is not None and self.location is not None:
            padding = " " * self.location.offset
            return f"{self.source}\n{padding}^ {self.message}"

        if self.location:
            return f"{self.location}: error: {self.message}"
        return f"error: {self.message}"


# =============================================================================
# Lexical Errors
# =============================================================================

class LexicalError(CompileError):
    """
    The tokenizer met input it cannot classify.

    Examples:
        - A character outside the operator set, digits and whitespace
        - A lone '=' or '!'
    """
    pass


class InvalidCharacterError(LexicalError):
    """An input character that starts no token."""

    def __init__(
        self,
        char: str,
        location: Optional[SourceLocation] = None,
        source: Optional[str] = None,
    ):
        self.char = char
        hint = None
        if char in "=!":
            hint = f"'{char}' is only valid as part of '{char}='"
        super().__init__(
            f"invalid character '{char}'",
            location=location,
            source=source,
            hint=hint,
        )


class IntegerRangeError(LexicalError):
    """An integer literal that does not fit a signed 64-bit register."""

    def __init__(
        self,
        text: str,
        location: Optional[SourceLocation] = None,
        source: Optional[str] = None,
    ):
        self.text = text
        super().__init__(
            "integer literal is too large",
            location=location,
            source=source,
            hint="literals must not exceed 9223372036854775807",
        )


# =============================================================================
# Syntax Errors
# =============================================================================

class ExprSyntaxError(CompileError):
    """
    The token sequence does not form a single expression.

    Examples:
        - Mismatched parentheses
        - Operator with no right operand
        - Two numbers with no operator between them
    """
    pass


class UnexpectedTokenError(ExprSyntaxError):
    """A token where the grammar allows none, such as trailing input."""

    def __init__(
        self,
        found: str,
        location: Optional[SourceLocation] = None,
        source: Optional[str] = None,
        expected: Optional[str] = None,
    ):
        self.found = found
        self.expected = expected
        super().__init__(
            f"unexpected token '{found}'",
            location=location,
            source=source,
            hint=f"expected {expected}" if expected else None,
        )


class MissingTokenError(ExprSyntaxError):
    """A required token (such as ')') is not where it must be."""

    def __init__(
        self,
        expected: str,
        location: Optional[SourceLocation] = None,
        source: Optional[str] = None,
    ):
        self.expected = expected
        super().__init__(
            f"expected '{expected}'",
            location=location,
            source=source,
        )


class MissingOperandError(ExprSyntaxError):
    """A primary expression could not be formed, e.g. '1+' or '*2'."""

    def __init__(
        self,
        location: Optional[SourceLocation] = None,
        source: Optional[str] = None,
    ):
        super().__init__(
            "expected a number",
            location=location,
            source=source,
            hint="an operand is a number or a parenthesized expression",
        )


class NestingTooDeepError(ExprSyntaxError):
    """Parentheses nested past the configured depth limit."""

    def __init__(
        self,
        limit: int,
        location: Optional[SourceLocation] = None,
        source: Optional[str] = None,
    ):
        self.limit = limit
        super().__init__(
            f"parentheses nested deeper than {limit} levels",
            location=location,
            source=source,
        )
