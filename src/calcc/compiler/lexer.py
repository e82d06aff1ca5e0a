"""
Expression Lexer (Tokenizer)
============================

This module converts an expression string into a list of tokens for
the parser.

Token Categories
----------------
- Punctuators: + - * / ( ) < > and the two-character == != <= >=
- Numbers: runs of decimal digits, always non-negative
- EOF: a zero-length marker after the last character

Two-character operators are matched before single characters, so "<="
is one token rather than "<" followed by "=". A lone "=" or "!" is not
a token and raises InvalidCharacterError.

Example Usage
-------------
>>> from calcc.compiler.lexer import tokenize
>>> for token in tokenize("12 <= (3)"):
...     print(token)
Token(NUMBER, 12, @0)
Token(PUNCTUATOR, '<=', @3)
Token(PUNCTUATOR, '(', @6)
Token(NUMBER, 3, @7)
Token(PUNCTUATOR, ')', @8)
Token(EOF, @9)
"""

import logging
import string
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator, Optional

from calcc.errors import SourceLocation
from calcc.compiler.errors import InvalidCharacterError, IntegerRangeError

logger = logging.getLogger(__name__)


# Largest literal that fits a signed 64-bit register
MAX_LITERAL = 2**63 - 1


# =============================================================================
# Token Kind Enumeration
# =============================================================================

class TokenKind(Enum):
    """
    Token kinds for the expression language.

    Operators and parentheses share one kind; the parser tells them
    apart by their text.
    """
    PUNCTUATOR = auto()     # Operators and parentheses
    NUMBER = auto()         # Integer literals
    EOF = auto()            # End of input


# Two-character operators, checked before single characters
DOUBLE_PUNCTUATORS = ("==", "!=", "<=", ">=")

# Single-character operators and delimiters
SINGLE_PUNCTUATORS = "+-*/()<>"

# C isspace() set
WHITESPACE = " \t\n\v\f\r"


# =============================================================================
# Token Data Class
# =============================================================================

@dataclass(frozen=True)
class Token:
    """
    A single token from the input expression.

    Attributes:
        kind: The TokenKind classification
        text: The source characters that make up the token ("" for EOF)
        offset: Character offset of the token in the input
        length: Number of characters consumed (0 for EOF)
        value: The integer value, for NUMBER tokens only
        filename: Name of the input, for error reporting
    """
    kind: TokenKind
    text: str
    offset: int
    length: int
    value: Optional[int] = None
    filename: str = "<input>"

    def __repr__(self) -> str:
        if self.kind == TokenKind.NUMBER:
            return f"Token(NUMBER, {self.value}, @{self.offset})"
        if self.kind == TokenKind.EOF:
            return f"Token(EOF, @{self.offset})"
        return f"Token({self.kind.name}, {self.text!r}, @{self.offset})"

    @property
    def location(self) -> SourceLocation:
        """Return a SourceLocation for error reporting."""
        return SourceLocation(self.filename, self.offset, self.length)

    def is_punctuator(self, text: str) -> bool:
        """Return True if this is the punctuator spelled `text`."""
        return self.kind == TokenKind.PUNCTUATOR and self.text == text

    def describe(self) -> str:
        """Human-readable token text for error messages."""
        if self.kind == TokenKind.EOF:
            return "end of input"
        return self.text


# =============================================================================
# Lexer Implementation
# =============================================================================

class Lexer:
    """
    Tokenizes an expression.

    Usage:
        lexer = Lexer("1 + 2")
        tokens = list(lexer.tokenize())

    Attributes:
        source: The expression being tokenized
        filename: Name of the input (for error reporting)
    """

    def __init__(self, source: str, filename: str = "<input>"):
        self.source = source
        self.filename = filename
        self._pos = 0

    def tokenize(self) -> Iterator[Token]:
        """
        Generate tokens from the input.

        Yields:
            Token objects, ending with exactly one EOF token

        Raises:
            LexicalError: If a character cannot be classified
        """
        while True:
            self._skip_whitespace()
            if self._at_end():
                break
            yield self._scan_token()

        yield Token(TokenKind.EOF, "", self._pos, 0, filename=self.filename)

    # =========================================================================
    # Character Access Methods
    # =========================================================================

    def _at_end(self) -> bool:
        return self._pos >= len(self.source)

    def _peek(self, offset: int = 0) -> str:
        """Character at current position + offset, or "" past the end."""
        pos = self._pos + offset
        if pos >= len(self.source):
            return ""
        return self.source[pos]

    def _skip_whitespace(self) -> None:
        while not self._at_end() and self._peek() in WHITESPACE:
            self._pos += 1

    # =========================================================================
    # Token Scanning
    # =========================================================================

    def _scan_token(self) -> Token:
        start = self._pos
        char = self._peek()

        # Longest match first
        pair = self.source[start:start + 2]
        if pair in DOUBLE_PUNCTUATORS:
            self._pos += 2
            return self._make_token(TokenKind.PUNCTUATOR, start)

        if char in SINGLE_PUNCTUATORS:
            self._pos += 1
            return self._make_token(TokenKind.PUNCTUATOR, start)

        if char in string.digits:
            return self._scan_number(start)

        raise InvalidCharacterError(
            char,
            SourceLocation(self.filename, start, 1),
            self.source,
        )

    def _scan_number(self, start: int) -> Token:
        """Scan the maximal run of decimal digits."""
        while self._peek() and self._peek() in string.digits:
            self._pos += 1

        text = self.source[start:self._pos]
        value = int(text)
        if value > MAX_LITERAL:
            raise IntegerRangeError(
                text,
                SourceLocation(self.filename, start, len(text)),
                self.source,
            )
        return self._make_token(TokenKind.NUMBER, start, value)

    def _make_token(
        self,
        kind: TokenKind,
        start: int,
        value: Optional[int] = None,
    ) -> Token:
        return Token(
            kind=kind,
            text=self.source[start:self._pos],
            offset=start,
            length=self._pos - start,
            value=value,
            filename=self.filename,
        )


# =============================================================================
# Convenience Functions
# =============================================================================

def tokenize(source: str, filename: str = "<input>") -> list[Token]:
    """
    Tokenize an expression into a list ending with one EOF token.

    Raises:
        LexicalError: If a character cannot be classified
    """
    tokens = list(Lexer(source, filename).tokenize())
    logger.debug(f"Tokenized {len(source)} characters into {len(tokens)} tokens")
    return tokens
