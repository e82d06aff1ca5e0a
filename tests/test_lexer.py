"""
Expression Lexer Tests
======================

Tests for converting expression text into tokens.

Test Organization
-----------------
- TestTokenKinds: Numbers, punctuators and EOF
- TestWhitespace: Whitespace skipping and offsets
- TestLexicalErrors: Invalid characters and oversized literals
- TestTokenHelpers: Token repr, location and describe
"""

import pytest

from calcc.compiler.lexer import Lexer, Token, TokenKind, tokenize, MAX_LITERAL
from calcc.compiler.errors import (
    LexicalError,
    InvalidCharacterError,
    IntegerRangeError,
    CompileError,
)


# =============================================================================
# Helper Functions
# =============================================================================

def kinds(source: str) -> list[TokenKind]:
    """Tokenize and return just the token kinds."""
    return [token.kind for token in tokenize(source)]


def texts(source: str) -> list[str]:
    """Tokenize and return the token texts, without the EOF token."""
    return [token.text for token in tokenize(source)[:-1]]


# =============================================================================
# Token Kinds
# =============================================================================

class TestTokenKinds:
    """Tests for recognizing each kind of token."""

    def test_empty_source(self):
        """Empty source should produce only an EOF token."""
        tokens = tokenize("")
        assert len(tokens) == 1
        assert tokens[0].kind == TokenKind.EOF
        assert tokens[0].offset == 0
        assert tokens[0].length == 0

    def test_single_number(self):
        """A digit run becomes one NUMBER token with its value."""
        tokens = tokenize("42")
        assert kinds("42") == [TokenKind.NUMBER, TokenKind.EOF]
        assert tokens[0].value == 42
        assert tokens[0].text == "42"
        assert tokens[0].length == 2

    def test_leading_zeros(self):
        """Leading zeros are decimal, not octal."""
        assert tokenize("007")[0].value == 7

    def test_single_punctuators(self):
        """Every single-character punctuator is recognized."""
        assert texts("+-*/()<>") == ["+", "-", "*", "/", "(", ")", "<", ">"]
        assert all(k == TokenKind.PUNCTUATOR for k in kinds("+-*/()<>")[:-1])

    def test_double_punctuators(self):
        """Two-character operators are single tokens."""
        assert texts("== != <= >=") == ["==", "!=", "<=", ">="]

    def test_longest_match(self):
        """'<=' is preferred over '<' followed by '='."""
        tokens = tokenize("1<=2")
        assert [t.text for t in tokens[:-1]] == ["1", "<=", "2"]
        assert tokens[1].length == 2

    def test_adjacent_comparisons(self):
        """'<<' is two '<' tokens; there is no shift operator."""
        assert texts("<<") == ["<", "<"]

    def test_numbers_and_operators(self):
        """Digits stop at the first non-digit."""
        assert texts("12+34*5") == ["12", "+", "34", "*", "5"]

    def test_minus_is_not_part_of_number(self):
        """Negative literals are a minus token followed by a number."""
        tokens = tokenize("-5")
        assert tokens[0].is_punctuator("-")
        assert tokens[1].value == 5

    def test_exactly_one_eof(self):
        """The stream ends with exactly one EOF token."""
        tokens = tokenize("1 + 2")
        eofs = [t for t in tokens if t.kind == TokenKind.EOF]
        assert len(eofs) == 1
        assert tokens[-1].kind == TokenKind.EOF

    def test_lexer_is_a_generator(self):
        """Lexer.tokenize yields tokens lazily."""
        stream = Lexer("1+2").tokenize()
        first = next(stream)
        assert first.value == 1


# =============================================================================
# Whitespace and Offsets
# =============================================================================

class TestWhitespace:
    """Tests for whitespace handling and token offsets."""

    def test_whitespace_only(self):
        """Whitespace-only source produces only EOF, at the end."""
        tokens = tokenize(" \t\n\v\f\r")
        assert len(tokens) == 1
        assert tokens[0].offset == 6

    def test_offsets_skip_whitespace(self):
        """Offsets point at each token's first character."""
        tokens = tokenize(" 12 <= ( 3 )")
        assert [t.offset for t in tokens] == [1, 4, 7, 9, 11, 12]

    def test_eof_offset_is_source_length(self):
        """The EOF token sits one past the last character."""
        source = "1 + 2   "
        assert tokenize(source)[-1].offset == len(source)

    def test_whitespace_splits_operators(self):
        """'< =' is two tokens, then '=' alone is invalid."""
        with pytest.raises(InvalidCharacterError):
            tokenize("1 < = 2")

    def test_whitespace_splits_numbers(self):
        """'1 2' is two separate numbers."""
        assert texts("1 2") == ["1", "2"]

    def test_filename_propagates(self):
        """Tokens carry the input name for error locations."""
        token = tokenize("7", filename="expr.txt")[0]
        assert token.filename == "expr.txt"
        assert str(token.location) == "expr.txt:1"


# =============================================================================
# Lexical Errors
# =============================================================================

class TestLexicalErrors:
    """Tests for characters and literals the lexer rejects."""

    def test_invalid_character(self):
        """A character outside the language is an error at its offset."""
        with pytest.raises(InvalidCharacterError) as exc_info:
            tokenize("1+@2")
        assert exc_info.value.offset == 2
        assert exc_info.value.char == "@"

    def test_invalid_character_diagnostic(self):
        """The message shows the input and a caret under the failure."""
        with pytest.raises(LexicalError) as exc_info:
            tokenize("1+@2")
        assert str(exc_info.value) == "1+@2\n  ^ invalid character '@'"

    def test_lone_equals(self):
        """A single '=' is not an operator."""
        with pytest.raises(InvalidCharacterError) as exc_info:
            tokenize("1=2")
        assert exc_info.value.offset == 1
        assert exc_info.value.hint is not None

    def test_lone_bang(self):
        """A single '!' is not an operator."""
        with pytest.raises(InvalidCharacterError) as exc_info:
            tokenize("!1")
        assert exc_info.value.offset == 0

    @pytest.mark.parametrize("char", ["a", "%", "&", ".", ";", "x"])
    def test_other_characters(self, char):
        """Letters and other symbols are rejected."""
        with pytest.raises(LexicalError):
            tokenize(f"1{char}")

    def test_largest_literal(self):
        """2**63-1 is the largest accepted literal."""
        assert tokenize(str(MAX_LITERAL))[0].value == MAX_LITERAL

    def test_literal_too_large(self):
        """2**63 does not fit a signed 64-bit register."""
        with pytest.raises(IntegerRangeError) as exc_info:
            tokenize("1+" + str(2**63))
        assert exc_info.value.offset == 2
        assert exc_info.value.location.length == 19

    def test_errors_are_compile_errors(self):
        """Lexical errors can be caught as CompileError."""
        with pytest.raises(CompileError):
            tokenize("#")


# =============================================================================
# Token Helpers
# =============================================================================

class TestTokenHelpers:
    """Tests for Token convenience methods."""

    def test_repr(self):
        """Token repr is compact and kind-specific."""
        tokens = tokenize("12 <= 3")
        assert repr(tokens[0]) == "Token(NUMBER, 12, @0)"
        assert repr(tokens[1]) == "Token(PUNCTUATOR, '<=', @3)"
        assert repr(tokens[-1]) == "Token(EOF, @7)"

    def test_is_punctuator(self):
        """is_punctuator matches on both kind and text."""
        tokens = tokenize("(1")
        assert tokens[0].is_punctuator("(")
        assert not tokens[0].is_punctuator(")")
        assert not tokens[1].is_punctuator("1")

    def test_describe(self):
        """describe names EOF in words and echoes other tokens."""
        tokens = tokenize("+")
        assert tokens[0].describe() == "+"
        assert tokens[1].describe() == "end of input"

    def test_tokens_are_immutable(self):
        """Tokens are frozen dataclasses."""
        token = Token(TokenKind.NUMBER, "1", 0, 1, value=1)
        with pytest.raises(Exception):
            token.value = 2
