"""
Expression Recursive Descent Parser
===================================

This module implements a recursive descent parser for the expression
language. It takes the token list from the lexer and builds an
Abstract Syntax Tree (AST).

Grammar (EBNF, lowest to highest precedence)
--------------------------------------------
expression     ::= equality
equality       ::= relational (('==' | '!=') relational)*
relational     ::= additive (('<' | '>' | '<=' | '>=') additive)*
additive       ::= multiplicative (('+' | '-') multiplicative)*
multiplicative ::= unary (('*' | '/') unary)*
unary          ::= ('+' | '-')? primary
primary        ::= NUMBER | '(' expression ')'

All binary levels fold left to right, so `8-3-2` is `(8-3)-2` and
`1<2<3` is `(1<2)<3`. The greater-than forms are normalized while
parsing: `a > b` becomes LESS_THAN(b, a).

Example Usage
-------------
>>> from calcc.compiler.parser import parse_source
>>> from calcc.compiler.ast import to_sexpr
>>> to_sexpr(parse_source("-2*3"))
'(* (- 0 2) 3)'
"""

import logging
from typing import Optional

from calcc.errors import SourceLocation
from calcc.compiler.lexer import Token, TokenKind, tokenize
from calcc.compiler.ast import (
    Expression,
    BinaryExpression,
    NumberLiteral,
    NodeKind,
)
from calcc.compiler.errors import (
    UnexpectedTokenError,
    MissingTokenError,
    MissingOperandError,
    NestingTooDeepError,
)

logger = logging.getLogger(__name__)


DEFAULT_MAX_NESTING_DEPTH = 128


# Operator tables: punctuator text -> (node kind, swap operands)
EQUALITY_OPERATORS = {
    "==": (NodeKind.EQUAL, False),
    "!=": (NodeKind.NOT_EQUAL, False),
}

RELATIONAL_OPERATORS = {
    "<": (NodeKind.LESS_THAN, False),
    "<=": (NodeKind.LESS_EQUAL, False),
    ">": (NodeKind.LESS_THAN, True),
    ">=": (NodeKind.LESS_EQUAL, True),
}

ADDITIVE_OPERATORS = {
    "+": (NodeKind.ADD, False),
    "-": (NodeKind.SUBTRACT, False),
}

MULTIPLICATIVE_OPERATORS = {
    "*": (NodeKind.MULTIPLY, False),
    "/": (NodeKind.DIVIDE, False),
}

# Lowest to highest precedence
PRECEDENCE_LEVELS = (
    EQUALITY_OPERATORS,
    RELATIONAL_OPERATORS,
    ADDITIVE_OPERATORS,
    MULTIPLICATIVE_OPERATORS,
)

# Punctuator text -> (node kind, swap operands, precedence)
BINARY_OPERATORS = {
    text: (kind, swap, precedence)
    for precedence, operators in enumerate(PRECEDENCE_LEVELS)
    for text, (kind, swap) in operators.items()
}


class Parser:
    """
    Recursive descent parser for one expression.

    The parser owns its position in the token list; nothing is shared
    between instances, so separate parsers can run independently.

    Attributes:
        tokens: Token list from the lexer, ending with EOF
        source: Original input, attached to errors for caret diagnostics
        max_nesting_depth: Limit on parenthesis nesting
    """

    def __init__(
        self,
        tokens: list[Token],
        source: Optional[str] = None,
        max_nesting_depth: int = DEFAULT_MAX_NESTING_DEPTH,
    ):
        if not tokens or tokens[-1].kind != TokenKind.EOF:
            raise ValueError("token list must end with an EOF token")

        self.tokens = tokens
        self.source = source
        self.max_nesting_depth = max_nesting_depth

        # Current position in token list
        self._pos = 0

        # Current parenthesis nesting
        self._depth = 0

    def parse(self) -> Expression:
        """
        Parse the token list into an AST.

        Returns:
            Root of the expression tree

        Raises:
            ExprSyntaxError: If the tokens do not form exactly one expression
        """
        self._pos = 0
        self._depth = 0

        root = self._parse_expression()

        if not self._at_end():
            token = self._peek()
            raise UnexpectedTokenError(
                token.describe(),
                token.location,
                self.source,
                expected="an operator or end of input",
            )

        return root

    # =========================================================================
    # Token Access Methods
    # =========================================================================

    def _at_end(self) -> bool:
        return self._peek().kind == TokenKind.EOF

    def _peek(self) -> Token:
        return self.tokens[self._pos]

    def _advance(self) -> Token:
        """Consume and return the current token. EOF is never consumed."""
        token = self.tokens[self._pos]
        if token.kind != TokenKind.EOF:
            self._pos += 1
        return token

    def _match(self, text: str) -> Optional[Token]:
        """Consume the current token if it is the punctuator `text`."""
        if self._peek().is_punctuator(text):
            return self._advance()
        return None

    def _expect(self, text: str) -> Token:
        """
        Consume the punctuator `text` or fail.

        Raises:
            MissingTokenError: If the current token is anything else
        """
        token = self._match(text)
        if token is None:
            current = self._peek()
            raise MissingTokenError(text, current.location, self.source)
        return token

    # =========================================================================
    # Binary Precedence Levels
    # =========================================================================

    def _parse_expression(self) -> Expression:
        """
        Parse all four binary levels with one operator-precedence loop.

        Operands are parsed by _parse_unary; pending operators wait on a
        stack and are reduced once an operator of equal or lower precedence
        follows, so each level folds left to right. Only parentheses
        recurse.
        """
        operands: list[Expression] = [self._parse_unary()]
        pending: list[tuple[Token, NodeKind, bool, int]] = []

        while True:
            token = self._peek()
            entry = None
            if token.kind == TokenKind.PUNCTUATOR:
                entry = BINARY_OPERATORS.get(token.text)
            if entry is None:
                break

            kind, swap, precedence = entry
            while pending and pending[-1][3] >= precedence:
                self._reduce(operands, pending)

            self._advance()
            pending.append((token, kind, swap, precedence))
            operands.append(self._parse_unary())

        while pending:
            self._reduce(operands, pending)

        return operands[0]

    def _reduce(
        self,
        operands: list[Expression],
        pending: list[tuple[Token, NodeKind, bool, int]],
    ) -> None:
        """Combine the top two operands with the most recent operator."""
        token, kind, swap, _ = pending.pop()
        right = operands.pop()
        left = operands.pop()
        if swap:
            left, right = right, left
        operands.append(BinaryExpression(
            location=token.location,
            operator=kind,
            left=left,
            right=right,
        ))

    # =========================================================================
    # Unary and Primary
    # =========================================================================

    def _parse_unary(self) -> Expression:
        """
        Parse an optional single sign followed by a primary.

        Unary minus becomes 0 - primary; unary plus is dropped.
        """
        if self._match("+"):
            return self._parse_primary()

        sign = self._match("-")
        if sign:
            zero = NumberLiteral(
                location=SourceLocation(sign.filename, sign.offset, 0),
                value=0,
            )
            return BinaryExpression(
                location=sign.location,
                operator=NodeKind.SUBTRACT,
                left=zero,
                right=self._parse_primary(),
            )

        return self._parse_primary()

    def _parse_primary(self) -> Expression:
        """Parse a number or a parenthesized expression."""
        token = self._peek()

        if token.kind == TokenKind.NUMBER:
            self._advance()
            return NumberLiteral(location=token.location, value=token.value)

        if token.is_punctuator("("):
            if self._depth >= self.max_nesting_depth:
                raise NestingTooDeepError(
                    self.max_nesting_depth, token.location, self.source
                )
            self._advance()
            self._depth += 1
            expr = self._parse_expression()
            self._expect(")")
            self._depth -= 1
            return expr

        raise MissingOperandError(token.location, self.source)


# =============================================================================
# Convenience Functions
# =============================================================================

def parse(
    tokens: list[Token],
    source: Optional[str] = None,
    max_nesting_depth: int = DEFAULT_MAX_NESTING_DEPTH,
) -> Expression:
    """
    Parse a token list into an AST.

    Raises:
        ExprSyntaxError: If parsing fails
    """
    return Parser(tokens, source, max_nesting_depth).parse()


def parse_source(
    source: str,
    filename: str = "<input>",
    max_nesting_depth: int = DEFAULT_MAX_NESTING_DEPTH,
) -> Expression:
    """
    Tokenize and parse an expression in one step.

    Raises:
        CompileError: If lexing or parsing fails
    """
    tokens = tokenize(source, filename)
    return parse(tokens, source, max_nesting_depth)
