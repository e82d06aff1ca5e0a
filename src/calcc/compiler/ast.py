"""
Expression Abstract Syntax Tree (AST) Definitions
=================================================

This module defines the AST produced by the parser and consumed by the
code generator.

Node Hierarchy
--------------
Expression (base)
├── BinaryExpression - ADD, SUBTRACT, MULTIPLY, DIVIDE,
│                      EQUAL, NOT_EQUAL, LESS_THAN, LESS_EQUAL
└── NumberLiteral - non-negative integer constant

Design Notes
------------
- Nodes are frozen dataclasses; the tree is never mutated after parsing
- Every binary node owns exactly two children, literals own none
- There are no GREATER kinds: the parser stores `a > b` as
  LESS_THAN(b, a) and `a >= b` as LESS_EQUAL(b, a)
- Unary minus is SUBTRACT(NumberLiteral(0), operand), so there is no
  unary node either
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from calcc.errors import SourceLocation


# =============================================================================
# Node Kinds
# =============================================================================

class NodeKind(Enum):
    """Kinds of AST node. The value is the operator's surface spelling."""
    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
    DIVIDE = "/"
    EQUAL = "=="
    NOT_EQUAL = "!="
    LESS_THAN = "<"
    LESS_EQUAL = "<="
    NUMBER = "num"

    @property
    def is_comparison(self) -> bool:
        return self in COMPARISON_KINDS


COMPARISON_KINDS = frozenset({
    NodeKind.EQUAL,
    NodeKind.NOT_EQUAL,
    NodeKind.LESS_THAN,
    NodeKind.LESS_EQUAL,
})


# =============================================================================
# AST Node Classes
# =============================================================================

@dataclass(frozen=True)
class Expression:
    """
    Base class for all expression nodes.

    Attributes:
        location: Source location of the token that produced this node
    """
    location: SourceLocation

    @property
    def kind(self) -> NodeKind:
        raise NotImplementedError


@dataclass(frozen=True)
class NumberLiteral(Expression):
    """
    Integer constant.

    Attributes:
        value: Non-negative integer value
    """
    value: int = 0

    @property
    def kind(self) -> NodeKind:
        return NodeKind.NUMBER


@dataclass(frozen=True)
class BinaryExpression(Expression):
    """
    Binary operation.

    Attributes:
        operator: One of the non-literal NodeKinds
        left: Left operand (evaluated first)
        right: Right operand
    """
    operator: NodeKind = NodeKind.ADD
    left: Expression = None
    right: Expression = None

    def __post_init__(self):
        if self.operator == NodeKind.NUMBER:
            raise ValueError("BinaryExpression cannot have kind NUMBER")
        if self.left is None or self.right is None:
            raise ValueError("BinaryExpression requires two operands")

    @property
    def kind(self) -> NodeKind:
        return self.operator


Node = Union[NumberLiteral, BinaryExpression]


# =============================================================================
# AST Visitor Pattern
# =============================================================================

class ASTVisitor:
    """
    Base class for AST visitors.

    Subclasses override visit_* methods for the node types they care
    about.

    Usage:
        class MyVisitor(ASTVisitor):
            def visit_NumberLiteral(self, node):
                ...

        MyVisitor().visit(root)
    """

    def visit(self, node: Expression) -> Any:
        """Visit a node by dispatching to the appropriate method."""
        method_name = f"visit_{node.__class__.__name__}"
        visitor = getattr(self, method_name, self.generic_visit)
        return visitor(node)

    def generic_visit(self, node: Expression) -> None:
        """Visit the children of a node."""
        if isinstance(node, BinaryExpression):
            self.visit(node.left)
            self.visit(node.right)

    def visit_NumberLiteral(self, node: NumberLiteral): return self.generic_visit(node)
    def visit_BinaryExpression(self, node: BinaryExpression): return self.generic_visit(node)


# =============================================================================
# AST Pretty Printer
# =============================================================================

class ASTPrinter(ASTVisitor):
    """
    Pretty printer for AST debugging.

    Usage:
        printer = ASTPrinter()
        print(printer.print(root))

    Output for "1+2*3":
        ADD
          NUMBER 1
          MULTIPLY
            NUMBER 2
            NUMBER 3

    Nodes are visited one at a time from an explicit work-list, so
    arbitrarily long operator chains print without recursion.
    """

    def __init__(self):
        self.output: list[str] = []
        self.indent_level = 0

    def print(self, node: Expression) -> str:
        """Print the AST and return as string."""
        self.output = []
        pending = [(node, 0)]
        while pending:
            current, self.indent_level = pending.pop()
            self.visit(current)
            if isinstance(current, BinaryExpression):
                pending.append((current.right, self.indent_level + 1))
                pending.append((current.left, self.indent_level + 1))
        self.indent_level = 0
        return "\n".join(self.output)

    def _emit(self, text: str) -> None:
        indent = "  " * self.indent_level
        self.output.append(f"{indent}{text}")

    def visit_NumberLiteral(self, node: NumberLiteral):
        self._emit(f"NUMBER {node.value}")

    def visit_BinaryExpression(self, node: BinaryExpression):
        self._emit(node.operator.name)


def to_sexpr(node: Expression) -> str:
    """
    Compact single-line form, e.g. "(+ 1 (* 2 3))".

    Handy in tests and debug logging.
    """
    parts: list[str] = []
    pending: list[tuple[Expression, bool]] = [(node, False)]
    while pending:
        current, children_done = pending.pop()
        if isinstance(current, NumberLiteral):
            parts.append(str(current.value))
        elif children_done:
            right = parts.pop()
            left = parts.pop()
            parts.append(f"({current.operator.value} {left} {right})")
        else:
            pending.append((current, True))
            pending.append((current.right, False))
            pending.append((current.left, False))
    return parts.pop()


# =============================================================================
# Tree Queries
# =============================================================================

def depth(node: Expression) -> int:
    """Height of the tree; a lone literal has depth 1."""
    best = 0
    pending = [(node, 1)]
    while pending:
        current, level = pending.pop()
        best = max(best, level)
        if isinstance(current, BinaryExpression):
            pending.append((current.left, level + 1))
            pending.append((current.right, level + 1))
    return best


# =============================================================================
# Reference Evaluator
# =============================================================================

_WORD_MASK = (1 << 64) - 1


def wrap64(value: int) -> int:
    """Reduce an integer to a signed 64-bit two's complement value."""
    value &= _WORD_MASK
    if value >= 1 << 63:
        value -= 1 << 64
    return value


def truncating_divide(dividend: int, divisor: int) -> int:
    """Integer quotient rounded toward zero, as the hardware idiv does."""
    quotient = abs(dividend) // abs(divisor)
    if (dividend < 0) != (divisor < 0):
        quotient = -quotient
    return quotient


def apply_operator(op: NodeKind, left: int, right: int) -> int:
    """
    Apply one binary operator to two signed 64-bit values.

    Raises:
        ZeroDivisionError: If a division has a zero divisor
        OverflowError: If a quotient does not fit 64 bits
    """
    if op == NodeKind.ADD:
        return wrap64(left + right)
    if op == NodeKind.SUBTRACT:
        return wrap64(left - right)
    if op == NodeKind.MULTIPLY:
        return wrap64(left * right)
    if op == NodeKind.DIVIDE:
        if right == 0:
            raise ZeroDivisionError("division by zero")
        quotient = truncating_divide(left, right)
        if quotient != wrap64(quotient):
            raise OverflowError("quotient does not fit in 64 bits")
        return quotient
    if op == NodeKind.EQUAL:
        return int(left == right)
    if op == NodeKind.NOT_EQUAL:
        return int(left != right)
    if op == NodeKind.LESS_THAN:
        return int(left < right)
    if op == NodeKind.LESS_EQUAL:
        return int(left <= right)

    raise ValueError(f"unknown node kind {op}")


def evaluate(node: Expression) -> int:
    """
    Compute the value an expression's generated program leaves in rax.

    Uses 64-bit wrapping arithmetic and truncating division, and yields
    0 or 1 for comparisons. Walks the tree with an explicit stack, so long
    operator chains do not hit the interpreter's recursion limit.
    """
    values: list[int] = []
    pending: list[tuple[Expression, bool]] = [(node, False)]
    while pending:
        current, children_done = pending.pop()
        if isinstance(current, NumberLiteral):
            values.append(wrap64(current.value))
        elif children_done:
            right = values.pop()
            left = values.pop()
            values.append(apply_operator(current.operator, left, right))
        else:
            pending.append((current, True))
            pending.append((current.right, False))
            pending.append((current.left, False))
    return values.pop()
