"""
x86-64 Code Generator
=====================

This module generates x86-64 assembly (GNU as, Intel syntax) from the
expression AST.

Code Generation Strategy
------------------------
The generator uses a pure stack-machine model:

1. A literal pushes its value
2. A binary node evaluates its left operand, then its right operand,
   leaving `..., left, right` on the stack
3. It pops the right operand into RDI and the left operand into RAX,
   applies the operator to (RAX, RDI), and pushes RAX

After the whole tree has been generated, the result is the only value
on the stack. The epilogue pops it into RAX, the return-value register,
so the program's exit status is the expression's value.

Register Usage
--------------
| Register | Usage                                      |
|----------|--------------------------------------------|
| RAX      | Left operand, result, return value         |
| RDI      | Right operand                              |
| RDX      | High half of the dividend for IDIV (CQO)   |
| AL       | Comparison result from SETcc               |

Operator Mapping
----------------
| Kind       | Instructions                               |
|------------|--------------------------------------------|
| ADD        | add rax, rdi                               |
| SUBTRACT   | sub rax, rdi                               |
| MULTIPLY   | imul rax, rdi                              |
| DIVIDE     | cqo ; idiv rdi                             |
| EQUAL      | cmp rax, rdi ; sete al ; movzb rax, al     |
| NOT_EQUAL  | cmp rax, rdi ; setne al ; movzb rax, al    |
| LESS_THAN  | cmp rax, rdi ; setl al ; movzb rax, al     |
| LESS_EQUAL | cmp rax, rdi ; setle al ; movzb rax, al    |

Example output for "1+2":
    .intel_syntax noprefix
    .globl main
    main:
            push 1
            push 2
            pop rdi
            pop rax
            add rax, rdi
            push rax
            pop rax
            ret
"""

import logging

from calcc.compiler.ast import (
    Expression,
    BinaryExpression,
    NumberLiteral,
    NodeKind,
)

logger = logging.getLogger(__name__)


# Largest value `push imm32` can encode (the immediate is sign-extended)
MAX_PUSH_IMMEDIATE = 2**31 - 1

# Operator-specific instructions, applied to (rax, rdi) with the result in rax
OPERATOR_INSTRUCTIONS: dict[NodeKind, tuple[str, ...]] = {
    NodeKind.ADD: ("add rax, rdi",),
    NodeKind.SUBTRACT: ("sub rax, rdi",),
    NodeKind.MULTIPLY: ("imul rax, rdi",),
    NodeKind.DIVIDE: ("cqo", "idiv rdi"),
    NodeKind.EQUAL: ("cmp rax, rdi", "sete al", "movzb rax, al"),
    NodeKind.NOT_EQUAL: ("cmp rax, rdi", "setne al", "movzb rax, al"),
    NodeKind.LESS_THAN: ("cmp rax, rdi", "setl al", "movzb rax, al"),
    NodeKind.LESS_EQUAL: ("cmp rax, rdi", "setle al", "movzb rax, al"),
}


class CodeGenerator:
    """
    Generates x86-64 assembly from an expression AST.

    The generator keeps no state between calls; the same instance can
    compile any number of trees, and identical trees always produce
    identical text.

    Attributes:
        entry_symbol: Global label of the program entry point
        emit_comments: Precede each operator sequence with a '# KIND' line
        indent: Prefix of every instruction line
    """

    def __init__(
        self,
        entry_symbol: str = "main",
        emit_comments: bool = False,
        indent: str = "\t",
    ):
        self.entry_symbol = entry_symbol
        self.emit_comments = emit_comments
        self.indent = indent

    def generate(self, root: Expression) -> list[str]:
        """
        Generate the body instructions for an expression.

        The tree is walked in post-order with an explicit work-list, so
        deep left-leaning chains such as 1+1+...+1 need no recursion.
        Left subtrees are emitted completely before right subtrees.

        Args:
            root: The root AST node

        Returns:
            Instruction lines (without indentation) that leave the
            expression's value on top of the stack
        """
        lines: list[str] = []
        # (node, children already emitted)
        pending: list[tuple[Expression, bool]] = [(root, False)]

        while pending:
            node, children_done = pending.pop()

            if isinstance(node, NumberLiteral):
                lines.extend(self._generate_number(node))
            elif children_done:
                lines.extend(self._generate_operator(node))
            else:
                pending.append((node, True))
                pending.append((node.right, False))
                pending.append((node.left, False))

        logger.debug(f"Generated {len(lines)} instructions")
        return lines

    def emit_program(self, root: Expression) -> str:
        """
        Generate a complete assembly program for an expression.

        Args:
            root: The root AST node

        Returns:
            Assembly source text, ending with a newline
        """
        return self.format_program(self.generate(root))

    def format_program(self, lines: list[str]) -> str:
        """
        Frame body instructions from generate() as a complete program.

        Adds the header and epilogue and indents every instruction.
        """
        output = self._header()
        output.extend(self._format(line) for line in lines)
        output.extend(self._format(line) for line in self._footer())
        return "\n".join(output) + "\n"

    # =========================================================================
    # Node Generation
    # =========================================================================

    def _generate_number(self, node: NumberLiteral) -> list[str]:
        """Push a literal; wide values go through RAX."""
        if node.value > MAX_PUSH_IMMEDIATE:
            return [f"movabs rax, {node.value}", "push rax"]
        return [f"push {node.value}"]

    def _generate_operator(self, node: BinaryExpression) -> list[str]:
        """Pop both operands, apply the operator, push the result."""
        lines = []
        if self.emit_comments:
            lines.append(f"# {node.operator.name}")
        lines.append("pop rdi")
        lines.append("pop rax")
        lines.extend(OPERATOR_INSTRUCTIONS[node.operator])
        lines.append("push rax")
        return lines

    # =========================================================================
    # Program Framing
    # =========================================================================

    def _header(self) -> list[str]:
        return [
            ".intel_syntax noprefix",
            f".globl {self.entry_symbol}",
            f"{self.entry_symbol}:",
        ]

    def _footer(self) -> list[str]:
        return ["pop rax", "ret"]

    def _format(self, line: str) -> str:
        return f"{self.indent}{line}"


# =============================================================================
# Convenience Functions
# =============================================================================

def generate(root: Expression, entry_symbol: str = "main") -> str:
    """Generate a complete assembly program for an expression."""
    return CodeGenerator(entry_symbol=entry_symbol).emit_program(root)
