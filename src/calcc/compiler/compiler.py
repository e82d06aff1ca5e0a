"""
Compiler Main Module
====================

This module provides the main compiler interface. It runs the complete
pipeline:

    Expression → Lex → Parse → Generate → Assembly

Usage
-----
Command line:
    $ calcc '1+2*3' > prog.s
    $ cc -o prog prog.s && ./prog; echo $?
    7

Programmatic:
    >>> from calcc.compiler import compile_expression
    >>> asm = compile_expression('1+2*3')

Compilation Pipeline
--------------------
1. **Lexical Analysis**: Convert the expression to tokens
2. **Parsing**: Build the Abstract Syntax Tree (AST)
3. **Code Generation**: Convert the AST to stack-machine assembly

Each stage runs to completion before the next starts.

Error Handling
--------------
The pipeline stops at the first error. Lexical and syntax errors are
raised as CompileError subclasses carrying the failing offset and the
input text, so str(error) is the ready-to-print caret diagnostic. No
assembly is produced for an input that fails.
"""

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

from calcc.compiler.lexer import Token, tokenize
from calcc.compiler.parser import Parser, DEFAULT_MAX_NESTING_DEPTH
from calcc.compiler.codegen import CodeGenerator
from calcc.compiler.ast import Expression, depth
from calcc.compiler.errors import CompileError

logger = logging.getLogger(__name__)


_TRUE_STRINGS = ("1", "true", "yes", "on")


@dataclass
class CompilerOptions:
    """
    Compiler configuration options.

    Attributes:
        filename: Name of the input used in error locations
        entry_symbol: Global label of the generated entry point
        emit_comments: Annotate each operator sequence with a comment
        max_nesting_depth: Maximum parenthesis nesting accepted
    """
    filename: str = "<input>"
    entry_symbol: str = "main"
    emit_comments: bool = False
    max_nesting_depth: int = DEFAULT_MAX_NESTING_DEPTH

    @classmethod
    def from_env(cls) -> "CompilerOptions":
        """
        Create CompilerOptions from environment variables.

        Environment variables (all optional):
            CALCC_ENTRY_SYMBOL: Entry label (e.g., "_main" on macOS)
            CALCC_EMIT_COMMENTS: "1", "true", "yes" or "on" to enable
            CALCC_MAX_NESTING_DEPTH: Parenthesis nesting limit (integer)
        """
        options = cls()

        if entry := os.environ.get("CALCC_ENTRY_SYMBOL"):
            options.entry_symbol = entry

        if comments := os.environ.get("CALCC_EMIT_COMMENTS"):
            options.emit_comments = comments.strip().lower() in _TRUE_STRINGS

        if nesting := os.environ.get("CALCC_MAX_NESTING_DEPTH"):
            try:
                options.max_nesting_depth = int(nesting)
            except ValueError:
                logger.warning(f"Ignoring invalid CALCC_MAX_NESTING_DEPTH={nesting!r}")

        return options


@dataclass
class CompilerResult:
    """
    Result of a compilation.

    Attributes:
        source: The input expression
        tokens: Tokens produced by the lexer
        ast: Root of the parsed expression tree
        instructions: Body instructions, without prologue and epilogue
        assembly: Complete assembly program text
    """
    source: str = ""
    tokens: list[Token] = field(default_factory=list)
    ast: Optional[Expression] = None
    instructions: list[str] = field(default_factory=list)
    assembly: str = ""

    @property
    def token_count(self) -> int:
        return len(self.tokens)


class Compiler:
    """
    Expression compiler.

    Example:
        compiler = Compiler()
        result = compiler.compile_source("(1+2)*3")
        print(result.assembly)

    Attributes:
        options: Compiler configuration options
    """

    def __init__(self, options: Optional[CompilerOptions] = None):
        self.options = options or CompilerOptions()

    def compile_source(self, source: str) -> CompilerResult:
        """
        Compile an expression to assembly.

        Args:
            source: The expression text

        Returns:
            CompilerResult with every stage's product

        Raises:
            CompileError: If lexing or parsing fails
        """
        result = CompilerResult(source=source)

        try:
            # Stage 1: Lexical analysis
            result.tokens = self._lex(source)

            # Stage 2: Parsing
            result.ast = self._parse(result.tokens, source)
        except CompileError as e:
            if e.source is None:
                e.with_source(source)
            logger.debug(f"Compilation failed: {type(e).__name__} at offset {e.offset}")
            raise

        # Stage 3: Code generation
        generator = self._make_generator()
        result.instructions = generator.generate(result.ast)
        result.assembly = generator.format_program(result.instructions)

        logger.debug(
            f"Compiled {len(source)} characters: {result.token_count} tokens, "
            f"AST depth {depth(result.ast)}, {len(result.instructions)} instructions"
        )
        return result

    def compile_file(self, filepath: str) -> CompilerResult:
        """
        Compile the first line of a file holding an expression.

        Raises:
            CompileError: If compilation fails
            FileNotFoundError: If the file is not found
        """
        path = Path(filepath)
        if not path.exists():
            raise FileNotFoundError(f"Source file not found: {filepath}")

        text = path.read_text(encoding="utf-8")
        lines = text.splitlines()
        source = lines[0] if lines else ""

        options = replace(self.options, filename=str(path))
        return Compiler(options).compile_source(source)

    def _lex(self, source: str) -> list[Token]:
        return tokenize(source, self.options.filename)

    def _parse(self, tokens: list[Token], source: str) -> Expression:
        parser = Parser(tokens, source, self.options.max_nesting_depth)
        return parser.parse()

    def _make_generator(self) -> CodeGenerator:
        return CodeGenerator(
            entry_symbol=self.options.entry_symbol,
            emit_comments=self.options.emit_comments,
        )


# =============================================================================
# Convenience Functions
# =============================================================================

def compile_expression(
    source: str,
    options: Optional[CompilerOptions] = None,
) -> str:
    """
    Compile an expression to x86-64 assembly text.

    This is the primary high-level interface.

    Raises:
        CompileError: If compilation fails

    Example:
        >>> asm = compile_expression("1 < 2")
        >>> asm.splitlines()[2]
        'main:'
    """
    return Compiler(options).compile_source(source).assembly


def compile_file(
    filepath: str,
    output_path: Optional[str] = None,
    options: Optional[CompilerOptions] = None,
) -> str:
    """
    Compile an expression file, optionally writing the assembly out.

    Raises:
        CompileError: If compilation fails
        FileNotFoundError: If the source file is not found
    """
    result = Compiler(options).compile_file(filepath)

    if output_path:
        Path(output_path).write_text(result.assembly, encoding="utf-8")

    return result.assembly
