"""
calcc - Integer Expression to x86-64 Assembly Compiler
======================================================

calcc translates a one-line integer expression into x86-64 assembly
(GNU as, Intel syntax). Linked into an executable, the program returns
the expression's value as its exit status.

Main Components
---------------
- **compiler**: lexer, parser, AST and code generator
- **emulator**: runs generated programs without an assembler
- **cli**: the `calcc` command

Quick Start
-----------
    >>> from calcc import compile_expression
    >>> print(compile_expression("(1+2)*3"))

Or from the shell:
    $ calcc '(1+2)*3' > prog.s
    $ cc -o prog prog.s && ./prog; echo $?
    9
"""

__version__ = "1.0.0"

from calcc.errors import CalcError, SourceLocation, UsageError
from calcc.compiler import compile_expression, Compiler, CompilerOptions

__all__ = [
    "__version__",
    "CalcError",
    "SourceLocation",
    "UsageError",
    "compile_expression",
    "Compiler",
    "CompilerOptions",
]
