"""
calcc Expression Compiler
=========================

This package compiles an integer expression into x86-64 assembly for
a stack-machine evaluation model:

- A lexer (tokenizer) for the expression
- A recursive descent parser producing an AST
- A code generator emitting GNU as, Intel syntax assembly

Pipeline
--------
    Expression → Lexer → Parser → AST → Code Generator → Assembly

Usage
-----
>>> from calcc.compiler import compile_expression
>>> print(compile_expression("(1+2)*3"))  # x86-64 assembly

Language
--------
- Non-negative integer literals
- Binary + - * / with the usual precedence
- Comparisons == != < <= > >= yielding 0 or 1
- Unary + and -, one per operand
- Parentheses
"""

from calcc.compiler.compiler import (
    Compiler,
    CompilerOptions,
    CompilerResult,
    compile_expression,
    compile_file,
)
from calcc.compiler.errors import (
    CompileError,
    LexicalError,
    InvalidCharacterError,
    IntegerRangeError,
    ExprSyntaxError,
    UnexpectedTokenError,
    MissingTokenError,
    MissingOperandError,
    NestingTooDeepError,
)
from calcc.compiler.lexer import Lexer, Token, TokenKind, tokenize
from calcc.compiler.parser import Parser, parse, parse_source
from calcc.compiler.codegen import CodeGenerator, generate
from calcc.compiler.ast import (
    Expression,
    BinaryExpression,
    NumberLiteral,
    NodeKind,
    ASTPrinter,
    evaluate,
)

__all__ = [
    # Compiler
    "Compiler",
    "CompilerOptions",
    "CompilerResult",
    "compile_expression",
    "compile_file",
    # Stages
    "Lexer",
    "Token",
    "TokenKind",
    "tokenize",
    "Parser",
    "parse",
    "parse_source",
    "CodeGenerator",
    "generate",
    # AST
    "Expression",
    "BinaryExpression",
    "NumberLiteral",
    "NodeKind",
    "ASTPrinter",
    "evaluate",
    # Errors
    "CompileError",
    "LexicalError",
    "InvalidCharacterError",
    "IntegerRangeError",
    "ExprSyntaxError",
    "UnexpectedTokenError",
    "MissingTokenError",
    "MissingOperandError",
    "NestingTooDeepError",
]
