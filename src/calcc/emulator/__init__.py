"""
calcc Stack Machine Emulator
============================

Runs generated assembly without assembling it, to check that a
program leaves the value its expression denotes in RAX.

Usage
-----
>>> from calcc.compiler import compile_expression
>>> from calcc.emulator import StackMachine
>>> StackMachine().run(compile_expression("8-3-2")).value
3
"""

from calcc.emulator.machine import (
    StackMachine,
    MachineState,
    ExecutionResult,
    Instruction,
    Program,
    parse_program,
    run_assembly,
    EmulatorError,
    AssemblyParseError,
    DivideError,
    StackFaultError,
)

__all__ = [
    "StackMachine",
    "MachineState",
    "ExecutionResult",
    "Instruction",
    "Program",
    "parse_program",
    "run_assembly",
    "EmulatorError",
    "AssemblyParseError",
    "DivideError",
    "StackFaultError",
]
