"""
x86-64 Stack Machine Emulator
=============================

Executes the assembly text produced by the code generator without an
assembler, linker or x86 host. Only the instruction subset the
generator emits is modelled, but that subset is modelled exactly:

- 64-bit two's complement registers RAX, RBX, RCX, RDX, RSI, RDI
- AL/BL/CL/DL/SIL/DIL as the low byte of their 64-bit register
- ZF, SF and OF flags as set by CMP, ADD and SUB
- IDIV on the signed 128-bit RDX:RAX dividend, truncating toward zero,
  with #DE on a zero divisor or a quotient that does not fit 64 bits

Supported Instructions
----------------------
| Mnemonic         | Operands           |
|------------------|--------------------|
| push             | imm32 or reg64     |
| pop              | reg64              |
| mov, movabs      | reg64, imm or reg  |
| add, sub, imul   | reg64, reg64 / imm |
| cmp              | reg64, reg64 / imm |
| cqo              |                    |
| idiv             | reg64              |
| sete setne setl  | reg8               |
| setle setg setge | reg8               |
| movzb, movzx     | reg64, reg8        |
| ret              |                    |

Directives (lines starting with '.') are accepted and ignored; '#'
starts a comment.

Example:
    >>> from calcc.compiler import compile_expression
    >>> machine = StackMachine()
    >>> machine.run(compile_expression("(1+2)*3")).value
    9
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Optional

from calcc.errors import CalcError

logger = logging.getLogger(__name__)


WORD_BITS = 64
WORD_MASK = (1 << WORD_BITS) - 1
SIGN_BIT = 1 << (WORD_BITS - 1)

DEFAULT_STACK_LIMIT = 4096
DEFAULT_STEP_LIMIT = 1_000_000

REGISTERS_64 = ("rax", "rbx", "rcx", "rdx", "rsi", "rdi")

# Low-byte register name -> 64-bit register it lives in
REGISTERS_8 = {
    "al": "rax",
    "bl": "rbx",
    "cl": "rcx",
    "dl": "rdx",
    "sil": "rsi",
    "dil": "rdi",
}

_IMMEDIATE = re.compile(r"^-?(0[xX][0-9a-fA-F]+|[0-9]+)$")
_LABEL = re.compile(r"^([A-Za-z_.$][A-Za-z0-9_.$]*):$")


# =============================================================================
# Emulator Exceptions
# =============================================================================

class EmulatorError(CalcError):
    """Base exception for emulator failures."""
    pass


class AssemblyParseError(EmulatorError):
    """Assembly text outside the modelled subset."""

    def __init__(self, message: str, line_number: int, line: str):
        self.line_number = line_number
        self.line = line
        super().__init__(f"line {line_number}: {message}: {line.strip()!r}")


class DivideError(EmulatorError):
    """IDIV with a zero divisor or a quotient that overflows (#DE)."""
    pass


class StackFaultError(EmulatorError):
    """Pop from an empty stack, or the stack grew past its limit."""
    pass


# =============================================================================
# Word Arithmetic
# =============================================================================

def to_signed(value: int) -> int:
    """Interpret an unsigned 64-bit value as two's complement."""
    value &= WORD_MASK
    return value - (1 << WORD_BITS) if value & SIGN_BIT else value


def to_unsigned(value: int) -> int:
    return value & WORD_MASK


# =============================================================================
# Program Representation
# =============================================================================

@dataclass(frozen=True)
class Instruction:
    """
    One parsed instruction.

    Attributes:
        mnemonic: Lower-case mnemonic
        operands: Operand texts, lower-cased and stripped
        line_number: 1-indexed line in the assembly text
    """
    mnemonic: str
    operands: tuple[str, ...]
    line_number: int

    def __str__(self) -> str:
        if self.operands:
            return f"{self.mnemonic} {', '.join(self.operands)}"
        return self.mnemonic


@dataclass
class Program:
    """
    Parsed assembly: instructions in order plus label positions.

    Attributes:
        instructions: Executable instructions
        labels: Label name -> index of the instruction that follows it
        globals: Symbols declared with .globl/.global, in declaration order
    """
    instructions: list[Instruction] = field(default_factory=list)
    labels: dict[str, int] = field(default_factory=dict)
    globals: list[str] = field(default_factory=list)


def parse_program(text: str) -> Program:
    """
    Parse assembly text into a Program.

    Raises:
        AssemblyParseError: On a malformed line or an unknown mnemonic
    """
    program = Program()

    for line_number, raw in enumerate(text.splitlines(), start=1):
        line = raw.split("#", 1)[0].strip()
        if not line:
            continue

        if line.startswith("."):
            parts = line.split()
            if parts[0] in (".globl", ".global") and len(parts) > 1:
                if parts[1] not in program.globals:
                    program.globals.append(parts[1])
            continue

        label = _LABEL.match(line)
        if label:
            program.labels[label.group(1)] = len(program.instructions)
            continue

        parts = line.split(None, 1)
        mnemonic = parts[0].lower()
        operands: tuple[str, ...] = ()
        if len(parts) > 1:
            operands = tuple(op.strip().lower() for op in parts[1].split(","))

        if mnemonic not in _ARITY:
            raise AssemblyParseError(f"unsupported instruction '{mnemonic}'", line_number, raw)
        if len(operands) != _ARITY[mnemonic]:
            raise AssemblyParseError(
                f"'{mnemonic}' takes {_ARITY[mnemonic]} operand(s)", line_number, raw
            )

        program.instructions.append(Instruction(mnemonic, operands, line_number))

    return program


# =============================================================================
# Machine State
# =============================================================================

@dataclass
class MachineState:
    """
    Complete machine state for snapshotting.

    Register values are stored unsigned (0 to 2**64-1).
    """
    registers: dict[str, int] = field(
        default_factory=lambda: {name: 0 for name in REGISTERS_64}
    )
    stack: list[int] = field(default_factory=list)
    zf: bool = False
    sf: bool = False
    of: bool = False
    ip: int = 0


@dataclass
class ExecutionResult:
    """
    Outcome of running a program to its final RET.

    Attributes:
        value: Signed value of RAX at RET
        exit_status: Process exit status a real run would report
        steps: Instructions executed, RET included
        max_depth: Deepest stack depth reached
        stack: Values left on the stack at RET (normally none)
    """
    value: int
    exit_status: int
    steps: int
    max_depth: int
    stack: list[int] = field(default_factory=list)


# =============================================================================
# Emulator
# =============================================================================

class StackMachine:
    """
    Emulator for generated expression programs.

    Instrumentation: set `on_instruction` to a callable taking
    (step, instruction, state); it runs before each instruction.

    Example:
        >>> machine = StackMachine()
        >>> result = machine.run(assembly_text)
        >>> print(result.value, result.exit_status)
    """

    def __init__(
        self,
        stack_limit: int = DEFAULT_STACK_LIMIT,
        step_limit: int = DEFAULT_STEP_LIMIT,
    ):
        self.stack_limit = stack_limit
        self.step_limit = step_limit
        self.state = MachineState()
        self.on_instruction: Optional[Callable[[int, Instruction, MachineState], None]] = None

        self._dispatch: dict[str, Callable[[Instruction], None]] = {
            "push": self._op_push,
            "pop": self._op_pop,
            "mov": self._op_mov,
            "movabs": self._op_mov,
            "add": self._op_add,
            "sub": self._op_sub,
            "imul": self._op_imul,
            "cmp": self._op_cmp,
            "cqo": self._op_cqo,
            "idiv": self._op_idiv,
            "sete": self._op_setcc,
            "setne": self._op_setcc,
            "setl": self._op_setcc,
            "setle": self._op_setcc,
            "setg": self._op_setcc,
            "setge": self._op_setcc,
            "movzb": self._op_movzx,
            "movzx": self._op_movzx,
        }

    def reset(self) -> None:
        self.state = MachineState()

    def run(self, text: str, entry: Optional[str] = None) -> ExecutionResult:
        """
        Parse and execute a program from `entry` to its RET.

        Args:
            text: Assembly source text
            entry: Entry label; defaults to the first declared .globl symbol
                   that is a label, or the first instruction if there is none

        Raises:
            EmulatorError: On unsupported text or a runtime fault
        """
        program = parse_program(text)
        return self.execute(program, entry)

    def execute(self, program: Program, entry: Optional[str] = None) -> ExecutionResult:
        """Execute an already parsed program."""
        self.reset()
        self.state.ip = self._entry_point(program, entry)

        steps = 0
        max_depth = 0

        while True:
            if self.state.ip >= len(program.instructions):
                raise EmulatorError("execution ran past the last instruction without 'ret'")
            if steps >= self.step_limit:
                raise EmulatorError(f"step limit of {self.step_limit} exceeded")

            instruction = program.instructions[self.state.ip]
            if self.on_instruction is not None:
                self.on_instruction(steps, instruction, self.state)
            steps += 1

            if instruction.mnemonic == "ret":
                break

            self._dispatch[instruction.mnemonic](instruction)
            self.state.ip += 1
            max_depth = max(max_depth, len(self.state.stack))

        rax = self.state.registers["rax"]
        result = ExecutionResult(
            value=to_signed(rax),
            exit_status=rax & 0xFF,
            steps=steps,
            max_depth=max_depth,
            stack=[to_signed(v) for v in self.state.stack],
        )
        logger.debug(
            f"Executed {steps} instructions, max stack depth {max_depth}, "
            f"result {result.value}"
        )
        return result

    def _entry_point(self, program: Program, entry: Optional[str]) -> int:
        if entry is None:
            declared = [name for name in program.globals if name in program.labels]
            if not declared:
                return 0
            entry = declared[0]
        if entry not in program.labels:
            raise EmulatorError(f"entry label '{entry}' not found")
        return program.labels[entry]

    # =========================================================================
    # Operand Access
    # =========================================================================

    def _read(self, operand: str, line_number: int) -> int:
        """Read a 64-bit register or immediate as an unsigned word."""
        if operand in self.state.registers:
            return self.state.registers[operand]
        return to_unsigned(self._immediate(operand, line_number))

    def _immediate(self, operand: str, line_number: int) -> int:
        if not _IMMEDIATE.match(operand):
            raise EmulatorError(f"line {line_number}: bad source operand '{operand}'")
        return int(operand, 16) if "x" in operand else int(operand)

    def _write(self, operand: str, value: int, line_number: int) -> None:
        if operand not in self.state.registers:
            raise EmulatorError(f"line {line_number}: bad destination operand '{operand}'")
        self.state.registers[operand] = to_unsigned(value)

    def _read8(self, operand: str, line_number: int) -> int:
        if operand not in REGISTERS_8:
            raise EmulatorError(f"line {line_number}: expected an 8-bit register, got '{operand}'")
        return self.state.registers[REGISTERS_8[operand]] & 0xFF

    def _write8(self, operand: str, value: int, line_number: int) -> None:
        if operand not in REGISTERS_8:
            raise EmulatorError(f"line {line_number}: expected an 8-bit register, got '{operand}'")
        name = REGISTERS_8[operand]
        self.state.registers[name] = (self.state.registers[name] & ~0xFF & WORD_MASK) | (value & 0xFF)

    def _set_flags(self, exact: int) -> None:
        """Set ZF, SF and OF from an exact (unbounded) signed result."""
        wrapped = to_signed(exact)
        self.state.zf = wrapped == 0
        self.state.sf = wrapped < 0
        self.state.of = wrapped != exact

    # =========================================================================
    # Instructions
    # =========================================================================

    def _op_push(self, ins: Instruction) -> None:
        operand = ins.operands[0]
        if operand not in self.state.registers:
            value = self._immediate(operand, ins.line_number)
            if not -(2**31) <= value < 2**31:
                raise EmulatorError(
                    f"line {ins.line_number}: push immediate {value} does not fit 32 bits"
                )
        if len(self.state.stack) >= self.stack_limit:
            raise StackFaultError(f"stack limit of {self.stack_limit} values exceeded")
        self.state.stack.append(self._read(operand, ins.line_number))

    def _op_pop(self, ins: Instruction) -> None:
        if not self.state.stack:
            raise StackFaultError(f"line {ins.line_number}: pop from empty stack")
        self._write(ins.operands[0], self.state.stack.pop(), ins.line_number)

    def _op_mov(self, ins: Instruction) -> None:
        dest, src = ins.operands
        self._write(dest, self._read(src, ins.line_number), ins.line_number)

    def _binary_operands(self, ins: Instruction) -> tuple[str, int, int]:
        dest, src = ins.operands
        left = to_signed(self._read(dest, ins.line_number))
        right = to_signed(self._read(src, ins.line_number))
        return dest, left, right

    def _op_add(self, ins: Instruction) -> None:
        dest, left, right = self._binary_operands(ins)
        exact = left + right
        self._set_flags(exact)
        self._write(dest, exact, ins.line_number)

    def _op_sub(self, ins: Instruction) -> None:
        dest, left, right = self._binary_operands(ins)
        exact = left - right
        self._set_flags(exact)
        self._write(dest, exact, ins.line_number)

    def _op_imul(self, ins: Instruction) -> None:
        dest, left, right = self._binary_operands(ins)
        exact = left * right
        # IMUL leaves ZF/SF undefined; OF reports truncation
        self.state.of = to_signed(exact) != exact
        self._write(dest, exact, ins.line_number)

    def _op_cmp(self, ins: Instruction) -> None:
        _, left, right = self._binary_operands(ins)
        self._set_flags(left - right)

    def _op_cqo(self, ins: Instruction) -> None:
        rax = self.state.registers["rax"]
        self.state.registers["rdx"] = WORD_MASK if rax & SIGN_BIT else 0

    def _op_idiv(self, ins: Instruction) -> None:
        divisor = to_signed(self._read(ins.operands[0], ins.line_number))
        if divisor == 0:
            raise DivideError(f"line {ins.line_number}: division by zero")

        regs = self.state.registers
        dividend = (regs["rdx"] << WORD_BITS) | regs["rax"]
        if dividend & (1 << (2 * WORD_BITS - 1)):
            dividend -= 1 << (2 * WORD_BITS)

        quotient = abs(dividend) // abs(divisor)
        if (dividend < 0) != (divisor < 0):
            quotient = -quotient
        remainder = dividend - quotient * divisor

        if to_signed(quotient) != quotient:
            raise DivideError(f"line {ins.line_number}: quotient overflow")

        regs["rax"] = to_unsigned(quotient)
        regs["rdx"] = to_unsigned(remainder)

    def _op_setcc(self, ins: Instruction) -> None:
        s = self.state
        less = s.sf != s.of
        condition = {
            "sete": s.zf,
            "setne": not s.zf,
            "setl": less,
            "setle": s.zf or less,
            "setg": not s.zf and not less,
            "setge": not less,
        }[ins.mnemonic]
        self._write8(ins.operands[0], int(condition), ins.line_number)

    def _op_movzx(self, ins: Instruction) -> None:
        dest, src = ins.operands
        self._write(dest, self._read8(src, ins.line_number), ins.line_number)


# Operand counts per mnemonic
_ARITY = {
    "push": 1,
    "pop": 1,
    "mov": 2,
    "movabs": 2,
    "add": 2,
    "sub": 2,
    "imul": 2,
    "cmp": 2,
    "cqo": 0,
    "idiv": 1,
    "sete": 1,
    "setne": 1,
    "setl": 1,
    "setle": 1,
    "setg": 1,
    "setge": 1,
    "movzb": 2,
    "movzx": 2,
    "ret": 0,
}


# =============================================================================
# Convenience Functions
# =============================================================================

def run_assembly(text: str, entry: Optional[str] = None) -> int:
    """Run a generated program and return the signed value left in RAX."""
    return StackMachine().run(text, entry).value
