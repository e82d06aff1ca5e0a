"""
Stack Machine Emulator Tests
============================

Tests for the x86-64 subset emulator used to check generated programs.

Test Organization
-----------------
- TestParsing: Assembly text to Program
- TestArithmetic: Register arithmetic and wrapping
- TestDivision: CQO/IDIV semantics and divide faults
- TestComparisons: Flags and SETcc
- TestStack: Push/pop and stack faults
- TestExecution: Entry points, hooks and limits
"""

import pytest

from calcc.errors import CalcError
from calcc.emulator import (
    StackMachine,
    parse_program,
    run_assembly,
    EmulatorError,
    AssemblyParseError,
    DivideError,
    StackFaultError,
)
from calcc.emulator.machine import to_signed, to_unsigned


# =============================================================================
# Helper Functions
# =============================================================================

def run_lines(*lines: str) -> int:
    """Run instruction lines under a main label and return RAX."""
    text = ".intel_syntax noprefix\n.globl main\nmain:\n"
    text += "".join(f"\t{line}\n" for line in lines)
    text += "\tret\n"
    return run_assembly(text)


# =============================================================================
# Parsing
# =============================================================================

class TestParsing:
    """Tests for parse_program."""

    def test_directives_and_labels(self):
        """Directives are skipped, labels and globals recorded."""
        program = parse_program(".intel_syntax noprefix\n.globl main\nmain:\n\tpush 1\n\tret\n")
        assert program.globals == ["main"]
        assert program.labels == {"main": 0}
        assert [str(i) for i in program.instructions] == ["push 1", "ret"]

    def test_comments_stripped(self):
        """'#' starts a comment."""
        program = parse_program("# ADD\npush 1 # one\nret\n")
        assert len(program.instructions) == 2

    def test_line_numbers(self):
        """Instructions remember their 1-indexed line."""
        program = parse_program("main:\n\n\tpush 1\n")
        assert program.instructions[0].line_number == 3

    def test_unknown_mnemonic(self):
        """Instructions outside the subset are rejected."""
        with pytest.raises(AssemblyParseError) as exc_info:
            parse_program("main:\n\tjmp main\n")
        assert exc_info.value.line_number == 2

    def test_wrong_operand_count(self):
        """Operand counts are checked."""
        with pytest.raises(AssemblyParseError):
            parse_program("add rax\n")

    def test_parse_error_is_calc_error(self):
        """Emulator errors share the calcc base class."""
        with pytest.raises(CalcError):
            parse_program("nop\n")


# =============================================================================
# Arithmetic
# =============================================================================

class TestArithmetic:
    """Tests for 64-bit register arithmetic."""

    def test_add(self):
        """add rax, rdi."""
        assert run_lines("mov rax, 2", "mov rdi, 3", "add rax, rdi") == 5

    def test_sub_negative(self):
        """Negative results are two's complement."""
        assert run_lines("mov rax, 2", "mov rdi, 3", "sub rax, rdi") == -1

    def test_imul(self):
        """imul rax, rdi."""
        assert run_lines("mov rax, -4", "mov rdi, 6", "imul rax, rdi") == -24

    def test_add_wraps(self):
        """Overflow wraps around."""
        assert run_lines(f"movabs rax, {2**63 - 1}", "mov rdi, 1", "add rax, rdi") == -(2**63)

    def test_hex_immediate(self):
        """Hexadecimal immediates are accepted."""
        assert run_lines("mov rax, 0x10") == 16

    def test_bad_operand(self):
        """Memory operands are outside the subset."""
        with pytest.raises(EmulatorError):
            run_lines("mov rax, [rsp]")

    def test_word_conversions(self):
        """to_signed and to_unsigned are inverses on 64-bit words."""
        assert to_signed(to_unsigned(-1)) == -1
        assert to_unsigned(-1) == 2**64 - 1


# =============================================================================
# Division
# =============================================================================

class TestDivision:
    """Tests for CQO and IDIV."""

    @pytest.mark.parametrize("dividend,divisor,quotient", [
        (7, 2, 3),
        (-7, 2, -3),
        (7, -2, -3),
        (-7, -2, 3),
    ])
    def test_truncates_toward_zero(self, dividend, divisor, quotient):
        """IDIV rounds toward zero."""
        value = run_lines(
            f"mov rax, {dividend}", f"mov rdi, {divisor}", "cqo", "idiv rdi"
        )
        assert value == quotient

    def test_remainder_in_rdx(self):
        """The remainder has the sign of the dividend."""
        value = run_lines("mov rax, -7", "mov rdi, 2", "cqo", "idiv rdi", "mov rax, rdx")
        assert value == -1

    def test_cqo_sign_extends(self):
        """CQO fills rdx with the sign of rax."""
        assert run_lines("mov rax, -1", "cqo", "mov rax, rdx") == -1
        assert run_lines("mov rax, 5", "cqo", "mov rax, rdx") == 0

    def test_divide_by_zero(self):
        """A zero divisor faults."""
        with pytest.raises(DivideError):
            run_lines("mov rax, 1", "mov rdi, 0", "cqo", "idiv rdi")

    def test_quotient_overflow(self):
        """INT64_MIN / -1 faults."""
        with pytest.raises(DivideError):
            run_lines(f"movabs rax, {2**63 - 1}", "mov rdi, 1", "add rax, rdi",
                      "mov rdi, -1", "cqo", "idiv rdi")


# =============================================================================
# Comparisons
# =============================================================================

class TestComparisons:
    """Tests for CMP, SETcc and zero extension."""

    @pytest.mark.parametrize("setcc,left,right,expected", [
        ("sete", 3, 3, 1),
        ("sete", 3, 4, 0),
        ("setne", 3, 4, 1),
        ("setl", -5, 2, 1),
        ("setl", 2, -5, 0),
        ("setle", 2, 2, 1),
        ("setg", 3, 2, 1),
        ("setge", 2, 3, 0),
    ])
    def test_setcc(self, setcc, left, right, expected):
        """Signed conditions from cmp flags."""
        value = run_lines(
            f"mov rax, {left}", f"mov rdi, {right}", "cmp rax, rdi",
            f"{setcc} al", "movzb rax, al",
        )
        assert value == expected

    def test_signed_overflow_compare(self):
        """setl uses SF != OF, so INT64_MIN < 1 holds."""
        value = run_lines(
            f"movabs rax, {2**63 - 1}", "mov rdi, 1", "add rax, rdi",
            "cmp rax, rdi", "setl al", "movzb rax, al",
        )
        assert value == 1

    def test_setcc_writes_low_byte(self):
        """SETcc leaves the upper bits of rax alone."""
        value = run_lines("mov rax, 256", "mov rdi, 0", "cmp rdi, rdi", "sete al")
        assert value == 257


# =============================================================================
# Stack
# =============================================================================

class TestStack:
    """Tests for push, pop and stack faults."""

    def test_push_pop(self):
        """Values come back in LIFO order."""
        assert run_lines("push 1", "push 2", "pop rdi", "pop rax") == 1

    def test_pop_empty(self):
        """Popping an empty stack faults."""
        with pytest.raises(StackFaultError):
            run_lines("pop rax")

    def test_push_immediate_range(self):
        """push only takes 32-bit immediates."""
        with pytest.raises(EmulatorError):
            run_lines(f"push {2**31}")

    def test_negative_push_immediate(self):
        """Negative 32-bit immediates are sign-extended."""
        assert run_lines("push -3", "pop rax") == -3

    def test_stack_limit(self):
        """The stack depth is bounded."""
        machine = StackMachine(stack_limit=2)
        with pytest.raises(StackFaultError):
            machine.run("push 1\npush 2\npush 3\nret\n")

    def test_leftover_values_reported(self):
        """Values left on the stack at ret are visible in the result."""
        result = StackMachine().run("push 1\npush 2\npop rax\nret\n")
        assert result.stack == [1]
        assert result.max_depth == 2


# =============================================================================
# Execution
# =============================================================================

class TestExecution:
    """Tests for running whole programs."""

    def test_entry_from_globl(self):
        """Execution starts at the .globl label."""
        text = "helper:\n\tmov rax, 9\n\tret\n.globl main\nmain:\n\tmov rax, 4\n\tret\n"
        assert run_assembly(text) == 4

    def test_entry_is_first_declared_globl(self):
        """Declaration order picks the entry, not alphabetical order."""
        text = (
            ".globl zeta\n.globl alpha\n"
            "alpha:\n\tmov rax, 1\n\tret\n"
            "zeta:\n\tmov rax, 2\n\tret\n"
        )
        assert parse_program(text).globals == ["zeta", "alpha"]
        assert run_assembly(text) == 2

    def test_globl_without_label_skipped(self):
        """A declared symbol with no label does not become the entry."""
        text = ".globl missing\n.globl main\nmain:\n\tmov rax, 5\n\tret\n"
        assert run_assembly(text) == 5

    def test_explicit_entry(self):
        """An explicit entry label overrides .globl."""
        text = "helper:\n\tmov rax, 9\n\tret\n.globl main\nmain:\n\tmov rax, 4\n\tret\n"
        assert run_assembly(text, entry="helper") == 9

    def test_missing_entry(self):
        """An unknown entry label is an error."""
        with pytest.raises(EmulatorError):
            run_assembly("main:\n\tret\n", entry="start")

    def test_runs_off_end(self):
        """A program without ret is an error."""
        with pytest.raises(EmulatorError):
            run_assembly("push 1\n")

    def test_step_limit(self):
        """Execution is bounded."""
        machine = StackMachine(step_limit=2)
        with pytest.raises(EmulatorError):
            machine.run("push 1\npop rax\npush 1\nret\n")

    def test_exit_status(self):
        """The exit status is the low byte of rax."""
        result = StackMachine().run("mov rax, -1\nret\n")
        assert result.value == -1
        assert result.exit_status == 255

    def test_on_instruction_hook(self):
        """The hook sees every instruction, ret included."""
        seen = []
        machine = StackMachine()
        machine.on_instruction = lambda step, ins, state: seen.append(ins.mnemonic)
        result = machine.run("push 1\npop rax\nret\n")
        assert seen == ["push", "pop", "ret"]
        assert result.steps == 3
