"""
calcc - Expression Compiler Command-Line Interface
==================================================

This module implements the `calcc` command. It compiles one integer
expression to x86-64 assembly and prints it on stdout.

Usage Examples
--------------
Basic compilation:
    $ calcc '1+2*3'

Assemble, link and run:
    $ calcc '(1+2)*3' > prog.s && cc -o prog prog.s && ./prog; echo $?
    9

With output file:
    $ calcc '10/3' -o prog.s

Inspect the pipeline:
    $ calcc --tokens '1 <= 2'
    $ calcc --ast '-2*3'

Evaluate on the built-in emulator:
    $ calcc --run '8-3-2'
    3
"""

import logging
from pathlib import Path
from typing import Optional

import click

from calcc import __version__
from calcc.errors import UsageError
from calcc.compiler import Compiler, CompilerOptions
from calcc.compiler.ast import ASTPrinter
from calcc.emulator import StackMachine
from calcc.cli.errors import handle_cli_exception

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool) -> None:
    """Configure logging on stderr based on verbosity."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if verbose else "%(message)s",
    )


# =============================================================================
# CLI Definition
# =============================================================================

@click.command(context_settings={"ignore_unknown_options": True})
@click.argument("expression", nargs=-1)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write assembly to this file instead of stdout",
)
@click.option(
    "--tokens",
    is_flag=True,
    help="Print the token list and exit (for debugging)",
)
@click.option(
    "--ast",
    is_flag=True,
    help="Print the AST and exit (for debugging)",
)
@click.option(
    "--run",
    is_flag=True,
    help="Execute the program on the built-in emulator and print its value",
)
@click.option(
    "--entry",
    default=None,
    help="Entry point symbol (default: main, or $CALCC_ENTRY_SYMBOL)",
)
@click.option(
    "--comments/--no-comments",
    default=None,
    help="Annotate operator sequences in the output",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output on stderr",
)
@click.version_option(version=__version__, prog_name="calcc")
def main(
    expression: tuple[str, ...],
    output: Optional[Path],
    tokens: bool,
    ast: bool,
    run: bool,
    entry: Optional[str],
    comments: Optional[bool],
    verbose: bool,
) -> None:
    """
    Compile an integer expression to x86-64 assembly.

    EXPRESSION is a single argument: integers, + - * /, parentheses
    and the comparisons == != < <= > >=. Quote it for the shell.

    \b
    Examples:
        calcc '1+2*3'             # Assembly on stdout
        calcc '-2*3' -o prog.s    # Leading minus is fine
        calcc --run '10/3'        # Prints 3
        calcc --ast '1<2<3'       # Dump the AST
    """
    setup_logging(verbose)

    try:
        if len(expression) != 1:
            raise UsageError(len(expression))
        source = expression[0]

        options = CompilerOptions.from_env()
        if entry:
            options.entry_symbol = entry
        if comments is not None:
            options.emit_comments = comments

        logger.debug(f"Compiling {source!r}")
        result = Compiler(options).compile_source(source)

        if tokens:
            for token in result.tokens:
                click.echo(repr(token))
            return

        if ast:
            click.echo(ASTPrinter().print(result.ast))
            return

        if run:
            execution = StackMachine().run(result.assembly, options.entry_symbol)
            logger.debug(f"Exit status would be {execution.exit_status}")
            click.echo(str(execution.value))
            return

        if output is not None:
            output.write_text(result.assembly, encoding="utf-8")
            logger.debug(f"Wrote {len(result.assembly)} bytes to {output}")
        else:
            click.echo(result.assembly, nl=False)

    except Exception as e:
        handle_cli_exception(e, verbose)


if __name__ == "__main__":
    main()
