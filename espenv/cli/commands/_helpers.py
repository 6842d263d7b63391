"""Shared helpers for CLI commands."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, NoReturn

import typer

from espenv.core.errors import CoreError, ErrorCode, ShellError, exit_code_for
from espenv.core.result import Err, Result
from espenv.output.console import Style

if TYPE_CHECKING:
    from espenv.cli.context import CLIContext


def exit_on_error[T](result: Result[T, CoreError], ctx: CLIContext) -> T:
    """Return the value of an Ok result; print the error and exit otherwise.

    The exit code is derived from the error with ``exit_code_for``.
    """
    if isinstance(result, Err):
        error = result.error
        hint: str | None = getattr(error, "hint", None)
        ctx.console.error(str(error))
        if hint:
            ctx.console.print(f"hint: {hint}", Style.DIM)
        exit_with_code(int(exit_code_for(error)))
    return result.value


def report_shell_errors(errors: Sequence[ShellError], ctx: CLIContext) -> None:
    """Warn about each shell that could not be updated, then exit with ENV_ERROR."""
    if not errors:
        return
    for error in errors:
        ctx.console.warning(str(error))
    ctx.console.print(
        "The toolchain is installed but some shells were not updated.", Style.DIM
    )
    exit_with_code(int(ErrorCode.ENV_ERROR))


def exit_with_code(code: int) -> NoReturn:
    """Exit with given code. Explicit helper for clarity."""
    raise typer.Exit(code=code)
