from __future__ import annotations

import typer

from espenv.cli.commands._helpers import exit_on_error, report_shell_errors
from espenv.cli.context import build_context


def update(
    version: str | None = typer.Option(
        None,
        "--toolchain-version",
        "-v",
        help="Version to update to (default: newest release)",
    ),
    no_modify_env: bool = typer.Option(
        False, "--no-modify-env", help="Do not touch shell profiles or the user environment"
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Show detailed progress"),
) -> None:
    """Update the installed toolchain, keeping its targets and options."""
    ctx = build_context(verbose=verbose)
    report = exit_on_error(ctx.service.update(version, modify_env=not no_modify_env), ctx)

    ctx.console.newline()
    ctx.console.success(f"Xtensa Rust is now {report.plan.version}")
    report_shell_errors(report.shell_errors, ctx)
