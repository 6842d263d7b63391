from __future__ import annotations

import typer

from espenv.cli.commands._helpers import exit_on_error, exit_with_code
from espenv.cli.context import build_context
from espenv.core.errors import exit_code_for


def uninstall(
    verbose: bool = typer.Option(False, "--verbose", help="Show detailed progress"),
) -> None:
    """Remove the installed toolchains and the shell integration."""
    ctx = build_context(verbose=verbose)
    report = exit_on_error(ctx.service.uninstall(), ctx)

    if report.errors:
        ctx.console.newline()
        ctx.console.error(f"Uninstall finished with {len(report.errors)} error(s)")
        # First error decides the exit code; all were printed as they happened.
        exit_with_code(int(exit_code_for(report.errors[0])))

    ctx.console.success("Uninstalled")
