from __future__ import annotations

from pathlib import Path

import typer

from espenv.cli.commands._helpers import exit_on_error, exit_with_code, report_shell_errors
from espenv.cli.context import build_context
from espenv.core.errors import ErrorCode
from espenv.core.targets import TargetParseError, parse_targets
from espenv.output.console import Style
from espenv.services.toolchains import InstallRequest


def install(
    targets: str = typer.Option(
        "all",
        "--targets",
        "-t",
        help="Comma or space separated chips (esp32, esp32c3, ...) or 'all'",
    ),
    version: str | None = typer.Option(
        None,
        "--toolchain-version",
        "-v",
        help="Xtensa Rust version: M.m.p (newest build) or M.m.p.s (exact)",
    ),
    name: str | None = typer.Option(None, "--name", "-n", help="Toolchain name (default: esp)"),
    nightly_version: str | None = typer.Option(
        None, "--nightly-version", help="Nightly toolchain used for RISC-V targets"
    ),
    esp_idf_version: str | None = typer.Option(
        None, "--esp-idf-version", help="Also install ESP-IDF at this branch or tag"
    ),
    export_file: Path | None = typer.Option(
        None, "--export-file", "-e", help="Also write the exports to this file"
    ),
    extended_llvm: bool = typer.Option(
        False, "--extended-llvm", help="Install the full LLVM distribution, not only libclang"
    ),
    std: bool = typer.Option(False, "--std", help="Only install what std projects need"),
    esp_riscv_gcc: bool = typer.Option(
        False, "--esp-riscv-gcc", help="Also install the Espressif RISC-V GCC (not with --std)"
    ),
    skip_version_parse: bool = typer.Option(
        False,
        "--skip-version-parse",
        help="Use --toolchain-version as is (M.m.p.s), without querying releases",
    ),
    no_modify_env: bool = typer.Option(
        False, "--no-modify-env", help="Do not touch shell profiles or the user environment"
    ),
    default_host: str | None = typer.Option(
        None, "--default-host", help="Host triple to install for (default: this machine)"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be done"),
    verbose: bool = typer.Option(False, "--verbose", help="Show detailed progress"),
) -> None:
    """Install the Espressif Rust toolchains.

    Downloads the Xtensa compiler and, depending on the targets, rust-src,
    LLVM, GCC and the RISC-V targets, then wires them into the shell.
    """
    ctx = build_context(verbose=verbose, default_host=default_host)

    try:
        chips = parse_targets(targets)
    except TargetParseError as e:
        ctx.console.error(str(e))
        exit_with_code(int(ErrorCode.USER_ERROR))

    request = InstallRequest(
        targets=chips,
        version=version,
        toolchain_name=name,
        nightly_version=nightly_version,
        esp_idf_version=esp_idf_version,
        export_file=export_file.expanduser() if export_file else None,
        extended_llvm=extended_llvm,
        std=std,
        esp_riscv_gcc=esp_riscv_gcc,
        skip_version_parse=skip_version_parse,
        modify_env=not no_modify_env,
    )

    if dry_run:
        if ctx.service.dry_run(request) is None:
            exit_with_code(int(ErrorCode.USER_ERROR))
        return

    report = exit_on_error(ctx.service.install(request), ctx)

    ctx.console.newline()
    ctx.console.success(f"Installed Xtensa Rust {report.plan.version}")
    if report.export_file is not None:
        ctx.console.print(f"Exports written to {report.export_file}", Style.DIM)
    for line in ctx.service.activation_hint(report):
        ctx.console.print(line)
    report_shell_errors(report.shell_errors, ctx)
