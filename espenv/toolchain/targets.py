"""RISC-V support on a rustup-managed nightly toolchain.

RISC-V chips need no patched compiler: an upstream nightly with the
bare-metal RISC-V targets and ``rust-src`` is enough. rustup owns the files,
so this installable only drives ``rustup``.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from espenv.core.errors import InstallError
from espenv.core.result import Err, Ok, Result
from espenv.platform.detection import HostTriple

from .base import EnvExport, InstallContext

__all__ = ["TargetSupport", "RISCV_TARGETS"]

RISCV_TARGETS = (
    "riscv32imc-unknown-none-elf",
    "riscv32imac-unknown-none-elf",
    "riscv32imafc-unknown-none-elf",
)

_QUERY_TIMEOUT = 60.0


@dataclass(frozen=True, slots=True)
class TargetSupport:
    nightly_version: str
    host: HostTriple
    rustup_home: Path
    targets: tuple[str, ...] = RISCV_TARGETS

    kind: Literal["targets"] = "targets"

    @property
    def name(self) -> str:
        return f"RISC-V targets ({self.nightly_version})"

    @property
    def version(self) -> str:
        return self.nightly_version

    @property
    def destination(self) -> Path:
        return self.rustup_home / "toolchains" / f"{self.nightly_version}-{self.host}"

    def _error(self, kind: Literal["query_failed", "script_execution"], message: str) -> InstallError:
        return InstallError(kind=kind, component=self.name, path=self.destination, message=message)

    def installed_targets(self, ctx: InstallContext) -> Result[set[str] | None, InstallError]:
        """Targets present on the nightly toolchain; None if the toolchain is missing."""
        result = ctx.runner.run(
            ["rustup", "target", "list", "--installed", "--toolchain", self.nightly_version],
            timeout=_QUERY_TIMEOUT,
        )
        if isinstance(result, Err):
            if result.error.not_found:
                return Err(
                    self._error(
                        "query_failed",
                        "rustup was not found, install it from https://rustup.rs",
                    )
                )
            return Ok(None)
        return Ok({line.strip() for line in result.value.splitlines() if line.strip()})

    def install(self, ctx: InstallContext) -> Result[list[EnvExport], InstallError]:
        queried = self.installed_targets(ctx)
        if isinstance(queried, Err):
            return queried

        installed = queried.value
        if installed is None:
            ctx.console.print(f"Installing {self.nightly_version} toolchain")
            ran = ctx.runner.run(
                [
                    "rustup",
                    "toolchain",
                    "install",
                    self.nightly_version,
                    "--profile",
                    "minimal",
                    "--component",
                    "rust-src",
                ],
                stream=True,
            )
            if isinstance(ran, Err):
                return Err(self._error("script_execution", f"Toolchain install failed: {ran.error}"))
            installed = set()

        missing = [t for t in self.targets if t not in installed]
        if not missing:
            ctx.console.info(f"{self.name} are already installed, reusing them")
            return Ok([])

        ctx.console.print(f"Installing {', '.join(missing)}")
        ran = ctx.runner.run(
            ["rustup", "target", "add", "--toolchain", self.nightly_version, *missing],
            stream=True,
        )
        if isinstance(ran, Err):
            return Err(self._error("script_execution", f"Target install failed: {ran.error}"))
        return Ok([])

    def uninstall(self, ctx: InstallContext) -> Result[None, InstallError]:
        """Remove the targets; the nightly toolchain itself is left to rustup."""
        queried = self.installed_targets(ctx)
        if isinstance(queried, Err):
            return Err(queried.error)

        present = [t for t in self.targets if t in (queried.value or set())]
        if not present:
            return Ok(None)

        ran = ctx.runner.run(
            ["rustup", "target", "remove", "--toolchain", self.nightly_version, *present],
            stream=True,
        )
        if isinstance(ran, Err):
            return Err(self._error("script_execution", f"Target removal failed: {ran.error}"))
        return Ok(None)
