"""Espressif cross GCC toolchains (crosstool-NG builds)."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from espenv.core.errors import InstallError
from espenv.core.result import Err, Ok, Result
from espenv.platform.detection import HostTriple

from .base import EnvExport, InstallContext, Presence, remove_directory

__all__ = [
    "CrossGccToolchain",
    "GCC_RELEASE",
    "GCC_VERSION",
    "RISCV_GCC",
    "XTENSA_GCC",
    "gcc_arch",
]

GCC_REPOSITORY = "https://github.com/espressif/crosstool-NG/releases/download"
GCC_VERSION = "13.2.0_20230928"
GCC_RELEASE = f"esp-{GCC_VERSION}"

XTENSA_GCC = "xtensa-esp-elf"
RISCV_GCC = "riscv32-esp-elf"

type GccName = Literal["xtensa-esp-elf", "riscv32-esp-elf"]


def gcc_arch(host: HostTriple) -> str:
    """crosstool-NG's spelling of the host."""
    match host:
        case HostTriple.X86_64_LINUX_GNU:
            return "x86_64-linux-gnu"
        case HostTriple.AARCH64_LINUX_GNU:
            return "aarch64-linux-gnu"
        case HostTriple.X86_64_APPLE_DARWIN:
            return "x86_64-apple-darwin"
        case HostTriple.AARCH64_APPLE_DARWIN:
            return "aarch64-apple-darwin"
        case HostTriple.X86_64_WINDOWS_MSVC | HostTriple.X86_64_WINDOWS_GNU:
            return "x86_64-w64-mingw32"


@dataclass(frozen=True, slots=True)
class CrossGccToolchain:
    """One GCC toolchain under ``<toolchain_dir>/<gcc name>/<release>``.

    Other releases found next to the requested one are stale and removed
    before installing.
    """

    toolchain: GccName
    host: HostTriple
    toolchain_dir: Path
    release: str = GCC_RELEASE

    kind: Literal["gcc"] = "gcc"

    @property
    def name(self) -> str:
        return f"{self.toolchain} {self.release}"

    @property
    def version(self) -> str:
        return self.release

    @property
    def root(self) -> Path:
        return self.toolchain_dir / self.toolchain

    @property
    def destination(self) -> Path:
        return self.root / self.release

    @property
    def bin_dir(self) -> Path:
        return self.destination / self.toolchain / "bin"

    @property
    def artifact_url(self) -> str:
        ext = "zip" if self.host.is_windows else "tar.xz"
        version = self.release.removeprefix("esp-")
        file_name = f"{self.toolchain}-{version}-{gcc_arch(self.host)}.{ext}"
        return f"{GCC_REPOSITORY}/{self.release}/{file_name}"

    def exports(self) -> list[EnvExport]:
        return [EnvExport.prepend_path(self.bin_dir)]

    def presence(self, ctx: InstallContext) -> Presence:
        if self.destination.is_dir():
            return "current"
        if self.root.exists():
            return "stale"
        return "absent"

    def install(self, ctx: InstallContext) -> Result[list[EnvExport], InstallError]:
        match self.presence(ctx):
            case "current":
                ctx.console.info(f"{self.name} is already installed, reusing it")
                return Ok(self.exports())
            case "stale":
                ctx.console.warning(f"Removing other {self.toolchain} releases in {self.root}")
                removed = self.uninstall(ctx)
                if isinstance(removed, Err):
                    return removed
            case "absent":
                pass

        ctx.console.print(f"Installing {self.name}")
        fetched = ctx.fetcher.fetch_and_extract(
            self.artifact_url, self.destination, component=self.name
        )
        if isinstance(fetched, Err):
            cleaned = remove_directory(self.destination, self.name)
            if isinstance(cleaned, Err):
                ctx.console.warning(str(cleaned.error))
            return fetched
        return Ok(self.exports())

    def uninstall(self, ctx: InstallContext) -> Result[None, InstallError]:
        return remove_directory(self.root, self.name)
