"""Espressif LLVM/Clang distribution with Xtensa support.

Only ``libclang`` is needed to generate bindings, so by default the minified
``libs_`` archive is installed; ``extended`` installs the full distribution
including the ``clang`` binary.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from espenv.core.errors import InstallError
from espenv.core.result import Err, Ok, Result
from espenv.platform.detection import HostTriple

from .base import EnvExport, InstallContext, Presence, remove_directory

__all__ = ["ClangToolchain", "LLVM_VERSION", "llvm_arch"]

LLVM_REPOSITORY = "https://github.com/espressif/llvm-project/releases/download"
LLVM_VERSION = "esp-16.0.4-20231113"
CLANG_DIR_NAME = "xtensa-esp32-elf-clang"


def llvm_arch(host: HostTriple) -> str:
    match host:
        case HostTriple.X86_64_LINUX_GNU:
            return "linux-amd64"
        case HostTriple.AARCH64_LINUX_GNU:
            return "linux-arm64"
        case HostTriple.X86_64_APPLE_DARWIN:
            return "macos"
        case HostTriple.AARCH64_APPLE_DARWIN:
            return "macos-arm64"
        case HostTriple.X86_64_WINDOWS_MSVC | HostTriple.X86_64_WINDOWS_GNU:
            return "win64"


@dataclass(frozen=True, slots=True)
class ClangToolchain:
    host: HostTriple
    toolchain_dir: Path
    extended: bool = False
    version: str = LLVM_VERSION

    kind: Literal["clang"] = "clang"

    @property
    def name(self) -> str:
        return f"LLVM {self.version}"

    @property
    def root(self) -> Path:
        return self.toolchain_dir / CLANG_DIR_NAME

    @property
    def destination(self) -> Path:
        return self.root / f"{self.version}-{self.host}"

    @property
    def artifact_url(self) -> str:
        prefix = "" if self.extended else "libs_"
        file_name = f"{prefix}llvm-{self.version}-{llvm_arch(self.host)}.tar.xz"
        return f"{LLVM_REPOSITORY}/{self.version}/{file_name}"

    @property
    def clang(self) -> Path:
        return self.destination / "esp-clang" / "bin" / self.host.platform.exe_name("clang")

    @property
    def libclang_path(self) -> Path:
        if self.host.is_windows:
            return self.destination / "esp-clang" / "bin" / "libclang.dll"
        return self.destination / "esp-clang" / "lib"

    def exports(self) -> list[EnvExport]:
        exports = [EnvExport.variable("LIBCLANG_PATH", self.libclang_path)]
        if self.host.is_windows:
            exports.append(EnvExport.prepend_path(self.destination / "esp-clang" / "bin"))
        if self.extended:
            exports.append(EnvExport.variable("CLANG_PATH", self.clang))
        return exports

    def presence(self, ctx: InstallContext) -> Presence:
        if self.destination.is_dir():
            # A minified install lacks the clang binary the full one promises.
            if self.extended and not self.clang.exists():
                return "stale"
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
                ctx.console.warning(f"Replacing the LLVM installation in {self.root}")
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
