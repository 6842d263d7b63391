"""Xtensa-enabled Rust compiler and its standard library sources.

Both are published on the esp-rs/rust-build releases page. On Unix they are
rust-installer tarballs whose ``install.sh`` copies the files into the
destination; on Windows a single zip carries compiler and sources and is
unpacked in place.
"""

from __future__ import annotations

import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from espenv.core.errors import InstallError
from espenv.core.result import Err, Ok, Result
from espenv.core.version import ExtendedVersion
from espenv.platform.detection import HostTriple
from espenv.tools.github import release_download_url

from .base import EnvExport, InstallContext, Presence, remove_directory

__all__ = ["CompilerToolchain", "StandardLibraryBundle", "rust_artifact_extension"]

_INSTALLER_ARGS = ("--prefix=", "--without=rust-docs-json-preview,rust-docs")
_VERSION_TIMEOUT = 30.0


def rust_artifact_extension(host: HostTriple) -> str:
    return "zip" if host.is_windows else "tar.xz"


def _run_rust_installer(
    ctx: InstallContext,
    *,
    component: str,
    url: str,
    installer_dir: str,
    destination: Path,
) -> Result[None, InstallError]:
    """Unpack a rust-installer tarball in a private directory and run its install.sh."""
    try:
        with tempfile.TemporaryDirectory(prefix="espenv-") as tmp:
            staging = Path(tmp)
            fetched = ctx.fetcher.fetch_and_extract(url, staging, component=component)
            if isinstance(fetched, Err):
                return fetched

            script = staging / installer_dir / "install.sh"
            cmd = ["bash", str(script), f"--destdir={destination}", *_INSTALLER_ARGS]
            ctx.console.debug(" ".join(cmd))
            ran = ctx.runner.run(cmd, stream=True)
            if isinstance(ran, Err):
                return Err(
                    InstallError(
                        kind="script_execution",
                        component=component,
                        path=destination,
                        message=f"Installer failed: {ran.error}",
                    )
                )
    except OSError as e:
        return Err(
            InstallError(
                kind="create_directory",
                component=component,
                path=destination,
                message=f"Cannot prepare staging directory: {e}",
            )
        )
    return Ok(None)


@dataclass(frozen=True, slots=True)
class CompilerToolchain:
    """The Xtensa Rust toolchain, registered with rustup under ``toolchain_name``."""

    version: ExtendedVersion
    host: HostTriple
    destination: Path
    toolchain_name: str = "esp"

    kind: Literal["compiler"] = "compiler"

    @property
    def name(self) -> str:
        return f"Xtensa Rust {self.version}"

    @property
    def artifact_url(self) -> str:
        ext = rust_artifact_extension(self.host)
        return release_download_url(str(self.version), f"rust-{self.version}-{self.host}.{ext}")

    @property
    def rustc(self) -> Path:
        return self.destination / "bin" / self.host.platform.exe_name("rustc")

    def presence(self, ctx: InstallContext) -> Presence:
        """Compare the installed compiler with the requested build.

        esp-rs builds print the full build after the commit info, e.g.
        ``rustc 1.74.0-nightly (abc 2023-11-01) (1.74.0.1)``. Output without
        the exact build is stale, even when ``M.m.p`` matches.
        """
        if not self.destination.exists():
            return "absent"
        if not self.rustc.exists():
            return "stale"
        result = ctx.runner.run([str(self.rustc), "--version"], timeout=_VERSION_TIMEOUT)
        if isinstance(result, Err):
            ctx.console.debug(f"{self.rustc} is not functional: {result.error}")
            return "stale"
        build = re.compile(rf"(?<![\d.]){re.escape(str(self.version))}(?![\d.])")
        return "current" if build.search(result.value) else "stale"

    def install(self, ctx: InstallContext) -> Result[list[EnvExport], InstallError]:
        match self.presence(ctx):
            case "current":
                ctx.console.info(
                    f"{self.name} is already installed in {self.destination}, reusing it"
                )
                return Ok([])
            case "stale":
                ctx.console.warning(
                    f"Replacing the toolchain in {self.destination} with {self.version}"
                )
                removed = self.uninstall(ctx)
                if isinstance(removed, Err):
                    return removed
            case "absent":
                pass

        ctx.console.print(f"Installing {self.name}")
        if self.host.is_windows:
            # The zip wraps everything in a top-level "esp/" directory.
            fetched = ctx.fetcher.fetch_and_extract(
                self.artifact_url, self.destination, component=self.name, strip_components=1
            )
            if isinstance(fetched, Err):
                return fetched
            return Ok([])

        ran = _run_rust_installer(
            ctx,
            component=self.name,
            url=self.artifact_url,
            installer_dir=f"rust-nightly-{self.host}",
            destination=self.destination,
        )
        if isinstance(ran, Err):
            # A half-copied toolchain would pass the existence check next time.
            cleaned = remove_directory(self.destination, self.name)
            if isinstance(cleaned, Err):
                ctx.console.warning(str(cleaned.error))
            return ran
        return Ok([])

    def uninstall(self, ctx: InstallContext) -> Result[None, InstallError]:
        ctx.console.debug(f"Removing {self.destination}")
        return remove_directory(self.destination, self.name)


@dataclass(frozen=True, slots=True)
class StandardLibraryBundle:
    """``rust-src`` for the Xtensa toolchain, installed into the compiler's directory."""

    version: ExtendedVersion
    host: HostTriple
    destination: Path

    kind: Literal["stdlib"] = "stdlib"

    @property
    def name(self) -> str:
        return f"rust-src {self.version}"

    @property
    def artifact_url(self) -> str:
        return release_download_url(str(self.version), f"rust-src-{self.version}.tar.xz")

    @property
    def sources(self) -> Path:
        return self.destination / "lib" / "rustlib" / "src" / "rust"

    def presence(self, ctx: InstallContext) -> Presence:
        # Windows bundles ship the sources inside the compiler zip.
        if self.host.is_windows or self.sources.is_dir():
            return "current"
        return "absent"

    def install(self, ctx: InstallContext) -> Result[list[EnvExport], InstallError]:
        if self.presence(ctx) == "current":
            ctx.console.info(f"{self.name} is already installed, reusing it")
            return Ok([])

        ctx.console.print(f"Installing {self.name}")
        ran = _run_rust_installer(
            ctx,
            component=self.name,
            url=self.artifact_url,
            installer_dir="rust-src-nightly",
            destination=self.destination,
        )
        if isinstance(ran, Err):
            cleaned = remove_directory(self.sources, self.name)
            if isinstance(cleaned, Err):
                ctx.console.warning(str(cleaned.error))
            return ran
        return Ok([])

    def uninstall(self, ctx: InstallContext) -> Result[None, InstallError]:
        if self.host.is_windows:
            return Ok(None)
        return remove_directory(self.sources, self.name)
