"""ESP-IDF framework checkout and its tool bootstrap."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from espenv.core.errors import InstallError
from espenv.core.result import Err, Ok, Result
from espenv.core.targets import Target
from espenv.platform.detection import HostTriple

from .base import EnvExport, InstallContext, Presence, remove_directory

__all__ = ["FrameworkRepo", "ESP_IDF_REPOSITORY"]

ESP_IDF_REPOSITORY = "https://github.com/espressif/esp-idf"


@dataclass(frozen=True, slots=True)
class FrameworkRepo:
    """ESP-IDF at a git ref, cloned under ``<tools_dir>/frameworks``.

    ``install.sh`` (``install.bat`` on Windows) then downloads the IDF tools
    for the requested chips into ``tools_dir``.
    """

    ref: str
    host: HostTriple
    tools_dir: Path
    targets: tuple[Target, ...]

    kind: Literal["framework"] = "framework"

    @property
    def name(self) -> str:
        return f"ESP-IDF {self.ref}"

    @property
    def version(self) -> str:
        return self.ref

    @property
    def destination(self) -> Path:
        # Branch refs such as "release/v5.1" become one directory level.
        return self.tools_dir / "frameworks" / f"esp-idf-{self.ref.replace('/', '-')}"

    def exports(self) -> list[EnvExport]:
        return [
            EnvExport.variable("IDF_PATH", self.destination),
            EnvExport.variable("IDF_TOOLS_PATH", self.tools_dir),
        ]

    def presence(self, ctx: InstallContext) -> Presence:
        if (self.destination / "tools" / "idf.py").exists():
            return "current"
        if self.destination.exists():
            return "stale"
        return "absent"

    def _bootstrap_command(self) -> list[str]:
        chips = ",".join(t.value for t in self.targets) or "all"
        if self.host.is_windows:
            return ["cmd", "/c", str(self.destination / "install.bat"), chips]
        return ["bash", str(self.destination / "install.sh"), chips]

    def install(self, ctx: InstallContext) -> Result[list[EnvExport], InstallError]:
        match self.presence(ctx):
            case "current":
                ctx.console.info(f"{self.name} is already checked out in {self.destination}")
                return Ok(self.exports())
            case "stale":
                ctx.console.warning(f"Removing incomplete checkout in {self.destination}")
                removed = self.uninstall(ctx)
                if isinstance(removed, Err):
                    return removed
            case "absent":
                pass

        ctx.console.print(f"Cloning {self.name}")
        cloned = ctx.runner.run(
            [
                "git",
                "clone",
                "--depth",
                "1",
                "--shallow-submodules",
                "--recursive",
                "--branch",
                self.ref,
                ESP_IDF_REPOSITORY,
                str(self.destination),
            ],
            stream=True,
        )
        if isinstance(cloned, Err):
            self._discard(ctx)
            return Err(
                InstallError(
                    kind="clone_failed",
                    component=self.name,
                    path=self.destination,
                    message=f"git clone failed: {cloned.error}",
                )
            )

        ctx.console.print(f"Installing {self.name} tools")
        bootstrapped = ctx.runner.run(
            self._bootstrap_command(),
            cwd=self.destination,
            env={"IDF_TOOLS_PATH": str(self.tools_dir)},
            stream=True,
        )
        if isinstance(bootstrapped, Err):
            # The checkout alone would be reused next time without tools.
            self._discard(ctx)
            return Err(
                InstallError(
                    kind="bootstrap_failed",
                    component=self.name,
                    path=self.destination,
                    message=f"Tool bootstrap failed: {bootstrapped.error}",
                )
            )
        return Ok(self.exports())

    def uninstall(self, ctx: InstallContext) -> Result[None, InstallError]:
        return remove_directory(self.destination, self.name)

    def _discard(self, ctx: InstallContext) -> None:
        cleaned = remove_directory(self.destination, self.name)
        if isinstance(cleaned, Err):
            ctx.console.warning(str(cleaned.error))
