"""Shared definitions for installable toolchain components.

- EnvExport: one environment change an installed component needs
- InstallContext: capabilities handed to every installable
- helpers for the destination checks all kinds share
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from espenv.core.errors import InstallError
from espenv.core.result import Err, Ok, Result
from espenv.platform.files import remove_tree

if TYPE_CHECKING:
    from espenv.output.console import ConsoleProtocol
    from espenv.platform.process import ProcessRunner
    from espenv.tools.fetch import ArtifactFetcher

__all__ = [
    "EnvKind",
    "EnvExport",
    "ScriptSyntax",
    "InstallContext",
    "Presence",
    "create_directory",
    "remove_directory",
]


class ScriptSyntax(Enum):
    """Languages an environment script can be written in."""

    POSIX = auto()
    FISH = auto()
    POWERSHELL = auto()
    BATCH = auto()

    def __str__(self) -> str:
        return self.name.lower()


class EnvKind(Enum):
    SET = auto()
    PATH_PREPEND = auto()


@dataclass(frozen=True, slots=True)
class EnvExport:
    """An environment variable assignment, or a directory to put first on PATH.

    For ``PATH_PREPEND`` the key is always ``PATH`` and the value is the
    directory.
    """

    key: str
    value: str
    kind: EnvKind = EnvKind.SET

    @classmethod
    def variable(cls, key: str, value: Path | str) -> EnvExport:
        return cls(key=key, value=str(value), kind=EnvKind.SET)

    @classmethod
    def prepend_path(cls, directory: Path | str) -> EnvExport:
        return cls(key="PATH", value=str(directory), kind=EnvKind.PATH_PREPEND)

    def render(self, syntax: ScriptSyntax) -> str:
        """Shell statement applying this export."""
        if self.kind == EnvKind.SET:
            match syntax:
                case ScriptSyntax.POSIX:
                    return f'export {self.key}="{self.value}"'
                case ScriptSyntax.FISH:
                    return f'set -gx {self.key} "{self.value}"'
                case ScriptSyntax.POWERSHELL:
                    return f'$Env:{self.key}="{self.value}"'
                case ScriptSyntax.BATCH:
                    return f"set {self.key}={self.value}"

        match syntax:
            case ScriptSyntax.POSIX:
                # Colons on both sides of $PATH make the membership test exact.
                return (
                    'case ":${PATH}:" in\n'
                    f'    *:"{self.value}":*) ;;\n'
                    f'    *) export PATH="{self.value}:$PATH" ;;\n'
                    "esac"
                )
            case ScriptSyntax.FISH:
                return f'fish_add_path -gP "{self.value}"'
            case ScriptSyntax.POWERSHELL:
                return f'$Env:PATH="{self.value};" + $Env:PATH'
            case ScriptSyntax.BATCH:
                return f"set PATH={self.value};%PATH%"

    def __str__(self) -> str:
        if self.kind == EnvKind.PATH_PREPEND:
            return f"PATH += {self.value}"
        return f"{self.key}={self.value}"


# "stale" means something is installed at the destination, but not the
# requested version; it is uninstalled before installing.
type Presence = Literal["absent", "current", "stale"]


@dataclass(frozen=True, slots=True)
class InstallContext:
    """Capabilities an installable needs; tests pass fakes."""

    fetcher: ArtifactFetcher
    runner: ProcessRunner
    console: ConsoleProtocol


def create_directory(path: Path, component: str) -> Result[Path, InstallError]:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        return Err(
            InstallError(
                kind="create_directory",
                component=component,
                path=path,
                message=f"Cannot create directory: {e}",
            )
        )
    return Ok(path)


def remove_directory(path: Path, component: str) -> Result[None, InstallError]:
    """Remove ``path`` entirely; a missing path is not an error."""
    try:
        remove_tree(path)
    except OSError as e:
        return Err(
            InstallError(
                kind="remove_directory",
                component=component,
                path=path,
                message=f"Cannot remove directory: {e}",
            )
        )
    return Ok(None)
