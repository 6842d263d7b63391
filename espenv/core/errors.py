"""Error taxonomy and exit codes.

Core operations never decide the process exit status themselves; they return
one of the error values below and the CLI maps it with ``exit_code_for``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import Literal

__all__ = [
    "ErrorCode",
    "VersionError",
    "InstallError",
    "ShellError",
    "CoreError",
    "exit_code_for",
]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands.

    These values are used as process exit codes and should remain stable.
    """

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    INSTALL_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK


VersionErrorKind = Literal["invalid_format", "no_matching_release", "index_unavailable"]


@dataclass(frozen=True, slots=True)
class VersionError:
    """A requested toolchain version could not be pinned to a release."""

    kind: VersionErrorKind
    requested: str
    message: str
    hint: str | None = None

    def __str__(self) -> str:
        return f"{self.message}: '{self.requested}'"


InstallErrorKind = Literal[
    "fetch",
    "unsupported_archive_format",
    "create_directory",
    "remove_directory",
    "script_execution",
    "clone_failed",
    "bootstrap_failed",
    "version_mismatch",
    "query_failed",
    "not_installed",
]


@dataclass(frozen=True, slots=True)
class InstallError:
    """An installable failed; names the component and the path involved."""

    kind: InstallErrorKind
    component: str
    path: Path
    message: str

    def __str__(self) -> str:
        return f"{self.component}: {self.message} ({self.path})"


ShellErrorKind = Literal["probe_failed", "patch_failed", "cleanup_failed"]


@dataclass(frozen=True, slots=True)
class ShellError:
    """A single shell profile could not be probed, patched or cleaned."""

    kind: ShellErrorKind
    shell: str
    path: Path | None
    message: str

    def __str__(self) -> str:
        if self.path is None:
            return f"{self.shell}: {self.message}"
        return f"{self.shell}: {self.message} ({self.path})"


CoreError = VersionError | InstallError | ShellError


def exit_code_for(error: CoreError) -> ErrorCode:
    """Map a core error to the exit code reported by the CLI."""
    match error:
        case VersionError(kind="invalid_format" | "no_matching_release"):
            return ErrorCode.USER_ERROR
        case InstallError(kind="not_installed"):
            return ErrorCode.USER_ERROR
        case VersionError():
            return ErrorCode.NETWORK_ERROR
        case InstallError(kind="fetch"):
            return ErrorCode.NETWORK_ERROR
        case InstallError(kind="create_directory" | "remove_directory"):
            return ErrorCode.IO_ERROR
        case InstallError():
            return ErrorCode.INSTALL_ERROR
        case ShellError():
            return ErrorCode.ENV_ERROR
