"""Environment script generation.

The install root gets one script per shell language:

    env         POSIX sh, bash, zsh      . "<root>/env"
    env.fish    fish                     . "<root>/env.fish"
    env.ps1     PowerShell               . "<root>\\env.ps1"
    env.bat     cmd                      call "<root>\\env.bat"

Scripts only contain the exports of the current installation and are
rewritten on every run. PATH entries are guarded so sourcing a script twice
does not grow PATH.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from espenv.toolchain.base import EnvExport, ScriptSyntax

__all__ = [
    "SCRIPT_NAMES",
    "generate_env_script",
    "script_path",
    "source_line",
]

SCRIPT_NAMES: dict[ScriptSyntax, str] = {
    ScriptSyntax.POSIX: "env",
    ScriptSyntax.FISH: "env.fish",
    ScriptSyntax.POWERSHELL: "env.ps1",
    ScriptSyntax.BATCH: "env.bat",
}

_HEADER = "espenv shell setup"


def script_path(install_root: Path, syntax: ScriptSyntax) -> Path:
    return install_root / SCRIPT_NAMES[syntax]


def source_line(install_root: Path, syntax: ScriptSyntax) -> str:
    """The line an rc file needs to load the script; compared byte for byte."""
    if syntax == ScriptSyntax.BATCH:
        return f'call "{script_path(install_root, syntax)}"'
    return f'. "{script_path(install_root, syntax)}"'


def generate_env_script(syntax: ScriptSyntax, exports: Sequence[EnvExport]) -> str:
    """Script applying ``exports`` in order.

    Returns:
        Script content; LF line endings for POSIX and fish, CRLF for
        PowerShell and batch.
    """
    match syntax:
        case ScriptSyntax.POSIX:
            lines = ["#!/bin/sh", f"# {_HEADER}"]
        case ScriptSyntax.FISH:
            lines = [f"# {_HEADER}"]
        case ScriptSyntax.POWERSHELL:
            lines = [f"# {_HEADER}"]
        case ScriptSyntax.BATCH:
            lines = ["@echo off", f"rem {_HEADER}"]

    lines.extend(export.render(syntax) for export in exports)

    if syntax in (ScriptSyntax.POWERSHELL, ScriptSyntax.BATCH):
        return "\r\n".join(lines) + "\r\n"
    return "\n".join(lines) + "\n"
