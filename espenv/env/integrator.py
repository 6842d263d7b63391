"""Wires an installation into the user's environment.

Failures are collected per shell and returned; one broken rc file never
stops the others from being patched or cleaned.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from espenv.core.errors import ShellError
from espenv.output.console import ConsoleProtocol
from espenv.toolchain.base import EnvExport

from .policy import PlatformPolicy

__all__ = ["ShellIntegrator"]


class ShellIntegrator:
    """Env scripts plus rc-file (or registry) updates for one install root.

    Args:
        policy: platform-specific writer
        console: progress output
        legacy_export_file: export file of older releases; removed by the add
            and remove passes unless it is ``keep_file``
        keep_file: the export file of the current installation, if any
    """

    def __init__(
        self,
        policy: PlatformPolicy,
        console: ConsoleProtocol,
        *,
        legacy_export_file: Path | None = None,
        keep_file: Path | None = None,
    ) -> None:
        self._policy = policy
        self._console = console
        self._legacy_export_file = legacy_export_file
        self._keep_file = keep_file

    def do_write_env_files(
        self, install_root: Path, exports: Sequence[EnvExport]
    ) -> list[ShellError]:
        self._console.debug(f"Writing environment scripts to {install_root}")
        return self._policy.write_env_files(install_root, exports)

    def do_add_to_path(self, install_root: Path, exports: Sequence[EnvExport]) -> list[ShellError]:
        errors = self._policy.add_to_path(install_root, exports)
        errors.extend(self._remove_legacy_export_file())
        return errors

    def do_remove_from_path(
        self, install_root: Path, exports: Sequence[EnvExport]
    ) -> list[ShellError]:
        errors = self._policy.remove_from_path(install_root, exports)
        errors.extend(self._remove_legacy_export_file())
        return errors

    def _remove_legacy_export_file(self) -> list[ShellError]:
        legacy = self._legacy_export_file
        if legacy is None or legacy == self._keep_file or not legacy.exists():
            return []
        try:
            legacy.unlink()
        except OSError as e:
            return [
                ShellError(
                    kind="cleanup_failed",
                    shell="export file",
                    path=legacy,
                    message=f"Cannot remove legacy export file: {e}",
                )
            ]
        self._console.debug(f"Removed legacy export file {legacy}")
        return []
