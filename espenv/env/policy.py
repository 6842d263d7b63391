"""How an installation is made visible to new shells, per platform.

- PosixPolicy: env scripts in the install root, sourced from shell rc files
- RegistryPolicy: values written to the per-user environment (Windows
  registry), plus env.ps1/env.bat for manual use

Both are plain classes selected at runtime, so either can be exercised on
any machine with a temporary home directory or an in-memory store.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from espenv.core.errors import ShellError
from espenv.platform.detection import Platform
from espenv.platform.files import atomic_write_text, read_text_or_none
from espenv.toolchain.base import EnvExport, EnvKind, ScriptSyntax

from .scripts import generate_env_script, script_path, source_line
from .shell import (
    ShellEnvironment,
    ShellProfile,
    append_sourcing_line,
    probe_shells,
    remove_sourcing_line,
)

__all__ = [
    "PlatformPolicy",
    "PosixPolicy",
    "RegistryPolicy",
    "EnvironmentStore",
    "WinregStore",
    "InMemoryStore",
    "prepend_path_entry",
    "remove_path_entry",
    "select_policy",
]

WM_SETTINGCHANGE = 0x001A
SMTO_ABORTIFHUNG = 0x0002
HWND_BROADCAST = 0xFFFF


class PlatformPolicy(Protocol):
    """Platform-specific half of the shell integrator."""

    def write_env_files(
        self, install_root: Path, exports: Sequence[EnvExport]
    ) -> list[ShellError]: ...

    def add_to_path(self, install_root: Path, exports: Sequence[EnvExport]) -> list[ShellError]: ...

    def remove_from_path(
        self, install_root: Path, exports: Sequence[EnvExport]
    ) -> list[ShellError]: ...


class PosixPolicy:
    """Rc-file patching for posix, bash, zsh and fish.

    Shells are probed again for every operation, so a shell installed since
    the last run is picked up.
    """

    def __init__(self, env: ShellEnvironment) -> None:
        self._env = env

    def available_shells(self) -> tuple[list[ShellProfile], list[ShellError]]:
        profiles, errors = probe_shells(self._env)
        return [p for p in profiles if p.available], errors

    def write_env_files(self, install_root: Path, exports: Sequence[EnvExport]) -> list[ShellError]:
        shells, errors = self.available_shells()
        written: set[ScriptSyntax] = set()
        for shell in shells:
            if shell.syntax in written:
                continue
            path = script_path(install_root, shell.syntax)
            try:
                atomic_write_text(path, generate_env_script(shell.syntax, exports))
            except OSError as e:
                errors.append(
                    ShellError(
                        kind="patch_failed",
                        shell=str(shell.kind),
                        path=path,
                        message=f"Cannot write environment script: {e}",
                    )
                )
                continue
            written.add(shell.syntax)
        return errors

    def add_to_path(self, install_root: Path, exports: Sequence[EnvExport]) -> list[ShellError]:
        shells, errors = self.available_shells()
        for shell in shells:
            line = source_line(install_root, shell.syntax)
            for rc in shell.update_rcs:
                try:
                    content = read_text_or_none(rc) or ""
                    patched = append_sourcing_line(content, line)
                    if patched != content:
                        atomic_write_text(rc, patched)
                except OSError as e:
                    errors.append(
                        ShellError(
                            kind="patch_failed",
                            shell=str(shell.kind),
                            path=rc,
                            message=f"Cannot update rc file: {e}",
                        )
                    )
                    # One failure ends this shell; the other shells continue.
                    break
        return errors

    def remove_from_path(
        self, install_root: Path, exports: Sequence[EnvExport]
    ) -> list[ShellError]:
        shells, errors = self.available_shells()
        for shell in shells:
            line = source_line(install_root, shell.syntax)
            for rc in shell.rcfiles:
                try:
                    content = read_text_or_none(rc)
                    if content is None:
                        continue
                    cleaned = remove_sourcing_line(content, line)
                    if cleaned != content:
                        atomic_write_text(rc, cleaned)
                except OSError as e:
                    errors.append(
                        ShellError(
                            kind="cleanup_failed",
                            shell=str(shell.kind),
                            path=rc,
                            message=f"Cannot clean rc file: {e}",
                        )
                    )
        return errors


class EnvironmentStore(Protocol):
    """Persistent per-user environment variables."""

    def get(self, name: str) -> str | None: ...

    def set(self, name: str, value: str) -> None: ...

    def delete(self, name: str) -> None: ...

    def notify(self) -> None:
        """Tell running programs the environment changed."""
        ...


class WinregStore:
    """``HKEY_CURRENT_USER\\Environment``.

    Raises OSError from every method when the registry cannot be accessed.
    """

    SUBKEY = "Environment"

    def get(self, name: str) -> str | None:
        import winreg

        with winreg.OpenKey(winreg.HKEY_CURRENT_USER, self.SUBKEY, 0, winreg.KEY_READ) as key:
            try:
                value, _ = winreg.QueryValueEx(key, name)
            except FileNotFoundError:
                return None
        return str(value)

    def set(self, name: str, value: str) -> None:
        import winreg

        access = winreg.KEY_READ | winreg.KEY_WRITE
        with winreg.OpenKey(winreg.HKEY_CURRENT_USER, self.SUBKEY, 0, access) as key:
            try:
                _, reg_type = winreg.QueryValueEx(key, name)
            except FileNotFoundError:
                reg_type = winreg.REG_EXPAND_SZ if name.upper() == "PATH" else winreg.REG_SZ
            if reg_type not in (winreg.REG_SZ, winreg.REG_EXPAND_SZ):
                reg_type = winreg.REG_EXPAND_SZ
            winreg.SetValueEx(key, name, 0, reg_type, value)

    def delete(self, name: str) -> None:
        import winreg

        with winreg.OpenKey(winreg.HKEY_CURRENT_USER, self.SUBKEY, 0, winreg.KEY_WRITE) as key:
            try:
                winreg.DeleteValue(key, name)
            except FileNotFoundError:
                return

    def notify(self) -> None:
        import ctypes

        result = ctypes.c_ulong()
        # SendMessageTimeout so one hung window cannot block the installer.
        ctypes.windll.user32.SendMessageTimeoutW(  # type: ignore[attr-defined]
            HWND_BROADCAST,
            WM_SETTINGCHANGE,
            0,
            "Environment",
            SMTO_ABORTIFHUNG,
            5000,
            ctypes.byref(result),
        )


class InMemoryStore:
    """EnvironmentStore for tests."""

    def __init__(self, values: dict[str, str] | None = None) -> None:
        self.values: dict[str, str] = dict(values or {})
        self.notifications = 0

    def get(self, name: str) -> str | None:
        return self.values.get(name)

    def set(self, name: str, value: str) -> None:
        self.values[name] = value

    def delete(self, name: str) -> None:
        self.values.pop(name, None)

    def notify(self) -> None:
        self.notifications += 1


def prepend_path_entry(path: str, entry: str) -> str:
    """Put ``entry`` first on a ``;``-separated PATH unless it already occurs.

    The membership test is a plain substring check, and a trailing ``;`` on
    the existing value is kept.
    """
    if entry in path:
        return path
    if not path:
        return entry
    return f"{entry};{path}"


def remove_path_entry(path: str, entry: str) -> str:
    """Drop every element equal to ``entry``; other elements and a trailing ``;`` stay."""
    parts = path.split(";")
    kept = [p for p in parts if p != entry]
    if len(kept) == len(parts):
        return path
    return ";".join(kept)


class RegistryPolicy:
    """Per-user environment store instead of rc files."""

    SHELL = "registry"

    def __init__(self, store: EnvironmentStore) -> None:
        self._store = store

    def write_env_files(self, install_root: Path, exports: Sequence[EnvExport]) -> list[ShellError]:
        errors: list[ShellError] = []
        for syntax in (ScriptSyntax.POWERSHELL, ScriptSyntax.BATCH):
            path = script_path(install_root, syntax)
            try:
                atomic_write_text(path, generate_env_script(syntax, exports))
            except OSError as e:
                errors.append(
                    ShellError(
                        kind="patch_failed",
                        shell=str(syntax),
                        path=path,
                        message=f"Cannot write environment script: {e}",
                    )
                )
        return errors

    def add_to_path(self, install_root: Path, exports: Sequence[EnvExport]) -> list[ShellError]:
        try:
            changed = False
            path = self._store.get("PATH") or ""
            updated = path
            for export in exports:
                if export.kind == EnvKind.PATH_PREPEND:
                    updated = prepend_path_entry(updated, export.value)
                elif self._store.get(export.key) != export.value:
                    self._store.set(export.key, export.value)
                    changed = True
            if updated != path:
                self._store.set("PATH", updated)
                changed = True
            if changed:
                self._store.notify()
        except OSError as e:
            return [
                ShellError(
                    kind="patch_failed",
                    shell=self.SHELL,
                    path=None,
                    message=f"Cannot update user environment: {e}",
                )
            ]
        return []

    def remove_from_path(
        self, install_root: Path, exports: Sequence[EnvExport]
    ) -> list[ShellError]:
        try:
            changed = False
            path = self._store.get("PATH") or ""
            updated = path
            for export in exports:
                if export.kind == EnvKind.PATH_PREPEND:
                    updated = remove_path_entry(updated, export.value)
                elif self._store.get(export.key) is not None:
                    self._store.delete(export.key)
                    changed = True
            if updated != path:
                self._store.set("PATH", updated)
                changed = True
            if changed:
                self._store.notify()
        except OSError as e:
            return [
                ShellError(
                    kind="cleanup_failed",
                    shell=self.SHELL,
                    path=None,
                    message=f"Cannot clean user environment: {e}",
                )
            ]
        return []


def select_policy(
    platform: Platform,
    *,
    shell_env: ShellEnvironment,
    store: EnvironmentStore | None = None,
) -> PlatformPolicy:
    """RegistryPolicy on Windows, PosixPolicy elsewhere."""
    if platform == Platform.WINDOWS:
        return RegistryPolicy(store if store is not None else WinregStore())
    return PosixPolicy(shell_env)
