"""Unix shells and their startup (rc) files.

Users often have several shells, so detection is eager: a shell counts as
available if there is any trace of it (on PATH, the login shell, or for bash
an existing rc file). For every available shell the environment script is
sourced from its rc files with a single line:

    . "/home/me/.rustup/toolchains/esp/env"

That exact text is what later runs look for, both to avoid adding it twice
and to remove it again on uninstall.

Rc files per shell:

    posix   ~/.profile                      always written (created if missing)
    bash    ~/.bash_profile, ~/.bash_login, ~/.bashrc
                                            only existing files are written
    zsh     $ZDOTDIR/.zshenv, ~/.zshenv     first existing one is written,
                                            else the first candidate
    fish    $XDG_CONFIG_HOME/fish/conf.d/espenv.fish,
            ~/.config/fish/conf.d/espenv.fish
                                            all are written
"""

from __future__ import annotations

import shutil
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from espenv.core.errors import ShellError
from espenv.core.result import Err, Ok
from espenv.platform.paths import APP_NAME
from espenv.platform.process import ProcessRunner
from espenv.toolchain.base import ScriptSyntax

__all__ = [
    "ShellKind",
    "ShellProfile",
    "ShellEnvironment",
    "probe_shells",
    "zdotdir",
    "append_sourcing_line",
    "remove_sourcing_line",
]

_ZSH_PROBE_TIMEOUT = 5.0


class ShellKind(Enum):
    POSIX = "posix"
    BASH = "bash"
    ZSH = "zsh"
    FISH = "fish"

    def __str__(self) -> str:
        return self.value

    @property
    def syntax(self) -> ScriptSyntax:
        return ScriptSyntax.FISH if self == ShellKind.FISH else ScriptSyntax.POSIX


def _no_rcs() -> tuple[Path, ...]:
    return ()


@dataclass(frozen=True, slots=True)
class ShellProfile:
    """Probe result for one shell.

    Attributes:
        rcfiles: every rc file the shell reads that we recognise (cleanup scope)
        update_rcs: the subset the sourcing line is written to
    """

    kind: ShellKind
    available: bool
    rcfiles: tuple[Path, ...] = field(default_factory=_no_rcs)
    update_rcs: tuple[Path, ...] = field(default_factory=_no_rcs)

    @property
    def syntax(self) -> ScriptSyntax:
        return self.kind.syntax


@dataclass(frozen=True, slots=True)
class ShellEnvironment:
    """What probing looks at; production reads the real process state."""

    home: Path
    environ: Mapping[str, str]
    runner: ProcessRunner
    which: Callable[[str], str | None] = shutil.which

    def login_shell_is(self, name: str) -> bool:
        return name in self.environ.get("SHELL", "")

    def has_shell(self, name: str) -> bool:
        return self.login_shell_is(name) or self.which(name) is not None


def zdotdir(env: ShellEnvironment) -> Path | None:
    """Where zsh reads its startup files from, or None when undetermined.

    When zsh is the login shell its ``ZDOTDIR`` is in our environment;
    otherwise zsh itself is asked, with a timeout.
    """
    if env.login_shell_is("zsh"):
        value = env.environ.get("ZDOTDIR", "")
        return Path(value) if value else None

    result = env.runner.run(["zsh", "-c", "echo $ZDOTDIR"], timeout=_ZSH_PROBE_TIMEOUT)
    match result:
        case Ok(stdout) if stdout.strip():
            return Path(stdout.strip())
        case _:
            return None


def _probe_posix(env: ShellEnvironment) -> ShellProfile:
    profile = env.home / ".profile"
    # The only rc file POSIX defines, so it is created when missing.
    return ShellProfile(ShellKind.POSIX, True, (profile,), (profile,))


def _probe_bash(env: ShellEnvironment) -> ShellProfile:
    rcfiles = tuple(env.home / name for name in (".bash_profile", ".bash_login", ".bashrc"))
    update_rcs = tuple(rc for rc in rcfiles if rc.is_file())
    return ShellProfile(ShellKind.BASH, bool(update_rcs), rcfiles, update_rcs)


def _probe_zsh(env: ShellEnvironment) -> ShellProfile:
    if not env.has_shell("zsh"):
        return ShellProfile(ShellKind.ZSH, False)

    dirs = [d for d in (zdotdir(env), env.home) if d is not None]
    rcfiles = tuple(dict.fromkeys(d / ".zshenv" for d in dirs))
    # zsh may change ZDOTDIR while reading .zshenv; write exactly one file.
    existing = [rc for rc in rcfiles if rc.is_file()]
    update_rcs = (existing[0],) if existing else rcfiles[:1]
    return ShellProfile(ShellKind.ZSH, True, rcfiles, update_rcs)


def _probe_fish(env: ShellEnvironment) -> ShellProfile:
    if not env.has_shell("fish"):
        return ShellProfile(ShellKind.FISH, False)

    conf = Path("fish") / "conf.d" / f"{APP_NAME}.fish"
    candidates: list[Path] = []
    xdg = env.environ.get("XDG_CONFIG_HOME")
    if xdg:
        candidates.append(Path(xdg) / conf)
    candidates.append(env.home / ".config" / conf)
    rcfiles = tuple(dict.fromkeys(candidates))
    return ShellProfile(ShellKind.FISH, True, rcfiles, rcfiles)


_PROBES: tuple[tuple[ShellKind, Callable[[ShellEnvironment], ShellProfile]], ...] = (
    (ShellKind.POSIX, _probe_posix),
    (ShellKind.BASH, _probe_bash),
    (ShellKind.ZSH, _probe_zsh),
    (ShellKind.FISH, _probe_fish),
)


def probe_shells(env: ShellEnvironment) -> tuple[list[ShellProfile], list[ShellError]]:
    """Probe every known shell.

    A probe that fails (e.g. an unreadable home directory) marks that shell
    unavailable and is reported; the others are still probed.
    """
    profiles: list[ShellProfile] = []
    errors: list[ShellError] = []
    for kind, probe in _PROBES:
        try:
            profiles.append(probe(env))
        except OSError as e:
            errors.append(
                ShellError(
                    kind="probe_failed",
                    shell=str(kind),
                    path=Path(e.filename) if e.filename else None,
                    message=f"Cannot probe shell: {e.strerror or e}",
                )
            )
            profiles.append(ShellProfile(kind, False))
    return profiles, errors


def append_sourcing_line(content: str, line: str) -> str:
    """``content`` with ``line`` appended, unless it is already there.

    A file ending in a newline gets ``line + "\\n"``; any other non-empty file
    gets ``"\\n" + line`` so the original last line stays intact.
    """
    if line in content:
        return content
    if not content or content.endswith("\n"):
        return f"{content}{line}\n"
    return f"{content}\n{line}"


def remove_sourcing_line(content: str, line: str) -> str:
    """Undo ``append_sourcing_line``: drop the first exact occurrence of the line."""
    with_newline = f"{line}\n"
    index = content.find(with_newline)
    if index != -1:
        return content[:index] + content[index + len(with_newline) :]
    tail = f"\n{line}"
    if content.endswith(tail):
        return content[: -len(tail)]
    if content == line:
        return ""
    return content
