"""Subprocess execution with Result-based error handling.

Installables never call ``subprocess`` directly; they receive a
``ProcessRunner`` so tests can script tool output (``rustc --version``,
``rustup target list``) without the tools being installed.

Usage:
    runner = SubprocessRunner()
    match runner.run(["rustc", "--version"], timeout=10):
        case Ok(stdout):
            print(stdout)
        case Err(error):
            print(f"Failed: {error.stderr}")
"""

from __future__ import annotations

import os
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from espenv.core.result import Err, Ok, Result

__all__ = [
    "MockProcessRunner",
    "ProcessError",
    "ProcessRunner",
    "SubprocessRunner",
    "run",
    "run_silent",
]


@dataclass(frozen=True, slots=True)
class ProcessError:
    """Error from a failed subprocess execution.

    Attributes:
        command: The command that was executed.
        returncode: Exit code, or -1 when the process could not start or timed out.
        stdout: Standard output (may be empty).
        stderr: Standard error (contains error details).
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def not_found(self) -> bool:
        """True when the executable itself could not be started."""
        return self.returncode == -1 and "timed out" not in self.stderr

    def __str__(self) -> str:
        cmd_str = " ".join(self.command[:3])
        if len(self.command) > 3:
            cmd_str += " ..."
        return f"{cmd_str} failed (exit {self.returncode})"


def run(
    cmd: Sequence[str],
    cwd: Path | None = None,
    env: dict[str, str] | None = None,
    *,
    timeout: float | None = None,
) -> Result[str, ProcessError]:
    """Execute a command and return its stdout or a ProcessError."""
    command = tuple(cmd)
    try:
        proc = subprocess.run(
            list(command),
            cwd=str(cwd) if cwd else None,
            env=env,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        return Err(
            ProcessError(
                command=command,
                returncode=-1,
                stdout=e.stdout if isinstance(e.stdout, str) else "",
                stderr=f"Command timed out after {timeout}s",
            )
        )
    except OSError as e:
        return Err(ProcessError(command=command, returncode=-1, stdout="", stderr=str(e)))

    if proc.returncode != 0:
        return Err(
            ProcessError(
                command=command,
                returncode=proc.returncode,
                stdout=proc.stdout,
                stderr=proc.stderr,
            )
        )

    return Ok(proc.stdout)


def run_silent(
    cmd: Sequence[str],
    cwd: Path | None = None,
    env: dict[str, str] | None = None,
) -> Result[None, ProcessError]:
    """Execute a command with output streaming to the terminal.

    Used for long-running installers (install.sh, git clone, rustup) so the
    user sees their progress.
    """
    command = tuple(cmd)
    try:
        proc = subprocess.run(list(command), cwd=str(cwd) if cwd else None, env=env, check=False)
    except OSError as e:
        return Err(ProcessError(command=command, returncode=-1, stdout="", stderr=str(e)))

    if proc.returncode != 0:
        return Err(ProcessError(command=command, returncode=proc.returncode, stdout="", stderr=""))

    return Ok(None)


class ProcessRunner(Protocol):
    """Capability to run external tools."""

    def run(
        self,
        cmd: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
        stream: bool = False,
    ) -> Result[str, ProcessError]:
        """Run ``cmd``; stdout on success (empty when ``stream`` is set).

        ``env`` entries are added to the current environment.
        """
        ...


class SubprocessRunner:
    """ProcessRunner backed by ``subprocess``."""

    def run(
        self,
        cmd: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
        stream: bool = False,
    ) -> Result[str, ProcessError]:
        full_env = {**os.environ, **env} if env else None
        if stream:
            return run_silent(cmd, cwd=cwd, env=full_env).map(lambda _: "")
        return run(cmd, cwd=cwd, env=full_env, timeout=timeout)


class MockProcessRunner:
    """ProcessRunner for tests.

    Responses are matched on the longest registered command prefix; commands
    without a response fail as if the executable did not exist.

    Usage:
        runner = MockProcessRunner()
        runner.set_output(["rustup", "target", "list"], "riscv32imc-unknown-none-elf\\n")
        runner.set_failure(["git", "clone"], returncode=128)
    """

    def __init__(self) -> None:
        self._responses: dict[tuple[str, ...], Result[str, int]] = {}
        self.calls: list[tuple[str, ...]] = []
        self.envs: list[dict[str, str]] = []

    def set_output(self, prefix: Sequence[str], stdout: str = "") -> None:
        self._responses[tuple(prefix)] = Ok(stdout)

    def set_failure(self, prefix: Sequence[str], returncode: int = 1) -> None:
        self._responses[tuple(prefix)] = Err(returncode)

    def ran(self, *prefix: str) -> bool:
        """True if some recorded command starts with ``prefix``."""
        return any(call[: len(prefix)] == prefix for call in self.calls)

    def run(
        self,
        cmd: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
        stream: bool = False,
    ) -> Result[str, ProcessError]:
        command = tuple(cmd)
        self.calls.append(command)
        self.envs.append(dict(env or {}))

        matches = [p for p in self._responses if command[: len(p)] == p]
        if not matches:
            return Err(
                ProcessError(command=command, returncode=-1, stdout="", stderr="not found (mock)")
            )

        match self._responses[max(matches, key=len)]:
            case Ok(stdout):
                return Ok("" if stream else stdout)
            case Err(returncode):
                return Err(
                    ProcessError(command=command, returncode=returncode, stdout="", stderr="")
                )
