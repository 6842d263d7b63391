"""Tests for espenv.platform.process module."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from espenv.core.result import Err, Ok
from espenv.platform.process import (
    MockProcessRunner,
    ProcessError,
    SubprocessRunner,
    run,
)


class TestProcessError:
    """Test ProcessError dataclass."""

    def test_str_short_command(self) -> None:
        error = ProcessError(command=("git", "clone"), returncode=128, stdout="", stderr="")
        assert str(error) == "git clone failed (exit 128)"

    def test_str_long_command_truncated(self) -> None:
        error = ProcessError(
            command=("rustup", "target", "add", "--toolchain", "nightly"),
            returncode=1,
            stdout="",
            stderr="",
        )
        assert str(error) == "rustup target add ... failed (exit 1)"

    def test_not_found(self) -> None:
        assert ProcessError(("zsh",), -1, "", "No such file").not_found
        assert not ProcessError(("zsh",), -1, "", "Command timed out after 5s").not_found
        assert not ProcessError(("zsh",), 1, "", "").not_found


class TestRun:
    def test_success_returns_stdout(self, tmp_path: Path) -> None:
        result = run([sys.executable, "-c", "print('hello')"], cwd=tmp_path)

        assert isinstance(result, Ok)
        assert "hello" in result.value

    def test_failure_returns_error(self, tmp_path: Path) -> None:
        result = run([sys.executable, "-c", "import sys; sys.exit(42)"], cwd=tmp_path)

        assert isinstance(result, Err)
        assert result.error.returncode == 42

    def test_timeout(self, tmp_path: Path) -> None:
        result = run([sys.executable, "-c", "import time; time.sleep(5)"], timeout=0.2)

        assert isinstance(result, Err)
        assert "timed out" in result.error.stderr
        assert not result.error.not_found

    def test_command_not_found(self, tmp_path: Path) -> None:
        result = run(["nonexistent_command_12345"], cwd=tmp_path)

        assert isinstance(result, Err)
        assert result.error.not_found


class TestSubprocessRunner:
    def test_env_is_added_to_current_environment(self) -> None:
        """Extra variables are merged with, not substituted for, the environment."""
        code = "import os; print(os.environ['ESPENV_TEST'], 'PATH' in os.environ)"

        result = SubprocessRunner().run([sys.executable, "-c", code], env={"ESPENV_TEST": "yes"})

        assert isinstance(result, Ok)
        assert result.value.split() == ["yes", "True"]

    def test_stream_returns_empty_output(self) -> None:
        result = SubprocessRunner().run([sys.executable, "-c", "pass"], stream=True)
        assert result == Ok("")


class TestMockProcessRunner:
    def test_unregistered_command_is_not_found(self) -> None:
        runner = MockProcessRunner()

        result = runner.run(["zsh", "-c", "echo $ZDOTDIR"])

        assert isinstance(result, Err)
        assert result.error.not_found
        assert runner.calls == [("zsh", "-c", "echo $ZDOTDIR")]

    def test_longest_prefix_wins(self) -> None:
        runner = MockProcessRunner()
        runner.set_output(["rustup"], "generic")
        runner.set_failure(["rustup", "target", "add"], returncode=3)

        assert runner.run(["rustup", "show"]) == Ok("generic")
        failed = runner.run(["rustup", "target", "add", "x"])
        assert isinstance(failed, Err)
        assert failed.error.returncode == 3

    def test_ran_and_envs(self) -> None:
        runner = MockProcessRunner()
        runner.set_output(["bash"])

        runner.run(["bash", "install.sh"], env={"IDF_TOOLS_PATH": "/x"})

        assert runner.ran("bash", "install.sh")
        assert not runner.ran("git")
        assert runner.envs == [{"IDF_TOOLS_PATH": "/x"}]

    @pytest.mark.parametrize("stream", [True, False])
    def test_stream_hides_output(self, stream: bool) -> None:
        runner = MockProcessRunner()
        runner.set_output(["rustc", "--version"], "rustc 1.74.0")

        result = runner.run(["rustc", "--version"], stream=stream)

        assert result == Ok("" if stream else "rustc 1.74.0")
