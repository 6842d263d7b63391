"""Tests for espenv.output.console module."""

from __future__ import annotations

import pytest

from espenv.output.console import ConsoleProtocol, MockConsole, RichConsole, Style


class TestStyle:
    def test_str_conversion(self) -> None:
        assert str(Style.SUCCESS) == "success"
        assert str(Style.DIM) == "dim"

    def test_all_styles_exist(self) -> None:
        expected = {"DEFAULT", "SUCCESS", "ERROR", "WARNING", "INFO", "DIM", "BOLD", "HEADER"}
        assert {s.name for s in Style} == expected


class TestMockConsole:
    """Test MockConsole for testing purposes."""

    def test_print_captures_message(self) -> None:
        console = MockConsole()
        console.print("hello")
        assert console.outputs[0].message == "hello"
        assert console.outputs[0].style == Style.DEFAULT

    def test_prefixes(self) -> None:
        console = MockConsole()
        console.success("done")
        console.error("failed")
        console.warning("careful")
        console.info("note")
        assert console.messages == ["OK done", "error: failed", "warning: careful", "info: note"]

    def test_debug_is_dim(self) -> None:
        console = MockConsole()
        console.debug("detail")
        assert console.outputs[0].style == Style.DIM

    def test_has_error_and_warning(self) -> None:
        console = MockConsole()
        assert not console.has_error()
        console.warning("w")
        console.error("e")
        assert console.has_error()
        assert console.has_warning()

    def test_find_and_text(self) -> None:
        console = MockConsole()
        console.print("Installing gcc")
        console.newline()
        console.header("Plan")
        assert len(console.find("gcc")) == 1
        assert console.text == "Installing gcc\n\nPlan"

    def test_satisfies_protocol(self) -> None:
        console: ConsoleProtocol = MockConsole()
        console.print("ok")


class TestRichConsole:
    def test_prints_brackets_literally(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Paths with brackets are not parsed as markup."""
        console = RichConsole()
        console.print("[bold]C:\\tools[/bold]")
        assert "[bold]" in capsys.readouterr().out

    def test_debug_hidden_unless_verbose(self, capsys: pytest.CaptureFixture[str]) -> None:
        RichConsole().debug("hidden detail")
        RichConsole(verbose=True).debug("shown detail")
        out = capsys.readouterr().out
        assert "hidden detail" not in out
        assert "shown detail" in out

    def test_error_prefix(self, capsys: pytest.CaptureFixture[str]) -> None:
        RichConsole().error("boom")
        assert "error: boom" in capsys.readouterr().out
