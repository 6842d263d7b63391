"""Tests for espenv.platform.paths module."""

from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

from espenv.platform import paths


@pytest.fixture(autouse=True)
def _fresh_caches() -> Iterator[None]:
    paths.clear_caches()
    yield
    paths.clear_caches()


pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX layout")


def test_home_from_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    assert paths.home() == tmp_path


def test_rustup_home_default(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.delenv("RUSTUP_HOME", raising=False)
    assert paths.rustup_home() == tmp_path / ".rustup"


def test_rustup_home_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RUSTUP_HOME", str(tmp_path / "r"))
    assert paths.rustup_home() == tmp_path / "r"


def test_config_dir_honours_xdg(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    assert paths.user_config_dir() == tmp_path / "xdg" / "espenv"


def test_espressif_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.delenv("IDF_TOOLS_PATH", raising=False)
    assert paths.espressif_tools_dir() == tmp_path / ".espressif"


def test_legacy_export_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    assert paths.legacy_export_file() == tmp_path / "export-esp.sh"
