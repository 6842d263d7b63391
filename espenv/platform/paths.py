"""User-level directories.

Every function reads the environment at call time and is cached; tests that
change ``HOME`` or ``RUSTUP_HOME`` call ``clear_caches()``.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from .detection import is_windows

__all__ = [
    "APP_NAME",
    "home",
    "user_config_dir",
    "rustup_home",
    "cargo_home",
    "espressif_tools_dir",
    "legacy_export_file",
    "clear_caches",
]

APP_NAME = "espenv"


@lru_cache(maxsize=1)
def home() -> Path:
    """User's home directory (USERPROFILE on Windows, HOME elsewhere)."""
    if is_windows():
        userprofile = os.environ.get("USERPROFILE")
        if userprofile:
            return Path(userprofile)
    else:
        home_env = os.environ.get("HOME")
        if home_env:
            return Path(home_env)
    return Path.home()


@lru_cache(maxsize=1)
def user_config_dir() -> Path:
    """``~/.config/espenv`` (or ``$XDG_CONFIG_HOME``), ``%APPDATA%\\espenv`` on Windows."""
    if is_windows():
        app_data = os.environ.get("APPDATA")
        if app_data:
            return Path(app_data) / APP_NAME
        return home() / "AppData" / "Roaming" / APP_NAME

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / APP_NAME
    return home() / ".config" / APP_NAME


@lru_cache(maxsize=1)
def rustup_home() -> Path:
    env = os.environ.get("RUSTUP_HOME")
    return Path(env) if env else home() / ".rustup"


@lru_cache(maxsize=1)
def cargo_home() -> Path:
    env = os.environ.get("CARGO_HOME")
    return Path(env) if env else home() / ".cargo"


@lru_cache(maxsize=1)
def espressif_tools_dir() -> Path:
    """Where ESP-IDF and its tools live (``$IDF_TOOLS_PATH`` or ``~/.espressif``)."""
    env = os.environ.get("IDF_TOOLS_PATH")
    return Path(env) if env else home() / ".espressif"


def legacy_export_file() -> Path:
    """Export file written by older releases, removed when the environment is wired."""
    name = "export-esp.ps1" if is_windows() else "export-esp.sh"
    return home() / name


def clear_caches() -> None:
    """Clear all cached paths (for tests that change the environment)."""
    home.cache_clear()
    user_config_dir.cache_clear()
    rustup_home.cache_clear()
    cargo_home.cache_clear()
    espressif_tools_dir.cache_clear()
