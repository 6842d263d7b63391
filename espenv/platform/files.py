"""Filesystem helpers."""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

__all__ = ["atomic_write_text", "read_text_or_none", "remove_tree"]


def atomic_write_text(path: Path, content: str, *, encoding: str = "utf-8") -> None:
    """Write text to path atomically using temp file + replace.

    Used for rc files and generated scripts so a crash never leaves a
    truncated user file behind. Content is written byte-for-byte
    (no newline translation).
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.",
        suffix=".tmp",
        dir=str(path.parent),
    )
    tmp_path = Path(tmp_name)

    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        if path.exists():
            # Keep the user's permission bits on rc files.
            shutil.copymode(path, tmp_path)
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


def read_text_or_none(path: Path, *, encoding: str = "utf-8") -> str | None:
    """File content without newline translation, or None if it does not exist.

    Raises:
        OSError: for any failure other than a missing file.
    """
    try:
        with open(path, encoding=encoding, newline="") as handle:
            return handle.read()
    except FileNotFoundError:
        return None


def remove_tree(path: Path) -> bool:
    """Remove a directory tree (or a single file).

    Returns:
        True if something was removed, False if nothing existed.
    """
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
        return True
    if path.exists() or path.is_symlink():
        path.unlink()
        return True
    return False
